# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Errors raised by the wallet.

Every error aborts the whole operation it was raised from; the wallet never
retries and never commits part of an operation. They fall into five groups:

- :class:`InitError`: the wallet is being set up twice, is used before set
  up, or would be left with an unusable threshold.
- :class:`ExecutionError`: an otherwise well-formed request was refused
  (not enough approval weight, signatures out of order, funds short...).
- :class:`InvalidSignature`: a signature could not be turned into a signer.
- :class:`ValueOutOfRange`: a quantity does not fit in an unsigned 64 bit
  integer, or a sum of quantities would overflow one.
- :class:`FatalRevert`: a hard abort that also leaves a diagnostic event in
  the host log, used when an external call targets something that is not a
  contract.
"""

from __future__ import annotations

import typing

if typing.TYPE_CHECKING:
    from .identity import Bits256, Identity


class MultisigError(Exception):
    """Base class of all wallet errors."""


class InitError(MultisigError):
    """Set up of the wallet failed or has not happened."""


class CannotReinitialize(InitError):
    def __init__(self):
        super().__init__("The wallet has already been initialized")


class NotInitialized(InitError):
    def __init__(self):
        super().__init__("The wallet has not been initialized")


class ThresholdCannotBeZero(InitError):
    def __init__(self):
        super().__init__("The threshold cannot be zero")


class TotalWeightCannotBeLessThanThreshold(InitError):
    """The summed weight of all users would be below the threshold."""

    total_weight: int
    threshold: int

    def __init__(self, total_weight: int, threshold: int):
        super().__init__(
            f"Total weight {total_weight} cannot be less than threshold {threshold}"
        )
        self.total_weight = total_weight
        self.threshold = threshold


class ExecutionError(MultisigError):
    """An authorized operation was refused."""


class InsufficientApprovals(ExecutionError):
    """The signers' summed weight did not reach the threshold."""

    approval_count: int
    threshold: int

    def __init__(self, approval_count: int, threshold: int):
        super().__init__(
            f"Approval weight {approval_count} is below threshold {threshold}"
        )
        self.approval_count = approval_count
        self.threshold = threshold


class IncorrectSignerOrdering(ExecutionError):
    """Signers were repeated or not sorted in strictly ascending order."""

    previous_signer: Bits256
    signer: Bits256

    def __init__(self, previous_signer: Bits256, signer: Bits256):
        super().__init__(
            f"Signer {signer} must be strictly greater than previous signer "
            f"{previous_signer}"
        )
        self.previous_signer = previous_signer
        self.signer = signer


class TransferRequiresAValue(ExecutionError):
    def __init__(self):
        super().__init__("A transfer requires a value")


class InsufficientAssetAmount(ExecutionError):
    """The wallet does not hold enough of the asset."""

    requested: int
    available: int

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Requested {requested} but only {available} is available"
        )
        self.requested = requested
        self.available = available


class ExternalCallFailed(ExecutionError):
    """The host could not complete an external call."""


class InvalidSignature(MultisigError):
    """A signature is malformed or no key can be recovered from it."""


class FatalRevert(MultisigError):
    """Hard abort of the enclosing call, preceded by a diagnostic event."""


class CanOnlyCallContracts(FatalRevert):
    """An external call was requested against a plain account."""

    target: Identity

    def __init__(self, target: Identity):
        super().__init__(f"Can only call contracts, got {target}")
        self.target = target


class ValueOutOfRange(MultisigError):
    """A threshold, weight, total or amount outside ``[0, 2**64 - 1]``."""

    name: str
    value: int

    def __init__(self, name: str, value: int):
        super().__init__(f"{name} {value} does not fit in a u64")
        self.name = name
        self.value = value
