# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""Events the wallet appends to the host log."""

from __future__ import annotations

import unittest
from dataclasses import dataclass

from .bcs import Serializer
from .hashing import TransferParams, User
from .identity import Address, AssetId, Identity


@dataclass(frozen=True)
class SetThresholdEvent:
    nonce: int
    previous_threshold: int
    threshold: int

    def serialize(self, serializer: Serializer):
        serializer.u64(self.nonce)
        serializer.u64(self.previous_threshold)
        serializer.u64(self.threshold)


@dataclass(frozen=True)
class SetWeightEvent:
    nonce: int
    user: User

    def serialize(self, serializer: Serializer):
        serializer.u64(self.nonce)
        serializer.struct(self.user)


@dataclass(frozen=True)
class ExecuteTransactionEvent:
    """A transfer or call went through.

    Call parameters are not part of the event; nested variable length data
    cannot be logged by the host.
    """

    nonce: int
    target: Identity
    transfer_params: TransferParams

    def serialize(self, serializer: Serializer):
        serializer.u64(self.nonce)
        serializer.struct(self.target)
        serializer.struct(self.transfer_params)


@dataclass(frozen=True)
class CanOnlyCallContractsEvent:
    """Diagnostic logged right before a call to a plain account is aborted."""

    target: Identity

    def serialize(self, serializer: Serializer):
        serializer.struct(self.target)


class Test(unittest.TestCase):
    def test_execute_transaction_event_layout(self):
        event = ExecuteTransactionEvent(
            3, Identity(Address.from_int(9)), TransferParams(AssetId.from_int(1), 5)
        )
        ser = Serializer()
        event.serialize(ser)
        # nonce, identity tag + bits, asset id, option tag + u64
        self.assertEqual(len(ser.output()), 8 + 33 + 32 + 9)


if __name__ == "__main__":
    unittest.main()
