# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Weighted threshold multisig wallet.

A :class:`MultisigWallet` keeps a table of users and their weights and only
performs a privileged operation when the users who signed it carry at least
``threshold`` weight between them. The privileged operations are:

- :meth:`MultisigWallet.set_threshold`: change the required weight
- :meth:`MultisigWallet.set_weight`: add, reweigh or mute a user
- :meth:`MultisigWallet.execute_transaction`: send assets, or call another
  contract while optionally forwarding assets

Every operation follows the same path:

1. Build the action payload with the wallet's identity and current nonce.
2. Hash it (:func:`multisig_wallet.hashing.compute_hash`).
3. Recover the signers of that digest and sum their weights
   (:func:`multisig_wallet.approvals.count_approvals`).
4. Refuse unless the sum reaches the current threshold.
5. Increment the nonce, apply the change, then perform any side effect and
   emit the event.

Because the nonce is part of every digest and is bumped by every successful
operation, each collected set of signatures is good for exactly one operation,
and a contract called in step 5 that calls back into the wallet already sees
the new nonce.

State invariants, once constructed:
    - ``nonce >= 1``
    - ``threshold != 0``
    - ``threshold <= total_weight``
    - the threshold, every weight and the total weight fit in a u64

An operation that fails for any reason leaves the state and the host ledger
exactly as they were.

Examples:
    Deploying and changing the threshold::

        ledger = InMemoryLedger(ContractId.from_int(1))
        wallet = MultisigWallet(ledger, WalletConfig(threshold=2))
        wallet.constructor([User(alice, 1), User(bob, 1), User(carol, 1)])

        digest = wallet.compute_hash(wallet.threshold_change_payload(3))
        signatures = sorted_signatures([alice_key, bob_key], digest)
        wallet.set_threshold(signatures, 3)
"""

from __future__ import annotations

import contextlib
import logging
import typing
import unittest
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .approvals import count_approvals
from .bcs import MAX_U64
from .config import WalletConfig
from .errors import (
    CanOnlyCallContracts,
    CannotReinitialize,
    ExecutionError,
    IncorrectSignerOrdering,
    InsufficientApprovals,
    InsufficientAssetAmount,
    InvalidSignature,
    NotInitialized,
    ThresholdCannotBeZero,
    TotalWeightCannotBeLessThanThreshold,
    TransferRequiresAValue,
    ValueOutOfRange,
)
from .events import (
    CanOnlyCallContractsEvent,
    ExecuteTransactionEvent,
    SetThresholdEvent,
    SetWeightEvent,
)
from .hashing import (
    ActionPayload,
    ContractCallParams,
    ThresholdChange,
    Transaction,
    TransferParams,
    User,
    WeightChange,
    compute_hash,
)
from .identity import Address, AssetId, Bits256, ContractId, Identity
from .ledger import HostLedger, InMemoryLedger
from .secp256k1_ecdsa import PrivateKey, Signature
from .signature import SignatureInfo, recover_signer


def require_u64(name: str, value: int):
    """Raise :class:`ValueOutOfRange` unless ``value`` fits in a u64."""
    if not 0 <= value <= MAX_U64:
        raise ValueOutOfRange(name, value)


@dataclass
class AuthorizationState:
    """Everything the wallet persists.

    Attributes:
        nonce: 0 until constructed, then bumped by every successful operation.
        threshold: Weight required to authorize an operation.
        total_weight: Sum of the weights of all users.
        weighting: Weight per user; a missing user weighs 0.
    """

    nonce: int = 0
    threshold: int = 0
    total_weight: int = 0
    weighting: Dict[Bits256, int] = field(default_factory=dict)

    def copy(self) -> AuthorizationState:
        return AuthorizationState(
            self.nonce, self.threshold, self.total_weight, dict(self.weighting)
        )

    def restore(self, other: AuthorizationState):
        self.nonce = other.nonce
        self.threshold = other.threshold
        self.total_weight = other.total_weight
        self.weighting = dict(other.weighting)


class MultisigWallet:
    """A weighted multisig wallet running on a host ledger.

    Attributes:
        ledger: Host providing identity, balances, transfers, calls and events.
        config: Deployment parameters, including the initial threshold.
        state: The wallet's persistent state.
    """

    ledger: HostLedger
    config: WalletConfig
    state: AuthorizationState

    def __init__(
        self,
        ledger: HostLedger,
        config: Optional[WalletConfig] = None,
        state: Optional[AuthorizationState] = None,
    ):
        self.ledger = ledger
        self.config = config if config is not None else WalletConfig()
        self.state = state if state is not None else AuthorizationState()

    def constructor(self, users: Sequence[User]):
        """Register the initial users and activate the wallet.

        The threshold becomes ``config.threshold``. Every entry of ``users``
        adds its weight to the total; when an address appears more than once
        only its last weight is stored, so the total then exceeds the sum of
        stored weights.

        Raises:
            CannotReinitialize: The wallet was already constructed.
            ValueOutOfRange: The threshold, a weight or the total weight does
                not fit in a u64.
            ThresholdCannotBeZero: The configured threshold is 0.
            TotalWeightCannotBeLessThanThreshold: The users do not carry
                enough weight to ever reach the threshold.
        """
        if self.state.nonce != 0:
            raise CannotReinitialize()
        threshold = self.config.threshold
        require_u64("threshold", threshold)
        if threshold == 0:
            raise ThresholdCannotBeZero()

        weighting: Dict[Bits256, int] = {}
        total_weight = 0
        for user in users:
            require_u64("weight", user.weight)
            if user.address in weighting:
                logging.warning(
                    f"User {user.address} listed more than once, its weight is "
                    f"counted once per entry but only the last weight is stored"
                )
            weighting[user.address] = user.weight
            total_weight += user.weight
        require_u64("total weight", total_weight)

        if threshold > total_weight:
            raise TotalWeightCannotBeLessThanThreshold(total_weight, threshold)

        with self._atomic():
            self.state.weighting.update(weighting)
            self.state.total_weight = total_weight
            self.state.threshold = threshold
            self.state.nonce = 1
            self._check_invariant()
        logging.info(
            f"Wallet {self.ledger.current_contract_identity()} constructed with "
            f"{len(weighting)} users, total weight {total_weight}, threshold {threshold}"
        )

    def set_threshold(self, signatures: Sequence[SignatureInfo], threshold: int):
        """Change the approval threshold.

        Approval is measured against the threshold in force before the change.

        Raises:
            NotInitialized: The wallet has not been constructed.
            ThresholdCannotBeZero: ``threshold`` is 0.
            ValueOutOfRange: ``threshold`` does not fit in a u64.
            TotalWeightCannotBeLessThanThreshold: ``threshold`` exceeds the
                total weight.
            InsufficientApprovals: The signers do not carry enough weight.
            IncorrectSignerOrdering: Signers are repeated or unsorted.
        """
        nonce = self._require_initialized()
        require_u64("threshold", threshold)
        if threshold == 0:
            raise ThresholdCannotBeZero()
        if threshold > self.state.total_weight:
            raise TotalWeightCannotBeLessThanThreshold(
                self.state.total_weight, threshold
            )

        self._authorize(signatures, self.threshold_change_payload(threshold))

        previous_threshold = self.state.threshold
        with self._atomic():
            self.state.nonce = nonce + 1
            self.state.threshold = threshold
            self._check_invariant()
            self.ledger.emit(SetThresholdEvent(nonce, previous_threshold, threshold))
        logging.info(f"Threshold changed from {previous_threshold} to {threshold}")

    def set_weight(self, signatures: Sequence[SignatureInfo], user: User):
        """Set the weight of ``user.address`` to ``user.weight``.

        A weight of 0 mutes a user without removing it from the table.

        Raises:
            NotInitialized: The wallet has not been constructed.
            ValueOutOfRange: The weight or the resulting total weight does not
                fit in a u64.
            InsufficientApprovals: The signers do not carry enough weight.
            IncorrectSignerOrdering: Signers are repeated or unsorted.
            TotalWeightCannotBeLessThanThreshold: The new weight would drop
                the total below the threshold. Nothing is changed.
        """
        nonce = self._require_initialized()
        require_u64("weight", user.weight)
        current_weight = self.approval_weight(user.address)
        total_weight = self.state.total_weight - current_weight + user.weight
        require_u64("total weight", total_weight)

        self._authorize(signatures, self.weight_change_payload(user))

        if total_weight < self.state.threshold:
            raise TotalWeightCannotBeLessThanThreshold(
                total_weight, self.state.threshold
            )

        with self._atomic():
            self.state.weighting[user.address] = user.weight
            self.state.total_weight = total_weight
            self.state.nonce = nonce + 1
            self._check_invariant()
            self.ledger.emit(SetWeightEvent(nonce, user))
        logging.info(
            f"Weight of {user.address} changed from {current_weight} to {user.weight}"
        )

    def execute_transaction(
        self,
        contract_call_params: Optional[ContractCallParams],
        signatures: Sequence[SignatureInfo],
        target: Identity,
        transfer_params: TransferParams,
    ) -> typing.Any:
        """Transfer assets, or call a contract when call parameters are given.

        Transfer (``contract_call_params is None``): ``transfer_params.value``
        of ``transfer_params.asset_id`` is sent to ``target``.

        Call: ``target`` must be a contract. It is invoked with the selector,
        calldata and gas of ``contract_call_params`` and is forwarded
        ``transfer_params.value`` (or nothing) of ``transfer_params.asset_id``.

        In both cases the nonce is incremented before the assets leave the
        wallet or the call is made.

        Returns:
            Whatever the called contract returned, ``None`` for a transfer.

        Raises:
            NotInitialized: The wallet has not been constructed.
            ValueOutOfRange: The value or the forwarded gas does not fit in a
                u64.
            TransferRequiresAValue: A transfer without a value.
            InsufficientAssetAmount: The wallet holds less than the value.
            InsufficientApprovals: The signers do not carry enough weight.
            IncorrectSignerOrdering: Signers are repeated or unsorted.
            CanOnlyCallContracts: A call to a plain account. The
                diagnostic :class:`CanOnlyCallContractsEvent` is emitted first.
        """
        nonce = self._require_initialized()
        value = transfer_params.value
        asset_id = transfer_params.asset_id
        if value is not None:
            require_u64("value", value)
        if contract_call_params is not None:
            require_u64("forwarded gas", contract_call_params.forwarded_gas)

        if contract_call_params is None:
            if value is None:
                raise TransferRequiresAValue()
            self._require_balance(asset_id, value)
        else:
            if not target.is_contract():
                self.ledger.emit(CanOnlyCallContractsEvent(target))
                raise CanOnlyCallContracts(target)
            if value is not None:
                self._require_balance(asset_id, value)

        self._authorize(
            signatures,
            self.transaction_payload(contract_call_params, target, transfer_params),
        )

        result = None
        with self._atomic():
            self.state.nonce = nonce + 1
            if contract_call_params is None:
                self.ledger.transfer(value, asset_id, target)
            else:
                result = self.ledger.invoke_external(
                    typing.cast(ContractId, target.bits()),
                    contract_call_params.function_selector,
                    contract_call_params.calldata,
                    contract_call_params.single_value_type_arg,
                    value or 0,
                    asset_id,
                    contract_call_params.forwarded_gas,
                )
            self.ledger.emit(ExecuteTransactionEvent(nonce, target, transfer_params))
        logging.info(f"Transaction {nonce} executed against {target}")
        return result

    def approval_weight(self, address: Bits256) -> int:
        return self.state.weighting.get(address, 0)

    def balance(self, asset_id: AssetId) -> int:
        return self.ledger.balance_of(asset_id)

    def compute_hash(self, payload: typing.Any) -> bytes:
        """Digest signers must sign to approve ``payload``."""
        return compute_hash(payload)

    def nonce(self) -> int:
        return self.state.nonce

    def threshold(self) -> int:
        return self.state.threshold

    def total_weight(self) -> int:
        return self.state.total_weight

    def threshold_change_payload(self, threshold: int) -> ActionPayload:
        return ActionPayload(
            ThresholdChange(
                self.ledger.current_contract_identity(), self.state.nonce, threshold
            )
        )

    def weight_change_payload(self, user: User) -> ActionPayload:
        return ActionPayload(
            WeightChange(self.ledger.current_contract_identity(), self.state.nonce, user)
        )

    def transaction_payload(
        self,
        contract_call_params: Optional[ContractCallParams],
        target: Identity,
        transfer_params: TransferParams,
    ) -> ActionPayload:
        return ActionPayload(
            Transaction(
                self.ledger.current_contract_identity(),
                self.state.nonce,
                contract_call_params,
                target,
                transfer_params,
            )
        )

    def _require_initialized(self) -> int:
        nonce = self.state.nonce
        if nonce == 0:
            raise NotInitialized()
        return nonce

    def _require_balance(self, asset_id: AssetId, value: int):
        available = self.ledger.balance_of(asset_id)
        if value > available:
            raise InsufficientAssetAmount(value, available)

    def _authorize(self, signatures: Sequence[SignatureInfo], payload: ActionPayload):
        threshold = self.state.threshold
        approval_count = count_approvals(
            signatures, compute_hash(payload), self.approval_weight, threshold
        )
        if approval_count < threshold:
            raise InsufficientApprovals(approval_count, threshold)

    def _check_invariant(self):
        if self.state.threshold == 0:
            raise ThresholdCannotBeZero()
        if self.state.threshold > self.state.total_weight:
            raise TotalWeightCannotBeLessThanThreshold(
                self.state.total_weight, self.state.threshold
            )

    @contextlib.contextmanager
    def _atomic(self):
        """Undo every state and ledger change if the block raises."""
        state = self.state.copy()
        checkpoint = self.ledger.checkpoint()
        try:
            yield
        except Exception:
            self.state.restore(state)
            self.ledger.rollback(checkpoint)
            raise


def sorted_signatures(
    private_keys: Sequence[PrivateKey], digest: bytes
) -> List[SignatureInfo]:
    """Sign ``digest`` with every key and order the results by signer."""
    signatures = [SignatureInfo.sign(key, digest) for key in private_keys]
    return sorted(signatures, key=lambda info: recover_signer(digest, info))


class Test(unittest.TestCase):
    def setUp(self):
        self.asset = AssetId.from_int(0xA55E7)
        self.wallet_id = ContractId.from_int(0x3A11E7)
        self.ledger = InMemoryLedger(self.wallet_id, {self.asset: 1_000})
        self.wallet = MultisigWallet(self.ledger, WalletConfig(threshold=5))

        keys = [PrivateKey.random() for _ in range(3)]
        keys.sort(key=lambda key: key.public_key().address())
        # Weights 1, 2, 3 in ascending signer order.
        self.keys = keys
        self.users = [
            User(key.public_key().address(), weight)
            for key, weight in zip(keys, [1, 2, 3])
        ]
        self.wallet.constructor(self.users)

    def key_with_weight(self, weight: int) -> PrivateKey:
        return self.keys[weight - 1]

    def snapshot(self):
        return (self.wallet.state.copy(), self.ledger.checkpoint())

    def assertUnchanged(self, snapshot):
        state, (balances, received, event_count) = snapshot
        self.assertEqual(self.wallet.state, state)
        self.assertEqual(self.ledger.balances, balances)
        self.assertEqual(self.ledger.received, received)
        self.assertEqual(len(self.ledger.events), event_count)

    def test_constructor(self):
        self.assertEqual(self.wallet.nonce(), 1)
        self.assertEqual(self.wallet.threshold(), 5)
        self.assertEqual(self.wallet.total_weight(), 6)
        for user in self.users:
            self.assertEqual(self.wallet.approval_weight(user.address), user.weight)
        self.assertEqual(self.wallet.approval_weight(Address.from_int(1)), 0)

    def test_cannot_reinitialize(self):
        with self.assertRaises(CannotReinitialize):
            self.wallet.constructor(self.users)

    def test_constructor_threshold_above_total(self):
        wallet = MultisigWallet(InMemoryLedger(self.wallet_id), WalletConfig(threshold=7))
        with self.assertRaises(TotalWeightCannotBeLessThanThreshold):
            wallet.constructor(self.users)
        self.assertEqual(wallet.nonce(), 0)
        self.assertEqual(wallet.state, AuthorizationState())

    def test_constructor_zero_threshold(self):
        wallet = MultisigWallet(InMemoryLedger(self.wallet_id), WalletConfig(threshold=0))
        with self.assertRaises(ThresholdCannotBeZero):
            wallet.constructor(self.users)
        self.assertEqual(wallet.nonce(), 0)

    def test_constructor_duplicate_users(self):
        address = Address.from_int(5)
        wallet = MultisigWallet(InMemoryLedger(self.wallet_id), WalletConfig(threshold=1))
        with self.assertLogs(level="WARNING"):
            wallet.constructor([User(address, 2), User(address, 3)])
        self.assertEqual(wallet.approval_weight(address), 3)
        self.assertEqual(wallet.total_weight(), 5)

    def test_constructor_threshold_out_of_range(self):
        for threshold in [-1, MAX_U64 + 1]:
            wallet = MultisigWallet(
                InMemoryLedger(self.wallet_id, {self.asset: 1_000}),
                WalletConfig(threshold=threshold),
            )
            with self.assertRaises(ValueOutOfRange):
                wallet.constructor([User(Address.from_int(1), 3)])
            self.assertEqual(wallet.state, AuthorizationState())
            # Still inactive, so an empty approval list moves nothing.
            with self.assertRaises(NotInitialized):
                wallet.execute_transaction(
                    None,
                    [],
                    Identity(Address.from_int(0x77)),
                    TransferParams(self.asset, 1_000),
                )
            self.assertEqual(wallet.balance(self.asset), 1_000)

    def test_constructor_weight_out_of_range(self):
        for users in [
            [User(Address.from_int(1), MAX_U64 + 10)],
            [User(Address.from_int(1), 10), User(Address.from_int(2), -5)],
        ]:
            wallet = MultisigWallet(
                InMemoryLedger(self.wallet_id), WalletConfig(threshold=1)
            )
            with self.assertRaises(ValueOutOfRange) as context:
                wallet.constructor(users)
            self.assertEqual(context.exception.name, "weight")
            self.assertEqual(wallet.state, AuthorizationState())

    def test_constructor_total_weight_overflow(self):
        wallet = MultisigWallet(InMemoryLedger(self.wallet_id), WalletConfig(threshold=1))
        with self.assertRaises(ValueOutOfRange) as context:
            wallet.constructor(
                [User(Address.from_int(1), MAX_U64), User(Address.from_int(2), 1)]
            )
        self.assertEqual(context.exception.name, "total weight")
        self.assertEqual(wallet.nonce(), 0)

    def test_uninitialized_operations(self):
        wallet = MultisigWallet(InMemoryLedger(self.wallet_id))
        with self.assertRaises(NotInitialized):
            wallet.set_threshold([], 1)
        with self.assertRaises(NotInitialized):
            wallet.set_weight([], User(Address.from_int(1), 1))
        with self.assertRaises(NotInitialized):
            wallet.execute_transaction(
                None, [], Identity(Address.from_int(1)), TransferParams(self.asset, 1)
            )

    def test_set_threshold(self):
        payload = self.wallet.threshold_change_payload(6)
        signatures = sorted_signatures(
            [self.key_with_weight(2), self.key_with_weight(3)],
            self.wallet.compute_hash(payload),
        )
        self.wallet.set_threshold(signatures, 6)

        self.assertEqual(self.wallet.threshold(), 6)
        self.assertEqual(self.wallet.nonce(), 2)
        self.assertEqual(self.ledger.events, [SetThresholdEvent(1, 5, 6)])

    def test_set_threshold_bounds(self):
        with self.assertRaises(ThresholdCannotBeZero):
            self.wallet.set_threshold([], 0)
        with self.assertRaises(TotalWeightCannotBeLessThanThreshold):
            self.wallet.set_threshold([], 7)
        self.assertEqual(self.wallet.nonce(), 1)

    def test_set_threshold_out_of_range(self):
        snapshot = self.snapshot()
        with self.assertRaises(ValueOutOfRange):
            self.wallet.set_threshold([], -1)
        self.assertUnchanged(snapshot)

    def test_malformed_signature(self):
        snapshot = self.snapshot()
        with self.assertRaises(InvalidSignature):
            self.wallet.set_threshold([SignatureInfo(Signature(b"\x00" * 64))], 4)
        self.assertEqual(self.wallet.nonce(), 1)
        self.assertUnchanged(snapshot)

    def test_insufficient_approvals(self):
        snapshot = self.snapshot()
        payload = self.wallet.threshold_change_payload(4)
        signatures = sorted_signatures(
            [self.key_with_weight(1), self.key_with_weight(2)],
            self.wallet.compute_hash(payload),
        )
        with self.assertRaises(InsufficientApprovals) as context:
            self.wallet.set_threshold(signatures, 4)
        self.assertEqual(context.exception.approval_count, 3)
        self.assertUnchanged(snapshot)

    def test_replay_is_rejected(self):
        payload = self.wallet.threshold_change_payload(4)
        signatures = sorted_signatures(
            [self.key_with_weight(2), self.key_with_weight(3)],
            self.wallet.compute_hash(payload),
        )
        self.wallet.set_threshold(signatures, 4)
        with self.assertRaises((ExecutionError, InvalidSignature)):
            self.wallet.set_threshold(signatures, 4)
        self.assertEqual(self.wallet.nonce(), 2)

    def test_signatures_for_another_wallet_are_rejected(self):
        other = MultisigWallet(
            InMemoryLedger(ContractId.from_int(0xBEEF)), WalletConfig(threshold=5)
        )
        other.constructor(self.users)
        payload = other.threshold_change_payload(4)
        signatures = sorted_signatures(
            [self.key_with_weight(2), self.key_with_weight(3)],
            other.compute_hash(payload),
        )
        with self.assertRaises((ExecutionError, InvalidSignature)):
            self.wallet.set_threshold(signatures, 4)

    def test_unsorted_signatures(self):
        digest = self.wallet.compute_hash(self.wallet.threshold_change_payload(4))
        signatures = list(
            reversed(
                sorted_signatures(
                    [self.key_with_weight(2), self.key_with_weight(3)], digest
                )
            )
        )
        with self.assertRaises(IncorrectSignerOrdering):
            self.wallet.set_threshold(signatures, 4)

    def test_set_weight(self):
        newcomer = User(Address.from_int(0x99), 4)
        digest = self.wallet.compute_hash(self.wallet.weight_change_payload(newcomer))
        self.wallet.set_weight(
            sorted_signatures([self.key_with_weight(2), self.key_with_weight(3)], digest),
            newcomer,
        )
        self.assertEqual(self.wallet.approval_weight(newcomer.address), 4)
        self.assertEqual(self.wallet.total_weight(), 10)
        self.assertEqual(self.wallet.nonce(), 2)
        self.assertEqual(self.ledger.events, [SetWeightEvent(1, newcomer)])

    def test_set_weight_below_threshold_is_rejected(self):
        snapshot = self.snapshot()
        muted = User(self.users[2].address, 0)
        digest = self.wallet.compute_hash(self.wallet.weight_change_payload(muted))
        with self.assertRaises(TotalWeightCannotBeLessThanThreshold):
            self.wallet.set_weight(
                sorted_signatures(
                    [self.key_with_weight(2), self.key_with_weight(3)], digest
                ),
                muted,
            )
        self.assertUnchanged(snapshot)

    def test_set_weight_reduction(self):
        reduced = User(self.users[0].address, 0)
        digest = self.wallet.compute_hash(self.wallet.weight_change_payload(reduced))
        self.wallet.set_weight(
            sorted_signatures([self.key_with_weight(2), self.key_with_weight(3)], digest),
            reduced,
        )
        self.assertEqual(self.wallet.total_weight(), 5)
        self.assertEqual(self.wallet.approval_weight(reduced.address), 0)

    def test_set_weight_out_of_range(self):
        snapshot = self.snapshot()
        for user, name in [
            (User(Address.from_int(0x99), -5), "weight"),
            (User(Address.from_int(0x99), MAX_U64 + 1), "weight"),
            (User(Address.from_int(0x99), MAX_U64), "total weight"),
        ]:
            with self.assertRaises(ValueOutOfRange) as context:
                self.wallet.set_weight([], user)
            self.assertEqual(context.exception.name, name)
        self.assertUnchanged(snapshot)

    def test_transfer(self):
        target = Identity(Address.from_int(0x77))
        params = TransferParams(self.asset, 300)
        digest = self.wallet.compute_hash(
            self.wallet.transaction_payload(None, target, params)
        )
        self.wallet.execute_transaction(
            None,
            sorted_signatures([self.key_with_weight(2), self.key_with_weight(3)], digest),
            target,
            params,
        )
        self.assertEqual(self.wallet.balance(self.asset), 700)
        self.assertEqual(self.ledger.received_by(target, self.asset), 300)
        self.assertEqual(self.wallet.nonce(), 2)
        self.assertEqual(
            self.ledger.events, [ExecuteTransactionEvent(1, target, params)]
        )

    def test_transfer_requires_value(self):
        with self.assertRaises(TransferRequiresAValue):
            self.wallet.execute_transaction(
                None, [], Identity(Address.from_int(1)), TransferParams(self.asset)
            )

    def test_transfer_above_balance(self):
        snapshot = self.snapshot()
        with self.assertRaises(InsufficientAssetAmount):
            self.wallet.execute_transaction(
                None,
                [],
                Identity(Address.from_int(1)),
                TransferParams(self.asset, 1_001),
            )
        self.assertUnchanged(snapshot)

    def test_negative_transfer_is_rejected(self):
        snapshot = self.snapshot()
        with self.assertRaises(ValueOutOfRange):
            self.wallet.execute_transaction(
                None, [], Identity(Address.from_int(1)), TransferParams(self.asset, -1)
            )
        self.assertUnchanged(snapshot)

    def test_call_above_balance(self):
        target_id = ContractId.from_int(0xCA11)
        calls = []
        self.ledger.register_contract(target_id, lambda *args: calls.append(args))
        snapshot = self.snapshot()
        call = ContractCallParams(b"", 0, b"\x01", False, TransferParams(self.asset))
        with self.assertRaises(InsufficientAssetAmount):
            self.wallet.execute_transaction(
                call, [], Identity(target_id), TransferParams(self.asset, 1_001)
            )
        self.assertEqual(calls, [])
        self.assertUnchanged(snapshot)

    def test_call_to_plain_account_is_fatal(self):
        target = Identity(Address.from_int(0x77))
        call = ContractCallParams(b"", 0, b"\x01", False, TransferParams(self.asset))
        with self.assertRaises(CanOnlyCallContracts):
            self.wallet.execute_transaction(
                call, [], target, TransferParams(self.asset)
            )
        self.assertEqual(self.ledger.events, [CanOnlyCallContractsEvent(target)])
        self.assertEqual(self.wallet.nonce(), 1)

    def test_call_sees_incremented_nonce(self):
        observed = []
        target_id = ContractId.from_int(0xCA11)

        def contract(selector, calldata, single_value_type_arg, value, asset_id, gas):
            observed.append((self.wallet.nonce(), selector, calldata, value, gas))
            return 42

        self.ledger.register_contract(target_id, contract)
        target = Identity(target_id)
        call = ContractCallParams(
            b"\x05", 10_000, b"\xab\xcd", True, TransferParams(self.asset, 10)
        )
        params = TransferParams(self.asset, 10)
        digest = self.wallet.compute_hash(
            self.wallet.transaction_payload(call, target, params)
        )
        result = self.wallet.execute_transaction(
            call,
            sorted_signatures([self.key_with_weight(2), self.key_with_weight(3)], digest),
            target,
            params,
        )
        self.assertEqual(result, 42)
        self.assertEqual(observed, [(2, b"\xab\xcd", b"\x05", 10, 10_000)])
        self.assertEqual(self.wallet.balance(self.asset), 990)

    def test_reentrant_replay_fails(self):
        target_id = ContractId.from_int(0xCA11)
        errors = []
        signatures: List[SignatureInfo] = []
        call = ContractCallParams(b"", 0, b"\x01", False, TransferParams(self.asset))
        target = Identity(target_id)
        params = TransferParams(self.asset)

        def contract(selector, calldata, single_value_type_arg, value, asset_id, gas):
            try:
                self.wallet.execute_transaction(call, signatures, target, params)
            except (ExecutionError, InvalidSignature) as e:
                errors.append(e)

        self.ledger.register_contract(target_id, contract)
        digest = self.wallet.compute_hash(
            self.wallet.transaction_payload(call, target, params)
        )
        signatures.extend(
            sorted_signatures([self.key_with_weight(2), self.key_with_weight(3)], digest)
        )
        self.wallet.execute_transaction(call, signatures, target, params)

        self.assertEqual(len(errors), 1)
        self.assertEqual(self.wallet.nonce(), 2)

    def test_failed_call_rolls_back(self):
        target_id = ContractId.from_int(0xCA11)

        def contract(selector, calldata, single_value_type_arg, value, asset_id, gas):
            raise RuntimeError("callee reverted")

        self.ledger.register_contract(target_id, contract)
        snapshot = self.snapshot()
        target = Identity(target_id)
        call = ContractCallParams(b"", 0, b"\x01", False, TransferParams(self.asset))
        params = TransferParams(self.asset, 10)
        digest = self.wallet.compute_hash(
            self.wallet.transaction_payload(call, target, params)
        )
        with self.assertRaises(RuntimeError):
            self.wallet.execute_transaction(
                call,
                sorted_signatures(
                    [self.key_with_weight(2), self.key_with_weight(3)], digest
                ),
                target,
                params,
            )
        self.assertUnchanged(snapshot)


if __name__ == "__main__":
    unittest.main()
