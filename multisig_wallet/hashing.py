# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Canonical action payloads and the digests users sign.

Each privileged operation of the wallet has its own payload type. A payload
always starts with the wallet's own contract id and the nonce in force when it
is hashed, so a signature over it:

- cannot be replayed after the nonce has moved on, and
- cannot be replayed against another wallet deployment.

Payloads are wrapped in :class:`ActionPayload` which writes a one byte variant
tag before the fields, then the whole encoding is hashed with SHA-256::

    ThresholdChange  0 | contract_identifier | nonce u64 | threshold u64
    WeightChange     1 | contract_identifier | nonce u64 | address | weight u64
    Transaction      2 | contract_identifier | nonce u64
                       | option(ContractCallParams) | Identity | TransferParams

Examples:
    Preparing the digest for a threshold change::

        payload = ThresholdChange(wallet_id, nonce=4, threshold=3)
        digest = compute_hash(payload)
"""

from __future__ import annotations

import typing
import unittest
from dataclasses import dataclass, replace

from .bcs import Deserializer, Serializer
from .identity import Address, AssetId, Bits256, ContractId, Identity
from .secp256k1_ecdsa import sha256


@dataclass(frozen=True)
class User:
    """A participant and its approval weight. Weight 0 means no say."""

    address: Bits256
    weight: int

    @staticmethod
    def deserialize(deserializer: Deserializer) -> User:
        return User(Address.deserialize(deserializer), deserializer.u64())

    def serialize(self, serializer: Serializer):
        serializer.struct(self.address)
        serializer.u64(self.weight)


@dataclass(frozen=True)
class TransferParams:
    """Which asset to move and, optionally, how much of it."""

    asset_id: AssetId
    value: typing.Optional[int] = None

    @staticmethod
    def deserialize(deserializer: Deserializer) -> TransferParams:
        asset_id = AssetId.deserialize(deserializer)
        return TransferParams(asset_id, deserializer.option(Deserializer.u64))

    def serialize(self, serializer: Serializer):
        serializer.struct(self.asset_id)
        serializer.option(self.value, Serializer.u64)


@dataclass(frozen=True)
class ContractCallParams:
    """Parameters of a call into another contract.

    Attributes:
        calldata: Encoded arguments of the call.
        forwarded_gas: Gas budget handed to the callee.
        function_selector: Encoded selector of the function to invoke.
        single_value_type_arg: Whether the callee returns a single value type,
            passed through to the host as a return type hint.
        transfer_params: Coins forwarded with the call.
    """

    calldata: bytes
    forwarded_gas: int
    function_selector: bytes
    single_value_type_arg: bool
    transfer_params: TransferParams

    @staticmethod
    def deserialize(deserializer: Deserializer) -> ContractCallParams:
        return ContractCallParams(
            calldata=deserializer.to_bytes(),
            forwarded_gas=deserializer.u64(),
            function_selector=deserializer.to_bytes(),
            single_value_type_arg=deserializer.bool(),
            transfer_params=TransferParams.deserialize(deserializer),
        )

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.calldata)
        serializer.u64(self.forwarded_gas)
        serializer.to_bytes(self.function_selector)
        serializer.bool(self.single_value_type_arg)
        serializer.struct(self.transfer_params)


@dataclass(frozen=True)
class ThresholdChange:
    contract_identifier: ContractId
    nonce: int
    threshold: int

    @staticmethod
    def deserialize(deserializer: Deserializer) -> ThresholdChange:
        return ThresholdChange(
            ContractId.deserialize(deserializer), deserializer.u64(), deserializer.u64()
        )

    def serialize(self, serializer: Serializer):
        serializer.struct(self.contract_identifier)
        serializer.u64(self.nonce)
        serializer.u64(self.threshold)


@dataclass(frozen=True)
class WeightChange:
    contract_identifier: ContractId
    nonce: int
    user: User

    @staticmethod
    def deserialize(deserializer: Deserializer) -> WeightChange:
        return WeightChange(
            ContractId.deserialize(deserializer),
            deserializer.u64(),
            User.deserialize(deserializer),
        )

    def serialize(self, serializer: Serializer):
        serializer.struct(self.contract_identifier)
        serializer.u64(self.nonce)
        serializer.struct(self.user)


@dataclass(frozen=True)
class Transaction:
    """A transfer, or a call when ``contract_call_params`` is present."""

    contract_identifier: ContractId
    nonce: int
    contract_call_params: typing.Optional[ContractCallParams]
    target: Identity
    transfer_params: TransferParams

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Transaction:
        return Transaction(
            contract_identifier=ContractId.deserialize(deserializer),
            nonce=deserializer.u64(),
            contract_call_params=deserializer.option(ContractCallParams.deserialize),
            target=Identity.deserialize(deserializer),
            transfer_params=TransferParams.deserialize(deserializer),
        )

    def serialize(self, serializer: Serializer):
        serializer.struct(self.contract_identifier)
        serializer.u64(self.nonce)
        serializer.option(self.contract_call_params, Serializer.struct)
        serializer.struct(self.target)
        serializer.struct(self.transfer_params)


class ActionPayload:
    """Tagged wrapper around exactly one of the three payload kinds.

    Supported variants:
        THRESHOLD (0): :class:`ThresholdChange`
        WEIGHT (1): :class:`WeightChange`
        TRANSACTION (2): :class:`Transaction`

    Attributes:
        variant (int): Tag written ahead of the payload fields.
        value: The wrapped payload.
    """

    THRESHOLD: int = 0
    WEIGHT: int = 1
    TRANSACTION: int = 2

    variant: int
    value: typing.Union[ThresholdChange, WeightChange, Transaction]

    def __init__(self, value: typing.Union[ThresholdChange, WeightChange, Transaction]):
        if isinstance(value, ThresholdChange):
            self.variant = ActionPayload.THRESHOLD
        elif isinstance(value, WeightChange):
            self.variant = ActionPayload.WEIGHT
        elif isinstance(value, Transaction):
            self.variant = ActionPayload.TRANSACTION
        else:
            raise Exception("Invalid type")
        self.value = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ActionPayload):
            return NotImplemented
        return self.variant == other.variant and self.value == other.value

    def __repr__(self) -> str:
        return f"ActionPayload({self.value!r})"

    def to_bytes(self) -> bytes:
        ser = Serializer()
        self.serialize(ser)
        return ser.output()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> ActionPayload:
        variant = deserializer.u8()

        if variant == ActionPayload.THRESHOLD:
            value: typing.Any = ThresholdChange.deserialize(deserializer)
        elif variant == ActionPayload.WEIGHT:
            value = WeightChange.deserialize(deserializer)
        elif variant == ActionPayload.TRANSACTION:
            value = Transaction.deserialize(deserializer)
        else:
            raise Exception(f"Invalid type: {variant}")

        return ActionPayload(value)

    def serialize(self, serializer: Serializer):
        serializer.u8(self.variant)
        serializer.struct(self.value)


def compute_hash(
    payload: typing.Union[ActionPayload, ThresholdChange, WeightChange, Transaction]
) -> bytes:
    """SHA-256 of the canonical encoding of ``payload``.

    Bare payloads are wrapped in :class:`ActionPayload` first, so both forms
    give the same digest.
    """
    if not isinstance(payload, ActionPayload):
        payload = ActionPayload(payload)
    return sha256(payload.to_bytes())


class Test(unittest.TestCase):
    def setUp(self):
        self.wallet = ContractId.from_int(0xABC)
        self.asset = AssetId.from_int(0x1)
        self.transfer = Transaction(
            contract_identifier=self.wallet,
            nonce=1,
            contract_call_params=None,
            target=Identity(Address.from_int(0x22)),
            transfer_params=TransferParams(self.asset, 100),
        )

    def test_threshold_layout(self):
        payload = ActionPayload(ThresholdChange(self.wallet, 3, 5))
        expected = (
            b"\x00"
            + self.wallet.value
            + (3).to_bytes(8, "little")
            + (5).to_bytes(8, "little")
        )
        self.assertEqual(payload.to_bytes(), expected)
        self.assertEqual(compute_hash(payload), sha256(expected))

    def test_bare_and_wrapped_payload_agree(self):
        self.assertEqual(
            compute_hash(self.transfer), compute_hash(ActionPayload(self.transfer))
        )

    def test_every_field_changes_the_digest(self):
        variants = [
            self.transfer,
            replace(self.transfer, nonce=2),
            replace(self.transfer, contract_identifier=ContractId.from_int(0xABD)),
            replace(self.transfer, target=Identity(ContractId.from_int(0x22))),
            replace(self.transfer, transfer_params=TransferParams(self.asset, 101)),
            replace(self.transfer, transfer_params=TransferParams(self.asset, None)),
            replace(
                self.transfer,
                contract_call_params=ContractCallParams(
                    b"", 0, b"", False, TransferParams(self.asset, 100)
                ),
            ),
        ]
        digests = {compute_hash(payload) for payload in variants}
        self.assertEqual(len(digests), len(variants))

    def test_variants_do_not_collide(self):
        # Same field bytes under different tags.
        threshold = ThresholdChange(self.wallet, 1, 7)
        weight = WeightChange(self.wallet, 1, User(Address.from_int(7), 7))
        self.assertNotEqual(compute_hash(threshold), compute_hash(weight))

    def test_round_trip_through_tagged_encoding(self):
        payload = ActionPayload(
            replace(
                self.transfer,
                contract_call_params=ContractCallParams(
                    b"\x01\x02", 50_000, b"\x0a", True, TransferParams(self.asset, 3)
                ),
            )
        )
        der = Deserializer(payload.to_bytes())
        self.assertEqual(ActionPayload.deserialize(der), payload)
        self.assertEqual(der.remaining(), 0)

    def test_unknown_payload_is_rejected(self):
        self.assertRaises(Exception, ActionPayload, User(Address.from_int(1), 1))


if __name__ == "__main__":
    unittest.main()
