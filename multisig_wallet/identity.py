# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
256-bit identifiers used by the wallet.

Every party the wallet deals with is named by 32 raw bytes:

- :class:`Address` identifies a plain account, such as a signer or the
  recipient of a native transfer.
- :class:`ContractId` identifies a deployed contract, including the wallet
  itself; it is the only kind of target an external call can be made to.
- :class:`AssetId` names a native asset held in the wallet's balance.

:class:`Identity` is the tagged union of an address and a contract id and is
what transaction payloads carry as their target.

Identifiers are ordered by their unsigned big-endian value. The approval
counter relies on that order: signatures must be submitted sorted by signer.

Examples:
    Parsing and ordering::

        low = Address.from_str_relaxed("0x1")
        high = Address.from_str("0x" + "ff" * 32)
        assert Bits256.min() < low < high

    Wrapping a target::

        target = Identity(ContractId.from_str_relaxed("0xabc"))
        assert target.is_contract()
"""

from __future__ import annotations

import typing
import unittest

from .bcs import Deserializer, Serializer


class ParseIdentityError(Exception):
    """A string or byte value could not be turned into a 256-bit identifier."""


class Bits256:
    """Raw 32-byte identifier with a total order.

    Attributes:
        value: The raw 32 bytes.
        LENGTH: Required length in bytes (32).
    """

    value: bytes
    LENGTH: int = 32

    def __init__(self, value: bytes):
        if len(value) != Bits256.LENGTH:
            raise ParseIdentityError(
                f"Expected identifier of length {Bits256.LENGTH}, got {len(value)}"
            )
        self.value = bytes(value)

    @classmethod
    def min(cls):
        """The smallest identifier, all zero bytes."""
        return cls(b"\x00" * Bits256.LENGTH)

    @classmethod
    def from_int(cls, value: int):
        return cls(value.to_bytes(Bits256.LENGTH, "big", signed=False))

    @classmethod
    def from_str(cls, value: str):
        """Parse ``0x`` followed by exactly 64 hex characters.

        Raises:
            ParseIdentityError: If the prefix is missing or the length is wrong.
        """
        if not value.startswith("0x"):
            raise ParseIdentityError("Hex string must start with a leading 0x.")
        if len(value) != Bits256.LENGTH * 2 + 2:
            raise ParseIdentityError(
                "Identifiers must be represented as 0x + 64 hex chars."
            )
        return cls.from_str_relaxed(value)

    @classmethod
    def from_str_relaxed(cls, value: str):
        """Parse 1 to 64 hex characters, with or without ``0x``, left padding
        with zeroes.

        Raises:
            ParseIdentityError: If the string is empty, too long or not hex.
        """
        digits = value[2:] if value[0:2] == "0x" else value
        if len(digits) < 1 or len(digits) > Bits256.LENGTH * 2:
            raise ParseIdentityError(
                "Hex string must be 1 to 64 chars long, excluding the leading 0x."
            )
        try:
            raw = bytes.fromhex(digits.rjust(Bits256.LENGTH * 2, "0"))
        except ValueError as e:
            raise ParseIdentityError(f"Invalid hex string: {value}") from e
        return cls(raw)

    def to_int(self) -> int:
        return int.from_bytes(self.value, "big", signed=False)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bits256):
            return NotImplemented
        return self.value == other.value

    def __lt__(self, other: Bits256) -> bool:
        if not isinstance(other, Bits256):
            return NotImplemented
        # Equal length big-endian bytes compare the same way as their integers.
        return self.value < other.value

    def __le__(self, other: Bits256) -> bool:
        if not isinstance(other, Bits256):
            return NotImplemented
        return self.value <= other.value

    def __gt__(self, other: Bits256) -> bool:
        if not isinstance(other, Bits256):
            return NotImplemented
        return self.value > other.value

    def __ge__(self, other: Bits256) -> bool:
        if not isinstance(other, Bits256):
            return NotImplemented
        return self.value >= other.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __str__(self) -> str:
        return f"0x{self.value.hex()}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self})"

    @classmethod
    def deserialize(cls, deserializer: Deserializer):
        return cls(deserializer.fixed_bytes(Bits256.LENGTH))

    def serialize(self, serializer: Serializer):
        serializer.fixed_bytes(self.value)


class Address(Bits256):
    """Identifier of a plain account."""


class ContractId(Bits256):
    """Identifier of a deployed contract."""


class AssetId(Bits256):
    """Identifier of a native asset."""


class Identity:
    """Either an :class:`Address` or a :class:`ContractId`.

    Supported variants:
        ADDRESS (0): a plain account
        CONTRACT_ID (1): a contract

    Attributes:
        variant (int): Which of the two the identity holds.
        value: The wrapped identifier.
    """

    ADDRESS: int = 0
    CONTRACT_ID: int = 1

    variant: int
    value: typing.Union[Address, ContractId]

    def __init__(self, value: typing.Union[Address, ContractId]):
        if isinstance(value, Address):
            self.variant = Identity.ADDRESS
        elif isinstance(value, ContractId):
            self.variant = Identity.CONTRACT_ID
        else:
            raise Exception("Invalid type")
        self.value = value

    def is_contract(self) -> bool:
        return self.variant == Identity.CONTRACT_ID

    def bits(self) -> Bits256:
        return self.value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Identity):
            return NotImplemented
        return self.variant == other.variant and self.value == other.value

    def __hash__(self) -> int:
        return hash((self.variant, self.value.value))

    def __str__(self) -> str:
        kind = "ContractId" if self.is_contract() else "Address"
        return f"{kind}({self.value})"

    def __repr__(self) -> str:
        return self.__str__()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Identity:
        variant = deserializer.u8()

        if variant == Identity.ADDRESS:
            value: typing.Any = Address.deserialize(deserializer)
        elif variant == Identity.CONTRACT_ID:
            value = ContractId.deserialize(deserializer)
        else:
            raise Exception(f"Invalid type: {variant}")

        return Identity(value)

    def serialize(self, serializer: Serializer):
        serializer.u8(self.variant)
        serializer.struct(self.value)


class Test(unittest.TestCase):
    def test_ordering_matches_integer_value(self):
        small = Address.from_int(0xFF)
        large = Address.from_int(0x100)
        self.assertLess(small, large)
        self.assertLess(Bits256.min(), small)
        self.assertFalse(small < small)
        self.assertEqual(sorted([large, small]), [small, large])

    def test_subtypes_compare_by_value(self):
        raw = b"\x11" * 32
        self.assertEqual(Address(raw), Bits256(raw))
        self.assertEqual(hash(Address(raw)), hash(Bits256(raw)))

    def test_from_str(self):
        text = "0x" + "ab" * 32
        self.assertEqual(str(Address.from_str(text)), text)
        self.assertRaises(ParseIdentityError, Address.from_str, "ab" * 32)
        self.assertRaises(ParseIdentityError, Address.from_str, "0x1")

    def test_from_str_relaxed(self):
        self.assertEqual(Address.from_str_relaxed("1").to_int(), 1)
        self.assertEqual(Address.from_str_relaxed("0x0a").to_int(), 10)
        self.assertRaises(ParseIdentityError, Address.from_str_relaxed, "0x")
        self.assertRaises(ParseIdentityError, Address.from_str_relaxed, "zz")
        self.assertRaises(ParseIdentityError, Address.from_str_relaxed, "1" * 65)

    def test_wrong_length(self):
        self.assertRaises(ParseIdentityError, Bits256, b"\x00" * 31)

    def test_identity_variants(self):
        account = Identity(Address.from_int(5))
        contract = Identity(ContractId.from_int(5))
        self.assertFalse(account.is_contract())
        self.assertTrue(contract.is_contract())
        self.assertNotEqual(account, contract)
        self.assertRaises(Exception, Identity, AssetId.from_int(5))

    def test_identity_serialization(self):
        contract = Identity(ContractId.from_int(7))
        ser = Serializer()
        contract.serialize(ser)
        self.assertEqual(ser.output()[0], Identity.CONTRACT_ID)
        self.assertEqual(len(ser.output()), 33)
        self.assertEqual(Identity.deserialize(Deserializer(ser.output())), contract)


if __name__ == "__main__":
    unittest.main()
