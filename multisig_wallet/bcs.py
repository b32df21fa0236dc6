# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Canonical binary encoding for everything the wallet hashes or logs.

Signers approve a digest, not a Python object, so the bytes behind that digest
must be identical on every machine that prepares a signature and inside the
wallet that checks it. This module implements the part of Binary Canonical
Serialization (BCS, https://github.com/diem/bcs) the wallet's payloads, events
and signatures are made of:

- booleans, u8 tags and little-endian u64 integers
- ULEB128 lengths and length prefixed byte strings
- fixed length byte strings (identifiers, signatures)
- optional values, a 0/1 presence tag followed by the value
- nested structures through their own ``serialize``/``deserialize``

Field order is defined by each structure's ``serialize`` method.

Examples:
    Encoding an optional amount::

        from multisig_wallet.bcs import Deserializer, Serializer

        ser = Serializer()
        ser.option(250, Serializer.u64)
        der = Deserializer(ser.output())
        assert der.option(Deserializer.u64) == 250
"""

from __future__ import annotations

import io
import typing
import unittest

MAX_U8 = 2**8 - 1
MAX_U32 = 2**32 - 1
MAX_U64 = 2**64 - 1


class Deserializer:
    """Reads canonical values back out of a byte string.

    Reading past the end raises instead of returning partial data.
    """

    _input: io.BytesIO
    _length: int

    def __init__(self, data: bytes):
        self._length = len(data)
        self._input = io.BytesIO(data)

    def remaining(self) -> int:
        return self._length - self._input.tell()

    def bool(self) -> bool:
        tag = self.u8()
        if tag > 1:
            raise Exception(f"Unexpected boolean value: {tag}")
        return tag == 1

    def to_bytes(self) -> bytes:
        return self.fixed_bytes(self.uleb128())

    def fixed_bytes(self, length: int) -> bytes:
        data = self._input.read(length)
        if len(data) != length:
            raise Exception(
                f"Unexpected end of input. Requested: {length}, found: {len(data)}"
            )
        return data

    def option(
        self, value_decoder: typing.Callable[[Deserializer], typing.Any]
    ) -> typing.Optional[typing.Any]:
        """Read an optional value written by :meth:`Serializer.option`.

        Raises:
            Exception: If the presence tag is neither 0 nor 1.
        """
        return value_decoder(self) if self.bool() else None

    def u8(self) -> int:
        return self.fixed_bytes(1)[0]

    def u64(self) -> int:
        return int.from_bytes(self.fixed_bytes(8), "little")

    def uleb128(self) -> int:
        """Read a ULEB128 length, seven bits per byte, low bits first.

        Raises:
            Exception: If the decoded value does not fit in a u32.
        """
        value = 0
        for shift in range(0, 35, 7):
            byte = self.u8()
            value |= (byte & 0x7F) << shift
            if not byte & 0x80:
                break
        if value > MAX_U32:
            raise Exception("Unexpectedly large uleb128 value")
        return value


class Serializer:
    """Accumulates the canonical encoding of a value.

    Integers are range checked before they are written; a value that does not
    fit its declared width raises rather than wrapping.

    Examples:
        Encoding a weight change by hand::

            ser = Serializer()
            ser.u8(1)             # variant tag
            ser.fixed_bytes(cid)  # 32 byte contract id
            ser.u64(nonce)
            digest_input = ser.output()
    """

    _output: io.BytesIO

    def __init__(self):
        self._output = io.BytesIO()

    def output(self) -> bytes:
        return self._output.getvalue()

    def bool(self, value: bool):
        self.u8(1 if value else 0)

    def to_bytes(self, value: bytes):
        """Write ``value`` prefixed with its ULEB128 length."""
        self.uleb128(len(value))
        self.fixed_bytes(value)

    def fixed_bytes(self, value: bytes):
        """Write ``value`` verbatim. The reader must know the length."""
        self._output.write(value)

    def option(
        self,
        value: typing.Optional[typing.Any],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        """Write an optional value: a 0 tag for ``None``, else 1 and the value."""
        self.bool(value is not None)
        if value is not None:
            value_encoder(self, value)

    def struct(self, value: typing.Any):
        value.serialize(self)

    def u8(self, value: int):
        self._write_uint(value, 1, MAX_U8, "u8")

    def u64(self, value: int):
        self._write_uint(value, 8, MAX_U64, "u64")

    def uleb128(self, value: int):
        if value < 0 or value > MAX_U32:
            raise Exception(f"Cannot encode {value} into uleb128")
        while True:
            byte = value & 0x7F
            value >>= 7
            if value:
                self.u8(byte | 0x80)
            else:
                self.u8(byte)
                return

    def _write_uint(self, value: int, length: int, maximum: int, name: str):
        if not 0 <= value <= maximum:
            raise Exception(f"Cannot encode {value} into {name}")
        self._output.write(value.to_bytes(length, "little"))


class Test(unittest.TestCase):
    def test_option_present_and_absent(self):
        ser = Serializer()
        ser.option(None, Serializer.u64)
        ser.option(7, Serializer.u64)
        self.assertEqual(ser.output(), b"\x00" + b"\x01" + (7).to_bytes(8, "little"))

        der = Deserializer(ser.output())
        self.assertIsNone(der.option(Deserializer.u64))
        self.assertEqual(der.option(Deserializer.u64), 7)
        self.assertEqual(der.remaining(), 0)

    def test_bad_option_tag(self):
        der = Deserializer(b"\x02")
        with self.assertRaises(Exception):
            der.option(Deserializer.u64)

    def test_u64_is_little_endian(self):
        ser = Serializer()
        ser.u64(1)
        self.assertEqual(ser.output(), b"\x01" + b"\x00" * 7)

    def test_u64_out_of_range(self):
        ser = Serializer()
        with self.assertRaises(Exception):
            ser.u64(MAX_U64 + 1)
        with self.assertRaises(Exception):
            ser.u64(-1)

    def test_length_prefixed_bytes(self):
        ser = Serializer()
        ser.to_bytes(b"\xaa" * 200)
        # 200 needs two uleb128 bytes
        self.assertEqual(ser.output()[:2], b"\xc8\x01")
        der = Deserializer(ser.output())
        self.assertEqual(der.to_bytes(), b"\xaa" * 200)

    def test_empty_bytes(self):
        ser = Serializer()
        ser.to_bytes(b"")
        self.assertEqual(ser.output(), b"\x00")

    def test_short_read(self):
        der = Deserializer(b"\x01\x02")
        with self.assertRaises(Exception):
            der.u64()


if __name__ == "__main__":
    unittest.main()
