# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
secp256k1 ECDSA keys and recoverable signatures.

Wallet users never hand the wallet their public key. Instead each approval is a
recoverable signature over a 32-byte digest and the wallet derives the signer's
identifier from the signature itself, then looks up that identifier's weight.

Signature format:
    Signatures are 64 bytes, ``r || s``. ``s`` is always normalized to the
    lower half of the curve order, which leaves its most significant bit free;
    that bit holds the recovery id (the parity of the ``y`` coordinate of the
    nonce point ``R``). Together they let :meth:`Signature.recover` rebuild
    exactly one public key without any extra input.

Signer identifiers:
    - :meth:`PublicKey.address`: ``sha256`` of the 64-byte uncompressed key.
    - :meth:`PublicKey.evm_address`: the last 20 bytes of ``keccak256`` of the
      same key, left padded with zeroes to 32 bytes.

Examples:
    Signing and recovering::

        from multisig_wallet.secp256k1_ecdsa import PrivateKey

        key = PrivateKey.random()
        digest = hashlib.sha256(b"payload").digest()
        signature = key.sign_digest(digest)
        assert signature.recover(digest) == key.public_key()

Note:
    Curve arithmetic is done by the ``ecdsa`` library; keccak-256 comes from
    ``pycryptodome``.
"""

from __future__ import annotations

import hashlib
import unittest

from Crypto.Hash import keccak
from ecdsa import SECP256k1, SigningKey, VerifyingKey, util

from .bcs import Deserializer, Serializer
from .errors import InvalidSignature
from .identity import Address

CURVE_ORDER: int = SECP256k1.generator.order()
HALF_CURVE_ORDER: int = CURVE_ORDER // 2
RECOVERY_ID_MASK: int = 1 << 255


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def keccak256(data: bytes) -> bytes:
    digest = keccak.new(digest_bits=256)
    digest.update(data)
    return digest.digest()


class PrivateKey:
    """secp256k1 private key that signs 32-byte digests.

    Signing is deterministic (RFC 6979): the same key and digest always give
    the same signature, so a signer asked twice for the same approval returns
    identical bytes.

    Attributes:
        LENGTH: Byte length of the secret scalar (32).
        key: The underlying ``ecdsa`` signing key.
    """

    LENGTH: int = 32

    key: SigningKey

    def __init__(self, key: SigningKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return self.key.to_string() == other.key.to_string()

    def __str__(self):
        return self.hex()

    @staticmethod
    def from_hex(value: str | bytes) -> PrivateKey:
        """Load a key from hex (with or without ``0x``) or raw bytes.

        Raises:
            Exception: If the key is not 32 bytes long.
        """
        if isinstance(value, str):
            value = bytes.fromhex(value[2:] if value[0:2] == "0x" else value)
        if len(value) != PrivateKey.LENGTH:
            raise Exception("Length mismatch")
        return PrivateKey(SigningKey.from_string(value, SECP256k1, hashlib.sha256))

    @staticmethod
    def from_str(value: str) -> PrivateKey:
        return PrivateKey.from_hex(value)

    @staticmethod
    def random() -> PrivateKey:
        return PrivateKey(SigningKey.generate(curve=SECP256k1, hashfunc=hashlib.sha256))

    def hex(self) -> str:
        return f"0x{self.key.to_string().hex()}"

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.verifying_key)

    def sign_digest(self, digest: bytes) -> Signature:
        """Produce a recoverable, low-S signature over a 32-byte digest.

        Args:
            digest: The message digest. It is signed as is, not hashed again.

        Returns:
            A 64-byte compact signature carrying its recovery id.
        """
        if len(digest) != 32:
            raise Exception("Digest must be 32 bytes")

        sig = self.key.sign_digest_deterministic(
            digest, hashfunc=hashlib.sha256, sigencode=util.sigencode_string
        )
        r, s = util.sigdecode_string(sig, CURVE_ORDER)
        # Both s and -s verify; only the lower one is accepted.
        if s > HALF_CURVE_ORDER:
            s = CURVE_ORDER - s

        candidates = VerifyingKey.from_public_key_recovery_with_digest(
            util.sigencode_string(r, s, CURVE_ORDER),
            digest,
            SECP256k1,
            hashfunc=hashlib.sha256,
            sigdecode=util.sigdecode_string,
        )
        own = self.key.verifying_key.to_string()
        recovery_id = next(
            index for index, vk in enumerate(candidates) if vk.to_string() == own
        )
        return Signature.from_components(r, s, recovery_id)


class PublicKey:
    """secp256k1 public key in uncompressed form.

    Attributes:
        LENGTH: Raw key length without the ``0x04`` prefix (64).
        LENGTH_WITH_PREFIX_LENGTH: Length with the prefix (65).
        key: The underlying ``ecdsa`` verifying key.
    """

    LENGTH: int = 64
    LENGTH_WITH_PREFIX_LENGTH: int = 65

    key: VerifyingKey

    def __init__(self, key: VerifyingKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.key.to_string() == other.key.to_string()

    def __str__(self) -> str:
        return self.hex()

    @staticmethod
    def from_str(value: str) -> PublicKey:
        if value[0:2] == "0x":
            value = value[2:]
        # Hex lengths are twice the byte lengths.
        if (
            len(value) != PublicKey.LENGTH * 2
            and len(value) != PublicKey.LENGTH_WITH_PREFIX_LENGTH * 2
        ):
            raise Exception("Length mismatch")
        return PublicKey(
            VerifyingKey.from_string(bytes.fromhex(value), SECP256k1, hashlib.sha256)
        )

    def hex(self) -> str:
        return f"0x{self.to_crypto_bytes().hex()}"

    def to_crypto_bytes(self) -> bytes:
        return b"\x04" + self.key.to_string()

    def address(self) -> Address:
        """Native signer identifier: ``sha256`` of the 64-byte key."""
        return Address(sha256(self.key.to_string()))

    def evm_address(self) -> Address:
        """Ethereum style signer identifier padded to 32 bytes."""
        return Address(b"\x00" * 12 + keccak256(self.key.to_string())[12:])

    def verify_digest(self, digest: bytes, signature: Signature) -> bool:
        try:
            self.key.verify_digest(
                signature.rs_bytes(), digest, sigdecode=util.sigdecode_string
            )
        except Exception:
            return False
        return True


class Signature:
    """Compact 64-byte recoverable signature.

    Attributes:
        LENGTH: Encoded length (64).
        signature: The raw ``r || s`` bytes, recovery id in the top bit of ``s``.
    """

    LENGTH: int = 64

    signature: bytes

    def __init__(self, signature: bytes):
        self.signature = bytes(signature)

    def __eq__(self, other: object):
        if not isinstance(other, Signature):
            return NotImplemented
        return self.signature == other.signature

    def __str__(self) -> str:
        return self.hex()

    def __repr__(self) -> str:
        return f"Signature({self.hex()})"

    @staticmethod
    def from_components(r: int, s: int, recovery_id: int) -> Signature:
        if recovery_id not in (0, 1):
            raise Exception(f"Invalid recovery id: {recovery_id}")
        encoded_s = s | (recovery_id << 255)
        return Signature(r.to_bytes(32, "big") + encoded_s.to_bytes(32, "big"))

    @staticmethod
    def from_str(value: str) -> Signature:
        if value[0:2] == "0x":
            value = value[2:]
        if len(value) != Signature.LENGTH * 2:
            raise Exception("Length mismatch")
        return Signature(bytes.fromhex(value))

    def hex(self) -> str:
        return f"0x{self.signature.hex()}"

    def data(self) -> bytes:
        return self.signature

    def r(self) -> int:
        return int.from_bytes(self.signature[:32], "big")

    def s(self) -> int:
        return int.from_bytes(self.signature[32:], "big") & ~RECOVERY_ID_MASK

    def recovery_id(self) -> int:
        return self.signature[32] >> 7

    def rs_bytes(self) -> bytes:
        return util.sigencode_string(self.r(), self.s(), CURVE_ORDER)

    def recover(self, digest: bytes) -> PublicKey:
        """Recover the public key that produced this signature over ``digest``.

        Raises:
            InvalidSignature: If the encoding is malformed, ``r`` or ``s`` is
                out of range, or ``r`` is not the x coordinate of a curve point.
        """
        if len(self.signature) != Signature.LENGTH:
            raise InvalidSignature(
                f"Expected a {Signature.LENGTH} byte signature, got {len(self.signature)}"
            )
        if len(digest) != 32:
            raise InvalidSignature("Digest must be 32 bytes")
        r, s = self.r(), self.s()
        if not 0 < r < CURVE_ORDER or not 0 < s < CURVE_ORDER:
            raise InvalidSignature("Signature scalars are out of range")

        try:
            candidates = VerifyingKey.from_public_key_recovery_with_digest(
                self.rs_bytes(),
                digest,
                SECP256k1,
                hashfunc=hashlib.sha256,
                sigdecode=util.sigdecode_string,
            )
        except Exception as e:
            raise InvalidSignature(f"No key can be recovered: {e}") from e
        return PublicKey(candidates[self.recovery_id()])

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Signature:
        return Signature(deserializer.fixed_bytes(Signature.LENGTH))

    def serialize(self, serializer: Serializer):
        serializer.fixed_bytes(self.signature)


class Test(unittest.TestCase):
    def test_sign_and_recover(self):
        private_key = PrivateKey.random()
        digest = sha256(b"test_message")

        signature = private_key.sign_digest(digest)
        self.assertEqual(signature.recover(digest), private_key.public_key())
        self.assertTrue(private_key.public_key().verify_digest(digest, signature))

    def test_signature_is_low_s_and_deterministic(self):
        private_key = PrivateKey.random()
        for index in range(8):
            digest = sha256(bytes([index]))
            signature = private_key.sign_digest(digest)
            self.assertLessEqual(signature.s(), HALF_CURVE_ORDER)
            self.assertEqual(signature, private_key.sign_digest(digest))

    def test_other_digest_recovers_other_key(self):
        private_key = PrivateKey.random()
        signature = private_key.sign_digest(sha256(b"a"))
        self.assertNotEqual(signature.recover(sha256(b"b")), private_key.public_key())

    def test_zero_scalars_are_rejected(self):
        with self.assertRaises(InvalidSignature):
            Signature(b"\x00" * 64).recover(sha256(b"a"))

    def test_truncated_signature_is_rejected(self):
        with self.assertRaises(InvalidSignature):
            Signature(b"\x01" * 63).recover(sha256(b"a"))

    def test_addresses(self):
        public_key = PrivateKey.random().public_key()
        self.assertEqual(public_key.address().value, sha256(public_key.key.to_string()))
        self.assertEqual(public_key.evm_address().value[:12], b"\x00" * 12)
        self.assertNotEqual(public_key.address(), public_key.evm_address())

    def test_keccak256_vector(self):
        self.assertEqual(
            keccak256(b"").hex(),
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470",
        )

    def test_private_key_hex_round_trip(self):
        private_key = PrivateKey.random()
        self.assertEqual(PrivateKey.from_hex(private_key.hex()), private_key)
        self.assertEqual(
            PublicKey.from_str(private_key.public_key().hex()),
            private_key.public_key(),
        )


if __name__ == "__main__":
    unittest.main()
