# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Signer recovery for wallet approvals.

An approval is a :class:`SignatureInfo`: the compact signature plus the
metadata that says how the signer's wallet produced it. :func:`recover_signer`
turns an approval and the digest it should cover into the signer's 256-bit
identifier, which is what the wallet's weight table is keyed by.

Two families of signing wallets are supported:

- ``WalletType.FUEL`` signs the digest directly; the signer is identified by
  ``sha256`` of its public key.
- ``WalletType.EVM`` wallets usually refuse to sign raw digests and apply the
  EIP-191 ``personal_sign`` wrapping first. Set ``message_format`` to
  ``EIP191_PERSONAL_SIGN`` and ``message_prefix`` to ``ETHEREUM`` for those;
  the signer is identified by its Ethereum address padded to 32 bytes.

Examples:
    Approving a digest from an Ethereum style wallet::

        info = SignatureInfo.sign(
            private_key,
            digest,
            message_format=MessageFormat.EIP191_PERSONAL_SIGN,
            message_prefix=MessagePrefix.ETHEREUM,
            wallet_type=WalletType.EVM,
        )
        assert recover_signer(digest, info) == private_key.public_key().evm_address()
"""

from __future__ import annotations

import unittest
from enum import Enum

from .bcs import Deserializer, Serializer
from .identity import Bits256
from .secp256k1_ecdsa import PrivateKey, Signature, keccak256, sha256

EIP191_PERSONAL_SIGN_PREFIX: bytes = b"\x19Ethereum Signed Message:\n32"


class MessageFormat(Enum):
    """How the digest was presented to the signer."""

    NONE = 0
    EIP191_PERSONAL_SIGN = 1


class MessagePrefix(Enum):
    """Prefix family applied when the format calls for one."""

    NONE = 0
    ETHEREUM = 1


class WalletType(Enum):
    """How a recovered public key maps to a signer identifier."""

    FUEL = 0
    EVM = 1


class SignatureInfo:
    """One approval: a signature and how to interpret it.

    Attributes:
        signature: The 64-byte compact signature.
        message_format: Whether the digest was EIP-191 wrapped before signing.
        message_prefix: Which prefix family the wrap used.
        wallet_type: How to derive the signer identifier from the key.
    """

    signature: Signature
    message_format: MessageFormat
    message_prefix: MessagePrefix
    wallet_type: WalletType

    def __init__(
        self,
        signature: Signature,
        message_format: MessageFormat = MessageFormat.NONE,
        message_prefix: MessagePrefix = MessagePrefix.NONE,
        wallet_type: WalletType = WalletType.FUEL,
    ):
        self.signature = signature
        self.message_format = message_format
        self.message_prefix = message_prefix
        self.wallet_type = wallet_type

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SignatureInfo):
            return NotImplemented
        return (
            self.signature == other.signature
            and self.message_format == other.message_format
            and self.message_prefix == other.message_prefix
            and self.wallet_type == other.wallet_type
        )

    def __repr__(self) -> str:
        return (
            f"SignatureInfo({self.signature}, {self.message_format.name}, "
            f"{self.message_prefix.name}, {self.wallet_type.name})"
        )

    @staticmethod
    def sign(
        private_key: PrivateKey,
        digest: bytes,
        message_format: MessageFormat = MessageFormat.NONE,
        message_prefix: MessagePrefix = MessagePrefix.NONE,
        wallet_type: WalletType = WalletType.FUEL,
    ) -> SignatureInfo:
        """Sign ``digest`` the way a wallet of the given kind would."""
        signed = signed_digest(digest, message_format, message_prefix)
        return SignatureInfo(
            private_key.sign_digest(signed), message_format, message_prefix, wallet_type
        )

    @staticmethod
    def deserialize(deserializer: Deserializer) -> SignatureInfo:
        signature = Signature.deserialize(deserializer)
        message_format = MessageFormat(deserializer.u8())
        message_prefix = MessagePrefix(deserializer.u8())
        wallet_type = WalletType(deserializer.u8())
        return SignatureInfo(signature, message_format, message_prefix, wallet_type)

    def serialize(self, serializer: Serializer):
        serializer.struct(self.signature)
        serializer.u8(self.message_format.value)
        serializer.u8(self.message_prefix.value)
        serializer.u8(self.wallet_type.value)


def signed_digest(
    digest: bytes, message_format: MessageFormat, message_prefix: MessagePrefix
) -> bytes:
    """The 32 bytes the signer's key actually signed for ``digest``."""
    if (
        message_format == MessageFormat.EIP191_PERSONAL_SIGN
        and message_prefix == MessagePrefix.ETHEREUM
    ):
        return keccak256(EIP191_PERSONAL_SIGN_PREFIX + digest)
    return digest


def recover_signer(digest: bytes, signature: SignatureInfo) -> Bits256:
    """Identify who signed ``digest``.

    Pure and deterministic. A signature over a different digest recovers some
    unrelated identifier rather than failing, which the caller sees as a
    signer without weight.

    Raises:
        InvalidSignature: If the signature is malformed or unrecoverable.
    """
    signed = signed_digest(digest, signature.message_format, signature.message_prefix)
    public_key = signature.signature.recover(signed)
    if signature.wallet_type == WalletType.EVM:
        return public_key.evm_address()
    return public_key.address()


class Test(unittest.TestCase):
    def test_fuel_signer(self):
        private_key = PrivateKey.random()
        digest = sha256(b"approve")
        info = SignatureInfo.sign(private_key, digest)
        self.assertEqual(
            recover_signer(digest, info), private_key.public_key().address()
        )

    def test_evm_personal_sign(self):
        private_key = PrivateKey.random()
        digest = sha256(b"approve")
        info = SignatureInfo.sign(
            private_key,
            digest,
            MessageFormat.EIP191_PERSONAL_SIGN,
            MessagePrefix.ETHEREUM,
            WalletType.EVM,
        )
        self.assertEqual(
            recover_signer(digest, info), private_key.public_key().evm_address()
        )
        # The raw digest was never signed.
        self.assertTrue(
            private_key.public_key().verify_digest(
                keccak256(EIP191_PERSONAL_SIGN_PREFIX + digest), info.signature
            )
        )

    def test_format_without_prefix_signs_raw_digest(self):
        digest = sha256(b"approve")
        self.assertEqual(
            signed_digest(digest, MessageFormat.EIP191_PERSONAL_SIGN, MessagePrefix.NONE),
            digest,
        )

    def test_metadata_changes_recovered_signer(self):
        private_key = PrivateKey.random()
        digest = sha256(b"approve")
        info = SignatureInfo.sign(private_key, digest)
        tampered = SignatureInfo(
            info.signature,
            MessageFormat.EIP191_PERSONAL_SIGN,
            MessagePrefix.ETHEREUM,
        )
        self.assertNotEqual(
            recover_signer(digest, tampered), private_key.public_key().address()
        )

    def test_serialization(self):
        info = SignatureInfo.sign(
            PrivateKey.random(), sha256(b"x"), wallet_type=WalletType.EVM
        )
        ser = Serializer()
        info.serialize(ser)
        self.assertEqual(len(ser.output()), Signature.LENGTH + 3)
        self.assertEqual(SignatureInfo.deserialize(Deserializer(ser.output())), info)


if __name__ == "__main__":
    unittest.main()
