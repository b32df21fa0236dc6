# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Summing the approval weight behind a digest.

Signatures must be submitted sorted by the identifier of their signer, in
strictly ascending order. A repeated signer breaks the order and is rejected.

Counting stops as soon as the running weight reaches the threshold; signatures
after that point are neither recovered nor checked for order.
"""

from __future__ import annotations

import logging
import typing
import unittest

from .errors import IncorrectSignerOrdering
from .identity import Bits256
from .secp256k1_ecdsa import PrivateKey, Signature, sha256
from .signature import SignatureInfo, recover_signer


def count_approvals(
    signatures: typing.Sequence[SignatureInfo],
    target_hash: bytes,
    weighting: typing.Callable[[Bits256], int],
    threshold: int,
) -> int:
    """Sum the registered weight of the signers of ``target_hash``.

    Args:
        signatures: Approvals sorted by recovered signer, ascending.
        target_hash: The digest every signature must cover.
        weighting: Weight of a signer, 0 when unregistered.
        threshold: Weight at which counting stops early.

    Returns:
        The weight counted, which is at least ``threshold`` if the threshold
        was reached.

    Raises:
        IncorrectSignerOrdering: A signer is not strictly greater than the one
            before it, which includes any repeated signer.
        InvalidSignature: A signature cannot be recovered.
    """
    approval_count = 0
    previous_signer = Bits256.min()

    for index, signature in enumerate(signatures):
        signer = recover_signer(target_hash, signature)
        if not previous_signer < signer:
            raise IncorrectSignerOrdering(previous_signer, signer)
        previous_signer = signer

        weight = weighting(signer)
        approval_count += weight
        logging.debug(f"Signature {index} from {signer} adds weight {weight}")

        if approval_count >= threshold:
            break

    return approval_count


class Test(unittest.TestCase):
    def setUp(self):
        self.digest = sha256(b"action")
        keys = [PrivateKey.random() for _ in range(3)]
        keys.sort(key=lambda key: key.public_key().address())
        self.keys = keys
        self.addresses = [key.public_key().address() for key in keys]
        self.weights = {address: weight for address, weight in zip(self.addresses, [1, 2, 3])}

    def weighting(self, signer: Bits256) -> int:
        return self.weights.get(signer, 0)

    def sign_all(self, keys):
        return [SignatureInfo.sign(key, self.digest) for key in keys]

    def test_sums_weights_in_order(self):
        count = count_approvals(self.sign_all(self.keys), self.digest, self.weighting, 100)
        self.assertEqual(count, 6)

    def test_stops_once_threshold_reached(self):
        signatures = self.sign_all(self.keys[:2])
        # Unrecoverable, but never looked at.
        signatures.append(SignatureInfo(Signature(b"\x00" * 64)))
        count = count_approvals(signatures, self.digest, self.weighting, 3)
        self.assertEqual(count, 3)

    def test_unsorted_signers_are_rejected(self):
        signatures = self.sign_all(list(reversed(self.keys)))
        with self.assertRaises(IncorrectSignerOrdering):
            count_approvals(signatures, self.digest, self.weighting, 100)

    def test_duplicate_signer_is_rejected(self):
        signatures = self.sign_all([self.keys[0], self.keys[0]])
        with self.assertRaises(IncorrectSignerOrdering) as context:
            count_approvals(signatures, self.digest, self.weighting, 100)
        self.assertEqual(context.exception.signer, self.addresses[0])

    def test_ordering_enforced_regardless_of_weight(self):
        self.weights = {address: 0 for address in self.addresses}
        signatures = self.sign_all([self.keys[1], self.keys[0]])
        with self.assertRaises(IncorrectSignerOrdering):
            count_approvals(signatures, self.digest, self.weighting, 100)

    def test_unregistered_signer_counts_zero(self):
        stranger = PrivateKey.random()
        count = count_approvals(self.sign_all([stranger]), self.digest, self.weighting, 100)
        self.assertEqual(count, 0)

    def test_empty_list(self):
        self.assertEqual(count_approvals([], self.digest, self.weighting, 1), 0)


if __name__ == "__main__":
    unittest.main()
