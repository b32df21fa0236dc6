# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Command-line tools for preparing and checking wallet approvals.

Signers of a wallet never run the wallet themselves; they need to know what to
sign and to produce a signature the wallet will accept. This module covers
that workflow offline:

- address: print the signer identifier of a private key
- hash-threshold, hash-weight, hash-transfer: print the digest of an action
- sign: sign a digest
- simulate: stand up a wallet in memory from a TOML deployment file

Examples:
    Digest of a threshold change for the first action of a wallet::

        multisig-wallet hash-threshold \
            --contract 0x3a11e7 \
            --nonce 1 \
            --threshold 3

    Signing it from an Ethereum style wallet::

        multisig-wallet sign \
            --private-key 0x4646... \
            --digest 0x9b1f... \
            --wallet-type evm

    Checking a deployment file before going live::

        multisig-wallet --verbose simulate --deployment ./wallet.toml
"""

from __future__ import annotations

import argparse
import logging
import sys
import unittest
from contextlib import redirect_stdout
from io import StringIO
from typing import List, Optional

from .config import load_deployment
from .hashing import (
    ContractCallParams,
    ThresholdChange,
    Transaction,
    TransferParams,
    User,
    WeightChange,
    compute_hash,
)
from .identity import Address, AssetId, ContractId, Identity
from .ledger import InMemoryLedger
from .secp256k1_ecdsa import PrivateKey
from .signature import (
    MessageFormat,
    MessagePrefix,
    SignatureInfo,
    WalletType,
    recover_signer,
)
from .wallet import MultisigWallet


def parse_digest(value: str) -> bytes:
    """Parse a 32-byte digest given in hex, with or without ``0x``."""
    digest = bytes.fromhex(value[2:] if value[0:2] == "0x" else value)
    if len(digest) != 32:
        raise ValueError("Digests are 32 bytes long")
    return digest


def parse_hex_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value[0:2] == "0x" else value)


def signature_kind(wallet_type: str):
    """Signing parameters used by each kind of wallet."""
    if wallet_type == "evm":
        return (
            MessageFormat.EIP191_PERSONAL_SIGN,
            MessagePrefix.ETHEREUM,
            WalletType.EVM,
        )
    return (MessageFormat.NONE, MessagePrefix.NONE, WalletType.FUEL)


def transaction_from_args(parsed_args: argparse.Namespace) -> Transaction:
    if parsed_args.target_is_contract:
        target = Identity(ContractId.from_str_relaxed(parsed_args.target))
    else:
        target = Identity(Address.from_str_relaxed(parsed_args.target))
    transfer_params = TransferParams(
        AssetId.from_str_relaxed(parsed_args.asset), parsed_args.value
    )

    contract_call_params = None
    if parsed_args.function_selector is not None:
        contract_call_params = ContractCallParams(
            calldata=parsed_args.calldata,
            forwarded_gas=parsed_args.forwarded_gas,
            function_selector=parsed_args.function_selector,
            single_value_type_arg=parsed_args.single_value_type_arg,
            transfer_params=transfer_params,
        )

    return Transaction(
        parsed_args.contract,
        parsed_args.nonce,
        contract_call_params,
        target,
        transfer_params,
    )


def main(args: List[str]):
    """Parse ``args`` and run the requested command, printing its result.

    Raises:
        SystemExit: On invalid arguments.
    """
    parser = argparse.ArgumentParser(description="Weighted multisig wallet tools")
    parser.add_argument(
        "--verbose", help="Log debug output to stderr", action="store_true"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    address = subparsers.add_parser(
        "address", help="Print the signer identifier of a private key"
    )
    address.add_argument("--private-key", required=True, type=PrivateKey.from_str)
    address.add_argument("--wallet-type", choices=["fuel", "evm"], default="fuel")

    hash_parsers = []
    hash_threshold = subparsers.add_parser(
        "hash-threshold", help="Print the digest of a threshold change"
    )
    hash_threshold.add_argument("--threshold", required=True, type=int)
    hash_parsers.append(hash_threshold)

    hash_weight = subparsers.add_parser(
        "hash-weight", help="Print the digest of a weight change"
    )
    hash_weight.add_argument("--user", required=True, type=Address.from_str_relaxed)
    hash_weight.add_argument("--weight", required=True, type=int)
    hash_parsers.append(hash_weight)

    hash_transfer = subparsers.add_parser(
        "hash-transfer",
        help="Print the digest of a transaction, a call if --function-selector is set",
    )
    hash_transfer.add_argument("--target", required=True, type=str)
    hash_transfer.add_argument("--target-is-contract", action="store_true")
    hash_transfer.add_argument("--asset", required=True, type=str)
    hash_transfer.add_argument("--value", type=int, default=None)
    hash_transfer.add_argument("--function-selector", type=parse_hex_bytes)
    hash_transfer.add_argument("--calldata", type=parse_hex_bytes, default=b"")
    hash_transfer.add_argument("--forwarded-gas", type=int, default=0)
    hash_transfer.add_argument("--single-value-type-arg", action="store_true")
    hash_parsers.append(hash_transfer)

    for hash_parser in hash_parsers:
        hash_parser.add_argument(
            "--contract",
            required=True,
            help="Identifier of the wallet contract",
            type=ContractId.from_str_relaxed,
        )
        hash_parser.add_argument(
            "--nonce", required=True, help="Current nonce of the wallet", type=int
        )

    sign = subparsers.add_parser("sign", help="Sign a digest")
    sign.add_argument("--private-key", required=True, type=PrivateKey.from_str)
    sign.add_argument("--digest", required=True, type=parse_digest)
    sign.add_argument("--wallet-type", choices=["fuel", "evm"], default="fuel")

    simulate = subparsers.add_parser(
        "simulate", help="Construct a wallet in memory from a deployment file"
    )
    simulate.add_argument("--deployment", required=True, type=str)
    simulate.add_argument(
        "--contract",
        help="Identifier of the simulated wallet contract",
        type=ContractId.from_str_relaxed,
        default=ContractId.from_int(1),
    )

    parsed_args = parser.parse_args(args)

    if parsed_args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if parsed_args.command == "address":
        public_key = parsed_args.private_key.public_key()
        if parsed_args.wallet_type == "evm":
            print(public_key.evm_address())
        else:
            print(public_key.address())
    elif parsed_args.command == "hash-threshold":
        payload = ThresholdChange(
            parsed_args.contract, parsed_args.nonce, parsed_args.threshold
        )
        print(f"0x{compute_hash(payload).hex()}")
    elif parsed_args.command == "hash-weight":
        payload = WeightChange(
            parsed_args.contract,
            parsed_args.nonce,
            User(parsed_args.user, parsed_args.weight),
        )
        print(f"0x{compute_hash(payload).hex()}")
    elif parsed_args.command == "hash-transfer":
        print(f"0x{compute_hash(transaction_from_args(parsed_args)).hex()}")
    elif parsed_args.command == "sign":
        info = SignatureInfo.sign(
            parsed_args.private_key,
            parsed_args.digest,
            *signature_kind(parsed_args.wallet_type),
        )
        logging.debug(f"Signed by {recover_signer(parsed_args.digest, info)}")
        print(info.signature.hex())
    elif parsed_args.command == "simulate":
        deployment = load_deployment(parsed_args.deployment)
        ledger = InMemoryLedger(parsed_args.contract, deployment.balances)
        wallet = MultisigWallet(ledger, deployment.config)
        wallet.constructor(deployment.users)
        print(f"nonce: {wallet.nonce()}")
        print(f"threshold: {wallet.threshold()}")
        print(f"total weight: {wallet.total_weight()}")
        for asset_id, amount in sorted(ledger.balances.items()):
            print(f"balance {asset_id}: {amount}")


def run(args: Optional[List[str]] = None):
    main(sys.argv[1:] if args is None else args)


class Test(unittest.TestCase):
    def run_main(self, args: List[str]) -> str:
        output = StringIO()
        with redirect_stdout(output):
            main(args)
        return output.getvalue().strip()

    def test_hash_threshold(self):
        contract = ContractId.from_int(0x3A11E7)
        output = self.run_main(
            ["hash-threshold", "--contract", "0x3a11e7", "--nonce", "1", "--threshold", "3"]
        )
        expected = compute_hash(ThresholdChange(contract, 1, 3))
        self.assertEqual(output, f"0x{expected.hex()}")

    def test_hash_transfer_and_call(self):
        common = [
            "--contract", "0x1",
            "--nonce", "4",
            "--target", "0x2",
            "--asset", "0x0",
            "--value", "10",
        ]
        transfer = self.run_main(["hash-transfer", *common])
        call = self.run_main(
            ["hash-transfer", *common, "--target-is-contract", "--function-selector", "0xab"]
        )
        params = TransferParams(AssetId.from_int(0), 10)
        expected = compute_hash(
            Transaction(
                ContractId.from_int(1), 4, None, Identity(Address.from_int(2)), params
            )
        )
        self.assertEqual(transfer, f"0x{expected.hex()}")
        self.assertNotEqual(transfer, call)

    def test_sign_recovers_address(self):
        private_key = PrivateKey.random()
        digest = compute_hash(ThresholdChange(ContractId.from_int(1), 1, 1))
        for wallet_type in ["fuel", "evm"]:
            address = self.run_main(
                ["address", "--private-key", private_key.hex(), "--wallet-type", wallet_type]
            )
            signature = self.run_main(
                [
                    "sign",
                    "--private-key", private_key.hex(),
                    "--digest", digest.hex(),
                    "--wallet-type", wallet_type,
                ]
            )
            info = SignatureInfo.sign(private_key, digest, *signature_kind(wallet_type))
            self.assertEqual(signature, info.signature.hex())
            self.assertEqual(address, str(recover_signer(digest, info)))

    def test_bad_digest(self):
        with self.assertRaises(SystemExit):
            with redirect_stdout(StringIO()):
                main(["sign", "--private-key", PrivateKey.random().hex(), "--digest", "0x00"])


if __name__ == "__main__":
    run()
