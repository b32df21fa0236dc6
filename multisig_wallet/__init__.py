# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Multisig Wallet - weighted threshold authorization for a contract wallet.

A wallet holds assets and a table of users, each with an approval weight.
Changing the threshold, changing a weight and spending or calling out of the
wallet all require signatures from users whose weights add up to at least the
threshold. Each approval is bound to one wallet and one nonce, so a set of
signatures authorizes exactly one action.

Module Organization:
    Core Modules:
    - **wallet**: The wallet state machine and its read-only accessors
    - **approvals**: Summing the weight behind a set of ordered signatures
    - **hashing**: Action payloads and their canonical digest
    - **ledger**: The host interface and an in-memory host
    - **events**: Events appended to the host log
    - **errors**: Everything the wallet can refuse with

    Encoding and Cryptography:
    - **bcs**: Binary Canonical Serialization
    - **identity**: 256-bit identifiers, addresses, contract and asset ids
    - **secp256k1_ecdsa**: Recoverable secp256k1 signatures
    - **signature**: Signature metadata and signer recovery

    Tooling:
    - **config**: Deployment parameters and TOML deployment files
    - **cli**: Offline hashing, signing and simulation

Quick Start:
    Deploy a 2-of-3 wallet in memory and raise its threshold::

        from multisig_wallet.config import WalletConfig
        from multisig_wallet.hashing import User
        from multisig_wallet.identity import ContractId
        from multisig_wallet.ledger import InMemoryLedger
        from multisig_wallet.secp256k1_ecdsa import PrivateKey
        from multisig_wallet.wallet import MultisigWallet, sorted_signatures

        keys = [PrivateKey.random() for _ in range(3)]
        ledger = InMemoryLedger(ContractId.from_int(1))
        wallet = MultisigWallet(ledger, WalletConfig(threshold=2))
        wallet.constructor([User(key.public_key().address(), 1) for key in keys])

        digest = wallet.compute_hash(wallet.threshold_change_payload(3))
        wallet.set_threshold(sorted_signatures(keys[:2], digest), 3)

Configuration:
    Environment Variables:
    - **MULTISIG_THRESHOLD**: Initial threshold of new wallets (default: 5)
"""
