# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Deployment configuration for the wallet.

The initial threshold is fixed when the wallet is deployed. It defaults to
``THRESHOLD`` which can be overridden through the environment:

Environment Variables:
    MULTISIG_THRESHOLD: Initial approval threshold (default: 5).

A whole deployment (threshold, users and the balances an in-memory host should
start with) can also be described in a TOML file::

    threshold = 5

    [[users]]
    address = "0x01..."
    weight = 3

    [[balances]]
    asset_id = "0x00..."
    amount = 1000

and read with :func:`load_deployment`.
"""

from __future__ import annotations

import os
import tempfile
import unittest
from dataclasses import dataclass, field
from typing import Dict, List

import tomli

from .hashing import User
from .identity import Address, AssetId

# Initial approval threshold applied by the constructor.
THRESHOLD = int(os.getenv("MULTISIG_THRESHOLD", "5"))


class WalletConfig:
    """Configuration parameters fixed at deployment.

    Attributes:
        threshold: Approval weight required once the wallet is constructed
            (default: ``THRESHOLD``).

    Examples:
        A 2-of-N deployment::

            config = WalletConfig()
            config.threshold = 2
    """

    threshold: int = THRESHOLD

    def __init__(self, threshold: int | None = None):
        if threshold is not None:
            self.threshold = threshold

    def __repr__(self) -> str:
        return f"WalletConfig(threshold={self.threshold})"


@dataclass
class Deployment:
    """Everything needed to stand up a wallet on an in-memory host."""

    config: WalletConfig
    users: List[User] = field(default_factory=list)
    balances: Dict[AssetId, int] = field(default_factory=dict)


def load_deployment(path: str) -> Deployment:
    """Read a deployment description from a TOML file.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        tomli.TOMLDecodeError: If the file is not valid TOML.
        KeyError: If a user or balance entry misses a field.
    """
    with open(path, "rb") as f:
        data = tomli.load(f)

    config = WalletConfig(data.get("threshold"))
    users = [
        User(Address.from_str_relaxed(entry["address"]), int(entry["weight"]))
        for entry in data.get("users", [])
    ]
    balances: Dict[AssetId, int] = {}
    for entry in data.get("balances", []):
        asset_id = AssetId.from_str_relaxed(entry["asset_id"])
        balances[asset_id] = balances.get(asset_id, 0) + int(entry["amount"])
    return Deployment(config, users, balances)


class Test(unittest.TestCase):
    def test_default_threshold(self):
        self.assertEqual(WalletConfig().threshold, THRESHOLD)
        self.assertEqual(WalletConfig(2).threshold, 2)

    def test_load_deployment(self):
        content = b"""
threshold = 3

[[users]]
address = "0x1"
weight = 2

[[users]]
address = "0x2"
weight = 1

[[balances]]
asset_id = "0x0"
amount = 700
"""
        with tempfile.NamedTemporaryFile(suffix=".toml", delete=False) as f:
            f.write(content)
        try:
            deployment = load_deployment(f.name)
        finally:
            os.remove(f.name)

        self.assertEqual(deployment.config.threshold, 3)
        self.assertEqual(
            deployment.users,
            [User(Address.from_int(1), 2), User(Address.from_int(2), 1)],
        )
        self.assertEqual(deployment.balances, {AssetId.from_int(0): 700})

    def test_missing_threshold_uses_default(self):
        with tempfile.NamedTemporaryFile(suffix=".toml", delete=False) as f:
            f.write(b"")
        try:
            deployment = load_deployment(f.name)
        finally:
            os.remove(f.name)
        self.assertEqual(deployment.config.threshold, THRESHOLD)
        self.assertEqual(deployment.users, [])


if __name__ == "__main__":
    unittest.main()
