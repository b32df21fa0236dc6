# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
The host environment the wallet runs in.

The wallet never moves value or talks to other contracts by itself; it asks its
host through the :class:`HostLedger` interface:

- who the wallet is (``current_contract_identity``)
- how much of an asset it holds (``balance_of``)
- native transfers (``transfer``) and calls into other contracts
  (``invoke_external``), both of which leave the wallet's control
- the append-only event log (``emit``)
- ``checkpoint``/``rollback``, the boundary that makes a failed operation
  leave no trace

:class:`InMemoryLedger` is a complete host kept in process memory. It is what
the tests, the behaviour scenarios and the command line simulator run against,
and a reference for adapters to a real chain.

Examples:
    Registering a contract that can be called::

        ledger = InMemoryLedger(ContractId.from_int(1), {asset: 1_000})

        def counter(selector, calldata, single_value_type_arg, value, asset_id, gas):
            return int.from_bytes(calldata, "little") + 1

        ledger.register_contract(ContractId.from_int(2), counter)
"""

from __future__ import annotations

import logging
import typing
import unittest
from typing import Any, Callable, Dict, List, Tuple

from typing_extensions import Protocol

from .errors import ExternalCallFailed, InsufficientAssetAmount
from .identity import Address, AssetId, ContractId, Identity

ExternalContract = Callable[[bytes, bytes, bool, int, AssetId, int], Any]


class HostLedger(Protocol):
    """What the wallet needs from the environment executing it."""

    def current_contract_identity(self) -> ContractId:
        ...

    def balance_of(self, asset_id: AssetId) -> int:
        ...

    def transfer(self, amount: int, asset_id: AssetId, destination: Identity):
        """Move ``amount`` of ``asset_id`` out of the wallet.

        Raises:
            InsufficientAssetAmount: If the wallet holds less than ``amount``.
        """
        ...

    def invoke_external(
        self,
        target: ContractId,
        function_selector: bytes,
        calldata: bytes,
        single_value_type_arg: bool,
        forwarded_value: int,
        asset_id: AssetId,
        forwarded_gas: int,
    ) -> Any:
        ...

    def emit(self, event: Any):
        ...

    def checkpoint(self) -> Any:
        ...

    def rollback(self, checkpoint: Any):
        ...


class InMemoryLedger:
    """A host ledger held entirely in memory.

    Attributes:
        contract_id: Identity of the wallet running on this host.
        balances: What the wallet holds, per asset.
        received: What each destination was sent, per (destination, asset).
        contracts: Callable contracts by id.
        events: The event log, oldest first.
    """

    contract_id: ContractId
    balances: Dict[AssetId, int]
    received: Dict[Tuple[Identity, AssetId], int]
    contracts: Dict[ContractId, ExternalContract]
    events: List[Any]

    def __init__(
        self,
        contract_id: ContractId,
        balances: typing.Optional[Dict[AssetId, int]] = None,
    ):
        self.contract_id = contract_id
        self.balances = dict(balances or {})
        self.received = {}
        self.contracts = {}
        self.events = []

    def register_contract(self, contract_id: ContractId, contract: ExternalContract):
        self.contracts[contract_id] = contract

    def deposit(self, asset_id: AssetId, amount: int):
        self.balances[asset_id] = self.balances.get(asset_id, 0) + amount

    def current_contract_identity(self) -> ContractId:
        return self.contract_id

    def balance_of(self, asset_id: AssetId) -> int:
        return self.balances.get(asset_id, 0)

    def received_by(self, destination: Identity, asset_id: AssetId) -> int:
        return self.received.get((destination, asset_id), 0)

    def transfer(self, amount: int, asset_id: AssetId, destination: Identity):
        available = self.balance_of(asset_id)
        if amount > available:
            raise InsufficientAssetAmount(amount, available)
        self.balances[asset_id] = available - amount
        key = (destination, asset_id)
        self.received[key] = self.received.get(key, 0) + amount
        logging.debug(f"Transferred {amount} of {asset_id} to {destination}")

    def invoke_external(
        self,
        target: ContractId,
        function_selector: bytes,
        calldata: bytes,
        single_value_type_arg: bool,
        forwarded_value: int,
        asset_id: AssetId,
        forwarded_gas: int,
    ) -> Any:
        contract = self.contracts.get(target)
        if contract is None:
            raise ExternalCallFailed(f"No contract deployed at {target}")
        if forwarded_value:
            self.transfer(forwarded_value, asset_id, Identity(target))
        logging.debug(
            f"Calling {target} selector 0x{function_selector.hex()} "
            f"with {forwarded_value} of {asset_id} and {forwarded_gas} gas"
        )
        return contract(
            function_selector,
            calldata,
            single_value_type_arg,
            forwarded_value,
            asset_id,
            forwarded_gas,
        )

    def emit(self, event: Any):
        self.events.append(event)

    def checkpoint(self) -> Any:
        return (dict(self.balances), dict(self.received), len(self.events))

    def rollback(self, checkpoint: Any):
        balances, received, event_count = checkpoint
        self.balances = dict(balances)
        self.received = dict(received)
        del self.events[event_count:]


class Test(unittest.TestCase):
    def setUp(self):
        self.asset = AssetId.from_int(1)
        self.ledger = InMemoryLedger(ContractId.from_int(100), {self.asset: 50})

    def test_transfer(self):
        destination = Identity(Address.from_int(7))
        self.ledger.transfer(20, self.asset, destination)
        self.assertEqual(self.ledger.balance_of(self.asset), 30)
        self.assertEqual(self.ledger.received_by(destination, self.asset), 20)

    def test_transfer_insufficient(self):
        with self.assertRaises(InsufficientAssetAmount):
            self.ledger.transfer(51, self.asset, Identity(Address.from_int(7)))
        self.assertEqual(self.ledger.balance_of(self.asset), 50)

    def test_invoke_external_forwards_value(self):
        calls = []

        def contract(selector, calldata, single_value_type_arg, value, asset_id, gas):
            calls.append((selector, calldata, single_value_type_arg, value, asset_id, gas))
            return b"ok"

        target = ContractId.from_int(200)
        self.ledger.register_contract(target, contract)
        result = self.ledger.invoke_external(
            target, b"\x01", b"\x02", True, 10, self.asset, 1_000
        )
        self.assertEqual(result, b"ok")
        self.assertEqual(calls, [(b"\x01", b"\x02", True, 10, self.asset, 1_000)])
        self.assertEqual(self.ledger.received_by(Identity(target), self.asset), 10)

    def test_invoke_unknown_contract(self):
        with self.assertRaises(ExternalCallFailed):
            self.ledger.invoke_external(
                ContractId.from_int(9), b"", b"", False, 0, self.asset, 0
            )

    def test_rollback(self):
        checkpoint = self.ledger.checkpoint()
        self.ledger.emit("event")
        self.ledger.transfer(5, self.asset, Identity(Address.from_int(7)))
        self.ledger.rollback(checkpoint)
        self.assertEqual(self.ledger.balance_of(self.asset), 50)
        self.assertEqual(self.ledger.events, [])
        self.assertEqual(self.ledger.received, {})


if __name__ == "__main__":
    unittest.main()
