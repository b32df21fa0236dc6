import typing

from behave import given, then, use_step_matcher, when

from multisig_wallet import errors
from multisig_wallet.config import WalletConfig
from multisig_wallet.hashing import ContractCallParams, TransferParams, User
from multisig_wallet.identity import Address, AssetId, ContractId, Identity
from multisig_wallet.ledger import InMemoryLedger
from multisig_wallet.secp256k1_ecdsa import PrivateKey
from multisig_wallet.wallet import MultisigWallet, sorted_signatures

# Use regular expressions
use_step_matcher("re")


def parse_weights(value: str) -> typing.List[int]:
    return [int(weight) for weight in value.split(",")]


def keys_weighing(context: typing.Any, weights: str) -> typing.List[PrivateKey]:
    return [context.keys[weight] for weight in parse_weights(weights)]


def submit(context: typing.Any, operation: typing.Callable[[], typing.Any]):
    context.operation = operation
    try:
        operation()
        context.error = None
    except errors.MultisigError as e:
        context.error = e


@given(r"a wallet with threshold (?P<threshold>\d+) and users weighing (?P<weights>[\d, ]+)")
def given_wallet(context: typing.Any, threshold: str, weights: str):
    context.asset = AssetId.from_int(0)
    context.ledger = InMemoryLedger(ContractId.from_int(0x3A11E7))
    context.wallet = MultisigWallet(context.ledger, WalletConfig(int(threshold)))
    context.keys = {}
    users = []
    for weight in parse_weights(weights):
        key = PrivateKey.random()
        context.keys[weight] = key
        users.append(User(key.public_key().address(), weight))
    context.wallet.constructor(users)


@given(r"the wallet holds (?P<amount>\d+) of asset (?P<asset>0x[0-9a-fA-F]+)")
def given_balance(context: typing.Any, amount: str, asset: str):
    context.asset = AssetId.from_str_relaxed(asset)
    context.ledger.deposit(context.asset, int(amount))


@when(r"users weighing (?P<weights>[\d, ]+) approve a threshold change to (?P<threshold>\d+)")
def when_threshold_change(context: typing.Any, weights: str, threshold: str):
    wallet = context.wallet
    digest = wallet.compute_hash(wallet.threshold_change_payload(int(threshold)))
    signatures = sorted_signatures(keys_weighing(context, weights), digest)
    submit(context, lambda: wallet.set_threshold(signatures, int(threshold)))


@when(
    r"users weighing (?P<weights>[\d, ]+) approve setting the weight of the user "
    r"weighing (?P<current>\d+) to (?P<weight>\d+)"
)
def when_weight_change(context: typing.Any, weights: str, current: str, weight: str):
    wallet = context.wallet
    address = context.keys[int(current)].public_key().address()
    user = User(address, int(weight))
    digest = wallet.compute_hash(wallet.weight_change_payload(user))
    signatures = sorted_signatures(keys_weighing(context, weights), digest)
    submit(context, lambda: wallet.set_weight(signatures, user))


@when(
    r"users weighing (?P<weights>[\d, ]+) approve a transfer of (?P<amount>\d+) "
    r"to address (?P<address>0x[0-9a-fA-F]+)"
)
def when_transfer(context: typing.Any, weights: str, amount: str, address: str):
    wallet = context.wallet
    target = Identity(Address.from_str_relaxed(address))
    params = TransferParams(context.asset, int(amount))
    digest = wallet.compute_hash(wallet.transaction_payload(None, target, params))
    signatures = sorted_signatures(keys_weighing(context, weights), digest)
    submit(
        context, lambda: wallet.execute_transaction(None, signatures, target, params)
    )


@when(r"users weighing (?P<weights>[\d, ]+) approve a call to address (?P<address>0x[0-9a-fA-F]+)")
def when_call(context: typing.Any, weights: str, address: str):
    wallet = context.wallet
    target = Identity(Address.from_str_relaxed(address))
    params = TransferParams(context.asset)
    call = ContractCallParams(b"", 0, b"\x01", False, params)
    digest = wallet.compute_hash(wallet.transaction_payload(call, target, params))
    signatures = sorted_signatures(keys_weighing(context, weights), digest)
    submit(
        context, lambda: wallet.execute_transaction(call, signatures, target, params)
    )


@when(r"the same signatures are submitted again")
def when_resubmitted(context: typing.Any):
    submit(context, context.operation)


@then(r"the operation should fail with (?P<error>[a-zA-Z]+)")
def then_failed_with(context: typing.Any, error: str):
    assert isinstance(context.error, getattr(errors, error)), (
        f"Expected {error}, got {context.error!r}"
    )


@then(r"the operation should be rejected")
def then_failed(context: typing.Any):
    assert context.error is not None, "Operation unexpectedly succeeded"


@then(r"the (?P<field>threshold|nonce|total weight) should be (?P<value>\d+)")
def then_state(context: typing.Any, field: str, value: str):
    wallet = context.wallet
    actual = {
        "threshold": wallet.threshold,
        "nonce": wallet.nonce,
        "total weight": wallet.total_weight,
    }[field]()
    assert actual == int(value), f"Expected {field} {value}, got {actual}"


@then(r"the wallet should hold (?P<amount>\d+)")
def then_balance(context: typing.Any, amount: str):
    balance = context.wallet.balance(context.asset)
    assert balance == int(amount), f"Expected {amount}, got {balance}"


@then(r"address (?P<address>0x[0-9a-fA-F]+) should have received (?P<amount>\d+)")
def then_received(context: typing.Any, address: str, amount: str):
    destination = Identity(Address.from_str_relaxed(address))
    received = context.ledger.received_by(destination, context.asset)
    assert received == int(amount), f"Expected {amount}, got {received}"


@then(r"the last event should be (?P<event>[a-zA-Z]+)")
def then_last_event(context: typing.Any, event: str):
    last = context.ledger.events[-1]
    assert type(last).__name__ == event, f"Expected {event}, got {last!r}"
