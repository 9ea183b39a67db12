"""Tests for the wallet-backed chain client over a stubbed web3 connection."""

import pytest
from web3 import Web3
from web3.exceptions import TimeExhausted, TransactionNotFound

from sensei.chain.client import ChainClient
from sensei.chain.registry import BASE, ERC20_ABI, get_contract_address
from sensei.errors import ChainTransactionError, ReceiptNotFound

TEST_KEY = "0x" + "11" * 32
TOKEN = get_contract_address("usdc", BASE)
RECIPIENT = "0x2222222222222222222222222222222222222222"
CALLDATA = "0xa9059cbb" + "00" * 64
TX_HASH = b"\xab" * 32

TRANSFER_EVENT_ABI = [
    {
        "type": "event",
        "name": "Transfer",
        "anonymous": False,
        "inputs": [
            {"name": "from", "type": "address", "indexed": True},
            {"name": "to", "type": "address", "indexed": True},
            {"name": "value", "type": "uint256", "indexed": False},
        ],
    }
]


class StubCall:
    def __init__(self, eth, function, args):
        self.eth = eth
        self.function = function
        self.args = args

    async def build_transaction(self, params):
        self.eth.built.append((self.function, self.args, dict(params)))
        return {
            **params,
            "to": TOKEN,
            "data": CALLDATA,
            "gas": 50_000,
            "gasPrice": 1_000_000_000,
        }


class StubFunctions:
    def __init__(self, eth):
        self._eth = eth

    def __getattr__(self, name):
        return lambda *args: StubCall(self._eth, name, args)


class StubContract:
    def __init__(self, eth, address):
        self.address = address
        self.functions = StubFunctions(eth)


class StubEth:
    """Async ``eth`` namespace recording what the client sends."""

    def __init__(self, receipt=None, receipt_error=None, gas_estimate=61_000):
        self.receipt = receipt if receipt is not None else {"status": 1, "blockNumber": 9}
        self.receipt_error = receipt_error
        self.gas_estimate = gas_estimate
        self.built = []
        self.estimates = []
        self.sent = []

    def contract(self, address, abi):
        return StubContract(self, address)

    async def get_transaction_count(self, address, block_identifier):
        return 7

    async def estimate_gas(self, transaction):
        self.estimates.append(dict(transaction))
        return self.gas_estimate

    async def send_raw_transaction(self, raw):
        self.sent.append(raw)
        return TX_HASH

    async def wait_for_transaction_receipt(self, transaction_hash, timeout):
        if self.receipt_error is not None:
            raise self.receipt_error
        return self.receipt


class StubWeb3:
    def __init__(self, **kwargs):
        self.eth = StubEth(**kwargs)


class RecordingAccount:
    """Signs with the real key and keeps the signed transaction dicts."""

    def __init__(self, account):
        self._account = account
        self.signed = []

    @property
    def address(self):
        return self._account.address

    def sign_transaction(self, tx):
        self.signed.append(dict(tx))
        return self._account.sign_transaction(tx)


def _client(**kwargs):
    w3 = StubWeb3(**kwargs)
    client = ChainClient("http://localhost:8545", TEST_KEY, BASE, receipt_timeout=5, web3=w3)
    client._account = RecordingAccount(client._account)
    return client, w3.eth


@pytest.mark.asyncio
async def test_transfer_signs_and_returns_receipt():
    client, eth = _client()

    receipt = await client.transfer(TOKEN, RECIPIENT, 1_000_000)

    assert receipt["transactionHash"] == Web3.to_hex(TX_HASH)
    assert receipt["blockNumber"] == 9
    function, args, params = eth.built[0]
    assert function == "transfer"
    assert args == (Web3.to_checksum_address(RECIPIENT), 1_000_000)
    assert params == {"from": client.address, "nonce": 7, "chainId": BASE, "value": 0}
    # no suffix means the estimate from build_transaction stands
    assert eth.estimates == []
    assert client._account.signed[0]["gas"] == 50_000
    assert len(eth.sent) == 1


@pytest.mark.asyncio
async def test_data_suffix_is_appended_and_gas_reestimated():
    client, eth = _client(gas_estimate=61_080)

    await client.transact(TOKEN, ERC20_ABI, "transfer", RECIPIENT, 5, data_suffix="0x1dc0de0001")

    signed = client._account.signed[0]
    assert signed["data"] == CALLDATA + "1dc0de0001"
    assert signed["gas"] == 61_080
    assert eth.estimates == [
        {"from": client.address, "to": TOKEN, "data": CALLDATA + "1dc0de0001", "value": 0}
    ]
    assert "1dc0de0001" in Web3.to_hex(eth.sent[0])


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error", [TimeExhausted("timed out"), TransactionNotFound("not found")]
)
async def test_missing_receipt_raises_receipt_not_found(error):
    client, eth = _client(receipt_error=error)

    with pytest.raises(ReceiptNotFound) as exc:
        await client.transfer(TOKEN, RECIPIENT, 1)

    assert exc.value.tx_hash == Web3.to_hex(TX_HASH)
    assert exc.value.__cause__ is error
    assert len(eth.sent) == 1


@pytest.mark.asyncio
async def test_reverted_transaction_raises():
    client, _ = _client(receipt={"status": 0})

    with pytest.raises(ChainTransactionError) as exc:
        await client.approve(TOKEN, RECIPIENT, 1)

    assert exc.value.tx_hash == Web3.to_hex(TX_HASH)
    assert "approve reverted" in str(exc.value)


def _log(topics, data):
    return {
        "address": TOKEN,
        "topics": [bytes(topic) for topic in topics],
        "data": data,
        "logIndex": 0,
        "transactionIndex": 0,
        "transactionHash": TX_HASH,
        "blockHash": b"\x01" * 32,
        "blockNumber": 9,
    }


def test_decode_events_returns_matching_args():
    client = ChainClient("http://localhost:8545", TEST_KEY, BASE, web3=Web3())
    sender = Web3.to_checksum_address("0x" + "33" * 20)
    transfer = _log(
        [
            Web3.keccak(text="Transfer(address,address,uint256)"),
            b"\x00" * 12 + bytes.fromhex(sender[2:]),
            b"\x00" * 12 + bytes.fromhex(RECIPIENT[2:]),
        ],
        (1_234_000_000).to_bytes(32, "big"),
    )
    unrelated = _log([Web3.keccak(text="Approval(address,address,uint256)")], b"")

    events = client.decode_events(
        TOKEN, TRANSFER_EVENT_ABI, "Transfer", {"logs": [unrelated, transfer]}
    )

    assert events == [{"from": sender, "to": RECIPIENT, "value": 1_234_000_000}]
