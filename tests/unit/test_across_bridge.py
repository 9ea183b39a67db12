"""Tests for the Across bridge client with a fake wallet and mocked API."""

import httpx
import pytest

from sensei.bridges.across import AcrossBridgeClient, integrator_suffix
from sensei.chain.registry import BASE, OPTIMISM, get_contract_address
from sensei.errors import ReceiptNotFound

SPOKE_POOL = "0x6f26Bf09B1C792e3228e5467807a900A503c0281"
WALLET = "0x1111111111111111111111111111111111111111"


class FakeWallet:
    """Origin-chain wallet recording approvals and deposits."""

    def __init__(self, allowance=0, deposit_error=None):
        self.address = WALLET
        self._allowance = allowance
        self.deposit_error = deposit_error
        self.approvals = []
        self.deposits = []

    async def allowance(self, token, spender):
        return self._allowance

    async def approve(self, token, spender, amount):
        self.approvals.append((token, spender, amount))
        self._allowance = amount
        return {"transactionHash": "0xapprove"}

    async def transact(self, address, abi, function, *args, value=0, data_suffix=""):
        if self.deposit_error is not None:
            raise self.deposit_error
        self.deposits.append({"address": address, "function": function, "args": args, "suffix": data_suffix})
        return {"transactionHash": "0xdeposit"}

    def decode_events(self, address, abi, event, receipt):
        return [{"depositId": 42}]


class AcrossStub:
    def __init__(self, fill_statuses=("pending", "filled"), fee="1000000"):
        self.fill_statuses = list(fill_statuses)
        self.fee = fee
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if request.url.path == "/api/suggested-fees":
            return httpx.Response(
                200,
                json={
                    "totalRelayFee": {"total": self.fee},
                    "timestamp": "1700000000",
                    "fillDeadline": "1700003600",
                    "exclusivityDeadline": 0,
                    "exclusiveRelayer": "0x0000000000000000000000000000000000000000",
                    "spokePoolAddress": SPOKE_POOL,
                },
            )
        if request.url.path == "/api/deposit/status":
            if "depositTxHash" in request.url.params:
                return httpx.Response(200, json={"status": "pending", "depositId": 42})
            status = self.fill_statuses.pop(0) if len(self.fill_statuses) > 1 else self.fill_statuses[0]
            return httpx.Response(200, json={"status": status, "fillTx": "0xfill"})
        return httpx.Response(404)


def _bridge(wallet, stub, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(stub), base_url="https://across.test/api")
    progress = []
    bridge = AcrossBridgeClient(
        wallet,
        client=client,
        fill_poll_interval=0,
        on_progress=progress.append,
        **kwargs,
    )
    return bridge, progress


def test_integrator_suffix():
    assert integrator_suffix("0xdead") == "1dc0dedead"
    with pytest.raises(ValueError):
        integrator_suffix("0xdeadbeef")


@pytest.mark.asyncio
async def test_bridge_quotes_approves_deposits_and_waits_for_fill():
    wallet = FakeWallet()
    stub = AcrossStub()
    bridge, progress = _bridge(wallet, stub)

    assert await bridge.bridge(1235.5) is True

    quote_request = stub.requests[0]
    assert quote_request.url.params["amount"] == "1235500000"
    assert quote_request.url.params["originChainId"] == str(OPTIMISM)
    assert quote_request.url.params["destinationChainId"] == str(BASE)
    assert quote_request.url.params["recipient"] == WALLET

    assert wallet.approvals == [(get_contract_address("usdc", OPTIMISM), SPOKE_POOL, 1235500000)]
    deposit = wallet.deposits[0]
    assert deposit["function"] == "depositV3"
    assert deposit["address"] == SPOKE_POOL
    assert deposit["suffix"] == "1dc0dedead"
    # input amount, output amount net of the relay fee, destination chain
    assert deposit["args"][4:7] == (1235500000, 1234500000, BASE)

    assert [(p.step, p.status) for p in progress] == [
        ("approve", "txPending"),
        ("approve", "txSuccess"),
        ("deposit", "txPending"),
        ("deposit", "txSuccess"),
        ("fill", "txSuccess"),
    ]
    assert progress[3].deposit_id == 42
    assert progress[4].tx_hash == "0xfill"


@pytest.mark.asyncio
async def test_existing_allowance_skips_approval():
    wallet = FakeWallet(allowance=10**12)
    bridge, progress = _bridge(wallet, AcrossStub())

    assert await bridge.bridge(10)
    assert wallet.approvals == []
    assert progress[0].detail == "allowance sufficient"


@pytest.mark.asyncio
async def test_fee_larger_than_amount_fails():
    wallet = FakeWallet()
    bridge, _ = _bridge(wallet, AcrossStub(fee="5000000"))

    assert await bridge.bridge(2) is False
    assert wallet.deposits == []


@pytest.mark.asyncio
async def test_unfilled_deposit_fails_after_budget():
    stub = AcrossStub(fill_statuses=("pending",))
    bridge, progress = _bridge(FakeWallet(), stub, fill_max_attempts=3)

    assert await bridge.bridge(10) is False
    fill_polls = [r for r in stub.requests if "depositId" in r.url.params]
    assert len(fill_polls) == 3
    assert (progress[-1].step, progress[-1].status) == ("fill", "txFailed")


@pytest.mark.asyncio
async def test_expired_deposit_stops_polling():
    stub = AcrossStub(fill_statuses=("pending", "expired"))
    bridge, _ = _bridge(FakeWallet(), stub, fill_max_attempts=10)

    assert await bridge.bridge(10) is False
    fill_polls = [r for r in stub.requests if "depositId" in r.url.params]
    assert len(fill_polls) == 2


@pytest.mark.asyncio
async def test_missing_receipt_schedules_reconciliation():
    stub = AcrossStub()
    wallet = FakeWallet(allowance=10**12, deposit_error=ReceiptNotFound("0xlost"))
    bridge, _ = _bridge(wallet, stub)

    assert await bridge.bridge(10) is False
    await bridge.drain_reconciliations()

    lookups = [r for r in stub.requests if "depositTxHash" in r.url.params]
    assert len(lookups) == 1
    assert lookups[0].url.params["depositTxHash"] == "0xlost"


@pytest.mark.asyncio
async def test_other_failures_do_not_reconcile():
    stub = AcrossStub()
    wallet = FakeWallet(allowance=10**12, deposit_error=RuntimeError("nonce too low"))
    bridge, _ = _bridge(wallet, stub)

    assert await bridge.bridge(10) is False
    await bridge.drain_reconciliations()
    assert not [r for r in stub.requests if "depositTxHash" in r.url.params]
