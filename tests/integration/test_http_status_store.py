"""Tests for the HTTP status store talking to the status server."""

import httpx
import pytest

from sensei.errors import StaleStatusError
from sensei.persistence import HttpStatusStore, InMemoryStatusStore
from sensei.server import create_app


def _remote_store():
    backing = InMemoryStatusStore()
    client = httpx.AsyncClient(
        transport=httpx.ASGITransport(app=create_app(backing)),
        base_url="http://status.test",
    )
    return HttpStatusStore("http://status.test", client=client), backing


@pytest.mark.asyncio
async def test_merge_and_read_through_server():
    store, backing = _remote_store()

    merged = await store.merge_status({"gbp": 250, "address": "0xabc"})
    assert merged.gbp == 250

    record = await store.get_record()
    assert record.version == 1
    assert record.status.address == "0xabc"
    assert (await backing.get_status()).gbp == 250
    await store.aclose()


@pytest.mark.asyncio
async def test_stale_version_raises():
    store, _ = _remote_store()
    await store.merge_status({"gbp": 1})
    await store.merge_status({"usdcOp": 1})

    with pytest.raises(StaleStatusError) as exc:
        await store.merge_status({"usdcBase": 1}, expected_version=1)
    assert exc.value.actual == 2
    await store.aclose()


@pytest.mark.asyncio
async def test_reset_through_server():
    store, backing = _remote_store()
    await store.merge_status({"gbp": 9})
    await store.reset()
    assert (await backing.get_status()).gbp == 0
    await store.aclose()


@pytest.mark.asyncio
async def test_unreachable_server_reads_as_zero():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://down")
    store = HttpStatusStore("http://down", client=client)

    status = await store.get_status()
    assert status.gbp == 0


@pytest.mark.asyncio
async def test_write_retries_transport_errors(monkeypatch):
    attempts = {"count": 0}

    async def no_wait(attempt):
        pass

    monkeypatch.setattr("sensei.persistence.http.schedule_retry", no_wait)

    def handler(request):
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json={"status": {"gbp": 3}})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://flaky")
    store = HttpStatusStore("http://flaky", client=client, max_write_attempts=3)

    status = await store.merge_status({"gbp": 3})
    assert status.gbp == 3
    assert attempts["count"] == 3


@pytest.mark.asyncio
async def test_write_gives_up_after_budget(monkeypatch):
    async def no_wait(attempt):
        pass

    monkeypatch.setattr("sensei.persistence.http.schedule_retry", no_wait)

    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://down")
    store = HttpStatusStore("http://down", client=client, max_write_attempts=2)

    with pytest.raises(httpx.ConnectError):
        await store.merge_status({"gbp": 3})
