"""Kraken REST client implementing the exchange interface."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import math
import threading
import time
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from ..constants import KRAKEN_API_URL
from ..contracts import Order, OrderRequest, Withdrawal
from ..errors import ConfigurationError, DataIntegrityError, ExchangeAPIError
from .base import ExchangeClient

logger = logging.getLogger(__name__)

BALANCE_PATH = "/0/private/Balance"
ADD_ORDER_PATH = "/0/private/AddOrder"
QUERY_ORDERS_PATH = "/0/private/QueryOrders"
WITHDRAW_PATH = "/0/private/Withdraw"
WITHDRAW_STATUS_PATH = "/0/private/WithdrawStatus"
TICKER_PATH = "/0/public/Ticker"

# failures that a single call reports as "no result" instead of raising
_CALL_ERRORS = (httpx.HTTPError, ExchangeAPIError, ValueError, KeyError, IndexError, TypeError)


def sign_request(secret: str, path: str, nonce: str, body: str) -> str:
    """Kraken API-Sign: HMAC-SHA512 over path + SHA256(nonce + body)."""
    digest = hashlib.sha256((nonce + body).encode()).digest()
    mac = hmac.new(base64.b64decode(secret), path.encode() + digest, hashlib.sha512)
    return base64.b64encode(mac.digest()).decode()


class KrakenClient(ExchangeClient):
    """Signed form-encoded REST client for Kraken."""

    def __init__(
        self,
        api_key: Optional[str],
        api_secret: Optional[str],
        api_url: str = KRAKEN_API_URL,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not api_key or not api_secret:
            raise ConfigurationError("API key and secret are required")
        self._api_key = api_key
        self._api_secret = api_secret
        self.api_url = api_url.rstrip("/")
        self._client = client or httpx.AsyncClient(base_url=self.api_url, timeout=timeout)
        self._last_nonce = 0
        self._nonce_lock = threading.Lock()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport helpers
    def _next_nonce(self) -> str:
        with self._nonce_lock:
            nonce = max(int(time.time() * 1000), self._last_nonce + 1)
            self._last_nonce = nonce
        return str(nonce)

    @staticmethod
    def _unwrap(path: str, response: httpx.Response) -> Any:
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict) or not isinstance(data.get("error"), list):
            raise ExchangeAPIError(path, ["Invalid response structure"])
        if data["error"]:
            raise ExchangeAPIError(path, data["error"])
        return data.get("result")

    async def _private(self, path: str, fields: Dict[str, str]) -> Any:
        nonce = self._next_nonce()
        body = urlencode({"nonce": nonce, **fields})
        headers = {
            "API-Key": self._api_key,
            "API-Sign": sign_request(self._api_secret, path, nonce, body),
            "Content-Type": "application/x-www-form-urlencoded",
        }
        response = await self._client.post(path, content=body, headers=headers)
        return self._unwrap(path, response)

    async def _public(self, path: str, params: Dict[str, str]) -> Any:
        response = await self._client.get(path, params=params)
        return self._unwrap(path, response)

    # ------------------------------------------------------------------
    # Exchange API
    async def fetch_balance(self) -> Optional[Dict[str, str]]:
        try:
            return await self._private(BALANCE_PATH, {})
        except _CALL_ERRORS as e:
            logger.error(f"Kraken Balance error: {e}")
            return None

    async def get_ask_price(self, pair: str) -> float:
        result = await self._public(TICKER_PATH, {"pair": pair})
        try:
            ticker = result[pair] if pair in result else next(iter(result.values()))
            ask_price = float(ticker["a"][0])
        except (KeyError, IndexError, TypeError, ValueError, StopIteration) as e:
            raise DataIntegrityError(f"Unreadable ask price for {pair}: {e}") from e
        if math.isnan(ask_price) or ask_price <= 0:
            raise DataIntegrityError(f"Invalid ask price for {pair}: {ask_price}")
        return ask_price

    async def create_order(self, request: OrderRequest) -> Optional[str]:
        try:
            result = await self._private(ADD_ORDER_PATH, request.to_form())
            txid = result["txid"][0]
        except _CALL_ERRORS as e:
            logger.error(f"Kraken AddOrder error: {e}")
            return None
        logger.info(f"Kraken Order Placed. TXID: {txid}")
        return txid

    async def query_order(self, txid: str) -> Order:
        result = await self._private(QUERY_ORDERS_PATH, {"txid": txid})
        info = result.get(txid) if isinstance(result, dict) else None
        if info is None:
            return Order(txid=txid, status="unknown")
        try:
            price = float(info.get("price") or 0)
        except (TypeError, ValueError) as e:
            raise ExchangeAPIError(QUERY_ORDERS_PATH, [f"Unreadable price: {e}"]) from e
        return Order(
            txid=txid,
            pair=(info.get("descr") or {}).get("pair"),
            volume=info.get("vol"),
            status=info.get("status", "unknown"),
            price=price,
        )

    async def withdraw(self, asset: str, key: str, amount: float) -> Optional[str]:
        fields = {"asset": asset, "key": key, "amount": f"{amount:.6f}"}
        try:
            result = await self._private(WITHDRAW_PATH, fields)
            refid = result["refid"]
        except _CALL_ERRORS as e:
            logger.error(f"Kraken Withdraw error: {e}")
            return None
        logger.info(f"Withdrawal requested. Reference ID: {refid}")
        return refid

    async def query_withdrawal(
        self, refid: str, asset: Optional[str] = None
    ) -> Optional[Withdrawal]:
        fields = {"refid": refid}
        if asset:
            fields["asset"] = asset
        result = await self._private(WITHDRAW_STATUS_PATH, fields)
        if not isinstance(result, list):
            raise ExchangeAPIError(WITHDRAW_STATUS_PATH, ["Invalid response structure"])
        for entry in result:
            if entry.get("refid") == refid:
                return Withdrawal(
                    refid=refid,
                    asset=entry.get("asset"),
                    amount=float(entry["amount"]) if entry.get("amount") else None,
                    status=entry.get("status", ""),
                )
        return None
