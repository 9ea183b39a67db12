"""Token ledger access on an EVM network."""

from __future__ import annotations

import logging
from typing import Any, Optional

from eth_account import Account
from web3 import AsyncWeb3, Web3
from web3.exceptions import TimeExhausted, TransactionNotFound
from web3.logs import DISCARD

from ..errors import ChainTransactionError, ConfigurationError, ReceiptNotFound
from .registry import CHAIN_NAMES, ERC20_ABI

logger = logging.getLogger(__name__)


class ChainClient:
    """Read balances and send signed contract calls on one chain."""

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        chain_id: int,
        receipt_timeout: float = 180.0,
        web3: Optional[AsyncWeb3] = None,
    ) -> None:
        if not private_key:
            raise ConfigurationError("A private key is required for chain access")
        self.chain_id = chain_id
        self.receipt_timeout = receipt_timeout
        self._account = Account.from_key(private_key)
        self._w3 = web3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def name(self) -> str:
        return CHAIN_NAMES.get(self.chain_id, str(self.chain_id))

    def contract(self, address: str, abi: list[dict]) -> Any:
        return self._w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    # ------------------------------------------------------------------
    # Reads
    async def balance_of(self, token: str, owner: Optional[str] = None) -> int:
        """Return the raw token balance of ``owner`` (defaults to this wallet)."""
        erc20 = self.contract(token, ERC20_ABI)
        return await erc20.functions.balanceOf(
            Web3.to_checksum_address(owner or self.address)
        ).call()

    async def allowance(self, token: str, spender: str) -> int:
        erc20 = self.contract(token, ERC20_ABI)
        return await erc20.functions.allowance(
            self.address, Web3.to_checksum_address(spender)
        ).call()

    # ------------------------------------------------------------------
    # Writes
    async def approve(self, token: str, spender: str, amount: int) -> dict:
        return await self.transact(
            token, ERC20_ABI, "approve", Web3.to_checksum_address(spender), amount
        )

    async def transfer(self, token: str, recipient: str, amount: int) -> dict:
        return await self.transact(
            token, ERC20_ABI, "transfer", Web3.to_checksum_address(recipient), amount
        )

    async def transact(
        self,
        address: str,
        abi: list[dict],
        function: str,
        *args: Any,
        value: int = 0,
        data_suffix: str = "",
    ) -> dict:
        """Sign and send a contract call, then wait for a successful receipt.

        ``data_suffix`` is hex appended to the encoded calldata; gas is then
        estimated again for the longer payload.

        Raises:
            ReceiptNotFound: The transaction was sent but no receipt showed up
                within ``receipt_timeout``.
            ChainTransactionError: The transaction was mined and reverted.
        """
        call = getattr(self.contract(address, abi).functions, function)(*args)
        tx = await call.build_transaction(
            {
                "from": self.address,
                "nonce": await self._w3.eth.get_transaction_count(self.address, "pending"),
                "chainId": self.chain_id,
                "value": value,
            }
        )
        if data_suffix:
            # the gas limit filled in above covers the unsuffixed calldata only
            tx["data"] = tx["data"] + data_suffix.removeprefix("0x")
            tx["gas"] = await self._w3.eth.estimate_gas(
                {
                    "from": self.address,
                    "to": tx["to"],
                    "data": tx["data"],
                    "value": tx["value"],
                }
            )
        signed = self._account.sign_transaction(tx)
        raw_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        tx_hash = Web3.to_hex(raw_hash)
        logger.info(f"Sent {function} on {self.name}: {tx_hash}")

        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                raw_hash, timeout=self.receipt_timeout
            )
        except (TimeExhausted, TransactionNotFound) as e:
            raise ReceiptNotFound(tx_hash) from e

        if receipt["status"] != 1:
            raise ChainTransactionError(tx_hash, f"{function} reverted")
        return dict(receipt, transactionHash=tx_hash)

    def decode_events(
        self, address: str, abi: list[dict], event: str, receipt: dict
    ) -> list[dict]:
        """Return the decoded args of every ``event`` log in ``receipt``."""
        contract_event = getattr(self.contract(address, abi).events, event)()
        logs = contract_event.process_receipt(receipt, errors=DISCARD)
        return [dict(log["args"]) for log in logs]
