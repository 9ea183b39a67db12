"""Static registry of chains, token contracts and ABIs."""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal
from typing import Dict, Mapping, Optional

OPTIMISM = 10
BASE = 8453

CHAIN_NAMES: Dict[int, str] = {
    OPTIMISM: "optimism",
    BASE: "base",
}

INFURA_RPC_TEMPLATES: Dict[int, str] = {
    OPTIMISM: "https://optimism-mainnet.infura.io/v3/{key}",
    BASE: "https://base-mainnet.infura.io/v3/{key}",
}

CONTRACTS: Dict[str, Dict[int, str]] = {
    "usdc": {
        OPTIMISM: "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85",
        BASE: "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    },
}

USDC_DECIMALS = 6


def get_contract_address(name: str, chain_id: int) -> str:
    try:
        return CONTRACTS[name][chain_id]
    except KeyError:
        raise KeyError(f"No {name} contract registered for chain {chain_id}") from None


def rpc_url(
    chain_id: int,
    infura_api_key: Optional[str] = None,
    overrides: Optional[Mapping[int, str]] = None,
) -> str:
    """Resolve the RPC endpoint for ``chain_id``, preferring explicit overrides."""
    if overrides and chain_id in overrides:
        return overrides[chain_id]
    if infura_api_key and chain_id in INFURA_RPC_TEMPLATES:
        return INFURA_RPC_TEMPLATES[chain_id].format(key=infura_api_key)
    raise KeyError(f"No RPC endpoint configured for chain {chain_id}")


def to_base_units(amount: float | Decimal | str, decimals: int = USDC_DECIMALS) -> int:
    """Convert a human amount to integer token units, truncating extra precision."""
    scaled = Decimal(str(amount)).quantize(
        Decimal(1).scaleb(-decimals), rounding=ROUND_DOWN
    )
    return int(scaled.scaleb(decimals))


def from_base_units(units: int, decimals: int = USDC_DECIMALS) -> Decimal:
    return Decimal(units).scaleb(-decimals)


ERC20_ABI = [
    {
        "type": "function",
        "name": "balanceOf",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "allowance",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "approve",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "transfer",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "symbol",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
    },
]

SPOKE_POOL_ABI = [
    {
        "type": "function",
        "name": "depositV3",
        "stateMutability": "payable",
        "inputs": [
            {"name": "depositor", "type": "address"},
            {"name": "recipient", "type": "address"},
            {"name": "inputToken", "type": "address"},
            {"name": "outputToken", "type": "address"},
            {"name": "inputAmount", "type": "uint256"},
            {"name": "outputAmount", "type": "uint256"},
            {"name": "destinationChainId", "type": "uint256"},
            {"name": "exclusiveRelayer", "type": "address"},
            {"name": "quoteTimestamp", "type": "uint32"},
            {"name": "fillDeadline", "type": "uint32"},
            {"name": "exclusivityDeadline", "type": "uint32"},
            {"name": "message", "type": "bytes"},
        ],
        "outputs": [],
    },
    {
        "type": "event",
        "name": "V3FundsDeposited",
        "anonymous": False,
        "inputs": [
            {"name": "inputToken", "type": "address", "indexed": False},
            {"name": "outputToken", "type": "address", "indexed": False},
            {"name": "inputAmount", "type": "uint256", "indexed": False},
            {"name": "outputAmount", "type": "uint256", "indexed": False},
            {"name": "destinationChainId", "type": "uint256", "indexed": True},
            {"name": "depositId", "type": "uint32", "indexed": True},
            {"name": "quoteTimestamp", "type": "uint32", "indexed": False},
            {"name": "fillDeadline", "type": "uint32", "indexed": False},
            {"name": "exclusivityDeadline", "type": "uint32", "indexed": False},
            {"name": "depositor", "type": "address", "indexed": True},
            {"name": "recipient", "type": "address", "indexed": False},
            {"name": "exclusiveRelayer", "type": "address", "indexed": False},
            {"name": "message", "type": "bytes", "indexed": False},
        ],
    },
]
