# app/core/network.py
"""
Network constants, keyed by NETWORK_MODE.

The capabilities analyse Cronos (chain id 25 / 338). Payments are collected
in USDC through the x402 facilitator on Base, whose network identifiers are
the ones the x402 SDK accepts.
"""
from typing import Any, Dict, Optional

from app.core.config import Settings, settings

CHAIN_IDS = {
    "testnet": 338,
    "mainnet": 25,
}

RPC_URLS = {
    "testnet": "https://evm-t3.cronos.org",
    "mainnet": "https://evm.cronos.org",
}

EXPLORER_URLS = {
    "testnet": "https://explorer.cronos.org/testnet",
    "mainnet": "https://cronoscan.com",
}

EXPLORER_API_URLS = {
    "testnet": "https://api-testnet.cronoscan.com/api",
    "mainnet": "https://api.cronoscan.com/api",
}

NATIVE_TOKENS = {
    "testnet": {"symbol": "TCRO", "name": "Test CRO", "decimals": 18},
    "mainnet": {"symbol": "CRO", "name": "Cronos", "decimals": 18},
}

# x402 payment network per mode
PAYMENT_NETWORKS = {
    "testnet": "base-sepolia",
    "mainnet": "base",
}

# USDC contract addresses by payment network, with the EIP-712 domain the
# exact scheme signs against
USDC_ASSETS = {
    "base": {
        "address": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        "symbol": "USDC",
        "decimals": 6,
        "eip712": {"name": "USD Coin", "version": "2"},
    },
    "base-sepolia": {
        "address": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        "symbol": "USDC",
        "decimals": 6,
        "eip712": {"name": "USDC", "version": "2"},
    },
}


def get_payment_network(config: Optional[Settings] = None) -> str:
    config = config or settings
    return PAYMENT_NETWORKS[config.NETWORK_MODE]


def get_payment_asset(config: Optional[Settings] = None) -> Dict[str, Any]:
    return USDC_ASSETS[get_payment_network(config)]


def get_rpc_url(config: Optional[Settings] = None) -> str:
    config = config or settings
    return config.CHAIN_RPC_URL or RPC_URLS[config.NETWORK_MODE]


def get_explorer_api_url(config: Optional[Settings] = None) -> str:
    config = config or settings
    return config.EXPLORER_API_URL or EXPLORER_API_URLS[config.NETWORK_MODE]


def get_network_config(config: Optional[Settings] = None) -> Dict[str, Any]:
    """Everything the /network endpoint reports for the active mode."""
    config = config or settings
    mode = config.NETWORK_MODE
    asset = get_payment_asset(config)
    return {
        "mode": mode,
        "chainId": CHAIN_IDS[mode],
        "rpcUrl": get_rpc_url(config),
        "explorerUrl": EXPLORER_URLS[mode],
        "nativeToken": NATIVE_TOKENS[mode],
        "payment": {
            "network": get_payment_network(config),
            "asset": asset["address"],
            "symbol": asset["symbol"],
            "decimals": asset["decimals"],
            "facilitatorUrl": config.X402_FACILITATOR_URL,
            "payTo": config.X402_PAY_TO_ADDRESS,
            "bypass": config.SKIP_X402,
        },
    }
