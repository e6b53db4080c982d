# app/services/chain_rpc.py
"""
Minimal JSON-RPC access to the analysed chain.

Only read calls are made (eth_blockNumber, eth_getCode, eth_call). Call data
is ABI-encoded with eth-abi; results are decoded the same way.
"""
import logging
import re
from typing import Any, List

import requests
from requests.exceptions import RequestException
from eth_abi import decode, encode

from app.core.config import settings
from app.core.network import get_rpc_url

logger = logging.getLogger(__name__)

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
MAX_UINT256 = 2 ** 256 - 1

# Function selectors
ALLOWANCE_SELECTOR = "dd62ed3e"        # allowance(address,address)
GET_AMOUNTS_OUT_SELECTOR = "d06ca61f"  # getAmountsOut(uint256,address[])
GET_PAIR_SELECTOR = "e6a43905"         # getPair(address,address)


class ChainRPCError(Exception):
    """The RPC node answered with an error or an unusable payload."""


def is_valid_address(address: str) -> bool:
    """Validate 0x-prefixed 20-byte hex address format."""
    return bool(address) and ADDRESS_PATTERN.match(address) is not None


def rpc_call(method: str, params: List[Any]) -> Any:
    """
    Perform a JSON-RPC call against the configured node.

    Raises:
        RequestException: If the HTTP request fails
        ChainRPCError: If the node returns an error or no result
    """
    response = requests.post(
        get_rpc_url(),
        json={
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": 1
        },
        timeout=settings.RPC_TIMEOUT_SECONDS
    )
    response.raise_for_status()

    result = response.json()
    if "error" in result:
        raise ChainRPCError(f"RPC error: {result['error']}")

    if "result" not in result:
        raise ChainRPCError("Invalid RPC response: missing 'result' field")

    return result["result"]


def get_block_number() -> int:
    return int(rpc_call("eth_blockNumber", []), 16)


def is_rpc_reachable() -> bool:
    """True if the node answers eth_blockNumber."""
    try:
        get_block_number()
        return True
    except (RequestException, ChainRPCError, ValueError) as e:
        logger.warning(f"RPC node unreachable: {e}")
        return False


def is_contract(address: str) -> bool:
    """
    Check whether an address holds contract code.

    RPC failures are treated as "not a contract" so the caller can still
    answer; the failure is logged.
    """
    try:
        code = rpc_call("eth_getCode", [address, "latest"])
    except (RequestException, ChainRPCError) as e:
        logger.error(f"Error checking contract code for {address}: {e}")
        return False
    return isinstance(code, str) and code not in ("0x", "0x0") and len(code) > 2


def eth_call(to: str, data: str) -> bytes:
    """Run a read-only call and return the raw return data."""
    result = rpc_call("eth_call", [{"to": to, "data": data}, "latest"])
    if not isinstance(result, str) or not result.startswith("0x"):
        raise ChainRPCError(f"Unexpected eth_call result: {result!r}")
    return bytes.fromhex(result[2:])


def _call_data(selector: str, types: List[str], values: List[Any]) -> str:
    return "0x" + selector + encode(types, values).hex()


def get_allowance(token: str, owner: str, spender: str) -> int:
    """ERC-20 allowance granted by owner to spender."""
    data = _call_data(ALLOWANCE_SELECTOR, ["address", "address"], [owner.lower(), spender.lower()])
    raw = eth_call(token, data)
    if not raw:
        return 0
    (allowance,) = decode(["uint256"], raw)
    return allowance


def get_amounts_out(router: str, amount_in: int, path: List[str]) -> List[int]:
    """Uniswap-v2 style router quote for amount_in along path."""
    data = _call_data(
        GET_AMOUNTS_OUT_SELECTOR,
        ["uint256", "address[]"],
        [amount_in, [address.lower() for address in path]],
    )
    (amounts,) = decode(["uint256[]"], eth_call(router, data))
    return list(amounts)


def pair_exists(factory: str, token_a: str, token_b: str) -> bool:
    """True if the factory has a liquidity pair for the two tokens."""
    data = _call_data(GET_PAIR_SELECTOR, ["address", "address"], [token_a.lower(), token_b.lower()])
    try:
        (pair,) = decode(["address"], eth_call(factory, data))
    except (RequestException, ChainRPCError, ValueError) as e:
        logger.warning(f"getPair failed for {token_a}/{token_b}: {e}")
        return False
    return pair.lower() != ZERO_ADDRESS
