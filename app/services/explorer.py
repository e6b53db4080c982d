# app/services/explorer.py
import logging
import time
from typing import Any, Dict, List, Optional, Union

import requests
from requests.exceptions import RequestException

from app.core.config import settings
from app.core.network import get_explorer_api_url

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


class ExplorerError(Exception):
    """The explorer API rejected the query."""


def explorer_fetch(module: str, action: str, params: Dict[str, str]) -> Any:
    """
    Query the Etherscan-compatible explorer API.

    Returns:
        The "result" field of the response

    Raises:
        RequestException: If the HTTP request fails or times out
        ExplorerError: If the explorer reports NOTOK
    """
    query = {"module": module, "action": action, **params}
    if settings.EXPLORER_API_KEY:
        query["apikey"] = settings.EXPLORER_API_KEY

    response = requests.get(
        get_explorer_api_url(),
        params=query,
        headers={"Accept": "application/json"},
        timeout=settings.RPC_TIMEOUT_SECONDS
    )
    response.raise_for_status()
    data = response.json()

    # Explorer answers status "0" for errors and for empty results
    if data.get("status") == "0" and data.get("message") == "NOTOK":
        raise ExplorerError(str(data.get("result")))

    return data.get("result")


def get_verification_info(address: str) -> Dict[str, Any]:
    """Verification status, contract name and proxy flag. Unverified on failure."""
    info = {
        "verified": False,
        "contractName": None,
        "compilerVersion": None,
        "isProxy": False,
    }
    try:
        result = explorer_fetch("contract", "getsourcecode", {"address": address})
    except (RequestException, ExplorerError, ValueError) as e:
        logger.warning(f"Explorer getsourcecode failed for {address}: {e}")
        return info

    if not isinstance(result, list) or not result:
        return info

    contract = result[0]
    verified = bool(contract.get("SourceCode"))
    info["verified"] = verified
    info["contractName"] = contract.get("ContractName") if verified else None
    info["compilerVersion"] = contract.get("CompilerVersion") if verified else None
    info["isProxy"] = contract.get("Proxy") == "1"
    return info


def _list_transactions(address: str, offset: int, sort: str) -> Union[List[Dict[str, Any]], str]:
    return explorer_fetch(
        "account",
        "txlist",
        {
            "address": address,
            "startblock": "0",
            "endblock": "99999999",
            "page": "1",
            "offset": str(offset),
            "sort": sort,
        },
    )


def get_contract_creation(address: str) -> Dict[str, Any]:
    """Creator, creation tx hash and creation timestamp, each None if unknown."""
    creation_info = {
        "creatorAddress": None,
        "creationTxHash": None,
        "creationTimestamp": None,
    }
    try:
        result = explorer_fetch("contract", "getcontractcreation", {"contractaddresses": address})
    except (RequestException, ExplorerError, ValueError) as e:
        logger.warning(f"Explorer getcontractcreation failed for {address}: {e}")
        return creation_info

    if not isinstance(result, list) or not result:
        return creation_info

    creation = result[0]
    creation_info["creatorAddress"] = creation.get("contractCreator")
    creation_info["creationTxHash"] = creation.get("txHash")

    if creation_info["creationTxHash"] and creation_info["creatorAddress"]:
        try:
            txs = _list_transactions(creation_info["creatorAddress"], offset=100, sort="asc")
        except (RequestException, ExplorerError, ValueError) as e:
            logger.warning(f"Explorer txlist failed for creator of {address}: {e}")
            txs = []
        if isinstance(txs, list):
            for tx in txs:
                if tx.get("hash") == creation_info["creationTxHash"]:
                    creation_info["creationTimestamp"] = int(tx.get("timeStamp", 0)) or None
                    break

    return creation_info


def get_transaction_count(address: str) -> int:
    """Number of transactions the explorer lists for the address (capped at 10000)."""
    try:
        result = _list_transactions(address, offset=10000, sort="desc")
    except (RequestException, ExplorerError, ValueError) as e:
        logger.warning(f"Explorer txlist failed for {address}: {e}")
        return 0
    if not isinstance(result, list):
        return 0
    return len(result)


def calculate_age_days(timestamp: Optional[int], now: Optional[float] = None) -> int:
    if not timestamp:
        return 0
    now = now if now is not None else time.time()
    return max(0, int((now - timestamp) // SECONDS_PER_DAY))


def get_contract_info(address: str) -> Dict[str, Any]:
    """
    Aggregate explorer metadata for a contract.

    Each lookup degrades independently to a neutral default, so this
    function does not raise for explorer outages.
    """
    logger.info(f"Fetching explorer info for {address}")

    verification = get_verification_info(address)
    creation = get_contract_creation(address)
    tx_count = get_transaction_count(address)

    info = {
        "address": address,
        **verification,
        **creation,
        "ageDays": calculate_age_days(creation["creationTimestamp"]),
        "txCount": tx_count,
    }

    logger.info(
        f"Explorer info for {address}: verified={info['verified']} "
        f"ageDays={info['ageDays']} txCount={info['txCount']}"
    )
    return info
