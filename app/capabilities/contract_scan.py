# app/capabilities/contract_scan.py
"""
Contract risk scan.

Scores a contract from public metadata: explorer verification, age,
activity and proxy status. Each observation becomes a weighted signal; the
capped sum of weights is the risk score.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from app.capabilities.models import (
    AddressInput,
    CapabilityDescriptor,
    CapabilityResult,
    ResultWarning,
)
from app.services import chain_rpc, explorer

logger = logging.getLogger(__name__)

SLUG = "contract-scan"

LIMITATIONS = (
    "Does not guarantee 100% safety",
    "Based on heuristics and public data",
    "New contracts may lack history",
)

RISK_WEIGHTS = {
    "NOT_VERIFIED": 30,
    "NEW_CONTRACT": 25,
    "RECENT_CONTRACT": 15,
    "VERY_LOW_ACTIVITY": 20,
    "LOW_ACTIVITY": 15,
    "IS_PROXY": 5,
}

MAX_RISK_SCORE = 100


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" + ("" if count == 1 else "s")


def _signal(signal_type: str, code: str, message: str) -> Dict[str, Any]:
    return {
        "type": signal_type,
        "code": code,
        "message": message,
        "weight": RISK_WEIGHTS.get(code, 0),
    }


def analyze_contract(
    verified: bool,
    contract_name: Optional[str],
    age_days: int,
    tx_count: int,
    is_proxy: bool,
) -> List[Dict[str, Any]]:
    """Turn contract metadata into risk and reassurance signals."""
    signals = []

    if not verified:
        signals.append(_signal("warning", "NOT_VERIFIED", "Contract not verified on explorer"))

    if age_days < 7:
        signals.append(_signal("warning", "NEW_CONTRACT", f"Contract created {_plural(age_days, 'day')} ago"))
    elif age_days < 30:
        signals.append(_signal("info", "RECENT_CONTRACT", f"Contract created {age_days} days ago"))

    if tx_count < 5:
        signals.append(_signal("warning", "VERY_LOW_ACTIVITY", f"Only {_plural(tx_count, 'transaction')} recorded"))
    elif tx_count < 50:
        signals.append(_signal("info", "LOW_ACTIVITY", f"{tx_count} transactions recorded"))

    if is_proxy:
        signals.append(_signal("info", "IS_PROXY", "This is a proxy contract (upgradeable)"))

    # Positive signals carry no weight
    if verified:
        suffix = f": {contract_name}" if contract_name else ""
        signals.append(_signal("info", "VERIFIED", f"Contract verified{suffix}"))

    if age_days >= 180:
        signals.append(_signal("info", "ESTABLISHED", f"Contract active for {age_days} days"))

    if tx_count >= 1000:
        signals.append(_signal("info", "HIGH_ACTIVITY", f"{tx_count:,} transactions recorded"))

    return signals


def calculate_risk_score(signals: List[Dict[str, Any]]) -> int:
    return min(MAX_RISK_SCORE, sum(signal["weight"] for signal in signals))


def get_risk_level(score: int) -> str:
    if score < 20:
        return "low"
    if score < 50:
        return "medium"
    return "high"


def signals_to_warnings(signals: List[Dict[str, Any]]) -> List[ResultWarning]:
    return [
        ResultWarning(level="warning", message=signal["message"])
        for signal in signals
        if signal["type"] == "warning"
    ]


def execute_contract_scan(params: AddressInput) -> CapabilityResult:
    address = params.address
    logger.info(f"Scanning contract {address}")

    if not chain_rpc.is_contract(address):
        logger.info(f"{address} is not a contract")
        return CapabilityResult.ok(
            {
                "address": address,
                "isContract": False,
                "verified": False,
                "contractName": None,
                "ageDays": 0,
                "txCount": 0,
                "isProxy": False,
                "riskScore": 0,
                "riskLevel": "low",
                "signals": [],
            },
            LIMITATIONS,
            [ResultWarning(level="info", message="This address is not a contract, it is a regular wallet (EOA)")],
        )

    info = explorer.get_contract_info(address)
    signals = analyze_contract(
        verified=info["verified"],
        contract_name=info["contractName"],
        age_days=info["ageDays"],
        tx_count=info["txCount"],
        is_proxy=info["isProxy"],
    )
    risk_score = calculate_risk_score(signals)
    risk_level = get_risk_level(risk_score)

    logger.info(f"Contract scan {address}: riskLevel={risk_level} riskScore={risk_score}")

    return CapabilityResult.ok(
        {
            "address": address,
            "isContract": True,
            "verified": info["verified"],
            "contractName": info["contractName"],
            "ageDays": info["ageDays"],
            "txCount": info["txCount"],
            "isProxy": info["isProxy"],
            "riskScore": risk_score,
            "riskLevel": risk_level,
            "signals": signals,
        },
        LIMITATIONS,
        signals_to_warnings(signals),
    )


DESCRIPTOR = CapabilityDescriptor(
    slug=SLUG,
    name="Contract Scan",
    description="Analyze a smart contract for risk signals and red flags",
    price=Decimal("0.01"),
    limitations=LIMITATIONS,
    input_model=AddressInput,
    executor=execute_contract_scan,
)
