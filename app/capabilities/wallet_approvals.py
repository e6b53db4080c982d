# app/capabilities/wallet_approvals.py
"""
Wallet approval audit.

Checks the ERC-20 allowance of every known token towards every known spender
contract and classifies each active approval. Scanning Approval events would
find arbitrary spenders; the fixed matrix keeps the call count bounded.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List

from requests.exceptions import RequestException

from app.capabilities.models import (
    AddressInput,
    CapabilityDescriptor,
    CapabilityResult,
    ResultWarning,
)
from app.capabilities.tokens import APPROVAL_TOKENS, KNOWN_SPENDERS
from app.services import chain_rpc, explorer

logger = logging.getLogger(__name__)

SLUG = "wallet-approvals"

LIMITATIONS = (
    "Risk classification is estimated",
    "Does not cover all permission types",
    "New contracts may not be classified",
)

RISK_ORDER = {"high": 3, "medium": 2, "low": 1}


def classify_approval_risk(is_unlimited: bool, spender_verified: bool, spender_known: bool) -> str:
    if is_unlimited and not spender_verified and not spender_known:
        return "high"
    if (is_unlimited and not spender_verified) or (not spender_known and not spender_verified):
        return "medium"
    return "low"


def format_approval_amount(amount: int, decimals: int) -> str:
    """Human-readable allowance, "Unlimited" for the max uint256 sentinel."""
    if amount == chain_rpc.MAX_UINT256:
        return "Unlimited"
    whole, remainder = divmod(amount, 10 ** decimals)
    if remainder == 0:
        return f"{whole:,}"
    fraction = str(remainder).rjust(decimals, "0")[:4]
    return f"{whole:,}.{fraction}"


def get_spender_info(spender: str) -> Dict[str, Any]:
    known = KNOWN_SPENDERS.get(spender.lower())
    if known:
        return {"name": known.name, "verified": known.verified, "known": True}

    info = explorer.get_verification_info(spender)
    return {
        "name": info["contractName"] or "Unknown Contract",
        "verified": info["verified"],
        "known": False,
    }


def _high_risk_warning(count: int) -> ResultWarning:
    noun = "approval" if count == 1 else "approvals"
    return ResultWarning(level="danger", message=f"You have {count} high-risk {noun}")


def demo_approvals(address: str) -> CapabilityResult:
    """Sample data returned when the chain node is unreachable."""
    logger.info("Returning demo approvals, RPC unavailable")
    approvals = [
        {
            "token": "USDC",
            "tokenAddress": "0xc21223249ca28397b4b6541dffaecc539bff0c59",
            "spender": "0x145863eb42cf62847a6ca784e6416c1682b1b2ae",
            "spenderName": "VVS Finance Router",
            "spenderVerified": True,
            "amount": str(chain_rpc.MAX_UINT256),
            "amountFormatted": "Unlimited",
            "isUnlimited": True,
            "risk": "low",
        },
        {
            "token": "WCRO",
            "tokenAddress": "0x5c7f8a570d578ed84e63fdfa7b1ee72deae1ae23",
            "spender": "0x0000000000000000000000000000000000000001",
            "spenderName": "Unknown",
            "spenderVerified": False,
            "amount": str(chain_rpc.MAX_UINT256),
            "amountFormatted": "Unlimited",
            "isUnlimited": True,
            "risk": "high",
        },
    ]
    return CapabilityResult.ok(
        {
            "wallet": address,
            "totalApprovals": len(approvals),
            "highRiskCount": 1,
            "approvals": approvals,
        },
        LIMITATIONS,
        [
            ResultWarning(level="info", message="Sample data, connect to Cronos for live approvals"),
            _high_risk_warning(1),
        ],
    )


def execute_wallet_approvals(params: AddressInput) -> CapabilityResult:
    address = params.address
    logger.info(f"Checking approvals for {address}")

    if not chain_rpc.is_rpc_reachable():
        return demo_approvals(address)

    approvals: List[Dict[str, Any]] = []
    for token in APPROVAL_TOKENS:
        for spender in KNOWN_SPENDERS:
            try:
                allowance = chain_rpc.get_allowance(token.address, address, spender)
            except (RequestException, chain_rpc.ChainRPCError, ValueError) as e:
                logger.warning(f"Allowance check failed for {token.symbol} -> {spender}: {e}")
                continue

            if allowance <= 0:
                continue

            spender_info = get_spender_info(spender)
            is_unlimited = allowance == chain_rpc.MAX_UINT256
            approvals.append({
                "token": token.symbol,
                "tokenAddress": token.address,
                "spender": spender,
                "spenderName": spender_info["name"],
                "spenderVerified": spender_info["verified"],
                "amount": str(allowance),
                "amountFormatted": format_approval_amount(allowance, token.decimals),
                "isUnlimited": is_unlimited,
                "risk": classify_approval_risk(is_unlimited, spender_info["verified"], spender_info["known"]),
            })

    approvals.sort(key=lambda approval: RISK_ORDER[approval["risk"]], reverse=True)
    high_risk_count = sum(1 for approval in approvals if approval["risk"] == "high")

    logger.info(f"Found {len(approvals)} approvals for {address}, {high_risk_count} high risk")

    warnings = [_high_risk_warning(high_risk_count)] if high_risk_count else []
    return CapabilityResult.ok(
        {
            "wallet": address,
            "totalApprovals": len(approvals),
            "highRiskCount": high_risk_count,
            "approvals": approvals,
        },
        LIMITATIONS,
        warnings,
    )


DESCRIPTOR = CapabilityDescriptor(
    slug=SLUG,
    name="Wallet Approvals",
    description="List active token approvals and identify risky spenders",
    price=Decimal("0.02"),
    limitations=LIMITATIONS,
    input_model=AddressInput,
    executor=execute_wallet_approvals,
)
