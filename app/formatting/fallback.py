# app/formatting/fallback.py
"""
Deterministic text templates for capability results.

fallback_render() is total: any input produces non-empty text. A renderer
that fails on an unexpected data shape falls through to the generic JSON
rendering.
"""
import json
import logging
from typing import Any, Callable, Dict, List

from app.capabilities.models import CapabilityResult

logger = logging.getLogger(__name__)

RISK_LABELS = {"low": "LOW", "medium": "MEDIUM", "high": "HIGH"}


def shorten_address(address: str) -> str:
    if not isinstance(address, str) or len(address) < 12:
        return str(address)
    return f"{address[:6]}...{address[-4:]}"


def _warning_lines(result: CapabilityResult) -> List[str]:
    return [f"[{warning.level.upper()}] {warning.message}" for warning in result.warnings]


def _reminder(result: CapabilityResult) -> str:
    if result.limitations:
        return f"Reminder: {result.limitations[0]}"
    return "Reminder: This analysis is indicative only."


def render_contract_scan(result: CapabilityResult) -> str:
    data = result.data
    address = shorten_address(data["address"])

    if not data.get("isContract", True):
        return "\n".join([
            "This address is not a smart contract, it is a regular wallet.",
            "",
            f"Address: {address}",
            "",
            "If you meant to analyse a contract, check that the address is correct.",
        ])

    level = data["riskLevel"]
    lines = [
        "Analysis complete",
        "",
        f"Contract: {address}",
        f"Risk: {RISK_LABELS.get(level, str(level).upper())} (score {data['riskScore']}/100)",
    ]
    if level == "high":
        lines += ["", "ATTENTION: Risk signals detected"]

    signals = data.get("signals") or []
    if signals:
        lines += ["", "Signals:"]
        lines += [f"- {signal['message']}" for signal in signals]

    if level == "high":
        lines += ["", "Verify the legitimacy of this contract before interacting with it."]

    lines += ["", _reminder(result)]
    return "\n".join(lines)


def render_wallet_approvals(result: CapabilityResult) -> str:
    data = result.data
    approvals = data.get("approvals") or []
    high_risk = data.get("highRiskCount", 0)

    lines = [
        "Approval audit",
        "",
        f"Wallet: {shorten_address(data['wallet'])}",
        f"Total approvals: {data['totalApprovals']}",
    ]
    if high_risk:
        noun = "approval" if high_risk == 1 else "approvals"
        lines += ["", f"ATTENTION: You have {high_risk} high-risk {noun}"]
    elif approvals:
        lines += ["", "All approvals are to known, verified contracts."]
    else:
        lines += ["", "No active approvals found for the checked tokens."]

    if approvals:
        lines += ["", "Details:"]
        for approval in approvals:
            lines.append(
                f"- {approval['token']} -> {approval['spenderName']} "
                f"({shorten_address(approval['spender'])}): "
                f"{approval['amountFormatted']}, {RISK_LABELS.get(approval['risk'], approval['risk'])} risk"
            )

    if high_risk:
        lines += ["", "Risky approvals can be revoked with tools such as revoke.cash."]

    info = [line for line in _warning_lines(result) if line.startswith("[INFO]")]
    if info:
        lines += [""] + info

    lines += ["", _reminder(result)]
    return "\n".join(lines)


def render_tx_simulate(result: CapabilityResult) -> str:
    data = result.data
    swap_in = data["input"]
    swap_out = data["output"]

    lines = [
        "Swap simulation",
        "",
        f"{swap_in['amountFormatted']} -> {swap_out['amountFormatted']}",
        "",
        "Details:",
        f"- DEX: {data['dex']}",
        f"- Route: {' -> '.join(data['route'])}",
        f"- Price impact: {data['priceImpactPercent']:.2f}%",
        f"- Estimated gas: {data['estimatedGas']}",
    ]

    warnings = _warning_lines(result)
    if warnings:
        lines += ["", "Warnings:"] + [f"- {line}" for line in warnings]

    lines += ["", _reminder(result)]
    return "\n".join(lines)


def render_generic(result: CapabilityResult) -> str:
    lines = ["Result:", json.dumps(result.data, indent=2, default=str)]
    warnings = _warning_lines(result)
    if warnings:
        lines += ["", "Warnings:"] + [f"- {line}" for line in warnings]
    lines += ["", _reminder(result)]
    return "\n".join(lines)


RENDERERS: Dict[str, Callable[[CapabilityResult], str]] = {
    "contract-scan": render_contract_scan,
    "wallet-approvals": render_wallet_approvals,
    "tx-simulate": render_tx_simulate,
}


def fallback_render(slug: str, result: Any) -> str:
    """Render a result without the external formatter. Never raises."""
    try:
        renderer = RENDERERS.get(slug)
        if renderer is not None and isinstance(result, CapabilityResult) and result.data is not None:
            try:
                text = renderer(result)
                if text:
                    return text
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Template for '{slug}' failed, using generic rendering: {e}")

        if isinstance(result, CapabilityResult):
            return render_generic(result)
        return "Result:\n" + json.dumps(result, indent=2, default=str)
    except Exception as e:
        logger.error(f"Fallback rendering failed for '{slug}': {e}")
        return f"Result for {slug} is available in the raw data."
