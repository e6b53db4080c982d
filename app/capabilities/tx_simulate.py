# app/capabilities/tx_simulate.py
"""
Swap simulation against the VVS Finance router.

Quotes come from the router's getAmountsOut, routed through WCRO when the
factory has no direct pair. If the node cannot be reached, the quote is
estimated from reference prices minus the 0.3% pool fee.
"""
import logging
import math
from decimal import Decimal, localcontext
from typing import List, Literal, Tuple, Union

from pydantic import BaseModel, field_validator
from pydantic_core import PydanticCustomError
from requests.exceptions import RequestException

from app.capabilities.models import CapabilityDescriptor, CapabilityResult, ResultWarning
from app.capabilities.tokens import TOKENS, Token, reference_rate, resolve_token
from app.core.config import settings
from app.core.errors import CapabilityError, InvalidInputError
from app.services import chain_rpc

logger = logging.getLogger(__name__)

SLUG = "tx-simulate"

LIMITATIONS = (
    "Results may vary if state changes",
    "Does not include gas fees in calculation",
    "Only supports VVS Finance swaps",
)

POOL_FEE_MULTIPLIER = 0.997
PRICE_IMPACT_WARNING_PERCENT = 1
PRICE_IMPACT_DANGER_PERCENT = 5
LARGE_CRO_AMOUNT = 10000

# Enough digits to scale any JSON number to atomic units without rounding
ATOMIC_PRECISION = 100

Amount = Union[int, float]


class TokenNotFoundError(CapabilityError):
    def __init__(self, token: str):
        supported = ", ".join(TOKENS)
        super().__init__(
            "TOKEN_NOT_FOUND",
            f"Token '{token}' is not supported. Available tokens: {supported}",
        )


class SameTokenError(CapabilityError):
    def __init__(self):
        super().__init__("SAME_TOKEN", "Cannot swap a token for itself")


class SwapParams(BaseModel):
    token_in: str
    token_out: str
    amount: Amount

    @field_validator("token_in", "token_out")
    @classmethod
    def check_token(cls, value: str, info) -> str:
        if not value.strip():
            label = "Token in" if info.field_name == "token_in" else "Token out"
            raise PydanticCustomError("token_required", f"{label} is required")
        return value.strip()

    @field_validator("amount")
    @classmethod
    def check_amount(cls, value: Amount) -> Amount:
        if isinstance(value, float) and not math.isfinite(value):
            raise PydanticCustomError("amount_not_finite", "Amount must be a finite number")
        if not value > 0:
            raise PydanticCustomError("amount_not_positive", "Amount must be positive")
        return value


class TxSimulateInput(BaseModel):
    action: Literal["swap"]
    params: SwapParams


def to_atomic(amount: Amount, decimals: int) -> int:
    """Token amount in atomic units, truncated toward zero."""
    with localcontext() as ctx:
        ctx.prec = ATOMIC_PRECISION
        return int(Decimal(str(amount)).scaleb(decimals))


def from_atomic(amount: int, decimals: int) -> float:
    return float(Decimal(amount) / (10 ** decimals))


def _swap_path(token_in: Token, token_out: Token) -> List[str]:
    path = [token_in.address, token_out.address]
    wcro = TOKENS["WCRO"]
    if wcro.address in path:
        return path
    if chain_rpc.pair_exists(settings.VVS_FACTORY_ADDRESS, token_in.address, token_out.address):
        return path
    logger.info(f"No direct {token_in.symbol}/{token_out.symbol} pair, routing through WCRO")
    return [token_in.address, wcro.address, token_out.address]


def quote_swap(token_in: Token, token_out: Token, amount: Amount) -> Tuple[float, bool]:
    """
    Output amount for a swap, and whether it was estimated offline.

    Raises nothing for node outages; those switch to the reference estimate.
    """
    try:
        chain_rpc.get_block_number()
        path = _swap_path(token_in, token_out)
        amounts = chain_rpc.get_amounts_out(
            settings.VVS_ROUTER_ADDRESS,
            to_atomic(amount, token_in.decimals),
            path,
        )
        if not amounts:
            raise chain_rpc.ChainRPCError("Router returned no amounts")
        return from_atomic(amounts[-1], token_out.decimals), False
    except (RequestException, chain_rpc.ChainRPCError, ValueError) as e:
        logger.warning(f"VVS quote failed, using reference prices: {e}")
        estimate = amount * reference_rate(token_in.symbol, token_out.symbol) * POOL_FEE_MULTIPLIER
        return round(estimate, token_out.decimals), True


def price_impact_percent(execution_price: float, token_in: Token, token_out: Token) -> float:
    # Compares the quote with the static reference table, not with pool reserves
    expected = reference_rate(token_in.symbol, token_out.symbol)
    return abs((execution_price - expected) / expected) * 100


def simulation_warnings(
    token_in: Token,
    amount: Amount,
    price_impact: float,
    estimated: bool,
) -> List[ResultWarning]:
    warnings = []
    if estimated:
        warnings.append(ResultWarning(
            level="info",
            message="Simulated with estimated prices, connect to Cronos for live quotes",
        ))
    if price_impact > PRICE_IMPACT_WARNING_PERCENT:
        warnings.append(ResultWarning(
            level="warning",
            message=f"High price impact: {price_impact:.2f}%. Consider reducing the amount.",
        ))
    if price_impact > PRICE_IMPACT_DANGER_PERCENT:
        warnings.append(ResultWarning(
            level="danger",
            message=f"Very high price impact: {price_impact:.2f}%. You could lose significant value.",
        ))
    if amount > LARGE_CRO_AMOUNT and token_in.symbol in ("CRO", "WCRO"):
        warnings.append(ResultWarning(
            level="info",
            message="For large amounts, consider splitting the trade",
        ))
    return warnings


def execute_tx_simulate(request: TxSimulateInput) -> CapabilityResult:
    swap = request.params
    logger.info(f"Simulating {request.action}: {swap.amount} {swap.token_in} -> {swap.token_out}")

    token_in = resolve_token(swap.token_in)
    if token_in is None:
        raise TokenNotFoundError(swap.token_in)
    token_out = resolve_token(swap.token_out)
    if token_out is None:
        raise TokenNotFoundError(swap.token_out)
    if token_in.address == token_out.address:
        raise SameTokenError()
    if to_atomic(swap.amount, token_in.decimals) > chain_rpc.MAX_UINT256:
        raise InvalidInputError("Amount is too large to simulate")

    output_amount, estimated = quote_swap(token_in, token_out, swap.amount)
    execution_price = output_amount / swap.amount
    price_impact = price_impact_percent(execution_price, token_in, token_out)

    logger.info(f"Simulation: {swap.amount} {token_in.symbol} -> {output_amount:.4f} {token_out.symbol}")

    return CapabilityResult.ok(
        {
            "action": "swap",
            "input": {
                "token": token_in.symbol,
                "amount": swap.amount,
                "amountFormatted": f"{swap.amount:,} {token_in.symbol}",
            },
            "output": {
                "token": token_out.symbol,
                "amount": f"{output_amount:.{min(token_out.decimals, 8)}f}",
                "amountFormatted": f"{output_amount:,.4f} {token_out.symbol}",
            },
            "executionPrice": execution_price,
            "priceImpactPercent": price_impact,
            "route": [token_in.symbol, token_out.symbol],
            "dex": "VVS Finance",
            "estimatedGas": "~150,000 gas",
            "estimated": estimated,
        },
        LIMITATIONS,
        simulation_warnings(token_in, swap.amount, price_impact, estimated),
    )


DESCRIPTOR = CapabilityDescriptor(
    slug=SLUG,
    name="Transaction Simulator",
    description="Preview swap output, price impact, and route before executing",
    price=Decimal("0.03"),
    limitations=LIMITATIONS,
    input_model=TxSimulateInput,
    executor=execute_tx_simulate,
)
