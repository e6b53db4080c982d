# app/capabilities/models.py
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence, Tuple, Type

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

from app.services.chain_rpc import is_valid_address

# USDC has 6 decimals, so $1.00 = 1,000,000 smallest units
USDC_DECIMALS = 6

WarningLevel = Literal["info", "warning", "danger"]
RiskLevel = Literal["low", "medium", "high"]


class ResultWarning(BaseModel):
    """Advisory note attached to a capability result. Never blocks the result."""
    level: WarningLevel
    message: str


class CapabilityResult(BaseModel):
    """
    Outcome of one executor invocation.

    The data payload shape is owned by each capability. Limitations are
    copied from the descriptor when the result is built.
    """
    success: bool
    data: Optional[Dict[str, Any]] = None
    warnings: List[ResultWarning] = Field(default_factory=list)
    limitations: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_data_present(self) -> "CapabilityResult":
        if self.success and self.data is None:
            raise ValueError("successful results must carry data")
        return self

    @classmethod
    def ok(
        cls,
        data: Dict[str, Any],
        limitations: Sequence[str],
        warnings: Optional[List[ResultWarning]] = None,
    ) -> "CapabilityResult":
        return cls(
            success=True,
            data=data,
            warnings=list(warnings or []),
            limitations=list(limitations),
        )


Executor = Callable[[BaseModel], CapabilityResult]


@dataclass(frozen=True)
class CapabilityDescriptor:
    """
    Identity, pricing and behaviour of one invocable capability.

    Instances are immutable; changing a price means registering a new
    descriptor under the same slug.
    """
    slug: str
    name: str
    description: str
    price: Decimal
    limitations: Tuple[str, ...]
    input_model: Type[BaseModel]
    executor: Executor = field(compare=False)

    def __post_init__(self):
        if not self.slug or "/" in self.slug:
            raise ValueError(f"Invalid capability slug: {self.slug!r}")
        price = Decimal(str(self.price))
        if price <= 0:
            raise ValueError(f"Capability '{self.slug}' must have a positive price")
        object.__setattr__(self, "price", price)
        limitations = tuple(self.limitations)
        if not limitations:
            raise ValueError(f"Capability '{self.slug}' must declare at least one limitation")
        object.__setattr__(self, "limitations", limitations)

    @property
    def price_label(self) -> str:
        """Price as shown in the catalogue and challenges, e.g. "$0.01"."""
        if self.price == self.price.quantize(Decimal("0.01")):
            return f"${self.price:.2f}"
        return f"${self.price.normalize()}"

    @property
    def price_atomic(self) -> int:
        """Price in USDC smallest units."""
        scaled = self.price * (10 ** USDC_DECIMALS)
        return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @property
    def resource(self) -> str:
        """Resource identifier bound into payment challenges."""
        return f"/capability/{self.slug}"

    def result(
        self,
        data: Dict[str, Any],
        warnings: Optional[List[ResultWarning]] = None,
    ) -> CapabilityResult:
        return CapabilityResult.ok(data, self.limitations, warnings)

    def metadata(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "price": self.price_label,
            "priceUSDC": float(self.price),
            "limitations": list(self.limitations),
        }


class AddressInput(BaseModel):
    """Input shared by capabilities that take a single account address."""
    address: str

    @field_validator("address")
    @classmethod
    def check_address(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise PydanticCustomError("address_required", "Address is required")
        if not is_valid_address(value):
            raise PydanticCustomError("invalid_address", "Invalid Ethereum address format")
        return value
