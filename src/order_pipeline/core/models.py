"""Core domain models.

``Order`` is the only domain entity. Its JSON form (camelCase field names,
money as JSON numbers) is the wire contract between submission and
processing, so field names and declaration order must stay stable.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    StringConstraints,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .enums import OrderStatus

# Money is exact in memory and a plain JSON number on the wire.
Money = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]
NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

# Money must survive the float round trip on the wire and fit Numeric(18, 4).
MONEY_MAX_DIGITS = 15
MONEY_DECIMAL_PLACES = 4
# orders.quantity is a 32-bit INTEGER column.
MAX_QUANTITY = 2**31 - 1


def _digit_count(value: Decimal) -> int:
    """Total digits the way pydantic counts them for ``max_digits``."""
    _, digits, exponent = value.normalize().as_tuple()
    if not isinstance(exponent, int):
        return len(digits)
    if exponent >= 0:
        return len(digits) + exponent
    return max(len(digits), -exponent)


class WireModel(BaseModel):
    """Base for models exchanged as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Submission request / receipt
# ---------------------------------------------------------------------------

class OrderSubmission(WireModel):
    """Client request to place an order."""

    customer_ref: NonEmptyStr
    product_ref: NonEmptyStr
    customer_name: str = ""
    product_name: str = ""
    quantity: int = Field(gt=0, le=MAX_QUANTITY, strict=True)
    unit_price: Decimal = Field(
        ge=0, max_digits=MONEY_MAX_DIGITS, decimal_places=MONEY_DECIMAL_PLACES,
    )
    notes: str | None = None

    @field_validator("unit_price")
    @classmethod
    def _total_fits(cls, value: Decimal, info: ValidationInfo) -> Decimal:
        quantity = info.data.get("quantity")
        if quantity is not None and _digit_count(quantity * value) > MONEY_MAX_DIGITS:
            raise ValueError(
                f"quantity * unitPrice must have at most {MONEY_MAX_DIGITS} digits"
            )
        return value


class SubmissionReceipt(WireModel):
    """What the submitter gets back once the order is queued."""

    order_id: str
    total_amount: Money
    timestamp: datetime


# ---------------------------------------------------------------------------
# Order
# ---------------------------------------------------------------------------

class Order(WireModel):
    """Canonical order representation."""

    id: str
    customer_ref: NonEmptyStr
    product_ref: NonEmptyStr
    customer_name: str = ""
    product_name: str = ""
    quantity: int = Field(gt=0, le=MAX_QUANTITY)
    unit_price: Money = Field(
        ge=0, max_digits=MONEY_MAX_DIGITS, decimal_places=MONEY_DECIMAL_PLACES,
    )
    # quantity * unit_price, fixed at creation
    total_amount: Money = Field(
        max_digits=MONEY_MAX_DIGITS, decimal_places=MONEY_DECIMAL_PLACES,
    )
    status: OrderStatus = OrderStatus.PENDING
    notes: str = ""
    created_at: datetime

    @field_validator("customer_name", "product_name", "notes", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @classmethod
    def from_submission(
        cls,
        submission: OrderSubmission,
        *,
        order_id: str,
        created_at: datetime,
    ) -> Order:
        """Build a new pending order, deriving ``total_amount``."""
        return cls(
            id=order_id,
            customer_ref=submission.customer_ref,
            product_ref=submission.product_ref,
            customer_name=submission.customer_name,
            product_name=submission.product_name,
            quantity=submission.quantity,
            unit_price=submission.unit_price,
            total_amount=submission.quantity * submission.unit_price,
            status=OrderStatus.PENDING,
            notes=submission.notes or "",
            created_at=created_at,
        )

    def with_status(self, status: OrderStatus) -> Order:
        """Return a copy carrying *status*; every other field is unchanged."""
        return self.model_copy(update={"status": status})
