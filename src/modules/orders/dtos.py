"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.  These are the
contracts between the API layer (DRF serializers) and the Service layer.
DTOs are immutable (``frozen=True``); ``OrderFilters`` additionally
forbids unknown keys so the sales query is a closed set of options.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from modules.orders.constants import TIMESTAMP_FIELDS, FulfillmentType, OrderStatus

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderAudit, OrderLineItem


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class Actor(BaseModel):
    """Authenticated caller performing a state change."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str = ""
    role: Optional[str] = None


class UpdateOrderStatusDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    new_status: OrderStatus
    actor: Actor
    expected_version: int = Field(ge=1)
    tracking_number: Optional[str] = None
    courier_name: Optional[str] = None
    cancellation_reason: Optional[str] = None
    delivery_reason: Optional[str] = None
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None


class RejectOrderDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    reason: str
    actor: Actor
    expected_version: int = Field(ge=1)
    notes: Optional[str] = None

    @field_validator("reason")
    @classmethod
    def reason_must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("A rejection reason is required.")
        return v


class OrderFilters(BaseModel):
    """Sales listing options. An empty ``statuses`` list means every status."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    statuses: List[OrderStatus] = Field(default_factory=list)
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def date_range_must_be_ordered(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to.")
        return self


class CreateOrderLineDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int = Field(ge=1)
    size: str = ""
    color: str = ""


class CreateOrderDTO(BaseModel):
    """Checkout request.

    Validates:
    - ``lines`` must contain at least one line.
    - Each line quantity must be positive.
    """

    model_config = ConfigDict(frozen=True)

    customer_email: str
    lines: List[CreateOrderLineDTO]
    fulfillment_type: FulfillmentType = FulfillmentType.SHIPPING
    user_id: Optional[int] = None
    promotional_code: Optional[str] = None
    points_discount_cents: int = Field(default=0, ge=0)

    @field_validator("lines")
    @classmethod
    def lines_must_not_be_empty(cls, v: List[CreateOrderLineDTO]) -> List[CreateOrderLineDTO]:
        if not v:
            raise ValueError("Order must have at least one line.")
        return v

    @field_validator("promotional_code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip().upper() or None


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderLineOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    product_id: UUID
    product_name: str
    quantity: int
    size: str
    color: str
    original_unit_price_cents: int
    discount_cents: int
    unit_price_cents: int
    discount_source: str
    promotion_id: Optional[UUID]

    @classmethod
    def from_entity(cls, line: OrderLineItem) -> OrderLineOutputDTO:
        return cls(
            id=line.id,
            product_id=line.product_id,
            product_name=line.product_name,
            quantity=line.quantity,
            size=line.size,
            color=line.color,
            original_unit_price_cents=line.original_unit_price_cents,
            discount_cents=line.discount_cents,
            unit_price_cents=line.unit_price_cents,
            discount_source=line.discount_source,
            promotion_id=line.promotion_id,
        )


class OrderSnapshot(BaseModel):
    """Read model of an order as returned to collaborators."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    order_number: str
    customer_email: str
    status: str
    fulfillment_type: str
    version: int
    subtotal_cents: int
    code_discount_cents: int
    points_discount_cents: int
    total_cents: int
    tracking_number: str
    courier_name: str
    shipping_notes: str
    cancellation_reason: str
    rejection_reason: str
    delivery_reason: str
    delivery_attempts: int
    invoice_reference: str
    timestamps: Dict[str, Optional[datetime]]
    created_at: datetime
    updated_at: datetime
    lines: List[OrderLineOutputDTO] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, order: Order, include_lines: bool = True) -> OrderSnapshot:
        return cls(
            id=order.id,
            order_number=order.order_number,
            customer_email=order.customer_email,
            status=order.status,
            fulfillment_type=order.fulfillment_type,
            version=order.version,
            subtotal_cents=order.subtotal_cents,
            code_discount_cents=order.code_discount_cents,
            points_discount_cents=order.points_discount_cents,
            total_cents=order.total_cents,
            tracking_number=order.tracking_number,
            courier_name=order.courier_name,
            shipping_notes=order.shipping_notes,
            cancellation_reason=order.cancellation_reason,
            rejection_reason=order.rejection_reason,
            delivery_reason=order.delivery_reason,
            delivery_attempts=order.delivery_attempts,
            invoice_reference=order.invoice_reference,
            timestamps={name: getattr(order, name) for name in TIMESTAMP_FIELDS.values()},
            created_at=order.created_at,
            updated_at=order.updated_at,
            lines=(
                [OrderLineOutputDTO.from_entity(line) for line in order.lines.all()]
                if include_lines
                else []
            ),
        )


class AuditEntryDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    action: str
    previous_status: Optional[str]
    new_status: str
    actor_id: str
    actor_email: str
    notes: str
    metadata: Dict[str, Any]
    created_at: datetime

    @classmethod
    def from_entity(cls, entry: OrderAudit) -> AuditEntryDTO:
        return cls(
            id=entry.id,
            action=entry.action,
            previous_status=entry.previous_status,
            new_status=entry.new_status,
            actor_id=entry.actor_id,
            actor_email=entry.actor_email,
            notes=entry.notes,
            metadata=entry.metadata,
            created_at=entry.created_at,
        )


class AvailableTransitionsDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    current_status: str
    fulfillment_type: str
    version: int
    available: List[str]
    progress: int


class SalesPageDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    orders: List[OrderSnapshot]
    total: int
    limit: int
    offset: int


class DashboardStatsDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    sales_today: int
    revenue_today_cents: int
    orders_today: int
    pending_orders: int
