"""
Database Schemas for Restaurant Ordering

Each persisted Pydantic model below corresponds to a MongoDB collection.
The collection name is the lowercase class name (e.g., Order -> "order").
Restaurant settings (including the pre-order schedule) live in "restaurant".
"""
import re
from typing import Callable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

TIME_24H_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

Period = Literal["AM", "PM"]
OrderType = Literal["dine-in", "takeaway", "delivery", "pre-order"]
OrderTypeScope = Literal["all", "pre-order", "regular"]
OrderStatus = Literal[
    "pending",
    "pre-order-pending",
    "accepted",
    "ready",
    "denied",
    "completed",
    "cancelled",
    "in-transit",
    "delivered",
]


class ScheduleWindow(BaseModel):
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", description="Calendar date YYYY-MM-DD")
    start_time: str = Field(..., description="Window start, HH:MM 24h")
    end_time: str = Field(..., description="Window end, HH:MM 24h; earlier than start means it spans midnight")

    @model_validator(mode="before")
    @classmethod
    def default_end_time(cls, data):
        if isinstance(data, dict) and not data.get("end_time"):
            data = {**data, "end_time": data.get("start_time")}
        return data

    @field_validator("start_time", "end_time")
    @classmethod
    def check_time(cls, value: str) -> str:
        if not TIME_24H_PATTERN.match(value):
            raise ValueError("time must be HH:MM with hour 00-23 and minute 00-59")
        return value


class PreorderSchedule(BaseModel):
    restrictions_enabled: bool = Field(False, description="Enforce published dates and windows")
    dates: List[ScheduleWindow] = []

    @model_validator(mode="after")
    def unique_dates(self):
        seen = set()
        for entry in self.dates:
            if entry.date in seen:
                raise ValueError(f"duplicate schedule date {entry.date}")
            seen.add(entry.date)
        return self


class Restaurant(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    platform_fee: float = Field(0.0, ge=0)
    platform_fee_enabled: bool = False
    preorder_schedule: PreorderSchedule = Field(default_factory=PreorderSchedule)

    @field_validator("preorder_schedule", mode="before")
    @classmethod
    def missing_schedule(cls, value):
        return value if value is not None else PreorderSchedule()


class TimeSelection(BaseModel):
    date: str = ""
    time: str = ""


class PreorderValidation(BaseModel):
    date: str
    time: str
    date_error: str = ""
    time_error: str = ""

    @computed_field
    @property
    def valid(self) -> bool:
        return not self.date_error and not self.time_error


class OrderItem(BaseModel):
    menu_item_id: str
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(..., gt=0)


class Order(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(None, alias="_id")
    customer_id: str = Field(..., description="Subject id issued by the identity provider")
    customer_name: str = ""
    customer_phone: str = ""
    customer_address: Optional[str] = None
    items: List[OrderItem] = []
    subtotal: float = 0.0
    platform_fee: float = 0.0
    delivery_fee: float = 0.0
    discount: float = 0.0
    voucher_code: Optional[str] = None
    total: float = 0.0
    order_type: OrderType = "takeaway"
    pre_order_fulfillment: Optional[Literal["pickup", "delivery"]] = None
    pre_order_scheduled_at: Optional[float] = Field(None, description="Epoch ms of the scheduled slot")
    status: OrderStatus = "pending"
    denial_reason: Optional[str] = None
    creation_time: Optional[float] = Field(None, description="Server-assigned creation time, epoch ms")
    created_at: Optional[float] = Field(None, description="Legacy creation time, epoch ms")


class OrderFilterConfig(BaseModel):
    customer_id: str = ""
    from_date: Optional[str] = None
    to_date: Optional[str] = None
    status_filter: str = "all"
    order_type: OrderTypeScope = "all"
    custom_filter: Optional[Callable[[Order], bool]] = None
    custom_status_matcher: Optional[Callable[[Order, str], bool]] = None
    custom_sort: Optional[Callable[[Order, Order], float]] = None


class Voucher(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(None, alias="_id")
    code: str = Field(..., min_length=3, max_length=50, pattern=r"^[a-zA-Z0-9_-]+$", description="Code customers enter at checkout")
    type: Literal["percentage", "fixed"]
    value: float = Field(..., ge=0, description="Percent off, or a fixed amount")
    min_order_amount: float = Field(0.0, ge=0)
    max_discount: Optional[float] = Field(None, ge=0, description="Cap for percentage vouchers")
    expires_at: float = Field(..., description="Epoch ms")
    usage_limit: int = Field(..., ge=0)
    usage_count: int = Field(0, ge=0)
    active: bool = True

    @field_validator("code")
    @classmethod
    def upper_code(cls, value: str) -> str:
        return value.upper()


class Deliveryfee(BaseModel):
    barangay: str = Field(..., min_length=1, description="Area name matched against delivery addresses")
    fee: float = Field(..., ge=0)


"""
Notes:
- Order.creation_time is stamped by database.create_document; created_at only
  exists on records written before that field was introduced.
- OrderFilterConfig is never persisted; it is built per query.
"""
