import logging
import os
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from checkout_validation import find_schedule_window, validate_pre_order_selection
from database import (
    DatabaseUnavailable,
    create_document,
    create_voucher,
    db,
    delete_delivery_fee,
    delete_document,
    ensure_indexes,
    find_orders,
    get_delivery_fees,
    get_order,
    get_preorder_schedule,
    get_restaurant,
    get_voucher_by_code,
    get_vouchers,
    increment_voucher_usage,
    save_preorder_schedule,
    update_document,
    upsert_delivery_fee,
)
from order_filter_utils import filter_and_sort_orders
from order_utils import (
    AGGREGATE_STATUS_FILTERS,
    STATUS_FILTER_OPTIONS,
    active_status_matcher,
    calculate_full_order_total,
    calculate_voucher_discount,
    can_edit_order_status,
    customer_cancel_error,
    get_delivery_fee_from_address,
    get_status_label,
    is_delivery_order,
    voucher_error,
)
from schemas import (
    Deliveryfee,
    Order,
    OrderFilterConfig,
    OrderItem,
    OrderStatus,
    OrderTypeScope,
    PreorderSchedule,
    TimeSelection,
    Voucher,
)
from time_utils import (
    HOUR_PLACEHOLDER,
    determine_period,
    format_time_range_12h,
    get_allowed_hours,
    get_allowed_minutes,
)

# Configure logging
LOGLEVEL = os.environ.get("LOGLEVEL", "INFO").upper()
logging.basicConfig(level=LOGLEVEL, format="%(asctime)s %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Restaurant Ordering API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup():
    if db is not None:
        ensure_indexes()


@app.exception_handler(DatabaseUnavailable)
def database_unavailable_handler(request: Request, exc: DatabaseUnavailable):
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


# ===================== Public Endpoints =====================
@app.get("/")
def root():
    return {"message": "Restaurant Ordering API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["connection_status"] = "Connected"
            response["collections"] = db.list_collection_names()
        else:
            response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    response["database_name"] = "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set"
    return response


# ===================== Pre-order Schedule =====================
@app.get("/restaurant/preorder-schedule", response_model=PreorderSchedule)
def read_preorder_schedule():
    return get_preorder_schedule()


@app.put("/admin/restaurant/preorder-schedule", response_model=PreorderSchedule)
def replace_preorder_schedule(payload: PreorderSchedule):
    return save_preorder_schedule(payload)


class TimeOptionsResponse(BaseModel):
    date: Optional[str] = None
    window: str = ""
    allowed_hours: List[str]
    allowed_minutes: List[str]
    period: Literal["AM", "PM"]


@app.get("/preorder/time-options", response_model=TimeOptionsResponse)
def preorder_time_options(date: Optional[str] = None, hour: str = HOUR_PLACEHOLDER, period: Optional[Literal["AM", "PM"]] = None):
    """Picker options for a scheduled date; without a published window every option is open."""
    schedule = get_preorder_schedule()
    start_time = end_time = None
    if schedule.restrictions_enabled and date:
        entry = find_schedule_window(date, schedule.dates)
        if entry is not None:
            start_time, end_time = entry.start_time, entry.end_time
    chosen_period = period or determine_period(hour, start_time, end_time)
    return TimeOptionsResponse(
        date=date,
        window=format_time_range_12h(start_time, end_time),
        allowed_hours=get_allowed_hours(start_time, end_time),
        allowed_minutes=get_allowed_minutes(start_time, end_time, hour, chosen_period),
        period=chosen_period,
    )


@app.post("/preorder/validate")
def validate_preorder(selection: TimeSelection):
    return validate_pre_order_selection(selection, get_preorder_schedule())


# ===================== Delivery Fees =====================
@app.get("/delivery-fees", response_model=List[Deliveryfee])
def list_delivery_fees():
    return get_delivery_fees()


@app.put("/admin/delivery-fees", response_model=Deliveryfee)
def save_delivery_fee(payload: Deliveryfee):
    return upsert_delivery_fee(payload)


@app.delete("/admin/delivery-fees/{barangay}")
def remove_delivery_fee(barangay: str):
    ok = delete_delivery_fee(barangay)
    if not ok:
        raise HTTPException(404, "Delivery fee not found")
    return {"deleted": True}


# ===================== Orders =====================
class CreateOrderRequest(BaseModel):
    customer_id: str = Field(..., min_length=1)
    customer_name: str
    customer_phone: str
    customer_address: Optional[str] = None
    items: List[OrderItem]
    order_type: Literal["dine-in", "takeaway", "delivery", "pre-order"] = "takeaway"
    pre_order_fulfillment: Optional[Literal["pickup", "delivery"]] = None
    pre_order_date: str = ""
    pre_order_time: str = ""
    voucher_code: Optional[str] = None


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus
    denial_reason: Optional[str] = None


class CancelOrderRequest(BaseModel):
    customer_id: str = Field(..., min_length=1)


def _scheduled_at_ms(date: str, time: str) -> Optional[float]:
    try:
        return datetime.strptime(f"{date} {time}", "%Y-%m-%d %H:%M").timestamp() * 1000
    except ValueError:
        return None


@app.post("/orders")
def create_order(payload: CreateOrderRequest):
    if not payload.items:
        raise HTTPException(400, "Cart is empty")

    scheduled_at = None
    if payload.order_type == "pre-order":
        if payload.pre_order_fulfillment is None:
            raise HTTPException(400, "Choose pickup or delivery for the pre-order")
        result = validate_pre_order_selection(
            TimeSelection(date=payload.pre_order_date, time=payload.pre_order_time),
            get_preorder_schedule(),
        )
        if not result.valid:
            logger.warning("Rejected pre-order for %s: %s", payload.customer_id, result.date_error or result.time_error)
            raise HTTPException(400, result.date_error or result.time_error)
        scheduled_at = _scheduled_at_ms(result.date, result.time)
        if scheduled_at is None:
            raise HTTPException(400, "Invalid time format.")

    restaurant = get_restaurant()
    subtotal = round(sum(i.price * i.quantity for i in payload.items), 2)
    platform_fee = restaurant.platform_fee if restaurant.platform_fee_enabled else 0.0
    order = Order(
        customer_id=payload.customer_id,
        customer_name=payload.customer_name,
        customer_phone=payload.customer_phone,
        customer_address=payload.customer_address,
        items=payload.items,
        subtotal=subtotal,
        platform_fee=platform_fee,
        order_type=payload.order_type,
        pre_order_fulfillment=payload.pre_order_fulfillment,
        pre_order_scheduled_at=scheduled_at,
        status="pre-order-pending" if payload.order_type == "pre-order" else "pending",
    )
    if is_delivery_order(order):
        order.delivery_fee = get_delivery_fee_from_address(payload.customer_address, get_delivery_fees())

    voucher = None
    if payload.voucher_code:
        voucher = get_voucher_by_code(payload.voucher_code)
        error = voucher_error(voucher, subtotal)
        if error:
            raise HTTPException(400, error)
        # discount never exceeds the subtotal
        order.discount = round(min(calculate_voucher_discount(voucher, subtotal), subtotal), 2)
        order.voucher_code = voucher.code
    order.total = round(calculate_full_order_total(subtotal, order.platform_fee, order.delivery_fee, order.discount), 2)

    if voucher is not None and not increment_voucher_usage(voucher):
        raise HTTPException(400, "Voucher usage limit reached")
    order_id = create_document("order", order)
    return {"_id": order_id, "status": order.status, "discount": order.discount, "total": order.total}


@app.get("/orders/status-filters")
def list_status_filters():
    return STATUS_FILTER_OPTIONS


@app.get("/orders/{order_id}")
def read_order(order_id: str):
    order = get_order(order_id)
    if not order:
        raise HTTPException(404, "Order not found")
    return order.model_dump(by_alias=True)


@app.get("/orders")
def list_orders(
    customer_id: str = "",
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
    status: str = "all",
    order_type: OrderTypeScope = "all",
):
    # Concrete statuses can use the status index; aggregate tokens are resolved in memory.
    index_status = None if status in AGGREGATE_STATUS_FILTERS else status
    candidates = find_orders(customer_id=customer_id or None, status=index_status)
    config = OrderFilterConfig(
        customer_id=customer_id,
        from_date=from_date,
        to_date=to_date,
        status_filter=status,
        order_type=order_type,
        custom_status_matcher=active_status_matcher,
    )
    return [order.model_dump(by_alias=True) for order in filter_and_sort_orders(candidates, config)]


@app.put("/orders/{order_id}/cancel")
def cancel_order(order_id: str, payload: CancelOrderRequest):
    order = get_order(order_id)
    if not order:
        raise HTTPException(404, "Order not found")
    if order.customer_id != payload.customer_id:
        raise HTTPException(403, "You can only cancel your own orders")
    error = customer_cancel_error(order)
    if error:
        logger.warning("Refused cancellation of order %s (%s)", order_id, order.status)
        raise HTTPException(400, error)
    update_document("order", order_id, {"status": "cancelled"})
    logger.info("Order %s cancelled by customer", order_id)
    return {"updated": True, "status": "cancelled"}


@app.put("/admin/orders/{order_id}/status")
def update_order_status(order_id: str, payload: UpdateOrderStatusRequest):
    order = get_order(order_id)
    if not order:
        raise HTTPException(404, "Order not found")
    if not can_edit_order_status(order.status):
        logger.warning("Refused status change of order %s from %s", order_id, order.status)
        raise HTTPException(409, f"Order is already {get_status_label(order.status)}")
    if payload.status == "denied" and not payload.denial_reason:
        raise HTTPException(400, "A denial reason is required")
    changes = {"status": payload.status}
    if payload.denial_reason:
        changes["denial_reason"] = payload.denial_reason
    update_document("order", order_id, changes)
    logger.info("Order %s: %s -> %s", order_id, order.status, payload.status)
    return {"updated": True, "status": payload.status}


# ===================== Vouchers =====================
@app.get("/admin/vouchers", response_model=List[Voucher])
def list_vouchers():
    return get_vouchers()


@app.post("/admin/vouchers")
def add_voucher(payload: Voucher):
    voucher_id = create_voucher(payload)
    if voucher_id is None:
        raise HTTPException(400, "Voucher code already exists")
    logger.info("Created voucher %s", payload.code)
    return {"_id": voucher_id, "code": payload.code}


@app.delete("/admin/vouchers/{voucher_id}")
def remove_voucher(voucher_id: str):
    ok = delete_document("voucher", voucher_id)
    if not ok:
        raise HTTPException(404, "Voucher not found")
    return {"deleted": True}


# ===================== Schema Export for Docs =====================
@app.get("/schema")
def get_schema():
    return {
        "collections": [
            "restaurant",
            "deliveryfee",
            "voucher",
            "order"
        ],
        "notes": "Each persisted class in schemas.py maps to a MongoDB collection (lowercase)."
    }


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
