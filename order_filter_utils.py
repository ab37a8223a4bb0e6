"""
Filtering and sorting shared by every order listing.

Listings show the most recent orders first unless a view passes its own
comparator.
"""
from datetime import datetime, time
from functools import cmp_to_key
from typing import Callable, Iterable, List, Optional

from schemas import Order, OrderFilterConfig

START_OF_DAY = time(0, 0, 0, 0)
END_OF_DAY = time(23, 59, 59, 999000)


def get_order_timestamp(order: Order) -> float:
    """Creation time in epoch ms.

    Records written before creation_time existed only carry created_at.
    Orders with neither sort as the oldest.
    """
    if order.creation_time is not None:
        return order.creation_time
    if order.created_at is not None:
        return order.created_at
    return 0


def _local_day_bound(value: Optional[str], at: time) -> Optional[float]:
    if not value:
        return None
    try:
        day = datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None
    return datetime.combine(day, at).timestamp() * 1000


def is_within_date_range(order: Order, from_date: Optional[str] = None, to_date: Optional[str] = None) -> bool:
    if not from_date and not to_date:
        return True

    created = get_order_timestamp(order)
    from_ts = _local_day_bound(from_date, START_OF_DAY)
    to_ts = _local_day_bound(to_date, END_OF_DAY)

    if from_ts is not None and created < from_ts:
        return False
    if to_ts is not None and created > to_ts:
        return False
    return True


def matches_status_filter(
    order: Order,
    status_filter: str,
    custom_status_matcher: Optional[Callable[[Order, str], bool]] = None,
) -> bool:
    if custom_status_matcher is not None:
        return custom_status_matcher(order, status_filter)
    if status_filter == "all":
        return True
    return order.status == status_filter


def sort_by_most_recent(a: Order, b: Order) -> float:
    return get_order_timestamp(b) - get_order_timestamp(a)


def _passes_scope(order: Order, config: OrderFilterConfig) -> bool:
    # an empty customer_id is how owner-wide views skip scoping
    if config.customer_id and order.customer_id != config.customer_id:
        return False
    if config.order_type == "pre-order" and order.order_type != "pre-order":
        return False
    if config.order_type == "regular" and order.order_type == "pre-order":
        return False
    if not is_within_date_range(order, config.from_date, config.to_date):
        return False
    if config.custom_filter is not None and not config.custom_filter(order):
        return False
    return True


def filter_and_sort_orders(orders: Iterable[Order], config: OrderFilterConfig) -> List[Order]:
    """Orders that pass every stage of config, most recent first by default.

    Surviving orders are returned as the same objects, never copies.
    """
    kept = [
        order
        for order in orders
        if _passes_scope(order, config)
        and matches_status_filter(order, config.status_filter, config.custom_status_matcher)
    ]
    comparator = config.custom_sort or sort_by_most_recent
    return sorted(kept, key=cmp_to_key(comparator))
