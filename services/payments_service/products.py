"""Purchasable product rules: pricing, availability, capacity and enrollment.

Product records are owned by the catalog service and fetched over HTTP; the
functions here only interpret them. Prices are in rupees on the catalog side.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

from services.payments_service.errors import (
    CapacityExceeded,
    InactiveEntity,
    InvalidPrice,
    InvalidProductType,
    NotFound,
)
from services.payments_service.models import ProductType


def _decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")


def _ids(entries: Optional[list], key: Optional[str] = None) -> set[str]:
    ids = set()
    for entry in entries or []:
        if isinstance(entry, dict):
            entry = entry.get(key or "id")
        if entry is not None:
            ids.add(str(entry))
    return ids


def _within_limit(enrolled: Optional[list], limit: Any) -> bool:
    if not limit:
        return True
    return len(enrolled or []) < int(limit)


def _course_price(course: dict) -> Decimal:
    fees = _decimal(course.get("fees"))
    discount = _decimal(course.get("discount"))
    return max(fees - fees * discount / 100, Decimal("0"))


@dataclass(frozen=True)
class ProductRule:
    price: Callable[[dict], Decimal]
    is_active: Callable[[dict], bool]
    has_capacity: Callable[[dict], bool]
    enrolled_ids: Callable[[dict], set[str]]
    snapshot_fields: tuple[str, ...]


PRODUCT_RULES: dict[ProductType, ProductRule] = {
    ProductType.COURSE: ProductRule(
        price=_course_price,
        is_active=lambda p: p.get("is_active") is not False,
        has_capacity=lambda p: _within_limit(
            p.get("enrolled_students"), p.get("max_students")
        ),
        enrolled_ids=lambda p: _ids(p.get("enrolled_students"))
        | _ids(p.get("purchase")),
        snapshot_fields=("fees", "discount"),
    ),
    ProductType.TEST_SERIES: ProductRule(
        price=lambda p: _decimal(p.get("price")),
        is_active=lambda p: p.get("is_active") is not False,
        has_capacity=lambda p: True,
        enrolled_ids=lambda p: _ids(p.get("enrolled_students")),
        snapshot_fields=("price", "number_of_tests"),
    ),
    ProductType.WEBINAR: ProductRule(
        price=lambda p: _decimal(p.get("fees")),
        is_active=lambda p: p.get("is_active") is not False,
        has_capacity=lambda p: _within_limit(
            p.get("student_enrolled"), p.get("seat_limit")
        ),
        enrolled_ids=lambda p: _ids(p.get("student_enrolled")),
        snapshot_fields=("fees", "timing"),
    ),
    ProductType.LIVE_CLASS: ProductRule(
        price=lambda p: _decimal(p.get("live_classes_fee")),
        is_active=lambda p: p.get("is_active") is not False
        and not p.get("is_completed"),
        has_capacity=lambda p: _within_limit(
            p.get("enrolled_students"), p.get("max_students")
        ),
        enrolled_ids=lambda p: _ids(p.get("enrolled_students"), key="student_id"),
        snapshot_fields=("live_classes_fee",),
    ),
}


def get_rule(product_type: ProductType) -> ProductRule:
    rule = PRODUCT_RULES.get(product_type)
    if rule is None:
        raise InvalidProductType(f"Product type '{product_type.value}' cannot be purchased")
    return rule


@dataclass(frozen=True)
class ProductDetails:
    product: dict
    price: Decimal


def price_product(product_type: ProductType, product: Optional[dict]) -> ProductDetails:
    """
    Validate a catalog product and compute its current price in rupees.

    Raises:
        InvalidProductType, NotFound, InactiveEntity, CapacityExceeded, InvalidPrice
    """
    rule = get_rule(product_type)
    if product is None:
        raise NotFound(f"{product_type.value} not found")
    if not rule.is_active(product):
        raise InactiveEntity(f"{product_type.value} is inactive")
    if not rule.has_capacity(product):
        raise CapacityExceeded(f"{product_type.value} has reached capacity")

    price = rule.price(product)
    if price <= 0:
        raise InvalidPrice(f"{product_type.value} has invalid price")
    return ProductDetails(product=product, price=price)


def is_already_enrolled(
    product_type: ProductType, product: dict, student_id: str
) -> bool:
    return str(student_id) in get_rule(product_type).enrolled_ids(product)


def build_product_snapshot(
    product_type: ProductType, product: dict, price: Decimal
) -> dict:
    """Priced and display attributes frozen onto the intent at creation."""
    snapshot = {
        "title": product.get("title"),
        "description": product.get("description"),
        "educator_id": product.get("educator_id"),
    }
    for name in get_rule(product_type).snapshot_fields:
        snapshot[name] = product.get(name)
    snapshot["price"] = str(price)
    return snapshot
