"""Cart rules and customer phone matching"""

import re
from typing import Any, Iterable, List, Optional, Set, Tuple

from app.errors import CartMixError, ValidationFailed

PHONE_TAIL_DIGITS = 6


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


def line_slug(line: Any) -> str:
    """Restaurant slug of a cart line, derived from the name when absent"""
    slug = getattr(line, "restaurant_slug", None)
    if slug is None and isinstance(line, dict):
        slug = line.get("restaurant_slug")
    if slug:
        return slug
    name = line["restaurant_name"] if isinstance(line, dict) else line.restaurant_name
    return slugify(name)


def split_slugs(lines: Iterable[Any], grocery_slugs: Set[str]) -> Tuple[List[str], List[str]]:
    """Distinct (restaurant, grocery) slugs in first-seen order"""
    restaurants: List[str] = []
    groceries: List[str] = []
    for line in lines:
        slug = line_slug(line)
        bucket = groceries if slug in grocery_slugs else restaurants
        if slug not in bucket:
            bucket.append(slug)
    return restaurants, groceries


def check_restaurant_mix(
    lines: Iterable[Any],
    grocery_slugs: Set[str],
) -> Tuple[Optional[str], Optional[str]]:
    """Enforce one restaurant plus one grocery per order.

    Returns ``(restaurant_slug, grocery_slug)``; either may be ``None``.
    """
    lines = list(lines)
    if not lines:
        raise ValidationFailed("Order must have at least one item")
    restaurants, groceries = split_slugs(lines, grocery_slugs)
    if len(restaurants) > 1 or len(groceries) > 1:
        raise CartMixError()
    return (restaurants[0] if restaurants else None, groceries[0] if groceries else None)


def digits(phone: Optional[str]) -> str:
    return re.sub(r"\D", "", phone or "")


def phones_match(order_phone: Optional[str], given_phone: Optional[str]) -> bool:
    """Compare the last six digits so 0917... and +63917... match"""
    stored = digits(order_phone)
    given = digits(given_phone)
    if not stored or not given:
        return False
    if len(stored) >= 4 and len(given) >= 4:
        return stored[-PHONE_TAIL_DIGITS:] == given[-PHONE_TAIL_DIGITS:]
    return stored == given


def phone_tail(phone: Optional[str]) -> str:
    """Last six digits, the key customers are looked up by"""
    return digits(phone)[-PHONE_TAIL_DIGITS:]
