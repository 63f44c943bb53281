import json
from decimal import Decimal, InvalidOperation
from flask import request
from bookmarket.errors import ValidationError

# Numeric(10, 2): at most 8 digits before the point
MAX_PRICE = Decimal("1e8")
CENTS = Decimal("0.01")


def parse_int(v, default=None, minv=None, maxv=None):
    # JSON true/false and 2.9 are not ids
    if v is None or v == "" or isinstance(v, bool):
        return default
    if isinstance(v, float) and not v.is_integer():
        return default
    try:
        n = int(v)
    except (TypeError, ValueError, OverflowError):
        return default
    if minv is not None and n < minv:
        return default
    if maxv is not None and n > maxv:
        return default
    return n


def parse_price(v) -> Decimal:
    """Non-negative price with two decimals that fits the price column."""
    if v is None or v == "" or isinstance(v, bool):
        raise ValidationError("price is required", {"price": "required"})
    try:
        d = Decimal(str(v).strip())
        if not d.is_finite() or d < 0:
            raise ValidationError("price must be a non-negative number", {"price": "negative"})
        d = d.quantize(CENTS)
        if d >= MAX_PRICE:
            raise ValidationError("price is too large", {"price": "too large"})
        return d
    except InvalidOperation:
        raise ValidationError("price must be a number", {"price": "not a number"})


def clean_str(v) -> str:
    return v.strip() if isinstance(v, str) else ""


def read_payload() -> dict:
    """JSON body, or the `bookData` JSON field of a multipart form."""
    if request.is_json:
        d = request.get_json(silent=True)
        if not isinstance(d, dict):
            raise ValidationError("request body must be a JSON object")
        return d
    raw = request.form.get("bookData")
    if raw is None:
        return request.form.to_dict()
    try:
        d = json.loads(raw)
    except ValueError:
        raise ValidationError("bookData is not valid JSON")
    if not isinstance(d, dict):
        raise ValidationError("bookData must be a JSON object")
    return d
