from decimal import Decimal
from flask import Blueprint, current_app, request
from bookmarket.auth_mw import require_role, require_user
from bookmarket.errors import ValidationError
from bookmarket.models import Order, OrderStatus, User, UserType
from bookmarket.services.order_lifecycle import OrderLifecycle
from bookmarket.utils.parsing import parse_int
from bookmarket.utils.responses import ok

bp = Blueprint("orders", __name__, url_prefix="/api")


def lifecycle() -> OrderLifecycle:
    return current_app.extensions["order_lifecycle"]


def _iso(dt):
    return dt.isoformat() if dt else None


def order_json(o: Order) -> dict:
    return {
        "id": o.id,
        "bookId": o.book_id,
        "buyerId": o.buyer_id,
        "sellerId": o.seller_id,
        "price": float(o.price),
        "status": o.status.value,
        "trackingNumber": o.tracking_number,
        "trackingUrl": o.tracking_url,
        "shippedAt": _iso(o.shipped_at),
        "deliveredAt": _iso(o.delivered_at),
        "createdAt": _iso(o.created_at),
        "updatedAt": _iso(o.updated_at),
    }


def _status_filter() -> OrderStatus | None:
    raw = (request.args.get("status") or "").strip().lower()
    if not raw:
        return None
    try:
        return OrderStatus(raw)
    except ValueError:
        raise ValidationError(f"unknown status: {raw}", {"status": "invalid"})


# ---------- purchase ----------
@bp.post("/transactions")
@require_role(UserType.BUYER)
def create_transaction(actor: User):
    d = request.get_json(silent=True) or {}
    book_id = parse_int(d.get("bookId"), None, 1)
    if book_id is None:
        raise ValidationError("Book ID is required", {"bookId": "required"})
    o = lifecycle().create_order(book_id, actor.id)
    return ok(order_json(o), 201)


@bp.get("/transactions/<int:order_id>")
@require_user
def get_transaction(order_id: int, actor: User):
    return ok(order_json(lifecycle().get_order(order_id, actor.id)))


# ---------- fulfilment ----------
@bp.post("/transactions/<int:order_id>/accept")
@require_user
def accept_transaction(order_id: int, actor: User):
    return ok(order_json(lifecycle().accept_order(order_id, actor.id)))


@bp.post("/transactions/<int:order_id>/ship")
@require_user
def ship_transaction(order_id: int, actor: User):
    d = request.get_json(silent=True) or {}
    o = lifecycle().ship_order(order_id, actor.id, d.get("trackingNumber"), d.get("trackingUrl"))
    return ok(order_json(o))


@bp.post("/transactions/<int:order_id>/deliver")
@require_user
def deliver_transaction(order_id: int, actor: User):
    return ok(order_json(lifecycle().deliver_order(order_id, actor.id)))


# ---------- history ----------
@bp.get("/seller/transactions")
@require_role(UserType.SELLER)
def seller_transactions(actor: User):
    return ok([order_json(o) for o in lifecycle().orders_for_seller(actor.id, _status_filter())])


@bp.get("/buyer/transactions")
@require_user
def buyer_transactions(actor: User):
    return ok([order_json(o) for o in lifecycle().orders_for_buyer(actor.id, _status_filter())])


@bp.get("/seller/stats")
@require_role(UserType.SELLER)
def seller_stats(actor: User):
    """Counts per status and revenue; feeds the seller dashboard chart."""
    orders = lifecycle().orders_for_seller(actor.id)
    counts = {s.value: 0 for s in OrderStatus}
    delivered_revenue = Decimal("0")
    gross = Decimal("0")
    monthly: dict[str, Decimal] = {}
    for o in orders:
        counts[o.status.value] += 1
        if o.status is OrderStatus.CANCELED:
            continue
        gross += o.price
        month = o.created_at.strftime("%Y-%m")
        monthly[month] = monthly.get(month, Decimal("0")) + o.price
        if o.status is OrderStatus.DELIVERED:
            delivered_revenue += o.price
    return ok({
        "totalOrders": len(orders),
        "byStatus": counts,
        "grossSales": float(gross),
        "deliveredRevenue": float(delivered_revenue),
        "monthly": [{"month": m, "sales": float(v)} for m, v in sorted(monthly.items())],
    })
