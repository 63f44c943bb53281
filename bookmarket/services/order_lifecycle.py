"""
Order lifecycle: the legal status graph of an order and who may walk each edge.

    pending --accept(seller)--> accepted --ship(seller)--> shipped --deliver(buyer|seller)--> delivered

`delivered` and `canceled` are terminal. No edge leads into `canceled` yet.

Guards run in a fixed order: the order must exist, the actor must be a party
allowed on the edge, and only then is the current status compared with the
edge's source. Someone outside the order never learns its status.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional
from bookmarket.errors import InvalidTransition, NotFound, Unauthorized, ValidationError
from bookmarket.models import Order, OrderStatus
from bookmarket.services.order_store import ListingLookup, OrderStore

logger = logging.getLogger(__name__)


def _is_seller(order: Order, actor_id: int) -> bool:
    return actor_id == order.seller_id


def _is_party(order: Order, actor_id: int) -> bool:
    return actor_id in (order.buyer_id, order.seller_id)


@dataclass(frozen=True)
class Edge:
    action: str
    source: OrderStatus
    target: OrderStatus
    allowed: Callable[[Order, int], bool]


EDGES = {
    "accept":  Edge("accept",  OrderStatus.PENDING,  OrderStatus.ACCEPTED,  _is_seller),
    "ship":    Edge("ship",    OrderStatus.ACCEPTED, OrderStatus.SHIPPED,   _is_seller),
    "deliver": Edge("deliver", OrderStatus.SHIPPED,  OrderStatus.DELIVERED, _is_party),
}

INITIAL_STATUS = OrderStatus.PENDING
TERMINAL_STATES = {OrderStatus.DELIVERED, OrderStatus.CANCELED}

ALLOWED_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {s: set() for s in OrderStatus}
for _e in EDGES.values():
    ALLOWED_TRANSITIONS[_e.source].add(_e.target)


def can_transition(from_status: OrderStatus, to_status: OrderStatus) -> bool:
    return to_status in ALLOWED_TRANSITIONS[from_status]


def _effects(target: OrderStatus, now: datetime,
             tracking_number: Optional[str] = None,
             tracking_url: Optional[str] = None) -> dict:
    """Column values written when an order enters `target`."""
    if target is OrderStatus.ACCEPTED:
        return {"status": target}
    if target is OrderStatus.SHIPPED:
        return {
            "status": target,
            "tracking_number": tracking_number,
            "tracking_url": tracking_url,
            "shipped_at": now,
        }
    if target is OrderStatus.DELIVERED:
        return {"status": target, "delivered_at": now}
    if target in (OrderStatus.PENDING, OrderStatus.CANCELED):
        raise ValueError(f"no transition leads into {target.value}")
    raise AssertionError(f"unhandled order status {target!r}")


class OrderLifecycle:
    def __init__(self, orders: OrderStore, listings: ListingLookup):
        self.orders = orders
        self.listings = listings

    # ---------- creation ----------
    def create_order(self, listing_id: int, buyer_id: int) -> Order:
        listing = self.listings.get(listing_id)
        if listing is None or not listing.published:
            raise NotFound(f"book {listing_id} not found")

        order = Order(
            book_id=listing.id,
            buyer_id=buyer_id,
            seller_id=listing.seller_id,
            price=listing.price,
            status=INITIAL_STATUS,
        )
        order = self.orders.insert(order)
        logger.info("order %s created: book=%s buyer=%s seller=%s price=%s",
                    order.id, listing.id, buyer_id, listing.seller_id, listing.price)
        return order

    # ---------- transitions ----------
    def accept_order(self, order_id: int, acting_seller_id: int) -> Order:
        return self._transition(EDGES["accept"], order_id, acting_seller_id)

    def ship_order(self, order_id: int, acting_seller_id: int,
                   tracking_number: Optional[str], tracking_url: Optional[str] = None) -> Order:
        tracking_number = tracking_number.strip() if isinstance(tracking_number, str) else ""
        if not tracking_number:
            raise ValidationError("tracking number is required", {"trackingNumber": "required"})
        tracking_url = (tracking_url.strip() or None) if isinstance(tracking_url, str) else None
        return self._transition(EDGES["ship"], order_id, acting_seller_id,
                                tracking_number=tracking_number, tracking_url=tracking_url)

    def deliver_order(self, order_id: int, acting_user_id: int) -> Order:
        return self._transition(EDGES["deliver"], order_id, acting_user_id)

    def _transition(self, edge: Edge, order_id: int, actor_id: int, **extra) -> Order:
        order = self.orders.get(order_id)
        if order is None:
            raise NotFound(f"order {order_id} not found")
        if not edge.allowed(order, actor_id):
            raise Unauthorized(f"not allowed to {edge.action} order {order_id}")
        if order.status is not edge.source:
            raise InvalidTransition(edge.action, order.status)

        fields = _effects(edge.target, datetime.utcnow(), **extra)
        updated = self.orders.update_status(order_id, edge.source, fields)
        if updated is None:
            # lost the race: someone moved or removed the order after our read
            current = self.orders.get(order_id)
            if current is None:
                raise NotFound(f"order {order_id} not found")
            raise InvalidTransition(edge.action, current.status)

        logger.info("order %s %s -> %s by user %s",
                    order_id, edge.source.value, edge.target.value, actor_id)
        return updated

    # ---------- reads ----------
    def get_order(self, order_id: int, acting_user_id: int) -> Order:
        order = self.orders.get(order_id)
        if order is None:
            raise NotFound(f"order {order_id} not found")
        if not _is_party(order, acting_user_id):
            raise Unauthorized(f"not allowed to view order {order_id}")
        return order

    def orders_for_seller(self, seller_id: int, status: Optional[OrderStatus] = None) -> list[Order]:
        return self.orders.list_by_seller(seller_id, status)

    def orders_for_buyer(self, buyer_id: int, status: Optional[OrderStatus] = None) -> list[Order]:
        return self.orders.list_by_buyer(buyer_id, status)
