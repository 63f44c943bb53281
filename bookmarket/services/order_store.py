from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol
from sqlalchemy import select, update
from bookmarket.db import committing, db
from bookmarket.models import Book, Order, OrderStatus


@dataclass(frozen=True)
class ListingView:
    """What the lifecycle engine reads from a listing at purchase time."""
    id: int
    seller_id: int
    price: Decimal
    published: bool


class ListingLookup(Protocol):
    def get(self, listing_id: int) -> Optional[ListingView]: ...


class OrderStore(Protocol):
    def get(self, order_id: int) -> Optional[Order]: ...

    def insert(self, order: Order) -> Order: ...

    def update_status(self, order_id: int, expected_status: OrderStatus, fields: dict) -> Optional[Order]:
        """Apply `fields` only if the row is still in `expected_status`.

        Returns the updated order, or None when no row matched.
        """

    def list_by_seller(self, seller_id: int, status: Optional[OrderStatus] = None) -> list[Order]: ...

    def list_by_buyer(self, buyer_id: int, status: Optional[OrderStatus] = None) -> list[Order]: ...


class SqlListingLookup:
    def get(self, listing_id: int) -> Optional[ListingView]:
        b = db.session.get(Book, listing_id)
        if b is None:
            return None
        return ListingView(id=b.id, seller_id=b.seller_id, price=b.price, published=bool(b.published))


class SqlOrderStore:
    def get(self, order_id: int) -> Optional[Order]:
        return db.session.get(Order, order_id)

    def insert(self, order: Order) -> Order:
        with committing() as s:
            s.add(order)
        return order

    def update_status(self, order_id: int, expected_status: OrderStatus, fields: dict) -> Optional[Order]:
        # single UPDATE ... WHERE status = :expected; the row count decides the winner
        values = dict(fields)
        values["updated_at"] = datetime.utcnow()
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.session.execute(stmt)
            if result.rowcount != 1:
                db.session.rollback()
                return None
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        # commit expired the identity map, so this reloads the row
        return db.session.get(Order, order_id)

    def _list(self, column, user_id: int, status: Optional[OrderStatus]) -> list[Order]:
        q = select(Order).where(column == user_id)
        if status is not None:
            q = q.where(Order.status == status)
        q = q.order_by(Order.created_at.desc(), Order.id.desc())
        return list(db.session.scalars(q))

    def list_by_seller(self, seller_id: int, status: Optional[OrderStatus] = None) -> list[Order]:
        return self._list(Order.seller_id, seller_id, status)

    def list_by_buyer(self, buyer_id: int, status: Optional[OrderStatus] = None) -> list[Order]:
        return self._list(Order.buyer_id, buyer_id, status)
