from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Enum, Index
from bookmarket.db import db


class UserType(PyEnum):
    SELLER = "seller"
    BUYER = "buyer"


class OrderStatus(PyEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELED = "canceled"


class User(db.Model):
    __tablename__ = "users"

    id         = db.Column(db.Integer, primary_key=True)
    username   = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password   = db.Column(db.String(255), nullable=False)  # werkzeug hash
    email      = db.Column(db.String(120), unique=True, nullable=False, index=True)
    first_name = db.Column(db.String(80), nullable=False)
    last_name  = db.Column(db.String(80), nullable=False)
    # fixed at registration, never updated
    user_type  = db.Column(Enum(UserType, name="user_type"), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "userType": self.user_type.value,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.username} ({self.user_type.value})>"


class Book(db.Model):
    __tablename__ = "books"

    id            = db.Column(db.Integer, primary_key=True)
    title         = db.Column(db.String(255), nullable=False, index=True)
    author        = db.Column(db.String(255), nullable=False)
    description   = db.Column(db.Text, nullable=False)
    price         = db.Column(db.Numeric(10, 2), nullable=False)
    category      = db.Column(db.String(80), nullable=False, index=True)
    image_url     = db.Column(db.String(500))
    image_file_id = db.Column(db.String(255))  # reference into the image storage
    seller_id     = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    published     = db.Column(db.Boolean, default=True, nullable=False, index=True)
    created_at    = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at    = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Order(db.Model):
    """One purchase of one book; status only moves forward."""
    __tablename__ = "orders"

    id              = db.Column(db.Integer, primary_key=True)
    book_id         = db.Column(db.Integer, db.ForeignKey("books.id", ondelete="SET NULL"), index=True)
    buyer_id        = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    seller_id       = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    price           = db.Column(db.Numeric(10, 2), nullable=False)  # snapshot at purchase time

    status = db.Column(
        Enum(OrderStatus, name="order_status"),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    tracking_number = db.Column(db.String(120))
    tracking_url    = db.Column(db.String(500))
    shipped_at      = db.Column(db.DateTime)
    delivered_at    = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_order_seller_status", "seller_id", "status"),
        Index("ix_order_buyer_created", "buyer_id", "created_at"),
    )


__all__ = [
    "db",
    "User",
    "Book",
    "Order",
    "UserType",
    "OrderStatus",
]
