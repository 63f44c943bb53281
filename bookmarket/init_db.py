"""Create tables and, with --demo, a seller and a buyer to click around with.

    python -m bookmarket.init_db [--reset] [--demo]
"""
import sys
from decimal import Decimal
from werkzeug.security import generate_password_hash
from bookmarket.app import create_app
from bookmarket.db import db
from bookmarket.models import Book, User, UserType

DEMO_PASSWORD = "123456"


def _user(username: str, user_type: UserType, first: str, last: str) -> User:
    u = User.query.filter_by(username=username).first()
    if u:
        return u
    u = User(
        username=username,
        email=f"{username}@example.com",
        password=generate_password_hash(DEMO_PASSWORD),
        first_name=first,
        last_name=last,
        user_type=user_type,
    )
    db.session.add(u)
    db.session.flush()
    return u


def main(argv: list[str]) -> None:
    app = create_app()
    with app.app_context():
        if "--reset" in argv:
            db.drop_all()
        db.create_all()

        if "--demo" in argv:
            seller = _user("seller", UserType.SELLER, "Sam", "Seller")
            _user("buyer", UserType.BUYER, "Bea", "Buyer")
            if not Book.query.filter_by(seller_id=seller.id).first():
                db.session.add_all([
                    Book(title="The Pragmatic Programmer", author="Hunt & Thomas",
                         description="Well-thumbed, a few notes in pencil.",
                         price=Decimal("24.50"), category="Programming", seller_id=seller.id),
                    Book(title="Dune", author="Frank Herbert",
                         description="Paperback, like new.",
                         price=Decimal("9.99"), category="Fiction", seller_id=seller.id),
                ])
            db.session.commit()
            print(f"demo accounts: seller / buyer, password {DEMO_PASSWORD}")

    print("tables ready:", app.config["SQLALCHEMY_DATABASE_URI"])


if __name__ == "__main__":
    main(sys.argv[1:])
