import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from sqlalchemy import select
from bookmarket.db import committing, db
from bookmarket.errors import Forbidden, NotFound, ValidationError
from bookmarket.models import Book
from bookmarket.services.image_storage import ImageStorage
from bookmarket.utils.parsing import clean_str, parse_price

logger = logging.getLogger(__name__)

TEXT_FIELDS = ("title", "author", "description", "category")


@dataclass(frozen=True)
class ImageUpload:
    data: bytes
    mimetype: str
    filename: str


def authorize_listing_mutation(listing: Book, acting_user_id: int) -> None:
    """Only the seller who owns a listing may change it or its cover."""
    if listing.seller_id != acting_user_id:
        raise Forbidden("you can only modify your own books")


def _book_fields(data: dict, partial: bool) -> dict:
    fields, problems = {}, {}
    for name in TEXT_FIELDS:
        if partial and name not in data:
            continue
        v = clean_str(data.get(name))
        if not v:
            problems[name] = "required"
        else:
            fields[name] = v
    if not partial or "price" in data:
        try:
            fields["price"] = parse_price(data.get("price"))
        except ValidationError as e:
            problems.update(e.fields)
    if "published" in data:
        if not isinstance(data["published"], bool):
            problems["published"] = "must be true or false"
        else:
            fields["published"] = data["published"]
    if problems:
        raise ValidationError("invalid book data", problems)
    return fields


class CatalogService:
    def __init__(self, storage: ImageStorage):
        self.storage = storage

    def _discard(self, file_id: str) -> None:
        # best effort: a leftover asset is harmless, a failed request is not
        try:
            self.storage.delete(file_id)
        except Exception as e:
            logger.warning("could not delete stored image %s: %s", file_id, e)

    # ---------- reads ----------
    def list_books(self, category: Optional[str] = None) -> list[Book]:
        q = select(Book).where(Book.published.is_(True))
        if category:
            q = q.where(Book.category == category)
        return list(db.session.scalars(q.order_by(Book.created_at.desc(), Book.id.desc())))

    def seller_books(self, seller_id: int) -> list[Book]:
        q = select(Book).where(Book.seller_id == seller_id)
        return list(db.session.scalars(q.order_by(Book.created_at.desc(), Book.id.desc())))

    def get_book(self, book_id: int, viewer_id: Optional[int] = None) -> Book:
        b = db.session.get(Book, book_id)
        # unpublished books are visible to their seller only
        if b is None or (not b.published and b.seller_id != viewer_id):
            raise NotFound(f"book {book_id} not found")
        return b

    def _owned_book(self, book_id: int, acting_user_id: int) -> Book:
        b = db.session.get(Book, book_id)
        if b is None:
            raise NotFound(f"book {book_id} not found")
        authorize_listing_mutation(b, acting_user_id)
        return b

    # ---------- writes ----------
    def create_book(self, seller_id: int, data: dict, image: Optional[ImageUpload] = None) -> Book:
        fields = _book_fields(data, partial=False)
        stored = self.storage.store(image.data, image.mimetype, image.filename) if image else None

        book = Book(seller_id=seller_id, **fields)
        if stored:
            book.image_url, book.image_file_id = stored.url, stored.file_id
        try:
            with committing() as s:
                s.add(book)
        except Exception:
            if stored:
                self._discard(stored.file_id)
            raise
        logger.info("book %s listed by seller %s", book.id, seller_id)
        return book

    def update_book(self, book_id: int, acting_user_id: int, data: dict,
                    image: Optional[ImageUpload] = None) -> Book:
        book = self._owned_book(book_id, acting_user_id)
        fields = _book_fields(data, partial=True)

        # new cover first; the record only switches once we hold its reference
        stored = self.storage.store(image.data, image.mimetype, image.filename) if image else None
        previous = book.image_file_id

        try:
            with committing():
                for k, v in fields.items():
                    setattr(book, k, v)
                if stored:
                    book.image_url, book.image_file_id = stored.url, stored.file_id
                book.updated_at = datetime.utcnow()
        except Exception:
            if stored:
                self._discard(stored.file_id)
            raise

        if stored and previous:
            self._discard(previous)
        return book

    def delete_book(self, book_id: int, acting_user_id: int) -> None:
        book = self._owned_book(book_id, acting_user_id)
        previous = book.image_file_id
        with committing() as s:
            s.delete(book)
        logger.info("book %s deleted by seller %s", book_id, acting_user_id)
        if previous:
            self._discard(previous)
