from flask import Blueprint, current_app, request
from bookmarket.auth_mw import optional_user, require_role
from bookmarket.models import Book, User, UserType
from bookmarket.services.catalog import CatalogService, ImageUpload
from bookmarket.utils.parsing import read_payload
from bookmarket.utils.responses import ok

bp = Blueprint("books", __name__, url_prefix="/api")


def catalog() -> CatalogService:
    return current_app.extensions["catalog"]


def book_json(b: Book) -> dict:
    return {
        "id": b.id,
        "title": b.title,
        "author": b.author,
        "description": b.description,
        "price": float(b.price),
        "category": b.category,
        "imageUrl": b.image_url or "",
        "sellerId": b.seller_id,
        "published": bool(b.published),
        "createdAt": b.created_at.isoformat() if b.created_at else None,
        "updatedAt": b.updated_at.isoformat() if b.updated_at else None,
    }


def _image_upload() -> ImageUpload | None:
    f = request.files.get("image")
    if f is None or not f.filename:
        return None
    return ImageUpload(data=f.read(), mimetype=f.mimetype or "application/octet-stream", filename=f.filename)


@bp.get("/books")
def list_books():
    category = (request.args.get("category") or "").strip() or None
    return ok([book_json(b) for b in catalog().list_books(category)])


@bp.get("/books/<int:book_id>")
def get_book(book_id: int):
    viewer = optional_user()
    b = catalog().get_book(book_id, viewer.id if viewer else None)
    return ok(book_json(b))


@bp.get("/seller/books")
@require_role(UserType.SELLER)
def seller_books(actor: User):
    return ok([book_json(b) for b in catalog().seller_books(actor.id)])


@bp.post("/books")
@require_role(UserType.SELLER)
def create_book(actor: User):
    b = catalog().create_book(actor.id, read_payload(), _image_upload())
    return ok(book_json(b), 201)


@bp.put("/books/<int:book_id>")
@require_role(UserType.SELLER)
def update_book(book_id: int, actor: User):
    b = catalog().update_book(book_id, actor.id, read_payload(), _image_upload())
    return ok(book_json(b))


@bp.delete("/books/<int:book_id>")
@require_role(UserType.SELLER)
def delete_book(book_id: int, actor: User):
    catalog().delete_book(book_id, actor.id)
    return ok({"message": "Book deleted successfully"})
