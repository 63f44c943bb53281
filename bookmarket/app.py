import logging
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from bookmarket.auth_mw import IdentityLookup
from bookmarket.config import Config
from bookmarket.db import db
from bookmarket.errors import MarketError
from bookmarket.routes.auth import bp as auth_bp
from bookmarket.routes.books import bp as books_bp
from bookmarket.routes.orders import bp as orders_bp
from bookmarket.services.catalog import CatalogService
from bookmarket.services.image_storage import build_image_storage
from bookmarket.services.order_lifecycle import OrderLifecycle
from bookmarket.services.order_store import SqlListingLookup, SqlOrderStore
from bookmarket.utils.responses import err


def _register_error_handlers(app: Flask):
    @app.errorhandler(MarketError)
    def market_error(e: MarketError):
        return err(e)

    @app.errorhandler(HTTPException)
    def http_error(e: HTTPException):
        return jsonify(error=e.name.lower().replace(" ", "-"), message=e.description), e.code

    @app.errorhandler(Exception)
    def unexpected(e: Exception):
        db.session.rollback()
        app.logger.exception("unhandled error: %s", e)
        return jsonify(error="internal", message="Internal server error"), 500


def create_app(overrides: dict | None = None, image_storage=None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(level=app.config["LOG_LEVEL"])
    db.init_app(app)

    app.extensions["identity_lookup"] = IdentityLookup(
        app.config["JWT_SECRET"], app.config["JWT_ALGO"], app.config["JWT_TTL_HOURS"]
    )
    app.extensions["order_lifecycle"] = OrderLifecycle(SqlOrderStore(), SqlListingLookup())
    app.extensions["catalog"] = CatalogService(image_storage or build_image_storage(app))

    app.register_blueprint(auth_bp)
    app.register_blueprint(books_bp)
    app.register_blueprint(orders_bp)
    _register_error_handlers(app)

    @app.get("/")
    def index():
        return jsonify(service="bookmarket", status="ok", prefix="/api")

    @app.get("/health")
    def health():
        return jsonify(ok=True), 200

    with app.app_context():
        db.create_all()

    return app


if __name__ == "__main__":
    app = create_app()
    print("bookmarket:", app.config["SQLALCHEMY_DATABASE_URI"])
    app.run(host="0.0.0.0", port=app.config["PORT"], debug=True)
