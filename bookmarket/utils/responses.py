from flask import jsonify
from bookmarket.errors import MarketError


def ok(data=None, code=200):
    body = {} if data is None else data
    return jsonify(body), code


def err(e: MarketError):
    """JSON body for a typed error, with the status its kind maps to."""
    return jsonify(e.to_dict()), e.http_status
