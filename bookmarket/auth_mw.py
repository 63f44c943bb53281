from datetime import datetime, timedelta
from functools import wraps
from flask import current_app, request, session
import jwt
from bookmarket.db import db
from bookmarket.errors import Unauthenticated, Unauthorized
from bookmarket.models import User, UserType

SESSION_KEY = "user_id"


class IdentityLookup:
    """Resolves the caller of a request to a User.

    Accepts `Authorization: Bearer <jwt>` or the signed session cookie set
    at login. Registered on the app and looked up per request.
    """

    def __init__(self, secret: str, algo: str = "HS256", ttl_hours: int = 6):
        self.secret = secret
        self.algo = algo
        self.ttl = timedelta(hours=ttl_hours)

    def issue_token(self, u: User) -> str:
        payload = {
            "sub": str(u.id),
            "username": u.username,
            "role": u.user_type.value,
            "exp": datetime.utcnow() + self.ttl,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algo)

    def _user_id(self, req) -> int:
        auth = req.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            token = auth.split(" ", 1)[1].strip()
            try:
                payload = jwt.decode(token, self.secret, algorithms=[self.algo])
                return int(payload["sub"])
            except (jwt.InvalidTokenError, KeyError, ValueError):
                raise Unauthenticated("invalid or expired token")
        uid = session.get(SESSION_KEY)
        if uid is None:
            raise Unauthenticated("you must be logged in to perform this action")
        return uid

    def resolve(self, req) -> User:
        u = db.session.get(User, self._user_id(req))
        if u is None:
            session.pop(SESSION_KEY, None)
            raise Unauthenticated("unknown user")
        return u


def identity_lookup() -> IdentityLookup:
    return current_app.extensions["identity_lookup"]


def optional_user() -> User | None:
    try:
        return identity_lookup().resolve(request)
    except Unauthenticated:
        return None


def require_user(func):
    """Resolve the caller and hand it to the view as `actor`."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        kwargs["actor"] = identity_lookup().resolve(request)
        return func(*args, **kwargs)

    return wrapper


def require_role(role: UserType):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            actor = identity_lookup().resolve(request)
            if actor.user_type is not role:
                raise Unauthorized(f"only {role.value}s can perform this action")
            kwargs["actor"] = actor
            return func(*args, **kwargs)

        return wrapper

    return decorator
