import re
from flask import Blueprint, current_app, request, session
from sqlalchemy import or_, select
from werkzeug.security import generate_password_hash, check_password_hash
from bookmarket.auth_mw import SESSION_KEY, identity_lookup, require_user
from bookmarket.db import committing, db
from bookmarket.errors import Conflict, Unauthenticated, ValidationError
from bookmarket.models import User, UserType
from bookmarket.utils.parsing import clean_str
from bookmarket.utils.responses import ok

bp = Blueprint("auth", __name__, url_prefix="/api")

MIN_PASSWORD = 6
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(s) -> str:
    return clean_str(s).lower()


def _login(u: User):
    session.clear()
    session[SESSION_KEY] = u.id
    session.permanent = True
    d = u.to_dict()
    d["token"] = identity_lookup().issue_token(u)
    return d


@bp.post("/register")
def register():
    d = request.get_json(silent=True) or {}
    username = clean_str(d.get("username"))
    email = normalize_email(d.get("email"))
    password = d.get("password") if isinstance(d.get("password"), str) else ""
    first_name = clean_str(d.get("firstName"))
    last_name = clean_str(d.get("lastName"))
    raw_type = clean_str(d.get("userType")).lower()

    problems = {}
    for name, v in (("username", username), ("firstName", first_name), ("lastName", last_name)):
        if not v:
            problems[name] = "required"
    if not EMAIL_RE.match(email):
        problems["email"] = "invalid"
    if len(password) < MIN_PASSWORD:
        problems["password"] = f"must be at least {MIN_PASSWORD} characters"
    if raw_type not in {t.value for t in UserType}:
        problems["userType"] = "must be seller or buyer"
    if problems:
        raise ValidationError("invalid registration data", problems)

    existed = db.session.scalars(
        select(User).where(or_(User.username == username, User.email == email))
    ).first()
    if existed:
        if existed.username == username:
            raise Conflict("username already exists")
        raise Conflict("email already registered")

    u = User(
        username=username,
        email=email,
        password=generate_password_hash(password),
        first_name=first_name,
        last_name=last_name,
        user_type=UserType(raw_type),
    )
    with committing() as s:
        s.add(u)
    current_app.logger.info("registered %s user %s", u.user_type.value, u.username)
    return ok(_login(u), 201)


@bp.post("/login")
def login():
    d = request.get_json(silent=True) or {}
    username = clean_str(d.get("username"))
    password = d.get("password") if isinstance(d.get("password"), str) else ""
    u = db.session.scalars(select(User).where(User.username == username)).first()
    if not u or not check_password_hash(u.password, password):
        raise Unauthenticated("invalid username or password")
    return ok(_login(u))


@bp.post("/logout")
def logout():
    session.clear()
    return ok({"ok": True})


@bp.get("/user")
@require_user
def me(actor: User):
    return ok(actor.to_dict())
