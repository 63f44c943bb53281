"""Error kinds raised by the services and mapped to HTTP by the app."""


class MarketError(Exception):
    kind = "error"
    http_status = 500

    def __init__(self, message: str | None = None):
        super().__init__(message or self.kind)
        self.message = message or self.kind

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class NotFound(MarketError):
    kind = "not-found"
    http_status = 404


class Unauthenticated(MarketError):
    kind = "unauthenticated"
    http_status = 401


class Unauthorized(MarketError):
    """Authenticated, but not the party allowed to do this."""
    kind = "unauthorized"
    http_status = 403


class Forbidden(MarketError):
    kind = "forbidden"
    http_status = 403


class InvalidTransition(MarketError):
    kind = "invalid-transition"
    http_status = 409

    def __init__(self, action: str, current_status):
        status = getattr(current_status, "value", current_status)
        super().__init__(f"cannot {action}: order is {status}")
        self.action = action
        self.current_status = status

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["currentStatus"] = self.current_status
        return d


class ValidationError(MarketError):
    kind = "validation"
    http_status = 400

    def __init__(self, message: str, fields: dict | None = None):
        super().__init__(message)
        self.fields = fields or {}

    def to_dict(self) -> dict:
        d = super().to_dict()
        if self.fields:
            d["fields"] = self.fields
        return d


class Conflict(MarketError):
    kind = "conflict"
    http_status = 409


class StorageUnavailable(MarketError):
    kind = "storage-unavailable"
    http_status = 502
