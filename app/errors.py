"""
Failure taxonomy shared by the service layer.

Services raise these and never format responses; ``app.error_handlers``
is the only place that turns them into HTTP status codes and bodies.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class AppError(Exception):
    """Base class for every categorised failure."""

    status_code: int = 500
    default_message: str = "Server Error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(AppError):
    status_code = 404
    default_message = "Resource not found"


class MalformedIdentifier(AppError):
    """An identifier that cannot exist.  Rendered exactly like NotFound."""

    status_code = 404
    default_message = "Resource not found"


class Forbidden(AppError):
    status_code = 403
    default_message = "Not authorized"


class ValidationFailed(AppError):
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, fields: list[FieldError]) -> None:
        self.fields = list(fields)
        super().__init__("; ".join(f.message for f in self.fields) or None)


class DuplicateKey(AppError):
    status_code = 400

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"{field[:1].upper()}{field[1:]} already exists")


class AuthTokenInvalid(AppError):
    status_code = 401
    default_message = "Invalid token"


class AuthTokenExpired(AppError):
    status_code = 401
    default_message = "Token expired"
