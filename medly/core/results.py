from dataclasses import dataclass
from typing import Any, Optional

from pydantic import ValidationError

VALIDATION = "validation"
CONFLICT = "conflict"
PERMISSION = "permission"
NOT_FOUND = "not_found"
STATE = "state"


@dataclass
class Result:
    """Outcome of a domain operation.

    Services never raise for validation, permission or state failures; they
    return ``Result(success=False, ...)`` with a user-facing message instead.
    """

    success: bool
    data: Any = None
    error: Optional[str] = None
    kind: Optional[str] = None
    warnings: Optional[list[str]] = None

    def as_dict(self) -> dict:
        payload: dict[str, Any] = {"success": self.success}
        if self.error:
            payload["error"] = self.error
        if self.warnings:
            payload["warnings"] = self.warnings
        return payload


def ok(data: Any = None, warnings: Optional[list[str]] = None) -> Result:
    return Result(success=True, data=data, warnings=warnings or None)


def fail(error: str, kind: str = VALIDATION) -> Result:
    return Result(success=False, error=error, kind=kind)


def not_found(label: str) -> Result:
    return fail(f"{label} nao encontrado(a)", NOT_FOUND)


def denied(error: str = "Permissao negada") -> Result:
    return fail(error, PERMISSION)


def from_validation_error(exc: ValidationError) -> Result:
    messages = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part != "__root__")
        message = err.get("msg", "invalido")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        messages.append(f"{field}: {message}" if field else message)
    return fail("; ".join(messages) or "Dados invalidos", VALIDATION)
