"""Typed errors raised by the service layer.

Every error carries a structured payload (``to_dict``) so that callers such as
the HTTP adapter or the CLI can surface it without parsing messages.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class FieldViolation:
    """A single violated-field descriptor produced by validation."""

    field: str
    code: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "code": self.code, "message": self.message}


class LibraryError(Exception):
    """Base class for recoverable service-layer errors."""

    kind = "library_error"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": str(self)}


class ValidationError(LibraryError, ValueError):
    kind = "validation_error"

    def __init__(self, violations: List[FieldViolation], entity: Optional[str] = None) -> None:
        self.violations = list(violations)
        self.entity = entity
        fields = ", ".join(v.field for v in self.violations) or "unknown"
        prefix = f"Invalid {entity}" if entity else "Invalid input"
        super().__init__(f"{prefix}: {fields}")

    @property
    def fields(self) -> List[str]:
        return [v.field for v in self.violations]

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["violations"] = [v.to_dict() for v in self.violations]
        return payload


class NotFoundError(LibraryError, LookupError):
    kind = "not_found"

    def __init__(self, entity: str, key: Any, field: str = "id") -> None:
        self.entity = entity
        self.key = key
        self.field = field
        super().__init__(f"{entity.capitalize()} with {field} {key} not found.")

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update({"entity": self.entity, "field": self.field, "key": self.key})
        return payload


class ConflictError(LibraryError):
    kind = "conflict"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        if self.field:
            payload["field"] = self.field
        return payload
