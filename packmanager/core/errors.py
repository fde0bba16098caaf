# packmanager/core/errors.py
from __future__ import annotations

from enum import StrEnum
from typing import Any

__all__ = [
    "ErrorKind",
    "PackCommandError",
    "PackNotFoundError",
    "InvalidInputError",
    "CascadeRequiredError",
    "DependencyConflictError",
    "NoOperationsError",
    "DependencyCycleError",
]



class ErrorKind(StrEnum):
    NOT_FOUND = "NotFound"
    INVALID_INPUT = "InvalidInput"
    CASCADE_REQUIRED = "CascadeRequired"
    DEPENDENCY_CONFLICT = "DependencyConflict"
    NO_OPERATIONS = "NoOperations"



class PackCommandError(RuntimeError):
    """
    Base class for errors a pack command can end with.
    
    These are raised inside handlers and converted into a typed CommandError
    by the CommandProcessor. They never leave the processor as exceptions.
    """
    kind: ErrorKind = ErrorKind.INVALID_INPUT
    
    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message: str = message
        self.code: str | None = code
        self.details: dict[str, Any] = dict(details or {})



class PackNotFoundError(PackCommandError):
    """Unknown pack, page or session."""
    kind = ErrorKind.NOT_FOUND



class InvalidInputError(PackCommandError):
    """Malformed command payload or unknown command."""
    kind = ErrorKind.INVALID_INPUT



class CascadeRequiredError(PackCommandError):
    """Deselect blocked by active dependents. Retry with cascade=True."""
    kind = ErrorKind.CASCADE_REQUIRED
    
    def __init__(self, packId: str, dependents: list[str]) -> None:
        super().__init__(
            f"Cannot deselect pack '{packId}' without cascade. Dependents: {', '.join(dependents)}",
            code="cascade_required",
            details={"packId": packId, "dependents": list(dependents)},
        )
        self.packId = packId
        self.dependents: list[str] = list(dependents)



class DependencyConflictError(PackCommandError):
    """Blocking version conflicts (for example a major-version update)."""
    kind = ErrorKind.DEPENDENCY_CONFLICT
    
    def __init__(self, conflicts: list[dict[str, Any]]) -> None:
        packs = sorted({str(conflict.get("packId")) for conflict in conflicts})
        super().__init__(
            f"Blocking dependency conflicts for: {', '.join(packs)}",
            code="dependency_conflict",
            details={"conflicts": list(conflicts)},
        )
        self.conflicts: list[dict[str, Any]] = list(conflicts)



class NoOperationsError(PackCommandError):
    """Apply was called but nothing would change."""
    kind = ErrorKind.NO_OPERATIONS



class DependencyCycleError(ValueError):
    """Raised when a dependency order is requested for a cyclic graph."""
    
    def __init__(self, message: str, *, remaining: list[str] | None = None) -> None:
        super().__init__(message)
        self.remaining: list[str] = list(remaining or [])
