# packmanager/commands/models.py
from __future__ import annotations
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from packmanager.core.errors import ErrorKind, PackCommandError

__all__ = [
    "CommandRequest",
    "CommandError",
    "OperationPage",
    "Operation",
    "ApplySummary",
    "CommandResponse",
]



class CommandRequest(BaseModel):
    """One command against the session of (userId, refId)."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    command: str
    source: str = ""                # Content source (repository url or id)
    ref: str = ""                   # Branch/tag of the source
    payload: dict[str, Any] = Field(default_factory=dict)



class CommandError(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    kind: ErrorKind
    message: str
    code: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def fromException(cls, err: PackCommandError) -> CommandError:
        return cls(kind=err.kind, message=err.message, code=err.code, details=err.details)



class OperationPage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str
    finalTitle: str



class Operation(BaseModel):
    """One step for the execution pipeline."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    action: Literal["install", "update", "remove"]
    packId: str
    targetVersion: str | None = None
    pages: tuple[OperationPage, ...] = ()



class ApplySummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    totalOperations: int = 0
    installs: int = 0
    updates: int = 0
    removes: int = 0



class CommandResponse(BaseModel):
    """
    Result of CommandProcessor.execute.
    
    `state` is set for init/refresh (full state), `diff` for every other
    mutating command. `hash` is the content hash of the stored state after the
    command, or None when no state remains (clear, apply, errors without state).
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ok: bool
    command: str
    state: dict[str, Any] | None = None
    diff: dict[str, Any] | None = None
    warnings: list[str] = Field(default_factory=list)
    hash: str | None = None
    cascade: list[str] | None = None
    operations: list[Operation] | None = None
    operationId: str | None = None
    summary: ApplySummary | None = None
    error: CommandError | None = None
