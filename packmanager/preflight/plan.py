# packmanager/preflight/plan.py
from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from packmanager.preflight.planner import PreflightBucket, PreflightResult

__all__ = ["PageAction", "PageOverride", "PlanActions", "PlannedPage", "Plan", "resolvePlan"]



class PageAction(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"
    RENAME = "rename"



class PageOverride(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    action: PageAction | None = None
    renameTo: str | None = None
    backup: bool = False



class PlanActions(BaseModel):
    """Operator choices layered over the safe defaults."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    globalPrefix: str | None = None
    pages: dict[str, PageOverride] = Field(default_factory=dict)



class PlannedPage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    title: str
    finalTitle: str
    action: PageAction
    backup: bool = False



class Plan(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    pages: list[PlannedPage] = Field(default_factory=list)
    summary: dict[str, int] = Field(
        default_factory=lambda: {"create": 0, "update": 0, "skip": 0, "rename": 0, "backup": 0},
    )



_COLLISIONS = (PreflightBucket.PACK_PACK_CONFLICT, PreflightBucket.EXTERNAL_COLLISION)



def _defaultAction(bucket: PreflightBucket | None) -> PageAction:
    if bucket == PreflightBucket.CREATE:
        return PageAction.CREATE
    if bucket in _COLLISIONS:
        return PageAction.SKIP
    return PageAction.UPDATE



def resolvePlan(
    titles: Iterable[str],
    preflight: PreflightResult,
    actions: PlanActions | Mapping[str, Any] | None = None,
) -> Plan:
    """
    Deterministic per-page plan. Without overrides: create what is missing,
    update what this source owns, skip collisions. A globalPrefix turns skipped
    collisions into renames to "<globalPrefix>/<title>"; an explicit renameTo
    wins over the prefix.
    """
    if actions is None:
        actions = PlanActions()
    elif not isinstance(actions, PlanActions):
        actions = PlanActions.model_validate(actions)
    globalPrefix = (actions.globalPrefix or "").strip().rstrip("/") or None
    
    plan = Plan()
    for title in dict.fromkeys(titles):
        override = actions.pages.get(title) or PageOverride()
        bucket = preflight.bucketOf(title)
        action = override.action or _defaultAction(bucket)
        
        if action == PageAction.SKIP and globalPrefix and bucket in _COLLISIONS:
            action = PageAction.RENAME
        
        finalTitle = title
        if action == PageAction.RENAME:
            if override.renameTo:
                finalTitle = override.renameTo
            elif globalPrefix:
                finalTitle = f"{globalPrefix}/{title}"
            else:
                # Nothing to rename to
                action = PageAction.SKIP
        
        backup = override.backup and action == PageAction.UPDATE
        plan.pages.append(PlannedPage(title=title, finalTitle=finalTitle, action=action, backup=backup))
        plan.summary[str(action)] += 1
        if backup:
            plan.summary["backup"] += 1
    return plan
