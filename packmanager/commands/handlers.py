# packmanager/commands/handlers.py
from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from packmanager.app.settings import settings, settingsInt
from packmanager.commands.models import ApplySummary, Operation, OperationPage
from packmanager.content.lookup import TargetContentLookup
from packmanager.core.errors import (
    CascadeRequiredError,
    DependencyConflictError,
    DependencyCycleError,
    NoOperationsError,
    PackNotFoundError,
)
from packmanager.core.ids import operationId
from packmanager.packs.graph import PackGraph
from packmanager.packs.resolver import DependencyResolver
from packmanager.packs.types import InstalledPack, Manifest, PackDefinition
from packmanager.sessions.state import (
    ConflictType,
    PackAction,
    PackSelection,
    PageSelection,
    SelectionState,
    SessionKey,
    deriveAction,
    pageTitle,
)

logger = logging.getLogger(__name__)

__all__ = [
    "CommandContext",
    "HandlerResult",
    "CommandHandler",
    "COMMAND_HANDLERS",
    "seedState",
    "resolveSelection",
    "deriveActions",
    "detectConflicts",
    "buildOperations",
    "graphWarnings",
    "STATELESS_COMMANDS",
]



@dataclass(slots=True)
class CommandContext:
    key: SessionKey
    state: SelectionState | None    # Stored session, None before init
    manifest: Manifest
    graph: PackGraph
    installed: list[InstalledPack]
    resolver: DependencyResolver
    lookup: TargetContentLookup | None = None



@dataclass(slots=True)
class HandlerResult:
    state: SelectionState | None
    warnings: list[str] = field(default_factory=list)
    fullState: bool = False         # Return the whole state instead of a diff
    clearSession: bool = False      # Delete the stored session afterwards
    cascade: list[str] | None = None
    operations: list[Operation] | None = None
    operationId: str | None = None
    summary: ApplySummary | None = None



CommandHandler = Callable[[CommandContext, dict[str, Any]], HandlerResult]


# ----- Shared steps -----

def _seedPack(definition: PackDefinition, manifest: Manifest, currentVersion: str | None) -> PackSelection:
    prefix = definition.effectivePrefix
    pages: dict[str, PageSelection] = {}
    for key in definition.pages:
        pageDef = manifest.pageDefinition(key)
        pagePrefix = pageDef.defaultPrefix if pageDef is not None and pageDef.defaultPrefix is not None else prefix
        title = pageTitle(pagePrefix, key)
        pages[key] = PageSelection(name=key, defaultTitle=title, finalTitle=title)
    
    pack = PackSelection(
        currentVersion=currentVersion,
        targetVersion=definition.version,
        prefix=prefix,
        pages=pages,
    )
    # Installed packs start out selected
    if currentVersion is not None:
        pack.markSelected()
    return pack



def _installedVersions(installed: list[InstalledPack]) -> dict[str, str]:
    return {pack.name: pack.version if pack.version is not None else "0.0.0" for pack in installed}



def seedState(key: SessionKey, manifest: Manifest, installed: list[InstalledPack]) -> SelectionState:
    """
    Fresh session: one entry per manifest pack in manifest order, then one per
    installed pack the manifest no longer knows (unselected, no pages).
    """
    versions = _installedVersions(installed)
    state = SelectionState(refId=key.refId, userId=key.userId)
    for packId, definition in manifest.packs.items():
        state.packs[packId] = _seedPack(definition, manifest, versions.get(packId))
    for packId, version in versions.items():
        if packId not in state.packs:
            state.packs[packId] = PackSelection(currentVersion=version, targetVersion=None, prefix="")
    return state



def graphWarnings(graph: PackGraph) -> list[str]:
    warnings = [f"Pack '{packId}' depends on itself; dependency ignored" for packId in graph.selfLoops]
    for packId, unknown in graph.missing.items():
        warnings.append(f"Pack '{packId}' depends on unknown packs: {', '.join(unknown)}")
    if graph.hasCycle:
        warnings.append(f"Dependency cycle among packs: {', '.join(graph.cycleMembers)}")
    return warnings



def resolveSelection(state: SelectionState, graph: PackGraph, resolver: DependencyResolver) -> list[str]:
    """
    Recomputes auto-selections from the explicit selection, dropping stale ones.
    Returns packs that became auto-selected by this call.
    
    Installed packs are pre-selected at init, so an installed dependency the
    operator deselected is pulled back in as auto-selected.
    """
    autoSelected = resolver.resolveAutoSelections(state.selectedIds(), graph)
    added: list[str] = []
    for packId, pack in state.packs.items():
        if pack.selected:
            continue
        reason = autoSelected.get(packId)
        if reason is None:
            pack.clearSelection()
            continue
        if not pack.autoSelected:
            added.append(packId)
        pack.markAutoSelected(reason)
    return added



def deriveActions(state: SelectionState, manifest: Manifest) -> None:
    for packId, pack in state.packs.items():
        pack.action = deriveAction(pack, inManifest=packId in manifest.packs)



def _invalidTitle(title: str, maxLength: int, forbidden: str) -> bool:
    return not title or len(title) > maxLength or any(char in forbidden for char in title)



def detectConflicts(state: SelectionState, lookup: TargetContentLookup | None) -> list[str]:
    """
    Marks every page of every active pack, clears inactive ones.
    
    Precedence when several apply: title_invalid, duplicate_title, title_exists.
    A title that exists in the target store is not a conflict when the page
    there was written by the same pack.
    """
    maxLength = settingsInt("conflicts.maxTitleLength", 255)
    forbidden = str(settings("conflicts.forbiddenCharacters", "#<>[]|{}"))
    
    activePages: list[tuple[str, str, PageSelection]] = []
    for packId, pack in state.packs.items():
        for pageKey, page in pack.pages.items():
            if pack.active:
                activePages.append((packId, pageKey, page))
            else:
                page.setConflict(None)
    
    titleCounts = Counter(page.finalTitle for _, _, page in activePages)
    warnings: list[str] = []
    for packId, pageKey, page in activePages:
        title = page.finalTitle
        if _invalidTitle(title, maxLength, forbidden):
            page.setConflict(ConflictType.TITLE_INVALID)
            warnings.append(f"Page title '{title}' is not valid (pack: {packId}, page: {pageKey})")
        elif titleCounts[title] > 1:
            page.setConflict(ConflictType.DUPLICATE_TITLE)
            warnings.append(f"Page title '{title}' is used more than once (pack: {packId}, page: {pageKey})")
        elif lookup is not None and lookup.exists(title) and not _ownedBy(lookup, title, packId):
            page.setConflict(ConflictType.TITLE_EXISTS)
            warnings.append(f"Page '{title}' already exists (pack: {packId}, page: {pageKey})")
        else:
            page.setConflict(None)
    return warnings



def _ownedBy(lookup: TargetContentLookup, title: str, packId: str) -> bool:
    provenance = lookup.getProvenance(title)
    return provenance is not None and provenance.packId == packId



def _settle(ctx: CommandContext, state: SelectionState) -> list[str]:
    resolveSelection(state, ctx.graph, ctx.resolver)
    deriveActions(state, ctx.manifest)
    return detectConflicts(state, ctx.lookup)



def _requirePack(state: SelectionState, packId: str) -> PackSelection:
    pack = state.pack(packId)
    if pack is None:
        raise PackNotFoundError(f"Pack '{packId}' not found in session", code="pack_not_found", details={"packId": packId})
    return pack



def _requireState(ctx: CommandContext) -> SelectionState:
    # The processor checks this before dispatch; handlers still never see None
    if ctx.state is None:
        raise PackNotFoundError("No session state; run init first", code="no_state")
    return ctx.state


# ----- Handlers -----

def handleInit(ctx: CommandContext, payload: dict[str, Any]) -> HandlerResult:
    state = seedState(ctx.key, ctx.manifest, ctx.installed)
    warnings = graphWarnings(ctx.graph) + _settle(ctx, state)
    logger.info("Initialized session with %d packs (%d installed)", len(state.packs), len(ctx.installed))
    return HandlerResult(state=state, warnings=warnings, fullState=True)



def handleSelect(ctx: CommandContext, payload: dict[str, Any]) -> HandlerResult:
    state = _requireState(ctx)
    packId = payload["packId"]
    _requirePack(state, packId).markSelected()
    warnings = _settle(ctx, state)
    return HandlerResult(state=state, warnings=warnings)



def handleDeselect(ctx: CommandContext, payload: dict[str, Any]) -> HandlerResult:
    state = _requireState(ctx)
    packId = payload["packId"]
    cascade = bool(payload.get("cascade", False))
    pack = _requirePack(state, packId)
    
    dependents = ctx.resolver.collectDependents(packId, state.activeIds(), ctx.graph)
    if dependents and not cascade:
        raise CascadeRequiredError(packId, dependents)
    
    # Dependents first, then the pack itself; the prune happens in _settle
    for dependent in dependents:
        state.packs[dependent].clearSelection()
    pack.clearSelection()
    
    warnings = _settle(ctx, state)
    if dependents:
        logger.info("Cascade deselected %s with %s", ", ".join(dependents), packId)
        warnings.append(f"Cascade deselected: {', '.join(dependents)}")
    return HandlerResult(state=state, warnings=warnings, cascade=dependents if cascade else None)



def handleSetPageTitle(ctx: CommandContext, payload: dict[str, Any]) -> HandlerResult:
    state = _requireState(ctx)
    packId, pageKey = payload["packId"], payload["pageKey"]
    page = _requirePack(state, packId).pages.get(pageKey)
    if page is None:
        raise PackNotFoundError(
            f"Page '{pageKey}' not found in pack '{packId}'",
            code="page_not_found",
            details={"packId": packId, "pageKey": pageKey},
        )
    page.finalTitle = str(payload["title"]).strip()
    warnings = detectConflicts(state, ctx.lookup)
    return HandlerResult(state=state, warnings=warnings)



def handleSetPackPrefix(ctx: CommandContext, payload: dict[str, Any]) -> HandlerResult:
    state = _requireState(ctx)
    packId = payload["packId"]
    pack = _requirePack(state, packId)
    prefix = str(payload["prefix"]).strip().rstrip("/")
    pack.prefix = prefix
    for pageKey, page in pack.pages.items():
        page.defaultTitle = page.finalTitle = pageTitle(prefix, pageKey)
    warnings = detectConflicts(state, ctx.lookup)
    return HandlerResult(state=state, warnings=warnings)



def handleRefresh(ctx: CommandContext, payload: dict[str, Any]) -> HandlerResult:
    """
    Rebuilds the session from the latest manifest and installed snapshot.
    Explicit selections, prefixes and page titles carry over for packs and
    pages that still exist. A pack installed or uninstalled since the last
    snapshot takes its selection from the new snapshot instead.
    """
    fresh = seedState(ctx.key, ctx.manifest, ctx.installed)
    previous = ctx.state
    if previous is not None:
        for packId, pack in fresh.packs.items():
            before = previous.pack(packId)
            if before is None:
                continue
            # Install status changed outside the session: keep the fresh seed
            if before.installed == pack.installed:
                if before.selected:
                    pack.markSelected()
                else:
                    pack.clearSelection()
            if packId in ctx.manifest.packs and before.prefix != pack.prefix:
                pack.prefix = before.prefix
                for pageKey, page in pack.pages.items():
                    page.defaultTitle = page.finalTitle = pageTitle(before.prefix, pageKey)
            for pageKey, page in pack.pages.items():
                oldPage = before.pages.get(pageKey)
                if oldPage is not None:
                    page.finalTitle = oldPage.finalTitle
    
    warnings = graphWarnings(ctx.graph) + _settle(ctx, fresh)
    return HandlerResult(state=fresh, warnings=warnings, fullState=True)



def handleClear(ctx: CommandContext, payload: dict[str, Any]) -> HandlerResult:
    return HandlerResult(state=None, clearSession=True)



def _applyOrder(state: SelectionState, graph: PackGraph) -> list[str]:
    """Dependencies first when the graph allows it, else session order."""
    try:
        order = graph.topologicalOrder()
    except DependencyCycleError as err:
        logger.warning("Falling back to manifest order for apply: %s", err)
        order = list(graph.packIds)
    order = [packId for packId in order if packId in state.packs]
    known = set(order)
    order.extend(packId for packId in state.packs if packId not in known)
    return order



def buildOperations(state: SelectionState, graph: PackGraph) -> tuple[list[Operation], ApplySummary]:
    """
    Installs and updates in dependency order, then removals with dependents
    before their dependencies. Packs that are unchanged, inactive and not
    installed, or active but marked for removal produce nothing.
    """
    order = _applyOrder(state, graph)
    operations: list[Operation] = []
    summary = ApplySummary()
    
    for packId in order:
        pack = state.packs[packId]
        if not pack.active or pack.action not in (PackAction.INSTALL, PackAction.UPDATE):
            continue
        operations.append(Operation(
            action=str(pack.action),
            packId=packId,
            targetVersion=pack.targetVersion,
            pages=tuple(OperationPage(name=key, finalTitle=page.finalTitle) for key, page in pack.pages.items()),
        ))
        if pack.action == PackAction.INSTALL:
            summary.installs += 1
        else:
            summary.updates += 1
    
    for packId in reversed(order):
        pack = state.packs[packId]
        if pack.active or pack.action != PackAction.REMOVE or not pack.installed:
            continue
        operations.append(Operation(action="remove", packId=packId))
        summary.removes += 1
    
    summary.totalOperations = len(operations)
    return operations, summary



def handleApply(ctx: CommandContext, payload: dict[str, Any]) -> HandlerResult:
    state = _requireState(ctx)
    stateHash = payload.get("stateHash")
    if stateHash and stateHash != state.computeHash():
        logger.warning("Apply requested with stale hash %s (current %s)", stateHash, state.computeHash())
    
    operations, summary = buildOperations(state, ctx.graph)
    if not operations:
        raise NoOperationsError("Nothing to apply", code="no_operations")
    
    updates = {
        op.packId: (state.packs[op.packId].currentVersion, op.targetVersion)
        for op in operations if op.action == "update"
    }
    conflicts = ctx.resolver.checkUpdates(updates, ctx.graph, state.installedVersions())
    blocking = [conflict.toDict() for conflict in conflicts if conflict.blocking]
    if blocking:
        raise DependencyConflictError(blocking)
    
    opId = operationId()
    logger.info(
        "Apply %s: %d installs, %d updates, %d removes",
        opId, summary.installs, summary.updates, summary.removes,
    )
    return HandlerResult(
        state=None,
        warnings=[conflict.message for conflict in conflicts],
        clearSession=True,
        operations=operations,
        operationId=opId,
        summary=summary,
    )



COMMAND_HANDLERS: dict[str, CommandHandler] = {
    "init":             handleInit,
    "select":           handleSelect,
    "deselect":         handleDeselect,
    "setPageTitle":     handleSetPageTitle,
    "setPackPrefix":    handleSetPackPrefix,
    "refresh":          handleRefresh,
    "clear":            handleClear,
    "apply":            handleApply,
}

# Commands that run without a stored session
STATELESS_COMMANDS: frozenset[str] = frozenset({"init", "refresh", "clear"})
