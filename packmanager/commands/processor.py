# packmanager/commands/processor.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from packmanager.app.settings import settingsBool
from packmanager.commands.handlers import COMMAND_HANDLERS, STATELESS_COMMANDS, CommandContext, HandlerResult
from packmanager.commands.models import CommandError, CommandRequest, CommandResponse
from packmanager.commands.schemas import normalizeCommandName, validatePayload
from packmanager.content.lookup import TargetContentLookup
from packmanager.content.providers import InstalledProvider, ManifestProvider
from packmanager.core.errors import InvalidInputError, PackCommandError, PackNotFoundError
from packmanager.core.logger import clearLogContext, setLogContext
from packmanager.packs.graph import PackGraphCache
from packmanager.packs.resolver import DependencyResolver
from packmanager.sessions.diff import computeDiff
from packmanager.sessions.state import SelectionState, SessionKey
from packmanager.sessions.store import InMemorySessionStore, SessionStore

logger = logging.getLogger(__name__)

__all__ = ["CommandProcessor"]



class CommandProcessor:
    """
    Runs one command against the session of a SessionKey.
    
    Every PackCommandError raised while handling a command ends up as
    CommandResponse(ok=False, error=...). Anything else is a bug and is logged
    and re-raised.
    """
    def __init__(
        self,
        *,
        manifests: ManifestProvider,
        installed: InstalledProvider,
        store: SessionStore | None = None,
        lookup: TargetContentLookup | None = None,
        resolver: DependencyResolver | None = None,
        graphCache: PackGraphCache | None = None,
    ) -> None:
        self.manifests = manifests
        self.installed = installed
        self.store: SessionStore = store if store is not None else InMemorySessionStore()
        self.lookup = lookup
        self.resolver = resolver or DependencyResolver(
            blockMajorChanges=settingsBool("updates.blockMajorChanges", True),
        )
        self.graphCache = graphCache or PackGraphCache()
    
    def execute(self, key: SessionKey, request: CommandRequest | Mapping[str, Any]) -> CommandResponse:
        commandLabel = str(request.get("command", "")) if isinstance(request, Mapping) else request.command
        setLogContext(userId=key.userId, refId=key.refId, command=commandLabel)
        try:
            return self._execute(key, request, commandLabel)
        except PackCommandError as err:
            logger.info("Command '%s' failed (%s): %s", commandLabel, err.kind, err.message)
            return CommandResponse(ok=False, command=commandLabel, error=CommandError.fromException(err))
        except Exception:
            logger.exception("Unexpected failure while handling '%s'", commandLabel)
            raise
        finally:
            clearLogContext()
    
    def _execute(self, key: SessionKey, request: CommandRequest | Mapping[str, Any], commandLabel: str) -> CommandResponse:
        if not isinstance(request, CommandRequest):
            try:
                request = CommandRequest.model_validate(request)
            except ValidationError as err:
                raise InvalidInputError(f"Malformed command request: {err}", code="invalid_request") from err
        
        command = normalizeCommandName(request.command)
        payload = validatePayload(command, request.payload)
        
        state = self.store.get(key)
        if state is None and command not in STATELESS_COMMANDS:
            raise PackNotFoundError(
                f"No session state for {key}; run init first",
                code="no_state",
                details={"userId": key.userId, "refId": key.refId},
            )
        
        previous = state.copy() if state is not None else None
        ctx = self._context(key, request, state)
        result = COMMAND_HANDLERS[command](ctx, payload)
        
        if result.clearSession:
            self.store.clear(key)
        elif result.state is not None:
            result.state.touch()
            self.store.save(result.state)
        
        logger.debug("Command '%s' done with %d warnings", command, len(result.warnings))
        return self._response(command, previous, result)
    
    def _context(self, key: SessionKey, request: CommandRequest, state: SelectionState | None) -> CommandContext:
        manifest = self.manifests.listPacks(request.source, request.ref)
        return CommandContext(
            key=key,
            state=state,
            manifest=manifest,
            graph=self.graphCache.get(manifest),
            installed=self.installed.listInstalled(request.source, request.ref),
            resolver=self.resolver,
            lookup=self.lookup,
        )
    
    def _response(self, command: str, previous: SelectionState | None, result: HandlerResult) -> CommandResponse:
        response = CommandResponse(
            ok=True,
            command=command,
            warnings=list(result.warnings),
            cascade=result.cascade,
            operations=result.operations,
            operationId=result.operationId,
            summary=result.summary,
        )
        if result.state is None:
            return response
        
        response.hash = result.state.computeHash()
        if result.fullState:
            response.state = result.state.toDict()
        else:
            response.diff = computeDiff(previous, result.state)
        return response
