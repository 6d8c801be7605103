"""
Action Hub Request Dispatcher.

Resolves the action, checks preconditions, runs it, and turns whatever the
plugin raised into a well-formed ActionResponse / ActionForm:

    resolve → validate (type, params, form fields) → stream/materialise
            → execute (in a span) → normalise faults

Nothing a plugin raises escapes as an unstructured failure, except the two
signals that the caller is gone (StreamAborted, CancelledError).
"""
from __future__ import annotations
from typing import Any, Awaitable, Callable, Optional, TypeVar
import asyncio
import logging
import uuid

from hub.action import Action, OAuthAction
from hub.config import HubConfig
from hub.errors import (
    ActionNotFound,
    AuthorizationError,
    DestinationError,
    HubError,
    InternalError,
    StreamAborted,
    ValidationError,
)
from hub.forms import ActionForm
from hub.models import ActionError, ActionRequest, ActionResponse, ActionState, error_with
from hub.oauth import OAuthCoordinator
from hub.registry import ActionRegistry
from hub.tracing import action_span

log = logging.getLogger(__name__)

T = TypeVar("T")

GENERIC_INTERNAL_MESSAGE = "The action failed unexpectedly."


class Dispatcher:
    """Single normalisation point between callers and actions."""

    def __init__(
        self,
        registry: ActionRegistry,
        config: HubConfig,
        oauth: Optional[OAuthCoordinator] = None,
        tracer: Any = None,
    ):
        self.registry = registry
        self.config = config
        self.oauth = oauth or OAuthCoordinator(config)
        self.tracer = tracer

    # --- execute ---

    async def execute(self, name: str, request: ActionRequest) -> ActionResponse:
        correlation_id = request.webhook_id or str(uuid.uuid4())
        try:
            action = self.registry.lookup(name)
            await self._validate(action, request)
            await self._prepare_payload(action, request)
            with action_span(self.tracer, "execute", name, request):
                response = await action.execute(request)
            if not isinstance(response, ActionResponse):
                raise InternalError(
                    f"{name}.execute returned {type(response).__name__}, not ActionResponse"
                )
        except (StreamAborted, asyncio.CancelledError):
            log.info("caller went away during %s, aborting", name)
            raise
        except Exception as exc:
            return self._failure(name, exc, correlation_id, request.webhook_id)

        if response.webhook_id is None:
            response.webhook_id = request.webhook_id
        log.info("action %s finished success=%s", name, response.success)
        return response

    async def _validate(self, action: Action, request: ActionRequest) -> None:
        if request.type not in action.supported_action_types:
            raise ValidationError(
                f"Action {action.name} does not support type '{request.type.value}'",
                field="type",
            )

        for param in action.params:
            if param.required and not request.params.get(param.name):
                raise ValidationError(f"Missing required parameter: {param.name}", field=param.name)

        form = await action.validation_form(request)
        if form is None:
            return
        missing = form.missing_required(request.form_params)
        if missing:
            raise ValidationError(f"Missing required form field: {missing[0]}", field=missing[0])
        pending = form.interactive_pending(request.form_params)
        if pending:
            # The caller must fetch the next form round before executing
            raise ValidationError(f"Form field {pending[0]} needs another form round", field=pending[0])

    async def _prepare_payload(self, action: Action, request: ActionRequest) -> None:
        attachment = request.attachment
        if attachment is None or not attachment.is_streaming:
            return
        if action.uses_streaming:
            return
        # Non-streaming destinations get the whole buffer
        await attachment.materialize()

    def _failure(
        self,
        name: str,
        exc: Exception,
        correlation_id: str,
        webhook_id: Optional[str],
    ) -> ActionResponse:
        error = self._error_for(name, exc, correlation_id)
        response = ActionResponse(
            success=False,
            message=error.message,
            error=error,
            webhook_id=webhook_id,
        )
        if isinstance(exc, AuthorizationError):
            response.state = ActionState.reset()
        return response

    def _error_for(self, name: str, exc: Exception, correlation_id: str) -> ActionError:
        if isinstance(exc, DestinationError):
            log.warning("destination error in %s: %s", name, exc.message)
            error = error_with("bad_gateway", exc.message, correlation_id)
            if exc.status_code:
                error.http_code = exc.status_code
            return error
        if isinstance(exc, HubError) and exc.kind != "internal":
            log.info("%s rejected for %s: %s", exc.kind, name, exc.message)
            return error_with(exc.kind, exc.message, correlation_id)
        log.exception("unexpected failure in %s [%s]", name, correlation_id)
        return error_with("internal", GENERIC_INTERNAL_MESSAGE, correlation_id)

    # --- form ---

    async def form(self, name: str, request: ActionRequest) -> ActionForm:
        """Build the next round of the action's form."""
        correlation_id = request.webhook_id or str(uuid.uuid4())
        try:
            action = self.registry.lookup(name)
            with action_span(self.tracer, "form", name, request):
                form = await action.form(request)
            if not isinstance(form, ActionForm):
                raise InternalError(f"{name}.form returned {type(form).__name__}, not ActionForm")
            return form
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = self._error_for(name, exc, correlation_id)
            form = ActionForm(error=error.message)
            if isinstance(exc, AuthorizationError):
                form.state = ActionState.reset()
            return form

    # --- oauth ---

    def oauth_action(self, name: str) -> OAuthAction:
        action = self.registry.lookup(name)
        if not isinstance(action, OAuthAction):
            raise ActionNotFound(name)
        return action

    async def oauth_check(self, name: str, request: ActionRequest) -> ActionResponse:
        correlation_id = request.webhook_id or str(uuid.uuid4())
        try:
            action = self.oauth_action(name)
            return await self.oauth.check(action, request)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            return self._failure(name, exc, correlation_id, request.webhook_id)


async def cancel_on_disconnect(
    work: Awaitable[T],
    is_disconnected: Callable[[], Awaitable[bool]],
    poll_interval: float = 0.5,
) -> Optional[T]:
    """Run `work`, cancelling it if the caller disconnects first.

    Returns None when the work was cancelled; nobody is left to answer.
    """
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await is_disconnected():
                log.info("caller disconnected, cancelling in-flight action")
                task.cancel()
                try:
                    await task
                except (asyncio.CancelledError, StreamAborted):
                    pass
                return None
    finally:
        if not task.done():
            task.cancel()
