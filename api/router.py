"""Action hub API router.

Endpoints:
- GET  /                                  hub index (registered integrations)
- POST /actions/{name}[/execute]          execute (inline JSON or streamed body)
- POST /actions/{name}/form               form negotiation
- POST /actions/{name}/oauth_check        probe stored OAuth tokens
- GET  /actions/{name}/oauth              redirect to the provider login
- GET  /actions/{name}/oauth/redirect     provider callback, token post-back

A JSON body carries the envelope and an inline attachment. Any other
content type is treated as a streamed payload; the envelope then travels
in the X-Action-Request header.
"""

import hmac
import html
import logging
import re
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from pydantic import ValidationError as SchemaError
from starlette.requests import ClientDisconnect

from api.schemas import ActionRequestBody
from hub.action import OAuthAction
from hub.config import HubConfig
from hub.dispatcher import Dispatcher, cancel_on_disconnect
from hub.errors import (
    ActionNotFound,
    AuthorizationError,
    DestinationError,
    HubError,
    StreamAborted,
    ValidationError,
)
from hub.log import get_correlation_id
from hub.models import ActionRequest
from hub.payload import Attachment

log = logging.getLogger(__name__)

router = APIRouter()

ENVELOPE_HEADER = "X-Action-Request"
TOKEN_PATTERN = re.compile(r'^Token token="(?P<token>[^"]+)"$')
CLOSE_WINDOW_HTML = "<html><script>window.close()</script>Login successful, you may close this window.</html>"


# ============================================================================
# Dependencies
# ============================================================================

def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_config(request: Request) -> HubConfig:
    return request.app.state.config


async def require_hub_token(request: Request, config: HubConfig = Depends(get_config)) -> None:
    """Check `Authorization: Token token="..."` when a hub secret is set."""
    if not config.hub_secret:
        return
    match = TOKEN_PATTERN.match(request.headers.get("authorization", ""))
    if not match or not hmac.compare_digest(match.group("token"), config.hub_secret):
        raise HTTPException(status_code=401, detail="Invalid hub token")


def _known_action(name: str, dispatcher: Dispatcher) -> None:
    if name not in dispatcher.registry:
        raise HTTPException(status_code=404, detail=f"No action named {name}")


async def _body_stream(request: Request) -> AsyncIterator[bytes]:
    try:
        async for chunk in request.stream():
            yield chunk
    except ClientDisconnect as exc:
        raise StreamAborted("caller disconnected during upload") from exc


async def read_action_request(request: Request) -> ActionRequest:
    """Build an ActionRequest from either body flavour."""
    content_type = request.headers.get("content-type", "")
    try:
        if not content_type or content_type.startswith("application/json"):
            raw = await request.body()
            body = ActionRequestBody.model_validate_json(raw) if raw else ActionRequestBody()
            action_request = body.to_request()
        else:
            envelope = request.headers.get(ENVELOPE_HEADER)
            body = ActionRequestBody.model_validate_json(envelope) if envelope else ActionRequestBody()
            extension = body.attachment.extension if body.attachment else None
            attachment = Attachment.from_stream(
                _body_stream(request),
                mime=content_type,
                file_extension=extension,
            )
            action_request = body.to_request(attachment=attachment)
    except SchemaError as exc:
        raise HTTPException(status_code=400, detail=f"Malformed action request: {exc.errors()}") from exc
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc

    if not action_request.webhook_id:
        action_request.webhook_id = get_correlation_id()
    return action_request


# ============================================================================
# Index
# ============================================================================

@router.get("/", dependencies=[Depends(require_hub_token)])
async def index(
    dispatcher: Dispatcher = Depends(get_dispatcher),
    config: HubConfig = Depends(get_config),
):
    """List registered integrations."""
    return {
        "label": config.label,
        "integrations": [a.describe(config) for a in dispatcher.registry.actions()],
    }


# ============================================================================
# Execute / form
# ============================================================================

@router.post("/actions/{name}", dependencies=[Depends(require_hub_token)])
@router.post("/actions/{name}/execute", dependencies=[Depends(require_hub_token)])
async def execute_action(
    name: str,
    request: Request,
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """Run an action; the caller's disconnect aborts the transfer."""
    _known_action(name, dispatcher)
    action_request = await read_action_request(request)
    attachment = action_request.attachment

    try:
        if attachment is not None and attachment.is_streaming:
            # The body is still being read; a disconnect surfaces as StreamAborted
            result = await dispatcher.execute(name, action_request)
        else:
            result = await cancel_on_disconnect(
                dispatcher.execute(name, action_request),
                request.is_disconnected,
            )
    except StreamAborted:
        result = None

    if result is None:
        # Nobody is listening any more
        return Response(status_code=499)
    return JSONResponse(result.as_json())


@router.post("/actions/{name}/form", dependencies=[Depends(require_hub_token)])
async def action_form(
    name: str,
    request: Request,
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    _known_action(name, dispatcher)
    action_request = await read_action_request(request)
    form = await dispatcher.form(name, action_request)
    return JSONResponse(form.as_json())


# ============================================================================
# OAuth
# ============================================================================

def _oauth_failure(message: str, status_code: int) -> HTMLResponse:
    return HTMLResponse(f"<html>{html.escape(message)}</html>", status_code=status_code)


def _oauth_action(name: str, dispatcher: Dispatcher) -> OAuthAction:
    try:
        return dispatcher.oauth_action(name)
    except ActionNotFound as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc


@router.post("/actions/{name}/oauth_check", dependencies=[Depends(require_hub_token)])
async def oauth_check(
    name: str,
    request: Request,
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    _oauth_action(name, dispatcher)
    action_request = await read_action_request(request)
    result = await dispatcher.oauth_check(name, action_request)
    return JSONResponse(result.as_json())


@router.get("/actions/{name}/oauth")
async def oauth_start(
    name: str,
    state: str = Query(...),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """Outbound leg: send the user to the provider's consent screen."""
    action = _oauth_action(name, dispatcher)
    try:
        url = await dispatcher.oauth.authorize_url(action, state)
    except AuthorizationError as exc:
        raise HTTPException(status_code=401, detail=exc.message) from exc
    except HubError:
        log.exception("oauth start failed for %s", name)
        return _oauth_failure("Authorization could not be started.", 500)
    return RedirectResponse(url, status_code=302)


@router.get("/actions/{name}/oauth/redirect")
async def oauth_redirect(
    name: str,
    request: Request,
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """Inbound leg: exchange the code and hand the tokens to the caller."""
    action = _oauth_action(name, dispatcher)
    try:
        await dispatcher.oauth.complete(action, dict(request.query_params))
    except AuthorizationError as exc:
        return _oauth_failure(f"Authorization failed: {exc.message}", 401)
    except ValidationError as exc:
        return _oauth_failure(f"Authorization could not be completed: {exc.message}", 400)
    except DestinationError as exc:
        return _oauth_failure(f"Authorization could not be completed: {exc.message}", 502)
    except HubError:
        log.exception("oauth redirect failed for %s", name)
        return _oauth_failure("Authorization could not be completed.", 500)
    return HTMLResponse(CLOSE_WINDOW_HTML)
