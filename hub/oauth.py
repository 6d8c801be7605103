"""
Action Hub OAuth Flow Coordinator.

Drives the authorization dance without any server-side session:

    NoCredentials            login form links to /actions/{name}/oauth?state=<token>
    AwaitingProviderRedirect provider sends the user back with code + state
    AwaitingExchange         tokens posted to the caller's state_url
    Authorized               caller resubmits with params.state_json

Everything that must survive a hop is a continuation token (see crypto.py).
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import urlencode
import json
import logging

import httpx

from hub.config import HubConfig
from hub.crypto import ActionCrypto
from hub.errors import AuthorizationError, DestinationError, ValidationError
from hub.forms import ActionForm, FormField
from hub.models import ActionRequest, ActionResponse, ActionState

if TYPE_CHECKING:
    from hub.action import OAuthAction

log = logging.getLogger(__name__)


@dataclass
class OAuthState:
    """Provider tokens plus the redirect URI they were issued for."""
    tokens: dict[str, Any] = field(default_factory=dict)
    redirect: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"tokens": self.tokens, "redirect": self.redirect}


class OAuthCoordinator:
    """Builds login forms, validates redirects and carries tokens back."""

    POST_BACK_TIMEOUT = 15.0

    def __init__(
        self,
        config: HubConfig,
        crypto: Optional[ActionCrypto] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._crypto = crypto
        self.transport = transport

    @property
    def crypto(self) -> ActionCrypto:
        # Built on first use so a hub without OAuth destinations needs no key
        if self._crypto is None:
            self._crypto = ActionCrypto(self.config.cipher_master)
        return self._crypto

    # --- NoCredentials ---

    def login_form(self, action: "OAuthAction", request: ActionRequest) -> ActionForm:
        """Single-field form linking the user to the provider login."""
        if not request.state_url:
            raise ValidationError("state_url is required to start authorization", field="state_url")
        token = self.crypto.encrypt_json({"stateurl": request.state_url})
        oauth_url = f"{self.config.oauth_start_url(action.name)}?{urlencode({'state': token})}"
        log.debug("login form for %s", action.name)
        return ActionForm(
            fields=[
                FormField(
                    name="login",
                    type=action.oauth_link_type,
                    label="Log in",
                    description=(
                        f"In order to send to {action.label}, you will need to log in"
                        " once to your account."
                    ),
                    oauth_url=oauth_url,
                )
            ],
            state=ActionState(),
        )

    # --- AwaitingProviderRedirect ---

    def open_state(self, token: str) -> dict[str, Any]:
        """Decrypt the redirect-leg token. Expired or foreign tokens fail."""
        payload = self.crypto.decrypt_json(token, ttl=self.config.oauth_state_ttl)
        if not isinstance(payload, dict) or not payload.get("stateurl"):
            raise AuthorizationError("Continuation token has no return URL")
        return payload

    async def authorize_url(self, action: "OAuthAction", state: str) -> str:
        self.open_state(state)
        return await action.oauth_url(self.config.oauth_redirect_uri(action.name), state)

    # --- AwaitingExchange ---

    async def complete(self, action: "OAuthAction", url_params: dict[str, str]) -> None:
        await action.oauth_fetch_info(url_params, self.config.oauth_redirect_uri(action.name))

    async def post_back(self, state_url: str, state: OAuthState) -> None:
        """POST {tokens, redirect} to the caller. Its only way back in."""
        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                resp = await client.post(
                    state_url,
                    content=json.dumps(state.to_dict()),
                    headers={"Content-Type": "application/json"},
                    timeout=self.POST_BACK_TIMEOUT,
                )
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            log.error("state post-back rejected: HTTP %s", exc.response.status_code)
            raise DestinationError(
                "Caller rejected authorization state", status_code=exc.response.status_code
            ) from exc
        except httpx.HTTPError as exc:
            log.error("state post-back failed: %s", exc)
            raise DestinationError("Could not reach caller to deliver authorization state") from exc

    # --- Authorized ---

    def read_state(self, request: ActionRequest) -> Optional[OAuthState]:
        """Parse `params.state_json`.

        Plain JSON (as posted back) and sealed tokens (as echoed from a form)
        are both accepted. Returns None when there is no usable state yet;
        raises AuthorizationError when the state is present but corrupt.
        """
        raw = request.state_json
        if not raw:
            return None
        if raw.lstrip().startswith("{"):
            try:
                payload = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise AuthorizationError("state_json is not valid JSON") from exc
        else:
            payload = self.crypto.decrypt_json(raw)

        if not isinstance(payload, dict):
            raise AuthorizationError("state_json is not an object")
        tokens = payload.get("tokens")
        redirect = payload.get("redirect")
        if not tokens or not redirect:
            return None
        return OAuthState(tokens=tokens, redirect=redirect)

    def seal_state(self, state: OAuthState) -> ActionState:
        """Encrypt tokens into the form state the caller echoes back."""
        return ActionState(data=self.crypto.encrypt_json(state.to_dict()))

    async def check(self, action: "OAuthAction", request: ActionRequest) -> ActionResponse:
        """Probe the tokens; on any authorization failure tell the caller to reset."""
        try:
            ok = await action.oauth_check(request)
        except AuthorizationError as exc:
            log.info("oauth check failed for %s: %s", action.name, exc.message)
            return ActionResponse.reset(message=exc.message, webhook_id=request.webhook_id)
        if not ok:
            return ActionResponse.reset(webhook_id=request.webhook_id)
        return ActionResponse(success=True, webhook_id=request.webhook_id)
