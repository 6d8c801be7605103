"""
Action Hub Plugin Contract.

Every destination inherits from Action (or OAuthAction). Subclasses set:
    name: str                    stable identifier, used in URLs
    label: str                   display name
    supported_action_types       which payload kinds it accepts
    params: list[ActionParam]    static per-instance configuration
and implement `execute()`, optionally `form()`.

OAuth destinations additionally implement `oauth_url()`, `exchange_code()`
and `oauth_check()`; the redirect/post-back plumbing lives in the base class
and in the OAuthCoordinator.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from hub.config import HubConfig
from hub.errors import AuthorizationError
from hub.forms import ActionForm, FieldType
from hub.models import (
    ActionFormat,
    ActionParam,
    ActionRequest,
    ActionResponse,
    ActionType,
)
from hub.oauth import OAuthCoordinator, OAuthState


class Action(ABC):
    """Base class for all destination integrations."""

    name: str = ""
    label: str = ""
    description: str = ""
    icon_name: Optional[str] = None
    supported_action_types: list[ActionType] = [ActionType.QUERY]
    supported_formats: list[ActionFormat] = []
    params: list[ActionParam] = []
    uses_oauth: bool = False
    uses_streaming: bool = False

    # A dynamic form depends on remote calls; the dispatcher then skips
    # required-field validation rather than rebuilding it before execute.
    dynamic_form: bool = False

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    @abstractmethod
    async def execute(self, request: ActionRequest) -> ActionResponse:
        """Deliver the request's payload to the destination."""

    async def form(self, request: ActionRequest) -> ActionForm:
        return ActionForm()

    @property
    def has_form(self) -> bool:
        return type(self).form is not Action.form

    async def validation_form(self, request: ActionRequest) -> Optional[ActionForm]:
        """The form to check `request` against before execute, if static."""
        if self.dynamic_form or not self.has_form:
            return None
        return await self.form(request)

    def http_client(self, **kwargs: Any) -> httpx.AsyncClient:
        """httpx client for vendor calls; tests swap the transport."""
        kwargs.setdefault("timeout", 30.0)
        return httpx.AsyncClient(transport=self.transport, **kwargs)

    def describe(self, config: HubConfig) -> dict[str, Any]:
        """Integration entry served on the hub index."""
        url = config.action_url(self.name)
        return {
            "name": self.name,
            "label": self.label,
            "description": self.description,
            "icon_name": self.icon_name,
            "url": url,
            "form_url": f"{url}/form" if self.has_form else None,
            "supported_action_types": [t.value for t in self.supported_action_types],
            "supported_formats": [f.value for f in self.supported_formats],
            "params": [p.model_dump(exclude_none=True) for p in self.params],
            "uses_oauth": self.uses_oauth,
            "uses_streaming": self.uses_streaming,
        }


class OAuthAction(Action):
    """Action whose destination client is authorized through OAuth2."""

    uses_oauth = True
    dynamic_form = True
    oauth_link_type: FieldType = FieldType.OAUTH_LINK

    def __init__(
        self,
        oauth: OAuthCoordinator,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(transport=transport)
        self.oauth = oauth

    @abstractmethod
    async def oauth_url(self, redirect_uri: str, encrypted_state: str) -> str:
        """Provider authorize URL carrying `encrypted_state` as its state."""

    @abstractmethod
    async def exchange_code(self, redirect_uri: str, code: str) -> dict[str, Any]:
        """Trade an authorization code for the provider's tokens."""

    @abstractmethod
    async def oauth_check(self, request: ActionRequest) -> bool:
        """Cheap probe that the tokens in `request` still work."""

    async def oauth_fetch_info(self, url_params: dict[str, str], redirect_uri: str) -> None:
        """Provider redirected back: exchange the code, post tokens to the caller.

        The state is decrypted before anything else so a tampered or expired
        token never reaches the provider's token endpoint.
        """
        payload = self.oauth.open_state(url_params.get("state", ""))
        code = url_params.get("code")
        if not code:
            reason = url_params.get("error") or "no authorization code returned"
            raise AuthorizationError(f"Provider denied authorization: {reason}")
        tokens = await self.exchange_code(redirect_uri, code)
        await self.oauth.post_back(
            payload["stateurl"],
            OAuthState(tokens=tokens, redirect=redirect_uri),
        )
