"""Shared fixtures: config, crypto and synthetic destinations."""
import json

import httpx
import pytest

from hub.action import Action, OAuthAction
from hub.config import HubConfig
from hub.crypto import ActionCrypto
from hub.dispatcher import Dispatcher
from hub.errors import AuthorizationError, ValidationError
from hub.forms import ActionForm, FieldType, FormField, FormOption
from hub.models import ActionParam, ActionRequest, ActionResponse, ActionType
from hub.oauth import OAuthCoordinator
from hub.registry import ActionRegistry

CIPHER_MASTER = "test-cipher-master"
STATE_URL = "https://caller.test/state/abc"


class CountingDestination(Action):
    """Streams the attachment and counts bytes without keeping them."""

    name = "counting"
    label = "Counting"
    supported_action_types = [ActionType.QUERY, ActionType.DASHBOARD]
    uses_streaming = True

    def __init__(self, chunk_size: int = 4):
        super().__init__()
        self.chunk_size = chunk_size
        self.calls = 0
        self.bytes_received = 0
        self.largest_chunk = 0
        self.received = bytearray()
        self.keep = True

    async def form(self, request):
        return ActionForm(fields=[
            FormField(name="address", label="Address", required=True),
            FormField(name="filename", label="Filename"),
        ])

    async def execute(self, request):
        self.calls += 1
        async for chunk in request.attachment.stream(self.chunk_size):
            self.bytes_received += len(chunk)
            self.largest_chunk = max(self.largest_chunk, len(chunk))
            if self.keep:
                self.received.extend(chunk)
        return ActionResponse(success=True)


class BufferDestination(Action):
    """Non-streaming destination: expects a materialised buffer."""

    name = "buffer"
    label = "Buffer"
    params = [ActionParam(name="api_key", label="API Key", required=True)]

    def __init__(self):
        super().__init__()
        self.seen: bytes | None = None

    async def execute(self, request):
        assert not request.attachment.is_streaming
        self.seen = request.attachment.data_buffer
        return ActionResponse(success=True)


class ExplodingDestination(Action):
    name = "exploding"
    label = "Exploding"

    def __init__(self, exc: Exception):
        super().__init__()
        self.exc = exc

    async def execute(self, request):
        raise self.exc


class FakeOAuthDestination(OAuthAction):
    """OAuth destination with a two-round interactive form."""

    name = "fake_oauth"
    label = "Fake Cloud"

    def __init__(self, oauth, transport=None):
        super().__init__(oauth, transport=transport)
        self.exchanged_codes: list[str] = []
        self.check_result = True

    async def oauth_url(self, redirect_uri, encrypted_state):
        return str(httpx.URL(
            "https://provider.test/authorize",
            params={"redirect_uri": redirect_uri, "state": encrypted_state},
        ))

    async def exchange_code(self, redirect_uri, code):
        self.exchanged_codes.append(code)
        return {"access_token": f"access-{code}", "refresh_token": "refresh"}

    async def oauth_check(self, request):
        if self.oauth.read_state(request) is None:
            return False
        if not self.check_result:
            raise AuthorizationError("token revoked")
        return True

    async def form(self, request):
        state = self.oauth.read_state(request)
        if state is None:
            return self.oauth.login_form(self, request)
        form = ActionForm()
        form.add(FormField(
            name="fetch",
            type=FieldType.SELECT,
            interactive=True,
            required=True,
            options=[FormOption(name="reset", label="Reset"), FormOption(name="fetch", label="Fetch")],
        ))
        if request.form_params.get("fetch") == "fetch":
            form.add(FormField(
                name="folder",
                type=FieldType.SELECT,
                required=True,
                options=[FormOption(name="f1", label="Folder 1")],
            ))
        form.state = self.oauth.seal_state(state)
        return form

    async def execute(self, request):
        state = self.oauth.read_state(request)
        if state is None:
            return ActionResponse.reset()
        if not request.form_params.get("folder"):
            raise ValidationError("Missing folder", field="folder")
        return ActionResponse(success=True, message=state.tokens["access_token"])


class PostBackRecorder:
    """httpx MockTransport handler recording what the hub posts back."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code)

    @property
    def payloads(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def config():
    return HubConfig(base_url="https://hub.test", cipher_master=CIPHER_MASTER, chunk_size=4)


@pytest.fixture
def crypto():
    return ActionCrypto(CIPHER_MASTER)


@pytest.fixture
def post_back():
    return PostBackRecorder()


@pytest.fixture
def oauth(config, crypto, post_back):
    return OAuthCoordinator(config, crypto=crypto, transport=httpx.MockTransport(post_back))


@pytest.fixture
def counting():
    return CountingDestination()


@pytest.fixture
def buffer_destination():
    return BufferDestination()


@pytest.fixture
def fake_oauth(oauth):
    return FakeOAuthDestination(oauth)


@pytest.fixture
def registry(counting, buffer_destination, fake_oauth):
    registry = ActionRegistry()
    registry.register(counting)
    registry.register(buffer_destination)
    registry.register(fake_oauth)
    return registry


@pytest.fixture
def dispatcher(registry, config, oauth):
    return Dispatcher(registry, config, oauth=oauth)


@pytest.fixture
def make_request():
    def _make(**kwargs):
        kwargs.setdefault("webhook_id", "wh-1")
        return ActionRequest(**kwargs)
    return _make
