"""
Action Hub Core — Action Runtime.

Provides the pieces every destination plugs into:
- Action / OAuthAction: the plugin contract
- ActionRegistry: name → action lookup
- ActionForm: multi-round, stateless form negotiation
- Attachment: payload as buffer or pull-based stream
- ActionCrypto: fail-closed continuation tokens
- OAuthCoordinator: session-less OAuth redirect flow
- Dispatcher: validation, streaming, fault normalisation
"""
from hub.action import Action, OAuthAction
from hub.config import HubConfig, OAuthClientConfig
from hub.crypto import ActionCrypto
from hub.dispatcher import Dispatcher, cancel_on_disconnect
from hub.errors import (
    ActionNotFound,
    AuthorizationError,
    DestinationError,
    HubError,
    InternalError,
    StreamAborted,
    ValidationError,
)
from hub.forms import ActionForm, FieldType, FormField, FormOption
from hub.models import (
    ActionError,
    ActionFormat,
    ActionParam,
    ActionRequest,
    ActionResponse,
    ActionState,
    ActionType,
    ScheduledPlan,
    error_with,
)
from hub.oauth import OAuthCoordinator, OAuthState
from hub.payload import Attachment
from hub.registry import ActionRegistry

__all__ = [
    # Contract
    "Action",
    "OAuthAction",
    "ActionRegistry",
    "Dispatcher",
    "cancel_on_disconnect",
    # Config
    "HubConfig",
    "OAuthClientConfig",
    # Crypto / OAuth
    "ActionCrypto",
    "OAuthCoordinator",
    "OAuthState",
    # Errors
    "ActionNotFound",
    "AuthorizationError",
    "DestinationError",
    "HubError",
    "InternalError",
    "StreamAborted",
    "ValidationError",
    # Forms
    "ActionForm",
    "FieldType",
    "FormField",
    "FormOption",
    # Data model
    "ActionError",
    "ActionFormat",
    "ActionParam",
    "ActionRequest",
    "ActionResponse",
    "ActionState",
    "ActionType",
    "Attachment",
    "ScheduledPlan",
    "error_with",
]
