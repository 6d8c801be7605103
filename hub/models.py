"""
Action Hub data model.

Request/response envelopes shared by the dispatcher, the OAuth coordinator
and every destination. Responses are Pydantic models because they go back
to the caller as JSON; the request is a plain dataclass because it carries
a live payload stream.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
import re

from pydantic import BaseModel, Field

from hub.errors import HTTP_ERROR
from hub.payload import Attachment

RESET_SENTINEL = "reset"


class ActionType(str, Enum):
    QUERY = "query"
    DASHBOARD = "dashboard"
    CELL = "cell"
    CUSTOM_AUDIENCE = "custom_audience"


class ActionFormat(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"
    JSON = "json"
    JSON_DETAIL = "json_detail"
    INLINE_JSON = "inline_json"
    HTML = "html"
    TXT = "txt"
    PDF = "wysiwyg_pdf"
    PNG = "wysiwyg_png"


# ---------------------------------------------------------------------------
# Static action params
# ---------------------------------------------------------------------------

class ActionParam(BaseModel):
    """A param configured once per destination instance (e.g. an API key)."""
    name: str
    label: str
    required: bool = False
    sensitive: bool = True
    description: Optional[str] = None


# ---------------------------------------------------------------------------
# Response envelope
# ---------------------------------------------------------------------------

class ActionState(BaseModel):
    """Opaque state the caller must echo back verbatim."""
    data: Optional[str] = None
    url: Optional[str] = None

    @property
    def is_reset(self) -> bool:
        return self.data == RESET_SENTINEL

    @classmethod
    def reset(cls) -> "ActionState":
        return cls(data=RESET_SENTINEL)


class ActionError(BaseModel):
    http_code: int
    status_code: str
    message: str
    location: str = "ActionContainer"
    documentation_url: Optional[str] = None
    correlation_id: Optional[str] = None


def error_with(kind: str, message: str, correlation_id: str | None = None) -> ActionError:
    """Build an ActionError from one of the HTTP_ERROR kinds."""
    spec = HTTP_ERROR[kind]
    return ActionError(
        http_code=spec.code,
        status_code=spec.status,
        message=f"{spec.description} {message}".strip(),
        correlation_id=correlation_id,
    )


class ActionResponse(BaseModel):
    """Outcome of an action's execute()."""
    success: bool = True
    message: Optional[str] = None
    error: Optional[ActionError] = None
    state: Optional[ActionState] = None
    webhook_id: Optional[str] = None

    @classmethod
    def reset(cls, message: str | None = None, **kwargs: Any) -> "ActionResponse":
        """Tell the caller to discard its cached state and log in again."""
        return cls(success=False, message=message, state=ActionState.reset(), **kwargs)

    def as_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


# ---------------------------------------------------------------------------
# Request envelope
# ---------------------------------------------------------------------------

@dataclass
class ScheduledPlan:
    title: Optional[str] = None
    url: Optional[str] = None
    query_id: Optional[str] = None
    scheduled_plan_id: Optional[str] = None


@dataclass
class ActionRequest:
    """One inbound invocation. Read-only to plugins."""
    type: ActionType = ActionType.QUERY
    form_params: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    attachment: Optional[Attachment] = None
    scheduled_plan: Optional[ScheduledPlan] = None
    webhook_id: Optional[str] = None
    format: Optional[str] = None

    @property
    def state_json(self) -> Optional[str]:
        return self.params.get("state_json") or None

    @property
    def state_url(self) -> Optional[str]:
        return self.params.get("state_url") or None

    def suggested_filename(self) -> Optional[str]:
        """`<title>.<extension>`, or None when either part is unknown."""
        title = self.scheduled_plan.title if self.scheduled_plan else None
        extension = self.attachment.file_extension if self.attachment else None
        if not title or not extension:
            return None
        slug = re.sub(r"[^\w\-]+", "_", title.strip()).strip("_")
        return f"{slug or 'looker'}.{extension.lstrip('.')}"
