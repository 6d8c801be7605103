"""
Action Hub Form Model.

A form is what a plugin asks the caller to render. Forms may take several
round trips: a field marked `interactive` makes the caller re-request the
form with the new selection in `form_params` before it may execute. No
server-side session backs this; each round re-derives the form from the
echoed `state` and the caller's latest selections.
"""
from __future__ import annotations
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from hub.models import ActionState


class FieldType(str, Enum):
    STRING = "string"
    TEXTAREA = "textarea"
    SELECT = "select"
    OAUTH_LINK = "oauth_link"
    OAUTH_LINK_GOOGLE = "oauth_link_google"


class FormOption(BaseModel):
    name: str
    label: str


class FormField(BaseModel):
    name: str
    label: Optional[str] = None
    description: Optional[str] = None
    type: FieldType = FieldType.STRING
    required: bool = False
    default: Optional[str] = None
    options: list[FormOption] = Field(default_factory=list)
    interactive: bool = False
    oauth_url: Optional[str] = None


class ActionForm(BaseModel):
    """Ordered fields plus the opaque state for the next round."""
    fields: list[FormField] = Field(default_factory=list)
    state: Optional[ActionState] = None
    error: Optional[str] = None

    def add(self, field: FormField) -> "ActionForm":
        self.fields.append(field)
        return self

    def get_field(self, name: str) -> Optional[FormField]:
        return next((f for f in self.fields if f.name == name), None)

    def missing_required(self, form_params: dict[str, str]) -> list[str]:
        """Names of required fields the caller has not filled in."""
        return [
            f.name for f in self.fields
            if f.required and not form_params.get(f.name)
        ]

    def interactive_pending(self, form_params: dict[str, str]) -> list[str]:
        """Interactive fields still waiting for a selection."""
        return [
            f.name for f in self.fields
            if f.interactive and form_params.get(f.name) is None
        ]

    def as_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
