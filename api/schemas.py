"""Pydantic schemas for the inbound action envelope."""

import base64
import binascii
from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from hub.errors import ValidationError
from hub.models import ActionRequest, ActionType, ScheduledPlan
from hub.payload import Attachment


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class AttachmentBody(BaseModel):
    mime: Optional[str] = None
    extension: Optional[str] = None
    data: Optional[str] = None
    encoding: Literal["utf-8", "base64"] = "utf-8"

    def decode(self) -> Optional[bytes]:
        if self.data is None:
            return None
        if self.encoding == "base64":
            try:
                return base64.b64decode(self.data, validate=True)
            except binascii.Error as exc:
                raise ValidationError("Attachment data is not valid base64", field="attachment") from exc
        return self.data.encode("utf-8")


class ScheduledPlanBody(BaseModel):
    title: Optional[str] = None
    url: Optional[str] = None
    query_id: Optional[str] = None
    scheduled_plan_id: Optional[str] = None


class ActionRequestBody(BaseModel):
    """Envelope for execute/form calls.

    `params` is also accepted as `data`, the key older callers send.
    """
    type: ActionType = ActionType.QUERY
    form_params: dict[str, str] = Field(default_factory=dict)
    params: dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("params", "data"),
    )
    attachment: Optional[AttachmentBody] = None
    scheduled_plan: Optional[ScheduledPlanBody] = None
    webhook_id: Optional[str] = None
    format: Optional[str] = None

    @field_validator("form_params", "params", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items() if v is not None}
        return value

    def to_request(self, attachment: Optional[Attachment] = None) -> ActionRequest:
        if attachment is None and self.attachment is not None:
            data = self.attachment.decode()
            if data is not None:
                attachment = Attachment.from_bytes(
                    data,
                    mime=self.attachment.mime,
                    file_extension=self.attachment.extension,
                )
        plan = None
        if self.scheduled_plan is not None:
            plan = ScheduledPlan(**self.scheduled_plan.model_dump())
        return ActionRequest(
            type=self.type,
            form_params=dict(self.form_params),
            params=dict(self.params),
            attachment=attachment,
            scheduled_plan=plan,
            webhook_id=self.webhook_id,
            format=self.format,
        )
