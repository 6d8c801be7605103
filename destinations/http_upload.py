"""HTTP upload destination.

Streams the attachment to an HTTP(S) address with PUT or POST. No OAuth,
no static params: everything comes from the form. The request body is fed
from the attachment stream, so the upload only pulls data from the caller
as fast as the receiving server accepts it.
"""
from __future__ import annotations
from urllib.parse import urlparse
import logging

import httpx

from hub.action import Action
from hub.errors import DestinationError, ValidationError
from hub.forms import ActionForm, FieldType, FormField, FormOption
from hub.models import ActionFormat, ActionRequest, ActionResponse, ActionType

log = logging.getLogger(__name__)


class HttpUploadAction(Action):
    name = "http_upload"
    label = "HTTP Upload"
    description = "Send data files to an HTTP endpoint."
    supported_action_types = [ActionType.QUERY, ActionType.DASHBOARD]
    supported_formats = [ActionFormat.CSV, ActionFormat.JSON, ActionFormat.TXT, ActionFormat.XLSX]
    uses_streaming = True

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None, chunk_size: int = 64 * 1024):
        super().__init__(transport=transport)
        self.chunk_size = chunk_size

    async def form(self, request: ActionRequest) -> ActionForm:
        return ActionForm(fields=[
            FormField(
                name="address",
                label="Address",
                description="e.g. https://host/path/",
                required=True,
            ),
            FormField(
                name="method",
                label="Method",
                type=FieldType.SELECT,
                default="PUT",
                options=[FormOption(name="PUT", label="PUT"), FormOption(name="POST", label="POST")],
            ),
            FormField(name="filename", label="Filename"),
        ])

    def target_url(self, request: ActionRequest) -> str:
        address = request.form_params.get("address", "")
        parsed = urlparse(address)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError("Needs a valid HTTP address.", field="address")
        filename = request.form_params.get("filename") or request.suggested_filename()
        if filename and address.endswith("/"):
            return f"{address}{filename}"
        return address

    async def execute(self, request: ActionRequest) -> ActionResponse:
        attachment = request.attachment
        if attachment is None or not attachment.has_data:
            raise ValidationError("Couldn't get data from attachment.", field="attachment")

        url = self.target_url(request)
        method = (request.form_params.get("method") or "PUT").upper()
        if method not in ("PUT", "POST"):
            raise ValidationError(f"Unsupported method {method}", field="method")

        headers = {"Content-Type": attachment.mime or "application/octet-stream"}
        if request.webhook_id:
            headers["X-Webhook-Id"] = request.webhook_id

        log.info("uploading to %s via %s", urlparse(url).netloc, method)
        try:
            async with self.http_client() as client:
                resp = await client.request(
                    method,
                    url,
                    content=attachment.stream(self.chunk_size),
                    headers=headers,
                )
        except httpx.HTTPError as exc:
            raise DestinationError(f"Upload failed: {exc}") from exc

        if not resp.is_success:
            raise DestinationError(
                f"Upload rejected with HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        return ActionResponse(success=True)
