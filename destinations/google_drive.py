"""Google Drive destination.

OAuth-authorized, streaming upload into a Drive folder via the Drive v3
REST API. The form is negotiated over several rounds:

1. no usable state        → login link
2. authorized             → drive select + "Fetch Folders" + search box
3. search submitted       → folder select (paginated listing) + filename

Every round rebuilds itself from the echoed state and form params.
"""
from __future__ import annotations
from typing import Any, Optional
import logging

import httpx

from hub.action import OAuthAction
from hub.config import OAuthClientConfig
from hub.errors import AuthorizationError, DestinationError, ValidationError
from hub.forms import ActionForm, FieldType, FormField, FormOption
from hub.models import ActionFormat, ActionRequest, ActionResponse, ActionType
from hub.oauth import OAuthCoordinator, OAuthState
from hub.payload import DEFAULT_CHUNK_SIZE, Attachment

log = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
DRIVE_API = "https://www.googleapis.com/drive/v3"
UPLOAD_API = "https://www.googleapis.com/upload/drive/v3/files"
SCOPES = ["https://www.googleapis.com/auth/drive"]

MY_DRIVE = "mydrive"
FOLDER_MIME = "application/vnd.google-apps.folder"

FORMAT_MIME_TYPES = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "inline_json": "application/json",
    "json": "application/json",
    "json_label": "application/json",
    "json_detail": "application/json",
    "html": "text/html",
    "txt": "text/plain",
}


def folder_query(search: str) -> str:
    query = f"mimeType='{FOLDER_MIME}' and trashed=false"
    if search:
        escaped = search.replace("\\", "\\\\").replace("'", "\\'")
        query += f" and name contains '{escaped}'"
    return query


def _vendor_message(resp: httpx.Response) -> str:
    try:
        return resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return f"HTTP {resp.status_code}"


class DriveClient:
    """Thin Drive v3 client bound to one set of OAuth tokens."""

    def __init__(self, action: "GoogleDriveAction", state: OAuthState):
        self.action = action
        self.state = state
        self._refreshed = False
        # True once the access token in `state` was replaced
        self.token_refreshed = False

    def _auth_headers(self) -> dict[str, str]:
        token_type = self.state.tokens.get("token_type", "Bearer")
        return {"Authorization": f"{token_type} {self.state.tokens.get('access_token', '')}"}

    async def _refresh(self, client: httpx.AsyncClient) -> bool:
        refresh_token = self.state.tokens.get("refresh_token")
        if not refresh_token:
            return False
        resp = await client.post(TOKEN_URL, data={
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.action.client.client_id,
            "client_secret": self.action.client.client_secret,
        })
        if resp.status_code != 200:
            return False
        data = resp.json()
        self.state.tokens["access_token"] = data["access_token"]
        if "refresh_token" in data:
            self.state.tokens["refresh_token"] = data["refresh_token"]
        self.token_refreshed = True
        return True

    async def request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        headers: Optional[dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Authorized request; refreshes the access token once on 401."""
        try:
            resp = await client.request(method, url, headers={**self._auth_headers(), **(headers or {})}, **kwargs)
            if resp.status_code == 401 and not self._refreshed:
                self._refreshed = True
                if await self._refresh(client):
                    resp = await client.request(
                        method, url, headers={**self._auth_headers(), **(headers or {})}, **kwargs
                    )
        except httpx.HTTPError as exc:
            raise DestinationError(f"Google Drive unreachable: {exc}") from exc
        self.raise_for(resp)
        return resp

    @staticmethod
    def raise_for(resp: httpx.Response) -> None:
        if resp.is_success:
            return
        message = _vendor_message(resp)
        if resp.status_code in (401, 403):
            raise AuthorizationError(f"Google Drive rejected credentials: {message}")
        raise DestinationError(message, status_code=resp.status_code)

    async def list_drives(self, client: httpx.AsyncClient) -> list[FormOption]:
        drives = [FormOption(name=MY_DRIVE, label="My Drive")]
        resp = await self.request(client, "GET", f"{DRIVE_API}/drives", params={"pageSize": 50})
        for d in resp.json().get("drives", []):
            if d.get("id") and d.get("name"):
                drives.append(FormOption(name=d["id"], label=d["name"]))
        return drives

    async def list_folders(
        self,
        client: httpx.AsyncClient,
        search: str,
        drive_id: Optional[str],
    ) -> list[dict[str, Any]]:
        """Page through matching folders.

        A failing page ends the listing with what was gathered so far; an
        incomplete options list beats a dead end in the form.
        """
        params: dict[str, Any] = {
            "fields": "files(id,name,parents),nextPageToken",
            "orderBy": "recency desc",
            "pageSize": 1000,
            "q": folder_query(search),
            "spaces": "drive",
        }
        if drive_id and drive_id != MY_DRIVE:
            params.update({
                "driveId": drive_id,
                "includeItemsFromAllDrives": "true",
                "supportsAllDrives": "true",
                "corpora": "drive",
            })
        else:
            params["corpora"] = "user"

        files: list[dict[str, Any]] = []
        while True:
            try:
                resp = await self.request(client, "GET", f"{DRIVE_API}/files", params=params)
            except (AuthorizationError, DestinationError) as exc:
                log.info("folder listing stopped after %d folders: %s", len(files), exc.message)
                break
            data = resp.json()
            files.extend(data.get("files", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token
        return files

    async def upload(
        self,
        client: httpx.AsyncClient,
        metadata: dict[str, Any],
        attachment: Attachment,
        mime_type: Optional[str],
        shared_drive: bool,
        chunk_size: int,
    ) -> dict[str, Any]:
        """Resumable upload fed straight from the attachment stream."""
        params = {"uploadType": "resumable"}
        if shared_drive:
            params["supportsAllDrives"] = "true"
        headers = {"X-Upload-Content-Type": mime_type} if mime_type else {}
        session = await self.request(client, "POST", UPLOAD_API, params=params, json=metadata, headers=headers)
        session_url = session.headers.get("Location")
        if not session_url:
            raise DestinationError("Google Drive did not open an upload session")

        try:
            resp = await client.put(
                session_url,
                content=attachment.stream(chunk_size),
                headers={"Content-Type": mime_type or "application/octet-stream"},
            )
        except httpx.HTTPError as exc:
            raise DestinationError(f"Upload to Google Drive failed: {exc}") from exc
        self.raise_for(resp)
        return resp.json()


class GoogleDriveAction(OAuthAction):
    name = "google_drive"
    label = "Google Drive"
    icon_name = "google/drive/google_drive.svg"
    description = "Create a new file in Google Drive."
    supported_action_types = [ActionType.DASHBOARD, ActionType.QUERY]
    supported_formats = [ActionFormat.CSV, ActionFormat.XLSX, ActionFormat.JSON, ActionFormat.PDF]
    uses_streaming = True
    oauth_link_type = FieldType.OAUTH_LINK_GOOGLE

    def __init__(
        self,
        oauth: OAuthCoordinator,
        client: OAuthClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        super().__init__(oauth, transport=transport)
        self.client = client
        self.chunk_size = chunk_size

    # --- form ---

    async def form(self, request: ActionRequest) -> ActionForm:
        state = self.oauth.read_state(request)
        if state is None:
            return self.oauth.login_form(self, request)

        drive = DriveClient(self, state)
        form = ActionForm()
        async with self.http_client() as client:
            drives = await drive.list_drives(client)
            form.add(FormField(
                name="drive",
                label="Select Drive to save file",
                description="Google Drive where your file will be saved",
                type=FieldType.SELECT,
                options=drives,
                default=drives[0].name,
                interactive=True,
                required=True,
            ))

            if "search" in request.form_params:
                files = await drive.list_folders(
                    client,
                    request.form_params["search"],
                    request.form_params.get("drive"),
                )
                folders = [FormOption(name="root", label="Drive Root")] + [
                    FormOption(name=f["id"], label=f["name"])
                    for f in files if f.get("id") and f.get("name")
                ]
                form.add(FormField(
                    name="folder",
                    label="Select folder to save file",
                    description="Google Drive folder where your file will be saved",
                    type=FieldType.SELECT,
                    options=folders,
                    default=folders[0].name,
                    required=True,
                ))
                form.add(FormField(name="filename", label="Enter a name", required=True))

        form.add(FormField(
            name="fetch",
            label="Fetch Folders",
            description='After entering text to search below, select "Fetch Folders"',
            type=FieldType.SELECT,
            required=True,
            interactive=True,
            # Two options so the caller can re-select and trigger a refetch
            options=[FormOption(name="reset", label="Reset"), FormOption(name="fetch", label="Fetch Folders")],
        ))
        form.add(FormField(name="search", label="Folder Name Search", required=True))
        form.state = self.oauth.seal_state(drive.state)
        return form

    # --- execute ---

    def mime_type(self, request: ActionRequest) -> Optional[str]:
        if request.attachment and request.attachment.mime:
            return request.attachment.mime
        return FORMAT_MIME_TYPES.get(request.form_params.get("format") or request.format or "")

    async def execute(self, request: ActionRequest) -> ActionResponse:
        state = self.oauth.read_state(request)
        if state is None:
            return ActionResponse.reset()

        filename = request.form_params.get("filename") or request.suggested_filename()
        if not filename:
            raise ValidationError("Error creating filename from request", field="filename")
        attachment = request.attachment
        if attachment is None or not attachment.has_data:
            raise ValidationError("Couldn't get data from attachment.", field="attachment")

        drive_id = request.form_params.get("drive")
        shared_drive = bool(drive_id) and drive_id != MY_DRIVE
        folder = request.form_params.get("folder")
        if folder == "root" and shared_drive:
            folder = drive_id

        mime_type = self.mime_type(request)
        metadata: dict[str, Any] = {"name": filename}
        if mime_type:
            metadata["mimeType"] = mime_type
        if folder:
            metadata["parents"] = [folder]
        elif shared_drive:
            metadata["parents"] = [drive_id]

        log.info("creating new file in Drive")
        drive = DriveClient(self, state)
        async with self.http_client(timeout=None) as client:
            await drive.upload(client, metadata, attachment, mime_type, shared_drive, self.chunk_size)
        if drive.token_refreshed:
            # Hand the new access token back so the next run starts with it
            return ActionResponse(success=True, state=self.oauth.seal_state(drive.state))
        return ActionResponse(success=True)

    # --- oauth ---

    async def oauth_url(self, redirect_uri: str, encrypted_state: str) -> str:
        params = {
            "client_id": self.client.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": encrypted_state,
        }
        return str(httpx.URL(AUTHORIZE_URL, params=params))

    async def exchange_code(self, redirect_uri: str, code: str) -> dict[str, Any]:
        async with self.http_client() as client:
            try:
                resp = await client.post(TOKEN_URL, data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": redirect_uri,
                    "client_id": self.client.client_id,
                    "client_secret": self.client.client_secret,
                })
            except httpx.HTTPError as exc:
                raise DestinationError(f"Google token endpoint unreachable: {exc}") from exc
        if not resp.is_success:
            raise AuthorizationError(f"Token exchange failed: {_vendor_message(resp)}")
        return resp.json()

    async def oauth_check(self, request: ActionRequest) -> bool:
        state = self.oauth.read_state(request)
        if state is None:
            return False
        async with self.http_client() as client:
            await DriveClient(self, state).request(
                client, "GET", f"{DRIVE_API}/files", params={"pageSize": 10}
            )
        return True
