"""
Google Drive API Client
=======================

This module provides a thin client for the Google Drive v3 REST API. It
covers the handful of calls the rotator needs: listing files with a query,
downloading file content and fetching thumbnails.

Every call takes the bearer token explicitly so it can be wrapped by
`common.auth.AuthenticatedExecutor`, which owns token refresh. HTTP 401/403
responses are raised as `AuthExpired`; any other HTTP or transport failure is
raised as `RemoteUnavailable`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import requests
import structlog

from .config import Settings
from .errors import AuthExpired, RemoteUnavailable

log = structlog.get_logger(__name__)

FILE_FIELDS = "files(id,name,mimeType,thumbnailLink,size),nextPageToken"
AUTH_FAILURE_STATUSES = (401, 403)
THUMBNAIL_SIZE_RE = re.compile(r"=s\d+")


@dataclass(frozen=True)
class Asset:
    """An image file in Drive. Identity is the opaque file id."""

    id: str
    name: str = ""
    mime_type: str = ""
    thumbnail_link: str | None = None
    size: int | None = None

    @classmethod
    def from_api(cls, item: dict) -> "Asset":
        size = item.get("size")
        try:
            size = int(size) if size is not None else None
        except (TypeError, ValueError):
            size = None
        return cls(
            id=str(item["id"]),
            name=item.get("name") or "",
            mime_type=item.get("mimeType") or "",
            thumbnail_link=item.get("thumbnailLink") or None,
            size=size,
        )


def thumbnail_url(link: str, size_px: int) -> str:
    """Rewrite (or append) the ``=sNNN`` size suffix of a Drive thumbnail link."""
    if "=s" in link:
        return THUMBNAIL_SIZE_RE.sub(f"=s{size_px}", link)
    return f"{link}=s{size_px}"


class DriveClient:
    """A client for the subset of the Google Drive API used here."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._session = requests.Session()

    def close(self) -> None:
        self._session.close()

    def _get(self, url: str, token: str, *, phase: str, **kwargs) -> requests.Response:
        """Perform an authenticated GET and map failures to the error taxonomy."""
        headers = {"Authorization": f"Bearer {token}"}
        try:
            response = self._session.get(
                url, headers=headers, timeout=self.settings.REQUEST_TIMEOUT, **kwargs
            )
        except requests.exceptions.RequestException as e:
            raise RemoteUnavailable(f"Request to Drive failed: {e}", phase=phase) from e

        if response.status_code in AUTH_FAILURE_STATUSES:
            raise AuthExpired(
                f"Drive rejected the access token (HTTP {response.status_code})",
                status_code=response.status_code,
                phase=phase,
            )
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            log.error(
                "Drive request failed",
                phase=phase,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise RemoteUnavailable(
                f"Drive returned HTTP {response.status_code}", phase=phase
            ) from e
        return response

    def list_files(
        self,
        token: str,
        query: str,
        *,
        page_token: str | None = None,
        fields: str = FILE_FIELDS,
        page_size: int = 100,
        order_by: str | None = None,
    ) -> dict:
        """Return one page of ``files.list`` as ``{"files": [...], "nextPageToken": ...}``."""
        params = {"q": query, "fields": fields, "pageSize": page_size}
        if page_token:
            params["pageToken"] = page_token
        if order_by:
            params["orderBy"] = order_by
        response = self._get(
            f"{self.settings.DRIVE_API_URL}/drive/v3/files",
            token,
            phase="list",
            params=params,
        )
        try:
            page = response.json()
        except ValueError as e:
            raise RemoteUnavailable("Drive returned a non-JSON listing", phase="list") from e
        return {
            "files": page.get("files") or [],
            "nextPageToken": page.get("nextPageToken") or None,
        }

    def download_file(self, token: str, file_id: str) -> bytes:
        """Download the raw content of a file."""
        try:
            response = self._get(
                f"{self.settings.DRIVE_API_URL}/drive/v3/files/{file_id}",
                token,
                phase="download",
                params={"alt": "media"},
            )
        except (AuthExpired, RemoteUnavailable) as e:
            e.asset_id = file_id
            raise
        log.debug("Downloaded file", asset_id=file_id, size=len(response.content))
        return response.content

    def download_thumbnail(self, token: str, link: str, size_px: int) -> bytes:
        """Download a thumbnail at the requested size."""
        response = self._get(thumbnail_url(link, size_px), token, phase="thumbnail")
        return response.content
