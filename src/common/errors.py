"""
Error Taxonomy
==============

Exceptions raised by the Drive client, the authenticated executor and the
classification pipeline. Every error can carry the asset id and the phase it
happened in so callers can log it with full context.
"""

from __future__ import annotations


class WallpaperError(Exception):
    """Base class for all errors raised by this project."""

    def __init__(
        self,
        message: str,
        *,
        asset_id: str | None = None,
        phase: str | None = None,
    ):
        super().__init__(message)
        self.asset_id = asset_id
        self.phase = phase

    def context(self) -> dict:
        """Return the non-empty context fields for structured logging."""
        ctx = {}
        if self.asset_id is not None:
            ctx["asset_id"] = self.asset_id
        if self.phase is not None:
            ctx["phase"] = self.phase
        return ctx


class NotAuthenticated(WallpaperError):
    """No access token can be obtained. Never retried."""


class AuthExpired(WallpaperError):
    """The remote rejected the token (HTTP 401/403)."""

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class RemoteUnavailable(WallpaperError):
    """A listing, page or download request failed."""


class ThumbnailUnavailable(WallpaperError):
    """An asset has no thumbnail or it could not be fetched or decoded."""


class ClassifierFailure(WallpaperError):
    """The label provider could not produce a result for an image."""


class ContainerNotFound(WallpaperError):
    """No folder with the requested name exists."""

    def __init__(self, folder_name: str):
        super().__init__(
            f"Folder '{folder_name}' not found in Google Drive. "
            "Please create it and add photos.",
            phase="resolve-folder",
        )
        self.folder_name = folder_name
