"""
Asset Indexer
=============

Lists the images of a Drive folder. Pages are fetched until the listing is
exhausted or the page cap is reached, then merged and deduplicated by id.
A failure on any page aborts the whole listing: a truncated index is never
returned.
"""

from __future__ import annotations

import structlog

from common.auth import AuthenticatedExecutor
from common.config import Settings
from common.drive import Asset, DriveClient
from common.errors import ContainerNotFound, WallpaperError

log = structlog.get_logger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
FOLDER_PAGE_CAP = 3


def _quote(value: str) -> str:
    """Escape a value for use inside a single-quoted Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def image_query(folder_id: str) -> str:
    return f"'{_quote(folder_id)}' in parents and mimeType contains 'image/' and trashed = false"


def folder_query(parent_id: str | None) -> str:
    parent = _quote(parent_id) if parent_id else "root"
    return f"'{parent}' in parents and mimeType = '{FOLDER_MIME_TYPE}' and trashed = false"


def dedupe_by_id(assets: list[Asset]) -> list[Asset]:
    """Deduplicate by id; the last occurrence wins, first-seen order is kept."""
    unique: dict[str, Asset] = {}
    for asset in assets:
        unique[asset.id] = asset
    return list(unique.values())


class AssetIndexer:
    """Resolves folders and lists their images through an authenticated executor."""

    def __init__(
        self,
        drive: DriveClient,
        executor: AuthenticatedExecutor,
        settings: Settings,
    ):
        self.drive = drive
        self.executor = executor
        self.settings = settings

    def find_folder_id(self, folder_name: str) -> str:
        """
        Return the id of a non-trashed folder named ``folder_name``.

        With several folders of the same name the first one Drive returns is used.
        """
        query = (
            f"name = '{_quote(folder_name)}' and mimeType = '{FOLDER_MIME_TYPE}' "
            "and trashed = false"
        )
        page = self.executor.execute(
            lambda token: self.drive.list_files(token, query, fields="files(id,name)")
        )
        files = page["files"]
        if not files:
            raise ContainerNotFound(folder_name)
        if len(files) > 1:
            log.warning(
                "Several folders share this name; using the first",
                folder_name=folder_name,
                match_count=len(files),
            )
        return str(files[0]["id"])

    def _list_pages(
        self,
        query: str,
        max_pages: int,
        fields: str | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        items: list[dict] = []
        page_token: str | None = None
        kwargs = {"page_size": self.settings.DRIVE_PAGE_SIZE, "order_by": order_by}
        if fields:
            kwargs["fields"] = fields

        for page_number in range(1, max_pages + 1):
            page = self.executor.execute(
                lambda token: self.drive.list_files(
                    token, query, page_token=page_token, **kwargs
                )
            )
            items.extend(page["files"])
            page_token = page["nextPageToken"]
            log.debug(
                "Fetched listing page",
                page=page_number,
                item_count=len(page["files"]),
                has_more=page_token is not None,
            )
            if page_token is None:
                break
        return items

    def list_assets(
        self,
        folder_id: str | None = None,
        folder_name: str | None = None,
        max_pages: int | None = None,
    ) -> list[Asset]:
        """
        List unique image assets in a folder given by id, or else by name.
        """
        if max_pages is None:
            max_pages = self.settings.DRIVE_MAX_PAGES
        if max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        if folder_id is None:
            if not folder_name:
                raise ValueError("Either folder_id or folder_name is required")
            folder_id = self.find_folder_id(folder_name)

        try:
            items = self._list_pages(image_query(folder_id), max_pages)
        except WallpaperError as e:
            log.error(
                "Listing failed; discarding partial results",
                folder_id=folder_id,
                error=str(e),
                **e.context(),
            )
            raise

        assets = dedupe_by_id([Asset.from_api(item) for item in items if item.get("id")])
        log.info(
            "Listed images",
            folder_id=folder_id,
            folder_name=folder_name,
            asset_count=len(assets),
            duplicates=len(items) - len(assets),
        )
        return assets

    def list_folders(self, parent_id: str | None = None) -> list[Asset]:
        """List sub-folders of ``parent_id`` (the Drive root when None), ordered by name."""
        items = self._list_pages(
            folder_query(parent_id),
            FOLDER_PAGE_CAP,
            fields="files(id,name,mimeType),nextPageToken",
            order_by="name",
        )
        folders = dedupe_by_id([Asset.from_api(item) for item in items if item.get("id")])
        log.debug("Listed folders", parent_id=parent_id or "root", folder_count=len(folders))
        return folders

    def count_images(self, folder_id: str) -> int:
        """Quick probe: 1 if the folder holds at least one image, else 0."""
        try:
            page = self.executor.execute(
                lambda token: self.drive.list_files(
                    token, image_query(folder_id), fields="files(id)", page_size=1
                )
            )
        except WallpaperError:
            log.warning("Image count probe failed", folder_id=folder_id, exc_info=True)
            return 0
        return len(page["files"])
