"""
Wallpaper Pipeline
==================

This module defines `WallpaperPipeline`, which ties the pieces together:

1. list the images of the selected Drive folder (`AssetIndexer`)
2. label the ones not seen before (`ClassificationCache`)
3. pick one at random among those matching the active label filter
4. download it, decode it, blur it and hand it to a `WallpaperSink`

The pipeline owns the last listing (`ListingSnapshot`). It is reused by
`change_wallpaper` while the folder stays the same and dropped whenever the
folder changes or `clear_snapshot` is called. One pipeline instance should be
driven from a single thread at a time.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from io import BytesIO
from typing import Callable, Iterable

import structlog
from PIL import Image, UnidentifiedImageError

from classifier.cache import ClassificationCache, ProgressCallback
from common.auth import AuthenticatedExecutor
from common.config import Settings
from common.drive import Asset, DriveClient
from common.errors import AuthExpired, RemoteUnavailable, ThumbnailUnavailable, WallpaperError
from common.preferences import Preferences
from common.utils import decode_image

from . import sampler
from .blur import blur
from .indexer import AssetIndexer
from .sink import WallpaperSink

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ListingSnapshot:
    """The assets of one folder as of the last completed listing."""

    folder_id: str | None
    folder_name: str | None
    assets: tuple[Asset, ...]

    def matches(self, folder_id: str | None, folder_name: str | None) -> bool:
        return (self.folder_id, self.folder_name) == (folder_id, folder_name)


class DriveThumbnails:
    """Fetches and decodes asset thumbnails for classification."""

    def __init__(
        self,
        drive: DriveClient,
        executor: AuthenticatedExecutor,
        size_px: int,
    ):
        self.drive = drive
        self.executor = executor
        self.size_px = size_px

    def __call__(self, asset: Asset) -> Image.Image:
        link = asset.thumbnail_link
        if not link:
            raise ThumbnailUnavailable(
                "Asset has no thumbnail link", asset_id=asset.id, phase="thumbnail"
            )
        try:
            data = self.executor.execute(
                lambda token: self.drive.download_thumbnail(token, link, self.size_px)
            )
        except (AuthExpired, RemoteUnavailable) as e:
            raise ThumbnailUnavailable(
                f"Thumbnail download failed: {e}", asset_id=asset.id, phase="thumbnail"
            ) from e

        try:
            image = Image.open(BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise ThumbnailUnavailable(
                f"Thumbnail could not be decoded: {e}",
                asset_id=asset.id,
                phase="thumbnail-decode",
            ) from e
        return image


class WallpaperPipeline:
    """
    Orchestrates load -> classify -> sample -> render for one folder at a time.
    """

    def __init__(
        self,
        settings: Settings,
        drive: DriveClient,
        executor: AuthenticatedExecutor,
        indexer: AssetIndexer,
        cache: ClassificationCache,
        preferences: Preferences,
        sink: WallpaperSink,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.drive = drive
        self.executor = executor
        self.indexer = indexer
        self.cache = cache
        self.preferences = preferences
        self.sink = sink
        self.rng = rng or random.Random()
        self.clock = clock
        self.snapshot: ListingSnapshot | None = None

    # --- Folder & listing ---

    def current_folder(self) -> tuple[str | None, str | None]:
        """Return ``(folder_id, folder_name)``; stored preferences win over settings."""
        folder_id, folder_name = self.preferences.folder()
        if folder_id or folder_name:
            return folder_id, folder_name
        return self.settings.FOLDER_ID, self.settings.FOLDER_NAME

    def select_folder(self, folder_id: str | None, folder_name: str | None) -> None:
        """Switch folders; the next load lists the new folder and prunes the cache."""
        self.preferences.set_folder(folder_id, folder_name)
        self.clear_snapshot()
        log.info("Selected folder", folder_id=folder_id, folder_name=folder_name)

    def clear_snapshot(self) -> None:
        self.snapshot = None

    def load_assets(self, force: bool = False) -> list[Asset]:
        """Return the folder's assets, reusing the snapshot unless ``force`` is set."""
        folder_id, folder_name = self.current_folder()
        if (
            not force
            and self.snapshot is not None
            and self.snapshot.assets
            and self.snapshot.matches(folder_id, folder_name)
        ):
            return list(self.snapshot.assets)

        assets = self.indexer.list_assets(folder_id=folder_id, folder_name=folder_name)
        self.snapshot = ListingSnapshot(folder_id, folder_name, tuple(assets))
        return assets

    # --- Classification & filtering ---

    def refresh(
        self,
        on_progress: ProgressCallback | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> dict[str, set[str]]:
        """List the folder afresh and classify what is new; return the label record."""
        assets = self.load_assets(force=True)
        return self.cache.classify(assets, on_progress=on_progress, should_stop=should_stop)

    def available_labels(self) -> list[str]:
        return sampler.available_labels(self.preferences.label_record())

    def set_filter_labels(self, labels: Iterable[str]) -> None:
        self.preferences.set_filter_labels(labels)

    def eligible_count(self) -> int:
        assets = self.snapshot.assets if self.snapshot is not None else ()
        eligible = sampler.eligible_ids(
            self.preferences.label_record(), self.preferences.filter_labels()
        )
        return sampler.count_eligible(assets, eligible)

    # --- Wallpaper ---

    def pick_asset(self) -> Asset | None:
        assets = self.load_assets()
        selected = self.preferences.filter_labels()
        eligible = sampler.eligible_ids(self.preferences.label_record(), selected)
        asset = sampler.sample(assets, eligible, self.rng)
        if asset is None:
            log.warning(
                "No photo available",
                filters=sorted(selected),
                asset_count=len(assets),
            )
        return asset

    def render(self, asset: Asset) -> Image.Image:
        """Download and decode the full image of ``asset``."""
        data = self.executor.execute(
            lambda token: self.drive.download_file(token, asset.id)
        )
        log.debug("Downloaded image", asset_id=asset.id, size=len(data))
        try:
            return decode_image(data, self.settings.TARGET_WIDTH_PX)
        except ValueError as e:
            raise WallpaperError(str(e), asset_id=asset.id, phase="decode") from e

    def change_wallpaper(self) -> Asset | None:
        """
        Set a random eligible photo as wallpaper; return it, or None if none is eligible.
        """
        asset = self.pick_asset()
        if asset is None:
            return None

        log.info("Selected random photo", asset_id=asset.id, name=asset.name)
        image = self.render(asset)

        home_percent, lock_percent = self.preferences.blur_percents(
            self.settings.BLUR_HOME_PERCENT, self.settings.BLUR_LOCK_PERCENT
        )
        if home_percent == lock_percent:
            self.sink.set_wallpaper(blur(image, home_percent), "both")
        else:
            self.sink.set_wallpaper(blur(image, home_percent), "home")
            self.sink.set_wallpaper(blur(image, lock_percent), "lock")

        self.preferences.set_last_changed(self.clock())
        log.info(
            "Wallpaper changed",
            asset_id=asset.id,
            blur_home=home_percent,
            blur_lock=lock_percent,
        )
        return asset
