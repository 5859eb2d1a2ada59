"""
Drive Wallpaper Rotator
=======================

Entry point for one rotation cycle: list the selected Google Drive folder,
label any photos not seen before, pick a random photo that matches the active
label filter, blur it for the home and lock screens and write the result
through the configured wallpaper sink.

Scheduling is left to the host (cron, systemd timers, launchd...), which
should only invoke this when a network connection is available. The
configuration is managed through environment variables; see
`common.config.Settings`.
"""

from __future__ import annotations

import structlog

from classifier.cache import ClassificationCache, ClassificationProgress
from classifier.provider import OpenAILabelProvider
from common.auth import AuthenticatedExecutor, RefreshTokenProvider
from common.config import Settings, setup_libraries
from common.drive import DriveClient
from common.errors import NotAuthenticated, WallpaperError
from common.logging_config import configure_logging
from common.preferences import JsonFileStore, Preferences

from .indexer import AssetIndexer
from .pipeline import DriveThumbnails, WallpaperPipeline
from .sink import FileWallpaperSink

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_NOTHING_ELIGIBLE = 2


def build_pipeline(settings: Settings, drive: DriveClient) -> WallpaperPipeline:
    """Wire the production collaborators into a pipeline."""
    executor = AuthenticatedExecutor(RefreshTokenProvider(settings))
    preferences = Preferences(JsonFileStore(settings.STATE_PATH))
    cache = ClassificationCache(
        preferences,
        OpenAILabelProvider(settings),
        DriveThumbnails(drive, executor, settings.THUMBNAIL_SIZE_PX),
    )
    return WallpaperPipeline(
        settings=settings,
        drive=drive,
        executor=executor,
        indexer=AssetIndexer(drive, executor, settings),
        cache=cache,
        preferences=preferences,
        sink=FileWallpaperSink(settings.OUTPUT_DIR),
    )


def main() -> int:
    """Run one load -> classify -> change cycle and return an exit code."""
    log = structlog.get_logger(__name__)

    try:
        settings = Settings()
        configure_logging(settings)
        setup_libraries(settings)
    except ValueError as e:
        log.error("Configuration error", error=str(e))
        return EXIT_FAILURE

    log.info(
        "Starting wallpaper rotation",
        llm_provider=settings.LLM_PROVIDER,
        label_model=settings.LABEL_MODEL,
        state_path=str(settings.STATE_PATH),
    )

    def report(progress: ClassificationProgress) -> None:
        if progress.total and not progress.is_complete:
            log.info(
                "Classifying photos",
                completed=progress.completed,
                total=progress.total,
            )

    drive = DriveClient(settings)
    try:
        pipeline = build_pipeline(settings, drive)
        folder_id, folder_name = pipeline.current_folder()
        log.info("Using folder", folder_id=folder_id, folder_name=folder_name)
        pipeline.refresh(on_progress=report)
        asset = pipeline.change_wallpaper()
    except NotAuthenticated as e:
        log.error("Not signed in; configure Google OAuth credentials", error=str(e))
        return EXIT_FAILURE
    except WallpaperError as e:
        log.error("Wallpaper rotation failed", error=str(e), **e.context())
        return EXIT_FAILURE
    finally:
        drive.close()

    if asset is None:
        return EXIT_NOTHING_ELIGIBLE
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
