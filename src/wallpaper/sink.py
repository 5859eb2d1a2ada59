"""
Wallpaper sinks.

Painting the desktop or lock screen is platform specific, so the pipeline
hands the final image to a `WallpaperSink`. `FileWallpaperSink` writes PNG
files that a platform hook (or a user) can pick up.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Literal

import structlog
from PIL import Image

log = structlog.get_logger(__name__)

Target = Literal["home", "lock", "both"]


class WallpaperSink(ABC):
    @abstractmethod
    def set_wallpaper(self, image: Image.Image, target: Target) -> None:
        raise NotImplementedError


class FileWallpaperSink(WallpaperSink):
    """Writes ``home.png`` and/or ``lock.png`` into a directory."""

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    def set_wallpaper(self, image: Image.Image, target: Target) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        names = ("home", "lock") if target == "both" else (target,)
        for name in names:
            path = self.output_dir / f"{name}.png"
            tmp = path.with_suffix(".png.tmp")
            image.save(tmp, format="PNG")
            tmp.replace(path)
            log.info("Wrote wallpaper", target=name, path=str(path), size=image.size)
