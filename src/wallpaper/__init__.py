"""
Wallpaper domain package.

This package contains:

- the asset indexer that lists a Drive folder's images
- label filtering and uniform random sampling
- the fast approximate Gaussian blur
- the pipeline that ties listing, classification and rendering together
- the one-shot rotation entrypoint
"""

from .blur import blur, blur_radius
from .indexer import AssetIndexer
from .pipeline import DriveThumbnails, ListingSnapshot, WallpaperPipeline
from .sampler import available_labels, eligible_ids, sample
from .sink import FileWallpaperSink, WallpaperSink

__all__ = [
    "AssetIndexer",
    "DriveThumbnails",
    "FileWallpaperSink",
    "ListingSnapshot",
    "WallpaperPipeline",
    "WallpaperSink",
    "available_labels",
    "blur",
    "blur_radius",
    "eligible_ids",
    "sample",
]
