"""
Utilities
=========

Helpers shared across packages that do not belong to a more specific domain:

- a `retry` decorator for transient errors, with exponential backoff and jitter
- image decoding with power-of-two downsampling, used for full-size downloads
"""

from __future__ import annotations

import random
import time
from functools import wraps
from io import BytesIO
from typing import Callable, Type, TypeVar

import structlog
from PIL import Image, ImageOps, UnidentifiedImageError

log = structlog.get_logger(__name__)
T = TypeVar("T")


def retry(
    retryable_exceptions: tuple[Type[Exception], ...],
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    A decorator that retries a method call on specific exceptions.

    The decorated method's instance must expose ``self.settings`` with
    ``MAX_RETRIES`` and ``MAX_RETRY_BACKOFF_SECONDS``.

    Args:
        retryable_exceptions: A tuple of exception types that should trigger a retry.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(self, *args, **kwargs) -> T:
            settings = self.settings
            if settings.MAX_RETRIES < 1:
                raise ValueError("MAX_RETRIES must be >= 1")
            for attempt in range(1, settings.MAX_RETRIES + 1):
                try:
                    return func(self, *args, **kwargs)
                except retryable_exceptions as e:
                    if attempt == settings.MAX_RETRIES:
                        log.exception(
                            "Call failed after all attempts",
                            func=func.__name__,
                            attempts=attempt,
                        )
                        raise
                    log.warning(
                        "Call failed; retrying",
                        func=func.__name__,
                        error=str(e),
                        attempt=attempt,
                        max_retries=settings.MAX_RETRIES,
                    )
                    _sleep_backoff(attempt, settings)
            # This part should be unreachable if MAX_RETRIES > 0
            raise RuntimeError("Retry loop exited unexpectedly.")

        return wrapper

    return decorator


def _sleep_backoff(attempt: int, settings) -> None:
    """Sleep with exponential backoff and jitter, capped by settings."""
    delay = min(
        (2**attempt) * random.uniform(0.8, 1.2),
        settings.MAX_RETRY_BACKOFF_SECONDS,
    )
    log.info(
        "Sleeping before retry",
        delay=round(delay, 1),
        attempt=attempt,
        max_retries=settings.MAX_RETRIES,
    )
    time.sleep(delay)


def calculate_sample_size(width: int, target_width: int) -> int:
    """
    Return the smallest power-of-two divisor that brings ``width`` down to at
    most twice ``target_width``.
    """
    sample_size = 1
    if target_width <= 0 or width <= target_width:
        return sample_size
    while width // sample_size > target_width * 2:
        sample_size *= 2
    return sample_size


def decode_image(data: bytes, target_width: int) -> Image.Image:
    """
    Decode raw image bytes into an RGBA image, downsampled for ``target_width``.

    Raises ValueError if the bytes are not a recognisable image.
    """
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Unable to decode image: {e}") from e

    image = ImageOps.exif_transpose(image)
    sample_size = calculate_sample_size(image.width, target_width)
    if sample_size > 1:
        image = image.reduce(sample_size)
    return image.convert("RGBA")
