"""
Shared fixtures for the drive-wallpaper tests.

Environment variables are patched per test and all persisted state goes under
``tmp_path``, so nothing touches the user's real ``~/.drive-wallpaper``.
When running from a checkout without ``pip install -e .``, ``src/`` is added
to ``sys.path`` so ``common``, ``classifier`` and ``wallpaper`` resolve.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from common.config import Settings  # noqa: E402
from common.drive import Asset  # noqa: E402
from common.preferences import JsonFileStore, Preferences  # noqa: E402


@pytest.fixture
def settings(mocker, tmp_path):
    """Settings with test credentials and state kept under tmp_path."""
    mocker.patch.dict(
        os.environ,
        {
            "OPENAI_API_KEY": "test_api_key",
            "GOOGLE_CLIENT_ID": "client-id",
            "GOOGLE_CLIENT_SECRET": "client-secret",
            "GOOGLE_REFRESH_TOKEN": "refresh-token",
            "MAX_RETRIES": "2",
            "STATE_PATH": str(tmp_path / "state.json"),
            "OUTPUT_DIR": str(tmp_path / "output"),
        },
        clear=True,
    )
    return Settings()


@pytest.fixture
def preferences(tmp_path):
    return Preferences(JsonFileStore(tmp_path / "state.json"))


def make_assets(count: int, prefix: str = "f") -> list[Asset]:
    return [
        Asset(
            id=f"{prefix}{i}",
            name=f"photo{i}.jpg",
            mime_type="image/jpeg",
            thumbnail_link=f"https://thumbs.example/{prefix}{i}=s220",
        )
        for i in range(count)
    ]
