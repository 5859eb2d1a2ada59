"""
Persistent Preferences
======================

A small string-valued key/value store backed by one JSON document on disk,
plus typed accessors for everything the rotator remembers between runs:

- the processed-id set and the per-asset label record of the classifier
- the active label filter
- the selected folder, blur levels and the time of the last change

Classification state is stored in compact text encodings:

- processed ids: comma-joined id list
- label record: one ``id=label1|label2`` line per asset with labels
- filter selection: comma-joined label list

All encoders sort their input so that writing equal state twice produces
byte-identical files.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Iterable, Mapping

import structlog

log = structlog.get_logger(__name__)

KEY_FOLDER_ID = "folder_id"
KEY_FOLDER_NAME = "folder_name"
KEY_BLUR_HOME = "blur_home_percent"
KEY_BLUR_LOCK = "blur_lock_percent"
KEY_LAST_CHANGED = "last_changed"
KEY_PROCESSED_IDS = "classified_file_ids"
KEY_LABEL_RECORD = "photo_labels"
KEY_FILTER_LABELS = "selected_filter_labels"

LIST_SEPARATOR = ","
RECORD_SEPARATOR = "\n"
KEY_VALUE_SEPARATOR = "="
LABEL_SEPARATOR = "|"

_RESERVED_LABEL_CHARS = (LIST_SEPARATOR, RECORD_SEPARATOR, KEY_VALUE_SEPARATOR, LABEL_SEPARATOR)


def is_storable_label(label: str) -> bool:
    return bool(label) and not any(ch in label for ch in _RESERVED_LABEL_CHARS)


def encode_id_set(ids: Iterable[str]) -> str:
    return LIST_SEPARATOR.join(sorted(set(ids)))


def decode_id_set(raw: str | None) -> set[str]:
    if not raw:
        return set()
    return {part for part in raw.split(LIST_SEPARATOR) if part}


def encode_label_record(record: Mapping[str, Iterable[str]]) -> str:
    """Encode a label record; ids whose label set ends up empty are omitted."""
    lines = []
    for asset_id in sorted(record):
        labels = sorted({label for label in record[asset_id] if is_storable_label(label)})
        if not labels:
            continue
        lines.append(f"{asset_id}{KEY_VALUE_SEPARATOR}{LABEL_SEPARATOR.join(labels)}")
    return RECORD_SEPARATOR.join(lines)


def decode_label_record(raw: str | None) -> dict[str, set[str]]:
    if not raw:
        return {}
    record: dict[str, set[str]] = {}
    for line in raw.split(RECORD_SEPARATOR):
        asset_id, sep, joined = line.partition(KEY_VALUE_SEPARATOR)
        if not sep or not asset_id:
            continue
        labels = {label for label in joined.split(LABEL_SEPARATOR) if label}
        if labels:
            record[asset_id] = labels
    return record


class JsonFileStore:
    """
    String key/value store persisted as a single JSON object.

    Writes go through a temporary file that replaces the target, so a crash
    mid-write leaves the previous document intact.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.RLock()
        self._values: dict[str, str] = self._read()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError):
            log.exception("Failed to read preferences; starting empty", path=str(self.path))
            return {}
        if not isinstance(data, dict):
            log.warning("Preferences file is not a JSON object; ignoring", path=str(self.path))
            return {}
        return {str(key): str(value) for key, value in data.items()}

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(
            json.dumps(self._values, indent=2, sort_keys=True, ensure_ascii=False),
            encoding="utf-8",
        )
        tmp.replace(self.path)

    def get(self, key: str, default: str | None = None) -> str | None:
        with self._lock:
            return self._values.get(key, default)

    def update(self, values: Mapping[str, str | None]) -> None:
        """Set several keys in one write; a value of None removes the key."""
        with self._lock:
            for key, value in values.items():
                if value is None:
                    self._values.pop(key, None)
                else:
                    self._values[key] = value
            self._write()

    def set(self, key: str, value: str | None) -> None:
        self.update({key: value})


class Preferences:
    """Typed accessors over a `JsonFileStore`."""

    def __init__(self, store: JsonFileStore):
        self.store = store

    # --- Classification state ---

    def processed_ids(self) -> set[str]:
        return decode_id_set(self.store.get(KEY_PROCESSED_IDS))

    def label_record(self) -> dict[str, set[str]]:
        return decode_label_record(self.store.get(KEY_LABEL_RECORD))

    def save_classification(
        self, processed: Iterable[str], record: Mapping[str, Iterable[str]]
    ) -> None:
        """Persist the processed set and label record together."""
        self.store.update(
            {
                KEY_PROCESSED_IDS: encode_id_set(processed),
                KEY_LABEL_RECORD: encode_label_record(record),
            }
        )

    def clear_classification_cache(self) -> None:
        self.store.update({KEY_PROCESSED_IDS: None, KEY_LABEL_RECORD: None})

    # --- Filter selection ---

    def filter_labels(self) -> set[str]:
        return decode_id_set(self.store.get(KEY_FILTER_LABELS))

    def set_filter_labels(self, labels: Iterable[str]) -> None:
        storable = {label for label in labels if is_storable_label(label)}
        self.store.set(KEY_FILTER_LABELS, encode_id_set(storable))

    # --- Folder ---

    def folder(self) -> tuple[str | None, str | None]:
        """Return the stored ``(folder_id, folder_name)``; either may be None."""
        return self.store.get(KEY_FOLDER_ID), self.store.get(KEY_FOLDER_NAME)

    def set_folder(self, folder_id: str | None, folder_name: str | None) -> None:
        self.store.update({KEY_FOLDER_ID: folder_id, KEY_FOLDER_NAME: folder_name})

    # --- Rendering ---

    def blur_percents(self, default_home: int = 0, default_lock: int = 0) -> tuple[int, int]:
        home = self.store.get(KEY_BLUR_HOME)
        lock = self.store.get(KEY_BLUR_LOCK)
        return (
            int(home) if home is not None else default_home,
            int(lock) if lock is not None else default_lock,
        )

    def set_blur_percents(self, home: int, lock: int) -> None:
        self.store.update(
            {
                KEY_BLUR_HOME: str(max(0, min(100, home))),
                KEY_BLUR_LOCK: str(max(0, min(100, lock))),
            }
        )

    def last_changed(self) -> float:
        return float(self.store.get(KEY_LAST_CHANGED, "0"))

    def set_last_changed(self, timestamp: float) -> None:
        self.store.set(KEY_LAST_CHANGED, repr(float(timestamp)))
