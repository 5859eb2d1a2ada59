"""
Incremental Classification Cache
================================

This module defines `ClassificationCache`, which labels every asset of a
folder exactly once and remembers the outcome across runs.

Two structures are persisted through `common.preferences.Preferences`:

- the *processed* set: ids that were submitted for labeling at least once,
  whatever the outcome (labels, no labels, missing thumbnail, classifier
  error). Processed ids are never retried automatically.
- the *label record*: asset id -> non-empty label set.

Both are pruned to the current asset ids on every completed run, so the record
keys are always a subset of the processed set, which is a subset of the
current listing.

Progress is written every `SAVE_EVERY` items and after the last one, so an
interrupted run repeats at most `SAVE_EVERY - 1` items. Callers must not run
two classifications against the same preferences concurrently.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Callable, Iterable

import structlog
from PIL import Image

from common.drive import Asset
from common.errors import ClassifierFailure, NotAuthenticated, ThumbnailUnavailable
from common.preferences import Preferences, is_storable_label

from .provider import LabelProvider

log = structlog.get_logger(__name__)

SAVE_EVERY = 10


@dataclass(frozen=True)
class ClassificationProgress:
    completed: int
    total: int
    is_complete: bool


ProgressCallback = Callable[[ClassificationProgress], None]
ThumbnailFetcher = Callable[[Asset], Image.Image]


def _prune(
    processed: set[str], record: dict[str, set[str]], current_ids: set[str]
) -> tuple[set[str], dict[str, set[str]]]:
    """Intersect both structures with the current asset ids."""
    pruned_processed = processed & current_ids
    pruned_record = {
        asset_id: labels
        for asset_id, labels in record.items()
        if asset_id in current_ids and asset_id in pruned_processed
    }
    return pruned_processed, pruned_record


class ClassificationCache:
    """
    Labels unprocessed assets and maintains the persisted label record.
    """

    def __init__(
        self,
        preferences: Preferences,
        label_provider: LabelProvider,
        fetch_thumbnail: ThumbnailFetcher,
    ):
        self.preferences = preferences
        self.label_provider = label_provider
        self.fetch_thumbnail = fetch_thumbnail

    def classify(
        self,
        assets: Iterable[Asset],
        on_progress: ProgressCallback | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> dict[str, set[str]]:
        """
        Label every asset not yet processed and return the pruned label record.

        ``on_progress`` receives one event per finished item. ``should_stop``
        is polled between items; when it returns True the run stops, the
        state reached so far is saved and the pruned record is returned.
        """
        assets = list(assets)
        current_ids = {asset.id for asset in assets}
        processed = self.preferences.processed_ids()
        record = self.preferences.label_record()

        to_process = [asset for asset in assets if asset.id not in processed]

        if not to_process:
            pruned_processed, pruned_record = _prune(processed, record, current_ids)
            if pruned_processed != processed or pruned_record != record:
                log.info(
                    "Pruned classification cache",
                    removed_processed=len(processed) - len(pruned_processed),
                    removed_labeled=len(record) - len(pruned_record),
                )
                self.preferences.save_classification(pruned_processed, pruned_record)
            self._emit(on_progress, ClassificationProgress(0, 0, is_complete=True))
            return pruned_record

        total = len(to_process)
        log.info(
            "Classifying assets",
            to_process=total,
            already_processed=len(processed),
            asset_count=len(assets),
        )
        start_time = dt.datetime.now()
        completed = 0

        for asset in to_process:
            if should_stop is not None and should_stop():
                log.info("Classification cancelled", completed=completed, total=total)
                break

            try:
                labels = self._label_asset(asset)
            except NotAuthenticated:
                self.preferences.save_classification(processed, record)
                raise

            if labels:
                record[asset.id] = labels
            processed.add(asset.id)
            completed += 1

            self._emit(
                on_progress,
                ClassificationProgress(completed, total, is_complete=completed == total),
            )

            if completed % SAVE_EVERY == 0 or completed == total:
                self.preferences.save_classification(processed, record)

        final_processed, final_record = _prune(processed, record, current_ids)
        self.preferences.save_classification(final_processed, final_record)

        elapsed_time = (dt.datetime.now() - start_time).total_seconds()
        log.info(
            "Classification complete",
            labeled=len(final_record),
            asset_count=len(assets),
            classified_this_run=completed,
            elapsed_time=f"{elapsed_time:.2f}s",
        )
        return final_record

    def _label_asset(self, asset: Asset) -> set[str]:
        """Return the labels for one asset; per-item failures yield no labels."""
        try:
            thumbnail = self.fetch_thumbnail(asset)
        except ThumbnailUnavailable as e:
            log.warning(
                "No thumbnail available",
                asset_id=asset.id,
                name=asset.name,
                error=str(e),
                phase=e.phase or "thumbnail",
            )
            return set()

        try:
            labels = self.label_provider.classify(thumbnail, asset_id=asset.id)
        except ClassifierFailure as e:
            log.warning(
                "Classification failed",
                asset_id=asset.id,
                name=asset.name,
                error=str(e),
                phase=e.phase or "classify",
            )
            return set()
        finally:
            thumbnail.close()

        storable = {label for label in labels if is_storable_label(label)}
        if storable != set(labels):
            log.warning(
                "Dropped labels with reserved characters",
                asset_id=asset.id,
                dropped=sorted(set(labels) - storable),
            )
        log.debug("Classified asset", asset_id=asset.id, name=asset.name, labels=sorted(storable))
        return storable

    @staticmethod
    def _emit(on_progress: ProgressCallback | None, progress: ClassificationProgress) -> None:
        if on_progress is not None:
            on_progress(progress)
