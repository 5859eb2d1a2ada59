"""
Label index and random sampling.

The set of available labels is derived from the label record on every call
and never stored separately. A filter selects assets whose labels intersect
it; an empty filter means every asset is eligible, signalled by ``None``.
"""

from __future__ import annotations

import random
from typing import Iterable, Mapping, Sequence

from common.drive import Asset


def available_labels(record: Mapping[str, Iterable[str]]) -> list[str]:
    """Sorted union of every label in ``record``."""
    labels: set[str] = set()
    for asset_labels in record.values():
        labels.update(asset_labels)
    return sorted(labels)


def eligible_ids(
    record: Mapping[str, Iterable[str]], selected: Iterable[str]
) -> frozenset[str] | None:
    """
    Ids whose labels intersect ``selected``; ``None`` when nothing is selected.
    """
    selected = set(selected)
    if not selected:
        return None
    return frozenset(
        asset_id for asset_id, labels in record.items() if selected.intersection(labels)
    )


def eligible_assets(
    assets: Sequence[Asset], eligible: frozenset[str] | None
) -> list[Asset]:
    if eligible is None:
        return list(assets)
    return [asset for asset in assets if asset.id in eligible]


def count_eligible(assets: Sequence[Asset], eligible: frozenset[str] | None) -> int:
    return len(eligible_assets(assets, eligible))


def sample(
    assets: Sequence[Asset],
    eligible: frozenset[str] | None,
    rng: random.Random | None = None,
) -> Asset | None:
    """
    Pick one eligible asset uniformly at random, or None if there is none.

    Every eligible asset has the same chance regardless of how many labels it has.
    """
    candidates = eligible_assets(assets, eligible)
    if not candidates:
        return None
    return (rng or random).choice(candidates)
