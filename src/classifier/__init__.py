"""
Classification domain package.

This package contains:

- the label provider (prompt + parsing + vision LLM calls)
- the incremental classification cache that labels each asset once and
  persists the outcome
"""

from .cache import SAVE_EVERY, ClassificationCache, ClassificationProgress
from .provider import LabelProvider, OpenAILabelProvider, parse_label_response

__all__ = [
    "ClassificationCache",
    "ClassificationProgress",
    "LabelProvider",
    "OpenAILabelProvider",
    "SAVE_EVERY",
    "parse_label_response",
]
