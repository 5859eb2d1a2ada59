"""
Image Labeling Module
=====================

This module turns an image into a set of short descriptive labels
("Mountain", "Lake", "Sky"...). It defines a common interface for label
providers and an implementation backed by an OpenAI-compatible vision model
(OpenAI or Ollama).

Labels are returned as the model names them, with no fixed vocabulary: the
filter choices offered to the user are built from whatever labels actually
show up across the collection.
"""

from __future__ import annotations

import base64
import json
from abc import ABC, abstractmethod
from io import BytesIO

import openai
import structlog
from PIL import Image

from common.config import Settings
from common.errors import ClassifierFailure
from common.utils import retry

log = structlog.get_logger(__name__)

RETRYABLE_OPENAI_EXCEPTIONS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)

MAX_IMAGE_SIDE_PX = 512

LABELING_PROMPT = """
You are an image-labeling engine in a photo organisation pipeline.
Look at the photo and list the things that are clearly visible in it:
scenery (Mountain, Lake, Beach, Forest, Sky, Snow), settings (Outdoor, Indoor,
City, Night), subjects (Person, Dog, Flower, Building) and similar concepts.

- Reply only with a single valid JSON object, no markdown and no commentary.
- Use short English nouns in Title Case, one concept per label.
- Give each label a confidence between 0 and 1.
- Never include the characters , | = or line breaks inside a label.

----------  JSON schema  ----------
{
  "labels": [
    {"label": string, "confidence": number}
  ]
}
-----------------------------------
""".strip()


def _extract_json(text: str) -> dict:
    """Parse JSON from raw model output, trimming surrounding text if needed."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end == -1 or end <= start:
            raise
        return json.loads(text[start : end + 1])


def parse_label_response(text: str, threshold: float) -> set[str]:
    """
    Parse the labeling response and keep labels at or above ``threshold``.

    Plain strings in the ``labels`` list are accepted and treated as fully
    confident.
    """
    raw = text.strip()
    if not raw:
        raise ValueError("Labeling response is empty.")

    data = _extract_json(raw)
    if not isinstance(data, dict):
        raise ValueError("Labeling response is not a JSON object.")

    entries = data.get("labels", [])
    if not isinstance(entries, list):
        raise ValueError("Labeling response 'labels' is not a list.")

    labels = set()
    for entry in entries:
        if isinstance(entry, str):
            name, confidence = entry, 1.0
        elif isinstance(entry, dict):
            name = str(entry.get("label") or entry.get("name") or "")
            try:
                confidence = float(entry.get("confidence", 1.0))
            except (TypeError, ValueError):
                continue
        else:
            continue
        name = " ".join(name.split())
        if name and confidence >= threshold:
            labels.add(name)
    return labels


def encode_image(image: Image.Image, max_side: int = MAX_IMAGE_SIDE_PX) -> str:
    """Return ``image`` as a base64 PNG data URL, shrunk to ``max_side``."""
    copy = image.convert("RGB")
    copy.thumbnail((max_side, max_side))
    buf = BytesIO()
    copy.save(buf, format="PNG")
    payload = base64.b64encode(buf.getvalue()).decode()
    return f"data:image/png;base64,{payload}"


class LabelProvider(ABC):
    """Abstract base class for label providers."""

    @abstractmethod
    def classify(self, image: Image.Image, asset_id: str | None = None) -> set[str]:
        """
        Return the labels detected in ``image`` (possibly empty).

        Raises `ClassifierFailure` when no result can be produced.
        """
        raise NotImplementedError


class OpenAILabelProvider(LabelProvider):
    """A label provider that uses the OpenAI and Ollama vision APIs."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @retry(retryable_exceptions=RETRYABLE_OPENAI_EXCEPTIONS)
    def _create_completion(self, **kwargs):
        """A retriable version of openai.chat.completions.create."""
        return openai.chat.completions.create(**kwargs)

    def classify(self, image: Image.Image, asset_id: str | None = None) -> set[str]:
        """
        Label an image using the primary model, then the fallback model.
        """
        messages = [
            {"role": "system", "content": LABELING_PROMPT},
            {
                "role": "user",
                "content": [
                    {
                        "type": "image_url",
                        "image_url": {"url": encode_image(image), "detail": "low"},
                    },
                ],
            },
        ]

        models = [self.settings.LABEL_MODEL, self.settings.LABEL_FALLBACK_MODEL]
        for model in dict.fromkeys(m for m in models if m):
            try:
                response = self._create_completion(
                    model=model,
                    messages=messages,
                    timeout=self.settings.REQUEST_TIMEOUT,
                )
                content = response.choices[0].message.content or ""
                labels = parse_label_response(
                    content, self.settings.LABEL_CONFIDENCE_THRESHOLD
                )
            except (json.JSONDecodeError, ValueError) as e:
                log.warning(
                    "Labeling response invalid", model=model, asset_id=asset_id, error=str(e)
                )
                continue
            except openai.APIError as e:
                log.warning(
                    "Labeling model failed", model=model, asset_id=asset_id, error=str(e)
                )
                continue

            log.debug("Labeled image", model=model, asset_id=asset_id, labels=sorted(labels))
            return labels

        raise ClassifierFailure(
            "All labeling models failed", asset_id=asset_id, phase="classify"
        )
