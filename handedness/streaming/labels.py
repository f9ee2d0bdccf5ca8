from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_LABELS: tuple[str, ...] = ("BOTH", "LEFT", "RIGHT")
UNKNOWN_LABEL = "UNKNOWN"


class LabelResolutionError(ValueError):
    """The label order could not be read from the metadata source."""


@dataclass(frozen=True)
class LabelSet:
    labels: tuple[str, ...]
    origin: str = "metadata"

    def __len__(self) -> int:
        return len(self.labels)

    def label_for(self, index: int) -> str:
        if 0 <= index < len(self.labels):
            return self.labels[index]
        return UNKNOWN_LABEL

    @property
    def is_fallback(self) -> bool:
        return self.origin == "fallback"


def _read_metadata(source: str | Path | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(source, Mapping):
        return source
    path = Path(source)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise LabelResolutionError(f"Metadata file not found: {path}") from e
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise LabelResolutionError(f"Could not read metadata {path}: {e}") from e
    if not isinstance(data, Mapping):
        raise LabelResolutionError(f"Metadata {path} must be a JSON object, got {type(data).__name__}")
    return data


def load_label_set(source: str | Path | Mapping[str, Any] | None) -> LabelSet:
    """Read the ordered ``label_classes`` list from a metadata file or mapping.

    Raises LabelResolutionError when the source is missing or malformed.
    """

    if source is None:
        raise LabelResolutionError("No metadata source given")

    meta = _read_metadata(source)
    raw = meta.get("label_classes")
    if not isinstance(raw, (list, tuple)) or not raw:
        raise LabelResolutionError("'label_classes' must be a non-empty list")
    bad = [v for v in raw if not isinstance(v, str)]
    if bad:
        raise LabelResolutionError(f"'label_classes' must contain only strings, got {bad!r}")
    return LabelSet(labels=tuple(raw), origin="metadata")


def resolve_label_set(
    source: str | Path | Mapping[str, Any] | None,
    *,
    fallback: Sequence[str] | None = DEFAULT_LABELS,
) -> LabelSet:
    """Resolve the label order, substituting ``fallback`` on failure.

    Pass ``fallback=None`` to make a resolution failure fatal.
    """

    try:
        labels = load_label_set(source)
    except LabelResolutionError as e:
        if fallback is None:
            raise
        logger.warning("Failed to load label order (%s); using fallback %s", e, list(fallback))
        return LabelSet(labels=tuple(str(v) for v in fallback), origin="fallback")

    logger.info("Loaded label order %s", list(labels.labels))
    return labels
