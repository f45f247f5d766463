"""Static registry of marker id -> physical size and output frame name."""

from __future__ import annotations

import logging
import math
from typing import Any, Iterator, Mapping, Optional, Sequence

from .errors import ConfigError
from .tp_types import MarkerDescription

LOGGER = logging.getLogger(__name__)


def default_frame_name(tag_id: int) -> str:
    return f"tag_{tag_id}"


class MarkerRegistry:
    def __init__(self, descriptions: Optional[Mapping[int, MarkerDescription]] = None):
        self._descriptions: dict[int, MarkerDescription] = dict(descriptions or {})

    def lookup(self, tag_id: int) -> Optional[MarkerDescription]:
        return self._descriptions.get(tag_id)

    def ids(self) -> list[int]:
        return list(self._descriptions)

    def __contains__(self, tag_id: object) -> bool:
        return tag_id in self._descriptions

    def __len__(self) -> int:
        return len(self._descriptions)

    def __iter__(self) -> Iterator[MarkerDescription]:
        return iter(self._descriptions.values())


def _parse_entry(index: int, entry: Any) -> MarkerDescription:
    if not isinstance(entry, Mapping):
        raise ConfigError(f"tag_descriptions[{index}] must be a mapping, got {type(entry).__name__}")

    tag_id = entry.get("id")
    # bool is an int subclass; reject it explicitly
    if isinstance(tag_id, bool) or not isinstance(tag_id, int):
        raise ConfigError(f"tag_descriptions[{index}].id must be an integer, got {tag_id!r}")

    size = entry.get("size")
    if isinstance(size, bool) or not isinstance(size, (int, float)):
        raise ConfigError(f"tag_descriptions[{index}].size must be a number, got {size!r}")
    size = float(size)
    if not math.isfinite(size) or size <= 0.0:
        raise ConfigError(f"tag_descriptions[{index}].size must be positive, got {size!r}")

    if "frame_id" in entry:
        frame_name = entry["frame_id"]
        if not isinstance(frame_name, str) or not frame_name:
            raise ConfigError(
                f"tag_descriptions[{index}].frame_id must be a non-empty string, got {frame_name!r}"
            )
    else:
        frame_name = default_frame_name(tag_id)

    return MarkerDescription(tag_id, size, frame_name)


def load_registry(entries: Optional[Sequence[Any]], strict: bool = False) -> MarkerRegistry:
    """
    Build a MarkerRegistry from a list of ``{id, size, frame_id?}`` entries.

    Args:
        entries: The configured tag descriptions. ``None`` means no tags were
            configured; an empty registry is returned and a warning logged.
        strict: When True the first malformed entry aborts the load. Otherwise
            the entry is logged and skipped.

    Raises:
        ConfigError: ``entries`` is not a list, or (strict mode) an entry is
            malformed.
    """
    if entries is None:
        LOGGER.warning("No april tags specified")
        return MarkerRegistry()
    if isinstance(entries, (str, bytes)) or not isinstance(entries, Sequence):
        raise ConfigError(
            f"tag_descriptions must be a list of mappings, got {type(entries).__name__}"
        )

    descriptions: dict[int, MarkerDescription] = {}
    for i, entry in enumerate(entries):
        try:
            desc = _parse_entry(i, entry)
        except ConfigError as exc:
            if strict:
                raise
            LOGGER.error("Error loading tag description, skipping: %s", exc)
            continue
        if desc.id in descriptions:
            LOGGER.warning("Duplicate tag id %d in tag_descriptions; last entry wins", desc.id)
        descriptions[desc.id] = desc
        LOGGER.info(
            "Loaded tag config: %d, size: %s, frame_name: %s",
            desc.id, desc.size, desc.frame_name,
        )
    return MarkerRegistry(descriptions)
