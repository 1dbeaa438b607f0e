"""Unit metadata store.

Holds the ``displayUnits`` conversions learned from meta deltas, keyed by
path.  Change listeners fire only when a conversion actually changes, so
consumers can re-render converted values without polling.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from pysignalk.models.metadata import PathMetadata

_logger = logging.getLogger(__name__)

MetadataListener = Callable[[str, PathMetadata | None], None]


class MetadataStore:
    """Per-path conversion metadata."""

    def __init__(self) -> None:
        self._entries: dict[str, PathMetadata] = {}
        self._listeners: list[MetadataListener] = []

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def update_from_meta(
        self,
        path: str,
        display_units: Mapping[str, Any],
        *,
        category: str | None = None,
    ) -> bool:
        """Record metadata from a meta delta's ``displayUnits``.

        Returns ``True`` when the stored conversion changed.
        """
        try:
            metadata = PathMetadata.from_display_units(path, dict(display_units), category=category)
        except ValidationError:
            _logger.debug("Ignoring malformed displayUnits path=%s", path, exc_info=True)
            return False
        return self.update(metadata)

    def update(self, metadata: PathMetadata) -> bool:
        previous = self._entries.get(metadata.path)
        if not metadata.differs_from(previous):
            return False
        self._entries[metadata.path] = metadata
        _logger.debug(
            "Metadata updated path=%s unit=%s formula=%s",
            metadata.path,
            metadata.target_unit,
            metadata.formula,
        )
        self._notify(metadata.path, metadata)
        return True

    def remove(self, path: str) -> bool:
        if self._entries.pop(path, None) is None:
            return False
        self._notify(path, None)
        return True

    def clear(self) -> None:
        paths = list(self._entries)
        self._entries.clear()
        for path in paths:
            self._notify(path, None)

    def load_from_cache(self, cached: Mapping[str, Mapping[str, Any]]) -> int:
        """Restore entries previously exported with :meth:`to_map`.

        Malformed entries are skipped.  Returns the number of paths loaded.
        """
        loaded = 0
        for path, payload in cached.items():
            try:
                metadata = PathMetadata.model_validate({**payload, "path": path})
            except ValidationError:
                _logger.debug("Skipping cached metadata path=%s", path, exc_info=True)
                continue
            if self.update(metadata):
                loaded += 1
        return loaded

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, path: str) -> PathMetadata | None:
        return self._entries.get(path)

    def has(self, path: str) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def paths(self) -> list[str]:
        return sorted(self._entries)

    def get_by_category(self, category: str) -> list[PathMetadata]:
        return [meta for meta in self._entries.values() if meta.category == category]

    def get_symbol(self, path: str) -> str | None:
        metadata = self._entries.get(path)
        if metadata is None:
            return None
        return metadata.symbol or metadata.target_unit

    def convert(self, path: str, si_value: float) -> float:
        """SI -> display.  Without metadata (or on formula failure) the SI value is returned."""
        metadata = self._entries.get(path)
        if metadata is None:
            return si_value
        converted = metadata.convert(si_value)
        return si_value if converted is None else converted

    def convert_to_si(self, path: str, display_value: float) -> float:
        """Display -> SI.  Used before sending user-entered values."""
        metadata = self._entries.get(path)
        if metadata is None:
            return display_value
        converted = metadata.convert_to_si(display_value)
        return display_value if converted is None else converted

    def format(self, path: str, si_value: float, *, decimals: int = 1) -> str:
        metadata = self._entries.get(path)
        if metadata is None:
            return f"{si_value:.{decimals}f}"
        return metadata.format(si_value, decimals=decimals)

    def to_map(self) -> dict[str, dict[str, Any]]:
        """Export for persistence; inverse of :meth:`load_from_cache`."""
        return {
            path: meta.model_dump(mode="json", by_alias=True, exclude={"raw", "path"}, exclude_none=True)
            for path, meta in self._entries.items()
        }

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: MetadataListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _notify(self, path: str, metadata: PathMetadata | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(path, metadata)
            except Exception:
                _logger.debug("Metadata listener failed path=%s", path, exc_info=True)
