"""
hactl_lib/filter.py

Entity visibility filter backed by two cache files written by ``hactl sync``:

- exposed-entities.json: JSON array of exposed entity ids (mandatory in
  "exposed" mode)
- entity-areas.json: JSON object entity_id -> area_id (optional)

Both are replaced wholesale on every sync (per-writer temp file + os.replace) and are
created owner read/write only; they sit next to credential data.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar

from .const import AREAS_CACHE_FILENAME, CONFIG_DIR_NAME, EXPOSED_CACHE_FILENAME, SYNC_HINT
from .errors import CacheCorruptError, CacheError, CacheMissingError, HactlConfigError
from .types import FilterMode, ResolvedRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FILE_MODE = 0o600
_DIR_MODE = 0o700


def default_cache_dir() -> Path:
    return Path.home() / ".config" / CONFIG_DIR_NAME


@dataclass(frozen=True, slots=True)
class CachePaths:
    exposed_path: Path
    areas_path: Path

    @classmethod
    def in_dir(cls, directory: str | os.PathLike[str]) -> "CachePaths":
        base = Path(directory).expanduser()
        return cls(
            exposed_path=base / EXPOSED_CACHE_FILENAME,
            areas_path=base / AREAS_CACHE_FILENAME,
        )

    @classmethod
    def default(cls) -> "CachePaths":
        return cls.in_dir(default_cache_dir())


def coerce_mode(mode: FilterMode | str) -> FilterMode:
    try:
        return FilterMode(mode)
    except ValueError:
        raise HactlConfigError(
            f'invalid filter.mode {mode!r}: must be "exposed" or "all"'
        ) from None


# --------------------------
# Writer
# --------------------------

def _atomic_write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(mode=_DIR_MODE, parents=True, exist_ok=True)
    # unique per writer; mkstemp creates it 0600
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, sort_keys=isinstance(data, dict))
        os.chmod(tmp, _FILE_MODE)
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp)
        raise


def write_filter_cache(
    registry: ResolvedRegistry, paths: Optional[CachePaths] = None
) -> CachePaths:
    """Replace both cache files with the contents of registry."""
    paths = paths or CachePaths.default()
    try:
        _atomic_write_json(paths.exposed_path, list(registry.exposed_ids))
    except OSError as e:
        raise CacheError(f"write entity cache {paths.exposed_path}: {e}") from e
    try:
        _atomic_write_json(paths.areas_path, dict(registry.entity_area))
    except OSError as e:
        raise CacheError(f"write areas cache {paths.areas_path}: {e}") from e
    logger.debug(
        "Wrote %d exposed ids to %s and %d area mappings to %s",
        len(registry.exposed_ids),
        paths.exposed_path,
        len(registry.entity_area),
        paths.areas_path,
    )
    return paths


# --------------------------
# Reader
# --------------------------

def load_exposed_cache(path: Path) -> frozenset[str]:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise CacheMissingError(f"No entity cache found at {path}. {SYNC_HINT}") from None
    except OSError as e:
        raise CacheError(f"reading entity cache {path}: {e}") from e

    try:
        ids = json.loads(raw)
    except ValueError as e:
        raise CacheCorruptError(f"parsing entity cache {path}: {e}") from e
    if ids is None:
        # older writers stored an empty list as null
        return frozenset()
    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        raise CacheCorruptError(
            f"parsing entity cache {path}: expected a JSON array of entity id strings"
        )
    return frozenset(ids)


def load_areas_cache(path: Path) -> dict[str, str]:
    """Optional cache: any problem yields an empty map."""
    try:
        raw = path.read_text(encoding="utf-8")
        areas = json.loads(raw)
    except (OSError, ValueError) as e:
        logger.debug("Area cache %s unavailable: %s", path, e)
        return {}
    if not isinstance(areas, dict):
        logger.debug("Area cache %s is not a JSON object; ignoring", path)
        return {}
    return {
        entity_id: area_id
        for entity_id, area_id in areas.items()
        if isinstance(area_id, str) and area_id
    }


def entity_id_of(item: Any) -> Optional[str]:
    if isinstance(item, str):
        return item
    if isinstance(item, Mapping):
        value = item.get("entity_id")
    else:
        value = getattr(item, "entity_id", None)
    return value if isinstance(value, str) else None


class EntityFilter:
    """
    Enforces entity visibility for the configured mode.

    "all": every id is allowed and area queries never match; no cache file is read.
    "exposed": only ids in the exposed cache are allowed; area queries use the
    optional area cache.
    """

    def __init__(
        self,
        mode: FilterMode | str,
        allowed: Iterable[str] = (),
        entity_areas: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._mode = coerce_mode(mode)
        if self._mode is FilterMode.ALL:
            self._allowed: frozenset[str] = frozenset()
            self._entity_areas: dict[str, str] = {}
        else:
            self._allowed = frozenset(allowed)
            self._entity_areas = dict(entity_areas or {})

    @classmethod
    def load(
        cls,
        mode: FilterMode | str,
        paths: Optional[CachePaths] = None,
        *,
        skip_cache: bool = False,
    ) -> "EntityFilter":
        """
        Build a filter from the on-disk caches.

        skip_cache builds an empty filter without touching the disk (used by
        operations that rewrite or bypass the cache, such as sync).
        """
        mode = coerce_mode(mode)
        if mode is FilterMode.ALL or skip_cache:
            return cls(mode)
        paths = paths or CachePaths.default()
        allowed = load_exposed_cache(paths.exposed_path)
        entity_areas = load_areas_cache(paths.areas_path)
        return cls(mode, allowed, entity_areas)

    @classmethod
    def from_registry(cls, mode: FilterMode | str, registry: ResolvedRegistry) -> "EntityFilter":
        return cls(mode, registry.exposed_ids, registry.entity_area)

    @property
    def mode(self) -> FilterMode:
        return self._mode

    def is_allowed(self, entity_id: str) -> bool:
        if self._mode is FilterMode.ALL:
            return True
        return entity_id in self._allowed

    def entity_area_id(self, entity_id: str) -> Optional[str]:
        return self._entity_areas.get(entity_id)

    def matches_area(self, entity_id: str, area_query: str) -> bool:
        """Case-insensitive match of area_query against the entity's area id."""
        if not area_query:
            return False
        area_id = self._entity_areas.get(entity_id)
        if not area_id:
            return False
        return area_id.casefold() == area_query.casefold()

    def filter(
        self,
        items: Iterable[T],
        *,
        key: Optional[Callable[[T], Optional[str]]] = None,
    ) -> list[T]:
        """Return the allowed items, preserving input order."""
        if self._mode is FilterMode.ALL:
            return list(items)
        key = key or entity_id_of
        out: list[T] = []
        for item in items:
            entity_id = key(item)
            if entity_id is not None and entity_id in self._allowed:
                out.append(item)
        return out

    def __repr__(self) -> str:
        return (
            f"EntityFilter(mode={self._mode.value!r}, allowed={len(self._allowed)}, "
            f"areas={len(self._entity_areas)})"
        )


__all__ = [
    "CachePaths",
    "EntityFilter",
    "coerce_mode",
    "default_cache_dir",
    "entity_id_of",
    "load_areas_cache",
    "load_exposed_cache",
    "write_filter_cache",
]
