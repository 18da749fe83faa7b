"""Edit configuration for RPU metadata and the list operations it drives."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields
from typing import Any, TypeVar

from .metadata import Level6Metadata

_U8_MAX = 0xFF
_U16_MAX = 0xFFFF
_USIZE_MAX = 2**64 - 1
_USIZE_PATTERN = re.compile(r"\+?[0-9]+")

T = TypeVar("T")


class EditError(ValueError):
    """Raised for invalid edit configurations or edit ranges."""


@dataclass(frozen=True)
class ActiveAreaOffsets:
    id: int
    left: int
    right: int
    top: int
    bottom: int


@dataclass
class ActiveArea:
    crop: bool = False
    presets: list[ActiveAreaOffsets] | None = None
    edits: dict[str, int] | None = None


@dataclass(frozen=True)
class DuplicateMetadata:
    source: int
    offset: int
    length: int


@dataclass
class EditConfig:
    mode: int = 0
    active_area: ActiveArea | None = None
    remove: list[str] | None = None
    duplicate: list[DuplicateMetadata] | None = None
    min_pq: int | None = None
    max_pq: int | None = None
    level6: Level6Metadata | None = None


def _integer(value: Any, maximum: int, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EditError(f"{what}: expected an integer, got {value!r}")
    if not 0 <= value <= maximum:
        raise EditError(f"{what}: {value} out of range")
    return value


def _mapping(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise EditError(f"{what}: expected an object")
    return value


def _sequence(value: Any, what: str) -> list:
    if not isinstance(value, list):
        raise EditError(f"{what}: expected an array")
    return value


def _required(data: Mapping[str, Any], key: str, what: str) -> Any:
    if key not in data:
        raise EditError(f"{what}: missing field {key!r}")
    return data[key]


def _active_area_offsets(data: Any) -> ActiveAreaOffsets:
    data = _mapping(data, "preset")
    return ActiveAreaOffsets(
        **{
            name: _integer(_required(data, name, "preset"), _U16_MAX, f"preset {name}")
            for name in ("id", "left", "right", "top", "bottom")
        }
    )


def _active_area(data: Any) -> ActiveArea:
    data = _mapping(data, "active_area")
    crop = data.get("crop", False)
    if not isinstance(crop, bool):
        raise EditError("active_area crop: expected a boolean")

    presets = data.get("presets")
    if presets is not None:
        presets = [_active_area_offsets(p) for p in _sequence(presets, "presets")]

    edits = data.get("edits")
    if edits is not None:
        edits = {
            str(key): _integer(value, _U16_MAX, f"edit {key}")
            for key, value in _mapping(edits, "edits").items()
        }

    return ActiveArea(crop=crop, presets=presets, edits=edits)


def _duplicate(data: Any) -> DuplicateMetadata:
    data = _mapping(data, "duplicate")
    return DuplicateMetadata(
        **{
            name: _integer(_required(data, name, "duplicate"), _USIZE_MAX, f"duplicate {name}")
            for name in ("source", "offset", "length")
        }
    )


def _level6(data: Any) -> Level6Metadata:
    data = _mapping(data, "level6")
    return Level6Metadata(
        **{
            f.name: _integer(data.get(f.name, 0), _U16_MAX, f"level6 {f.name}")
            for f in fields(Level6Metadata)
        }
    )


def edit_config_from_dict(data: Mapping[str, Any]) -> EditConfig:
    """Build an edit configuration from decoded JSON data."""
    data = _mapping(data, "edit config")
    config = EditConfig(mode=_integer(data.get("mode", 0), _U8_MAX, "mode"))

    if data.get("active_area") is not None:
        config.active_area = _active_area(data["active_area"])

    if data.get("remove") is not None:
        remove = _sequence(data["remove"], "remove")
        if not all(isinstance(r, str) for r in remove):
            raise EditError("remove: expected an array of strings")
        config.remove = list(remove)

    if data.get("duplicate") is not None:
        config.duplicate = [_duplicate(d) for d in _sequence(data["duplicate"], "duplicate")]

    for key in ("min_pq", "max_pq"):
        if data.get(key) is not None:
            setattr(config, key, _integer(data[key], _U16_MAX, key))

    if data.get("level6") is not None:
        config.level6 = _level6(data["level6"])

    return config


def _parse_usize(text: str) -> int | None:
    if not _USIZE_PATTERN.fullmatch(text):
        return None
    value = int(text)
    return value if value <= _USIZE_MAX else None


def parse_range(text: str) -> tuple[int, int]:
    """Parse a "start-end" frame range; unparsable bounds read as 0."""
    if "-" not in text:
        raise EditError("Invalid edit range")
    parts = text.split("-")
    start = _parse_usize(parts[0])
    end = _parse_usize(parts[1])
    return (start if start is not None else 0, end if end is not None else 0)


def remove_frames(
    items: Sequence[T], ranges: Sequence[str]
) -> tuple[list[T | None], int]:
    """Blank out the frames named by ranges or single indices.

    Returns the new list, with removed entries set to None, and the number of
    frames removed, counting each range in full. Entries that are neither a
    range nor an index are ignored.
    """
    result: list[T | None] = list(items)
    removed = 0

    for entry in ranges:
        if "-" in entry:
            start, end = parse_range(entry)
            if end >= len(result):
                raise EditError(f"invalid end range {end}")
            if start > end:
                raise EditError(f"invalid start range {start}")
            removed += end - start + 1
            result[start : end + 1] = [None] * (end - start + 1)
        else:
            index = _parse_usize(entry)
            if index is None:
                continue
            if index >= len(result):
                raise EditError(f"invalid frame index to remove {index}")
            removed += 1
            result[index] = None

    return result, removed


def duplicate_metadata(
    data: Sequence[T], to_duplicate: Sequence[DuplicateMetadata]
) -> list[T]:
    """Insert copies of entries, working from the highest offset down."""
    result = list(data)
    ordered = sorted(to_duplicate, key=lambda meta: meta.offset)[::-1]

    for meta in ordered:
        if meta.source >= len(result) or meta.offset >= len(result):
            raise EditError(f"invalid duplicate: {meta}")
        result[meta.offset : meta.offset] = [result[meta.source]] * meta.length

    return result


def active_area_assignments(
    active_area: ActiveArea, count: int
) -> list[tuple[int, int, ActiveAreaOffsets]]:
    """Resolve active area edits to (start, end, offsets) frame ranges.

    A range key of "all" covers every frame. Ranges are inclusive and
    returned in the order the edits are given.
    """
    if not active_area.edits or active_area.presets is None:
        return []

    assignments = []
    for key, preset_id in active_area.edits.items():
        if key.lower() == "all":
            if count == 0:
                raise EditError("Invalid range: no RPUs available")
            start, end = 0, count - 1
        else:
            start, end = parse_range(key)

        if end >= count:
            raise EditError(f"Invalid range: {end} > {count} available RPUs")
        if start > end:
            raise EditError(f"Invalid range: {start} > {end}")

        preset = next((p for p in active_area.presets if p.id == preset_id), None)
        if preset is None:
            raise EditError(f"Invalid preset ID: {preset_id}")

        assignments.append((start, end, preset))

    return assignments