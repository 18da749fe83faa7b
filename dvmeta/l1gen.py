"""Level 1 metadata generation from HDR10+ and madVR measurement sources."""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any

from .madvr import parse_file
from .metadata import Level1Metadata, Level6Metadata
from .pq import nits_to_pq

_U16_MAX = 0xFFFF
_PQ_CODE_SCALE = 4095.0


def _round_to_u16(value: float) -> int:
    """Round half away from zero, then saturate into the u16 range."""
    if math.isnan(value):
        return 0
    rounded = math.copysign(math.floor(abs(value) + 0.5), value)
    return int(min(max(rounded, 0), _U16_MAX))


def _pq_code(pq: float) -> int:
    return _round_to_u16(pq * _PQ_CODE_SCALE)


def _is_u64(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _required_u64(obj: dict, key: str) -> int:
    value = obj.get(key)
    if not _is_u64(value):
        raise ValueError(f"HDR10+ JSON: missing or invalid {key}")
    return value


def _nits_code(tenth_nits: int) -> int:
    nits = _round_to_u16(tenth_nits / 10.0)
    return _pq_code(nits_to_pq(nits))


def parse_hdr10plus_for_l1(path) -> tuple[list[Level1Metadata] | None, list[int]]:
    """Derive per-frame L1 metadata and scene cuts from an HDR10+ JSON file.

    Returns None for the metadata when the file has no SceneInfo array.
    """
    with open(Path(path), encoding="utf-8") as fh:
        document = json.load(fh)

    scene_cuts: list[int] = []
    if not isinstance(document, dict):
        return None, scene_cuts

    scene_info = document.get("SceneInfo")
    if not isinstance(scene_info, list):
        return None, scene_cuts

    l1_meta = []
    for entry in scene_info:
        if not isinstance(entry, dict):
            continue

        luminance = entry.get("LuminanceParameters")
        if not isinstance(luminance, dict):
            raise ValueError("HDR10+ JSON: missing or invalid LuminanceParameters")

        avg_rgb = _required_u64(luminance, "AverageRGB")
        maxscl = luminance.get("MaxScl")
        if not isinstance(maxscl, list):
            raise ValueError("HDR10+ JSON: missing or invalid MaxScl")
        maxscl_values = [v for v in maxscl if _is_u64(v)]
        if not maxscl_values:
            raise ValueError("HDR10+ JSON: MaxScl has no valid values")
        max_rgb = max(maxscl_values)

        if _required_u64(entry, "SceneFrameIndex") == 0:
            scene_cuts.append(_required_u64(entry, "SequenceFrameIndex"))

        l1_meta.append(
            Level1Metadata(
                min_pq=0,
                max_pq=_nits_code(max_rgb),
                avg_pq=_nits_code(avg_rgb),
            )
        )

    return l1_meta, scene_cuts


def generate_metadata_from_madvr(
    path, use_custom_targets: bool = False
) -> tuple[list[Level1Metadata], Level6Metadata, list[int]]:
    """Derive L1 metadata, L6 light levels and scene cuts from a madVR file.

    With custom targets, and when the file carries per-frame target nits,
    each frame's peak comes from its target and the average from its scene.
    """
    info = parse_file(path)

    l6_meta = Level6Metadata(
        max_content_light_level=info.header.maxcll & _U16_MAX,
        max_frame_average_light_level=info.header.maxfall & _U16_MAX,
    )
    scene_cuts = [scene.start for scene in info.scenes]

    per_frame_targets = use_custom_targets and info.header.flags == 3
    l1_meta: list[Level1Metadata] = []

    for scene in info.scenes:
        avg_pq = _pq_code(scene.avg_pq)
        if per_frame_targets:
            l1_meta.extend(
                Level1Metadata(min_pq=0, max_pq=_pq_code(f.target_pq), avg_pq=avg_pq)
                for f in scene.frames_in(info.frames)
            )
        else:
            max_pq = _pq_code(scene.max_pq)
            l1_meta.extend(
                Level1Metadata(min_pq=0, max_pq=max_pq, avg_pq=avg_pq)
                for _ in range(scene.length)
            )

    return l1_meta, l6_meta, scene_cuts