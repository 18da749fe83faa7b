"""Dolby Vision display-management metadata levels."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Level1Metadata:
    """Per-frame brightness analysis, as 12-bit PQ code values."""

    min_pq: int = 0
    max_pq: int = 0
    avg_pq: int = 0


@dataclass
class Level2Metadata:
    """Trim pass for a target display."""

    target_nits: int | None = None
    trim_slope: int = 0
    trim_offset: int = 0
    trim_power: int = 0
    trim_chroma_weight: int = 0
    trim_saturation_gain: int = 0
    ms_weight: int = 0


@dataclass
class Level3Metadata:
    """Offsets applied to the level 1 analysis values."""

    min_pq_offset: int = 0
    max_pq_offset: int = 0
    avg_pq_offset: int = 0


@dataclass
class Level5Metadata:
    """Active area offsets, in pixels, of the picture inside the canvas."""

    active_area_left_offset: int = 0
    active_area_right_offset: int = 0
    active_area_top_offset: int = 0
    active_area_bottom_offset: int = 0

    def offsets(self) -> tuple[int, int, int, int]:
        """Return the offsets as (left, right, top, bottom)."""
        return (
            self.active_area_left_offset,
            self.active_area_right_offset,
            self.active_area_top_offset,
            self.active_area_bottom_offset,
        )


@dataclass
class Level6Metadata:
    """Static HDR10 fallback metadata."""

    max_display_mastering_luminance: int = 0
    min_display_mastering_luminance: int = 0
    max_content_light_level: int = 0
    max_frame_average_light_level: int = 0