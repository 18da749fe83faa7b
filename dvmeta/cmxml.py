"""Parsing of Dolby Vision content-mapping (CM) XML metadata files."""

from __future__ import annotations

import math
import re
import struct
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from dataclasses import dataclass, field, replace

from .metadata import (
    Level1Metadata,
    Level2Metadata,
    Level3Metadata,
    Level5Metadata,
    Level6Metadata,
)

CMV4_VERSION = "4.0.2"

_F32_EPSILON = 2.0**-23
_U16_MAX = 0xFFFF
_I16_MIN = -0x8000
_I16_MAX = 0x7FFF
_USIZE_MAX = 2**64 - 1
_TRIM_MAX = 4095
_UINT_PATTERN = re.compile(r"\+?[0-9]+")


class CmXmlError(ValueError):
    """Raised when a CM XML document is malformed or incomplete."""


@dataclass
class TargetDisplay:
    id: str
    peak_nits: int


@dataclass
class Level5AspectRatios:
    canvas: float = 0.0
    image: float = 0.0


@dataclass
class VideoShot:
    id: str = ""
    start: int = 0
    duration: int = 0
    level1: list[Level1Metadata] | None = None
    level2: list[list[Level2Metadata]] | None = None
    level3: list[Level3Metadata] | None = None
    level5: list[Level5AspectRatios] | None = None


@dataclass
class _Trims:
    level1: Level1Metadata | None = None
    level2: list[Level2Metadata] = field(default_factory=list)
    level3: Level3Metadata | None = None
    level5: Level5AspectRatios | None = None


def _f32(value: float) -> float:
    """Round a float to single precision."""
    if math.isnan(value) or math.isinf(value):
        return value
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _f32_div(numerator: float, denominator: float) -> float:
    if denominator == 0.0:
        if numerator == 0.0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator) * math.copysign(1.0, denominator)
    return _f32(numerator / denominator)


def _round(value: float) -> float:
    """Round half away from zero."""
    if math.isnan(value) or math.isinf(value):
        return value
    return math.copysign(math.floor(abs(value) + 0.5), value)


def _saturate(value: float, low: int, high: int) -> int:
    """Truncating, saturating float to integer cast."""
    if math.isnan(value):
        return 0
    if value <= low:
        return low
    if value >= high:
        return high
    return int(value)


def _local_name(tag) -> str:
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def _descendants(node: ET.Element, name: str) -> Iterator[ET.Element]:
    return (e for e in node.iter() if _local_name(e.tag) == name)


def _find_descendant(node: ET.Element, name: str) -> ET.Element | None:
    return next(_descendants(node, name), None)


def _children(node: ET.Element, name: str) -> Iterator[ET.Element]:
    return (c for c in node if _local_name(c.tag) == name)


def _find_child(node: ET.Element, name: str) -> ET.Element | None:
    return next(_children(node, name), None)


def _required_text(node: ET.Element, name: str) -> str:
    child = _find_child(node, name)
    if child is None:
        raise CmXmlError(f"missing {name} element")
    if child.text is None:
        raise CmXmlError(f"empty {name} element")
    return child.text.strip()


def _parse_uint(text: str, maximum: int, what: str) -> int:
    text = text.strip()
    if not _UINT_PATTERN.fullmatch(text):
        raise CmXmlError(f"invalid integer for {what}: {text!r}")
    value = int(text)
    if value > maximum:
        raise CmXmlError(f"value out of range for {what}: {value}")
    return value


def _parse_f32(text: str, what: str) -> float:
    try:
        return _f32(float(text.strip()))
    except ValueError as exc:
        raise CmXmlError(f"invalid number for {what}: {text!r}") from exc


def _trim_code(value: float, scale: float) -> float:
    return _round(_f32(_f32(value * scale) + 2048.0))


def calculate_level5_metadata(
    ar: Level5AspectRatios, canvas_width: int, canvas_height: int
) -> Level5Metadata | None:
    """Compute active area offsets for an image aspect ratio inside a canvas.

    Returns None when the image fills the canvas.
    """
    cw = _f32(float(canvas_width))
    ch = _f32(float(canvas_height))

    if abs(_f32(ar.canvas - ar.image)) < _F32_EPSILON:
        return None

    level5 = Level5Metadata()
    if ar.image > ar.canvas:
        image_h = _round(_f32(ch * _f32_div(ar.canvas, ar.image)))
        diff = _f32(ch - image_h)
        offset_top = math.trunc(diff / 2.0) if math.isfinite(diff) else diff
        offset_bottom = _f32(diff - offset_top)
        level5.active_area_top_offset = _saturate(offset_top, 0, _U16_MAX)
        level5.active_area_bottom_offset = _saturate(offset_bottom, 0, _U16_MAX)
    else:
        image_w = _round(_f32(cw * _f32_div(ar.image, ar.canvas)))
        diff = _f32(cw - image_w)
        offset_left = math.trunc(diff / 2.0) if math.isfinite(diff) else diff
        offset_right = _f32(diff - offset_left)
        level5.active_area_left_offset = _saturate(offset_left, 0, _U16_MAX)
        level5.active_area_right_offset = _saturate(offset_right, 0, _U16_MAX)

    return level5


class CmXmlParser:
    """Parsed contents of a CM v2.9 or v4 XML metadata document."""

    def __init__(self, text: str) -> None:
        try:
            root = ET.fromstring(text)
        except ET.ParseError as exc:
            raise CmXmlError(f"invalid XML: {exc}") from exc

        self.cm_version: str = self._parse_cm_version(root)
        self.separator: str = " " if self.is_cmv4() else ","
        self.length: int = 0
        self.target_displays: dict[str, TargetDisplay] = {}
        self.level5: Level5AspectRatios | None = None
        self.level6: Level6Metadata = Level6Metadata()
        self.shots: list[VideoShot] = []

        output = _find_descendant(root, "Output")
        if output is None:
            raise CmXmlError("Could not find Output node")

        self.level5 = self._parse_global_level5(output)

        video = _find_descendant(output, "Video")
        if video is None:
            raise CmXmlError("Could not find Video node")

        maxfall, maxcll = self._parse_level6(video)
        min_lum, max_lum = self._parse_mastering_display(video)
        self.level6 = Level6Metadata(
            max_display_mastering_luminance=max_lum,
            min_display_mastering_luminance=min_lum,
            max_content_light_level=maxcll,
            max_frame_average_light_level=maxfall,
        )

        self.target_displays = self._parse_target_displays(video)

        self.shots = sorted(
            (self._parse_shot(n) for n in _descendants(video, "Shot")),
            key=lambda s: s.start,
        )
        if not self.shots:
            raise CmXmlError("No shots found")

        first, last = self.shots[0], self.shots[-1]
        self.length = (last.start + last.duration) - first.start

    def is_cmv4(self) -> bool:
        """Whether the document uses the CM v4 layout."""
        return self.cm_version == CMV4_VERSION

    def global_level5(self, canvas_width: int, canvas_height: int) -> Level5Metadata | None:
        """Active area offsets for the document-wide aspect ratios, if any."""
        if self.level5 is None:
            return None
        return calculate_level5_metadata(self.level5, canvas_width, canvas_height)

    @staticmethod
    def _parse_cm_version(root: ET.Element) -> str:
        node = _find_descendant(root, "DolbyLabsMDF")
        if node is None:
            raise CmXmlError("Could not find DolbyLabsMDF root node.")

        version_attr = node.get("version")
        version_child = _find_child(node, "Version")
        version_node = version_child.text if version_child is not None else None

        version_level254 = None
        level254 = _find_descendant(node, "Level254")
        if level254 is not None:
            cm_version_node = _find_child(level254, "CMVersion")
            if cm_version_node is None or cm_version_node.text is None:
                raise CmXmlError("missing CMVersion in Level254")
            if "4" in cm_version_node.text:
                version_level254 = CMV4_VERSION

        for candidate in (version_node, version_level254, version_attr):
            if candidate is not None:
                return candidate
        raise CmXmlError("No CM version found!")

    @staticmethod
    def _parse_global_level5(output: ET.Element) -> Level5AspectRatios | None:
        def ratio(name: str) -> float | None:
            node = _find_child(output, name)
            if node is None or node.text is None:
                return None
            try:
                return _f32(float(node.text.strip()))
            except ValueError:
                return None

        canvas = ratio("CanvasAspectRatio")
        image = ratio("ImageAspectRatio")
        if canvas is None or image is None:
            return None
        return Level5AspectRatios(canvas=canvas, image=image)

    @staticmethod
    def _parse_level6(video: ET.Element) -> tuple[int, int]:
        node = _find_descendant(video, "Level6")
        if node is None:
            return 0, 0

        def value(name: str) -> int:
            child = _find_child(node, name)
            if child is None or child.text is None:
                return 0
            return _parse_uint(child.text, _U16_MAX, name)

        return value("MaxFALL"), value("MaxCLL")

    @staticmethod
    def _parse_mastering_display(video: ET.Element) -> tuple[int, int]:
        node = _find_descendant(video, "MasteringDisplay")
        if node is None:
            return 0, 0

        min_lum = 0
        min_node = _find_child(node, "MinimumBrightness")
        if min_node is not None and min_node.text is not None:
            v = _parse_f32(min_node.text, "MinimumBrightness")
            min_lum = _saturate(_f32(v * 10000.0), 0, _U16_MAX)

        max_lum = 0
        max_node = _find_child(node, "PeakBrightness")
        if max_node is not None and max_node.text is not None:
            max_lum = _parse_uint(max_node.text, _U16_MAX, "PeakBrightness")

        return min_lum, max_lum

    @staticmethod
    def _parse_target_displays(video: ET.Element) -> dict[str, TargetDisplay]:
        targets = {}
        for node in _descendants(video, "TargetDisplay"):
            target_id = _required_text(node, "ID")
            peak = _parse_uint(
                _required_text(node, "PeakBrightness"), _U16_MAX, "PeakBrightness"
            )
            targets[target_id] = TargetDisplay(id=target_id, peak_nits=peak)
        return targets

    def _parse_shot(self, node: ET.Element) -> VideoShot:
        shot = VideoShot(id=_required_text(node, "UniqueID"))

        record = _find_child(node, "Record")
        if record is not None:
            shot.start = _parse_uint(_required_text(record, "In"), _USIZE_MAX, "In")
            shot.duration = _parse_uint(
                _required_text(record, "Duration"), _USIZE_MAX, "Duration"
            )

        trims = self._parse_trims(node)
        count = shot.duration

        if trims.level1 is not None:
            shot.level1 = [replace(trims.level1) for _ in range(count)]
        if trims.level2:
            shot.level2 = [[replace(m) for m in trims.level2] for _ in range(count)]
        if trims.level3 is not None:
            shot.level3 = [replace(trims.level3) for _ in range(count)]
        if trims.level5 is not None:
            shot.level5 = [replace(trims.level5) for _ in range(count)]

        for frame in _children(node, "Frame"):
            offset = _parse_uint(
                _required_text(frame, "EditOffset"), _USIZE_MAX, "EditOffset"
            )
            frame_trims = self._parse_trims(frame)

            updates = (
                (shot.level1, frame_trims.level1),
                (shot.level2, frame_trims.level2 or None),
                (shot.level3, frame_trims.level3),
                (shot.level5, frame_trims.level5),
            )
            for current, new in updates:
                if current is None:
                    continue
                if offset >= len(current):
                    raise CmXmlError(
                        f"frame edit offset {offset} outside shot {shot.id!r}"
                    )
                if new is not None:
                    current[offset] = new

        return shot

    def _parse_trims(self, node: ET.Element) -> _Trims:
        trims = _Trims()
        tag = "DVDynamicData" if self.is_cmv4() else "PluginNode"
        defaults = _find_descendant(node, tag)
        if defaults is None:
            return trims

        if self.is_cmv4():
            level_nodes = [c for c in defaults if "level" in c.attrib]
        else:
            level_nodes = [
                c
                for c in defaults
                if _local_name(c.tag) == "DolbyEDR" and "level" in c.attrib
            ]

        for level_node in level_nodes:
            level = level_node.get("level")
            if level == "1":
                trims.level1 = self._parse_level1_trim(level_node)
            elif level == "2":
                trims.level2.append(self._parse_level2_trim(level_node))
            elif level == "3":
                trims.level3 = self._parse_level3_trim(level_node)
            elif level == "5":
                trims.level5 = self._parse_level5_trim(level_node)

        return trims

    def _split(self, node: ET.Element, name: str) -> list[str]:
        return _required_text(node, name).split(self.separator)

    def _parse_level1_trim(self, node: ET.Element) -> Level1Metadata:
        values = self._split(node, "ImageCharacter")
        if len(values) != 3:
            raise CmXmlError("invalid L1 trim: should be 3 values")

        def code(text: str) -> int:
            v = _parse_f32(text, "ImageCharacter")
            return _saturate(_round(_f32(v * 4095.0)), 0, _U16_MAX)

        return Level1Metadata(
            min_pq=code(values[0]),
            avg_pq=code(values[1]),
            max_pq=code(values[2]),
        )

    def _parse_level2_trim(self, node: ET.Element) -> Level2Metadata:
        target_id = _required_text(node, "TID")
        trim = self._split(node, "Trim")

        target = self.target_displays.get(target_id)
        if target is None:
            raise CmXmlError(f"unknown target display {target_id!r}")
        if len(trim) != 9:
            raise CmXmlError("invalid L2 trim: should be 9 values")

        values = [_parse_f32(t, "Trim") for t in trim]

        def code(value: float, scale: float = 2048.0) -> int:
            return min(_TRIM_MAX, _saturate(_trim_code(value, scale), 0, _U16_MAX))

        ms_weight = min(
            _TRIM_MAX, _saturate(_trim_code(values[8], 2048.0), _I16_MIN, _I16_MAX)
        )

        return Level2Metadata(
            target_nits=target.peak_nits,
            trim_slope=code(values[4]),
            trim_offset=code(values[3]),
            trim_power=code(values[5], -2048.0),
            trim_chroma_weight=code(values[6]),
            trim_saturation_gain=code(values[7]),
            ms_weight=ms_weight,
        )

    def _parse_level3_trim(self, node: ET.Element) -> Level3Metadata:
        values = self._split(node, "L1Offset")
        if len(values) != 3:
            raise CmXmlError("invalid L3 trim: should be 3 values")

        def code(text: str) -> int:
            return _saturate(_trim_code(_parse_f32(text, "L1Offset"), 2048.0), 0, _U16_MAX)

        return Level3Metadata(
            min_pq_offset=code(values[0]),
            max_pq_offset=code(values[1]),
            avg_pq_offset=code(values[2]),
        )

    def _parse_level5_trim(self, node: ET.Element) -> Level5AspectRatios:
        ratios = self._split(node, "AspectRatios")
        if len(ratios) != 2:
            raise CmXmlError("invalid L5 trim: should be 2 values")
        return Level5AspectRatios(
            canvas=_parse_f32(ratios[0], "AspectRatios"),
            image=_parse_f32(ratios[1], "AspectRatios"),
        )