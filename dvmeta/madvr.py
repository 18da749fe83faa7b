"""Reading and writing madVR HDR measurement files."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field
from pathlib import Path

from .pq import nits_to_pq

MAGIC_CODE = "mvr+"
MAX_FILE_SIZE = 250_000_000

_PEAK_SCALE = 64000.0
_HISTOGRAM_SCALE = 640.0


class MadVRError(ValueError):
    """Raised for malformed or incomplete measurement data."""


@dataclass
class MadVRHeader:
    version: int = 0
    header_size: int = 0
    scene_count: int = 0
    frame_count: int = 0
    flags: int = 0
    maxcll: int = 0
    maxfall: int = 0
    avgfall: int = 0
    target_peak_nits: int = 0


@dataclass
class MadVRFrame:
    peak_pq_2020: float = 0.0
    peak_pq_dcip3: float | None = None
    peak_pq_709: float | None = None
    lum_histogram: list[float] = field(default_factory=list)
    hue_histogram: list[float] | None = None
    target_nits: int | None = None
    avg_pq: float = 0.0
    target_pq: float = 0.0


@dataclass
class MadVRScene:
    start: int = 0
    end: int = 0
    peak_nits: int = 0
    length: int = 0
    max_pq: float = 0.0
    avg_pq: float = 0.0

    def frames_in(self, frames: list[MadVRFrame]) -> list[MadVRFrame]:
        """Return the frames that belong to this scene."""
        if self.end >= len(frames):
            raise MadVRError(
                f"scene end higher than frame count: {self.end} > {len(frames)}"
            )
        return frames[self.start : self.end + 1]


@dataclass
class MadVRMeasurements:
    header: MadVRHeader = field(default_factory=MadVRHeader)
    scenes: list[MadVRScene] = field(default_factory=list)
    frames: list[MadVRFrame] = field(default_factory=list)

    def to_bytes(self) -> bytes:
        """Serialise the measurements back to the binary file format."""
        out = bytearray(MAGIC_CODE.encode("ascii"))
        _write_header(self.header, out)
        _write_scenes(self.scenes, out)
        _write_frames(self.header, self.frames, out)
        if self.header.flags == 3:
            _write_custom_target_nits(self.frames, out)
        return bytes(out)

    def _compute_max_scene_avg(self) -> None:
        for scene in self.scenes:
            frames = scene.frames_in(self.frames)
            if not frames:
                raise MadVRError("no frames for scene")
            scene.avg_pq = max(f.avg_pq for f in frames)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self.position = 0

    def _read(self, fmt: str) -> int:
        size = struct.calcsize(fmt)
        if self.position + size > len(self._data):
            raise MadVRError("unexpected end of measurement data")
        (value,) = struct.unpack_from(fmt, self._data, self.position)
        self.position += size
        return value

    def u32(self) -> int:
        return self._read("<I")

    def u16(self) -> int:
        return self._read("<H")

    @property
    def remaining(self) -> int:
        return len(self._data) - self.position


def parse_file(path) -> MadVRMeasurements:
    """Parse a measurement file from disk."""
    path = Path(path)
    if path.stat().st_size > MAX_FILE_SIZE:
        raise MadVRError("madvr_parse: file probably too large")
    return parse_measurements(path.read_bytes())


def parse_measurements(data: bytes) -> MadVRMeasurements:
    """Parse measurement data held in memory."""
    if len(data) < 4:
        raise MadVRError("data too short for magic code")
    try:
        magic = bytes(data[:4]).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MadVRError("invalid magic code") from exc
    if magic != MAGIC_CODE:
        raise MadVRError(f"invalid magic code {magic}, expected {MAGIC_CODE}")

    reader = _Reader(bytes(data[4:]))
    header = _parse_header(reader)
    measurements = MadVRMeasurements(
        header=header,
        scenes=_parse_scenes(header, reader),
        frames=_parse_frames(header, reader),
    )

    if header.flags == 3:
        if reader.remaining // 2 != len(measurements.frames):
            raise MadVRError(
                "madvr_parse: invalid remaining bytes for custom per-frame target nits"
            )
        for frame in measurements.frames:
            frame.target_nits = reader.u16()
            frame.target_pq = nits_to_pq(frame.target_nits)

    measurements._compute_max_scene_avg()
    return measurements


def _parse_header(reader: _Reader) -> MadVRHeader:
    header = MadVRHeader(
        version=reader.u32(),
        header_size=reader.u32(),
        scene_count=reader.u32(),
        frame_count=reader.u32(),
        flags=reader.u32(),
        maxcll=reader.u32(),
    )
    if header.flags == 0:
        raise MadVRError("incomplete measurement file")
    if header.version >= 5:
        header.maxfall = reader.u32()
        header.avgfall = reader.u32()
        if header.version >= 6:
            header.target_peak_nits = reader.u32()
    return header


def _parse_scenes(header: MadVRHeader, reader: _Reader) -> list[MadVRScene]:
    scenes = [MadVRScene(start=reader.u32()) for _ in range(header.scene_count)]

    for scene in scenes:
        raw_end = reader.u32()
        if raw_end == 0:
            raise MadVRError("invalid scene end")
        scene.end = raw_end - 1
        if scene.end < scene.start:
            raise MadVRError(f"scene end {scene.end} before start {scene.start}")
        scene.length = scene.end - scene.start + 1

    for scene in scenes:
        scene.peak_nits = reader.u32()
        scene.max_pq = nits_to_pq(scene.peak_nits)

    return scenes


def _parse_histogram(length: int, reader: _Reader) -> list[float]:
    return [reader.u16() / _HISTOGRAM_SCALE for _ in range(length)]


def _parse_frames(header: MadVRHeader, reader: _Reader) -> list[MadVRFrame]:
    frames = []
    sdr_peak_pq = nits_to_pq(100)
    hdr_peak_pq = 1.0

    for _ in range(header.frame_count):
        frame = MadVRFrame(peak_pq_2020=reader.u16() / _PEAK_SCALE)
        if header.version >= 6:
            frame.peak_pq_dcip3 = reader.u16() / _PEAK_SCALE
            frame.peak_pq_709 = reader.u16() / _PEAK_SCALE

        if header.version >= 5:
            sdr_step = sdr_peak_pq / 64.0
            hdr_step = (hdr_peak_pq - sdr_peak_pq) / 192.0
            # Values sit in the middle of the histogram bin
            sdr_step += sdr_step / 2.0
            hdr_step += hdr_step / 2.0

            frame.lum_histogram = _parse_histogram(256, reader)
            frame.hue_histogram = _parse_histogram(31, reader)

            total = 0.0
            for i, percent in enumerate(frame.lum_histogram):
                # Skip black bars
                if i == 0 and 2.0 < percent < 30.0:
                    continue
                if i <= 64:
                    pq_value = i * sdr_step
                else:
                    pq_value = sdr_peak_pq + (i - 63) * hdr_step
                total += pq_value * (percent / 100.0)
            frame.avg_pq = total
        else:
            step = hdr_peak_pq / 31.0
            step += step / 2.0
            frame.lum_histogram = _parse_histogram(31, reader)
            frame.avg_pq = sum(
                (i * step) * (percent / 100.0)
                for i, percent in enumerate(frame.lum_histogram)
            )

        percent_sum = sum(frame.lum_histogram)
        if percent_sum == 0.0:
            frame.avg_pq = 1.0
        else:
            frame.avg_pq = min(frame.avg_pq * (100.0 / percent_sum), 1.0)

        frames.append(frame)

    return frames


def _round_to_u16(value: float) -> int:
    if math.isnan(value):
        return 0
    rounded = math.copysign(math.floor(abs(value) + 0.5), value)
    return int(min(max(rounded, 0), 0xFFFF))


def _pack_u32(out: bytearray, value: int) -> None:
    try:
        out += struct.pack("<I", value)
    except struct.error as exc:
        raise MadVRError(f"value out of range for u32: {value}") from exc


def _pack_u16(out: bytearray, value: int) -> None:
    try:
        out += struct.pack("<H", value)
    except struct.error as exc:
        raise MadVRError(f"value out of range for u16: {value}") from exc


def _write_header(header: MadVRHeader, out: bytearray) -> None:
    if header.flags == 0:
        raise MadVRError("can only write complete measurement files")
    for value in (
        header.version,
        header.header_size,
        header.scene_count,
        header.frame_count,
        header.flags,
        header.maxcll,
    ):
        _pack_u32(out, value)
    if header.version >= 5:
        _pack_u32(out, header.maxfall)
        _pack_u32(out, header.avgfall)
        if header.version >= 6:
            _pack_u32(out, header.target_peak_nits)


def _write_scenes(scenes: list[MadVRScene], out: bytearray) -> None:
    for scene in scenes:
        _pack_u32(out, scene.start)
    for scene in scenes:
        _pack_u32(out, scene.end + 1)
    for scene in scenes:
        _pack_u32(out, scene.peak_nits)


def _write_histogram(histogram: list[float], out: bytearray) -> None:
    for value in histogram:
        _pack_u16(out, _round_to_u16(value * _HISTOGRAM_SCALE))


def _write_frames(header: MadVRHeader, frames: list[MadVRFrame], out: bytearray) -> None:
    for frame in frames:
        _pack_u16(out, _round_to_u16(frame.peak_pq_2020 * _PEAK_SCALE))

        if header.version >= 6:
            if frame.peak_pq_dcip3 is None or frame.peak_pq_709 is None:
                raise MadVRError("missing different gamut frame peaks for v6")
            _pack_u16(out, _round_to_u16(frame.peak_pq_dcip3 * _PEAK_SCALE))
            _pack_u16(out, _round_to_u16(frame.peak_pq_709 * _PEAK_SCALE))

        if header.version >= 5:
            if len(frame.lum_histogram) != 256:
                raise MadVRError("lum histogram has to be size 256 for v5+")
            if frame.hue_histogram is None:
                raise MadVRError("missing hue histogram for v6")
            if len(frame.hue_histogram) != 31:
                raise MadVRError("hue histogram has to be size 31")
            _write_histogram(frame.lum_histogram, out)
            _write_histogram(frame.hue_histogram, out)
        else:
            if len(frame.lum_histogram) != 31:
                raise MadVRError("lum histogram has to be size 31 for versions below 5")
            _write_histogram(frame.lum_histogram, out)


def _write_custom_target_nits(frames: list[MadVRFrame], out: bytearray) -> None:
    for i, frame in enumerate(frames):
        if frame.target_nits is None:
            raise MadVRError(f"madvr_parse: missing target nits for frame {i}")
        _pack_u16(out, frame.target_nits)