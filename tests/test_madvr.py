import struct

import pytest

from dvmeta.madvr import (
    MadVRError,
    MadVRFrame,
    MadVRHeader,
    MadVRMeasurements,
    MadVRScene,
    parse_file,
    parse_measurements,
)
from dvmeta.pq import nits_to_pq


def _u32(*values):
    return b"".join(struct.pack("<I", v) for v in values)


def _u16(*values):
    return b"".join(struct.pack("<H", v) for v in values)


def _build(version, scenes, frames, flags=1, target_nits=None, maxcll=1000):
    """scenes: (start, end, peak); frames: dicts of raw u16 values."""
    data = b"mvr+" + _u32(version, 64, len(scenes), len(frames), flags, maxcll)
    if version >= 5:
        data += _u32(400, 120)
        if version >= 6:
            data += _u32(1000)
    data += _u32(*[s[0] for s in scenes])
    data += _u32(*[s[1] + 1 for s in scenes])
    data += _u32(*[s[2] for s in scenes])
    for f in frames:
        data += _u16(f["peak"])
        if version >= 6:
            data += _u16(f["dcip3"], f["p709"])
        data += _u16(*f["lum"])
        if version >= 5:
            data += _u16(*f["hue"])
    if target_nits is not None:
        data += _u16(*target_nits)
    return data


def _v4_frame(bin_index, peak=32000):
    lum = [0] * 31
    lum[bin_index] = 64000
    return {"peak": peak, "lum": lum}


def _v5_frame(bins, peak=40000, dcip3=39000, p709=38000):
    lum = [0] * 256
    for index, value in bins.items():
        lum[index] = value
    hue = list(range(31))
    return {"peak": peak, "dcip3": dcip3, "p709": p709, "lum": lum, "hue": hue}


def test_v6_round_trip_with_custom_targets():
    frames = [_v5_frame({10: 32000, 100: 32000}), _v5_frame({200: 64000}), _v5_frame({0: 64000})]
    data = _build(6, [(0, 1, 1000), (2, 2, 500)], frames, flags=3, target_nits=[600, 700, 800])
    parsed = parse_measurements(data)

    assert parsed.header.version == 6
    assert parsed.header.target_peak_nits == 1000
    assert len(parsed.frames) == 3
    assert [f.target_nits for f in parsed.frames] == [600, 700, 800]
    assert parsed.frames[1].target_pq == nits_to_pq(700)
    assert parsed.frames[0].peak_pq_dcip3 == 39000 / 64000
    assert len(parsed.frames[0].lum_histogram) == 256
    assert len(parsed.frames[0].hue_histogram) == 31
    assert parsed.to_bytes() == data


def test_v5_round_trip():
    frames = [_v5_frame({50: 64000}), _v5_frame({120: 64000})]
    data = _build(5, [(0, 1, 800)], frames)
    parsed = parse_measurements(data)
    assert parsed.frames[0].peak_pq_dcip3 is None
    assert parsed.header.maxfall == 400
    assert parsed.to_bytes() == data


def test_v4_round_trip_and_average():
    data = _build(4, [(0, 1, 1000)], [_v4_frame(0), _v4_frame(30)])
    parsed = parse_measurements(data)
    assert parsed.frames[0].avg_pq == 0.0
    assert parsed.frames[1].avg_pq == 1.0
    assert parsed.frames[0].hue_histogram is None
    assert parsed.to_bytes() == data


def test_scene_fields():
    data = _build(4, [(0, 1, 1000), (2, 3, 250)], [_v4_frame(i) for i in (3, 8, 5, 2)])
    parsed = parse_measurements(data)
    first, second = parsed.scenes
    assert (first.start, first.end, first.length) == (0, 1, 2)
    assert (second.start, second.end, second.length) == (2, 3, 2)
    assert first.max_pq == nits_to_pq(1000)
    assert second.peak_nits == 250


def test_scene_average_is_max_of_frames():
    data = _build(4, [(0, 2, 1000)], [_v4_frame(i) for i in (3, 9, 5)])
    parsed = parse_measurements(data)
    scene = parsed.scenes[0]
    assert scene.avg_pq == max(f.avg_pq for f in parsed.frames)
    assert scene.avg_pq == parsed.frames[1].avg_pq


def test_average_increases_with_brighter_bins():
    data = _build(5, [(0, 2, 1000)], [_v5_frame({i: 64000}) for i in (10, 80, 200)])
    averages = [f.avg_pq for f in parse_measurements(data).frames]
    assert averages == sorted(averages)
    assert all(0.0 <= a <= 1.0 for a in averages)


def test_frames_in_returns_scene_slice():
    frames = [MadVRFrame(avg_pq=v) for v in (0.1, 0.2, 0.3)]
    scene = MadVRScene(start=1, end=2)
    selected = scene.frames_in(frames)
    assert selected == frames[1:]


def test_frames_in_rejects_end_past_frames():
    with pytest.raises(MadVRError, match="scene end higher than frame count"):
        MadVRScene(start=0, end=3).frames_in([MadVRFrame()] * 3)


def test_scene_past_frame_count_fails_parse():
    data = _build(4, [(0, 5, 1000)], [_v4_frame(1)])
    with pytest.raises(MadVRError, match="scene end higher"):
        parse_measurements(data)


def test_invalid_magic():
    data = _build(4, [(0, 0, 100)], [_v4_frame(1)])
    with pytest.raises(MadVRError, match="invalid magic code"):
        parse_measurements(b"abcd" + data[4:])


def test_incomplete_file_rejected():
    data = _build(4, [(0, 0, 100)], [_v4_frame(1)], flags=0)
    with pytest.raises(MadVRError, match="incomplete measurement file"):
        parse_measurements(data)


def test_truncated_data():
    data = _build(5, [(0, 0, 100)], [_v5_frame({1: 64000})])
    with pytest.raises(MadVRError):
        parse_measurements(data[:-10])


def test_custom_targets_require_matching_length():
    data = _build(4, [(0, 1, 100)], [_v4_frame(1), _v4_frame(2)], flags=3, target_nits=[500])
    with pytest.raises(MadVRError, match="custom per-frame target nits"):
        parse_measurements(data)


def test_parse_file(tmp_path):
    data = _build(4, [(0, 0, 100)], [_v4_frame(4)])
    path = tmp_path / "measure.bin"
    path.write_bytes(data)
    assert parse_file(path).to_bytes() == data


def test_write_requires_complete_header():
    measurements = MadVRMeasurements(header=MadVRHeader(version=4, flags=0))
    with pytest.raises(MadVRError, match="complete measurement files"):
        measurements.to_bytes()


def test_write_checks_histogram_size():
    measurements = MadVRMeasurements(
        header=MadVRHeader(version=5, flags=1, frame_count=1),
        frames=[MadVRFrame(lum_histogram=[0.0] * 31, hue_histogram=[0.0] * 31)],
    )
    with pytest.raises(MadVRError, match="256"):
        measurements.to_bytes()


def test_write_v6_requires_gamut_peaks():
    measurements = MadVRMeasurements(
        header=MadVRHeader(version=6, flags=1, frame_count=1),
        frames=[MadVRFrame(lum_histogram=[0.0] * 256, hue_histogram=[0.0] * 31)],
    )
    with pytest.raises(MadVRError, match="gamut"):
        measurements.to_bytes()


def test_write_custom_targets_requires_values():
    measurements = MadVRMeasurements(
        header=MadVRHeader(version=4, flags=3, frame_count=1),
        frames=[MadVRFrame(lum_histogram=[0.0] * 31)],
    )
    with pytest.raises(MadVRError, match="missing target nits for frame 0"):
        measurements.to_bytes()


def test_written_output_starts_with_magic():
    measurements = MadVRMeasurements(
        header=MadVRHeader(version=4, flags=1, frame_count=1),
        frames=[MadVRFrame(lum_histogram=[0.0] * 31)],
    )
    assert measurements.to_bytes()[:4] == b"mvr+"