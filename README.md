# dvmeta

Python helpers for Dolby Vision dynamic metadata sources. The package has
no runtime dependencies beyond the standard library.

## Modules

- `dvmeta.pq` — `nits_to_pq(nits)` converts absolute luminance in nits to a
  normalised SMPTE ST 2084 (PQ) value.
- `dvmeta.madvr` — reads and writes madVR measurement files (magic `mvr+`).
  `parse_file(path)` and `parse_measurements(data)` return a
  `MadVRMeasurements` holding a `MadVRHeader`, a list of `MadVRScene` and a
  list of `MadVRFrame`. Frames get an average PQ computed from their
  luminance histogram; scenes get their peak PQ from their peak nits and
  their average PQ as the highest frame average in the scene. When the
  header flags are 3, per-frame target nits are read as well.
  `MadVRScene.frames_in(frames)` returns a scene's frames and
  `MadVRMeasurements.to_bytes()` serialises the measurements back.
  Files larger than 250 MB are refused.
- `dvmeta.metadata` — dataclasses for `Level1Metadata`, `Level2Metadata`,
  `Level3Metadata`, `Level5Metadata` (with `offsets()` returning
  `(left, right, top, bottom)`) and `Level6Metadata`.
- `dvmeta.formats` — `input_format(path)` classifies an input path as
  `Format.RAW` (an existing `.hevc`, `.265`-style file), `Format.MATROSKA`
  (an existing `.mkv` file) or `Format.RAW_STDIN` (`-`), and raises
  `InputError` otherwise.
- `dvmeta.cmxml` — `CmXmlParser(text)` reads CM v2.9 and v4.0.2 XML metadata:
  version (`is_cmv4()`), target displays, HDR10 values (`level6`), shots with
  per-frame L1, L2, L3 and L5 trims (`shots`), total length (`length`) and
  document-wide aspect ratios (`level5`). `global_level5(width, height)` and
  `calculate_level5_metadata(ar, width, height)` turn aspect ratios into
  active-area offsets, or `None` when the image fills the canvas.
- `dvmeta.editing` — `edit_config_from_dict(data)` builds an `EditConfig`
  from decoded JSON, validating its fields. The list operations behind an
  edit work on any sequence: `remove_frames(items, ranges)` blanks out frames
  given as `"start-end"` ranges or single indices, `duplicate_metadata(data,
  to_duplicate)` inserts copies of entries from the highest offset down,
  `parse_range(text)` reads a range, and `active_area_assignments(active_area,
  count)` resolves active-area edits (including the `"all"` key) to
  `(start, end, preset)` tuples.
- `dvmeta.l1gen` — `parse_hdr10plus_for_l1(path)` derives per-frame L1
  metadata and scene cuts from an HDR10+ JSON file;
  `generate_metadata_from_madvr(path, use_custom_targets=False)` derives L1
  metadata, L6 light levels and scene cuts from a madVR measurement file.

## Example

```python
from dvmeta.madvr import parse_file
from dvmeta.l1gen import generate_metadata_from_madvr

measurements = parse_file("movie.bin")
for scene in measurements.scenes:
    print(scene.start, scene.end, scene.max_pq, scene.avg_pq)

l1, l6, scene_cuts = generate_metadata_from_madvr("movie.bin")
print(len(l1), l6.max_content_light_level, scene_cuts[:5])
```

```python
from dvmeta.cmxml import CmXmlParser

with open("metadata.xml", encoding="utf-8") as fh:
    parser = CmXmlParser(fh.read())

print(parser.is_cmv4(), parser.length, parser.global_level5(3840, 2160))
```

Errors are raised as exceptions: `MadVRError`, `CmXmlError`, `EditError` and
`InputError` (all subclasses of `ValueError`).

## What the package does not do

There is no command-line tool. The package does not read or write HEVC
streams or RPU NAL units: it cannot demux, convert, extract or inject RPUs,
export them to JSON, or write generated metadata to an RPU file. The editing
and generation modules produce the metadata values and list edits; applying
them to encoded RPUs is left to the caller.

## Running the tests

```
pip install -e .[test]
pytest
```