"""Input format detection for video streams."""

from __future__ import annotations

import enum
import re
from pathlib import Path

OUT_NAL_HEADER = b"\x00\x00\x00\x01"

_INPUT_PATTERN = re.compile(r"\.(hevc|.?265|mkv)")


class InputError(ValueError):
    """Raised when an input path cannot be used."""


class Format(enum.Enum):
    RAW = "raw"
    RAW_STDIN = "raw_stdin"
    MATROSKA = "matroska"

    def __str__(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    Format.MATROSKA: "Matroska file",
    Format.RAW: "HEVC file",
    Format.RAW_STDIN: "HEVC pipe",
}


def input_format(path) -> Format:
    """Determine the input format from a path, checking that the file exists."""
    path = Path(path)
    file_name = path.name
    if file_name == "..":
        file_name = ""

    if file_name == "-":
        return Format.RAW_STDIN
    if _INPUT_PATTERN.search(file_name) and path.is_file():
        return Format.MATROSKA if "mkv" in file_name else Format.RAW
    if not file_name:
        raise InputError("Missing input.")
    if not path.is_file():
        raise InputError("Input file doesn't exist.")
    raise InputError("Invalid input file type.")