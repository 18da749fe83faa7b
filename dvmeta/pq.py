"""SMPTE ST 2084 (PQ) transfer function helpers."""

ST2084_Y_MAX = 10000.0
ST2084_M1 = 2610.0 / 16384.0
ST2084_M2 = (2523.0 / 4096.0) * 128.0
ST2084_C1 = 3424.0 / 4096.0
ST2084_C2 = (2413.0 / 4096.0) * 32.0
ST2084_C3 = (2392.0 / 4096.0) * 32.0


def nits_to_pq(nits: float) -> float:
    """Convert an absolute luminance in nits to a normalised PQ value."""
    y = float(nits) / ST2084_Y_MAX
    y_m1 = y**ST2084_M1
    return ((ST2084_C1 + ST2084_C2 * y_m1) / (1.0 + ST2084_C3 * y_m1)) ** ST2084_M2