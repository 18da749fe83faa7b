"""Dolby Vision metadata helpers: PQ conversion, madVR measurements, CM XML, edits and L1 generation."""

__version__ = "0.1.0"

__all__ = ["cmxml", "editing", "formats", "l1gen", "madvr", "metadata", "pq"]