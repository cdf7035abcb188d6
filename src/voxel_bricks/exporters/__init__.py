"""
Export modules for Brickadia saves.

Supported formats:
- Brickadia (.brs) version 10
"""

from .brs_exporter import BrsExporter, SaveDocument, BrickRecord, User, load_brs_header

__all__ = ["BrsExporter", "SaveDocument", "BrickRecord", "User", "load_brs_header"]
