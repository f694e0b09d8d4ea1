# src/discovery/validation.py - v1
"""Barcode format checks applied to discovered candidates."""

from __future__ import annotations

import re

_CODE_39_128 = re.compile(r"^[A-Z0-9\-.$/+%\s]+$")

SUPPORTED_FORMATS = (
    "UPC-A", "UPC-E", "EAN-13", "EAN-8", "CODE-39", "CODE-93", "CODE-128", "ITF", "QR",
)


def normalize_format(barcode_format: str) -> str:
    return barcode_format.strip().upper().replace("_", "-").replace(" ", "-")


def infer_format(barcode: str) -> str | None:
    """Best-guess symbology from the barcode text alone."""
    if barcode.isdigit():
        if len(barcode) == 12:
            return "UPC-A"
        if len(barcode) == 13:
            return "EAN-13"
        if len(barcode) == 8:
            return "EAN-8"
        if len(barcode) in (6, 7):
            return "UPC-E"
        if len(barcode) % 2 == 0:
            return "ITF"
    if _CODE_39_128.match(barcode):
        return "CODE-128"
    return None


def is_valid_barcode(barcode: str, barcode_format: str | None = None) -> bool:
    """Check *barcode* against its declared (or inferred) symbology."""
    if not barcode:
        return False
    fmt = normalize_format(barcode_format) if barcode_format else infer_format(barcode)
    if fmt not in SUPPORTED_FORMATS:
        return False

    if fmt == "UPC-A":
        return barcode.isdigit() and len(barcode) == 12
    if fmt == "EAN-13":
        return barcode.isdigit() and len(barcode) == 13
    if fmt == "EAN-8":
        return barcode.isdigit() and len(barcode) == 8
    if fmt == "UPC-E":
        return barcode.isdigit() and 6 <= len(barcode) <= 8
    if fmt == "ITF":
        return barcode.isdigit() and len(barcode) % 2 == 0
    if fmt in ("CODE-39", "CODE-93", "CODE-128"):
        return bool(_CODE_39_128.match(barcode))
    if fmt == "QR":
        return len(barcode) > 0
    return False
