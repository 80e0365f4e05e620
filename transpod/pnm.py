"""Reading and writing PBM, PGM, PPM and raw VLIB images."""

from __future__ import annotations

import re
from pathlib import Path

import numpy as np

_WHITESPACE = b" \t\n\r\v\f"
_MAX_VALUE = 255
_LEADING_INT = re.compile(r"[+-]?\d+")


class PnmError(ValueError):
    """Raised when an image file is not in the expected format."""


class _HeaderReader:
    """Reads whitespace separated header fields, skipping '#' comment lines."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def _skip_whitespace(self) -> None:
        while self._pos < len(self._data) and self._data[self._pos] in _WHITESPACE:
            self._pos += 1

    def field(self) -> str:
        self._skip_whitespace()
        while self._data[self._pos:self._pos + 1] == b"#":
            end = self._data.find(b"\n", self._pos)
            self._pos = len(self._data) if end < 0 else end + 1
            self._skip_whitespace()
        start = self._pos
        while self._pos < len(self._data) and self._data[self._pos] not in _WHITESPACE:
            self._pos += 1
        token = self._data[start:self._pos]
        if not token:
            raise PnmError("unexpected end of header")
        if self._pos < len(self._data):
            self._pos += 1
        return token.decode("ascii", errors="replace")

    def take(self, size: int) -> bytes:
        chunk = self._data[self._pos:self._pos + size]
        if len(chunk) != size:
            raise PnmError(f"image data truncated: expected {size} bytes, found {len(chunk)}")
        self._pos += size
        return chunk


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group()) if match else 0


def _dimension(text: str) -> int:
    value = _atoi(text)
    if value < 0:
        raise PnmError(f"negative image dimension: {value}")
    return value


def _open(path, magic: str, exact: bool = False) -> tuple[_HeaderReader, int, int]:
    reader = _HeaderReader(Path(path).read_bytes())
    token = reader.field()
    if (token != magic) if exact else (not token.startswith(magic)):
        raise PnmError(f"expected {magic} image, found {token!r}")
    width = _dimension(reader.field())
    height = _dimension(reader.field())
    return reader, width, height


def _check_max_value(reader: _HeaderReader) -> None:
    max_value = _atoi(reader.field())
    if max_value > _MAX_VALUE:
        raise PnmError(f"maximum value {max_value} exceeds {_MAX_VALUE}")


def _as_uint8(image, ndim: int) -> np.ndarray:
    array = np.asarray(image)
    if array.ndim != ndim:
        raise ValueError(f"expected a {ndim}-dimensional image, got shape {array.shape}")
    if array.dtype == np.uint8:
        return np.ascontiguousarray(array)
    if array.dtype.kind in "biu" and (array.size == 0 or (array.min() >= 0 and array.max() <= _MAX_VALUE)):
        return np.ascontiguousarray(array.astype(np.uint8))
    raise ValueError("image values must be 8-bit unsigned integers")


def load_pbm(path) -> np.ndarray:
    """Load a binary bitmap (P4) as a (height, width) uint8 array of 0 and 1."""
    reader, width, height = _open(path, "P4")
    row_bytes = (width + 7) // 8
    payload = np.frombuffer(reader.take(row_bytes * height), dtype=np.uint8)
    bits = np.unpackbits(payload.reshape(height, row_bytes), axis=1)
    return bits[:, :width].copy()


def save_pbm(image, path) -> None:
    """Save a 2D image as a binary bitmap (P4); nonzero pixels are set bits."""
    array = np.asarray(image)
    if array.ndim != 2:
        raise ValueError(f"expected a 2-dimensional image, got shape {array.shape}")
    height, width = array.shape
    packed = np.packbits(array != 0, axis=1)
    Path(path).write_bytes(f"P4\n{width} {height}\n".encode("ascii") + packed.tobytes())


def load_pgm(path) -> np.ndarray:
    """Load an 8-bit greyscale image (P5) as a (height, width) uint8 array."""
    reader, width, height = _open(path, "P5")
    _check_max_value(reader)
    payload = reader.take(width * height)
    return np.frombuffer(payload, dtype=np.uint8).reshape(height, width).copy()


def save_pgm(image, path) -> None:
    """Save a 2D 8-bit image as greyscale (P5)."""
    array = _as_uint8(image, 2)
    height, width = array.shape
    header = f"P5\n{width} {height}\n{_MAX_VALUE}\n".encode("ascii")
    Path(path).write_bytes(header + array.tobytes())


def load_ppm(path) -> np.ndarray:
    """Load an 8-bit colour image (P6) as a (height, width, 3) uint8 array."""
    reader, width, height = _open(path, "P6")
    _check_max_value(reader)
    payload = reader.take(width * height * 3)
    return np.frombuffer(payload, dtype=np.uint8).reshape(height, width, 3).copy()


def save_ppm(image, path) -> None:
    """Save a (height, width, 3) 8-bit image as colour (P6)."""
    array = _as_uint8(image, 3)
    if array.shape[2] != 3:
        raise ValueError(f"expected 3 channels, got {array.shape[2]}")
    height, width = array.shape[:2]
    header = f"P6\n{width} {height}\n{_MAX_VALUE}\n".encode("ascii")
    Path(path).write_bytes(header + array.tobytes())


def load_vlib(path, dtype) -> np.ndarray:
    """Load a raw VLIB image whose pixels are stored natively as dtype."""
    element = np.dtype(dtype)
    reader, width, height = _open(path, "VLIB", exact=True)
    payload = reader.take(width * height * element.itemsize)
    return np.frombuffer(payload, dtype=element).reshape(height, width).copy()


def save_vlib(image, path) -> None:
    """Save a 2D image as a raw VLIB file with its pixels in native layout."""
    array = np.asarray(image)
    if array.ndim != 2:
        raise ValueError(f"expected a 2-dimensional image, got shape {array.shape}")
    height, width = array.shape
    header = f"VLIB\n{width} {height}\n".encode("ascii")
    Path(path).write_bytes(header + np.ascontiguousarray(array).tobytes())


__all__ = [
    "PnmError",
    "load_pbm",
    "save_pbm",
    "load_pgm",
    "save_pgm",
    "load_ppm",
    "save_ppm",
    "load_vlib",
    "save_vlib",
]