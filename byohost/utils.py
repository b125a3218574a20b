"""Small helpers for compressed payloads and file cleanup."""

from __future__ import annotations

import glob
import gzip
import os
import shutil
import zlib


def gzip_data(data: bytes) -> bytes:
    """Compress ``data`` into a gzip stream."""
    return gzip.compress(bytes(data), mtime=0)


def gunzip_data(data: bytes) -> bytes:
    """Decompress a gzip stream, raising ``ValueError`` if it is not valid."""
    try:
        return gzip.decompress(bytes(data))
    except (gzip.BadGzipFile, EOFError, zlib.error) as exc:
        raise ValueError(f"invalid gzip data: {exc}") from exc


def remove_glob(path: str) -> None:
    """Remove every file or directory matching the glob pattern ``path``."""
    for item in glob.glob(path):
        if os.path.isdir(item) and not os.path.islink(item):
            shutil.rmtree(item)
        else:
            os.remove(item)