"""Loader for ``key=value`` properties files."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, TextIO, Union

from ..errors import SourceUnavailable
from .fileio import read_text_file

WINDOWS_IMAGES_KEY = "windows.images"
LINUX_IMAGES_KEY = "linux.images"
IMAGE_KEYS = (WINDOWS_IMAGES_KEY, LINUX_IMAGES_KEY)

Source = Union[str, Path, TextIO]


class PropertyMap(Mapping[str, str]):
    """Read-only mapping of trimmed property keys to trimmed values."""

    def __init__(self, entries: Dict[str, str]) -> None:
        self._entries = dict(entries)

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"PropertyMap({self._entries!r})"


def parse_lines(lines: Iterable[str]) -> PropertyMap:
    """Build a :class:`PropertyMap` from raw lines, skipping anything malformed."""

    entries: Dict[str, str] = {}
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue
        entries[key] = value.strip()
    return PropertyMap(entries)


def load_properties(source: Source) -> PropertyMap:
    """Load a properties file from a path or an already open text stream."""

    if isinstance(source, (str, Path)):
        return parse_lines(read_text_file(Path(source)).splitlines())
    try:
        return parse_lines(source.read().splitlines())
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceUnavailable(f"Cannot read properties source: {exc}") from exc


def get_list(properties: Mapping[str, str], key: str) -> List[str]:
    """Split a comma separated value into trimmed, non-empty tokens."""

    value = properties.get(key)
    if value is None:
        return []
    return [token.strip() for token in value.split(",") if token.strip()]


def image_list(properties: Mapping[str, str], keys: Iterable[str] = IMAGE_KEYS) -> List[str]:
    """Concatenate the image lists of every platform key, in key order."""

    images: List[str] = []
    for key in keys:
        images.extend(get_list(properties, key))
    return images
