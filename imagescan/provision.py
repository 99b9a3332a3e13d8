"""Idempotent installation of the scanning tool."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tarfile
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional
from urllib.parse import urlparse

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError

from .errors import DownloadFailed, InstallVerificationFailed

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 1024 * 1024
DOWNLOAD_TIMEOUT = 60


@dataclass(frozen=True)
class FetchSpec:
    """Where to fetch the tool archive from and where to unpack it."""

    url: str
    install_dir: Path
    executable: str

    @property
    def executable_path(self) -> Path:
        return self.install_dir / self.executable


@dataclass(frozen=True)
class ToolLocations:
    """Resolved location of a provisioned tool, passed to later invocations."""

    name: str
    executable: Path

    @property
    def directory(self) -> Path:
        return self.executable.parent

    def command(self, *args: str) -> list:
        return [str(self.executable), *args]


Locator = Callable[[], Optional[Path]]
Downloader = Callable[[str, Path], None]


def locate_tool(name: str, extra_dirs: Iterable[Path] = ()) -> Optional[Path]:
    """Find ``name`` in ``extra_dirs`` first, then on the search path."""

    candidates = [name, f"{name}.exe"] if os.name == "nt" else [name]
    for directory in extra_dirs:
        for candidate in candidates:
            path = Path(directory) / candidate
            if path.is_file():
                return path
    found = shutil.which(name)
    return Path(found) if found else None


def download_file(url: str, destination: Path) -> None:
    """Fetch ``url`` into ``destination``.

    Supports ``http(s)://`` through requests, ``s3://bucket/key`` through boto3
    and ``file://`` or plain local paths through a copy.
    """

    parsed = urlparse(url)
    try:
        if parsed.scheme in {"http", "https"}:
            with requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT) as response:
                response.raise_for_status()
                with destination.open("wb") as handle:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        handle.write(chunk)
        elif parsed.scheme == "s3":
            s3_client = boto3.client("s3")
            s3_client.download_file(parsed.netloc, parsed.path.lstrip("/"), str(destination))
        elif parsed.scheme in {"", "file"}:
            shutil.copyfile(parsed.path if parsed.scheme else url, destination)
        else:
            raise DownloadFailed(f"Unsupported URL scheme for {url}")
    except (requests.RequestException, BotoCoreError, ClientError, OSError) as exc:
        raise DownloadFailed(f"Failed to download {url}: {exc}") from exc


def unpack_archive(archive: Path, target_dir: Path, url: str) -> None:
    """Unpack a zip or tar archive into ``target_dir``."""

    name = urlparse(url).path.lower() or archive.name
    try:
        if name.endswith(".zip"):
            with zipfile.ZipFile(archive) as zipped:
                zipped.extractall(target_dir)
        else:
            with tarfile.open(archive) as tarred:
                if hasattr(tarfile, "data_filter"):
                    tarred.extractall(target_dir, filter="data")
                else:
                    tarred.extractall(target_dir)
    except (zipfile.BadZipFile, tarfile.TarError, OSError) as exc:
        raise InstallVerificationFailed(f"Cannot unpack {url}: {exc}") from exc


def _mark_executable(path: Path) -> None:
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def ensure_tool(
    name: str,
    locate: Locator,
    fetch_spec: FetchSpec,
    downloader: Downloader = download_file,
) -> ToolLocations:
    """Return the location of ``name``, downloading and unpacking it if absent."""

    existing = locate()
    if existing is not None:
        logger.info("%s already available at %s", name, existing)
        return ToolLocations(name=name, executable=Path(existing))

    logger.info("%s not found; downloading %s", name, fetch_spec.url)
    with tempfile.TemporaryDirectory() as tmp_dir:
        archive = Path(tmp_dir) / "archive"
        downloader(fetch_spec.url, archive)
        fetch_spec.install_dir.mkdir(parents=True, exist_ok=True)
        unpack_archive(archive, fetch_spec.install_dir, fetch_spec.url)

    executable = fetch_spec.executable_path
    if not executable.is_file():
        raise InstallVerificationFailed(f"{executable} missing after unpacking {fetch_spec.url}")
    _mark_executable(executable)
    logger.info("%s installed at %s", name, executable)
    return ToolLocations(name=name, executable=executable)
