"""
Downloads — fetch release archives, keyrings and bootstrap scripts.

Plain ``urllib`` with an optional checksum.  Files land in a scratch
directory under ``/tmp`` that the caller removes afterwards.
"""

from __future__ import annotations

import hashlib
import logging
import platform
import shutil
import tarfile
import tempfile
import urllib.request
import zipfile
from pathlib import Path

logger = logging.getLogger(__name__)

_USER_AGENT = "devsetup/0.1"
_CHUNK = 1024 * 256


class DownloadError(Exception):
    """Raised when a download fails or its checksum doesn't match."""


def _verify_checksum(path: Path, expected: str) -> bool:
    """Verify file checksum.  Format: ``algo:hex``."""
    algo, expected_hash = expected.split(":", 1)
    h = hashlib.new(algo)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest() == expected_hash


def download_file(
    url: str,
    dest: Path,
    *,
    checksum: str | None = None,
    timeout: int = 60,
) -> Path:
    """Download ``url`` to ``dest``.

    Raises:
        DownloadError: On network failure or checksum mismatch.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading %s → %s", url, dest)
    req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp, open(dest, "wb") as out:
            shutil.copyfileobj(resp, out, _CHUNK)
    except OSError as e:
        dest.unlink(missing_ok=True)
        raise DownloadError(f"Failed to download {url}: {e}") from e

    if checksum and not _verify_checksum(dest, checksum):
        dest.unlink(missing_ok=True)
        raise DownloadError(f"Checksum mismatch for {url}")
    return dest


def scratch_dir(prefix: str) -> Path:
    """A fresh world-readable scratch directory under /tmp."""
    path = Path(tempfile.mkdtemp(prefix=f"devsetup-{prefix}-"))
    path.chmod(0o755)
    return path


def fetch_script(url: str, workdir: Path) -> Path:
    """Download a bootstrap script so it can be run as the target user."""
    script = download_file(url, workdir / "install.sh")
    script.chmod(0o755)
    return script


# Architecture name normalization (Go / Debian style).
_IARCH_MAP: dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "armv6l",
    "i686": "386",
    "i386": "386",
}


def machine_arch(raw: bool = False) -> str:
    """Architecture name for release asset URLs.

    Args:
        raw: Return the ``uname -m`` name (``x86_64``) instead of the
            Go-style one (``amd64``).
    """
    machine = platform.machine().lower()
    if raw:
        return "arm64" if machine == "aarch64" else machine
    return _IARCH_MAP.get(machine, machine)


def extract_archive(archive: Path, dest: Path) -> Path:
    """Unpack a ``.tar.gz`` / ``.tgz`` / ``.zip`` into ``dest``."""
    dest.mkdir(parents=True, exist_ok=True)
    name = archive.name
    if name.endswith(".zip"):
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(dest)
    elif name.endswith((".tar.gz", ".tgz", ".tar.xz", ".tar")):
        with tarfile.open(archive) as tf:
            tf.extractall(dest, filter="tar")
    else:
        raise DownloadError(f"Unsupported archive format: {archive}")
    logger.debug("Extracted %s → %s", archive, dest)
    return dest
