"""CMSIS-SVD debug data cache for stm32-dev."""

from __future__ import annotations

import http.client
import logging
import os
import re
import tempfile
import urllib.error
import urllib.request
from pathlib import Path

from stm32_dev.device import DeviceDescriptor
from stm32_dev.paths import ensure_dir

logger = logging.getLogger(__name__)

SVD_BASE_URL = "https://raw.githubusercontent.com/posborne/cmsis-svd/master/data/STMicro"
DEFAULT_CACHE_DIR = Path.home() / ".stm32dev" / "svd"

_LINE_PREFIX = re.compile(r"^(STM32[A-Z]+\d\d)")


def svd_file_name(device_name: str) -> str:
    return f"{device_name.upper()}.svd"


def generic_svd_name(device_name: str) -> str:
    """Wildcard SVD name covering a whole line, e.g. STM32F407VG -> STM32F40x.svd."""
    name = device_name.upper()
    match = _LINE_PREFIX.match(name)
    if match:
        return f"{match.group(1)}x.svd"
    return f"{name}x.svd"


class SvdCache:
    """Local cache of SVD files, filled from the cmsis-svd repository on demand."""

    def __init__(self, cache_dir: Path | str | None = None, base_url: str = SVD_BASE_URL, timeout: float = 15):
        self.cache_dir = Path(cache_dir).expanduser() if cache_dir else DEFAULT_CACHE_DIR
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def cached_path(self, device: DeviceDescriptor) -> Path:
        return self.cache_dir / svd_file_name(device.name)

    def get(self, device: DeviceDescriptor) -> Path | None:
        """Return the SVD file for `device`, downloading it if needed. None on failure."""
        path = self.cached_path(device)
        if path.exists():
            return path
        return self.download(device)

    def download(self, device: DeviceDescriptor) -> Path | None:
        """Try the exact part name first, then the line-wide wildcard name."""
        target = self.cached_path(device)
        for file_name in (svd_file_name(device.name), generic_svd_name(device.name)):
            url = f"{self.base_url}/{file_name}"
            data = self._fetch(url)
            if data is None:
                continue
            try:
                self._write(target, data)
            except OSError as e:
                logger.warning("Could not write SVD cache file %s: %s", target, e)
                return None
            logger.info("Downloaded %s to %s", url, target)
            return target
        logger.info("No SVD file found for %s", device.name)
        return None

    def _fetch(self, url: str) -> bytes | None:
        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as response:
                if response.status != 200:
                    return None
                return response.read()
        except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as e:
            logger.debug("SVD download failed for %s: %s", url, e)
            return None

    def _write(self, target: Path, data: bytes) -> None:
        # Readers only ever see a complete file.
        fd, tmp_path = tempfile.mkstemp(dir=ensure_dir(self.cache_dir), prefix=f".{target.name}.", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, target)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
