"""Host-side cache of third-party installation artifacts."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from loguru import logger

from .errors import BackendError
from .util import CmdError, ensure_dir, run_cmd

log = logger

MANIFEST_NAME = 'MANIFEST.txt'


class Downloader(Protocol):
    def download(self, cache_dir: Path) -> None: ...


class ScriptDownloader:
    """Populate the cache by running the dependency download script."""

    def __init__(self, script: str | Path):
        self.script = Path(script)

    def download(self, cache_dir: Path) -> None:
        if not self.script.is_file():
            raise BackendError(
                'download', f'Dependency download script not found: {self.script}'
            )
        log.info('Downloading dependencies to cache {} (showing progress)', cache_dir)
        try:
            run_cmd(
                ['bash', str(self.script), '-y', '-p', str(cache_dir)],
                check=True,
                capture=False,
            )
        except CmdError as ex:
            raise BackendError('download', ex.result.output) from ex


class DependencyCache:
    """Reuse the cache unless it is missing, empty, incomplete or refreshed.

    There is no versioning or expiry: a stale cache is only replaced when
    ``force_refresh`` is requested (``ogvm start --no-cache``).
    """

    def __init__(self, cache_dir: str | Path, downloader: Downloader):
        self.cache_dir = Path(cache_dir)
        self.downloader = downloader

    @property
    def manifest(self) -> Path:
        return self.cache_dir / MANIFEST_NAME

    def is_complete(self) -> bool:
        if not self.cache_dir.is_dir():
            return False
        if not any(self.cache_dir.iterdir()):
            return False
        return self.manifest.is_file()

    def ensure(self, force_refresh: bool = False) -> Path:
        if not force_refresh and self.is_complete():
            log.info('Using cached dependencies from {}', self.cache_dir)
            return self.cache_dir
        ensure_dir(self.cache_dir)
        self.downloader.download(self.cache_dir)
        if not self.manifest.is_file():
            raise BackendError(
                'download',
                f'Dependency download finished without {MANIFEST_NAME} in {self.cache_dir}',
            )
        return self.cache_dir

    def artifacts(self) -> list[Path]:
        if not self.cache_dir.is_dir():
            return []
        return sorted(p for p in self.cache_dir.iterdir() if p.is_file())
