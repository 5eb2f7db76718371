"""Per-instance record store: one directory with a ``config.json`` per instance."""

from __future__ import annotations

import contextlib
import fcntl
import json
import os
import shutil
import tempfile
import time
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Iterator

from loguru import logger

from .config import vm_name_for
from .errors import LockTimeoutError, NotFoundError, ValidationError
from .util import utc_timestamp

log = logger

RECORD_FILE = 'config.json'
CODEBASE_TYPES = ('local', 'git', 'demo')


@dataclass
class InstanceRecord:
    name: str
    codebase_type: str
    codebase_path: str
    port: int
    memory: str
    disk: str
    cpus: int
    ubuntu_version: str
    vm_name: str = ''
    created: str = ''
    git_depth: str = ''
    git_branch: str = ''

    def __post_init__(self) -> None:
        if not self.vm_name:
            self.vm_name = vm_name_for(self.name)
        if not self.created:
            self.created = utc_timestamp()
        if self.codebase_type not in CODEBASE_TYPES:
            raise ValidationError(
                f'Unknown codebase type {self.codebase_type!r}'
            )
        self.port = int(self.port)
        self.cpus = int(self.cpus)
        self.git_depth = '' if self.git_depth is None else str(self.git_depth)
        self.git_branch = self.git_branch or ''

    def as_dict(self) -> dict[str, object]:
        d = asdict(self)
        # Field order of the on-disk document.
        order = (
            'name',
            'vm_name',
            'codebase_type',
            'codebase_path',
            'port',
            'memory',
            'disk',
            'cpus',
            'ubuntu_version',
            'created',
            'git_depth',
            'git_branch',
        )
        return {k: d[k] for k in order}

    @classmethod
    def from_dict(cls, raw: dict) -> 'InstanceRecord':
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in raw.items() if k in known})


def validate_name(name: str) -> str:
    name = (name or '').strip()
    if not name:
        raise ValidationError('Instance name is required.')
    if '/' in name or name.startswith('.') or os.sep in name:
        raise ValidationError(f'Invalid instance name: {name!r}')
    return name


class InstanceStore:
    """Durable mapping from instance name to :class:`InstanceRecord`.

    Each instance owns ``<root>/<name>/config.json``. Writes go through a
    temporary file and ``os.replace`` so readers never observe a partial
    document. :meth:`lock` serializes mutating invocations on one name.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _dir(self, name: str) -> Path:
        return self.root / validate_name(name)

    def path_for(self, name: str) -> Path:
        return self._dir(name) / RECORD_FILE

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def save(self, record: InstanceRecord) -> Path:
        dpath = self._dir(record.name)
        dpath.mkdir(parents=True, exist_ok=True)
        fpath = dpath / RECORD_FILE
        tmp_fd, tmp_name = tempfile.mkstemp(dir=str(dpath), prefix=f'.{RECORD_FILE}.')
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(tmp_fd, 'w', encoding='utf-8') as handle:
                json.dump(record.as_dict(), handle, indent=2)
                handle.write('\n')
            os.replace(tmp_path, fpath)
        finally:
            tmp_path.unlink(missing_ok=True)
        log.debug('Saved instance record {}', fpath)
        return fpath

    def load(self, name: str) -> InstanceRecord:
        fpath = self.path_for(name)
        if not fpath.is_file():
            raise NotFoundError(name)
        raw = json.loads(fpath.read_text(encoding='utf-8'))
        return InstanceRecord.from_dict(raw)

    def list(self) -> list[InstanceRecord]:
        if not self.root.is_dir():
            return []
        records: list[InstanceRecord] = []
        for fpath in sorted(self.root.glob(f'*/{RECORD_FILE}')):
            try:
                raw = json.loads(fpath.read_text(encoding='utf-8'))
                records.append(InstanceRecord.from_dict(raw))
            except (OSError, ValueError, TypeError) as ex:
                log.warning('Skipping unreadable instance record {}: {}', fpath, ex)
        return records

    def delete(self, name: str) -> None:
        if not self.exists(name):
            raise NotFoundError(name)
        shutil.rmtree(self._dir(name))
        log.debug('Removed instance record for {}', name)

    @contextlib.contextmanager
    def lock(
        self, name: str, *, timeout: float = 10.0, poll_s: float = 0.1
    ) -> Iterator[Path]:
        """Hold an exclusive advisory lock for ``name`` while the block runs."""
        validate_name(name)
        self.root.mkdir(parents=True, exist_ok=True)
        lock_path = self.root / f'.{name}.lock'
        fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        deadline = time.monotonic() + timeout
        try:
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise LockTimeoutError(
                            f"Instance '{name}' is busy: another ogvm command "
                            f'holds {lock_path}'
                        ) from None
                    time.sleep(poll_s)
            yield lock_path
        finally:
            with contextlib.suppress(OSError):
                fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)
