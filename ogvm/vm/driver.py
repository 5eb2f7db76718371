"""Backend-neutral VM driver interface consumed by the orchestration core."""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Protocol, Sequence

from ..errors import BackendError
from ..util import CmdResult


class VMState(str, enum.Enum):
    RUNNING = 'running'
    STOPPED = 'stopped'
    UNKNOWN = 'unknown'


class VMDriver(Protocol):
    """Control-plane primitives of a virtualization backend.

    Every method except :meth:`status`, :meth:`ip` and :meth:`exec` raises
    :class:`~ogvm.errors.BackendError` when the backend reports failure.
    ``exec`` returns the raw result so callers decide what a non-zero exit
    means.
    """

    def check_available(self) -> None: ...

    def create(
        self, vm_name: str, *, memory: str, disk: str, cpus: int, os_version: str
    ) -> None: ...

    def start(self, vm_name: str) -> None: ...

    def stop(self, vm_name: str) -> None: ...

    def delete(self, vm_name: str, *, purge: bool = True) -> None: ...

    def exists(self, vm_name: str) -> bool: ...

    def status(self, vm_name: str) -> VMState: ...

    def ip(self, vm_name: str) -> str: ...

    def exec(
        self, vm_name: str, command: Sequence[str], *, capture: bool = True
    ) -> CmdResult: ...

    def transfer_file(self, local: Path, vm_name: str, remote: str) -> None: ...

    def transfer_tree(self, local_dir: Path, vm_name: str, remote_dir: str) -> None: ...

    def shell(self, vm_name: str) -> int: ...


def exec_checked(
    driver: VMDriver, vm_name: str, command: Sequence[str], *, op: str = 'exec'
) -> CmdResult:
    """Run ``command`` in the guest and raise ``BackendError`` on non-zero exit."""
    res = driver.exec(vm_name, command)
    if res.code != 0:
        raise BackendError(op, res.output)
    return res
