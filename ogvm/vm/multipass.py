"""Multipass-backed implementation of :class:`~ogvm.vm.driver.VMDriver`."""

from __future__ import annotations

import json
import shlex
from pathlib import Path
from typing import Sequence

from loguru import logger

from ..errors import BackendError
from ..util import CmdError, CmdResult, run_cmd, which
from .driver import VMState, exec_checked

log = logger

MULTIPASS = 'multipass'


def _parse_info_json(text: str, vm_name: str) -> dict:
    try:
        raw = json.loads(text)
    except ValueError:
        return {}
    info = raw.get('info', {}) if isinstance(raw, dict) else {}
    body = info.get(vm_name, {}) if isinstance(info, dict) else {}
    return body if isinstance(body, dict) else {}


def _parse_info_text(text: str) -> dict:
    """Parse the ``Key:   value`` layout of plain ``multipass info``."""
    out: dict = {}
    for line in text.splitlines():
        if ':' not in line:
            continue
        key, val = [x.strip() for x in line.split(':', 1)]
        key = key.lower()
        if key == 'state':
            out['state'] = val
        elif key == 'ipv4' and val:
            out.setdefault('ipv4', []).append(val.split()[0])
    return out


def _state_from_text(state: str) -> VMState:
    low = (state or '').strip().lower()
    if low == 'running':
        return VMState.RUNNING
    if low in {'stopped', 'suspended'}:
        return VMState.STOPPED
    return VMState.UNKNOWN


class MultipassDriver:
    """Drive VMs through the ``multipass`` command-line client."""

    def __init__(self, *, mount_point: str = '/mnt/source', binary: str = MULTIPASS):
        self.mount_point = mount_point
        self.binary = binary

    def _cmd(self, *args: str) -> list[str]:
        return [self.binary, *args]

    def _run(self, op: str, *args: str, capture: bool = True) -> CmdResult:
        try:
            return run_cmd(self._cmd(*args), check=True, capture=capture)
        except CmdError as ex:
            raise BackendError(op, ex.result.output) from ex

    def check_available(self) -> None:
        if which(self.binary) is None:
            raise BackendError(
                'check',
                'Multipass not installed. Run: brew install --cask multipass '
                '(macOS) or: sudo snap install multipass (Linux)',
            )

    def create(
        self, vm_name: str, *, memory: str, disk: str, cpus: int, os_version: str
    ) -> None:
        log.info('Creating VM {}', vm_name)
        self._run(
            'create',
            'launch',
            '--name',
            vm_name,
            '--memory',
            str(memory),
            '--disk',
            str(disk),
            '--cpus',
            str(cpus),
            str(os_version),
        )
        log.info('VM created: {}', vm_name)

    def start(self, vm_name: str) -> None:
        self._run('start', 'start', vm_name)
        log.info('VM started: {}', vm_name)

    def stop(self, vm_name: str) -> None:
        self._run('stop', 'stop', vm_name)
        log.info('VM stopped: {}', vm_name)

    def delete(self, vm_name: str, *, purge: bool = True) -> None:
        args = ['delete', vm_name]
        if purge:
            args.append('--purge')
        self._run('delete', *args)
        log.info('VM removed: {}', vm_name)

    def _info(self, vm_name: str) -> dict:
        res = run_cmd(
            self._cmd('info', vm_name, '--format', 'json'), check=False
        )
        if res.code != 0:
            return {}
        body = _parse_info_json(res.stdout, vm_name)
        if body:
            return body
        res = run_cmd(self._cmd('info', vm_name), check=False)
        if res.code != 0:
            return {}
        return _parse_info_text(res.stdout)

    def exists(self, vm_name: str) -> bool:
        return bool(self._info(vm_name))

    def status(self, vm_name: str) -> VMState:
        return _state_from_text(str(self._info(vm_name).get('state', '')))

    def ip(self, vm_name: str) -> str:
        addrs = self._info(vm_name).get('ipv4') or []
        return str(addrs[0]) if addrs else ''

    def exec(
        self, vm_name: str, command: Sequence[str], *, capture: bool = True
    ) -> CmdResult:
        return run_cmd(
            self._cmd('exec', vm_name, '--', *command),
            check=False,
            capture=capture,
        )

    def transfer_file(self, local: Path, vm_name: str, remote: str) -> None:
        self._run('transfer', 'transfer', str(local), f'{vm_name}:{remote}')

    def transfer_tree(self, local_dir: Path, vm_name: str, remote_dir: str) -> None:
        """Copy the contents of ``local_dir`` into ``remote_dir`` in the guest.

        A recursive ``multipass transfer`` is tried first. Some multipass
        versions reject it, so on failure the host directory is mounted into
        the guest and copied from the mount point instead.
        """
        local_dir = Path(local_dir)
        exec_checked(self, vm_name, ['mkdir', '-p', remote_dir], op='transfer')
        children = sorted(str(p) for p in local_dir.iterdir())
        if not children:
            log.debug('Nothing to transfer from empty directory {}', local_dir)
            return
        try:
            self._run(
                'transfer', 'transfer', '-r', *children, f'{vm_name}:{remote_dir}/'
            )
            return
        except BackendError as ex:
            log.warning(
                'Recursive transfer failed ({}); falling back to mount of {}',
                ex.output or ex,
                local_dir,
            )
        self._transfer_via_mount(local_dir, vm_name, remote_dir)

    def _transfer_via_mount(
        self, local_dir: Path, vm_name: str, remote_dir: str
    ) -> None:
        mnt = self.mount_point
        self._run(
            'transfer (mount)', 'mount', str(local_dir.resolve()), f'{vm_name}:{mnt}'
        )
        src = shlex.quote(mnt)
        dst = shlex.quote(remote_dir)
        script = f'cp -r {src}/* {dst}/ 2>/dev/null || cp -r {src}/. {dst}/'
        try:
            exec_checked(
                self, vm_name, ['sh', '-c', script], op='transfer (mount copy)'
            )
        finally:
            res = run_cmd(self._cmd('umount', f'{vm_name}:{mnt}'), check=False)
            if res.code != 0:
                log.warning('Could not unmount {}:{}: {}', vm_name, mnt, res.output)

    def shell(self, vm_name: str) -> int:
        return run_cmd(self._cmd('shell', vm_name), check=False, capture=False).code
