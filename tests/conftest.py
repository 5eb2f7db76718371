"""Shared in-memory fakes for the VM backend and its collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pytest

from ogvm.cache import MANIFEST_NAME, DependencyCache
from ogvm.config import OGVMConfig
from ogvm.errors import BackendError
from ogvm.instances import InstanceManager
from ogvm.provision import Provisioner
from ogvm.readiness import WaitResult
from ogvm.store import InstanceStore
from ogvm.util import CmdResult
from ogvm.vm.driver import VMState


@dataclass
class FakeVM:
    memory: str
    disk: str
    cpus: int
    os_version: str
    state: VMState = VMState.RUNNING
    files: dict[str, bytes] = field(default_factory=dict)


class FakeDriver:
    """Records every call and keeps VM state in memory."""

    def __init__(self):
        self.vms: dict[str, FakeVM] = {}
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()
        self.exec_codes: dict[str, int] = {}

    def _maybe_fail(self, op: str) -> None:
        if op in self.fail_on:
            raise BackendError(op, f'simulated {op} failure')

    def check_available(self) -> None:
        self.calls.append(('check_available',))

    def create(self, vm_name, *, memory, disk, cpus, os_version):
        self.calls.append(('create', vm_name))
        self._maybe_fail('create')
        self.vms[vm_name] = FakeVM(memory, disk, cpus, os_version)

    def start(self, vm_name):
        self.calls.append(('start', vm_name))
        self._maybe_fail('start')
        self.vms[vm_name].state = VMState.RUNNING

    def stop(self, vm_name):
        self.calls.append(('stop', vm_name))
        self._maybe_fail('stop')
        self.vms[vm_name].state = VMState.STOPPED

    def delete(self, vm_name, *, purge=True):
        self.calls.append(('delete', vm_name))
        self._maybe_fail('delete')
        self.vms.pop(vm_name, None)

    def exists(self, vm_name):
        return vm_name in self.vms

    def status(self, vm_name):
        vm = self.vms.get(vm_name)
        return vm.state if vm is not None else VMState.UNKNOWN

    def ip(self, vm_name):
        vm = self.vms.get(vm_name)
        if vm is None or vm.state is not VMState.RUNNING:
            return ''
        return '10.0.0.%d' % (sorted(self.vms).index(vm_name) + 2)

    def exec(self, vm_name, command, *, capture=True):
        command = list(command)
        self.calls.append(('exec', vm_name, command))
        text = ' '.join(command)
        if 'install-opengrok.sh' in text:
            key = 'install'
        elif 'git clone' in text:
            key = 'git'
        elif 'opengrok.jar' in text:
            key = 'reindex'
        else:
            key = command[0]
        code = self.exec_codes.get(key, 0)
        return CmdResult(code, '', 'boom' if code else '')

    def transfer_file(self, local, vm_name, remote):
        self.calls.append(('transfer_file', vm_name, Path(local).name, remote))
        self._maybe_fail('transfer')
        self.vms[vm_name].files[remote + Path(local).name] = Path(local).read_bytes()

    def transfer_tree(self, local_dir, vm_name, remote_dir):
        self.calls.append(('transfer_tree', vm_name, str(local_dir), remote_dir))
        self._maybe_fail('transfer')
        root = Path(local_dir)
        for fpath in sorted(p for p in root.rglob('*') if p.is_file()):
            rel = fpath.relative_to(root).as_posix()
            self.vms[vm_name].files[f'{remote_dir}/{rel}'] = fpath.read_bytes()

    def shell(self, vm_name):
        self.calls.append(('shell', vm_name))
        return 0

    def ops(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]


class FakeDownloader:
    def __init__(self):
        self.count = 0

    def download(self, cache_dir: Path) -> None:
        self.count += 1
        (cache_dir / 'opengrok-1.13.tar.gz').write_bytes(b'opengrok')
        (cache_dir / MANIFEST_NAME).write_text('opengrok-1.13.tar.gz\n')


class FakeInstaller:
    def __init__(self):
        self.installs: list[tuple[str, int, str]] = []
        self.pushed: list[str] = []

    def push_scripts(self, driver, vm_name):
        self.pushed.append(vm_name)

    def install(self, driver, vm_name, *, port, project_name):
        res = driver.exec(vm_name, ['sudo', 'bash', 'install-opengrok.sh'])
        if res.code != 0:
            raise BackendError('install', res.output)
        self.installs.append((vm_name, port, project_name))


class FakeProber:
    def __init__(self, result: WaitResult = WaitResult.READY):
        self.result = result
        self.urls: list[str] = []

    def __call__(self, url, max_attempts=60, interval_s=2.0, **kwargs):
        self.urls.append(url)
        return self.result


@dataclass
class Harness:
    cfg: OGVMConfig
    store: InstanceStore
    driver: FakeDriver
    downloader: FakeDownloader
    installer: FakeInstaller
    prober: FakeProber
    manager: InstanceManager


@pytest.fixture
def cfg(tmp_path: Path) -> OGVMConfig:
    cfg = OGVMConfig()
    cfg.paths.state_dir = str(tmp_path / 'instances')
    cfg.paths.cache_dir = str(tmp_path / 'cache')
    cfg.paths.scripts_dir = str(tmp_path / 'scripts')
    cfg.readiness.interval_s = 0.0
    return cfg


@pytest.fixture
def harness(cfg: OGVMConfig) -> Harness:
    store = InstanceStore(cfg.paths.state_dir)
    driver = FakeDriver()
    downloader = FakeDownloader()
    installer = FakeInstaller()
    prober = FakeProber()
    provisioner = Provisioner(
        store=store,
        driver=driver,
        cache=DependencyCache(cfg.paths.cache_dir, downloader),
        installer=installer,
        cfg=cfg,
        prober=prober,
    )
    manager = InstanceManager(
        store=store, driver=driver, provisioner=provisioner, cfg=cfg
    )
    return Harness(cfg, store, driver, downloader, installer, prober, manager)
