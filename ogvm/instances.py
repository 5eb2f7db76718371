"""Instance lifecycle operations behind the CLI verbs."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from .cache import DependencyCache, ScriptDownloader
from .config import OGVMConfig
from .errors import BackendError, NotFoundError, NotRunningError
from .installer import ScriptInstaller, logs_command, reindex_command
from .provision import Provisioner, ProvisionReport, StartRequest, instance_url
from .readiness import poll
from .store import InstanceRecord, InstanceStore
from .vm.driver import VMDriver, VMState
from .vm.multipass import MultipassDriver

log = logger

NOT_FOUND = 'not found'


@dataclass
class InstanceInfo:
    record: InstanceRecord
    state: VMState
    ip: str
    url: str

    @property
    def status(self) -> str:
        return self.state.value


class InstanceManager:
    """Apply lifecycle verbs to named instances with their preconditions."""

    def __init__(
        self,
        *,
        store: InstanceStore,
        driver: VMDriver,
        provisioner: Provisioner,
        cfg: OGVMConfig | None = None,
    ):
        self.store = store
        self.driver = driver
        self.provisioner = provisioner
        self.cfg = cfg or OGVMConfig()

    @classmethod
    def from_config(cls, cfg: OGVMConfig) -> 'InstanceManager':
        store = InstanceStore(cfg.paths.state_dir)
        driver = MultipassDriver(mount_point=cfg.guest.mount_point)
        cache = DependencyCache(
            cfg.paths.cache_dir,
            ScriptDownloader(Path(cfg.paths.scripts_dir) / cfg.install.downloader_script),
        )
        provisioner = Provisioner(
            store=store,
            driver=driver,
            cache=cache,
            installer=ScriptInstaller.from_config(cfg),
            cfg=cfg,
            prober=poll,
        )
        return cls(store=store, driver=driver, provisioner=provisioner, cfg=cfg)

    def require(self, name: str) -> InstanceRecord:
        return self.store.load(name)

    def _require_running(self, name: str) -> InstanceRecord:
        record = self.require(name)
        state = self.driver.status(record.vm_name)
        if state is not VMState.RUNNING:
            raise NotRunningError(name, state.value)
        return record

    def url_for(self, record: InstanceRecord, ip: str) -> str:
        return instance_url(ip, record.port, self.cfg.readiness.url_path)

    # Verbs ----------------------------------------------------------

    def start(self, request: StartRequest) -> ProvisionReport:
        with self.store.lock(request.name):
            return self.provisioner.start(request)

    def stop(self, name: str) -> InstanceRecord:
        with self.store.lock(name):
            record = self.require(name)
            log.info("Stopping instance '{}'...", name)
            self.driver.stop(record.vm_name)
            return record

    def destroy(self, name: str) -> InstanceRecord:
        with self.store.lock(name):
            record = self.require(name)
            log.info("Destroying instance '{}'...", name)
            if not self.driver.exists(record.vm_name):
                log.warning('VM {} does not exist; removing record only', record.vm_name)
            else:
                self.driver.delete(record.vm_name, purge=True)
            self.store.delete(name)
            return record

    def status(self, name: str) -> str:
        try:
            record = self.require(name)
        except NotFoundError:
            return NOT_FOUND
        return self.driver.status(record.vm_name).value

    def describe(self, record: InstanceRecord) -> InstanceInfo:
        state = self.driver.status(record.vm_name)
        ip = self.driver.ip(record.vm_name) if state is VMState.RUNNING else ''
        return InstanceInfo(
            record=record, state=state, ip=ip, url=self.url_for(record, ip)
        )

    def info(self, name: str) -> InstanceInfo:
        return self.describe(self.require(name))

    def list(self) -> list[InstanceInfo]:
        return [self.describe(rec) for rec in self.store.list()]

    def open_url(self, name: str) -> str:
        record = self._require_running(name)
        return self.url_for(record, self.driver.ip(record.vm_name))

    def reindex(self, name: str) -> None:
        record = self._require_running(name)
        log.info('Reindexing codebase...')
        res = self.driver.exec(
            record.vm_name,
            reindex_command(self.cfg.install.indexer_memory_mb),
            capture=False,
        )
        if res.code != 0:
            raise BackendError('reindex', res.output or f'exit code {res.code}')
        log.info('Reindexing complete')

    def shell(self, name: str) -> int:
        record = self.require(name)
        return self.driver.shell(record.vm_name)

    def logs(self, name: str, *, follow: bool = False, lines: int = 100) -> int:
        record = self.require(name)
        cmd = logs_command(self.cfg.install.service_unit, lines=lines, follow=follow)
        return self.driver.exec(record.vm_name, cmd, capture=False).code
