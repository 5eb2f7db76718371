"""Provisioning pipeline: an ordered list of stages driven until the first failure.

A fresh instance walks every stage::

    NOT_EXISTS -> CREATING -> TRANSFERRING_ARTIFACTS -> MATERIALIZING_CODEBASE
               -> INSTALLING -> WAITING_READY -> READY

An instance whose VM is already running short-circuits to ``READY``; any other
existing VM (stopped, suspended, starting) goes through
``STARTING -> WAITING_READY -> READY`` and keeps its original parameters.
Any stage failure ends in ``FAILED`` and raises
:class:`~ogvm.errors.ProvisionError` naming the stage. Nothing is retried or
rolled back: the VM and partial transfers stay for inspection.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from . import codebase as codebase_mod
from .cache import DependencyCache
from .codebase import Codebase
from .config import OGVMConfig, vm_name_for
from .errors import OGVMError, ProvisionError, ValidationError
from .installer import Installer
from .ports import check_port_available
from .readiness import WaitResult, poll
from .store import InstanceRecord, InstanceStore, validate_name
from .vm.driver import VMDriver, VMState, exec_checked

log = logger

Prober = Callable[..., WaitResult]


class ProvisionState(str, enum.Enum):
    NOT_EXISTS = 'not_exists'
    CREATING = 'creating'
    TRANSFERRING_ARTIFACTS = 'transferring_artifacts'
    MATERIALIZING_CODEBASE = 'materializing_codebase'
    INSTALLING = 'installing'
    STARTING = 'starting'
    WAITING_READY = 'waiting_ready'
    READY = 'ready'
    FAILED = 'failed'


@dataclass
class StartRequest:
    name: str
    codebase: str = ''
    memory: str = '4G'
    disk: str = '20G'
    cpus: int = 2
    port: int = 8080
    ubuntu: str = '22.04'
    no_cache: bool = False
    depth: Optional[int] = None
    branch: str = ''

    def validate(self) -> 'StartRequest':
        self.name = validate_name(self.name)
        try:
            self.cpus = int(self.cpus)
            self.port = int(self.port)
        except (TypeError, ValueError) as ex:
            raise ValidationError(f'Invalid numeric option: {ex}') from None
        if self.cpus <= 0:
            raise ValidationError('--cpus must be a positive integer')
        if not 0 < self.port < 65536:
            raise ValidationError(f'--port must be in 1..65535, got {self.port}')
        if not str(self.memory).strip() or not str(self.disk).strip():
            raise ValidationError('--memory and --disk must not be empty')
        if self.depth not in (None, ''):
            try:
                self.depth = int(self.depth)
            except (TypeError, ValueError):
                raise ValidationError(
                    f'--depth must be an integer, got {self.depth!r}'
                ) from None
            if self.depth <= 0:
                raise ValidationError('--depth must be a positive integer')
        else:
            self.depth = None
        return self


@dataclass
class ProvisionReport:
    name: str
    vm_name: str
    states: list[ProvisionState] = field(default_factory=list)
    provisioned: bool = False
    ip: str = ''
    url: str = ''
    readiness: Optional[WaitResult] = None
    record: Optional[InstanceRecord] = None

    @property
    def state(self) -> ProvisionState:
        return self.states[-1] if self.states else ProvisionState.NOT_EXISTS


@dataclass
class _Run:
    request: StartRequest
    report: ProvisionReport
    codebase: Optional[Codebase] = None
    record: Optional[InstanceRecord] = None


@dataclass
class Stage:
    state: ProvisionState
    action: Callable[[_Run], None]
    fatal: bool = True


class Provisioner:
    """Sequence VM creation, artifact transfer, codebase and install steps."""

    def __init__(
        self,
        *,
        store: InstanceStore,
        driver: VMDriver,
        cache: DependencyCache,
        installer: Installer,
        cfg: OGVMConfig | None = None,
        prober: Prober = poll,
    ):
        self.store = store
        self.driver = driver
        self.cache = cache
        self.installer = installer
        self.cfg = cfg or OGVMConfig()
        self.prober = prober

    # Public API -------------------------------------------------------

    def start(self, request: StartRequest) -> ProvisionReport:
        request.validate()
        vm_name = vm_name_for(request.name)
        report = ProvisionReport(name=request.name, vm_name=vm_name)
        if self.store.exists(request.name):
            record = self.store.load(request.name)
            state = self.driver.status(record.vm_name)
            log.info("Instance '{}' already exists (vm state={})", record.name, state.value)
            run = _Run(request=request, report=report, record=record)
            report.record = record
            if state is VMState.RUNNING:
                log.info('Instance is already running.')
                report.states.append(ProvisionState.READY)
                self._fill_endpoint(run)
                return report
            if state is VMState.STOPPED or self.driver.exists(record.vm_name):
                log.info('Restarting existing instance...')
                self._drive(run, self.resume_stages())
                return report
            log.warning(
                "VM {} for instance '{}' no longer exists; provisioning a fresh VM",
                record.vm_name,
                record.name,
            )
        run = _Run(request=request, report=report)
        try:
            self._preflight(run)
            self._drive(run, self.fresh_stages())
        finally:
            if run.codebase is not None:
                codebase_mod.cleanup(run.codebase)
        report.provisioned = True
        return report

    def fresh_stages(self) -> list[Stage]:
        return [
            Stage(ProvisionState.CREATING, self._create),
            Stage(ProvisionState.TRANSFERRING_ARTIFACTS, self._transfer_artifacts),
            Stage(ProvisionState.MATERIALIZING_CODEBASE, self._materialize),
            Stage(ProvisionState.INSTALLING, self._install),
            Stage(ProvisionState.WAITING_READY, self._wait_ready, fatal=False),
            Stage(ProvisionState.READY, self._save),
        ]

    def resume_stages(self) -> list[Stage]:
        return [
            Stage(ProvisionState.STARTING, self._start_vm),
            Stage(ProvisionState.WAITING_READY, self._wait_ready, fatal=False),
            Stage(ProvisionState.READY, lambda run: None),
        ]

    # Driver loop ------------------------------------------------------

    def _drive(self, run: _Run, stages: list[Stage]) -> None:
        report = run.report
        for stage in stages:
            report.states.append(stage.state)
            log.debug('Instance {}: entering {}', report.name, stage.state.value)
            try:
                stage.action(run)
            except Exception as ex:
                if not stage.fatal and not isinstance(ex, OGVMError):
                    log.warning('Non-fatal stage {} failed: {}', stage.state.value, ex)
                    if stage.state is ProvisionState.WAITING_READY:
                        report.readiness = WaitResult.TIMED_OUT
                    continue
                report.states.append(ProvisionState.FAILED)
                log.error(
                    'Instance {} failed during {}: {}', report.name, stage.state.value, ex
                )
                raise ProvisionError(stage.state.value, ex) from ex

    def _preflight(self, run: _Run) -> None:
        req = run.request
        run.codebase = codebase_mod.classify(req.codebase)
        check_port_available(
            req.port, req.name, store=self.store, driver=self.driver
        )
        self.cache.ensure(force_refresh=req.no_cache)
        run.codebase = codebase_mod.prepare(run.codebase)

    # Stage actions ----------------------------------------------------

    def _create(self, run: _Run) -> None:
        req = run.request
        self.driver.create(
            run.report.vm_name,
            memory=req.memory,
            disk=req.disk,
            cpus=req.cpus,
            os_version=req.ubuntu,
        )

    def _transfer_artifacts(self, run: _Run) -> None:
        vm_name = run.report.vm_name
        log.info('Transferring installation scripts...')
        self.installer.push_scripts(self.driver, vm_name)
        log.info('Transferring cached dependencies...')
        deps_dir = self.cfg.guest.deps_dir
        exec_checked(self.driver, vm_name, ['mkdir', '-p', deps_dir], op='transfer')
        self.driver.transfer_tree(Path(self.cache.cache_dir), vm_name, deps_dir)

    def _materialize(self, run: _Run) -> None:
        codebase_mod.materialize(
            run.codebase,
            self.driver,
            run.report.vm_name,
            self.cfg.guest.source_dir,
            depth=run.request.depth,
            branch=run.request.branch,
        )

    def _install(self, run: _Run) -> None:
        self.installer.install(
            self.driver,
            run.report.vm_name,
            port=run.request.port,
            project_name=run.codebase.project_name,
        )

    def _start_vm(self, run: _Run) -> None:
        self.driver.start(run.report.vm_name)

    def _wait_ready(self, run: _Run) -> None:
        self._fill_endpoint(run)
        report = run.report
        if not report.ip:
            log.warning('Could not determine IP of {}; skipping readiness probe', report.vm_name)
            report.readiness = WaitResult.TIMED_OUT
            return
        rcfg = self.cfg.readiness
        report.readiness = self.prober(
            report.url,
            max_attempts=int(rcfg.max_attempts),
            interval_s=float(rcfg.interval_s),
        )

    def _save(self, run: _Run) -> None:
        req = run.request
        record = InstanceRecord(
            name=req.name,
            codebase_type=run.codebase.type,
            codebase_path=run.codebase.path,
            port=req.port,
            memory=req.memory,
            disk=req.disk,
            cpus=req.cpus,
            ubuntu_version=req.ubuntu,
            git_depth='' if req.depth is None else str(req.depth),
            git_branch=req.branch,
        )
        self.store.save(record)
        run.record = record
        run.report.record = record

    def _fill_endpoint(self, run: _Run) -> None:
        report = run.report
        port = run.record.port if run.record is not None else run.request.port
        report.ip = self.driver.ip(report.vm_name)
        report.url = instance_url(report.ip, port, self.cfg.readiness.url_path)


def instance_url(ip: str, port: int, path: str = '/source') -> str:
    return f'http://{ip or "N/A"}:{port}{path}'
