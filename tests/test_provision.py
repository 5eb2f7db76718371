"""Tests for the provisioning pipeline against the in-memory driver."""

from __future__ import annotations

from pathlib import Path

import pytest

from ogvm.errors import BackendError, InvalidCodebaseError, PortConflictError, ProvisionError, ValidationError
from ogvm.provision import ProvisionState, StartRequest, instance_url
from ogvm.readiness import WaitResult
from ogvm.status import render_start_report
from ogvm.vm.driver import VMState

FRESH = [
    ProvisionState.CREATING,
    ProvisionState.TRANSFERRING_ARTIFACTS,
    ProvisionState.MATERIALIZING_CODEBASE,
    ProvisionState.INSTALLING,
    ProvisionState.WAITING_READY,
    ProvisionState.READY,
]


def test_fresh_demo_start(harness) -> None:
    report = harness.manager.start(StartRequest(name='demo'))
    assert report.states == FRESH
    assert report.provisioned is True
    assert report.readiness is WaitResult.READY
    assert report.url == 'http://10.0.0.2:8080/source'
    assert harness.prober.urls == [report.url]

    rec = harness.store.load('demo')
    assert rec.codebase_type == 'demo'
    assert rec.vm_name == 'opengrok-test-demo'
    assert harness.driver.status(rec.vm_name) is VMState.RUNNING
    assert harness.installer.installs == [('opengrok-test-demo', 8080, 'demo')]

    files = harness.driver.vms[rec.vm_name].files
    assert '/tmp/source-code/src/main.c' in files
    assert '/tmp/opengrok-deps/MANIFEST.txt' in files
    # The generated demo tree is removed from the host afterwards.
    assert not Path(rec.codebase_path).exists()


def test_start_is_idempotent_while_running(harness) -> None:
    harness.manager.start(StartRequest(name='a'))
    n_calls = len(harness.driver.calls)
    report = harness.manager.start(StartRequest(name='a', port=9999, memory='8G'))
    assert report.states == [ProvisionState.READY]
    assert report.provisioned is False
    assert report.url.endswith(':8080/source')
    assert len(harness.installer.installs) == 1
    assert harness.driver.ops('create') == [('create', 'opengrok-test-a')]
    assert len(harness.driver.calls) == n_calls


def test_restart_after_stop_skips_install(harness, tmp_path: Path) -> None:
    mgr = harness.manager
    src = tmp_path / 'project'
    src.mkdir()
    (src / 'main.c').write_text('int main;\n')
    mgr.start(StartRequest(name='a', codebase=str(src)))
    first = harness.store.load('a')
    mgr.stop('a')
    n_create = len(harness.driver.ops('create'))
    n_tree = len(harness.driver.ops('transfer_tree'))
    assert mgr.status('a') == 'stopped'
    report = mgr.start(StartRequest(name='a', port=9090))
    assert report.states == [
        ProvisionState.STARTING,
        ProvisionState.WAITING_READY,
        ProvisionState.READY,
    ]
    assert mgr.status('a') == 'running'
    assert len(harness.installer.installs) == 1
    assert harness.downloader.count == 1
    assert len(harness.driver.ops('create')) == n_create
    assert len(harness.driver.ops('transfer_tree')) == n_tree
    assert harness.driver.ops('start') == [('start', 'opengrok-test-a')]
    again = harness.store.load('a')
    assert again == first
    assert (again.codebase_type, again.codebase_path, again.port) == (
        'local', str(src.resolve()), 8080
    )


def test_local_codebase(harness, tmp_path: Path) -> None:
    src = tmp_path / 'project'
    (src / 'pkg').mkdir(parents=True)
    (src / 'pkg' / 'mod.py').write_text('x = 1\n')
    harness.manager.start(StartRequest(name='loc', codebase=str(src)))
    rec = harness.store.load('loc')
    assert (rec.codebase_type, rec.codebase_path) == ('local', str(src.resolve()))
    assert harness.installer.installs[-1][2] == 'project'
    files = harness.driver.vms[rec.vm_name].files
    assert files['/tmp/source-code/pkg/mod.py'] == b'x = 1\n'


def test_git_codebase_records_clone_options(harness) -> None:
    harness.manager.start(
        StartRequest(name='g', codebase='https://github.com/org/repo.git', depth=1, branch='dev')
    )
    rec = harness.store.load('g')
    assert (rec.codebase_type, rec.git_depth, rec.git_branch) == ('git', '1', 'dev')
    clone = [c for c in harness.driver.ops('exec') if c[2][0] == 'bash']
    assert 'git clone --depth 1 --branch dev' in clone[0][2][2]


def test_invalid_codebase_leaves_no_trace(harness) -> None:
    with pytest.raises(InvalidCodebaseError):
        harness.manager.start(StartRequest(name='bad', codebase='/no/such/dir'))
    assert harness.driver.vms == {}
    assert not harness.store.exists('bad')
    assert harness.downloader.count == 0


def test_port_conflict_then_free_after_stop(harness) -> None:
    mgr = harness.manager
    mgr.start(StartRequest(name='a', port=8080))
    with pytest.raises(PortConflictError):
        mgr.start(StartRequest(name='b', port=8080))
    assert 'opengrok-test-b' not in harness.driver.vms
    mgr.stop('a')
    report = mgr.start(StartRequest(name='b', port=8080))
    assert report.state is ProvisionState.READY


def test_stage_failure_names_stage(harness) -> None:
    harness.driver.exec_codes['install'] = 1
    with pytest.raises(ProvisionError) as exc:
        harness.manager.start(StartRequest(name='f'))
    assert exc.value.stage == 'installing'
    assert isinstance(exc.value.cause, BackendError)
    # The VM is kept for inspection; no record is written.
    assert 'opengrok-test-f' in harness.driver.vms
    assert not harness.store.exists('f')


def test_failed_report_ends_in_failed(harness) -> None:
    harness.driver.fail_on.add('create')
    prov = harness.manager.provisioner
    with pytest.raises(ProvisionError, match='creating') as exc:
        prov.start(StartRequest(name='f'))
    assert exc.value.stage == ProvisionState.CREATING.value


def test_readiness_timeout_is_not_fatal(harness) -> None:
    harness.prober.result = WaitResult.TIMED_OUT
    report = harness.manager.start(StartRequest(name='slow'))
    assert report.state is ProvisionState.READY
    assert report.readiness is WaitResult.TIMED_OUT
    assert harness.store.exists('slow')


def test_stale_record_reprovisions(harness) -> None:
    mgr = harness.manager
    mgr.start(StartRequest(name='a'))
    harness.driver.vms.clear()
    assert mgr.status('a') == 'unknown'
    report = mgr.start(StartRequest(name='a'))
    assert report.states == FRESH
    assert len(harness.installer.installs) == 2


def test_no_cache_forces_download(harness) -> None:
    harness.manager.start(StartRequest(name='a'))
    harness.manager.start(StartRequest(name='b', port=8081, no_cache=True))
    assert harness.downloader.count == 2


@pytest.mark.parametrize(
    'kw',
    [
        {'name': ''},
        {'name': 'x', 'port': 0},
        {'name': 'x', 'port': 70000},
        {'name': 'x', 'cpus': 0},
        {'name': 'x', 'depth': 'deep'},
        {'name': 'x', 'memory': ' '},
    ],
)
def test_start_request_validation(kw) -> None:
    with pytest.raises(ValidationError):
        StartRequest(**kw).validate()


def test_instance_url() -> None:
    assert instance_url('1.2.3.4', 8080) == 'http://1.2.3.4:8080/source'
    assert instance_url('', 9000) == 'http://N/A:9000/source'


def test_existing_vm_in_transitional_state_resumes(harness) -> None:
    mgr = harness.manager
    mgr.start(StartRequest(name='a'))
    harness.driver.vms['opengrok-test-a'].state = VMState.UNKNOWN
    report = mgr.start(StartRequest(name='a'))
    assert report.states == [
        ProvisionState.STARTING,
        ProvisionState.WAITING_READY,
        ProvisionState.READY,
    ]
    assert len(harness.driver.ops('create')) == 1
    assert len(harness.installer.installs) == 1


def test_readiness_error_reports_timed_out(harness) -> None:
    def broken_prober(url, **kwargs):
        raise RuntimeError('probe exploded')

    harness.manager.provisioner.prober = broken_prober
    report = harness.manager.start(StartRequest(name='a'))
    assert report.state is ProvisionState.READY
    assert report.readiness is WaitResult.TIMED_OUT
    assert harness.store.exists('a')
    assert "=== Instance 'a' Started ===" in render_start_report(report)
