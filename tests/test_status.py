from __future__ import annotations

from ogvm.instances import InstanceInfo
from ogvm.provision import ProvisionReport, ProvisionState
from ogvm.readiness import WaitResult
from ogvm.status import render_info, render_start_report, render_table, status_line
from ogvm.store import InstanceRecord
from ogvm.vm.driver import VMState


def _info(name: str, state: VMState, ip: str = '') -> InstanceInfo:
    rec = InstanceRecord(
        name=name,
        codebase_type='git',
        codebase_path='https://github.com/org/repo',
        port=8080,
        memory='4G',
        disk='20G',
        cpus=2,
        ubuntu_version='22.04',
        git_depth='1',
    )
    return InstanceInfo(rec, state, ip, f'http://{ip or "N/A"}:8080/source')


def test_status_line() -> None:
    assert status_line(True, 'x') == '✅ x'
    assert status_line(False, 'x', 'why') == '❌ x - why'
    assert status_line(None, 'x') == '➖ x'


def test_render_table() -> None:
    text = render_table([_info('a', VMState.RUNNING, '10.0.0.2'), _info('b', VMState.STOPPED)])
    lines = text.splitlines()
    assert len(lines) == 4
    assert lines[3].split()[:4] == ['b', 'stopped', '8080', 'N/A']


def test_render_info_git_details() -> None:
    text = render_info(_info('a', VMState.RUNNING, '10.0.0.2'))
    assert 'Status: running' in text
    assert 'Git: depth=1 branch=(default)' in text


def test_render_start_report_timeout() -> None:
    report = ProvisionReport(
        name='a',
        vm_name='opengrok-test-a',
        states=[ProvisionState.READY],
        ip='10.0.0.2',
        url='http://10.0.0.2:8080/source',
        readiness=WaitResult.TIMED_OUT,
    )
    text = render_start_report(report)
    assert "=== Instance 'a' Started ===" in text
    assert '❌ Service - timed_out' in text
    assert 'VM IP: 10.0.0.2' in text
