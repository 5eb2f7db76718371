"""Rendering of instance details, listings and start outcomes."""

from __future__ import annotations

from typing import Sequence

from .instances import InstanceInfo
from .provision import ProvisionReport
from .readiness import WaitResult

LIST_COLUMNS = ('NAME', 'STATUS', 'PORT', 'IP', 'CODEBASE')
_ROW_FMT = '{:<20} {:<10} {:<6} {:<15} {}'


def status_line(ok: bool | None, label: str, detail: str = '') -> str:
    icon = '✅' if ok is True else ('➖' if ok is None else '❌')
    suffix = f' - {detail}' if detail else ''
    return f'{icon} {label}{suffix}'


def render_info(info: InstanceInfo) -> str:
    rec = info.record
    lines = [
        f'Instance: {rec.name}',
        f'Status: {info.status}',
        f'VM Name: {rec.vm_name}',
        f'URL: {info.url}',
        f'IP: {info.ip or "N/A"}',
        f'Port: {rec.port}',
        f'Codebase: {rec.codebase_path} ({rec.codebase_type})',
        f'Resources: {rec.memory} RAM, {rec.disk} disk, {rec.cpus} CPUs',
        f'Ubuntu: {rec.ubuntu_version}',
        f'Created: {rec.created}',
    ]
    if rec.codebase_type == 'git':
        lines.append(
            f'Git: depth={rec.git_depth or "full"} branch={rec.git_branch or "(default)"}'
        )
    return '\n'.join(lines)


def render_table(infos: Sequence[InstanceInfo]) -> str:
    lines = [
        _ROW_FMT.format(*LIST_COLUMNS),
        _ROW_FMT.format(*('-' * len(c) for c in LIST_COLUMNS)),
    ]
    for info in infos:
        rec = info.record
        lines.append(
            _ROW_FMT.format(
                rec.name,
                info.status,
                rec.port,
                info.ip or 'N/A',
                rec.codebase_path,
            )
        )
    return '\n'.join(lines)


def render_start_report(report: ProvisionReport) -> str:
    if report.readiness is WaitResult.READY or report.readiness is None:
        header = f"=== Instance '{report.name}' Ready ==="
    else:
        header = f"=== Instance '{report.name}' Started ==="
    lines = [
        header,
        status_line(report.provisioned or None, 'Provisioned', report.vm_name),
        status_line(
            _readiness_ok(report.readiness),
            'Service',
            report.readiness.value if report.readiness else 'not probed',
        ),
        f'OpenGrok URL: {report.url}',
        f'VM IP: {report.ip or "N/A"}',
    ]
    return '\n'.join(lines)


def _readiness_ok(result: WaitResult | None) -> bool | None:
    if result is None:
        return None
    return result is WaitResult.READY
