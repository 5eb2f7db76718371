"""Commands run inside the guest to install and maintain the OpenGrok service."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from loguru import logger

from .config import OGVMConfig
from .errors import BackendError
from .vm.driver import VMDriver, exec_checked

log = logger

OPENGROK_JAR = '/opt/opengrok/lib/opengrok.jar'
CTAGS_BIN = '/usr/local/bin/ctags'
DATA_ROOT = '/var/opengrok'


class Installer(Protocol):
    def push_scripts(self, driver: VMDriver, vm_name: str) -> None: ...

    def install(
        self, driver: VMDriver, vm_name: str, *, port: int, project_name: str
    ) -> None: ...


@dataclass
class ScriptInstaller:
    """Run ``install-opengrok.sh`` in the guest with the fixed flag set."""

    scripts_dir: Path
    guest_scripts_dir: str = '/home/ubuntu/scripts'
    deps_dir: str = '/tmp/opengrok-deps'
    source_dir: str = '/tmp/source-code'
    script_name: str = 'install-opengrok.sh'
    downloader_name: str = 'download-dependencies.sh'
    indexer_memory_mb: int = 2048

    @classmethod
    def from_config(cls, cfg: OGVMConfig) -> 'ScriptInstaller':
        return cls(
            scripts_dir=Path(cfg.paths.scripts_dir),
            guest_scripts_dir=cfg.guest.scripts_dir,
            deps_dir=cfg.guest.deps_dir,
            source_dir=cfg.guest.source_dir,
            script_name=cfg.install.installer_script,
            downloader_name=cfg.install.downloader_script,
            indexer_memory_mb=int(cfg.install.indexer_memory_mb),
        )

    @property
    def guest_script(self) -> str:
        return posixpath.join(self.guest_scripts_dir, self.script_name)

    def script_files(self) -> list[Path]:
        return [
            self.scripts_dir / self.downloader_name,
            self.scripts_dir / self.script_name,
        ]

    def push_scripts(self, driver: VMDriver, vm_name: str) -> None:
        exec_checked(
            driver, vm_name, ['mkdir', '-p', self.guest_scripts_dir], op='transfer'
        )
        for fpath in self.script_files():
            if not fpath.is_file():
                raise BackendError('transfer', f'Installation script not found: {fpath}')
            driver.transfer_file(fpath, vm_name, self.guest_scripts_dir + '/')

    def command(self, *, port: int, project_name: str) -> list[str]:
        return [
            'sudo',
            'bash',
            self.guest_script,
            '-y',
            '--indexer-memory',
            str(self.indexer_memory_mb),
            '--port',
            str(port),
            '--project-name',
            project_name,
            self.deps_dir,
            self.source_dir,
        ]

    def install(
        self, driver: VMDriver, vm_name: str, *, port: int, project_name: str
    ) -> None:
        log.info('Installing OpenGrok in {} (project={})', vm_name, project_name)
        res = driver.exec(
            vm_name, self.command(port=port, project_name=project_name), capture=False
        )
        if res.code != 0:
            raise BackendError('install', res.output or f'exit code {res.code}')


def reindex_command(indexer_memory_mb: int = 2048) -> list[str]:
    return [
        'sudo',
        'java',
        f'-Xmx{int(indexer_memory_mb)}m',
        '-jar',
        OPENGROK_JAR,
        '-c',
        CTAGS_BIN,
        '-s',
        f'{DATA_ROOT}/src',
        '-d',
        f'{DATA_ROOT}/data',
        '-H',
        '-P',
        '-S',
        '-G',
        '-W',
        f'{DATA_ROOT}/etc/configuration.xml',
    ]


def logs_command(unit: str = 'tomcat', *, lines: int = 100, follow: bool = False) -> list[str]:
    cmd = ['sudo', 'journalctl', '-u', unit, '-n', str(int(lines))]
    if follow:
        cmd.append('-f')
    return cmd
