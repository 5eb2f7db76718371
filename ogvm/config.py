"""Tool configuration: defaults for new instances, host paths, and guest layout."""

from __future__ import annotations

import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path

import ubelt as ub

from .util import expand

CONFIG_ENV_VAR = 'OGVM_CONFIG'
VM_NAME_PREFIX = 'opengrok-test-'


@dataclass
class DefaultsConfig:
    memory: str = '4G'
    disk: str = '20G'
    cpus: int = 2
    port: int = 8080
    ubuntu: str = '22.04'


@dataclass
class PathsConfig:
    state_dir: str = '~/.opengrok-test-instances'
    cache_dir: str = '~/.opengrok-test-cache'
    scripts_dir: str = 'scripts'


@dataclass
class GuestConfig:
    scripts_dir: str = '/home/ubuntu/scripts'
    deps_dir: str = '/tmp/opengrok-deps'
    source_dir: str = '/tmp/source-code'
    mount_point: str = '/mnt/source'


@dataclass
class InstallConfig:
    installer_script: str = 'install-opengrok.sh'
    downloader_script: str = 'download-dependencies.sh'
    indexer_memory_mb: int = 2048
    service_unit: str = 'tomcat'


@dataclass
class ReadinessConfig:
    max_attempts: int = 60
    interval_s: float = 2.0
    url_path: str = '/source'


@dataclass
class OGVMConfig:
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    guest: GuestConfig = field(default_factory=GuestConfig)
    install: InstallConfig = field(default_factory=InstallConfig)
    readiness: ReadinessConfig = field(default_factory=ReadinessConfig)
    verbosity: int = 1

    def expanded_paths(self) -> 'OGVMConfig':
        self.paths.state_dir = expand(self.paths.state_dir)
        self.paths.cache_dir = expand(self.paths.cache_dir)
        self.paths.scripts_dir = str(
            Path(expand(self.paths.scripts_dir)).absolute()
        )
        return self


_SECTIONS = ('defaults', 'paths', 'guest', 'install', 'readiness')


def vm_name_for(name: str) -> str:
    return f'{VM_NAME_PREFIX}{name}'


def default_config_path() -> Path:
    env = os.environ.get(CONFIG_ENV_VAR, '').strip()
    if env:
        return Path(expand(env))
    return Path(ub.Path.appdir('ogvm', type='config')) / 'config.toml'


def _toml_escape(s: str) -> str:
    return s.replace('\\', '\\\\').replace('"', '\\"')


def dump_toml(cfg: OGVMConfig) -> str:
    d = asdict(cfg)
    lines: list[str] = []
    for section, body in d.items():
        if isinstance(body, dict):
            lines.append(f'[{section}]')
            for k, v in body.items():
                if isinstance(v, bool):
                    lines.append(f'{k} = {"true" if v else "false"}')
                elif isinstance(v, (int, float)):
                    lines.append(f'{k} = {v}')
                else:
                    lines.append(f'{k} = "{_toml_escape(str(v))}"')
            lines.append('')
        elif section == 'verbosity' and body != 1:
            lines.append(f'{section} = {body}')
            lines.append('')
    return '\n'.join(lines).rstrip() + '\n'


def load(path: Path) -> OGVMConfig:
    raw = tomllib.loads(path.read_text(encoding='utf-8'))
    cfg = OGVMConfig()
    for section in _SECTIONS:
        if section in raw and isinstance(raw[section], dict):
            obj = getattr(cfg, section)
            for k, v in raw[section].items():
                if hasattr(obj, k):
                    setattr(obj, k, v)
    if 'verbosity' in raw:
        cfg.verbosity = int(raw['verbosity'])
    return cfg


def load_or_default(path: str | Path | None = None) -> OGVMConfig:
    """Load the config at ``path`` (or the default location) if it exists."""
    fpath = Path(expand(str(path))) if path else default_config_path()
    if path and not fpath.exists():
        raise FileNotFoundError(f'Config not found: {fpath}')
    cfg = load(fpath) if fpath.exists() else OGVMConfig()
    return cfg.expanded_paths()


def save(path: Path, cfg: OGVMConfig) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_toml(cfg), encoding='utf-8')
