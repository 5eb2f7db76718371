from __future__ import annotations

import scriptconfig as scfg
from loguru import logger

from ..config import OGVMConfig, load_or_default
from ..errors import ValidationError
from ..instances import InstanceManager
from ..store import validate_name

log = logger


class _BaseCommand(scfg.DataConfig):
    """Base options shared by all commands."""

    config = scfg.Value(
        None,
        type=str,
        help='Path to config TOML (default: $OGVM_CONFIG or the user config dir).',
    )
    verbose = scfg.Value(
        0,
        short_alias=['v'],
        isflag='counter',
        help='Increase verbosity (-v, -vv).',
    )


class _NamedCommand(_BaseCommand):
    """Options for commands that act on one named instance."""

    name = scfg.Value('', type=str, help='Instance name (positional).')


def _load_cfg(config_path: str | None) -> OGVMConfig:
    return load_or_default(config_path)


def _require_name(name: str | None, usage: str) -> str:
    if not (name or '').strip():
        raise ValidationError(f'Usage: ogvm {usage}')
    return validate_name(str(name))


def _build_manager(cfg: OGVMConfig) -> InstanceManager:
    mgr = InstanceManager.from_config(cfg)
    mgr.driver.check_available()
    return mgr


__all__ = [name for name in globals() if not name.startswith('__')]
