"""Top-level modal CLI wiring, argv normalization, and logging setup."""

from __future__ import annotations

import os
import sys

import scriptconfig as scfg
from loguru import logger

from ..config import load_or_default
from ..errors import ValidationError
from ._common import log
from .help import USAGE, HelpCLI
from .instance import (
    DestroyCLI,
    InfoCLI,
    ListCLI,
    LogsCLI,
    OpenCLI,
    ReindexCLI,
    ShellCLI,
    StartCLI,
    StatusCLI,
    StopCLI,
)

NAMED_COMMANDS = {
    'start',
    'stop',
    'destroy',
    'status',
    'info',
    'open',
    'reindex',
    'shell',
    'logs',
}

FLAG_SPELLINGS = {
    '--no-cache': '--no_cache',
    '-f': '--follow',
}


class OGVMModalCLI(scfg.ModalCLI):
    """Disposable multipass VMs running OpenGrok over a chosen codebase."""

    start = StartCLI
    stop = StopCLI
    destroy = DestroyCLI
    status = StatusCLI
    info = InfoCLI
    open = OpenCLI
    list = ListCLI
    reindex = ReindexCLI
    shell = ShellCLI
    logs = LogsCLI
    help = HelpCLI


def main(argv: list[str] | None = None) -> None:
    verbosity = 1
    if argv is None:
        argv = sys.argv[1:]
    argv = _normalize_argv(argv)
    config_value = _option_value(argv, '--config')
    try:
        verbosity = load_or_default(config_value).verbosity
    except Exception:
        verbosity = 1

    explicit_verbose = _count_verbose(argv)
    _setup_logging(explicit_verbose, verbosity)

    try:
        rc = OGVMModalCLI.main(argv=argv, _noexit=True)
    except ValidationError as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        print(USAGE, file=sys.stderr)
        sys.exit(1)
    except Exception as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.debug('Unhandled ogvm error: {!r}', ex)
        sys.exit(1)

    if any(flag in argv for flag in ('-h', '--help')):
        sys.exit(0)
    if isinstance(rc, int):
        sys.exit(rc)
    sys.exit(0)


def _setup_logging(args_verbose: int, cfg_verbosity: int) -> None:
    logger.remove()
    effective_verbosity = args_verbose if args_verbose > 0 else cfg_verbosity
    level = 'WARNING'
    if effective_verbosity == 1:
        level = 'INFO'
    elif effective_verbosity >= 2:
        level = 'DEBUG'
    colorize = sys.stderr.isatty() and os.getenv('NO_COLOR') is None
    logger.add(
        sys.stderr,
        level=level,
        colorize=colorize,
        format='<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>',
    )
    log.debug(
        'Logging configured at {} (effective_verbosity={}, colorize={})',
        level,
        effective_verbosity,
        colorize,
    )


def _normalize_argv(argv: list[str]) -> list[str]:
    """Map positional arguments and hyphenated flags onto scriptconfig options.

    ``start NAME [CODEBASE] ...`` becomes ``start --name NAME --codebase
    CODEBASE ...``; the other per-instance commands take ``NAME`` only.
    """
    if not argv or argv[0] in {'-h', '--help'}:
        return ['help']
    cmd, rest = argv[0], list(argv[1:])
    rest = [FLAG_SPELLINGS.get(item, item) for item in rest]
    if cmd not in NAMED_COMMANDS:
        return [cmd, *rest]
    out = [cmd]
    if rest and not rest[0].startswith('-'):
        out += ['--name', rest.pop(0)]
        if cmd == 'start' and rest and not rest[0].startswith('-'):
            out += ['--codebase', rest.pop(0)]
    return out + rest


def _option_value(argv: list[str], flag: str) -> str | None:
    if flag not in argv:
        return None
    try:
        return argv[argv.index(flag) + 1]
    except IndexError:
        return None


def _count_verbose(argv: list[str]) -> int:
    count = 0
    for item in argv:
        if item == '--verbose':
            count += 1
        elif item.startswith('-') and not item.startswith('--'):
            short = item[1:]
            if short and set(short) <= {'v'}:
                count += len(short)
    return count
