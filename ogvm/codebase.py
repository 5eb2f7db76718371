"""Classify a codebase argument and materialize it inside an instance VM."""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from .demo import DEMO_PROJECT_NAME, write_demo_codebase
from .errors import InvalidCodebaseError, ValidationError
from .util import shell_join
from .vm.driver import VMDriver, exec_checked

log = logger

GIT_URL_RE = re.compile(r'^(https?://|git@|ssh://)')


@dataclass
class Codebase:
    type: str
    path: str
    project_name: str

    @property
    def is_local_tree(self) -> bool:
        return self.type in {'local', 'demo'}


def project_name_from_url(url: str) -> str:
    base = url.rstrip('/').rsplit('/', 1)[-1]
    base = base.rsplit(':', 1)[-1]
    if base.endswith('.git'):
        base = base[: -len('.git')]
    return base


def classify(argument: str | None) -> Codebase:
    """Resolve ``argument`` into a local, git or demo codebase.

    An empty argument selects the demo codebase; its tree is generated
    lazily by :func:`prepare`, not here.
    """
    arg = (argument or '').strip()
    if not arg:
        return Codebase('demo', '', DEMO_PROJECT_NAME)
    p = Path(arg).expanduser()
    if p.is_dir():
        resolved = p.resolve()
        return Codebase('local', str(resolved), resolved.name)
    if GIT_URL_RE.match(arg):
        name = project_name_from_url(arg)
        if not name:
            raise InvalidCodebaseError(arg)
        return Codebase('git', arg, name)
    raise InvalidCodebaseError(arg)


def prepare(codebase: Codebase) -> Codebase:
    """Generate the demo tree when needed; other codebases pass through."""
    if codebase.type != 'demo' or codebase.path:
        return codebase
    root = write_demo_codebase()
    log.info('No codebase specified, generated demo code in {}', root)
    return Codebase('demo', str(root), codebase.project_name)


def cleanup(codebase: Codebase) -> None:
    if codebase.type == 'demo' and codebase.path:
        shutil.rmtree(codebase.path, ignore_errors=True)
        log.debug('Removed demo tree {}', codebase.path)


def git_clone_command(
    url: str, dest: str, *, depth: int | str | None = None, branch: str = ''
) -> list[str]:
    cmd = ['git', 'clone']
    if depth not in (None, ''):
        try:
            depth_val = int(depth)
        except (TypeError, ValueError):
            raise ValidationError(f'--depth must be an integer, got {depth!r}') from None
        if depth_val <= 0:
            raise ValidationError('--depth must be a positive integer')
        cmd += ['--depth', str(depth_val)]
    if branch:
        cmd += ['--branch', branch]
    cmd += [url, dest]
    return cmd


def materialize(
    codebase: Codebase,
    driver: VMDriver,
    vm_name: str,
    guest_dir: str,
    *,
    depth: int | str | None = None,
    branch: str = '',
) -> None:
    """Place the codebase at ``guest_dir`` inside ``vm_name``."""
    if codebase.is_local_tree:
        if not codebase.path:
            raise ValidationError('Demo codebase was not prepared before transfer.')
        log.info('Transferring source code from {}', codebase.path)
        driver.transfer_tree(Path(codebase.path), vm_name, guest_dir)
        return
    cmd = git_clone_command(codebase.path, guest_dir, depth=depth, branch=branch)
    log.info('Cloning git repository {}', codebase.path)
    exec_checked(driver, vm_name, ['bash', '-c', shell_join(cmd)], op='git clone')
