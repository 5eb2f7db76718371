"""CLI commands for the instance lifecycle and for reaching a running instance."""

from __future__ import annotations

import webbrowser

import scriptconfig as scfg

from ..provision import StartRequest
from ..readiness import WaitResult
from ..status import render_info, render_start_report, render_table
from ._common import (
    _BaseCommand,
    _NamedCommand,
    _build_manager,
    _load_cfg,
    _require_name,
    log,
)


class StartCLI(_NamedCommand):
    """Start an existing instance or create a new one."""

    codebase = scfg.Value(
        '',
        type=str,
        help='Local directory or git URL to index (positional; default: demo code).',
    )
    memory = scfg.Value(None, type=str, help='VM memory (default: 4G).')
    disk = scfg.Value(None, type=str, help='VM disk size (default: 20G).')
    cpus = scfg.Value(None, type=int, help='CPU cores (default: 2).')
    port = scfg.Value(None, type=int, help='OpenGrok port (default: 8080).')
    ubuntu = scfg.Value(None, type=str, help='Ubuntu version (default: 22.04).')
    no_cache = scfg.Value(
        False, isflag=True, help='Force a fresh dependency download.'
    )
    depth = scfg.Value(None, type=int, help='Git clone depth (git codebases).')
    branch = scfg.Value('', type=str, help='Git branch (git codebases).')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        name = _require_name(args.name, 'start <name> [codebase] [options]')
        cfg = _load_cfg(args.config)
        d = cfg.defaults
        request = StartRequest(
            name=name,
            codebase=args.codebase or '',
            memory=args.memory or d.memory,
            disk=args.disk or d.disk,
            cpus=args.cpus if args.cpus is not None else d.cpus,
            port=args.port if args.port is not None else d.port,
            ubuntu=args.ubuntu or d.ubuntu,
            no_cache=bool(args.no_cache),
            depth=args.depth,
            branch=args.branch or '',
        ).validate()
        mgr = _build_manager(cfg)
        report = mgr.start(request)
        print(render_start_report(report))
        if report.readiness not in (None, WaitResult.READY):
            log.warning(
                'OpenGrok may not be ready yet. Check logs with: ogvm logs {}', name
            )
        return 0


class StopCLI(_NamedCommand):
    """Stop an instance, keeping its VM for a quick restart."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        name = _require_name(args.name, 'stop <name>')
        mgr = _build_manager(_load_cfg(args.config))
        mgr.stop(name)
        print(f"Instance '{name}' stopped (VM preserved for quick restart)")
        return 0


class DestroyCLI(_NamedCommand):
    """Delete an instance's VM and its stored record."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        name = _require_name(args.name, 'destroy <name>')
        mgr = _build_manager(_load_cfg(args.config))
        mgr.destroy(name)
        print(f"Instance '{name}' destroyed")
        return 0


class StatusCLI(_NamedCommand):
    """Print running, stopped, unknown, or not found."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        name = _require_name(args.name, 'status <name>')
        mgr = _build_manager(_load_cfg(args.config))
        status = mgr.status(name)
        print(status)
        return 1 if status == 'not found' else 0


class InfoCLI(_NamedCommand):
    """Show stored configuration and live state of an instance."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        name = _require_name(args.name, 'info <name>')
        mgr = _build_manager(_load_cfg(args.config))
        print(render_info(mgr.info(name)))
        return 0


class OpenCLI(_NamedCommand):
    """Open the OpenGrok web UI of a running instance in a browser."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        name = _require_name(args.name, 'open <name>')
        mgr = _build_manager(_load_cfg(args.config))
        url = mgr.open_url(name)
        print(f'Opening {url} in browser...')
        if not webbrowser.open(url):
            print(f'Please open this URL manually: {url}')
        return 0


class ListCLI(_BaseCommand):
    """List all instances with live status, port, IP and codebase."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        mgr = _build_manager(_load_cfg(args.config))
        print(render_table(mgr.list()))
        return 0


class ReindexCLI(_NamedCommand):
    """Re-run the OpenGrok indexer inside a running instance."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        name = _require_name(args.name, 'reindex <name>')
        mgr = _build_manager(_load_cfg(args.config))
        mgr.reindex(name)
        print('Reindexing complete')
        return 0


class ShellCLI(_NamedCommand):
    """Open an interactive shell inside the instance VM."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        name = _require_name(args.name, 'shell <name>')
        mgr = _build_manager(_load_cfg(args.config))
        return mgr.shell(name)


class LogsCLI(_NamedCommand):
    """Show the OpenGrok web container journal of an instance."""

    follow = scfg.Value(False, isflag=True, help='Keep streaming new log lines (-f).')
    lines = scfg.Value(100, type=int, help='Number of trailing lines to show.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        name = _require_name(args.name, 'logs <name> [--follow]')
        mgr = _build_manager(_load_cfg(args.config))
        return mgr.logs(name, follow=bool(args.follow), lines=int(args.lines))
