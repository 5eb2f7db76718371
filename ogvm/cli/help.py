"""CLI help text."""

from __future__ import annotations

import textwrap

from ._common import _BaseCommand

USAGE = textwrap.dedent(
    """
    Usage: ogvm <command> [options]

    Commands:
      start <name> [codebase]   Start or create an instance
      stop <name>               Stop instance (keeps VM)
      destroy <name>            Remove instance completely
      status <name>             Quick status check
      info <name>               Detailed instance info
      open <name>               Open in browser
      list                      List all instances
      reindex <name>            Reindex codebase
      shell <name>              Shell into VM
      logs <name> [--follow]    View logs
      help                      Show this help

    Start options:
      --memory 4G       VM memory (default: 4G)
      --disk 20G        VM disk size (default: 20G)
      --cpus 2          CPU cores (default: 2)
      --port 8080       OpenGrok port (default: 8080)
      --no-cache        Force fresh dependency download
      --ubuntu 24.04    Ubuntu version (default: 22.04)
      --depth 1         Git clone depth (for git repos)
      --branch main     Git branch (for git repos)

    Global options:
      --config PATH     Config TOML (default: $OGVM_CONFIG or user config dir)
      -v, -vv           More log output

    Examples:
      ogvm start my-test ~/code/project
      ogvm start demo
      ogvm start linux-test https://github.com/torvalds/linux --depth 1
      ogvm open my-test
      ogvm stop my-test
      ogvm destroy my-test
    """
).strip()


class HelpCLI(_BaseCommand):
    """Show command usage and examples."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        cls.cli(argv=argv, data=kwargs)
        print(USAGE)
        return 0
