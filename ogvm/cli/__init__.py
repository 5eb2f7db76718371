"""CLI package exports for top-level command entry points."""

from __future__ import annotations

from .main import OGVMModalCLI, main

__all__ = ['OGVMModalCLI', 'main']
