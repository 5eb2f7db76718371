"""VM driver interface and backend exports."""

from __future__ import annotations

from .driver import VMDriver, VMState, exec_checked
from .multipass import MultipassDriver

__all__ = ['MultipassDriver', 'VMDriver', 'VMState', 'exec_checked']
