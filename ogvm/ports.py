"""Advisory port conflict checks across stored instances."""

from __future__ import annotations

from loguru import logger

from .errors import PortConflictError
from .store import InstanceStore
from .vm.driver import VMDriver, VMState

log = logger


def check_port_available(
    port: int,
    excluding_name: str,
    *,
    store: InstanceStore,
    driver: VMDriver,
) -> None:
    """Raise :class:`PortConflictError` if a running instance holds ``port``.

    Only instances whose VM is observed as running conflict; stopped or
    missing owners leave the port free for reuse. Host sockets are not
    inspected, so an unrelated process bound to the port goes unnoticed.
    """
    port = int(port)
    for rec in store.list():
        if rec.port != port or rec.name == excluding_name:
            continue
        state = driver.status(rec.vm_name)
        log.debug(
            'Port {} also recorded for {} (vm={} state={})',
            port,
            rec.name,
            rec.vm_name,
            state.value,
        )
        if state is VMState.RUNNING:
            raise PortConflictError(port, rec.name)
