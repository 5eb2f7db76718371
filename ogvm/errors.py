"""Project-specific exception types."""

from __future__ import annotations


class OGVMError(RuntimeError):
    """Base error for domain-level ogvm failures."""


class ValidationError(OGVMError):
    """Raised for malformed or missing command-line arguments."""


class LockTimeoutError(ValidationError):
    """Raised when another invocation holds the lock for an instance."""


class NotFoundError(OGVMError):
    """Raised when an operation requires an instance record that is absent."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Instance '{name}' not found. Run: ogvm list"
        )


class InvalidCodebaseError(OGVMError):
    """Raised when a codebase argument is neither a directory nor a repo URL."""

    def __init__(self, argument: str):
        self.argument = argument
        super().__init__(f'Codebase not found: {argument}')


class PortConflictError(OGVMError):
    """Raised when the requested port is held by another running instance."""

    def __init__(self, port: int, owner: str):
        self.port = port
        self.owner = owner
        super().__init__(
            f"Port {port} already used by running instance '{owner}'. "
            'Use --port to specify a different port.'
        )


class BackendError(OGVMError):
    """Raised when the virtualization backend or a guest command fails."""

    def __init__(self, op: str, output: str = ''):
        self.op = op
        self.output = output
        msg = f'{op} failed'
        if output.strip():
            msg += f': {output.strip()}'
        super().__init__(msg)


class ProvisionError(OGVMError):
    """Raised by the provisioning pipeline, naming the stage that failed."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f'Provisioning failed during {stage}: {cause}')


class NotRunningError(OGVMError):
    """Raised when an operation needs a running instance but the VM is not."""

    def __init__(self, name: str, state: str = ''):
        self.name = name
        self.state = state
        super().__init__(
            f"Instance '{name}' is not running. Start it with: ogvm start {name}"
        )
