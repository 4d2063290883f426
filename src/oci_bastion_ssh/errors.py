"""Exception hierarchy for ssh-oci-bastion."""

from __future__ import annotations


class BastionSSHError(RuntimeError):
    """Base class for every failure reported to the command line."""

    pass


class PrerequisiteMissingError(BastionSSHError):
    """Raised when a required tool, environment variable or key file is absent."""

    def __init__(self, missing: list[str], hint: str = "") -> None:
        self.missing = missing
        message = "Missing prerequisites: " + ", ".join(missing)
        if hint:
            message += f" ({hint})"
        super().__init__(message)


class MalformedResponseError(BastionSSHError):
    """Raised when service output does not have the expected structure."""

    pass


class ConfigWriteError(BastionSSHError):
    """Raised when the SSH client config file cannot be read or rewritten."""

    def __init__(self, path: str, error: Exception) -> None:
        self.path = path
        self.error = error
        super().__init__(f"Could not update {path}: {error}")
