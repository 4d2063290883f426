"""Local ssh process invocation."""

from __future__ import annotations

import subprocess
from typing import Sequence

from ..utils.logging import get_logger

logger = get_logger(__name__)

EXIT_INTERRUPTED = 130


class SSHRunner:
    """Runs the `ssh` binary in the foreground, attached to the terminal."""

    def __init__(self, ssh_binary: str = "ssh") -> None:
        self.ssh_binary = ssh_binary

    def login(self, user: str, host: str) -> int:
        """Open an interactive shell; ProxyJump comes from the SSH config."""
        return self._run([self.ssh_binary, f"{user}@{host}"])

    def tunnel(self, argv: Sequence[str]) -> int:
        """Run a port-forwarding command until the session expires or Ctrl+C."""
        command = list(argv)
        if command and command[0] == "ssh":
            command[0] = self.ssh_binary
        try:
            return self._run(command)
        except KeyboardInterrupt:
            logger.info("Tunnel terminated by user")
            return EXIT_INTERRUPTED

    def _run(self, command: list[str]) -> int:
        logger.info("+ %s", " ".join(command))
        process = subprocess.run(command, check=False)
        return process.returncode
