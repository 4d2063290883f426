"""Bastion session management through the `oci` CLI."""

from __future__ import annotations

import json
import subprocess
import time
from typing import Any, Dict, Optional

from ..errors import BastionSSHError, MalformedResponseError
from ..utils.logging import get_logger
from .models import SessionHandle, SessionMode, SessionRequest, SessionResult, SessionState

logger = get_logger(__name__)


class BastionCommandError(BastionSSHError):
    """Raised when an `oci` command fails."""

    def __init__(self, command: list[str], exit_code: int, stderr: str) -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"OCI command {' '.join(command)} failed with code {exit_code}: {stderr}")


class RemoteFailureError(BastionSSHError):
    """Raised when a session reaches a failed lifecycle state."""

    def __init__(self, session_id: str, lifecycle_state: str, reason: Optional[str]) -> None:
        self.session_id = session_id
        self.lifecycle_state = lifecycle_state
        self.reason = reason or "no details reported"
        super().__init__(f"Bastion session {session_id} is {lifecycle_state}: {self.reason}")


class SessionTimeoutError(BastionSSHError):
    """Raised when a configured wait timeout expires before the session settles."""

    def __init__(self, session_id: str, timeout: float) -> None:
        self.session_id = session_id
        self.timeout = timeout
        super().__init__(f"Bastion session {session_id} did not settle within {timeout:g}s")


class OciBastionClient:
    """Wraps `oci bastion session` commands: create, get and wait."""

    def __init__(self, oci_binary: str = "oci", profile: Optional[str] = None) -> None:
        self.oci_binary = oci_binary
        self.profile = profile

    def create_session(self, request: SessionRequest) -> SessionHandle:
        """Submit a new session and return without waiting for it."""
        args = [
            "bastion", "session",
            "create-managed-ssh" if request.mode is SessionMode.MANAGED_SSH else "create-port-forwarding",
            "--bastion-id", request.bastion_ocid,
            "--target-resource-id", request.target_resource_ocid,
            "--target-private-ip", request.target_ip,
        ]
        if request.mode is SessionMode.MANAGED_SSH:
            args += ["--target-os-username", str(request.target_user)]
        else:
            args += ["--target-port", str(request.target_port)]
        args += [
            "--session-ttl", str(request.ttl),
            "--ssh-public-key-file", request.public_key_file,
        ]

        data = self._data(self._run_json(args))
        session_id = data.get("id")
        if not session_id:
            # Work request output (--wait-for-state) nests the id under resources
            resources = data.get("resources") or []
            if resources and isinstance(resources[0], dict):
                session_id = resources[0].get("identifier")
        if not session_id:
            raise MalformedResponseError("Session creation response carries no session id")

        logger.info("Bastion %s session OCID=%s", request.mode.value, session_id)
        return SessionHandle(session_id=session_id)

    def get_session(self, handle: SessionHandle) -> SessionResult:
        data = self._data(
            self._run_json(["bastion", "session", "get", "--session-id", handle.session_id])
        )
        lifecycle_state = data.get("lifecycle-state") or "UNKNOWN"
        return SessionResult(
            session_id=data.get("id") or handle.session_id,
            state=SessionState.from_lifecycle(lifecycle_state),
            lifecycle_state=lifecycle_state,
            lifecycle_details=data.get("lifecycle-details"),
            metadata=data,
        )

    def await_ready(
        self,
        handle: SessionHandle,
        poll_interval: float,
        timeout: Optional[float] = None,
    ) -> SessionResult:
        """Poll until the session is ACTIVE or has failed.

        Args:
            handle: Session returned by `create_session`
            poll_interval: Seconds between status queries
            timeout: Optional upper bound in seconds. With None the loop only
                ends when the service reports a terminal state.

        Returns:
            The SUCCEEDED SessionResult, whose metadata holds the ssh command template

        Raises:
            RemoteFailureError: the session failed; it is not retried
            SessionTimeoutError: `timeout` elapsed first
        """
        start_time = time.monotonic()
        while True:
            result = self.get_session(handle)
            logger.debug("Session %s is %s", handle.session_id, result.lifecycle_state)
            if result.state is SessionState.SUCCEEDED:
                logger.info(
                    "Session %s became active after %.0fs",
                    handle.session_id,
                    time.monotonic() - start_time,
                )
                return result
            if result.state is SessionState.FAILED:
                raise RemoteFailureError(
                    handle.session_id, result.lifecycle_state, result.lifecycle_details
                )
            if timeout is not None and time.monotonic() - start_time >= timeout:
                raise SessionTimeoutError(handle.session_id, timeout)
            time.sleep(poll_interval)

    def _data(self, payload: Any) -> Dict[str, Any]:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise MalformedResponseError("OCI CLI output has no `data` object")
        return data

    def _run_json(self, args: list[str]) -> Any:
        output = self._run(args)
        try:
            return json.loads(output)
        except json.JSONDecodeError as exc:
            raise MalformedResponseError(f"OCI CLI returned invalid JSON: {exc}") from exc

    def _run(self, args: list[str]) -> str:
        command = [self.oci_binary] + args
        if self.profile:
            command += ["--profile", self.profile]
        logger.debug("Running %s", " ".join(command))
        process = subprocess.run(
            command,
            capture_output=True,
            text=True,
            check=False,
        )
        if process.returncode != 0:
            raise BastionCommandError(command, process.returncode, process.stderr.strip())
        return process.stdout
