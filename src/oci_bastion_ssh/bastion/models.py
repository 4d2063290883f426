"""Data models for bastion sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..config import MAX_SESSION_TTL


class SessionMode(str, Enum):
    """Kind of bastion session, decided by what the request targets."""

    MANAGED_SSH = "managed-ssh"
    PORT_FORWARDING = "port-forwarding"


class SessionState(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @classmethod
    def from_lifecycle(cls, lifecycle_state: Optional[str]) -> "SessionState":
        """Map an OCI lifecycle state (CREATING, ACTIVE, ...) onto the poll states."""
        state = (lifecycle_state or "").upper()
        if state == "ACTIVE":
            return cls.SUCCEEDED
        if state in ("FAILED", "DELETING", "DELETED"):
            return cls.FAILED
        return cls.PENDING

    @property
    def is_terminal(self) -> bool:
        return self is not SessionState.PENDING


@dataclass(frozen=True)
class SessionRequest:
    """Parameters of one bastion session, fixed once submitted."""

    bastion_ocid: str
    target_resource_ocid: str
    target_ip: str
    public_key_file: str
    target_user: Optional[str] = None
    target_port: Optional[int] = None
    ttl: int = MAX_SESSION_TTL
    poll_interval: float = 5.0

    def __post_init__(self) -> None:
        if (self.target_user is None) == (self.target_port is None):
            raise ValueError("Exactly one of target_user and target_port must be set")
        if self.target_port is not None and not 1 <= self.target_port <= 65535:
            raise ValueError(f"Invalid target port: {self.target_port}")
        if self.ttl < 1:
            raise ValueError("Session TTL must be positive")
        # 超过上限的 TTL 会被服务拒绝，这里直接截断
        if self.ttl > MAX_SESSION_TTL:
            object.__setattr__(self, "ttl", MAX_SESSION_TTL)

    @property
    def mode(self) -> SessionMode:
        if self.target_port is not None:
            return SessionMode.PORT_FORWARDING
        return SessionMode.MANAGED_SSH


@dataclass(frozen=True)
class SessionHandle:
    session_id: str


@dataclass
class SessionResult:
    """Snapshot of a session as reported by `oci bastion session get`."""

    session_id: str
    state: SessionState
    lifecycle_state: str
    lifecycle_details: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def ssh_command(self) -> Optional[str]:
        ssh_metadata = self.metadata.get("ssh-metadata") or {}
        return ssh_metadata.get("command")

    def to_payload(self) -> dict:
        target = self.metadata.get("target-resource-details") or {}
        return {
            "session_id": self.session_id,
            "state": self.lifecycle_state,
            "display_name": self.metadata.get("display-name"),
            "session_type": target.get("session-type"),
            "target_ip": target.get("target-resource-private-ip-address"),
            "target_port": target.get("target-resource-port"),
            "target_user": target.get("target-resource-operating-system-user-name"),
            "ttl": self.metadata.get("session-ttl-in-seconds"),
            "time_created": self.metadata.get("time-created"),
        }
