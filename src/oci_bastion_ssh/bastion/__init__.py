"""OCI Bastion session helpers."""

from .client import BastionCommandError, OciBastionClient, RemoteFailureError, SessionTimeoutError
from .models import SessionHandle, SessionMode, SessionRequest, SessionResult, SessionState

__all__ = [
    "BastionCommandError",
    "OciBastionClient",
    "RemoteFailureError",
    "SessionTimeoutError",
    "SessionHandle",
    "SessionMode",
    "SessionRequest",
    "SessionResult",
    "SessionState",
]
