"""Derive ssh connection parameters from bastion session metadata.

OCI returns an ssh command template per session, for example::

    ssh -i <privateKey> -N -L <localPort>:10.0.1.5:8080 -p 22 ocid1.bastionsession.oc1.iad.amaaaa...@host.bastion.us-ashburn-1.oci.oraclecloud.com

Managed SSH sessions wrap the same `session@relay` destination inside a
quoted `ProxyCommand`. Only the destination and, for tunnels, the
placeholders matter here.
"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from ..bastion.models import SessionMode
from ..errors import MalformedResponseError

PRIVATE_KEY_PLACEHOLDER = "<privateKey>"
LOCAL_PORT_PLACEHOLDER = "<localPort>"

# Commercial (oraclecloud.com), numbered sovereign (oraclecloud8.com) and government realms
RELAY_DOMAIN_PATTERN = r"(?:oraclecloud\d*\.com|oraclegovcloud\.com|oraclegovcloud\.uk)"

DESTINATION_PATTERN = re.compile(
    r"(?P<session_id>ocid1\.bastionsession\.[^\s\"']+?)"
    r"@(?P<relay_host>host\.bastion\.[A-Za-z0-9.-]+?\." + RELAY_DOMAIN_PATTERN + r")"
)
_PRIVATE_KEY_OPTION = re.compile(r"(?:-i\s+)?" + re.escape(PRIVATE_KEY_PLACEHOLDER) + r"\s*")


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Connection data of an active session."""

    session_id: str
    relay_host: str
    local_binding: Optional[str] = None
    command: Optional[str] = None
    identity_file: Optional[str] = None

    @property
    def destination(self) -> str:
        """`session@relay` form used as the ProxyJump value."""
        return f"{self.session_id}@{self.relay_host}"

    def argv(self) -> list[str]:
        if not self.command:
            raise ValueError("Descriptor has no command to run")
        return shlex.split(self.command)


def extract_destination(template: str) -> tuple[str, str]:
    """Return (session_id, relay_host) found anywhere in `template`."""
    match = DESTINATION_PATTERN.search(template or "")
    if not match:
        raise MalformedResponseError(
            f"No bastion session destination found in connection template: {template!r}"
        )
    return match.group("session_id"), match.group("relay_host")


def substitute_placeholders(template: str, local_port: int, identity_file: Optional[str] = None) -> str:
    """Fill in the private key and bind the local port to localhost.

    Without `identity_file` the key option is dropped and ssh falls back to
    ssh-agent or its default identity files.
    """
    if LOCAL_PORT_PLACEHOLDER not in template:
        raise MalformedResponseError(
            f"Connection template has no {LOCAL_PORT_PLACEHOLDER} placeholder: {template!r}"
        )
    key_option = f"-i {shlex.quote(identity_file)} " if identity_file else ""
    command = _PRIVATE_KEY_OPTION.sub(lambda _match: key_option, template)
    return command.replace(LOCAL_PORT_PLACEHOLDER, f"localhost:{local_port}").strip()


def derive_descriptor(
    metadata: Union[str, Mapping[str, Any]],
    mode: SessionMode,
    local_port: Optional[int] = None,
    identity_file: Optional[str] = None,
) -> ConnectionDescriptor:
    """Build a ConnectionDescriptor from session data or a bare command template."""
    if isinstance(metadata, str):
        template = metadata
    else:
        ssh_metadata = metadata.get("ssh-metadata") or {}
        template = ssh_metadata.get("command") if isinstance(ssh_metadata, Mapping) else None
        if not template:
            raise MalformedResponseError("Session metadata has no ssh command template")

    session_id, relay_host = extract_destination(template)
    if mode is SessionMode.MANAGED_SSH:
        return ConnectionDescriptor(session_id=session_id, relay_host=relay_host, identity_file=identity_file)

    if local_port is None:
        raise ValueError("Tunnel descriptors need a local port")
    return ConnectionDescriptor(
        session_id=session_id,
        relay_host=relay_host,
        local_binding=f"localhost:{local_port}",
        command=substitute_placeholders(template, local_port, identity_file),
        identity_file=identity_file,
    )
