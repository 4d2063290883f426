"""High-level session orchestration: login and tunnel flows."""

from __future__ import annotations

import time
from typing import Optional

from rich.console import Console
from rich.table import Table

from .bastion import OciBastionClient, SessionMode, SessionRequest, SessionResult
from .config import AppConfig
from .ssh import ConnectionDescriptor, SSHRunner, derive_descriptor, private_key_for
from .sshconfig import effective_proxy_jump, upsert
from .utils.logging import get_logger

logger = get_logger(__name__)

PROXY_JUMP_KEY = "ProxyJump"
IDENTITY_FILE_KEY = "IdentityFile"


def build_request(
    config: AppConfig,
    public_key_file: str,
    *,
    target_user: Optional[str] = None,
    target_port: Optional[int] = None,
) -> SessionRequest:
    """Capture validated configuration and CLI values in a SessionRequest."""
    assert config.oci.bastion_ocid is not None
    assert config.oci.instance_ocid is not None
    assert config.oci.instance_ip is not None
    return SessionRequest(
        bastion_ocid=config.oci.bastion_ocid,
        target_resource_ocid=config.oci.instance_ocid,
        target_ip=config.oci.instance_ip,
        public_key_file=public_key_file,
        target_user=target_user,
        target_port=target_port,
        ttl=config.session.ttl,
        poll_interval=config.session.poll_interval,
    )


class BastionWorkflow:
    """Coordinates session creation, SSH config updates and the ssh process."""

    def __init__(
        self,
        config: AppConfig,
        client: Optional[OciBastionClient] = None,
        runner: Optional[SSHRunner] = None,
        console: Optional[Console] = None,
    ) -> None:
        self.config = config
        self.client = client or OciBastionClient(config.oci.cli_binary, config.oci.profile)
        self.runner = runner or SSHRunner(config.ssh.ssh_binary)
        self.console = console or Console()

    def run_login(self, request: SessionRequest, skip_ssh: bool = False) -> int:
        """Create a managed SSH session, configure ProxyJump and (optionally) ssh in."""
        if request.mode is not SessionMode.MANAGED_SSH:
            raise ValueError("Login needs a request with a target user")

        logger.info("Creating a bastion session: this can take up to 1m:20s to succeed...")
        result = self._open_session(request)
        descriptor = self._derive(result, request, SessionMode.MANAGED_SSH)
        self.configure_proxy_jump(request.target_ip, descriptor)

        if skip_ssh:
            return 0
        self._settle()

        logger.info("SSH to the target instance via a jump host")
        assert request.target_user is not None
        return self.runner.login(request.target_user, request.target_ip)

    def run_tunnel(self, request: SessionRequest, local_port: Optional[int] = None) -> int:
        """Create a port-forwarding session and block in the tunnel process."""
        if request.mode is not SessionMode.PORT_FORWARDING:
            raise ValueError("Tunnel needs a request with a target port")
        port = local_port or request.target_port

        logger.info(
            "Creating a port forwarding tunnel for the port %s: this can take up to 20s to succeed...",
            request.target_port,
        )
        result = self._open_session(request)
        descriptor = self._derive(result, request, SessionMode.PORT_FORWARDING, local_port=port)
        self._settle()

        logger.info("Launching an SSH tunnel on %s", descriptor.local_binding)
        return self.runner.tunnel(descriptor.argv())

    def configure_proxy_jump(self, host: str, descriptor: ConnectionDescriptor) -> None:
        """Point `Host <host>` at the bastion session so any ssh/sftp client can use it.

        When the session key has a private half next to it, both the target
        and the relay host get an `IdentityFile` entry so each hop offers it.
        """
        config_file = self.config.ssh.config_file
        header = f"Host {host}"
        upsert(config_file, header)
        upsert(
            config_file,
            PROXY_JUMP_KEY,
            f"  {PROXY_JUMP_KEY} {descriptor.destination}",
            block=header,
        )
        if descriptor.identity_file:
            identity = _config_value(descriptor.identity_file)
            relay_header = f"Host {descriptor.relay_host}"
            upsert(config_file, IDENTITY_FILE_KEY, f"  {IDENTITY_FILE_KEY} {identity}", block=header)
            upsert(config_file, relay_header)
            upsert(config_file, IDENTITY_FILE_KEY, f"  {IDENTITY_FILE_KEY} {identity}", block=relay_header)
        self._check_precedence(host, descriptor.destination)

    def _open_session(self, request: SessionRequest) -> SessionResult:
        handle = self.client.create_session(request)
        result = self.client.await_ready(
            handle,
            poll_interval=request.poll_interval,
            timeout=self.config.session.wait_timeout,
        )
        self._show_session(result)
        return result

    def _derive(
        self,
        result: SessionResult,
        request: SessionRequest,
        mode: SessionMode,
        local_port: Optional[int] = None,
    ) -> ConnectionDescriptor:
        private_key = private_key_for(request.public_key_file)
        descriptor = derive_descriptor(
            result.metadata,
            mode,
            local_port=local_port,
            identity_file=str(private_key) if private_key else None,
        )
        if self.config.oci.region and descriptor.relay_host != self.config.oci.bastion_host:
            logger.warning(
                "Session relay %s differs from the expected %s",
                descriptor.relay_host,
                self.config.oci.bastion_host,
            )
        return descriptor

    def _check_precedence(self, host: str, destination: str) -> None:
        try:
            effective = effective_proxy_jump(self.config.ssh.config_file, host)
        except Exception as exc:
            logger.warning("Could not verify the effective ProxyJump for %s: %s", host, exc)
            return
        if effective != destination:
            logger.warning(
                "An earlier entry in %s wins for %s (ProxyJump %s); move it below `Host %s`",
                self.config.ssh.config_file,
                host,
                effective,
                host,
            )

    def _settle(self) -> None:
        delay = self.config.session.settle_delay
        if delay > 0:
            logger.info("Waiting %gs for the session key to propagate", delay)
            time.sleep(delay)

    def _show_session(self, result: SessionResult) -> None:
        table = Table(title="Bastion session", show_header=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for name, value in result.to_payload().items():
            if value is not None:
                table.add_row(name, str(value))
        self.console.print(table)


def _config_value(value: str) -> str:
    # ssh_config splits arguments on whitespace unless they are double-quoted
    return f'"{value}"' if any(ch.isspace() for ch in value) else value
