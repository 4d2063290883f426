"""Configuration loading utilities for ssh-oci-bastion."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .errors import PrerequisiteMissingError
from .paths import APP_CONFIG_FILE, SSH_CONFIG_FILE

# Load .env file if it exists
load_dotenv()

MAX_SESSION_TTL = 3 * 60 * 60

# Environment variable -> OciConfig attribute
REQUIRED_ENV_VARS = {
    "OCI_INSTANCE_IP": "instance_ip",
    "OCI_INSTANCE_OCID": "instance_ocid",
    "OCI_BASTION_OCID": "bastion_ocid",
    "OCI_BASTION_REGION": "region",
}


@dataclass
class OciConfig:
    """Identifiers of the bastion and the private instance behind it."""

    instance_ip: Optional[str] = None
    instance_ocid: Optional[str] = None
    bastion_ocid: Optional[str] = None
    region: Optional[str] = None
    profile: Optional[str] = None  # OCI CLI config profile
    cli_binary: str = "oci"

    @property
    def bastion_host(self) -> str:
        return f"host.bastion.{self.region}.oci.oraclecloud.com"


@dataclass
class SessionConfig:
    """Timing of bastion sessions."""

    ttl: int = MAX_SESSION_TTL
    poll_interval: float = 5.0
    # `Permission denied (publickey)` shows up when ssh runs right after the session turns active
    settle_delay: float = 5.0
    wait_timeout: Optional[float] = None  # None: wait as long as the service takes


@dataclass
class SSHClientConfig:
    """Local SSH client settings."""

    config_file: str = str(SSH_CONFIG_FILE)
    public_key: Optional[str] = None
    ssh_binary: str = "ssh"


@dataclass
class AppConfig:
    """Top-level configuration."""

    oci: OciConfig = field(default_factory=OciConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    ssh: SSHClientConfig = field(default_factory=SSHClientConfig)
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AppConfig":
        def _section(name: str) -> Dict[str, Any]:
            # 忽略 "_comment" 之类的注释键
            section = payload.get(name, {}) or {}
            return {k: v for k, v in section.items() if not k.startswith("_")}

        oci_payload = _section("oci")
        session_payload = _section("session")
        ssh_payload = _section("ssh")

        return cls(
            oci=OciConfig(**{**OciConfig().__dict__, **oci_payload}),
            session=SessionConfig(**{**SessionConfig().__dict__, **session_payload}),
            ssh=SSHClientConfig(**{**SSHClientConfig().__dict__, **ssh_payload}),
            log_level=payload.get("log_level", "INFO"),
        )

    def validate(self) -> None:
        """Raise if a value required before talking to OCI is missing."""
        missing = [
            env_name
            for env_name, attr in REQUIRED_ENV_VARS.items()
            if not getattr(self.oci, attr)
        ]
        if missing:
            raise PrerequisiteMissingError(missing, hint="define these environment variables")
        if not 0 < self.session.ttl <= MAX_SESSION_TTL:
            raise ValueError(f"Session TTL must be between 1 and {MAX_SESSION_TTL} seconds")
        if self.session.poll_interval < 0 or self.session.settle_delay < 0:
            raise ValueError("Poll interval and settle delay must not be negative")


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load configuration from `path` or the default location.

    The JSON file is optional unless `path` is given explicitly.

    Environment variables (higher priority than config file):
    - OCI_INSTANCE_IP: private IP of the target instance
    - OCI_INSTANCE_OCID: OCID of the target instance
    - OCI_BASTION_OCID: OCID of the bastion
    - OCI_BASTION_REGION: region of the bastion, e.g. us-ashburn-1
    - OCI_CLI_PROFILE: profile in the OCI CLI config file
    - OCI_BASTION_PUBLIC_KEY: public key offered to the bastion
    - OCI_BASTION_SSH_CONFIG: SSH client config file to update
    - OCI_BASTION_LOG_LEVEL: logging level name
    """
    data: Dict[str, Any] = {}
    if path:
        candidate = Path(path).expanduser()
        if not candidate.is_file():
            raise FileNotFoundError(f"Could not find configuration file: {candidate}")
    else:
        candidate = APP_CONFIG_FILE.expanduser()
    if candidate.is_file():
        with candidate.open("r", encoding="utf-8") as handle:
            data = json.load(handle)

    config = AppConfig.from_dict(data)

    for env_name, attr in REQUIRED_ENV_VARS.items():
        value = os.getenv(env_name)
        if value:
            setattr(config.oci, attr, value)

    env_profile = os.getenv("OCI_CLI_PROFILE")
    if env_profile:
        config.oci.profile = env_profile

    env_public_key = os.getenv("OCI_BASTION_PUBLIC_KEY")
    if env_public_key:
        config.ssh.public_key = env_public_key

    env_ssh_config = os.getenv("OCI_BASTION_SSH_CONFIG")
    if env_ssh_config:
        config.ssh.config_file = env_ssh_config

    env_log_level = os.getenv("OCI_BASTION_LOG_LEVEL")
    if env_log_level:
        config.log_level = env_log_level

    return config
