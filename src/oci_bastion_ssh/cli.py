"""Command-line interface for ssh-oci-bastion."""

from __future__ import annotations

import argparse
import getpass
import os
import socket
import sys
from typing import Optional

from .config import AppConfig, load_config
from .errors import BastionSSHError
from .prerequisites import check_tools
from .ssh import find_public_key
from .utils.logging import get_logger, set_level
from .workflow import BastionWorkflow, build_request

logger = get_logger(__name__)

DESCRIPTION = (
    "Configure and ssh or create a tunnel to an Oracle Cloud Infrastructure host via the bastion."
)

EPILOG = """\
modes:
  HOST_USER        create a bastion session on the OCI host with the maximum
                   possible duration (3 h), add or update the host-specific
                   `ProxyJump` directive in the SSH config so that SSH/SFTP in
                   all clients work for the session duration, then ssh as
                   HOST_USER (unless -n is given)
  -p PORT          create a port-forwarding tunnel from localhost:PORT to the
                   same port on the OCI host; runs until the session expires
                   or the process is terminated

environment:
  OCI_INSTANCE_IP      OCI host instance IP, e.g. 10.0.1.xxx
  OCI_INSTANCE_OCID    OCI host instance OCID, e.g. ocid1.instance.oc1.iad.xxx
  OCI_BASTION_OCID     OCI bastion OCID, e.g. ocid1.bastion.oc1.iad.xxx
  OCI_BASTION_REGION   OCI bastion region, e.g. us-ashburn-1

limitations:
  The private host IP is matched as a substring of `Host` lines in the SSH config.
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ssh-oci-bastion",
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "host_user",
        nargs="?",
        default=None,
        help="OS user on the OCI host (managed SSH session mode)",
    )
    parser.add_argument(
        "-p", "--port",
        type=int,
        default=None,
        metavar="PORT",
        help="Forward localhost:PORT to the same port on the OCI host",
    )
    parser.add_argument(
        "-n", "--no-ssh",
        action="store_true",
        help="Configure everything, but do not ssh",
    )
    parser.add_argument("--profile", default=None, help="OCI CLI config profile")
    parser.add_argument(
        "--ssh-config", default=None, help="SSH client config file to update (default: ~/.ssh/config)"
    )
    parser.add_argument(
        "--public-key", default=None, help="Public key file offered to the bastion"
    )
    parser.add_argument(
        "--config", type=str, default=None, help="Path to a JSON config file overriding defaults."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _build_config(args: argparse.Namespace) -> AppConfig:
    config = load_config(args.config)
    if args.profile:
        config.oci.profile = args.profile
    if args.ssh_config:
        config.ssh.config_file = args.ssh_config
    if args.public_key:
        config.ssh.public_key = args.public_key
    if args.verbose:
        config.log_level = "DEBUG"
    return config


def _whoami() -> str:
    # The login name might not be available inside Docker containers
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = str(os.getuid()) if hasattr(os, "getuid") else "unknown"
    return f"{user}@{socket.gethostname()}"


def dispatch_command(args: argparse.Namespace) -> int:
    config = _build_config(args)
    set_level(config.log_level)
    logger.info("ssh-oci-bastion: running under %s in %s", _whoami(), os.getcwd())

    check_tools([config.oci.cli_binary, config.ssh.ssh_binary])
    config.validate()
    public_key = find_public_key(config.ssh.public_key)
    logger.info("Using %s public key %s", public_key.key_type, public_key.path)

    workflow = BastionWorkflow(config)
    if args.port is not None:
        request = build_request(config, str(public_key.path), target_port=args.port)
        return workflow.run_tunnel(request)

    request = build_request(config, str(public_key.path), target_user=args.host_user)
    return workflow.run_login(request, skip_ssh=args.no_ssh)


def run_cli(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.port is not None and args.host_user:
        parser.error("HOST_USER and -p/--port are mutually exclusive")
    if args.port is None and not args.host_user:
        parser.print_help(sys.stderr)
        return 1

    try:
        return dispatch_command(args)
    except BastionSSHError as exc:
        logger.error("%s", exc)
        return 1
    except (ValueError, FileNotFoundError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1
