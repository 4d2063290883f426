"""SSH utilities for ssh-oci-bastion."""

from .connection import ConnectionDescriptor, derive_descriptor, extract_destination, substitute_placeholders
from .keys import PublicKeyInfo, find_public_key, private_key_for
from .runner import SSHRunner

__all__ = [
    "ConnectionDescriptor",
    "derive_descriptor",
    "extract_destination",
    "substitute_placeholders",
    "PublicKeyInfo",
    "find_public_key",
    "private_key_for",
    "SSHRunner",
]
