"""Short-lived SSH access to OCI instances through the Bastion service."""

__version__ = "2.0.0"
