"""Well-known local paths used by ssh-oci-bastion.

- ~/.ssh/config                          # SSH client config receiving ProxyJump entries
- ~/.ssh/id_*.pub                        # public keys offered to the bastion
- ~/.config/oci-bastion-ssh/config.json  # optional JSON settings
"""

from pathlib import Path

SSH_DIR = Path("~/.ssh")
SSH_CONFIG_FILE = SSH_DIR / "config"
APP_CONFIG_FILE = Path("~/.config/oci-bastion-ssh/config.json")

# OCI Bastion historically accepts RSA keys only, so RSA is tried first
PUBLIC_KEY_NAMES = ("id_rsa.pub", "id_ecdsa.pub", "id_ed25519.pub")


def default_public_key_candidates() -> list[Path]:
    """Public key files in the order they are tried."""
    return [SSH_DIR / name for name in PUBLIC_KEY_NAMES]
