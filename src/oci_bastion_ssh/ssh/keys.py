"""Public key discovery."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Union

import paramiko

from ..errors import PrerequisiteMissingError
from ..paths import default_public_key_candidates


@dataclass
class PublicKeyInfo:
    path: Path
    key_type: str
    comment: Optional[str] = None


def find_public_key(
    explicit: Optional[str] = None,
    candidates: Optional[Iterable[Path]] = None,
) -> PublicKeyInfo:
    """Return the explicit key, else the first candidate file that exists.

    The file is parsed so that an unreadable or corrupt key fails here
    rather than inside the session request.
    """
    if explicit:
        paths = [Path(explicit).expanduser()]
    else:
        paths = [Path(p).expanduser() for p in (candidates or default_public_key_candidates())]

    for path in paths:
        if path.is_file():
            return _load(path)

    raise PrerequisiteMissingError(
        [str(p) for p in paths],
        hint="no SSH public key found, generate one with ssh-keygen",
    )


def _load(path: Path) -> PublicKeyInfo:
    try:
        blob = paramiko.PublicBlob.from_file(str(path))
    except (OSError, ValueError, paramiko.SSHException) as exc:
        raise PrerequisiteMissingError([str(path)], hint=f"not a valid public key: {exc}") from exc
    return PublicKeyInfo(path=path, key_type=blob.key_type, comment=blob.comment or None)


def private_key_for(public_key: Union[str, Path]) -> Optional[Path]:
    """Private half of `public_key` (same path without ``.pub``), if present."""
    path = Path(public_key).expanduser()
    if path.suffix != ".pub":
        return None
    private = path.with_suffix("")
    return private if private.is_file() else None
