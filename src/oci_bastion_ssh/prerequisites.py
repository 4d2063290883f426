"""Checks run before any call to the Bastion service."""

from __future__ import annotations

import shutil
from typing import Iterable

from .errors import PrerequisiteMissingError


def check_tools(binaries: Iterable[str]) -> None:
    """Raise PrerequisiteMissingError unless every binary is on PATH."""
    missing = [binary for binary in binaries if shutil.which(binary) is None]
    if missing:
        raise PrerequisiteMissingError(missing, hint="please install them and make sure they are on PATH")
