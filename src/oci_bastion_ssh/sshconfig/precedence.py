"""Resolve SSH config options the way an ssh client would."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import paramiko


def effective_option(path: Union[str, Path], host: str, option: str) -> Optional[str]:
    """Value of `option` for `host`; the first matching entry in the file wins."""
    config = paramiko.SSHConfig.from_path(str(Path(path).expanduser()))
    return config.lookup(host).get(option.lower())


def effective_proxy_jump(path: Union[str, Path], host: str) -> Optional[str]:
    return effective_option(path, host, "ProxyJump")
