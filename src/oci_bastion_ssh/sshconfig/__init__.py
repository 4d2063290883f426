"""SSH client config maintenance."""

from .precedence import effective_option, effective_proxy_jump
from .upsert import PREPEND, UpsertAction, block_end, find_line, upsert

__all__ = [
    "PREPEND",
    "UpsertAction",
    "block_end",
    "effective_option",
    "effective_proxy_jump",
    "find_line",
    "upsert",
]
