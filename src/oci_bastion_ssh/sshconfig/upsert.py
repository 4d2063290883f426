"""Update-or-insert of lines in line-oriented config files such as ~/.ssh/config.

Examples::

    upsert("/etc/ssh/sshd_config", "IgnoreRhosts ", "IgnoreRhosts yes")
    upsert("/etc/logrotate.d/syslog", PREPEND, "/var/log/cron")
    upsert("~/.ssh/config", "Host 10.0.1.5")
    upsert("~/.ssh/config", "ProxyJump ", "  ProxyJump ocid1...@host...", block="Host 10.0.1.5")

Keys are plain, case-sensitive substrings; no pattern syntax is involved, so
values may contain any character.
"""

from __future__ import annotations

import os
import re
import shutil
import tempfile
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from ..errors import ConfigWriteError
from ..utils.logging import get_logger

logger = get_logger(__name__)

# Sentinel key: match nothing, put the value on the first line
PREPEND = "^"

_BLOCK_START = re.compile(r"^\s*(Host|Match)(\s|=)", re.IGNORECASE)
# A catch-all block applies to every host; new blocks go above it
_GLOBAL_BLOCK = re.compile(r"^\s*(Host(\s+|\s*=\s*)\*|Match\s+all)\s*$", re.IGNORECASE)


class UpsertAction(str, Enum):
    CREATED = "created"
    PREPENDED = "prepended"
    UPDATED = "updated"
    INSERTED = "inserted"
    APPENDED = "appended"
    UNCHANGED = "unchanged"


def upsert(
    path: Union[str, Path],
    key: str,
    value: Optional[str] = None,
    *,
    block: Optional[str] = None,
) -> UpsertAction:
    """Replace the first line containing `key` with `value`, or add `value`.

    Args:
        path: File to update; created (with its directory) when missing.
        key: Substring identifying the line. `PREPEND` skips matching and
            puts `value` first.
        value: Replacement line, defaults to `key`.
        block: Substring identifying a block header such as ``Host 10.0.1.5``.
            When given, only lines of that block are matched and a missing
            line is inserted right below the header. A missing header adds
            a new block made of the header and `value`.

    New ``Host``/``Match`` blocks are placed above the first ``Host *`` or
    ``Match all`` block when the file has one, and appended otherwise.
    Lines that are not replaced keep their bytes, line endings included;
    added lines use the file's dominant ending.

    Every call is idempotent, `PREPEND` included: a prepend whose value is
    already the first line leaves the file as it is.

    Returns:
        What was done. UNCHANGED means the file was not rewritten.
    """
    if value is None:
        value = key
    target = _resolve(path)
    if block:
        logger.info("`%s` / `%s` / `%s` := `%s`", target, block, key, value)
    elif value != key:
        logger.info("`%s` / `%s` := `%s`", target, key, value)
    else:
        logger.info("`%s` << `%s`", target, key)

    lines = _read_lines(target)
    if lines is None:
        new_lines = [block, value] if block else [value]
        _write_lines(target, [line + "\n" for line in new_lines])
        return UpsertAction.CREATED

    newline = _dominant_newline(lines)
    if block:
        new_lines, action = _upsert_in_block(lines, block, key, value, newline)
    elif key == PREPEND:
        if _body(lines[0]) == value:
            return UpsertAction.UNCHANGED
        new_lines, action = _insert(lines, 0, [value], newline), UpsertAction.PREPENDED
    else:
        new_lines, action = _upsert_line(lines, key, value, newline)

    if new_lines == lines:
        return UpsertAction.UNCHANGED
    _write_lines(target, new_lines)
    return action


def find_line(lines: list[str], key: str, start: int = 0, end: Optional[int] = None) -> Optional[int]:
    """Index of the first line in lines[start:end] containing `key`."""
    stop = len(lines) if end is None else end
    for index in range(start, stop):
        if key in _body(lines[index]):
            return index
    return None


def block_end(lines: list[str], header_index: int) -> int:
    """Index of the line that starts the block after the one at `header_index`."""
    for index in range(header_index + 1, len(lines)):
        if _BLOCK_START.match(lines[index]):
            return index
    return len(lines)


def _upsert_line(
    lines: list[str], key: str, value: str, newline: str
) -> tuple[list[str], UpsertAction]:
    index = find_line(lines, key)
    if index is None:
        return _add_block(lines, [value], newline), UpsertAction.APPENDED
    return _replace(lines, index, value), UpsertAction.UPDATED


def _upsert_in_block(
    lines: list[str], header: str, key: str, value: str, newline: str
) -> tuple[list[str], UpsertAction]:
    header_index = find_line(lines, header)
    if header_index is None:
        return _add_block(lines, [header, value], newline), UpsertAction.APPENDED

    end = block_end(lines, header_index)
    index = find_line(lines, key, header_index + 1, end)
    if index is None:
        return _insert(lines, header_index + 1, [value], newline), UpsertAction.INSERTED
    return _replace(lines, index, value), UpsertAction.UPDATED


def _add_block(lines: list[str], new_lines: list[str], newline: str) -> list[str]:
    """Append `new_lines`, or put them above the global block when they open a block."""
    opens_block = bool(_BLOCK_START.match(new_lines[0]))
    position = _global_block_index(lines) if opens_block else None
    if position is None:
        return _insert(lines, len(lines), _separator(lines[-1:], new_lines[0]) + new_lines, newline)

    start = position
    while start and not lines[start - 1].strip():
        start -= 1
    added = ([""] if start else []) + new_lines
    if start == position:
        added.append("")
    return _insert(lines, start, added, newline)


def _global_block_index(lines: list[str]) -> Optional[int]:
    for index, line in enumerate(lines):
        if _GLOBAL_BLOCK.match(_body(line)):
            return index
    return None


def _separator(previous: list[str], first_new_line: str) -> list[str]:
    """Blank line before a new Host/Match block unless one is already there."""
    if _BLOCK_START.match(first_new_line) and previous and previous[-1].strip():
        return [""]
    return []


def _insert(lines: list[str], index: int, new_lines: list[str], newline: str) -> list[str]:
    head = lines[:index]
    # the old last line may lack a line ending
    if head and not _ending(head[-1]):
        head[-1] += newline
    return head + [line + newline for line in new_lines] + lines[index:]


def _replace(lines: list[str], index: int, value: str) -> list[str]:
    return lines[:index] + [value + _ending(lines[index])] + lines[index + 1:]


def _body(line: str) -> str:
    return line[: len(line) - len(_ending(line))]


def _ending(line: str) -> str:
    if line.endswith("\r\n"):
        return "\r\n"
    if line.endswith("\n"):
        return "\n"
    return ""


def _dominant_newline(lines: list[str]) -> str:
    crlf = sum(1 for line in lines if line.endswith("\r\n"))
    lf = sum(1 for line in lines if line.endswith("\n")) - crlf
    return "\r\n" if crlf > lf else "\n"


def _split_lines(text: str) -> list[str]:
    """Split on "\\n" only, keeping each line's ending."""
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _resolve(path: Union[str, Path]) -> Path:
    target = Path(path).expanduser()
    # os.replace would turn a symlinked config into a regular file
    if target.is_symlink():
        return target.resolve()
    return target


def _read_lines(path: Path) -> Optional[list[str]]:
    """Lines of `path` with their endings, or None when it is missing or empty."""
    try:
        if not path.exists() or path.stat().st_size == 0:
            return None
        return _split_lines(path.read_bytes().decode("utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigWriteError(str(path), exc) from exc


def _write_lines(path: Path, lines: list[str]) -> None:
    """Replace `path` atomically: readers see the old or the new file, never a partial one."""
    content = "".join(lines)
    tmp_name: Optional[str] = None
    try:
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
        with os.fdopen(fd, "wb") as handle:
            handle.write(content.encode("utf-8"))
            handle.flush()
            os.fsync(handle.fileno())
        if path.exists():
            shutil.copymode(str(path), tmp_name)
        os.replace(tmp_name, str(path))
        tmp_name = None
    except OSError as exc:
        raise ConfigWriteError(str(path), exc) from exc
    finally:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
