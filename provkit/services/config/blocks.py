"""Marked blocks in line-oriented text files.

A block is a named region delimited by marker lines::

    # <prefix> begin <id>
    ...content...
    # <prefix> end <id>

Each apply overwrites the region's content wholesale, so applying the same
block twice leaves the file byte-identical to applying it once.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

import structlog

from ...models.errors import IOFailure

logger = structlog.get_logger(__name__)

DEFAULT_PREFIX = "provkit"


@dataclass(frozen=True)
class MarkedBlock:
    """A named, delimited region of a text file."""

    block_id: str
    content: Tuple[str, ...] = field(default_factory=tuple)
    prefix: str = DEFAULT_PREFIX

    def __post_init__(self):
        object.__setattr__(self, "content", tuple(self.content))
        for value in (self.block_id, self.prefix):
            if not value or "\n" in value or "\r" in value:
                raise ValueError(
                    f"Block id and prefix must be non-empty single lines: {value!r}"
                )
        for line in self.content:
            if line in (self.begin_marker, self.end_marker):
                raise ValueError(
                    f"Block {self.block_id!r} content contains its own marker"
                )

    @property
    def begin_marker(self) -> str:
        return f"# {self.prefix} begin {self.block_id}"

    @property
    def end_marker(self) -> str:
        return f"# {self.prefix} end {self.block_id}"

    def render_content(self, newline: str = "\n") -> str:
        return "".join(f"{line}{newline}" for line in self.content)


def _strip_eol(line: str) -> str:
    return line.rstrip("\r\n")


def find_block(lines: List[str], block: MarkedBlock) -> Optional[Tuple[int, int]]:
    """Indices of the begin and end marker lines, or None.

    The end marker only counts if it follows the begin marker.
    """
    begin = None
    for idx, line in enumerate(lines):
        text = _strip_eol(line)
        if begin is None:
            if text == block.begin_marker:
                begin = idx
        elif text == block.end_marker:
            return begin, idx
    return None


def merge_block(text: str, block: MarkedBlock) -> str:
    """Return ``text`` with ``block`` replaced in place or appended."""
    lines = text.splitlines(keepends=True)
    found = find_block(lines, block)

    if found is not None:
        begin, end = found
        # Content follows the begin marker's line ending
        newline = "\r\n" if lines[begin].endswith("\r\n") else "\n"
        return (
            "".join(lines[: begin + 1])
            + block.render_content(newline)
            + "".join(lines[end:])
        )

    return (
        text
        + "\n"
        + block.begin_marker
        + "\n"
        + block.render_content()
        + block.end_marker
        + "\n"
    )


def apply_block(
    file_path: Union[str, Path],
    block: MarkedBlock,
    create: bool = False,
) -> bool:
    """Merge ``block`` into the file at ``file_path``.

    The whole file is rewritten in one write, only when its content
    changes.

    Args:
        file_path: File to update
        block: Block to apply
        create: Treat a missing file as empty instead of failing

    Returns:
        True if the file was written

    Raises:
        IOFailure: If the file cannot be read or written
    """
    path = Path(file_path)
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            current = f.read()
    except FileNotFoundError as e:
        if not create:
            raise IOFailure(str(path), e)
        current = ""
    except OSError as e:
        raise IOFailure(str(path), e)

    updated = merge_block(current, block)
    if updated == current:
        logger.debug("Block already up to date", path=str(path), block=block.block_id)
        return False

    try:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(updated)
    except OSError as e:
        raise IOFailure(str(path), e)

    logger.info(
        "Applied marked block",
        path=str(path),
        block=block.block_id,
        lines=len(block.content),
    )
    return True
