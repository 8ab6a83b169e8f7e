"""Idempotent edits to configuration artifacts.

- blocks.py: marked blocks in line-oriented files (shell profiles)
- document.py: hierarchical YAML documents (insert, flatten)
"""

from .blocks import MarkedBlock, apply_block, merge_block
from .document import dump_document, flatten, get_value, insert, load_document

__all__ = [
    "MarkedBlock",
    "apply_block",
    "merge_block",
    "insert",
    "flatten",
    "get_value",
    "load_document",
    "dump_document",
]
