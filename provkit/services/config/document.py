"""Hierarchical key/value documents (YAML).

A document is a tree whose nodes are either scalars or mappings from
string keys to nodes. A scalar root is legal; ``flatten`` and ``insert``
both return it unchanged.
"""

from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any, Dict, Sequence, Union

import structlog
import yaml

from ...models.errors import IOFailure, NotFoundError, StructureMismatchError

logger = structlog.get_logger(__name__)

Document = Any


def _require_mapping(node: Any, key: str) -> MutableMapping:
    if not isinstance(node, MutableMapping):
        raise StructureMismatchError(
            f"Attempt to get key {key} failed - not a map", key=key
        )
    return node


def insert(
    document: Document,
    key_path: Sequence[str],
    leaf_key: str,
    leaf_value: Any,
) -> Document:
    """Set ``leaf_key: leaf_value`` in the mapping found at ``key_path``.

    Existing mappings along the path are followed. Where the path runs out
    of real structure, the remainder is created as nested single-entry
    mappings. Sibling keys are never removed and an existing ``leaf_key``
    is overwritten.

    The document is modified in place and returned. A scalar root has
    nowhere to put a key and is returned unchanged.

    Raises:
        StructureMismatchError: If a node below the root on the path (or
            the node at the end of it) is not a mapping
    """
    if not isinstance(document, MutableMapping):
        logger.debug("Scalar document, nothing inserted", key=leaf_key)
        return document

    node = document
    for idx, key in enumerate(key_path):
        mapping = _require_mapping(node, key)
        if key not in mapping:
            chain: Dict[str, Any] = {leaf_key: leaf_value}
            for missing in reversed(key_path[idx + 1:]):
                chain = {missing: chain}
            mapping[key] = chain
            return document
        node = mapping[key]

    _require_mapping(node, leaf_key)[leaf_key] = leaf_value
    return document


def get_value(document: Document, key_path: Sequence[str]) -> Any:
    """Node at ``key_path``.

    Raises:
        NotFoundError: If a key is missing
        StructureMismatchError: If a node on the path is not a mapping
    """
    node = document
    for key in key_path:
        if not isinstance(node, Mapping):
            raise StructureMismatchError(
                f"Attempt to get key {key} failed - not a map", key=key
            )
        if key not in node:
            raise NotFoundError(f"Cannot find key {key}")
        node = node[key]
    return node


def flatten(document: Document) -> Document:
    """Collapse nested mappings into one mapping with dotted keys.

    ``{a: {b: {c: 1}, d: 2}}`` becomes ``{"a.b.c": 1, "a.d": 2}``. A
    non-mapping is returned unchanged, and empty nested mappings vanish.

    Keys are visited depth-first in insertion order; when two paths yield
    the same dotted key the later one wins.
    """
    if not isinstance(document, Mapping):
        return document

    result: Dict[Any, Any] = {}

    def put(key: Any, value: Any) -> None:
        if key in result:
            logger.warning("Flattened key collision, last value wins", key=key)
        result[key] = value

    for key, value in document.items():
        if isinstance(value, Mapping):
            for inner_key, inner_value in flatten(value).items():
                put(f"{key}.{inner_key}", inner_value)
        else:
            put(key, value)
    return result


def load_document(path: Union[str, Path]) -> Document:
    """Read a YAML document. An empty file is an empty mapping.

    Raises:
        IOFailure: If the file cannot be read
        StructureMismatchError: If the file is not valid YAML
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise IOFailure(str(path), e)

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise StructureMismatchError(f"Invalid YAML in {path}: {e}")
    return {} if document is None else document


def dump_document(document: Document, path: Union[str, Path]) -> None:
    """Write a document as YAML, keeping key order.

    Raises:
        IOFailure: If the file cannot be written
    """
    text = yaml.safe_dump(document, sort_keys=False, default_flow_style=False)
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
    except OSError as e:
        raise IOFailure(str(path), e)
