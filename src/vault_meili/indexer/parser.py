"""Parser for vault documents: YAML frontmatter, body and document id."""

import datetime
import hashlib
import logging
import math
import re
from pathlib import PurePosixPath
from typing import Any

import yaml

from vault_meili.errors import ParseWarning
from vault_meili.indexer.models import Document
from vault_meili.indexer.walker import compute_hash

logger = logging.getLogger(__name__)

# Leading block delimited by lines containing only "---"
FRONTMATTER_PATTERN = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)

# Meilisearch primary keys: alphanumerics, hyphens and underscores, max 511 bytes
MAX_ID_BYTES = 511
_ID_SAFE = frozenset(b"abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-")
_HASHED_ID_PREFIX = "_z"


def make_document_id(path: str) -> str:
    """
    Build a stable Meilisearch id from a vault path.

    Letters, digits and ``-`` are kept; every other UTF-8 byte, ``_``
    included, becomes ``_XX`` (upper-case hex). The escaping is reversible,
    so two distinct paths never share an id. Ids that would exceed the
    Meilisearch limit fall back to ``_z`` plus the SHA-256 of the path, a
    prefix the escaping can never produce.
    """
    encoded = "".join(
        chr(byte) if byte in _ID_SAFE else f"_{byte:02X}" for byte in path.encode("utf-8")
    )
    if len(encoded) > MAX_ID_BYTES:
        return _HASHED_ID_PREFIX + hashlib.sha256(path.encode("utf-8")).hexdigest()
    return encoded


def _jsonable(value: Any, _parents: tuple[int, ...] = ()) -> Any:
    """
    Convert YAML values into types the JSON encoder accepts.

    Non-finite floats become strings. A container that contains itself
    (a recursive YAML alias) raises ValueError.
    """
    if isinstance(value, (dict, list, tuple, set)):
        if id(value) in _parents:
            raise ValueError("recursive alias in frontmatter")
        parents = _parents + (id(value),)
        if isinstance(value, dict):
            return {str(k): _jsonable(v, parents) for k, v in value.items()}
        return [_jsonable(v, parents) for v in value]
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def parse_frontmatter(
    content: str, file_path: str
) -> tuple[dict[str, Any], str, list[ParseWarning]]:
    """
    Split YAML frontmatter from markdown content.

    Args:
        content: The full markdown content
        file_path: Vault-relative path, used in diagnostics

    Returns:
        Tuple of (frontmatter, body, warnings). A missing, empty or invalid
        block yields an empty mapping; invalid blocks also produce a warning.
    """
    match = FRONTMATTER_PATTERN.match(content)
    if match is None:
        return {}, content, []

    block = match.group(1) or ""
    body = content[match.end():]
    warnings: list[ParseWarning] = []

    try:
        raw = yaml.safe_load(block)
    except yaml.YAMLError as e:
        warnings.append(ParseWarning(file_path, f"invalid YAML frontmatter: {e}"))
        return {}, body, warnings

    if raw is None:
        return {}, body, warnings
    if not isinstance(raw, dict):
        warnings.append(
            ParseWarning(file_path, f"frontmatter is a {type(raw).__name__}, not a mapping")
        )
        return {}, body, warnings

    try:
        data = _jsonable(raw)
    except (ValueError, RecursionError) as e:
        warnings.append(ParseWarning(file_path, f"unsupported frontmatter: {e}"))
        return {}, body, warnings
    return data, body, warnings


def parse_document(path: str, raw: bytes | str) -> Document:
    """
    Parse a vault file into a Document.

    Frontmatter problems never raise: they are logged and kept on
    ``Document.parse_warnings``.

    Raises:
        UnicodeDecodeError: If raw bytes are not valid UTF-8.
    """
    if isinstance(raw, str):
        data = raw.encode("utf-8")
        text = raw
    else:
        data = raw
        text = raw.decode("utf-8")

    frontmatter, body, warnings = parse_frontmatter(text, path)
    for warning in warnings:
        logger.warning("Frontmatter ignored in %s: %s", path, warning.message)

    return Document(
        id=make_document_id(path),
        name=PurePosixPath(path).stem,
        path=path,
        frontmatter=frontmatter,
        content=body,
        hash=compute_hash(data),
        parse_warnings=[w.message for w in warnings],
    )
