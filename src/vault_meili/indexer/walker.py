"""File walker for discovering Markdown files in the vault."""

import hashlib
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path


@dataclass
class FileInfo:
    """A Markdown file discovered in the vault."""

    path: Path  # Absolute path
    relative_path: str  # POSIX path relative to the vault root


def compute_hash(content: bytes) -> str:
    """Compute SHA-256 hash of content."""
    return hashlib.sha256(content).hexdigest()


def _is_hidden(parts: tuple[str, ...]) -> bool:
    return any(part.startswith(".") for part in parts)


def walk_vault(vault_root: Path) -> Iterator[FileInfo]:
    """
    Walk the vault and yield a FileInfo for each .md file.

    Hidden files and anything below a hidden directory (``.obsidian``,
    ``.trash``, ``.git``) are skipped. Files are yielded in path order.
    """
    if not vault_root.is_dir():
        return

    for file_path in sorted(vault_root.rglob("*.md")):
        if not file_path.is_file():
            continue

        relative = file_path.relative_to(vault_root)
        if _is_hidden(relative.parts):
            continue

        yield FileInfo(path=file_path, relative_path=relative.as_posix())


def resolve_in_vault(vault_root: Path, relative_path: str) -> Path:
    """Return the absolute path of a vault file.

    Raises:
        ValueError: If the path escapes the vault root.
    """
    resolved_root = vault_root.resolve()
    full_path = (vault_root / relative_path).resolve()
    if full_path != resolved_root and resolved_root not in full_path.parents:
        raise ValueError(f"Path is outside the vault: {relative_path}")
    return full_path


def relative_to_vault(vault_root: Path, path: Path) -> str | None:
    """Map an absolute path to its vault-relative form.

    Returns None for paths outside the vault, hidden paths and non-Markdown
    files, i.e. anything walk_vault would not yield.
    """
    try:
        relative = path.resolve().relative_to(vault_root.resolve())
    except ValueError:
        return None
    if path.suffix != ".md" or _is_hidden(relative.parts):
        return None
    return relative.as_posix()
