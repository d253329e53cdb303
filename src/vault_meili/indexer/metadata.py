"""Durable record of the last confirmed sync state of every vault file."""

import json
import logging
import os
import tempfile
from pathlib import Path

from vault_meili.errors import MetadataCorrupt
from vault_meili.indexer.models import Metadata

logger = logging.getLogger(__name__)


class MetadataStore:
    """
    JSON file holding one ``{path, hash, remoteId, indexedAt}`` object per
    synced document.

    The file is read once at startup and rewritten whole after each cycle.
    Writes go to a temporary file in the same directory which then replaces
    the target, so a reader never sees a partial file.
    """

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> dict[str, Metadata]:
        """
        Read the persisted record.

        Returns:
            Mapping of vault path to Metadata; empty on first run.

        Raises:
            MetadataCorrupt: If the file exists but is not a valid record.
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No metadata at %s, starting fresh", self.path)
            return {}
        except (OSError, UnicodeDecodeError) as e:
            raise MetadataCorrupt(f"Cannot read metadata file {self.path}: {e}") from e

        try:
            entries = json.loads(text)
        except json.JSONDecodeError as e:
            raise MetadataCorrupt(f"Metadata file {self.path} is not valid JSON: {e}") from e

        if not isinstance(entries, list):
            raise MetadataCorrupt(f"Metadata file {self.path} must contain a JSON array")

        metadata: dict[str, Metadata] = {}
        for position, entry in enumerate(entries):
            item = self._parse_entry(entry)
            if item is None:
                raise MetadataCorrupt(
                    f"Metadata file {self.path} has an invalid entry at position {position}"
                )
            metadata[item.path] = item

        logger.info("Loaded metadata for %d files", len(metadata))
        return metadata

    @staticmethod
    def _parse_entry(entry: object) -> Metadata | None:
        if not isinstance(entry, dict):
            return None
        path = entry.get("path")
        file_hash = entry.get("hash")
        remote_id = entry.get("remoteId")
        indexed_at = entry.get("indexedAt")
        if not all(isinstance(v, str) and v for v in (path, file_hash, remote_id)):
            return None
        # bool is an int subclass
        if isinstance(indexed_at, bool) or not isinstance(indexed_at, (int, float)):
            return None
        return Metadata(
            path=path,
            hash=file_hash,
            remote_id=remote_id,
            indexed_at=int(indexed_at),
        )

    def save(self, metadata: dict[str, Metadata]) -> None:
        """Atomically replace the persisted record."""
        entries = [metadata[path].to_dict() for path in sorted(metadata)]
        payload = json.dumps(entries, indent=2, ensure_ascii=False)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info("Saved metadata for %d files", len(entries))
