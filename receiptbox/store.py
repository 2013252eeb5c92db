"""Receipt store: one directory holding one file per receipt."""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_MARKER = ".keep"


@dataclass
class StoredDocument:
    filename: str
    path: Path
    size: int


class ReceiptStore:
    """Owns the receipt files on disk, keyed by base filename.

    Files are never overwritten: moving in a file whose name is already
    taken fails with ``FileExistsError``.
    """

    def __init__(self, root: str | Path = "~/receipts") -> None:
        self._root = Path(root).expanduser()

    def location(self) -> Path:
        return self._root

    def exists(self) -> bool:
        return self._root.is_dir()

    def ensure(self) -> None:
        """Create the store directory and its marker file if missing.

        Raises:
            RuntimeError: If the directory cannot be created.
        """
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            (self._root / _MARKER).touch(exist_ok=True)
        except OSError as e:
            raise RuntimeError(f"Failed to create {self._root}: {e}") from e

    def path_for(self, filename: str) -> Path:
        return self._root / filename

    def get(self, filename: str) -> StoredDocument:
        """Look up a stored document by filename.

        Raises:
            FileNotFoundError: If no such file is in the store.
        """
        path = self.path_for(filename)
        if not path.is_file():
            raise FileNotFoundError(f"Receipt file not found: {filename}")
        return StoredDocument(filename=filename, path=path, size=path.stat().st_size)

    def list_documents(self, pattern: str = "*") -> list[StoredDocument]:
        """Return stored documents matching a glob pattern, hidden files excluded."""
        if not self.exists():
            return []
        docs: list[StoredDocument] = []
        for path in sorted(self._root.glob(pattern)):
            if path.name.startswith(".") or not path.is_file():
                continue
            docs.append(
                StoredDocument(filename=path.name, path=path, size=path.stat().st_size)
            )
        return docs

    def move_in(self, source: str | Path) -> str:
        """Move a file into the store.

        Returns:
            The filename of the moved file inside the store.

        Raises:
            FileNotFoundError: If the source doesn't exist.
            IsADirectoryError: If the source is not a regular file.
            FileExistsError: If the store already holds a file of that name.
            RuntimeError: If the content could not be moved.
        """
        source = Path(source)
        if not source.exists():
            raise FileNotFoundError(f"Source file does not exist: {source}")
        if not source.is_file():
            raise IsADirectoryError(f"Source is not a file: {source}")

        filename = source.name
        dest = self.path_for(filename)
        if dest.exists():
            raise FileExistsError(f"File already exists in receipts: {filename}")

        try:
            self._place(source, dest)
        except FileExistsError:
            raise FileExistsError(
                f"File already exists in receipts: {filename}"
            ) from None
        except OSError as e:
            raise RuntimeError(f"Failed to move file: {e}") from e

        try:
            source.unlink()
        except OSError as e:
            # The content is already in the store; the source copy stays behind.
            logger.warning(
                "Moved %s into the store but could not remove the source: %s",
                filename,
                e,
            )
            raise RuntimeError(
                f"Failed to move file: {filename} was copied but {source} "
                f"could not be removed: {e}"
            ) from e

        logger.info("Stored %s (%d bytes)", filename, dest.stat().st_size)
        return filename

    def _place(self, source: Path, dest: Path) -> None:
        """Make ``dest`` hold the bytes of ``source`` without overwriting.

        A hard link is atomic and refuses to replace an existing name. When
        the source is on another volume (or links are unsupported) the bytes
        are copied to a hidden temp name first, synced, then linked in.
        """
        try:
            os.link(source, dest)
            return
        except FileExistsError:
            raise
        except OSError as e:
            logger.debug("Hard link failed for %s (%s); copying instead", source, e)

        tmp = self._root / f".{dest.name}.{uuid.uuid4().hex}.tmp"
        try:
            with open(source, "rb") as src, open(tmp, "xb") as dst:
                shutil.copyfileobj(src, dst)
                dst.flush()
                os.fsync(dst.fileno())
            try:
                os.link(tmp, dest)
            except FileExistsError:
                raise
            except OSError:
                # No hard links on this filesystem at all
                if dest.exists():
                    raise FileExistsError(dest.name) from None
                os.rename(tmp, dest)
        finally:
            tmp.unlink(missing_ok=True)
