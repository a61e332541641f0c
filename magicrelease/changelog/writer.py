"""ChangelogWriter: atomic replacement of the changelog file on disk."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from magicrelease.config.models import ChangelogSettings
from magicrelease.errors import ChangelogError

logger = logging.getLogger(__name__)


def _match_mode(dest: Path, tmp_name: str) -> None:
    """Give the temp file the permissions the changelog has (or would get)."""
    if dest.exists():
        shutil.copymode(dest, tmp_name)
        return
    umask = os.umask(0)
    os.umask(umask)
    os.chmod(tmp_name, 0o666 & ~umask)


class ChangelogWriter:
    """Writes changelog text next to the existing file and swaps it in.

    Readers never observe a half-written file: content goes to a temp file
    in the same directory first and is then moved over the target with
    ``os.replace``.
    """

    def __init__(self, config: ChangelogSettings | None = None) -> None:
        self.config = config or ChangelogSettings()

    def write(self, path: str | Path, text: str, *, dry_run: bool = False) -> Path:
        """Write ``text`` to ``path``. Returns the destination path."""
        dest = Path(path)
        if dry_run:
            logger.debug("dry-run: would write %s", dest)
            return dest

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            if self.config.backup and dest.exists():
                backup = dest.with_name(dest.name + ".backup")
                shutil.copyfile(dest, backup)
                logger.info("Backed up %s to %s", dest, backup)

            fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                    f.write(text)
                _match_mode(dest, tmp_name)
                os.replace(tmp_name, dest)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise ChangelogError(f"Failed to write {dest}: {e}", {"path": str(dest)}) from e

        logger.info("wrote %s (%d bytes)", dest, len(text.encode("utf-8")))
        return dest
