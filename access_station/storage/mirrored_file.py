# =======================================================================================
# access_station/storage/mirrored_file.py - Primary + Backup File Pair
# =======================================================================================
import logging
import os
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..utils.exceptions import WriteError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class MirroredFile:
    """
    A text file kept identical at two locations.

    Nothing is held open between calls: every write opens, writes, flushes
    and closes, so either copy may be deleted or moved by someone else at
    any time. A missing primary is rebuilt from the backup, or from the
    header alone when the backup is gone too.

    Not thread-safe on its own; owners serialize access.
    """

    def __init__(self, primary: PathLike, backup: PathLike, header: str):
        self.primary = Path(primary)
        self.backup = Path(backup)
        self.header = header

    # ------------------------------------------------------------------
    # Low level
    # ------------------------------------------------------------------
    @staticmethod
    def _write(path: Path, lines: Iterable[str], append: bool) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a" if append else "w", encoding="utf-8", newline="") as fh:
            for line in lines:
                fh.write(line + "\n")
            fh.flush()
            os.fsync(fh.fileno())

    @classmethod
    def _replace(cls, path: Path, lines: List[str]) -> None:
        tmp = path.with_name(path.name + ".tmp")
        cls._write(tmp, lines, append=False)
        os.replace(tmp, path)

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------
    def ensure_exists(self) -> bool:
        """
        Make sure both copies exist. Returns True when the primary was
        already there (an existing file is being continued).
        """
        existed = self.primary.exists()
        try:
            if not existed:
                if self.backup.exists():
                    self.restore_primary()
                else:
                    self._write(self.primary, [self.header], append=False)
            if not self.backup.exists():
                self.backup.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(self.primary, self.backup)
        except OSError as e:
            raise WriteError(self.primary, e) from e
        return existed

    def restore_primary(self) -> bool:
        """
        Rebuild a missing primary. Returns True if something had to be done.
        """
        if self.primary.exists():
            return False
        try:
            self.primary.parent.mkdir(parents=True, exist_ok=True)
            if self.backup.exists():
                shutil.copyfile(self.backup, self.primary)
                logger.warning("[files] %s was deleted; restored from %s", self.primary, self.backup)
            else:
                self._write(self.primary, [self.header], append=False)
                logger.warning("[files] %s and its backup are gone; recreated with header", self.primary)
        except OSError as e:
            raise WriteError(self.primary, e) from e
        return True

    def verify_and_recover(self) -> bool:
        """Periodic check variant: never raises, True when the primary is present afterwards."""
        try:
            self.restore_primary()
        except WriteError as e:
            logger.error("[files] recovery failed for %s: %s", self.primary, e)
            return False
        return self.primary.exists()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def append_line(self, line: str) -> None:
        """Append to the primary (failure raises) and then to the backup (failure logged)."""
        self.restore_primary()
        try:
            self._write(self.primary, [line], append=True)
        except OSError as e:
            raise WriteError(self.primary, e) from e

        try:
            if not self.backup.exists():
                # backup vanished: reseed it from the primary, which already has the line
                self.backup.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(self.primary, self.backup)
            else:
                self._write(self.backup, [line], append=True)
        except OSError as e:
            logger.error("[files] backup write failed for %s: %s", self.backup, e)

    def rewrite(self, lines: Iterable[str]) -> None:
        """Replace both copies with header + lines."""
        content = [self.header, *lines]
        try:
            self._replace(self.primary, content)
        except OSError as e:
            raise WriteError(self.primary, e) from e
        try:
            self._replace(self.backup, content)
        except OSError as e:
            logger.error("[files] backup rewrite failed for %s: %s", self.backup, e)

    def move_to(self, primary: PathLike, backup: PathLike) -> None:
        """Rename both copies; a copy that does not exist is simply re-pointed."""
        primary, backup = Path(primary), Path(backup)
        try:
            if self.primary.exists():
                primary.parent.mkdir(parents=True, exist_ok=True)
                os.replace(self.primary, primary)
            if self.backup.exists():
                backup.parent.mkdir(parents=True, exist_ok=True)
                os.replace(self.backup, backup)
        except OSError as e:
            raise WriteError(self.primary, e) from e
        logger.info("[files] moved %s -> %s", self.primary.name, primary.name)
        self.primary, self.backup = primary, backup

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def read_lines(self) -> List[str]:
        """Data lines (header excluded) from the primary, falling back to the backup."""
        source: Optional[Path] = None
        if self.primary.exists():
            source = self.primary
        elif self.backup.exists():
            source = self.backup
        if source is None:
            return []
        with open(source, "r", encoding="utf-8", newline="") as fh:
            lines = [ln.rstrip("\r\n") for ln in fh]
        if lines and lines[0] == self.header:
            lines = lines[1:]
        return [ln for ln in lines if ln]
