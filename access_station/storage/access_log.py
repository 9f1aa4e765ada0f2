# =======================================================================================
# access_station/storage/access_log.py - Durable Access Log (CSV + backup + pointer)
# =======================================================================================
import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..models.enums import AccessStatus
from ..models.schemas import AccessEvent
from ..utils.exceptions import WriteError
from .mirrored_file import MirroredFile
from .pointer import PointerSidecar

logger = logging.getLogger(__name__)

CSV_HEADER = "timestamp,uid,status,station_id"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
FILE_DATE_FORMAT = "%Y-%m-%d"
BACKUP_SUFFIX = "_backup"


def format_event(event: AccessEvent) -> str:
    return "{},{},{},{}".format(
        event.timestamp.strftime(TIMESTAMP_FORMAT),
        event.uid,
        event.status.value,
        event.station_id if event.station_id is not None else 1,
    )


def parse_event_line(line: str) -> Optional[AccessEvent]:
    """Inverse of format_event. Malformed lines yield None."""
    fields = [f.strip() for f in line.split(",")]
    if len(fields) < 3:
        return None
    try:
        timestamp = datetime.strptime(fields[0], TIMESTAMP_FORMAT)
    except ValueError:
        return None
    try:
        status = AccessStatus(fields[2].upper())
    except ValueError:
        status = AccessStatus.UNKNOWN
    station_id = 1
    if len(fields) > 3 and fields[3].isdigit():
        station_id = int(fields[3])
    return AccessEvent(uid=fields[1], timestamp=timestamp, status=status, station_id=station_id)


class DurableAccessLog:
    """
    Append-only CSV log of access decisions for the current session.

    Each append re-checks the files on disk, so the log survives its
    primary copy (or the pointer sidecar) being deleted mid-session. All
    appends, renames and pointer updates go through one lock.
    """

    def __init__(
        self,
        logs_dir: Union[str, Path],
        backup_dir: Union[str, Path],
        pointer_path: Union[str, Path],
        history_dir: Union[str, Path],
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.logs_dir = Path(logs_dir)
        self.backup_dir = Path(backup_dir)
        self.history_dir = Path(history_dir)
        self.pointer = PointerSidecar(pointer_path)
        self._clock = clock
        self._lock = threading.RLock()
        self._file: Optional[MirroredFile] = None
        self._label: Optional[str] = None
        self.records_written = 0

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------
    def _paths_for(self, label: str):
        stem = f"{label}_{self._clock().strftime(FILE_DATE_FORMAT)}"
        return (
            self.logs_dir / f"{stem}.csv",
            self.backup_dir / f"{stem}{BACKUP_SUFFIX}.csv",
        )

    @staticmethod
    def _label_from(primary: Path) -> str:
        label, _, date = primary.stem.rpartition("_")
        try:
            datetime.strptime(date, FILE_DATE_FORMAT)
        except ValueError:
            return primary.stem
        return label or primary.stem

    def backup_path_for(self, primary: Union[str, Path]) -> Path:
        primary = Path(primary)
        return self.backup_dir / f"{primary.stem}{BACKUP_SUFFIX}{primary.suffix or '.csv'}"

    @property
    def is_ready(self) -> bool:
        return self._file is not None

    @property
    def current_path(self) -> Optional[str]:
        f = self._file
        return str(f.primary) if f else None

    @property
    def current_backup_path(self) -> Optional[str]:
        f = self._file
        return str(f.backup) if f else None

    @property
    def label(self) -> Optional[str]:
        return self._label

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    def begin_session(self, label: str) -> str:
        """Open (or continue) today's file for label. Returns the primary path."""
        with self._lock:
            primary, backup = self._paths_for(label)
            mirrored = MirroredFile(primary, backup, CSV_HEADER)
            continued = mirrored.ensure_exists()
            self.pointer.save(str(primary))
            self._file = mirrored
            self._label = label
            self.records_written = 0
            if continued:
                logger.info("[log] continuing existing log %s", primary)
            else:
                logger.info("[log] new log %s (backup %s)", primary, backup)
            return str(primary)

    def resume(self, path: Union[str, Path]) -> str:
        """Continue appending to a known primary file."""
        primary = Path(path)
        with self._lock:
            mirrored = MirroredFile(primary, self.backup_path_for(primary), CSV_HEADER)
            mirrored.ensure_exists()
            self.pointer.save(str(primary))
            self._file = mirrored
            self._label = self._label_from(primary)
            logger.info("[log] resumed %s", primary)
            return str(primary)

    def recover_from_pointer(self) -> Optional[str]:
        """Resume the file named by the pointer sidecar if it (or its backup) still exists."""
        record = self.pointer.load()
        if record is None:
            return None
        primary = Path(record.path)
        if not primary.exists() and not self.backup_path_for(primary).exists():
            logger.warning("[log] pointer names %s but neither copy exists", primary)
            return None
        return self.resume(primary)

    def append(self, event: AccessEvent) -> None:
        line = format_event(event)
        with self._lock:
            if self._file is None:
                raise WriteError(None, RuntimeError("access log not initialized"))

            if not self.pointer.exists():
                logger.warning("[log] pointer sidecar was deleted; regenerating")
                try:
                    self.pointer.save(str(self._file.primary))
                except WriteError as e:
                    logger.error("[log] %s", e)

            self._file.append_line(line)
            self.records_written += 1
            logger.debug("[log] appended %s", line)

    def rename(self, new_label: str) -> str:
        """Move primary and backup to the new label and repoint the sidecar."""
        with self._lock:
            if self._file is None:
                raise WriteError(None, RuntimeError("access log not initialized"))
            primary, backup = self._paths_for(new_label)
            self._file.move_to(primary, backup)
            self.pointer.save(str(primary))
            self._label = new_label
            return str(primary)

    def rotate_and_flush(self) -> Optional[str]:
        """
        Hand the current file over to the batch: every write is already
        flushed, so rotating only detaches it. Returns the detached path.
        """
        with self._lock:
            path = self.current_path
            self._detach()
            if path:
                logger.info("[log] rotated %s", path)
            return path

    def rotate_to(self, new_label: str):
        """
        Detach the current file and open a new one in a single step, so no
        append can land between the two. Returns (old_path, new_path).
        """
        with self._lock:
            old = self.rotate_and_flush()
            return old, self.begin_session(new_label)

    def close(self) -> None:
        with self._lock:
            if self._file is None:
                return
            logger.info("[log] closed %s after %d records", self._file.primary, self.records_written)
            self._detach()

    def _detach(self) -> None:
        self._file = None
        self._label = None
        self.records_written = 0

    def verify_files(self) -> bool:
        """Periodic reconciliation: restore a deleted primary and pointer."""
        with self._lock:
            if self._file is None:
                return True
            ok = self._file.verify_and_recover()
            if not self.pointer.exists():
                try:
                    self.pointer.save(str(self._file.primary))
                except WriteError as e:
                    logger.error("[log] %s", e)
            return ok

    # ------------------------------------------------------------------
    # Batch side
    # ------------------------------------------------------------------
    def read_events(self, path: Union[str, Path]) -> List[AccessEvent]:
        path = Path(path)
        mirrored = MirroredFile(path, self.backup_path_for(path), CSV_HEADER)
        events = []
        for n, line in enumerate(mirrored.read_lines(), start=2):
            event = parse_event_line(line)
            if event is None:
                logger.warning("[log] skipping malformed line %d in %s", n, path.name)
                continue
            events.append(event)
        return events

    def pending_files(self, exclude: Optional[List[Union[str, Path]]] = None) -> List[Path]:
        """Closed logs waiting for the batch: every CSV in the logs dir except the active one."""
        if not self.logs_dir.exists():
            return []
        skip = {Path(p).resolve() for p in (exclude or [])}
        active = self.current_path
        if active:
            skip.add(Path(active).resolve())
        files = []
        for path in sorted(self.logs_dir.glob("*.csv")):
            if not path.is_file() or path.name.startswith("user_registry"):
                continue
            if path.resolve() in skip:
                continue
            files.append(path)
        return files

    def move_to_history(self, path: Union[str, Path]) -> Path:
        """Archive a processed log (and its backup) under the history dir."""
        path = Path(path)
        try:
            self.history_dir.mkdir(parents=True, exist_ok=True)
            target = self._free_name(self.history_dir, path.name)
            os.replace(path, target)
            backup = self.backup_path_for(path)
            if backup.exists():
                backup_dir = self.history_dir / "backup"
                backup_dir.mkdir(parents=True, exist_ok=True)
                os.replace(backup, self._free_name(backup_dir, backup.name))
        except OSError as e:
            raise WriteError(path, e) from e
        logger.info("[log] archived %s -> %s", path.name, target)
        return target

    @staticmethod
    def _free_name(directory: Path, name: str) -> Path:
        target = directory / name
        stem, suffix = Path(name).stem, Path(name).suffix
        counter = 1
        while target.exists():
            target = directory / f"{stem}_{counter}{suffix}"
            counter += 1
        return target
