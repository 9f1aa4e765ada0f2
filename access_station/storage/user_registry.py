# =======================================================================================
# access_station/storage/user_registry.py - Enrolled Credentials (CSV + backup)
# =======================================================================================
import csv
import io
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..models.schemas import Credential
from ..utils.validators import normalize_uid
from .access_log import TIMESTAMP_FORMAT
from .mirrored_file import MirroredFile

logger = logging.getLogger(__name__)

CSV_HEADER = "uid,name,registered_at"


def _format_row(cred: Credential) -> str:
    buf = io.StringIO()
    csv.writer(buf, lineterminator="").writerow([
        cred.uid,
        cred.name,
        cred.registered_at.strftime(TIMESTAMP_FORMAT) if cred.registered_at else "",
    ])
    return buf.getvalue()


def _parse_row(fields: List[str]) -> Optional[Credential]:
    if len(fields) < 2 or not fields[0].strip():
        return None
    registered_at = None
    if len(fields) > 2 and fields[2].strip():
        try:
            registered_at = datetime.strptime(fields[2].strip(), TIMESTAMP_FORMAT)
        except ValueError:
            logger.debug("[registry] bad date %r", fields[2])
    return Credential(uid=fields[0], name=fields[1].strip(), registered_at=registered_at)


class UserRegistry:
    """
    Authoritative uid -> Credential store.

    Readers see an immutable dict snapshot that is swapped on every
    mutation; writers serialize on a lock and rewrite both files in full.
    """

    def __init__(self, primary: Union[str, Path], backup: Union[str, Path]):
        self._file = MirroredFile(primary, backup, CSV_HEADER)
        self._write_lock = threading.Lock()
        self._users: Dict[str, Credential] = {}
        self.reload()

    @property
    def path(self) -> str:
        return str(self._file.primary)

    def reload(self) -> None:
        """Load from disk, restoring the primary from its backup if it is missing."""
        with self._write_lock:
            self._file.ensure_exists()
            users: Dict[str, Credential] = {}
            for n, fields in enumerate(csv.reader(self._file.read_lines()), start=2):
                try:
                    cred = _parse_row(fields)
                except ValueError as e:
                    logger.warning("[registry] line %d unreadable: %s", n, e)
                    continue
                if cred is not None:
                    users[cred.uid] = cred
            self._users = users
            logger.info("[registry] loaded %d users from %s", len(users), self._file.primary)

    def _commit(self, users: Dict[str, Credential]) -> None:
        self._file.rewrite(_format_row(c) for c in users.values())
        self._users = users

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def find(self, uid: str) -> Optional[Credential]:
        return self._users.get(normalize_uid(uid))

    def exists(self, uid: str) -> bool:
        return normalize_uid(uid) in self._users

    def all(self) -> List[Credential]:
        return list(self._users.values())

    def count(self) -> int:
        return len(self._users)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def save(self, cred: Credential) -> None:
        """Insert, or replace the entry with the same uid."""
        with self._write_lock:
            users = dict(self._users)
            users[cred.uid] = cred
            self._commit(users)
        logger.info("[registry] saved %s - %s", cred.uid, cred.name)

    def delete(self, uid: str) -> bool:
        key = normalize_uid(uid)
        with self._write_lock:
            if key not in self._users:
                return False
            users = dict(self._users)
            del users[key]
            self._commit(users)
        logger.info("[registry] deleted %s", key)
        return True

    def verify_files(self) -> bool:
        with self._write_lock:
            return self._file.verify_and_recover()
