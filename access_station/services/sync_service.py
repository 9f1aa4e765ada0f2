# =======================================================================================
# access_station/services/sync_service.py - Relational Mirror
# =======================================================================================
import logging
from typing import Iterable, List, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Connection

from ..database import DatabaseManager
from ..models.schemas import AccessEvent, Credential
from ..utils.validators import normalize_uid

logger = logging.getLogger(__name__)


class MirrorService:
    """
    Best-effort copy of local credentials and access events into SQL.

    Writes are insert-if-absent so replaying a file after a partial
    failure does not duplicate rows. SQLAlchemy errors propagate; callers
    decide whether a failure matters.
    """

    def __init__(self, db: DatabaseManager):
        self.db = db
        self._schema_ready = False

    def ensure_schema(self) -> None:
        if not self._schema_ready:
            self.db.create_schema()
            self._schema_ready = True

    # ----------------- credentials -----------------

    @staticmethod
    def _user_exists(conn: Connection, uid: str) -> bool:
        row = conn.execute(
            text("SELECT 1 FROM users WHERE nfc_uid = :uid"), {"uid": uid}
        ).first()
        return row is not None

    @staticmethod
    def _insert_user(conn: Connection, cred: Credential) -> None:
        conn.execute(
            text("""
                INSERT INTO users (nfc_uid, user_name, role, created_at)
                VALUES (:uid, :name, 'usuario', :created)
            """),
            {"uid": cred.uid, "name": cred.name, "created": cred.registered_at},
        )

    def save_credential(self, cred: Credential) -> bool:
        """Returns True when a row was inserted."""
        self.ensure_schema()
        with self.db.get_connection() as conn:
            if self._user_exists(conn, cred.uid):
                return False
            self._insert_user(conn, cred)
        logger.info("[mirror] user %s inserted", cred.uid)
        return True

    def sync_credentials(self, creds: Iterable[Credential]) -> Tuple[int, int]:
        """Insert every missing credential. Returns (inserted, skipped)."""
        self.ensure_schema()
        inserted = skipped = 0
        with self.db.get_connection() as conn:
            for cred in creds:
                if self._user_exists(conn, cred.uid):
                    skipped += 1
                    continue
                self._insert_user(conn, cred)
                inserted += 1
        logger.info("[mirror] users synced: %d inserted, %d already present", inserted, skipped)
        return inserted, skipped

    def delete_credential(self, uid: str) -> bool:
        self.ensure_schema()
        with self.db.get_connection() as conn:
            result = conn.execute(
                text("DELETE FROM users WHERE nfc_uid = :uid"), {"uid": normalize_uid(uid)}
            )
            return (result.rowcount or 0) > 0

    # ----------------- access events -----------------

    def save_events(self, events: Iterable[AccessEvent]) -> int:
        """Insert events not mirrored yet. Returns the number of new rows."""
        self.ensure_schema()
        saved = 0
        with self.db.get_connection() as conn:
            for event in events:
                params = {
                    "uid": event.uid,
                    "sid": event.station_id,
                    "ts": event.timestamp,
                    "status": event.status.value,
                }
                exists = conn.execute(
                    text("""
                        SELECT 1 FROM access_logs
                        WHERE nfc_uid = :uid AND station_id = :sid AND accessed_at = :ts
                    """),
                    params,
                ).first()
                if exists:
                    continue
                conn.execute(
                    text("""
                        INSERT INTO access_logs (nfc_uid, station_id, status, accessed_at)
                        VALUES (:uid, :sid, :status, :ts)
                    """),
                    params,
                )
                saved += 1
        return saved

    def count_events(self) -> int:
        self.ensure_schema()
        row = self.db.fetch_one("SELECT COUNT(*) AS n FROM access_logs")
        return int(row["n"]) if row else 0

    def list_users(self) -> List[dict]:
        self.ensure_schema()
        return [dict(r) for r in self.db.fetch_all(
            "SELECT nfc_uid, user_name, role, created_at FROM users ORDER BY nfc_uid"
        )]
