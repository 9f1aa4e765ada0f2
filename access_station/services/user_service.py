# =======================================================================================
# access_station/services/user_service.py - User Management Service
# =======================================================================================
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..models.enums import NotificationType
from ..models.schemas import Credential
from ..storage.user_registry import UserRegistry
from ..utils.exceptions import AlreadyRegistered, ValidationError
from ..utils.validators import normalize_uid, validate_display_name
from .notification_service import NotificationHub
from .sync_service import MirrorService

logger = logging.getLogger(__name__)


class UserService:
    """Registers and removes credentials: local registry first, SQL mirror best effort."""

    def __init__(
        self,
        registry: UserRegistry,
        notifier: NotificationHub,
        mirror: Optional[MirrorService] = None,
    ):
        self.registry = registry
        self.notifier = notifier
        self.mirror = mirror

    def all_users(self) -> List[Credential]:
        return sorted(self.registry.all(), key=lambda c: c.uid)

    def find(self, uid: str) -> Optional[Credential]:
        return self.registry.find(uid)

    def is_registered(self, uid: str) -> bool:
        return self.registry.exists(uid)

    def count(self) -> int:
        return self.registry.count()

    def register(self, uid: str, name: str) -> Credential:
        uid = normalize_uid(uid)
        if not uid:
            raise ValidationError("UID is required")
        name = validate_display_name(name)
        if self.registry.exists(uid):
            raise AlreadyRegistered(uid)

        cred = Credential(uid=uid, name=name, registered_at=datetime.now().replace(microsecond=0))
        self.registry.save(cred)

        if self.mirror is not None:
            try:
                self.mirror.save_credential(cred)
            except SQLAlchemyError as e:
                # the nightly batch re-syncs the registry
                logger.error("[users] mirror insert failed for %s: %s", uid, e)

        logger.info("[users] registered %s - %s", uid, name)
        return cred

    def delete(self, uid: str) -> bool:
        uid = normalize_uid(uid)
        deleted = self.registry.delete(uid)
        if not deleted:
            logger.warning("[users] delete: %s not found", uid)
            return False

        if self.mirror is not None:
            try:
                self.mirror.delete_credential(uid)
            except SQLAlchemyError as e:
                logger.error("[users] mirror delete failed for %s: %s", uid, e)

        self.notifier.publish(NotificationType.USER_DELETED, {"uid": uid})
        return True
