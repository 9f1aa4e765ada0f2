# =======================================================================================
# access_station/utils/validators.py - Validation Helpers
# =======================================================================================
import re
from typing import Optional
from .exceptions import ValidationError

_LABEL_RE = re.compile(r"^[A-Za-z0-9_\-]+$")
_MAX_NAME = 64


def normalize_uid(uid: Optional[str]) -> str:
    """Canonical uid form used at every boundary: trimmed and uppercase."""
    if uid is None:
        return ""
    return uid.strip().upper()


def validate_display_name(name: Optional[str]) -> str:
    """
    Names travel to the device inside "K:<name>" and into CSV rows, so
    line breaks and commas are refused rather than escaped.
    """
    if name is None or not name.strip():
        raise ValidationError("Name is required")
    name = name.strip()
    if len(name) > _MAX_NAME:
        raise ValidationError(f"Name longer than {_MAX_NAME} characters")
    if any(ch in name for ch in ("\n", "\r", ",")):
        raise ValidationError("Name cannot contain commas or line breaks")
    return name


def validate_session_label(label: Optional[str]) -> str:
    """Session labels become file names."""
    if label is None or not label.strip():
        raise ValidationError("Session name is required")
    label = label.strip().replace(" ", "_")
    if not _LABEL_RE.match(label):
        raise ValidationError("Session name may only contain letters, digits, '_' and '-'")
    return label
