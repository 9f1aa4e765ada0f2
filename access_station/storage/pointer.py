# =======================================================================================
# access_station/storage/pointer.py - Active Log Pointer Sidecar
# =======================================================================================
import logging
import os
import struct
import time
from pathlib import Path
from typing import NamedTuple, Optional, Union

from ..utils.exceptions import WriteError

logger = logging.getLogger(__name__)

MAGIC = 0x494F5446          # "IOTF"
FORMAT_VERSION = 1
_HEAD = struct.Struct(">IHq")
_LEN = struct.Struct(">H")


class PointerRecord(NamedTuple):
    version: int
    timestamp_ms: int
    path: str


def encode_pointer(path: str, timestamp_ms: Optional[int] = None) -> bytes:
    """4-byte magic, 2-byte version, 8-byte epoch millis, length-prefixed UTF-8 path."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    raw = path.encode("utf-8")
    if len(raw) > 0xFFFF:
        raise ValueError("Path too long for pointer record")
    return _HEAD.pack(MAGIC, FORMAT_VERSION, timestamp_ms) + _LEN.pack(len(raw)) + raw


def decode_pointer(data: bytes) -> Optional[PointerRecord]:
    """Returns None for anything that is not a well-formed pointer record."""
    if len(data) < _HEAD.size + _LEN.size:
        return None
    magic, version, ts = _HEAD.unpack_from(data, 0)
    if magic != MAGIC:
        return None
    (length,) = _LEN.unpack_from(data, _HEAD.size)
    start = _HEAD.size + _LEN.size
    raw = data[start:start + length]
    if len(raw) != length:
        return None
    try:
        return PointerRecord(version=version, timestamp_ms=ts, path=raw.decode("utf-8"))
    except UnicodeDecodeError:
        return None


class PointerSidecar:
    """Binary file recording which access log is currently in progress."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, log_path: str) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "wb") as fh:
                fh.write(encode_pointer(log_path))
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, self.path)
        except OSError as e:
            raise WriteError(self.path, e) from e
        logger.debug("[log] pointer -> %s", log_path)

    def load(self) -> Optional[PointerRecord]:
        if not self.path.exists():
            return None
        try:
            data = self.path.read_bytes()
        except OSError as e:
            logger.error("[log] cannot read pointer %s: %s", self.path, e)
            return None
        record = decode_pointer(data)
        if record is None:
            logger.warning("[log] pointer %s has an invalid format", self.path)
        return record
