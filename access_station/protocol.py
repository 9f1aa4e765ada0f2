# =======================================================================================
# access_station/protocol.py - Serial Line Protocol
# =======================================================================================
"""
Line protocol between host and the NFC reader/servo device
==========================================================

Device -> host (newline terminated text)
----------------------------------------
UID:04-A1-B2-C3   : tag presented (separators '-' or whitespace)
...PONG:<tag>...  : reply to the connectivity probe
anything else     : diagnostics, ignored

Host -> device
--------------
1 / 0     : access granted / denied
E         : enter enrollment
A         : back to access mode
W         : waiting for the administrator card
X         : administrator card rejected
K, K:name : enrollment confirmed (optional display name)
P         : connectivity probe
"""
import re
from dataclasses import dataclass
from typing import Optional, Union

from .models.enums import DeviceCommand
from .utils.validators import normalize_uid

UID_PATTERN = re.compile(r"UID:?\s*([A-Fa-f0-9\s\-]+)")
PONG_PATTERN = re.compile(r"PONG:\s*(\S*)")

LINE_END = b"\n"


@dataclass(frozen=True)
class UidReported:
    uid: str


@dataclass(frozen=True)
class Pong:
    firmware_tag: str


@dataclass(frozen=True)
class Unrecognized:
    line: str


Event = Union[UidReported, Pong, Unrecognized]


def parse_line(raw: Union[str, bytes, None]) -> Optional[Event]:
    """Parse one device line. Blank input yields None."""
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="ignore")
    line = raw.strip()
    if not line:
        return None

    pong = PONG_PATTERN.search(line)
    if pong:
        return Pong(firmware_tag=pong.group(1))

    match = UID_PATTERN.search(line)
    if match:
        uid = normalize_uid(match.group(1))
        # "UID: -" and friends carry no hex digits
        if any(ch not in "- \t" for ch in uid):
            return UidReported(uid=uid)

    return Unrecognized(line=line)


def encode_command(code: Union[DeviceCommand, str]) -> bytes:
    """Single command byte followed by newline."""
    value = code.value if isinstance(code, DeviceCommand) else code
    if len(value) != 1:
        raise ValueError(f"Command must be a single character, got {value!r}")
    return value.encode("ascii") + LINE_END


def encode_message(message: str) -> bytes:
    """Keyed command such as "K:Ana", newline terminated."""
    if "\n" in message or "\r" in message:
        raise ValueError("Message cannot contain line breaks")
    return message.encode("utf-8") + LINE_END


def confirm_payload(name: Optional[str] = None) -> str:
    if name:
        return f"{DeviceCommand.CONFIRM.value}:{name}"
    return DeviceCommand.CONFIRM.value


def decode_command(data: bytes) -> tuple:
    """
    Inverse of encode_command/encode_message, used by device simulators
    and tests. Returns (DeviceCommand, payload or None).
    """
    text = data.decode("utf-8").rstrip("\r\n")
    if not text:
        raise ValueError("Empty command")
    command = DeviceCommand(text[0])
    payload = None
    if len(text) > 1:
        if text[1] != ":":
            raise ValueError(f"Malformed keyed command: {text!r}")
        payload = text[2:]
    return command, payload
