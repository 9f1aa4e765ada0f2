# =======================================================================================
# access_station/workers/serial_worker.py - Serial Transport (reader thread)
# =======================================================================================
import logging
import threading
from typing import Callable, Optional, Union

import serial

from ..config import config
from ..models.enums import DeviceCommand
from ..protocol import Event, Pong, encode_command, encode_message, parse_line
from ..utils.exceptions import PortUnavailable

logger = logging.getLogger(__name__)

EventCallback = Callable[[Event], None]

_PARITY = {
    "N": serial.PARITY_NONE,
    "E": serial.PARITY_EVEN,
    "O": serial.PARITY_ODD,
}
_STOP_BITS = {1: serial.STOPBITS_ONE, 2: serial.STOPBITS_TWO}


class SerialTransport:
    """
    Owns the one serial port of the station.

    A dedicated reader thread blocks on readline() and hands every parsed
    line to the registered callback *on the reader thread itself*. This is
    intentional: the access reply to the device goes out before the next
    line is read. Callbacks that need slow work must hand it off.
    """

    def __init__(
        self,
        serial_factory: Callable[..., serial.Serial] = serial.Serial,
        read_timeout: Optional[float] = None,
        activation_delay: Optional[float] = None,
    ):
        self._factory = serial_factory
        self._read_timeout = config.SERIAL_TIMEOUT if read_timeout is None else read_timeout
        self._activation_delay = (
            config.SERIAL_ACTIVATION_DELAY if activation_delay is None else activation_delay
        )
        self._ser: Optional[serial.Serial] = None
        self._port_name: Optional[str] = None
        self._callback: Optional[EventCallback] = None

        self._state_lock = threading.RLock()
        self._write_lock = threading.Lock()
        self._stop_evt = threading.Event()
        self._rx_thread: Optional[threading.Thread] = None

        self._pong_evt = threading.Event()
        self._last_pong: Optional[str] = None

    # ------------------------------------------------------------------
    # Open / Close
    # ------------------------------------------------------------------
    def open(
        self,
        port_name: str,
        on_event: Optional[EventCallback] = None,
        baud: Optional[int] = None,
        data_bits: Optional[int] = None,
        stop_bits: Optional[int] = None,
        parity: Optional[str] = None,
    ) -> None:
        """Open port_name and start the reader. An already open port is closed first."""
        with self._state_lock:
            if self._ser is not None:
                logger.warning("[serial] %s already open; restarting on %s", self._port_name, port_name)
                self.close()

            try:
                ser = self._factory(
                    port=port_name,
                    baudrate=baud or config.SERIAL_BAUD,
                    bytesize=data_bits or config.SERIAL_DATA_BITS,
                    stopbits=_STOP_BITS.get(stop_bits or config.SERIAL_STOP_BITS, serial.STOPBITS_ONE),
                    parity=_PARITY.get((parity or config.SERIAL_PARITY).upper(), serial.PARITY_NONE),
                    timeout=self._read_timeout,
                )
            except (serial.SerialException, OSError, ValueError) as e:
                raise PortUnavailable(port_name, str(e)) from e

            self._ser = ser
            self._port_name = port_name
            self._callback = on_event
            self._stop_evt = threading.Event()
            self._rx_thread = threading.Thread(
                target=self._run_loop, args=(ser, self._stop_evt),
                name=f"serial-reader-{port_name}", daemon=True,
            )
            self._rx_thread.start()
            logger.info("[serial] %s open @ %s baud", port_name, baud or config.SERIAL_BAUD)

            if self._activation_delay > 0:
                threading.Thread(
                    target=self._activate, args=(ser, self._stop_evt), daemon=True
                ).start()

    def close(self) -> None:
        """Stop the reader and release the port. No-op when already closed."""
        with self._state_lock:
            ser, thread = self._ser, self._rx_thread
            if ser is None:
                return
            self._stop_evt.set()
            self._ser = None
            self._rx_thread = None
            self._callback = None
            try:
                ser.close()
            except (serial.SerialException, OSError) as e:
                logger.warning("[serial] error closing %s: %s", self._port_name, e)
            logger.info("[serial] %s closed", self._port_name)
            self._port_name = None

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2)

    @property
    def is_open(self) -> bool:
        ser = self._ser
        return ser is not None and bool(getattr(ser, "is_open", True))

    @property
    def port_name(self) -> Optional[str]:
        return self._port_name

    def _activate(self, ser, stop_evt: threading.Event) -> None:
        # board resets when the port opens; tell it to start in access mode
        if stop_evt.wait(self._activation_delay):
            return
        if self._ser is ser:
            self.send_command(DeviceCommand.ACCESS_MODE)
            logger.info("[serial] activation command sent")

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------
    def send(self, data: bytes) -> bool:
        """Write raw bytes. Failures are logged and reported as False, never raised."""
        ser = self._ser
        if ser is None:
            logger.warning("[serial] cannot send %r: port not open", data)
            return False
        try:
            with self._write_lock:
                ser.write(data)
                ser.flush()
        except (serial.SerialException, OSError) as e:
            logger.error("[serial] write failed %r: %s", data, e)
            return False
        logger.debug("[serial] Sent: %r", data)
        return True

    def send_command(self, code: Union[DeviceCommand, str]) -> bool:
        return self.send(encode_command(code))

    def send_message(self, message: str) -> bool:
        return self.send(encode_message(message))

    # ------------------------------------------------------------------
    # Probe
    # ------------------------------------------------------------------
    def probe(self, timeout: Optional[float] = None) -> Optional[str]:
        """Send the probe command and wait for PONG. Returns the firmware tag or None."""
        timeout = config.PROBE_TIMEOUT if timeout is None else timeout
        self._pong_evt.clear()
        self._last_pong = None
        if not self.send_command(DeviceCommand.PROBE):
            return None
        if self._pong_evt.wait(timeout):
            return self._last_pong
        logger.info("[serial] no PONG from %s within %.1fs", self._port_name, timeout)
        return None

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------
    def _run_loop(self, ser, stop_evt: threading.Event) -> None:
        logger.debug("[serial] reader started")
        while not stop_evt.is_set():
            try:
                raw = ser.readline()
            except (serial.SerialException, OSError, TypeError, AttributeError) as e:
                # closing the port from another thread lands here too
                if not stop_evt.is_set():
                    logger.error("[serial] read failed on %s: %s", self._port_name, e)
                break

            if not raw:
                continue
            event = parse_line(raw)
            if event is None:
                continue
            logger.debug("[serial] Received: %s", event)

            if isinstance(event, Pong):
                self._last_pong = event.firmware_tag
                self._pong_evt.set()

            callback = self._callback
            if callback is None:
                continue
            try:
                callback(event)
            except Exception:
                logger.exception("[serial] event callback failed")
        logger.debug("[serial] reader exit")
