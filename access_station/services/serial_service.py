# =======================================================================================
# access_station/services/serial_service.py - Port Discovery and Probe
# =======================================================================================
import logging
import time
from typing import Callable, List, Optional

import serial
from serial.tools import list_ports

from ..config import config
from ..models.schemas import PortInfo, ProbeResult
from ..utils.exceptions import PortUnavailable
from ..workers.serial_worker import SerialTransport

logger = logging.getLogger(__name__)


class SerialService:
    """Lists serial ports and checks whether the access firmware answers on one."""

    def __init__(
        self,
        transport: SerialTransport,
        serial_factory: Callable[..., serial.Serial] = serial.Serial,
        settle_seconds: Optional[float] = None,
    ):
        self.transport = transport
        self._factory = serial_factory
        self._settle = config.SERIAL_ACTIVATION_DELAY if settle_seconds is None else settle_seconds

    def list_ports(self) -> List[PortInfo]:
        ports = [PortInfo(device=p.device, description=p.description) for p in list_ports.comports()]
        logger.info("[serial] %d ports found", len(ports))
        return ports

    def probe_port(self, port_name: str, timeout: Optional[float] = None) -> ProbeResult:
        """
        PING/PONG check. Tells "no device" (port cannot open) apart from
        "wrong device" (port opens, nobody answers PONG).
        """
        if self.transport.is_open and self.transport.port_name == port_name:
            tag = self.transport.probe(timeout)
            return self._result(port_name, tag)

        probe_transport = SerialTransport(serial_factory=self._factory, activation_delay=0)
        try:
            probe_transport.open(port_name)
        except PortUnavailable as e:
            logger.warning("[serial] probe: %s", e)
            return ProbeResult(port_name=port_name, success=False, message=str(e))

        try:
            if self._settle > 0:
                # opening resets most boards; give the firmware time to boot
                time.sleep(self._settle)
            tag = probe_transport.probe(timeout)
        finally:
            probe_transport.close()
        return self._result(port_name, tag)

    @staticmethod
    def _result(port_name: str, tag: Optional[str]) -> ProbeResult:
        if tag is None:
            return ProbeResult(
                port_name=port_name, success=False,
                message="Port opened but no PONG received: wrong device or firmware",
            )
        return ProbeResult(
            port_name=port_name, success=True, firmware=tag or None,
            message="Access firmware responded",
        )
