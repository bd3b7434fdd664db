"""Enumeration of serial interfaces present on the system."""

import logging
from typing import List

from serial.tools import list_ports as serial_list_ports

from serial_monitor_lib.models import PortInfo

logger = logging.getLogger(__name__)


def list_ports() -> List[PortInfo]:
    """List serial ports currently present, sorted by device name.

    Enumeration failures are logged and reported as an empty list; callers
    cannot tell "no ports" from "query failed", and do not need to.

    Returns:
        PortInfo for each port found
    """
    try:
        found = serial_list_ports.comports()
    except Exception as e:
        logger.warning(f"Serial port enumeration failed: {e}")
        return []

    ports = [
        PortInfo(device=p.device, description=p.description or "", hwid=p.hwid or "")
        for p in found
    ]
    ports.sort(key=lambda p: p.device)
    logger.debug(f"Found {len(ports)} serial ports: {[p.device for p in ports]}")
    return ports
