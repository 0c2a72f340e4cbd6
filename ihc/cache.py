"""In-memory device cache and serial number index.

The cache is built from every registry row of one hardware instance when a
new controller session starts. Wireless units carry a serial number that may
back several logical resources, so the reverse index maps one serial to a
list of device ids.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from udi_interface import LOGGER

from ihc.model import Device, RegistryRow

MAX_DEVICE_ID = 0xFFFFFFFF
MAX_SERIAL_NUMBER = 0xFFFFFFFFFFFFFFFF


def parse_device_id(text) -> int:
    """Parse a device id from its persisted hexadecimal form.

    Raises:
        ValueError: if the text is not hex or is outside 32 bits.
    """
    if isinstance(text, int):
        value = text
    else:
        value = int(str(text).strip(), 16)
    if not 0 <= value <= MAX_DEVICE_ID:
        raise ValueError(f"device id out of range: {text}")
    return value


def parse_serial_number(text) -> int:
    """Parse a serial number from its decimal form, empty meaning no serial."""
    if text is None:
        return 0
    if isinstance(text, int):
        value = text
    else:
        text = str(text).strip()
        if not text:
            return 0
        value = int(text, 10)
    if not 0 <= value <= MAX_SERIAL_NUMBER:
        raise ValueError(f"serial number out of range: {text}")
    return value


def format_device_id(device_id: int) -> str:
    return f"{device_id:08X}"


class DeviceCache:
    """Device id to cached metadata, plus serial number to device ids."""

    def __init__(self):
        self.devices: Dict[int, Device] = {}
        self.serial_index: Dict[int, List[int]] = {}

    def __len__(self) -> int:
        return len(self.devices)

    def __contains__(self, device_id: int) -> bool:
        return device_id in self.devices

    def get(self, device_id: int) -> Optional[Device]:
        return self.devices.get(device_id)

    def ids_for_serial(self, serial_number: int) -> List[int]:
        return list(self.serial_index.get(serial_number, ()))

    def clear(self):
        self.devices = {}
        self.serial_index = {}

    def rebuild(self, rows: Iterable[RegistryRow]) -> int:
        """Replace the cache with devices built from registry rows.

        Both maps are built aside and swapped in together, so readers never
        see a half-built cache.

        Args:
            rows: All registry rows of this hardware instance.

        Returns:
            int: Number of cached devices.
        """
        devices: Dict[int, Device] = {}
        serial_index: Dict[int, List[int]] = {}
        for row in rows:
            try:
                device_id = parse_device_id(row.device_id)
                serial = parse_serial_number(row.serial_number)
            except (TypeError, ValueError) as ex:
                LOGGER.warning(f"Skipping registry row {row.device_id}: {ex}")
                continue

            devices[device_id] = Device(
                id=device_id,
                serial_number=serial,
                type=int(row.type),
                subtype=int(row.subtype),
                signal=int(row.signal),
                battery=int(row.battery),
            )
            if serial != 0:
                ids = serial_index.setdefault(serial, [])
                if device_id not in ids:
                    ids.append(device_id)

        self.devices, self.serial_index = devices, serial_index
        LOGGER.debug(f"Cache rebuilt: {len(devices)} devices, {len(serial_index)} serials")
        return len(devices)

    def update_levels(self, serial_number: int, battery: int, signal: int) -> List[int]:
        """Set battery and signal on every device backed by a serial number."""
        ids = self.ids_for_serial(serial_number)
        for device_id in ids:
            device = self.devices.get(device_id)
            if device is not None:
                device.battery = battery
                device.signal = signal
        return ids
