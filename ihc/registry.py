"""Persistent device registry.

Rows are kept per hardware instance inside a mapping store. On a running
NodeServer the store is the PG3 custom data (udi_interface.Custom), which
persists a key every time it is assigned, so rows are always written back as
a whole.
"""

from __future__ import annotations

from dataclasses import asdict
from threading import Lock
from typing import Dict, List

from udi_interface import LOGGER

from ihc.cache import parse_device_id, parse_serial_number
from ihc.model import RegistryRow


class DeviceRegistry:
    def __init__(self, store, hardware_id: str):
        self.store = store
        self.hardware_id = hardware_id
        self.key = f"devices_{hardware_id}"
        self._lock = Lock()

    def _load(self) -> Dict[str, dict]:
        data = self.store.get(self.key)
        return dict(data) if data else {}

    def _save(self, data: Dict[str, dict]):
        self.store[self.key] = data

    def rows(self) -> List[RegistryRow]:
        """All rows of this hardware instance, in insertion order."""
        with self._lock:
            data = self._load()
        rows = []
        for device_id, fields in data.items():
            fields = {k: v for k, v in fields.items() if k in RegistryRow.__dataclass_fields__}
            fields["device_id"] = device_id
            rows.append(RegistryRow(**fields))
        return rows

    def used_ids(self) -> List[int]:
        ids = []
        for row in self.rows():
            if not row.used:
                continue
            try:
                ids.append(parse_device_id(row.device_id))
            except ValueError as ex:
                LOGGER.warning(f"Registry: bad device id {row.device_id}: {ex}")
        return ids

    def upsert(self, row: RegistryRow):
        """Add a row or update an existing one, keeping its levels."""
        with self._lock:
            data = self._load()
            fields = asdict(row)
            device_id = fields.pop("device_id")
            existing = data.get(device_id)
            if existing:
                fields["battery"] = existing.get("battery", row.battery)
                fields["signal"] = existing.get("signal", row.signal)
            data[device_id] = fields
            self._save(data)

    def remove(self, device_id: str) -> bool:
        with self._lock:
            data = self._load()
            if data.pop(device_id, None) is None:
                return False
            self._save(data)
            return True

    def update_levels(self, serial_number: int, battery: int, signal: int) -> int:
        """Store battery and signal on every row with this serial number."""
        updated = 0
        with self._lock:
            data = self._load()
            for device_id, fields in data.items():
                try:
                    serial = parse_serial_number(fields.get("serial_number"))
                except ValueError:
                    continue
                if serial == serial_number and serial != 0:
                    data[device_id] = dict(fields, battery=battery, signal=signal)
                    updated += 1
            if updated:
                self._save(data)
        return updated
