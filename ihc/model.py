"""Core data models shared by the engine, the session client and the nodes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Union

# packet type of every IHC device in the registry (general switch)
GENERAL_SWITCH = 0xF4

# integer meaning of a boolean resource value
BOOL_ON_LEVEL = 100
BOOL_OFF_LEVEL = 0


class Subtype(IntEnum):
    INPUT = 1
    OUTPUT = 2
    DIMMER = 3
    FB_INPUT = 4
    FB_OUTPUT = 5


class ConnectionState(Enum):
    DISCONNECTED = 0
    CONNECTED = 1


class CommandKind(Enum):
    ON = "on"
    OFF = "off"
    SET_LEVEL = "set_level"


@dataclass
class Device:
    id: int
    serial_number: int = 0
    type: int = GENERAL_SWITCH
    subtype: int = Subtype.OUTPUT
    signal: int = 0
    battery: int = 0


@dataclass(frozen=True)
class ResourceValue:
    resource_id: int
    value: Union[bool, int]

    @property
    def int_value(self) -> int:
        """Numeric view of the value; booleans map to the hub's on/off levels."""
        if isinstance(self.value, bool):
            return BOOL_ON_LEVEL if self.value else BOOL_OFF_LEVEL
        return int(self.value)


@dataclass(frozen=True)
class TranslatedCommand:
    device_id: int
    subtype: int
    signal: int
    kind: CommandKind
    level: Optional[int] = None
    unitcode: int = 0


@dataclass(frozen=True)
class HubCommand:
    device_id: int
    subtype: int
    kind: CommandKind
    level: Optional[int] = None


@dataclass
class RegistryRow:
    device_id: str
    name: str = ""
    type: int = GENERAL_SWITCH
    subtype: int = Subtype.OUTPUT
    battery: int = 255
    signal: int = 12
    serial_number: str = "0"
    used: bool = True


@dataclass(frozen=True)
class DetectedDevice:
    serial_number: int
    battery_raw: int
    signal_raw: int
