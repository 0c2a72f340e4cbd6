"""Translation between controller resource values and hub commands."""

from __future__ import annotations

from ihc.errors import UnsupportedCommandError
from ihc.model import (
    CommandKind,
    Device,
    HubCommand,
    ResourceValue,
    Subtype,
    TranslatedCommand,
)

BATTERY_GOOD_RAW = 1
BATTERY_GOOD = 100
BATTERY_LOW = 9
SIGNAL_SHIFT = 2

BOOLEAN_SUBTYPES = (Subtype.INPUT, Subtype.OUTPUT, Subtype.FB_INPUT)


def quantize_battery(raw: int) -> int:
    """Two-level battery: the controller only reports good or not good."""
    return BATTERY_GOOD if raw == BATTERY_GOOD_RAW else BATTERY_LOW


def quantize_signal(raw: int) -> int:
    return raw >> SIGNAL_SHIFT


def translate_value(value: ResourceValue, device: Device) -> TranslatedCommand:
    """Build the hub command for one notification of a cached device.

    Anything above 1 is a level, everything else is off.
    """
    level = value.int_value
    if level > 1:
        return TranslatedCommand(
            device_id=value.resource_id,
            subtype=device.subtype,
            signal=device.signal,
            kind=CommandKind.SET_LEVEL,
            level=level,
        )
    return TranslatedCommand(
        device_id=value.resource_id,
        subtype=device.subtype,
        signal=device.signal,
        kind=CommandKind.OFF,
    )


def to_resource_value(command: HubCommand) -> ResourceValue:
    """Decode an inbound hub command into the controller update to apply.

    Raises:
        UnsupportedCommandError: for feedback outputs and unknown subtypes.
    """
    if command.subtype in BOOLEAN_SUBTYPES:
        return ResourceValue(command.device_id, command.kind == CommandKind.ON)

    if command.subtype == Subtype.DIMMER:
        if command.kind == CommandKind.OFF:
            level = 0
        else:
            level = int(command.level or 0)
        return ResourceValue(command.device_id, level)

    if command.subtype == Subtype.FB_OUTPUT:
        raise UnsupportedCommandError(
            f"Feedback output {command.device_id:08X} cannot be written"
        )
    raise UnsupportedCommandError(
        f"Unsupported subtype {command.subtype} for {command.device_id:08X}"
    )
