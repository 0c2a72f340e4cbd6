"""
udi-ihc-pg3x NodeServer/Plugin for EISY/Polisy

(C) 2025

node IHCDimmer

Class for an IHC (airlink) dimmer resource.
"""

# external libraries
from udi_interface import Node, LOGGER

# personal libraries
from ihc.model import CommandKind, HubCommand, Subtype, TranslatedCommand

# constants
OFF = 0
FULL = 100
INC = 10


class IHCDimmer(Node):
    """Node representing an IHC dimmer.

    Levels reported by the controller are mirrored on ST, and ISY commands
    are written back to the controller as integer resource updates.
    """
    id = "ihcdimmer"

    def __init__(self, polyglot, primary, address, name, device):
        """Initializes the IHCDimmer node.

        Args:
            polyglot: Reference to the Polyglot interface.
            primary: The address of the parent node.
            address: The address of this node.
            name: The name of this node.
            device: Dictionary with the integer 'device_id' of the resource.
        """
        super().__init__(polyglot, primary, address, name)
        self.controller = self.poly.getNode(self.primary)
        self.lpfx = f'{address}:{name}'
        self.device_id = device["device_id"]
        self.subtype = device.get("subtype", Subtype.DIMMER)
        self.dimmer = OFF


    def apply_command(self, command: TranslatedCommand, battery: int):
        """Updates the node from a translated controller notification.

        Args:
            command: The translated command for this resource.
            battery: Last known battery level of the wireless unit.
        """
        LOGGER.info(f"{self.lpfx} command:{command}, battery:{battery}")
        self.setDriver("GV1", command.signal)
        self.setDriver("BATLVL", battery)

        if command.kind == CommandKind.SET_LEVEL and command.level is not None:
            target_level = max(OFF, min(FULL, command.level))
        else:
            target_level = OFF

        if target_level == self.dimmer:
            LOGGER.debug("No state change needed.")
            return

        cmd = None
        if self.dimmer == OFF and target_level > OFF:
            cmd = "DON"
        elif self.dimmer > OFF and target_level == OFF:
            cmd = "DOF"
        elif target_level > self.dimmer:
            cmd = "BRT"
        elif target_level < self.dimmer:
            cmd = "DIM"

        if cmd:
            self.reportCmd(cmd)

        self.dimmer = target_level
        self.setDriver("ST", self.dimmer)
        LOGGER.debug("Exit")


    def _write_level(self, kind: CommandKind, level: int) -> bool:
        level = max(OFF, min(FULL, level))
        return self.controller.write_command(
            HubCommand(self.device_id, self.subtype, kind, level)
        )


    def on_cmd(self, command):
        """Handles the 'DON' command from ISY to turn the dimmer on.

        Args:
            command: The command object from ISY. Can contain a 'value' key.
        """
        LOGGER.info(f"{self.lpfx}, {command}")
        try:
            level = int(command.get("value", self.dimmer))
        except (ValueError, TypeError):
            LOGGER.warning(
                f"Invalid 'value' in command: {command}. Using last known level."
            )
            level = self.dimmer

        if level == OFF:
            level = FULL
        self._write_level(CommandKind.ON, level)
        LOGGER.debug("Exit")


    def off_cmd(self, command):
        """Handles the 'DOF' command from ISY to turn the dimmer off."""
        LOGGER.info(f"{self.lpfx}, {command}")
        self._write_level(CommandKind.OFF, OFF)
        LOGGER.debug("Exit")


    def brt_cmd(self, command):
        """Handles the 'BRT' command from ISY, raising the level by INC."""
        LOGGER.info(f"{self.lpfx}, {command}")
        self._write_level(CommandKind.SET_LEVEL, self.dimmer + INC)
        LOGGER.debug("Exit")


    def dim_cmd(self, command):
        """Handles the 'DIM' command from ISY, lowering the level by INC."""
        LOGGER.info(f"{self.lpfx}, {command}")
        self._write_level(CommandKind.SET_LEVEL, self.dimmer - INC)
        LOGGER.debug("Exit")


    def query(self, command=None):
        """Handles the 'QUERY' command from ISY by reporting all drivers."""
        LOGGER.info(f"{self.lpfx}, {command}")
        self.reportDrivers()
        LOGGER.debug("Exit")


    hint = '0x01020900'
    # home, controller, dimmer switch
    # Hints See: https://github.com/UniversalDevicesInc/hints


    drivers = [
        {'driver': 'ST', 'value': OFF, 'uom': 51, 'name': "Status"},
        {'driver': 'GV1', 'value': 0, 'uom': 56, 'name': "Signal"},
        {'driver': 'BATLVL', 'value': 0, 'uom': 51, 'name': "Battery"},
    ]


    commands = {
        "QUERY": query,
        "DON": on_cmd,
        "DOF": off_cmd,
        "BRT": brt_cmd,
        "DIM": dim_cmd,
    }
