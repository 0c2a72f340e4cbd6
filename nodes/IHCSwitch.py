"""
udi-ihc-pg3x NodeServer/Plugin for EISY/Polisy for an IHC on/off resource.

(C) 2025

Node: IHCSwitch
"""

# std libraries
from typing import Optional

# external libraries
from udi_interface import Node, LOGGER

# personal libraries
from ihc.model import CommandKind, HubCommand, Subtype, TranslatedCommand

# constants
OFF = 0
ON = 100


class IHCSwitch(Node):
    """
    Represents an IHC output or function block input in the ISY system.

    State changes arrive from the controller through apply_command(), and
    DON/DOF from the ISY are written back to the controller as boolean
    resource updates.
    """
    id = 'IHCSW'

    def __init__(self, polyglot, primary: str, address: str, name: str, device: dict):
        """
        Initializes the IHCSwitch node.

        Args:
            polyglot: The Polyglot interface instance.
            primary: The address of the parent node.
            address: The address of this node.
            name: The name of this node.
            device: A dictionary with the integer 'device_id' and 'subtype'
                    of the IHC resource.
        """
        super().__init__(polyglot, primary, address, name)
        self.controller = self.poly.getNode(self.primary)
        self.device_id = device["device_id"]
        self.subtype = device.get("subtype", Subtype.OUTPUT)
        self.on_state = False  # Tracks the on/off state of the resource.
        self.lpfx = f'{address}:{name}'


    def apply_command(self, command: TranslatedCommand, battery: int):
        """
        Updates the node from a translated controller notification.

        Args:
            command: The translated command for this resource.
            battery: Last known battery level of the wireless unit.
        """
        LOGGER.info(f"{self.lpfx} command:{command}, battery:{battery}")
        on = command.kind == CommandKind.SET_LEVEL
        self.setDriver("ST", ON if on else OFF)
        self.setDriver("GV1", command.signal)
        self.setDriver("BATLVL", battery)
        if on != self.on_state:
            self.reportCmd("DON" if on else "DOF")
            self.on_state = on
        LOGGER.debug("Exit")


    def cmd_on(self, command: dict):
        """
        Handles the 'DON' command from the ISY controller.
        NOTE: on_state is not changed until the controller notifies.

        Args:
            command: The command dictionary from the ISY.
        """
        LOGGER.info(f"{self.lpfx}, {command}")
        self.controller.write_command(HubCommand(self.device_id, self.subtype, CommandKind.ON))
        LOGGER.debug("Exit")


    def cmd_off(self, command: dict):
        """
        Handles the 'DOF' command from the ISY controller.

        Args:
            command: The command dictionary from the ISY.
        """
        LOGGER.info(f"{self.lpfx}, {command}")
        self.controller.write_command(HubCommand(self.device_id, self.subtype, CommandKind.OFF))
        LOGGER.debug("Exit")


    def query(self, command: Optional[dict] = None):
        """
        Reports all drivers to the ISY.

        Args:
            command: The command dictionary from the ISY (optional).
        """
        LOGGER.info(f"{self.lpfx}, {command}")
        self.reportDrivers()
        LOGGER.debug("Exit")


    hint = '0x01040200'
    # home, relay, on/off power strip
    # Hints See: https://github.com/UniversalDevicesInc/hints


    """
    ST: on/off, GV1: signal level, BATLVL: battery level of wireless units.
    """
    drivers = [
        {"driver": "ST", "value": OFF, "uom": 78, "name": "Power"},
        {"driver": "GV1", "value": 0, "uom": 56, "name": "Signal"},
        {"driver": "BATLVL", "value": 0, "uom": 51, "name": "Battery"},
    ]


    """
    This is a dictionary of commands. If ISY sends a command to the NodeServer,
    this tells it which method to call. DON calls cmd_on, etc.
    """
    commands = {
        "DON": cmd_on,
        "DOF": cmd_off,
        'QUERY': query,
    }
