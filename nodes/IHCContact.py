"""
udi-ihc-pg3x NodeServer/Plugin for EISY/Polisy

(C) 2025

node IHCContact

Read-only node for IHC inputs and function block outputs.
"""

# external libraries
from udi_interface import Node, LOGGER

# personal libraries
from ihc.model import CommandKind, Subtype, TranslatedCommand

# constants
OFF = 0
ON = 1


class IHCContact(Node):
    """Node mirroring an IHC input; the ISY can query it but not switch it."""
    id = 'IHCCT'

    def __init__(self, polyglot, primary, address, name, device):
        super().__init__(polyglot, primary, address, name)
        self.controller = self.poly.getNode(self.primary)
        self.lpfx = f'{address}:{name}'
        self.device_id = device["device_id"]
        self.subtype = device.get("subtype", Subtype.INPUT)
        self.contact = OFF


    def apply_command(self, command: TranslatedCommand, battery: int):
        """Updates the contact state from a translated notification."""
        LOGGER.info(f"{self.lpfx} command:{command}, battery:{battery}")
        state = ON if command.kind == CommandKind.SET_LEVEL else OFF
        self.setDriver("ST", state)
        self.setDriver("GV1", command.signal)
        self.setDriver("BATLVL", battery)
        if state != self.contact:
            self.reportCmd("DON" if state == ON else "DOF")
            self.contact = state
        LOGGER.debug("Exit")


    def query(self, command=None):
        LOGGER.info(f"{self.lpfx}, {command}")
        self.reportDrivers()
        LOGGER.debug("Exit")


    hint = '0x01020700'
    # home, controller, binary sensor


    # UOM 2 is boolean so the ISY will display 'True/False'
    drivers = [
        {'driver': 'ST', 'value': OFF, 'uom': 2, 'name': "Contact"},
        {'driver': 'GV1', 'value': 0, 'uom': 56, 'name': "Signal"},
        {'driver': 'BATLVL', 'value': 0, 'uom': 51, 'name': "Battery"},
    ]


    commands = {
        "QUERY": query,
    }
