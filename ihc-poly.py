#!/usr/bin/env python3
"""
This is a Plugin/NodeServer for Polyglot v3 written in Python3
It is a plugin to interface an LK IHC controller and Polyglot for EISY/Polisy

udi-ihc-pg3x NodeServer/Plugin for EISY/Polisy

(c) 2025
"""

# std libraries
import sys

# external libraries
import udi_interface

# local imports
from nodes import Controller

LOGGER = udi_interface.LOGGER

VERSION = "0.1.0"

"""
0.1.0
DONE controller session with throttled reconnect
DONE runtime value notifications for used resources
DONE battery & RSSI refresh of airlink units
DONE output, dimmer, input, function block nodes
DONE LOGOUT & REFRESH controller commands
"""

if __name__ == "__main__":
    polyglot = None
    try:
        """
        Instantiates the Interface to Polyglot.
        """
        polyglot = udi_interface.Interface([])
        polyglot.start(VERSION)
        polyglot.updateProfile()

        """
        Creates the Controller Node and passes in the Interface, the node's
        parent address, node's address, and name/title
        """
        control = Controller(polyglot, "ihcctrl", "ihcctrl", "IHC")

        """
        Sits around and does nothing forever, keeping your program running.
        """
        polyglot.runForever()
    except (KeyboardInterrupt, SystemExit):
        LOGGER.warning("Received interrupt or exit...")
        """
        Catch SIGTERM or Control-C and exit cleanly.
        """
        if polyglot is not None:
            polyglot.stop()
    except Exception as err:
        LOGGER.error("Exception: {0}".format(err), exc_info=True)
    sys.exit(0)
