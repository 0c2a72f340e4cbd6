"""IHC Polyglot NodeServer for EISY/Polisy.

This module provides the Controller class for the udi-ihc-pg3x NodeServer,
which bridges an LK IHC controller and the EISY/Polisy home automation
system through the Polyglot interface.

The Controller loads configuration, registers the configured IHC resources,
creates their nodes and runs the synchronization engine that keeps the
controller session alive and forwards value changes to the nodes.

Copyright: (C) 2025
"""

# std libraries
import json, yaml, logging
from threading import Event, Condition
from typing import Optional, Any
import xml.etree.ElementTree as ET

# external libraries
from udi_interface import Node, LOGGER, Custom, LOG_HANDLER

# personal libraries
from ihc.cache import parse_device_id, parse_serial_number, format_device_id
from ihc.client import IHCClient
from ihc.engine import SyncEngine
from ihc.model import GENERAL_SWITCH, HubCommand, RegistryRow, Subtype, TranslatedCommand
from ihc.registry import DeviceRegistry

# Nodes
from nodes import *

DEFAULT_CONFIG = {
    'ihc_host': None,
    'ihc_user': 'admin',
    'ihc_password': None,
    'ihc_timeout': 10,
}

DEVICE_ADDRESS_PREFIX = 'i'
PROJECT_FILE = 'ihc_project.xml'

# IHC resource kinds and the node class and subtype used for each
DEVICE_CONFIG = {
    'output': {'node_class': IHCSwitch, 'subtype': Subtype.OUTPUT},
    'fb_input': {'node_class': IHCSwitch, 'subtype': Subtype.FB_INPUT},
    'dimmer': {'node_class': IHCDimmer, 'subtype': Subtype.DIMMER},
    'input': {'node_class': IHCContact, 'subtype': Subtype.INPUT},
    'fb_output': {'node_class': IHCContact, 'subtype': Subtype.FB_OUTPUT},
}


class Controller(Node):
    """Controller class for the IHC Polyglot NodeServer.

    Attributes:
        id (str): Unique identifier for the controller node ('ihcctrl').
        hb (int): Heartbeat counter for monitoring controller status.
        numNodes (int): Number of device nodes.
        n_queue (list): Queue for tracking node creation completion.
        queue_condition (Condition): Threading condition for node queue synchronization.
        ready_event (Event): Event signaling when controller is ready for operation.
        all_handlers_st_event (Event): Event signaling when all handlers are complete.
        discovery_in (bool): Flag indicating if discovery is currently in progress.
        devlist (list): List of configured IHC devices.
        registry (DeviceRegistry): Persistent registry of the configured devices.
        engine (SyncEngine): Synchronization engine, None until started.
    """
    id = 'ihcctrl'

    def __init__(self, poly, primary, address, name):
        """Initialize the Controller node.

        Args:
            poly: Polyglot interface instance for communication with EISY/Polisy.
            primary: Primary node address (typically the controller itself).
            address: Unique address for this controller node.
            name: Human-readable name for the controller node.
        """
        super().__init__(poly, primary, address, name)

        # important flags, timers, vars
        self.hb = 0 # heartbeat
        self.numNodes = 0

        # storage arrays & conditions
        self.n_queue = []
        self.queue_condition = Condition()

        # Events & in
        self.ready_event = Event()
        self.all_handlers_st_event = Event()
        self.discovery_in = False

        # startup completion flags
        self.handler_params_st = None
        self.handler_data_st = None
        self.handler_typedparams_st = None
        self.handler_typeddata_st = None

        self.devlist = []
        # e.g. [{'id': '0x3a5c12', 'type': 'dimmer', 'name': 'Kitchen', 'serial': '109955793651093'}]
        self.general = {}
        self.valid_configuration = False

        self.ihc_host = None
        self.ihc_user = None
        self.ihc_password = None
        self.ihc_timeout = None
        self.engine: Optional[SyncEngine] = None

        # Create data storage classes
        self.Notices         = Custom(poly, 'notices')
        self.Parameters      = Custom(poly, 'customparams')
        self.Data            = Custom(poly, 'customdata')
        self.TypedParameters = Custom(poly, 'customtypedparams')
        self.TypedData       = Custom(poly, 'customtypeddata')

        self.registry = DeviceRegistry(self.Data, address)

        # Subscribe to various events from the Interface class.
        self.poly.subscribe(self.poly.START,             self.start, address)
        self.poly.subscribe(self.poly.POLL,              self.poll)
        self.poly.subscribe(self.poly.LOGLEVEL,          self.handleLevelChange)
        self.poly.subscribe(self.poly.CUSTOMPARAMS,      self.parameterHandler)
        self.poly.subscribe(self.poly.CUSTOMDATA,        self.dataHandler)
        self.poly.subscribe(self.poly.STOP,              self.stop)
        self.poly.subscribe(self.poly.DISCOVER,          self.discover_cmd)
        self.poly.subscribe(self.poly.CUSTOMTYPEDDATA,   self.typedDataHandler)
        self.poly.subscribe(self.poly.CUSTOMTYPEDPARAMS, self.typedParameterHandler)
        self.poly.subscribe(self.poly.ADDNODEDONE,       self.node_queue)

        # Tell the interface we have subscribed to all the events we need.
        # Once we call ready(), the interface will start publishing data.
        self.poly.ready()

        # Tell the interface we exist.
        self.poly.addNode(self, conn_status='ST')


    def start(self):
        """Initialize and start the IHC NodeServer.

        This method is called by the Polyglot handler during startup:
        1. Clearing notices and setting initial status
        2. Updating the ISY profile if necessary
        3. Waiting for all handlers to complete initialization
        4. Registering configured devices and creating their nodes
        5. Starting the synchronization engine
        6. Signaling readiness to child nodes
        """
        LOGGER.info(f"IHC PG3 NodeServer {self.poly.serverdata['version']}")
        self.Notices.clear()
        self.Notices['hello'] = 'Start-up'
        self.setDriver('ST', 1, report = True, force = True)

        # Send the profile files to the ISY if neccessary or version changed.
        self.poly.updateProfile()

        # Send the default custom parameters documentation file to Polyglot
        self.poly.setCustomParamsDoc()

        # Initializing a heartbeat
        self.heartbeat()

        # Wait for all handlers to finish
        LOGGER.warning(f'Waiting for all handlers to complete...')
        self.Notices['waiting'] = 'Waiting on valid configuration'
        self.all_handlers_st_event.wait(timeout=60)
        if not self.all_handlers_st_event.is_set():
            # start-up failed
            LOGGER.error("Timed out waiting for handlers to startup")
            self.setDriver('ST', 2) # start-up failed
            self.Notices['error'] = 'Error start-up timeout.  Check config & restart'
            return

        # Discover and wait for discovery to complete
        discoverSuccess = self.discover_cmd()

        if not discoverSuccess:
            # start-up failed
            LOGGER.error(f'First discovery failed!!! exit {self.name}')
            self.Notices['error'] = 'Error first discovery.  Check config & restart'
            self.setDriver('ST', 2)
            return

        engineSuccess = self._engine_start()

        if not engineSuccess:
            # start-up failed
            LOGGER.error(f'IHC engine start failed!!! exit {self.name}')
            self.Notices['error'] = 'Error IHC controller settings.  Check config & restart'
            self.setDriver('ST', 2)
            return

        self.Notices.delete('waiting')
        LOGGER.info('Started IHC NodeServer v%s', self.poly.serverdata)
        self.query(command = f"{self.name}: STARTUP")

        # signal to the nodes, its ok to start
        self.ready_event.set()

        # clear inital start-up message
        if self.Notices.get('hello'):
            self.Notices.delete('hello')

        LOGGER.info(f'exit {self.name}')


    def _engine_start(self):
        """Create the controller client and start the synchronization engine.

        Returns:
            bool: True if the engine is running, False otherwise.
        """
        if not self.ihc_host:
            LOGGER.error("ihc_host is not configured")
            self.Notices['ihc'] = 'Please set ihc_host'
            return False
        if self.engine is not None and self.engine.is_running():
            return True

        client = IHCClient(
            self.ihc_host,
            self.ihc_user or "",
            self.ihc_password or "",
            timeout=self.ihc_timeout or DEFAULT_CONFIG['ihc_timeout'],
        )
        self.engine = SyncEngine(client, self.registry, self.deliver, name=self.name)
        self.engine.start()
        LOGGER.info(f"IHC engine started for {self.ihc_host}")
        return True


    def node_queue(self, data):
        """Handle node creation completion notification.

        The node_queue() and wait_for_node_done() methods work together to
        let the controller wait until an asynchronously added node exists.

        Args:
            data (dict): Event data containing the node address.
        """
        address = data.get('address')
        if address:
            with self.queue_condition:
                self.n_queue.append(address)
                self.queue_condition.notify()

    def wait_for_node_done(self):
        """Wait for a node creation to complete."""
        with self.queue_condition:
            while not self.n_queue:
                self.queue_condition.wait(timeout = 0.2)
            self.n_queue.pop()


    def dataHandler(self, data):
        """Handle custom data loading from Polyglot.

        The custom data holds the device registry, so it must be loaded
        before discovery runs.

        Args:
            data: Custom data from Polyglot interface, can be None.
        """
        LOGGER.debug(f'enter: Loading data {data}')
        if data is None:
            LOGGER.warning("No custom data")
        else:
            self.Data.load(data)
        self.handler_data_st = True
        self.check_handlers()


    def parameterHandler(self, params):
        """Handle custom parameters from Polyglot dashboard.

        Args:
            params: Custom parameters from Polyglot interface.
        """
        LOGGER.info('parmHandler: Loading parameters now')
        self.Parameters.load(params)
        self.handler_params_st = True
        LOGGER.info('parmHandler Done...')


    def typedParameterHandler(self, params):
        """Handle custom typed parameters from Polyglot."""
        LOGGER.debug('Loading typed parameters now')
        self.TypedParameters.load(params)
        LOGGER.debug(params)
        self.handler_typedparams_st = True
        self.check_handlers()


    def typedDataHandler(self, data):
        """Handle custom typed data from Polyglot dashboard."""
        LOGGER.debug('Loading typed data now')
        if data is None:
            LOGGER.warning("No custom data")
        else:
            self.TypedData.load(data)
        LOGGER.debug(f'Loaded typed data {data}')
        self.handler_typeddata_st = True
        self.check_handlers()


    def check_handlers(self):
        """Set all_handlers_st_event once every startup handler has run."""
        if (self.handler_params_st and self.handler_data_st and
            self.handler_typedparams_st and self.handler_typeddata_st):
            self.all_handlers_st_event.set()


    def checkParams(self):
        """Load and validate configuration parameters.

        Loads the device list from either a YAML devfile or a JSON devlist
        parameter, then the IHC connection parameters.

        Returns:
            bool: True if configuration loaded successfully, False otherwise.
        """
        # Load device configuration from YAML file
        if self.Parameters.get("devfile"):
            if not self._load_devfile_config():
                return False

        # Load device configuration from JSON string
        elif self.Parameters.get("devlist"):
            if not self._load_devlist_config():
                return False
        else:
            LOGGER.error("checkParams: No devfile or devlist configured! Must be configured.")
            return False

        if not self._load_ihc_parameters():
            return False
        self.valid_configuration = True
        return True


    def _load_devfile_config(self):
        """Load device configuration from YAML file.

        The YAML file holds a 'devices' section and an optional 'general'
        section, an array of single-key dictionaries flattened here.

        Returns:
            bool: True if configuration loaded successfully, False otherwise.
        """
        devfile_path = self.Parameters["devfile"]
        if not devfile_path or not isinstance(devfile_path, str):
            LOGGER.error("Invalid devfile path provided")
            return False

        try:
            with open(devfile_path, 'r', encoding='utf-8') as file:
                dev_yaml = yaml.safe_load(file)
        except (OSError, yaml.YAMLError) as ex:
            error_type = "open" if isinstance(ex, OSError) else "parse"
            LOGGER.error(f"Failed to {error_type} {devfile_path}: {ex}")
            return False

        if not isinstance(dev_yaml, dict) or "devices" not in dev_yaml:
            LOGGER.error(f"Manual discovery file {devfile_path} is missing devices section")
            return False
        devices = dev_yaml.get("devices") or []
        general = dev_yaml.get("general") or []
        LOGGER.info(f"devices = {devices}")

        self.devlist = devices
        self.general = {k: v for d in general for k, v in d.items()}
        return True


    def _load_devlist_config(self):
        """Load device configuration from JSON string.

        Accepts one device dictionary or a list of them; entries update the
        devlist by id.

        Returns:
            bool: True if configuration loaded successfully, False otherwise.
        """
        devlist_data = self.Parameters["devlist"]
        if not devlist_data:
            LOGGER.error("No devlist data provided")
            return False

        try:
            if isinstance(devlist_data, str):
                parsed_data = json.loads(devlist_data)
            else:
                parsed_data = devlist_data

            if isinstance(parsed_data, dict):
                parsed_data = [parsed_data]
            if not isinstance(parsed_data, list):
                LOGGER.error("Devlist data must be a dictionary or a list")
                return False

            for entry in parsed_data:
                self.upsert_by_id(self.devlist, entry)
        except (json.JSONDecodeError, TypeError, AttributeError) as ex:
            LOGGER.error(f"Failed to parse devlist: {ex}")
            return False
        return True


    def upsert_by_id(self, config_list, new_entry):
        """Replace the entry with the same 'id' or append the new one."""
        new_id = new_entry.get('id')
        for i, entry in enumerate(config_list):
            if entry.get('id') == new_id:
                config_list[i] = new_entry  # Replace
                return
        config_list.append(new_entry)  # Append if not found


    def _load_ihc_parameters(self) -> bool:
        """Load IHC connection parameters with fallback hierarchy.

        1. Parameters from Polyglot interface
        2. General configuration from devfile
        3. Default configuration values

        Returns:
            bool: True if parameters loaded successfully, False otherwise.
        """
        try:
            self.ihc_host = self._get_str(
                self.Parameters.get("ihc_host"),
                self.general.get("ihc_host"),
                DEFAULT_CONFIG.get("ihc_host")
            )
            self.ihc_user = self._get_str(
                self.Parameters.get("ihc_user"),
                self.general.get("ihc_user"),
                DEFAULT_CONFIG.get("ihc_user")
            )
            self.ihc_password = self._get_str(
                self.Parameters.get("ihc_password"),
                self.general.get("ihc_password"),
                DEFAULT_CONFIG.get("ihc_password")
            )
            self.ihc_timeout = self._get_int(
                self.Parameters.get("ihc_timeout"),
                self.general.get("ihc_timeout"),
                DEFAULT_CONFIG.get("ihc_timeout")
            )
        except (ValueError, TypeError) as ex:
            LOGGER.error(f"Failed to parse IHC parameters: {ex}")
            return False
        if not self.ihc_host:
            LOGGER.error("ihc_host is not configured")
            self.Notices['ihc'] = 'Please set ihc_host'
            return False
        self.Notices.delete('ihc')
        return True


    @staticmethod
    def _get_str(*args: Optional[Any]) -> Optional[str]:
        """Return the first string among the arguments, or None."""
        for val in args:
            if isinstance(val, str):
                return val
        return None

    @staticmethod
    def _get_int(*args: Optional[Any]) -> Optional[int]:
        """Return the first integer (or digit string) among the arguments, or None."""
        for val in args:
            if isinstance(val, int):
                return val
            if isinstance(val, str) and val.isdigit():
                return int(val)
        return None


    def handleLevelChange(self, level):
        """Handle log level changes from Polyglot.

        Args:
            level (dict): Dictionary containing the new log level information.
        """
        LOGGER.info(f'enter: level={level}')
        if level['level'] < 10:
            LOGGER.info("Setting basic config to DEBUG...")
            LOG_HANDLER.set_basic_config(True,logging.DEBUG)
        else:
            LOGGER.info("Setting basic config to WARNING...")
            LOG_HANDLER.set_basic_config(True,logging.WARNING)
        LOGGER.info(f'exit: level={level}')


    def poll(self, flag):
        """Handle polling events from Polyglot.

        Short polls send the heartbeat and report the controller session
        state and error counter.

        Args:
            flag (dict): Polling flag indicating the type of poll (short/long).
        """
        # no updates until node is through start-up
        if not self.ready_event.is_set():
            LOGGER.error(f"Node not ready yet, exiting")
            return

        if 'shortPoll' in flag:
            LOGGER.debug('shortPoll (controller)')
            self.heartbeat()
            self.update_status()


    def update_status(self):
        """Report the IHC session state (GV1) and error count (GV2)."""
        if self.engine is None:
            self.setDriver('GV1', 0)
            return
        self.setDriver('GV1', 1 if self.engine.connection.is_connected() else 0)
        self.setDriver('GV2', self.engine.error_count)
        if self.engine.is_stalled():
            LOGGER.warning(f"{self.name}: IHC worker has not cycled since {self.engine.last_heartbeat}")


    def query(self, command=None):
        """Query all nodes in the system so they report their drivers."""
        LOGGER.info(f"Enter {command}")
        nodes = self.poly.getNodes()
        for node in nodes:
            nodes[node].reportDrivers()
        LOGGER.debug(f"Exit")


    def discover_cmd(self, command=None):
        """Perform device registration and node creation.

        Called during controller startup and when a DISCOVER command is
        received from the ISY, e.g. after the devfile was edited.

        Args:
            command (str, optional): Command string for logging purposes.

        Returns:
            bool: True if discovery completed successfully, False otherwise.
        """
        LOGGER.info(command)
        success = False
        if self.discovery_in:
            LOGGER.info('Discover already running.')
            return success

        self.discovery_in = True
        LOGGER.info("In Discovery...")

        if self.checkParams() and self._discover():
            success = True
            LOGGER.info("Discovery Success")
            if self.engine is not None:
                self.engine.request_rebuild()
        else:
            LOGGER.error("Discovery Failure")
        self.discovery_in = False
        return success


    def _discover(self):
        """Register configured devices and manage the node lifecycle.

        Returns:
            bool: True if discovery completed successfully, False otherwise.
        """
        success = False
        nodes_existing = self.poly.getNodes()
        LOGGER.debug(f"current nodes = {nodes_existing}")
        nodes_old = [node for node in nodes_existing if node != self.address]
        nodes_new = []

        try:
            registered = self._discover_nodes(nodes_existing, nodes_new)
            self._cleanup_registry(registered)
            self._cleanup_nodes(nodes_new, nodes_old)
            self.numNodes = len(nodes_new)
            self.setDriver('GV0', self.numNodes)
            success = True
            LOGGER.info(f"Discovery complete. success = {success}")
        except Exception as ex:
            LOGGER.error(f'Discovery Failure: {ex}', exc_info=True)
        return success


    def _discover_nodes(self, nodes_existing, nodes_new):
        """Register configured devices and create nodes for the used ones.

        Args:
            nodes_existing (dict): Dictionary of existing nodes.
            nodes_new (list): List to track node addresses that should exist.

        Returns:
            list: Registry ids (hex) of every configured device.
        """
        LOGGER.info(f"discovery start")
        registered = []
        for dev in self.devlist:
            if not self._validate_device_definition(dev):
                continue

            device_id = parse_device_id(dev["id"])
            row = self._registry_row(dev, device_id)
            self.registry.upsert(row)
            registered.append(row.device_id)

            if not row.used:
                LOGGER.info(f"{row.name} not used, no node")
                continue

            address = self._format_device_address(device_id)
            if address not in nodes_existing:
                if not self._create_device_node(dev, row.name, address, device_id):
                    continue
                self.wait_for_node_done()
            nodes_new.append(address)
        LOGGER.info("Done adding nodes.")
        LOGGER.debug(f'DEVLIST: {self.devlist}')
        return registered


    def _registry_row(self, dev, device_id) -> RegistryRow:
        """Build the registry row for a validated device definition."""
        device_config = DEVICE_CONFIG[dev["type"]]
        serial = parse_serial_number(dev.get("serial"))
        return RegistryRow(
            device_id=format_device_id(device_id),
            name=str(dev.get("name", dev["id"])),
            type=GENERAL_SWITCH,
            subtype=int(device_config["subtype"]),
            serial_number=str(serial),
            used=bool(dev.get("used", True)),
        )


    def _validate_device_definition(self, dev):
        """Validate device configuration has the required, parseable fields.

        Args:
            dev (dict): Device configuration to validate.

        Returns:
            bool: True if device is valid, False otherwise.
        """
        required_fields = ["id", "type"]
        if not isinstance(dev, dict) or not all(field in dev for field in required_fields):
            LOGGER.error(f"Invalid device definition: {json.dumps(dev, default=str)}")
            return False
        if dev["type"] not in DEVICE_CONFIG:
            LOGGER.error(f"Device type {dev['type']} is not yet supported")
            return False
        try:
            parse_device_id(dev["id"])
            parse_serial_number(dev.get("serial"))
        except (TypeError, ValueError) as ex:
            LOGGER.error(f"Invalid device definition {dev}: {ex}")
            return False
        return True


    def _create_device_node(self, dev, name, address, device_id):
        """Create a device node from configuration.

        Args:
            dev (dict): Device configuration.
            name (str): Human-readable name for the device.
            address (str): Unique address for the device node.
            device_id (int): IHC resource id.

        Returns:
            bool: True if node created successfully, False otherwise.
        """
        device_type = dev["type"]
        device_config = DEVICE_CONFIG.get(device_type)
        if device_config is None:
            LOGGER.error(f"Device type {device_type} is not yet supported")
            return False

        node_class = device_config["node_class"]
        device = {"device_id": device_id, "subtype": device_config["subtype"]}

        LOGGER.info(f"Adding {device_type}, {name}")
        self.poly.addNode(node_class(self.poly, self.address, address, name, device))
        return True


    def _cleanup_registry(self, registered):
        """Drop registry rows of devices no longer configured."""
        for row in self.registry.rows():
            if row.device_id not in registered:
                LOGGER.info(f"remove {row.device_id} from registry")
                self.registry.remove(row.device_id)


    def _cleanup_nodes(self, nodes_new, nodes_old):
        """Remove nodes that are no longer in the device list.

        Args:
            nodes_new (list): List of nodes that should exist.
            nodes_old (list): List of existing nodes to check for removal.

        Returns:
            bool: Always returns True.
        """
        for node in nodes_old:
            if (node not in nodes_new):
                LOGGER.info(f"need to delete node {node}")
                self.poly.delNode(node)
                LOGGER.info(f"Done Cleanup")
        return True


    def _format_device_address(self, device_id: int) -> str:
        """ISY address of an IHC resource, 'i' plus eight hex digits."""
        return f"{DEVICE_ADDRESS_PREFIX}{device_id:08x}"


    def deliver(self, command: TranslatedCommand, battery: int):
        """Hand a translated controller notification to its node.

        Called from the engine worker; returns once the node has applied it.

        Args:
            command (TranslatedCommand): Command for one IHC resource.
            battery (int): Last known battery level of the resource.
        """
        address = self._format_device_address(command.device_id)
        node = self.poly.getNode(address)
        if node is None:
            LOGGER.warning(f"No node for IHC resource {command.device_id:08X}")
            return
        node.apply_command(command, battery)


    def write_command(self, command: HubCommand) -> bool:
        """Write a node command to the IHC controller.

        Returns:
            bool: True if the controller accepted the update.
        """
        if self.engine is None:
            LOGGER.error(f"IHC engine not running, dropping {command}")
            return False
        return self.engine.write(command)


    def logout_cmd(self, command=None):
        """Log out of the IHC controller; the engine reconnects on its own."""
        LOGGER.info(command)
        if self.engine is not None:
            self.engine.logout()
        self.update_status()


    def refresh_cmd(self, command=None):
        """Refresh battery and signal levels on the next engine cycle."""
        LOGGER.info(command)
        if self.engine is not None:
            self.engine.request_refresh()


    def project_cmd(self, command=None):
        """Save the IHC controller project to PROJECT_FILE, a reference for writing the devfile."""
        LOGGER.info(command)
        if self.engine is None:
            return
        project = self.engine.load_project()
        if project is None:
            self.Notices['project'] = 'IHC project download failed'
            return
        try:
            ET.ElementTree(project).write(PROJECT_FILE, encoding='utf-8', xml_declaration=True)
        except OSError as ex:
            LOGGER.error(f"Failed to write {PROJECT_FILE}: {ex}")
            self.Notices['project'] = 'IHC project download failed'
            return
        LOGGER.info(f"IHC project saved to {PROJECT_FILE}")
        self.Notices['project'] = f'IHC project saved to {PROJECT_FILE}'


    def delete(self, command=None):
        """Handle NodeServer deletion.

        Args:
            command (str, optional): Command string for logging purposes.
        """
        LOGGER.info(command)
        self.setDriver('ST', 0, report = True, force = True)
        LOGGER.info('bye bye ... deleted.')


    def stop(self, command=None):
        """Handle NodeServer shutdown.

        Stops the engine, which waits for the worker to exit and logs out of
        the controller.

        Args:
            command (str, optional): Command string for logging purposes.
        """
        LOGGER.info(command)
        self.setDriver('ST', 0, report = True, force = True)
        self.Notices.clear()
        if self.engine is not None:
            self.engine.stop()
        LOGGER.info('NodeServer stopped.')


    def heartbeat(self):
        """Send heartbeat signal to ISY, alternating DON and DOF."""
        LOGGER.debug(f'heartbeat: hb={self.hb}')
        command = "DOF" if self.hb else "DON"
        self.reportCmd(command, 2)
        self.hb = not self.hb
        LOGGER.debug("Exit")


    # Status that this node has. Should match the 'sts' section
    # of the nodedef file.
    drivers = [
        {'driver': 'ST', 'value': 1, 'uom': 25, 'name': "Controller Status"},
        {'driver': 'GV0', 'value': 0, 'uom': 107, 'name': "NumberOfNodes"},
        {'driver': 'GV1', 'value': 0, 'uom': 2, 'name': "IHC Connected"},
        {'driver': 'GV2', 'value': 0, 'uom': 107, 'name': "Errors"},
    ]

    # Commands that this node can handle.  Should match the
    # 'accepts' section of the nodedef file.
    commands = {
        'DISCOVER': discover_cmd,
        'QUERY': query,
        'LOGOUT': logout_cmd,
        'REFRESH': refresh_cmd,
        'PROJECT': project_cmd,
    }
