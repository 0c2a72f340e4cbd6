"""
Comprehensive test suite for Controller node.

Tests cover:
- Initialization and setup
- Configuration loading (devfile, devlist, IHC parameters)
- Device registration, node creation and cleanup
- Delivery of controller notifications to nodes
- Commands written back to the controller
- Event handlers
- Helper methods
"""

import xml.etree.ElementTree as ET

import pytest
from unittest.mock import MagicMock, Mock, patch, mock_open
from nodes.Controller import (
    Controller,
    DEFAULT_CONFIG,
    DEVICE_CONFIG,
    DEVICE_ADDRESS_PREFIX,
    PROJECT_FILE,
)
from nodes import IHCSwitch, IHCDimmer, IHCContact
from ihc.model import CommandKind, HubCommand, RegistryRow, Subtype, TranslatedCommand
from ihc.registry import DeviceRegistry


def make_poly():
    """Create a mock polyglot interface."""
    poly = Mock()
    poly.subscribe = Mock()
    poly.ready = Mock()
    poly.db_getNodeDrivers = Mock(return_value=[])
    for attr in [
        "START",
        "POLL",
        "LOGLEVEL",
        "CUSTOMPARAMS",
        "CUSTOMDATA",
        "STOP",
        "DISCOVER",
        "CUSTOMTYPEDPARAMS",
        "CUSTOMTYPEDDATA",
        "ADDNODEDONE",
    ]:
        setattr(poly, attr, attr)
    return poly


@pytest.fixture
def controller():
    """Create a Controller instance with an in-memory registry."""
    c = Controller(make_poly(), "controller", "controller", "IHC")
    c.registry = DeviceRegistry({}, "controller")
    c.Notices = MagicMock()
    c.setDriver = Mock()
    c.reportCmd = Mock()
    return c


class TestControllerInitialization:
    """Tests for Controller initialization."""

    def test_initialization_basic(self):
        """Test basic Controller initialization."""
        controller = Controller(make_poly(), "controller", "controller", "IHC")

        assert controller.id == "ihcctrl"
        assert controller.address == "controller"
        assert controller.name == "IHC"
        assert controller.hb == 0
        assert controller.numNodes == 0
        assert controller.devlist == []
        assert controller.engine is None
        assert controller.valid_configuration is False
        assert controller.discovery_in is False

    def test_initialization_subscribes_to_events(self):
        """Test that initialization subscribes to all required events."""
        poly = make_poly()
        Controller(poly, "controller", "controller", "IHC")

        subscribe_calls = poly.subscribe.call_args_list
        assert len(subscribe_calls) == 10

        event_types = [call[0][0] for call in subscribe_calls]
        assert "START" in event_types
        assert "POLL" in event_types
        assert "CUSTOMDATA" in event_types
        assert "STOP" in event_types
        assert "DISCOVER" in event_types
        assert "ADDNODEDONE" in event_types

    def test_initialization_calls_ready(self):
        """Test that initialization calls poly.ready()."""
        poly = make_poly()
        Controller(poly, "controller", "controller", "IHC")

        poly.ready.assert_called_once()

    def test_registry_keyed_by_controller_address(self):
        """The registry stores rows under the controller address."""
        controller = Controller(make_poly(), "controller", "ctl1", "IHC")

        assert controller.registry.key == "devices_ctl1"
        assert controller.registry.store is controller.Data


class TestControllerConstants:
    """Tests for module constants."""

    def test_default_config(self):
        """Test default configuration values."""
        assert DEFAULT_CONFIG["ihc_host"] is None
        assert DEFAULT_CONFIG["ihc_user"] == "admin"
        assert DEFAULT_CONFIG["ihc_password"] is None
        assert DEFAULT_CONFIG["ihc_timeout"] == 10

    def test_device_config_types(self):
        """Test that DEVICE_CONFIG maps every IHC resource kind."""
        assert DEVICE_CONFIG["output"]["node_class"] is IHCSwitch
        assert DEVICE_CONFIG["fb_input"]["node_class"] is IHCSwitch
        assert DEVICE_CONFIG["dimmer"]["node_class"] is IHCDimmer
        assert DEVICE_CONFIG["input"]["node_class"] is IHCContact
        assert DEVICE_CONFIG["fb_output"]["node_class"] is IHCContact

    def test_device_config_subtypes(self):
        assert DEVICE_CONFIG["output"]["subtype"] == Subtype.OUTPUT
        assert DEVICE_CONFIG["fb_input"]["subtype"] == Subtype.FB_INPUT
        assert DEVICE_CONFIG["dimmer"]["subtype"] == Subtype.DIMMER
        assert DEVICE_CONFIG["input"]["subtype"] == Subtype.INPUT
        assert DEVICE_CONFIG["fb_output"]["subtype"] == Subtype.FB_OUTPUT


class TestControllerUpsertById:
    """Tests for upsert_by_id method."""

    def test_upsert_adds_new_entry(self, controller):
        """Test upserting a new entry to an empty list."""
        config_list = []
        new_entry = {"id": "3a5c12", "type": "output"}

        controller.upsert_by_id(config_list, new_entry)

        assert config_list == [new_entry]

    def test_upsert_updates_existing_entry(self, controller):
        """Test upserting an existing entry."""
        config_list = [
            {"id": "3a5c12", "type": "output", "name": "old"},
            {"id": "3a5c13", "type": "dimmer"},
        ]
        new_entry = {"id": "3a5c12", "type": "output", "name": "new"}

        controller.upsert_by_id(config_list, new_entry)

        assert len(config_list) == 2
        assert config_list[0]["name"] == "new"


class TestControllerGetHelpers:
    """Tests for _get_str and _get_int helper methods."""

    def test_get_str_with_multiple_args(self):
        assert Controller._get_str(None, 42, "host", "other") == "host"

    def test_get_str_with_none(self):
        assert Controller._get_str(None) is None

    def test_get_int_with_string_number(self):
        assert Controller._get_int("42") == 42

    def test_get_int_with_invalid_string(self):
        assert Controller._get_int("not_a_number") is None

    def test_get_int_falls_back(self):
        assert Controller._get_int(None, "x", 15) == 15


class TestControllerCheckParams:
    """Tests for checkParams method."""

    @pytest.fixture
    def ctl(self, controller):
        controller._load_devfile_config = Mock(return_value=True)
        controller._load_devlist_config = Mock(return_value=True)
        controller._load_ihc_parameters = Mock(return_value=True)
        return controller

    def test_check_params_with_devfile(self, ctl):
        """Test checkParams with devfile."""
        ctl.Parameters = Mock()
        ctl.Parameters.get = Mock(return_value="file.yaml")

        assert ctl.checkParams() is True
        ctl._load_devfile_config.assert_called_once()
        ctl._load_ihc_parameters.assert_called_once()
        assert ctl.valid_configuration is True

    def test_check_params_with_devlist(self, ctl):
        """Test checkParams with devlist."""
        ctl.Parameters = Mock()
        ctl.Parameters.get = Mock(side_effect=lambda x: "[]" if x == "devlist" else None)

        assert ctl.checkParams() is True
        ctl._load_devlist_config.assert_called_once()

    def test_check_params_no_config(self, ctl):
        """Test checkParams without devfile or devlist."""
        ctl.Parameters = Mock()
        ctl.Parameters.get = Mock(return_value=None)

        assert ctl.checkParams() is False
        ctl._load_devfile_config.assert_not_called()
        ctl._load_devlist_config.assert_not_called()

    def test_check_params_ihc_load_fails(self, ctl):
        """Test checkParams when IHC parameter load fails."""
        ctl.Parameters = Mock()
        ctl.Parameters.get = Mock(side_effect=lambda x: "file.yaml" if x == "devfile" else None)
        ctl._load_ihc_parameters.return_value = False

        assert ctl.checkParams() is False
        assert ctl.valid_configuration is False


class TestControllerLoadConfig:
    """Tests for devfile, devlist and IHC parameter loading."""

    def test_load_devfile(self, controller):
        """Devices and flattened general settings come from the YAML file."""
        yaml_text = (
            "devices:\n"
            "  - id: '3a5c12'\n"
            "    type: output\n"
            "    name: Kitchen\n"
            "general:\n"
            "  - ihc_host: 10.0.0.5\n"
            "  - ihc_user: installer\n"
        )
        controller.Parameters = {"devfile": "devices.yaml"}

        with patch("builtins.open", mock_open(read_data=yaml_text)):
            assert controller._load_devfile_config() is True

        assert controller.devlist == [{"id": "3a5c12", "type": "output", "name": "Kitchen"}]
        assert controller.general == {"ihc_host": "10.0.0.5", "ihc_user": "installer"}

    def test_load_devfile_missing_file(self, controller):
        controller.Parameters = {"devfile": "missing.yaml"}

        with patch("builtins.open", side_effect=OSError("nope")):
            assert controller._load_devfile_config() is False

    def test_load_devfile_without_devices(self, controller):
        controller.Parameters = {"devfile": "devices.yaml"}

        with patch("builtins.open", mock_open(read_data="general: []\n")):
            assert controller._load_devfile_config() is False

    def test_load_devlist_list(self, controller):
        """A JSON list of devices is merged by id."""
        controller.Parameters = {
            "devlist": '[{"id": "1a", "type": "output"}, {"id": "1b", "type": "dimmer"}]'
        }

        assert controller._load_devlist_config() is True
        assert [d["id"] for d in controller.devlist] == ["1a", "1b"]

    def test_load_devlist_single_dict(self, controller):
        controller.Parameters = {"devlist": '{"id": "1a", "type": "input"}'}

        assert controller._load_devlist_config() is True
        assert controller.devlist == [{"id": "1a", "type": "input"}]

    def test_load_devlist_bad_json(self, controller):
        controller.Parameters = {"devlist": "[{"}

        assert controller._load_devlist_config() is False

    def test_load_ihc_parameters_precedence(self, controller):
        """Polyglot parameters win over devfile general, then defaults."""
        controller.Parameters = {"ihc_host": "192.168.1.3", "ihc_timeout": "30"}
        controller.general = {"ihc_host": "10.0.0.5", "ihc_password": "secret"}

        assert controller._load_ihc_parameters() is True
        assert controller.ihc_host == "192.168.1.3"
        assert controller.ihc_user == "admin"
        assert controller.ihc_password == "secret"
        assert controller.ihc_timeout == 30

    def test_load_ihc_parameters_requires_host(self, controller):
        controller.Parameters = {}
        controller.general = {}

        assert controller._load_ihc_parameters() is False


class TestControllerValidateDeviceDefinition:
    """Tests for _validate_device_definition method."""

    def test_validate_valid_device(self, controller):
        dev = {"id": "0x3a5c12", "type": "dimmer", "serial": "109955793651093"}

        assert controller._validate_device_definition(dev) is True

    def test_validate_device_missing_id(self, controller):
        assert controller._validate_device_definition({"type": "output"}) is False

    def test_validate_device_missing_type(self, controller):
        assert controller._validate_device_definition({"id": "3a5c12"}) is False

    def test_validate_unsupported_type(self, controller):
        dev = {"id": "3a5c12", "type": "thermostat"}

        assert controller._validate_device_definition(dev) is False

    def test_validate_bad_id(self, controller):
        dev = {"id": "not-hex", "type": "output"}

        assert controller._validate_device_definition(dev) is False

    def test_validate_id_out_of_range(self, controller):
        dev = {"id": "1FFFFFFFF", "type": "output"}

        assert controller._validate_device_definition(dev) is False


class TestControllerFormatDeviceAddress:
    """Tests for _format_device_address method."""

    def test_address_is_prefixed_lowercase_hex(self, controller):
        assert controller._format_device_address(0x3A5C12) == "i003a5c12"

    def test_address_prefix(self, controller):
        assert controller._format_device_address(0).startswith(DEVICE_ADDRESS_PREFIX)
        assert len(controller._format_device_address(0xFFFFFFFF)) == 9


class TestControllerDiscover:
    """Tests for _discover and node lifecycle."""

    @pytest.fixture
    def ctl(self, controller):
        controller.poly.getNodes = Mock(return_value={"controller": controller})
        controller.poly.addNode = Mock()
        controller.poly.delNode = Mock()
        controller.wait_for_node_done = Mock()
        return controller

    def test_discover_creates_nodes_and_registers(self, ctl):
        """Used devices get nodes; every valid device gets a registry row."""
        ctl.devlist = [
            {"id": "3a5c12", "type": "output", "name": "Kitchen"},
            {"id": "3a5c13", "type": "dimmer", "name": "Hall", "serial": "42"},
            {"id": "3a5c14", "type": "input", "name": "Door", "used": False},
            {"id": "zz", "type": "output"},
        ]

        assert ctl._discover() is True

        assert ctl.poly.addNode.call_count == 2
        added = [call[0][0] for call in ctl.poly.addNode.call_args_list]
        assert isinstance(added[0], IHCSwitch)
        assert added[0].address == "i003a5c12"
        assert added[0].device_id == 0x3A5C12
        assert isinstance(added[1], IHCDimmer)
        assert ctl.numNodes == 2
        ctl.setDriver.assert_any_call("GV0", 2)

        rows = {row.device_id: row for row in ctl.registry.rows()}
        assert set(rows) == {"003A5C12", "003A5C13", "003A5C14"}
        assert rows["003A5C13"].serial_number == "42"
        assert rows["003A5C13"].subtype == Subtype.DIMMER
        assert rows["003A5C14"].used is False
        assert ctl.registry.used_ids() == [0x3A5C12, 0x3A5C13]

    def test_discover_skips_existing_nodes(self, ctl):
        ctl.poly.getNodes.return_value = {"controller": ctl, "i003a5c12": Mock()}
        ctl.devlist = [{"id": "3a5c12", "type": "output"}]

        assert ctl._discover() is True

        ctl.poly.addNode.assert_not_called()
        ctl.poly.delNode.assert_not_called()

    def test_discover_removes_stale_nodes_and_rows(self, ctl):
        """Nodes and registry rows not in the device list are removed."""
        ctl.registry.upsert(RegistryRow(device_id="00000099"))
        ctl.poly.getNodes.return_value = {"controller": ctl, "i00000099": Mock()}
        ctl.devlist = [{"id": "3a5c12", "type": "output"}]

        assert ctl._discover() is True

        ctl.poly.delNode.assert_called_once_with("i00000099")
        assert [row.device_id for row in ctl.registry.rows()] == ["003A5C12"]

    def test_discover_keeps_levels_on_rediscovery(self, ctl):
        ctl.devlist = [{"id": "3a5c12", "type": "output", "serial": "7"}]
        ctl._discover()
        ctl.registry.update_levels(7, 9, 3)

        ctl._discover()

        row = ctl.registry.rows()[0]
        assert (row.battery, row.signal) == (9, 3)


class TestControllerDiscoverCmd:
    """Tests for discover_cmd method."""

    @pytest.fixture
    def ctl(self, controller):
        controller.checkParams = Mock(return_value=True)
        controller._discover = Mock(return_value=True)
        return controller

    def test_discover_cmd_success(self, ctl):
        assert ctl.discover_cmd("DISCOVER") is True
        assert ctl.discovery_in is False
        ctl._discover.assert_called_once()

    def test_discover_cmd_already_running(self, ctl):
        ctl.discovery_in = True

        assert ctl.discover_cmd("DISCOVER") is False
        ctl.checkParams.assert_not_called()

    def test_discover_cmd_check_params_fails(self, ctl):
        ctl.checkParams.return_value = False

        assert ctl.discover_cmd("DISCOVER") is False
        assert ctl.discovery_in is False
        ctl._discover.assert_not_called()

    def test_discover_cmd_rebuilds_running_engine(self, ctl):
        ctl.engine = Mock()

        assert ctl.discover_cmd("DISCOVER") is True

        ctl.engine.request_rebuild.assert_called_once()


class TestControllerDeliver:
    """Tests for deliver, the engine's upstream sink."""

    def test_deliver_routes_to_node(self, controller):
        node = Mock()
        controller.poly.getNode = Mock(return_value=node)
        command = TranslatedCommand(0x3A5C12, Subtype.OUTPUT, 3, CommandKind.SET_LEVEL, 100)

        controller.deliver(command, 100)

        controller.poly.getNode.assert_called_once_with("i003a5c12")
        node.apply_command.assert_called_once_with(command, 100)

    def test_deliver_without_node(self, controller):
        controller.poly.getNode = Mock(return_value=None)
        command = TranslatedCommand(0x3A5C12, Subtype.OUTPUT, 3, CommandKind.OFF)

        controller.deliver(command, 100)  # no exception


class TestControllerWriteCommand:
    """Tests for write_command and the engine commands."""

    def test_write_without_engine(self, controller):
        command = HubCommand(0x10, Subtype.OUTPUT, CommandKind.ON)

        assert controller.write_command(command) is False

    def test_write_forwards_to_engine(self, controller):
        controller.engine = Mock()
        controller.engine.write.return_value = True
        command = HubCommand(0x10, Subtype.DIMMER, CommandKind.SET_LEVEL, 40)

        assert controller.write_command(command) is True
        controller.engine.write.assert_called_once_with(command)

    def test_logout_cmd(self, controller):
        controller.engine = Mock()
        controller.engine.connection.is_connected.return_value = False
        controller.engine.error_count = 0

        controller.logout_cmd("LOGOUT")

        controller.engine.logout.assert_called_once()
        controller.setDriver.assert_any_call("GV1", 0)

    def test_refresh_cmd(self, controller):
        controller.engine = Mock()

        controller.refresh_cmd("REFRESH")

        controller.engine.request_refresh.assert_called_once()

    def test_project_cmd_saves_project(self, controller, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        controller.engine = Mock()
        controller.engine.load_project.return_value = ET.fromstring(
            "<utcs_project><groups/></utcs_project>"
        )

        controller.project_cmd("PROJECT")

        saved = ET.parse(tmp_path / PROJECT_FILE).getroot()
        assert saved.tag == "utcs_project"
        assert saved.find("groups") is not None
        assert "saved" in controller.Notices.__setitem__.call_args[0][1]

    def test_project_cmd_download_failed(self, controller, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        controller.engine = Mock()
        controller.engine.load_project.return_value = None

        controller.project_cmd("PROJECT")

        assert not (tmp_path / PROJECT_FILE).exists()
        controller.Notices.__setitem__.assert_called_once_with(
            "project", "IHC project download failed"
        )

    def test_project_cmd_without_engine(self, controller):
        controller.engine = None

        controller.project_cmd("PROJECT")

        controller.Notices.__setitem__.assert_not_called()


class TestControllerEngineStart:
    """Tests for _engine_start."""

    def test_engine_start_needs_host(self, controller):
        controller.ihc_host = None

        assert controller._engine_start() is False
        assert controller.engine is None

    def test_engine_start(self, controller):
        controller.ihc_host = "10.0.0.5"
        controller.ihc_user = "admin"
        controller.ihc_password = "pw"
        controller.ihc_timeout = 10

        with patch("nodes.Controller.SyncEngine") as engine_cls, \
             patch("nodes.Controller.IHCClient") as client_cls:
            assert controller._engine_start() is True

        client_cls.assert_called_once_with("10.0.0.5", "admin", "pw", timeout=10)
        engine_cls.assert_called_once_with(
            client_cls.return_value, controller.registry, controller.deliver, name="IHC"
        )
        engine_cls.return_value.start.assert_called_once()


class TestControllerPoll:
    """Tests for poll method."""

    def test_poll_not_ready(self, controller):
        controller.poll({"shortPoll": True})

        controller.reportCmd.assert_not_called()

    def test_poll_heartbeat_and_status(self, controller):
        controller.ready_event.set()
        controller.engine = Mock()
        controller.engine.connection.is_connected.return_value = True
        controller.engine.error_count = 4
        initial_hb = controller.hb

        controller.poll({"shortPoll": True})

        assert controller.hb != initial_hb
        controller.setDriver.assert_any_call("GV1", 1)
        controller.setDriver.assert_any_call("GV2", 4)


class TestControllerNodeQueue:
    """Tests for node_queue method."""

    def test_node_queue_adds_address(self, controller):
        controller.node_queue({"address": "i003a5c12"})

        assert "i003a5c12" in controller.n_queue

    def test_node_queue_without_address(self, controller):
        controller.node_queue({})

        assert controller.n_queue == []

    def test_wait_for_node_done_pops(self, controller):
        controller.n_queue.append("i003a5c12")

        controller.wait_for_node_done()

        assert controller.n_queue == []


class TestControllerHandlers:
    """Tests for the startup handlers."""

    def test_all_handlers_set_event(self, controller):
        controller.parameterHandler({})
        controller.dataHandler(None)
        controller.typedParameterHandler({})
        assert not controller.all_handlers_st_event.is_set()

        controller.typedDataHandler(None)

        assert controller.all_handlers_st_event.is_set()

    def test_handle_level_change_debug(self, controller):
        with patch("nodes.Controller.LOG_HANDLER") as mock_handler:
            controller.handleLevelChange({"level": 5})

        mock_handler.set_basic_config.assert_called_once()


class TestControllerStopAndDelete:
    """Tests for stop, delete and heartbeat."""

    def test_stop_stops_engine(self, controller):
        controller.engine = Mock()

        controller.stop("STOP")

        controller.engine.stop.assert_called_once()
        controller.setDriver.assert_called_with("ST", 0, report=True, force=True)

    def test_stop_without_engine(self, controller):
        controller.stop("STOP")

        controller.setDriver.assert_called_with("ST", 0, report=True, force=True)

    def test_delete(self, controller):
        controller.delete("DELETE")

        controller.setDriver.assert_called_with("ST", 0, report=True, force=True)

    def test_heartbeat_alternates(self, controller):
        controller.hb = False

        controller.heartbeat()
        controller.heartbeat()

        calls = [call[0][0] for call in controller.reportCmd.call_args_list]
        assert calls == ["DON", "DOF"]


class TestControllerDriversAndCommands:
    """Tests for drivers and commands configuration."""

    def test_drivers(self):
        names = [d["driver"] for d in Controller.drivers]
        assert names == ["ST", "GV0", "GV1", "GV2"]

    def test_commands(self):
        assert set(Controller.commands) == {"DISCOVER", "QUERY", "LOGOUT", "REFRESH", "PROJECT"}
