"""SOAP client for the LK IHC controller web services.

The controller keeps session state in a cookie, so one requests.Session is
held per connection and dropped on reset.
"""

from __future__ import annotations

import base64
import zlib
import xml.etree.ElementTree as ET
from typing import List, Optional, Sequence

import requests
from udi_interface import LOGGER

from ihc.errors import ConnectError, EmptyReportError, ProtocolError, TransportError
from ihc.model import ConnectionState, DetectedDevice, ResourceValue

AUTH_SERVICE = "/ws/AuthenticationService"
RESOURCE_SERVICE = "/ws/ResourceInteractionService"
AIRLINK_SERVICE = "/ws/AirlinkManagementService"
CONTROLLER_SERVICE = "/ws/ControllerService"

XSI_TYPE = "{http://www.w3.org/2001/XMLSchema-instance}type"
REQUEST_TIMEOUT_S = 10
WAIT_MARGIN_S = 10

SOAP_ENVELOPE = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/">'
    "<s:Body>{body}</s:Body></s:Envelope>"
)


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _find_all(node: ET.Element, name: str) -> List[ET.Element]:
    return [el for el in node.iter() if _local(el.tag) == name]


def _find_text(node: ET.Element, name: str) -> Optional[str]:
    for el in node.iter():
        if el is not node and _local(el.tag) == name:
            return (el.text or "").strip()
    return None


def _child(node: ET.Element, name: str) -> Optional[ET.Element]:
    for el in node:
        if _local(el.tag) == name:
            return el
    return None


def parse_resource_value(item: ET.Element) -> Optional[ResourceValue]:
    """Decode one arrayItem of a waitForResourceValueChanges response."""
    rid_text = _find_text(item, "resourceID")
    value_node = _child(item, "value")
    if not rid_text or value_node is None:
        return None
    value_type = _local(value_node.get(XSI_TYPE, "")).split(":")[-1]

    try:
        resource_id = int(rid_text)
        if value_type == "WSBooleanValue":
            return ResourceValue(resource_id, _find_text(value_node, "value") == "true")
        if value_type == "WSIntegerValue":
            return ResourceValue(resource_id, int(_find_text(value_node, "integer") or 0))
        if value_type == "WSFloatingPointValue":
            return ResourceValue(
                resource_id, int(float(_find_text(value_node, "floatingPointValue") or 0))
            )
    except ValueError as ex:
        LOGGER.debug(f"Ignoring malformed value for resource {rid_text}: {ex}")
        return None
    LOGGER.debug(f"Ignoring value type {value_type} for resource {resource_id}")
    return None


def parse_detected_device(item: ET.Element) -> Optional[DetectedDevice]:
    """Decode one arrayItem of a getDetectedDeviceList response."""
    serial = _find_text(item, "serialNumber")
    battery = _find_text(item, "batteryLevel")
    signal = _find_text(item, "signalStrength")
    if not serial or battery is None or signal is None:
        return None
    try:
        return DetectedDevice(
            serial_number=int(serial),
            battery_raw=int(battery),
            signal_raw=int(signal),
        )
    except ValueError as ex:
        LOGGER.warning(f"Skipping detected device {serial}: {ex}")
        return None


class IHCClient:
    """Session to one IHC controller.

    Every call raises TransportError on network failures and ProtocolError
    when the controller answers with something unexpected.
    """

    def __init__(self, host: str, username: str, password: str,
                 timeout: int = REQUEST_TIMEOUT_S, verify: bool = True):
        if not host.startswith(("http://", "https://")):
            host = f"http://{host}"
        self.url = host.rstrip("/")
        self.username = username
        self.password = password
        self.timeout = timeout
        self.verify = verify
        self.connection_state = ConnectionState.DISCONNECTED
        self._http: Optional[requests.Session] = None

    def _post(self, service: str, action: str, body: str,
              timeout: Optional[float] = None) -> ET.Element:
        if self._http is None:
            self._http = requests.Session()
        request_xml = SOAP_ENVELOPE.format(body=body)
        headers = {
            "Content-Type": "text/xml; charset=UTF-8",
            "SOAPAction": action,
        }
        try:
            res = self._http.post(
                self.url + service,
                data=request_xml.encode("utf-8"),
                headers=headers,
                timeout=timeout or self.timeout,
                verify=self.verify,
            )
        except requests.exceptions.RequestException as ex:
            raise TransportError(f"{action} failed: {ex}") from ex

        if res.status_code != requests.codes.ok:
            raise ProtocolError(
                f"{action} returned HTTP {res.status_code}", request_xml, res.text
            )
        try:
            return ET.fromstring(res.content)
        except ET.ParseError as ex:
            raise ProtocolError(f"{action} returned invalid XML: {ex}", request_xml, res.text) from ex

    def open_connection(self):
        LOGGER.info(f"Connecting to IHC controller {self.url}")
        body = (
            '<authenticate1 xmlns="utcs">'
            f"<password>{_escape(self.password)}</password>"
            f"<username>{_escape(self.username)}</username>"
            "<application>treeview</application>"
            "</authenticate1>"
        )
        try:
            root = self._post(AUTH_SERVICE, "authenticate", body)
        except TransportError as ex:
            raise ConnectError(str(ex)) from ex
        if _find_text(root, "loginWasSuccessful") != "true":
            raise ProtocolError("IHC login was not successful", "authenticate", ET.tostring(root, "unicode"))
        self.connection_state = ConnectionState.CONNECTED
        LOGGER.info("IHC controller connected")

    def reset(self):
        self.connection_state = ConnectionState.DISCONNECTED
        if self._http is not None:
            self._http.close()
            self._http = None

    def ihclogout(self):
        try:
            self._post(AUTH_SERVICE, "disconnect", "")
        finally:
            self.reset()

    def enable_runtime_value_notification(self, ids: Sequence[int]):
        items = "".join(f"<a:arrayItem>{int(i)}</a:arrayItem>" for i in ids)
        body = (
            '<enableRuntimeValueNotifications1 xmlns="utcs" '
            'xmlns:a="http://www.w3.org/2001/XMLSchema">'
            f"{items}</enableRuntimeValueNotifications1>"
        )
        self._post(RESOURCE_SERVICE, "enableRuntimeValueNotifications", body)
        LOGGER.debug(f"Notifications enabled for {len(ids)} resources")

    def wait_resource_value_notifications(self, timeout_s: int) -> List[ResourceValue]:
        body = f'<waitForResourceValueChanges1 xmlns="utcs">{int(timeout_s)}</waitForResourceValueChanges1>'
        root = self._post(
            RESOURCE_SERVICE,
            "waitForResourceValueChanges",
            body,
            timeout=timeout_s + WAIT_MARGIN_S,
        )
        values = []
        for item in _find_all(root, "arrayItem"):
            value = parse_resource_value(item)
            if value is not None:
                values.append(value)
        return values

    def resource_update(self, value: ResourceValue) -> bool:
        if isinstance(value.value, bool):
            typed = (
                '<value i:type="a:WSBooleanValue" xmlns:a="utcs.values">'
                f"<a:value>{'true' if value.value else 'false'}</a:value></value>"
            )
        else:
            typed = (
                '<value i:type="a:WSIntegerValue" xmlns:a="utcs.values">'
                f"<a:integer>{int(value.value)}</a:integer></value>"
            )
        body = (
            '<setResourceValue1 xmlns="utcs" '
            'xmlns:i="http://www.w3.org/2001/XMLSchema-instance">'
            f"{typed}<typeString/>"
            f"<resourceID>{value.resource_id}</resourceID>"
            "<isValueRuntime>true</isValueRuntime>"
            "</setResourceValue1>"
        )
        root = self._post(RESOURCE_SERVICE, "setResourceValue", body)
        return _find_text(root, "setResourceValue2") == "true"

    def get_rf(self) -> List[DetectedDevice]:
        root = self._post(AIRLINK_SERVICE, "getDetectedDeviceList", "")
        items = _find_all(root, "arrayItem")
        if not items or len(items[0]) == 0:
            raise EmptyReportError("Detected device list is empty")
        report = []
        for item in items:
            device = parse_detected_device(item)
            if device is not None:
                report.append(device)
        return report

    def load_project(self) -> ET.Element:
        root = self._post(CONTROLLER_SERVICE, "getIHCProject", "", timeout=self.timeout * 6)
        data = _find_text(root, "data")
        if not data:
            raise ProtocolError("Project response has no data", "getIHCProject", ET.tostring(root, "unicode"))
        try:
            raw = zlib.decompress(base64.b64decode(data), 16 + zlib.MAX_WBITS)
            return ET.fromstring(raw)
        except (ValueError, zlib.error, ET.ParseError) as ex:
            raise ProtocolError(f"Project could not be decoded: {ex}") from ex


def _escape(text: str) -> str:
    return (text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;"))
