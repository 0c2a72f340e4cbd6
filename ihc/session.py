"""Controller session interface consumed by the engine."""

from __future__ import annotations

from typing import List, Protocol, Sequence
from xml.etree.ElementTree import Element

from ihc.model import ConnectionState, DetectedDevice, ResourceValue


class Session(Protocol):
    connection_state: ConnectionState

    def open_connection(self) -> None:
        """Authenticate and open the session; raises on failure."""

    def reset(self) -> None:
        """Drop the session and any transport resources."""

    def ihclogout(self) -> None:
        """Tell the controller the session is over."""

    def enable_runtime_value_notification(self, ids: Sequence[int]) -> None:
        """Replace the set of resources the controller notifies on."""

    def wait_resource_value_notifications(self, timeout_s: int) -> List[ResourceValue]:
        """Block until values change or the timeout passes."""

    def resource_update(self, value: ResourceValue) -> bool:
        """Apply a resource value on the controller."""

    def get_rf(self) -> List[DetectedDevice]:
        """Return the detected wireless devices report."""

    def load_project(self) -> Element:
        """Return the root of the controller project tree."""
