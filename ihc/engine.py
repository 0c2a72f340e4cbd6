"""Device synchronization engine for one IHC controller.

One worker thread repeats the cycle:

    connection check -> watch list sync -> notification wait -> pacing sleep

and hands every translated notification to the upstream sink. Writes from the
hub arrive on another thread through write(). Connection state and caches are
guarded by a single lock which is never held across the notification wait.
"""

from __future__ import annotations

import time
from enum import Enum
from threading import Event, RLock, Thread
from typing import Callable, List, Optional, Sequence

from udi_interface import LOGGER

from ihc.cache import DeviceCache
from ihc.connection import ConnectionManager
from ihc.errors import (
    ConnectError,
    EmptyReportError,
    IHCError,
    ProtocolError,
    UnknownDeviceError,
    UnsupportedCommandError,
)
from ihc.model import HubCommand, ResourceValue, TranslatedCommand
from ihc.registry import DeviceRegistry
from ihc.session import Session
from ihc.translate import quantize_battery, quantize_signal, to_resource_value, translate_value

NOTIFICATION_TIMEOUT_S = 20
IDLE_COOLDOWN_S = 10
CYCLE_PACING_S = 1
MAINTENANCE_INTERVAL = 100
STOP_JOIN_MARGIN_S = 15

Sink = Callable[[TranslatedCommand, int], None]


class CycleResult(Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CONNECT_FAILED = "connect_failed"
    IDLE = "idle"
    SYNCED = "synced"
    FAILED = "failed"


class SyncEngine:
    """Keeps one controller session and the device cache in step with the hub.

    Args:
        session: Controller session client (see ihc.session.Session).
        registry: DeviceRegistry of this hardware instance.
        sink: Called with (command, battery) for every resolved notification.
        name: Used for the worker thread and log lines.
    """

    def __init__(self, session: Session, registry: DeviceRegistry, sink: Sink, name: str = "IHC",
                 notification_timeout: int = NOTIFICATION_TIMEOUT_S,
                 idle_cooldown: float = IDLE_COOLDOWN_S,
                 cycle_pacing: float = CYCLE_PACING_S,
                 maintenance_interval: int = MAINTENANCE_INTERVAL):
        self.session = session
        self.registry = registry
        self.sink = sink
        self.name = name
        self.notification_timeout = notification_timeout
        self.idle_cooldown = idle_cooldown
        self.cycle_pacing = cycle_pacing
        self.maintenance_interval = maintenance_interval

        self.connection = ConnectionManager(session)
        self.cache = DeviceCache()
        self.active_ids: List[int] = []
        self.first_time = True
        self.maintenance_counter = 0
        self.error_count = 0
        self.last_heartbeat = 0.0

        self.lock = RLock()
        self.stop_event = Event()
        self._thread: Optional[Thread] = None

    # --------------- Lifecycle ---------------
    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self.stop_event.clear()
        self._thread = Thread(target=self._run, name=f"{self.name}Worker", daemon=True)
        self._thread.start()

    def stop(self):
        """Ask the worker to stop and wait for it to exit."""
        self.stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self.notification_timeout + STOP_JOIN_MARGIN_S)
            if self._thread.is_alive():
                LOGGER.warning(f"{self.name}: worker did not exit in time")
            self._thread = None
        with self.lock:
            if self.connection.is_connected():
                self.connection.logout()
            self._drop_session()

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def is_stalled(self) -> bool:
        """True when a running worker has not started a cycle for too long."""
        if not self.is_running() or not self.last_heartbeat:
            return False
        limit = self.notification_timeout + self.idle_cooldown + STOP_JOIN_MARGIN_S
        return time.time() - self.last_heartbeat > limit

    def _run(self):
        LOGGER.info(f"{self.name}: Worker started...")
        while not self.stop_event.is_set():
            self.last_heartbeat = time.time()
            try:
                self.run_cycle()
            except Exception as ex:
                self.error_count += 1
                LOGGER.error(f"{self.name}: cycle failed: {ex}", exc_info=True)
                with self.lock:
                    self.first_time = True
                    self.connection.restart_throttle()
            self.stop_event.wait(self.cycle_pacing)
        LOGGER.info(f"{self.name}: Worker stopped...")

    # --------------- Cycle ---------------
    def run_cycle(self) -> CycleResult:
        """Run one pass of the worker loop, without the pacing sleep."""
        if not self.connection.is_connected():
            return self._connect_step()

        try:
            with self.lock:
                if self.first_time:
                    self._rebuild()
            return self._sync_and_wait()
        except ProtocolError as ex:
            LOGGER.error("IHC_RESULT: ------------- START -----------------")
            LOGGER.error(f"IHC DUMP Query: {ex.request}")
            LOGGER.error("IHC_RESULT: - - - - - - - - - - - - - - - - - - -")
            LOGGER.error(f"IHC DUMP Response: {ex.response}")
            LOGGER.error("IHC_RESULT: ------------- END -------------------")
            self._recover(ex)
        except IHCError as ex:
            self._recover(ex)
        return CycleResult.FAILED

    def _connect_step(self) -> CycleResult:
        LOGGER.debug(f"{self.name}: not connected")
        with self.lock:
            if not self.connection.should_attempt():
                return CycleResult.CONNECTING
            LOGGER.info(f"{self.name}: Connecting to IHC controller...")
            try:
                self.connection.open()
            except ConnectError as ex:
                LOGGER.error(f"{self.name}: Error: '{ex}'")
                self._drop_session()
                return CycleResult.CONNECT_FAILED
        return CycleResult.CONNECTED

    def _recover(self, ex: IHCError):
        self.error_count += 1
        LOGGER.error(f"{self.name}: controller error, resetting session: {ex}")
        with self.lock:
            self._drop_session()
            self.connection.restart_throttle()

    def _drop_session(self):
        self.connection.reset()
        self.first_time = True
        self.active_ids = []

    def _rebuild(self):
        self.first_time = False
        self.active_ids = []
        self.maintenance_counter = 0
        count = self.cache.rebuild(self.registry.rows())
        LOGGER.info(f"{self.name}: device cache built with {count} devices")

    def _sync_and_wait(self) -> CycleResult:
        ids = self.registry.used_ids()
        if not ids:
            LOGGER.info(f"{self.name}: No devices active - disconnecting")
            self.stop_event.wait(self.idle_cooldown)
            with self.lock:
                self._drop_session()
                self.connection.restart_throttle()
            return CycleResult.IDLE

        with self.lock:
            self.connection.ensure_open()
            maintenance_due = self.maintenance_counter % self.maintenance_interval == 0
            self.maintenance_counter += 1
        if maintenance_due:
            self.refresh_signal_and_battery()
        self.sync_watch_list(ids)

        values = self.session.wait_resource_value_notifications(self.notification_timeout)
        self.dispatch(values)
        return CycleResult.SYNCED

    # --------------- Watch list ---------------
    def sync_watch_list(self, ids: Sequence[int]) -> bool:
        """Resubscribe only when the used id sequence changed.

        Returns:
            bool: True if the controller subscription was replaced.
        """
        ids = list(ids)
        with self.lock:
            if ids == self.active_ids:
                return False
            self.session.enable_runtime_value_notification(ids)
            self.active_ids = ids
        LOGGER.info(f"{self.name}: listening on {len(ids)} resources")
        return True

    # --------------- Notifications ---------------
    def dispatch(self, values: Sequence[ResourceValue]) -> int:
        """Translate notifications and hand them to the sink, in order."""
        delivered = 0
        for value in values:
            with self.lock:
                try:
                    device = self._require(value.resource_id)
                except UnknownDeviceError:
                    LOGGER.debug(f"{self.name}: ignoring unknown resource {value.resource_id}")
                    continue
                command = translate_value(value, device)
                battery = device.battery
            try:
                self.sink(command, battery)
                delivered += 1
            except Exception as ex:
                LOGGER.error(f"{self.name}: delivery of {command} failed: {ex}", exc_info=True)
        return delivered

    def _require(self, device_id: int):
        device = self.cache.get(device_id)
        if device is None:
            raise UnknownDeviceError(f"{device_id:08X}")
        return device

    # --------------- Maintenance ---------------
    def refresh_signal_and_battery(self) -> bool:
        """Pull battery and signal levels of wireless units from the controller.

        Every device sharing a serial number gets the same levels, in the
        cache and in the registry. The report is fetched without holding the
        lock, and malformed entries are skipped.

        Returns:
            bool: False if the controller report was empty or failed.
        """
        LOGGER.info(f"{self.name}: Updating battery and RSSI levels")
        try:
            report = self.session.get_rf()
        except EmptyReportError as ex:
            LOGGER.info(f"{self.name}: nothing to update: {ex}")
            return False
        except IHCError as ex:
            LOGGER.error(f"{self.name}: battery/RSSI update failed: {ex}")
            return False

        for entry in report:
            try:
                battery = quantize_battery(entry.battery_raw)
                signal = quantize_signal(entry.signal_raw)
            except (TypeError, ValueError) as ex:
                LOGGER.warning(f"{self.name}: skipping RF entry {entry}: {ex}")
                continue
            with self.lock:
                ids = self.cache.update_levels(entry.serial_number, battery, signal)
            self.registry.update_levels(entry.serial_number, battery, signal)
            LOGGER.debug(f"serial {entry.serial_number}: battery={battery} signal={signal} ids={ids}")
        return True

    def load_project(self):
        """Download the controller project tree over the open session.

        Returns:
            Element: the project root, or None when not connected or on failure.
        """
        with self.lock:
            if not self.connection.is_connected():
                LOGGER.warning(f"{self.name}: not connected, cannot load project")
                return None
        try:
            return self.session.load_project()
        except IHCError as ex:
            LOGGER.error(f"{self.name}: project download failed: {ex}")
            return None

    def request_refresh(self):
        with self.lock:
            self.maintenance_counter = 0

    def request_rebuild(self):
        """Rebuild the cache and resubscribe on the next connected cycle."""
        with self.lock:
            self.first_time = True

    # --------------- Commands ---------------
    def write(self, command: HubCommand) -> bool:
        """Apply a hub command on the controller.

        Returns False without touching the session when not connected.
        """
        with self.lock:
            if not self.connection.is_connected():
                LOGGER.warning(f"{self.name}: not connected, dropping {command}")
                return False
            try:
                value = to_resource_value(command)
            except UnsupportedCommandError as ex:
                LOGGER.error(f"{self.name}: {ex}")
                return False

            try:
                result = self.session.resource_update(value)
            except IHCError as ex:
                LOGGER.error(f"{self.name}: Error: '{ex}'")
                self.error_count += 1
                self._drop_session()
                return False

        if result:
            LOGGER.info(f"{self.name}: Resource update was successful")
        else:
            LOGGER.warning(f"{self.name}: Failed resource update")
        return result

    def logout(self):
        with self.lock:
            self.connection.logout()
            self._drop_session()
