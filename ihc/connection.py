"""Connection state machine around the controller session."""

from __future__ import annotations

from udi_interface import LOGGER

from ihc.errors import ConnectError, IHCError
from ihc.model import ConnectionState

OPEN_THROTTLE_CYCLES = 30
THROTTLE_START = 28


class ConnectionManager:
    """Owns the single session and throttles reconnect attempts.

    The counter advances once per worker cycle while disconnected and an
    open is only attempted on multiples of OPEN_THROTTLE_CYCLES.
    """

    def __init__(self, session, throttle: int = OPEN_THROTTLE_CYCLES):
        self.session = session
        self.throttle = throttle
        self.counter = THROTTLE_START

    @property
    def state(self) -> ConnectionState:
        return self.session.connection_state

    def is_connected(self) -> bool:
        return self.session.connection_state == ConnectionState.CONNECTED

    def open(self):
        """Open the session once; never retries.

        Raises:
            ConnectError: on any transport or protocol failure. The session
                is reset before raising.
        """
        try:
            self.session.open_connection()
        except IHCError as ex:
            self.reset()
            if isinstance(ex, ConnectError):
                raise
            raise ConnectError(str(ex)) from ex
        if not self.is_connected():
            self.reset()
            raise ConnectError("Controller did not report a connected session")

    def ensure_open(self):
        if not self.is_connected():
            self.open()

    def should_attempt(self) -> bool:
        """Advance the throttle counter; True when an open is due this cycle."""
        due = self.counter % self.throttle == 0
        self.counter += 1
        return due

    def restart_throttle(self):
        self.counter = 0

    def reset(self):
        try:
            self.session.reset()
        except IHCError as ex:
            LOGGER.warning(f"Session reset reported: {ex}")
        self.session.connection_state = ConnectionState.DISCONNECTED

    def logout(self):
        try:
            self.session.ihclogout()
        except IHCError as ex:
            LOGGER.warning(f"IHC logout failed: {ex}")
        finally:
            self.reset()
