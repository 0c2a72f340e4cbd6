"""Error taxonomy for the IHC synchronization engine."""


class IHCError(Exception):
    """Base error for the IHC bridge."""


class TransportError(IHCError):
    """Raised on network or session failures talking to the controller."""


class ConnectError(TransportError):
    """Raised when a session to the controller cannot be opened."""


class ProtocolError(IHCError):
    """Raised when the controller answers with a malformed or failed response.

    The SOAP request and the raw response are kept so they can be dumped to
    the log when the session is reset.
    """

    def __init__(self, message: str, request: str = "", response: str = ""):
        super().__init__(message)
        self.request = request
        self.response = response


class UnknownDeviceError(IHCError):
    """Raised when a resource id is not present in the device cache."""


class EmptyReportError(IHCError):
    """Raised when the detected device report has no entries."""


class UnsupportedCommandError(IHCError):
    """Raised for commands the controller cannot apply (feedback outputs)."""
