"""
Exception hierarchy shared by every mlogin component.
"""


class MloginError(Exception):
    """Base class for all mlogin failures."""


class SetupError(MloginError):
    """A stage of the session setup pipeline failed."""


class ChannelSetupError(SetupError):
    """The session channel closed or timed out before the agent attached."""


class ProtocolError(MloginError):
    """A control frame could not be decoded."""


class StoreError(MloginError):
    """A request to the object store or job service failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ObjectNotFoundError(StoreError):
    """The requested object does not exist."""

    def __init__(self, path: str):
        super().__init__(f"{path} was not found", status_code=404)
        self.path = path
