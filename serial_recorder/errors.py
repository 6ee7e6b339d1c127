"""Exceptions raised at the recorder's startup and port-open seams."""


class RecorderError(Exception):
    """Base class for all serial recorder errors."""


class ConfigurationError(RecorderError):
    """Invalid or missing startup parameters."""


class PortOpenError(RecorderError):
    def __init__(self, identifier: str, reason: str):
        super().__init__(f"Failed to open serial port {identifier}: {reason}")
        self.identifier = identifier
        self.reason = reason


class StoreCreationError(RecorderError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot create output store {path}: {reason}")
        self.path = path
        self.reason = reason
