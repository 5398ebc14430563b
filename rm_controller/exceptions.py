"""Custom exceptions for the RM controller."""


class RMError(Exception):
    """Base exception for RM controller errors."""


class ProtocolError(RMError):
    """Unexpected data in a protocol datagram."""


class NotConnectedError(RMError, RuntimeError):
    """The UDP socket has not been opened yet."""


class MalformedCodeError(RMError, ValueError):
    """An IR code could not be parsed or converted."""
