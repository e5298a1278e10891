"""Exceptions raised by newscast."""


class NewscastError(Exception):
    """Base exception for newscast errors."""
    pass


class MalformedMessage(NewscastError):
    """A payload could not be decoded into a protocol message."""
    pass


class UnknownMessageType(MalformedMessage):
    """A payload carried a ``type`` this protocol does not define."""

    def __init__(self, message_type: object):
        super().__init__(f"Unknown message type: {message_type!r}")
        self.message_type = message_type


class TransportError(NewscastError):
    """The transport could not connect or send."""
    pass
