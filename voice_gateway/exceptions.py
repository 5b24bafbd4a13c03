"""Exception types raised by the gateway."""


class GatewayError(Exception):
    """Base class for all gateway errors."""


class UpstreamConnectionError(GatewayError, ConnectionError):
    """The realtime model connection could not be established."""


class MissingCredentialError(UpstreamConnectionError):
    """No API key was configured for the realtime model connection."""


class MalformedEventError(GatewayError, ValueError):
    """An inbound message could not be decoded into a known event shape."""


class MediaFormatError(GatewayError):
    """The telephony side negotiated an audio format the relay cannot carry."""


class SessionStateError(GatewayError):
    """A call session was asked to make a phase transition it does not allow."""
