class AlertEngineError(Exception):
    pass

class ConfigError(AlertEngineError):
    pass


class RecoverableError(AlertEngineError):
    """Transient failure; handled in ingestion/runtime layers, never fatal to the stream."""


class DecodeError(RecoverableError):
    """Inbound frame could not be parsed as structured data."""


class TransportError(RecoverableError):
    """Session-level failure (dropped socket, auth rejected, handshake timeout)."""


class SinkError(RecoverableError):
    """Raised inside a sink backend; converted to a failed SinkResult at the sink boundary."""
