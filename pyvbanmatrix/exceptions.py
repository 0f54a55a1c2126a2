"""Errors raised by pyvbanmatrix."""


class MatrixError(Exception):
    """Base class for all matrix control errors."""


class TransportError(MatrixError):
    """A UDP endpoint could not be opened or a packet could not be sent."""


class QueryTimeoutError(MatrixError, TimeoutError):
    """No reply arrived before the query deadline."""


class ReplyParseError(MatrixError):
    """A reply carried an error marker or could not be parsed."""


class UnknownEndpointError(MatrixError):
    """A slot or channel name is not part of the discovered topology."""


class InvalidActionError(MatrixError):
    """The requested action is not one of gain, mute or reset."""


class NotInitializedError(MatrixError):
    """No topology has been discovered yet."""


class ConfigurationError(MatrixError):
    """Required configuration is missing or invalid."""
