"""Errors raised by the GRFM prediction engine."""


class GRFMError(Exception):
    """Base class for GRFM prediction errors."""


class ConfigurationError(GRFMError, ValueError):
    """Invalid engine configuration (method name, window size, stations).

    Raised before any sample is processed.
    """
