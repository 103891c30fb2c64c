"""Exceptions raised by the outlier weighting stage."""


class PcweightsError(Exception):
    """Base class for all pcweights errors."""


class ConfigurationError(PcweightsError, ValueError):
    """A filter was built with parameters outside their valid range."""


class NoCandidatesError(PcweightsError, RuntimeError):
    """
    No usable distance was found in a correspondence set.

    Raised by the adaptive trim filter when every distance is infinite or
    non-positive. Fatal for the current registration iteration.
    """
