"""Sampling failures for procmetrics.

These never leave a sampler: ``Sampler.data()`` catches them and reports
"no snapshot this tick" instead.
"""


class SamplingError(Exception):
    """Base class for anything that prevents a complete snapshot."""


class SourceUnavailable(SamplingError):
    """An OS file or API does not exist or cannot be accessed."""


class ParseFailure(SamplingError):
    """A source was readable but its contents had an unexpected shape."""


class SyscallFailure(SamplingError):
    """An OS call reported an error status."""
