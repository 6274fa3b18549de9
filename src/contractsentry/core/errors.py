"""Exception types raised by ContractSentry."""


class ContractSentryError(Exception):
    """Base class for all ContractSentry errors."""


class DetectorConfigurationError(ContractSentryError, ValueError):
    """A detector's pattern tables could not be built."""


class SourceTooLargeError(ContractSentryError, ValueError):
    """The source unit exceeds the configured scan size limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Source is {size} bytes, limit is {limit} bytes")
        self.size = size
        self.limit = limit
