"""Error taxonomy. None of these are fatal to the interaction loop."""


class GPTCLIError(Exception):
    """Base class for all client errors."""


class ProviderError(GPTCLIError):
    """A completion or title request failed."""


class PersistenceError(GPTCLIError):
    """Reading or writing the config or a session failed."""


class ResolutionError(GPTCLIError):
    """A resume target could not be found."""


class ValidationError(GPTCLIError):
    """A model name or config value is not acceptable."""
