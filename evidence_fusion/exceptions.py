"""
Exceptions

Only configuration loading raises. Synthesis is total: missing or malformed
evidence degrades to defaults instead of raising.
"""


class EvidenceFusionError(Exception):
    """Base class for all engine errors."""
    pass


class ConfigurationError(EvidenceFusionError):
    """Engine configuration could not be loaded or is inconsistent."""

    def __init__(self, message: str, path: str = None):
        super().__init__(message)
        self.path = path


class CatalogError(ConfigurationError):
    """Template catalog is inconsistent (duplicate id, bucket/decision mismatch)."""
    pass
