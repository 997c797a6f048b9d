"""tabular-core -- formula engine for a terminal tabular editor."""

__version__ = "0.4.0"
__core_api_version__ = 1
