"""Custom exceptions for portfolio metrics.

The calculation functions never raise; these belong to the ingestion
boundary and the CLI.
"""


class PortfolioMetricsError(Exception):
    """Base exception."""
    pass


class LedgerFormatError(PortfolioMetricsError):
    pass


class UnknownSecurityError(PortfolioMetricsError):
    pass


class ConfigError(PortfolioMetricsError):
    pass
