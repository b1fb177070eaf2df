"""Custom exceptions for aql-sentinel."""


class ScannerError(Exception):
    """Base exception for all scanner errors."""


# ── setup (fatal, raised before any query is issued) ──


class SetupError(ScannerError):
    """Unrecoverable setup failure; the run aborts with a non-zero exit."""


class ConfigError(SetupError):
    """Missing or invalid configuration (base URL, credential, limits)."""


class FeedFetchError(SetupError):
    """Raised when the threat-intel feed cannot be downloaded."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"failed to fetch feed {url}: {reason}")


# ── per-query (downgraded to ERROR report rows) ──


class QueryError(ScannerError):
    """An AQL query failed after retries, or with a non-retryable response."""


class AuthorizationError(QueryError):
    """The repository rejected the credential (401/403). Never retried."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"authorization failed (HTTP {status_code})")
