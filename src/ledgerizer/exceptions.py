# ABOUTME: Custom exception hierarchy for Ledgerizer
# ABOUTME: Structured errors for entity lookup, report fetches, and tool input


class LedgerizerError(Exception):
    """Base exception for all Ledgerizer errors."""


class AuthenticationError(LedgerizerError):
    """Failed to authenticate with the accounting API."""


class SessionExpiredError(AuthenticationError):
    """Access token expired and could not be refreshed."""


class CredentialsNotFoundError(AuthenticationError):
    """OAuth client credentials not found in environment or 1Password."""


class EntityUnresolvableError(LedgerizerError):
    """No usable credential for the requested entity."""

    def __init__(self, message: str, entity_id: str | None = None) -> None:
        super().__init__(message)
        self.entity_id = entity_id


class ReportFetchError(LedgerizerError):
    """A report could not be retrieved for an entity."""

    def __init__(
        self,
        entity_id: str,
        report_kind: str,
        report_date: str,
        cause: str,
    ) -> None:
        super().__init__(
            f"Failed to fetch {report_kind} for {entity_id} as of {report_date}: {cause}"
        )
        self.entity_id = entity_id
        self.report_kind = report_kind
        self.report_date = report_date
        self.cause = cause


class ValidationError(LedgerizerError):
    """Invalid input provided to a tool."""


class ComparisonPrereqMissingError(ValidationError):
    """A period comparison was requested without a starting date."""


class APIError(LedgerizerError):
    """Unexpected error from the accounting API."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(APIError):
    """Too many requests to the accounting API."""
