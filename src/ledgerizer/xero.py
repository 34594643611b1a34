# ABOUTME: Xero accounting API session and report adapter
# ABOUTME: Authenticated per-tenant requests and conversion of Xero reports to Report trees

import logging
import re
from datetime import date, datetime, timezone
from typing import Any

import httpx

from ledgerizer.auth import XeroTokenStore
from ledgerizer.exceptions import (
    APIError,
    AuthenticationError,
    EntityUnresolvableError,
    RateLimitError,
    ReportFetchError,
    SessionExpiredError,
)
from ledgerizer.types import ChartAccount, Report, ReportKind, ReportRow, ReportSection

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.xero.com/api.xro/2.0"

_MS_DATE = re.compile(r"/Date\((-?\d+)([+-]\d{4})?\)/")


def parse_xero_date(value: str | None) -> date | None:
    """Parse either a /Date(ms+zzzz)/ value or an ISO date string."""
    if not value:
        return None
    match = _MS_DATE.match(value)
    if match:
        return datetime.fromtimestamp(int(match.group(1)) / 1000, tz=timezone.utc).date()
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def parse_xero_account(acc: dict) -> ChartAccount:
    return ChartAccount(
        account_id=str(acc.get("AccountID", "")),
        code=acc.get("Code"),
        name=acc.get("Name", ""),
        type=acc.get("Type"),
        account_class=acc.get("Class"),
        status=acc.get("Status"),
        description=acc.get("Description"),
    )


def _report_row(child: Any) -> ReportRow | None:
    """A plain Row with a name cell and an amount cell, or None for anything else."""
    if not isinstance(child, dict) or child.get("RowType") != "Row":
        return None
    cells = child.get("Cells")
    if not isinstance(cells, list) or len(cells) < 2:
        return None
    name_cell, amount_cell = cells[0], cells[1]
    if not isinstance(name_cell, dict) or not isinstance(amount_cell, dict):
        return None

    amount = amount_cell.get("Value")
    return ReportRow(
        name=str(name_cell.get("Value") or ""),
        amount=None if amount is None else str(amount),
    )


def parse_xero_report(payload: Any) -> Report:
    """
    Convert a Xero report response into a Report tree.

    Only titled Section rows are kept, and inside them only plain Row
    entries with at least a name cell and an amount cell. SummaryRows
    (section totals) and untitled sections (Gross Profit, Net Assets)
    are dropped here, as is any row that doesn't have that shape.

    Raises:
        ValueError: The payload itself is not a report response
    """
    if not isinstance(payload, dict):
        raise ValueError(f"Unexpected report payload: {type(payload).__name__}")

    reports = payload.get("Reports") or []
    if not isinstance(reports, list):
        raise ValueError(f"Unexpected Reports value: {type(reports).__name__}")
    if not reports:
        return Report()

    report = reports[0]
    if not isinstance(report, dict):
        raise ValueError(f"Unexpected report entry: {type(report).__name__}")

    sections = []
    skipped = 0
    for row in report.get("Rows") or []:
        if not isinstance(row, dict) or row.get("RowType") != "Section" or not row.get("Title"):
            continue

        section_rows = []
        for child in row.get("Rows") or []:
            parsed = _report_row(child)
            if parsed is None:
                if not (isinstance(child, dict) and child.get("RowType") == "SummaryRow"):
                    skipped += 1
                continue
            section_rows.append(parsed)

        if section_rows:
            sections.append(ReportSection(title=str(row["Title"]), rows=section_rows))

    if skipped:
        logger.debug(f"Skipped {skipped} malformed rows in {report.get('ReportName', 'report')}")

    return Report(title=str(report.get("ReportName") or ""), sections=sections)


class XeroSession:
    """
    Authenticated access to the Xero accounting API.

    Each request carries the tenant id header and a bearer token taken
    from the token store, which refreshes expired tokens on demand.
    """

    def __init__(
        self,
        token_store: XeroTokenStore | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token_store = token_store or XeroTokenStore()
        self._client = http_client

    @property
    def token_store(self) -> XeroTokenStore:
        return self._token_store

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=API_BASE_URL,
                timeout=30.0,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def get(self, path: str, tenant_id: str, **kwargs: Any) -> httpx.Response:
        """
        Make an authenticated GET request for one tenant.

        Raises:
            SessionExpiredError: Xero rejected the token (401/403)
            RateLimitError: Xero returned 429
            APIError: Any other non-2xx response
        """
        access_token = await self._token_store.access_token(tenant_id)
        client = self._get_client()

        headers = dict(kwargs.pop("headers", None) or {})
        headers["Authorization"] = f"Bearer {access_token}"
        headers["xero-tenant-id"] = tenant_id

        response = await client.get(path, headers=headers, **kwargs)

        if response.status_code in (401, 403):
            raise SessionExpiredError(
                f"Xero rejected the token for {tenant_id} ({response.status_code})"
            )
        if response.status_code == 429:
            raise RateLimitError(
                f"Xero rate limit hit for {tenant_id}", status_code=response.status_code
            )
        if response.status_code >= 400:
            raise APIError(
                f"Xero API error {response.status_code} on {path}: {response.text}",
                status_code=response.status_code,
            )
        return response

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None


class XeroReportSource:
    """ReportSource backed by the Xero Reports endpoints."""

    def __init__(self, session: XeroSession) -> None:
        self._session = session

    async def fetch_report(
        self,
        entity_id: str,
        kind: ReportKind,
        from_date: str,
        to_date: str | None = None,
    ) -> Report:
        if kind is ReportKind.BALANCE_SHEET:
            path = "/Reports/BalanceSheet"
            params = {"date": from_date}
        else:
            path = "/Reports/ProfitAndLoss"
            params = {"fromDate": from_date, "toDate": to_date or from_date}

        try:
            response = await self._session.get(path, entity_id, params=params)
            report = parse_xero_report(response.json())
        except (AuthenticationError, EntityUnresolvableError):
            raise
        except (APIError, httpx.HTTPError, ValueError) as e:
            raise ReportFetchError(
                entity_id=entity_id,
                report_kind=kind.value,
                report_date=from_date,
                cause=str(e) or type(e).__name__,
            ) from e

        logger.debug(
            f"Fetched {kind.value} for {entity_id} ({from_date}): "
            f"{len(report.sections)} sections"
        )
        return report
