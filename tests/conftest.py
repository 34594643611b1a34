# ABOUTME: Pytest fixtures for Ledgerizer tests
# ABOUTME: In-memory report source and credential resolver plus report builders

import asyncio
from decimal import Decimal

import pytest
from fastmcp import FastMCP

from ledgerizer.exceptions import EntityUnresolvableError, ReportFetchError
from ledgerizer.server import create_server
from ledgerizer.types import Entity, Report, ReportKind, ReportRow, ReportSection


def make_report(*sections: tuple[str, list[tuple[str, str | None]]]) -> Report:
    """Build a Report from (title, [(name, amount), ...]) tuples."""
    return Report(
        sections=[
            ReportSection(
                title=title,
                rows=[ReportRow(name=name, amount=amount) for name, amount in rows],
            )
            for title, rows in sections
        ]
    )


def balance_sheet(
    assets: dict[str, str] | None = None,
    liabilities: dict[str, str] | None = None,
    equity: dict[str, str] | None = None,
) -> Report:
    """A balance sheet with one section per category."""
    return make_report(
        ("Current Assets", list((assets or {}).items())),
        ("Current Liabilities", list((liabilities or {}).items())),
        ("Equity", list((equity or {}).items())),
    )


def profit_and_loss(
    income: dict[str, str] | None = None,
    expenses: dict[str, str] | None = None,
) -> Report:
    return make_report(
        ("Income", list((income or {}).items())),
        ("Less Operating Expenses", list((expenses or {}).items())),
    )


class FakeReportSource:
    """ReportSource serving canned reports keyed by entity, kind and date."""

    def __init__(self) -> None:
        self.reports: dict[tuple[str, ReportKind, str], Report | Exception] = {}
        self.delays: dict[str, float] = {}
        self.calls: list[tuple[str, ReportKind, str, str | None]] = []

    def add(
        self,
        entity_id: str,
        kind: ReportKind,
        report_date: str,
        report: Report | Exception,
    ) -> None:
        self.reports[(entity_id, kind, report_date)] = report

    def fail(self, entity_id: str, kind: ReportKind, report_date: str) -> None:
        self.add(
            entity_id,
            kind,
            report_date,
            ReportFetchError(entity_id, kind.value, report_date, "HTTP 500"),
        )

    async def fetch_report(
        self,
        entity_id: str,
        kind: ReportKind,
        from_date: str,
        to_date: str | None = None,
    ) -> Report:
        self.calls.append((entity_id, kind, from_date, to_date))
        if entity_id in self.delays:
            await asyncio.sleep(self.delays[entity_id])

        result = self.reports.get((entity_id, kind, from_date))
        if result is None:
            raise ReportFetchError(entity_id, kind.value, from_date, "no such report")
        if isinstance(result, Exception):
            raise result
        return result


class FakeCredentials:
    """CredentialResolver over a fixed list of entities."""

    def __init__(self, entities: list[Entity]) -> None:
        self.entities = entities

    async def list_entities(self) -> list[Entity]:
        return list(self.entities)

    async def resolve(self, entity_id: str) -> Entity:
        for entity in self.entities:
            if entity.entity_id == entity_id:
                if not entity.is_usable:
                    raise EntityUnresolvableError("token expired", entity_id=entity_id)
                return entity
        raise EntityUnresolvableError("not found", entity_id=entity_id)


@pytest.fixture
def report_source() -> FakeReportSource:
    return FakeReportSource()


@pytest.fixture
def entities() -> list[Entity]:
    return [
        Entity(entity_id="tenant-a", display_name="Acme Mining Pty Ltd"),
        Entity(entity_id="tenant-b", display_name="Acme Enterprises"),
    ]


@pytest.fixture
def credentials(entities) -> FakeCredentials:
    return FakeCredentials(entities)


@pytest.fixture
def entity_a(entities) -> Entity:
    return entities[0]


@pytest.fixture
def mcp_server() -> FastMCP:
    """Create an MCP server with all tools registered."""
    return create_server()


def dec(value: str | int) -> Decimal:
    return Decimal(str(value))
