# ABOUTME: Collaborator interfaces the trial balance core depends on
# ABOUTME: ReportSource and CredentialResolver protocols plus entity lookup by name

import logging
from typing import Protocol

from ledgerizer.exceptions import EntityUnresolvableError, ValidationError
from ledgerizer.types import Entity, Report, ReportKind

logger = logging.getLogger(__name__)


class ReportSource(Protocol):
    """Fetches a hierarchical report for one entity."""

    async def fetch_report(
        self,
        entity_id: str,
        kind: ReportKind,
        from_date: str,
        to_date: str | None = None,
    ) -> Report:
        """
        Fetch a report.

        Balance sheets use from_date as the as-of date; P&L reports
        cover from_date..to_date. Raises ReportFetchError on failure.
        """
        ...


class CredentialResolver(Protocol):
    """Looks up the current set of credentialed entities."""

    async def list_entities(self) -> list[Entity]:
        """Return every credentialed entity in enumeration order."""
        ...

    async def resolve(self, entity_id: str) -> Entity:
        """Return a usable entity or raise EntityUnresolvableError."""
        ...


async def resolve_entity(
    resolver: CredentialResolver,
    entity_id: str | None = None,
    organization_name: str | None = None,
) -> Entity:
    """
    Resolve an entity from either its id or its organization name.

    Names match case-insensitively in either direction, so "Mining"
    finds "Acme Mining Pty Ltd" and vice versa.

    Args:
        resolver: Credential resolver to query
        entity_id: Exact entity (tenant) id
        organization_name: Full or partial organization name

    Returns:
        The usable Entity

    Raises:
        EntityUnresolvableError: No match, or the match has no usable credential
        ValidationError: Neither argument given
    """
    if entity_id:
        return await resolver.resolve(entity_id)

    if not organization_name:
        raise ValidationError("Must provide either tenant_id or organization_name")

    needle = organization_name.lower()
    for entity in await resolver.list_entities():
        name = entity.display_name.lower()
        if needle in name or name in needle:
            if not entity.is_usable:
                raise EntityUnresolvableError(
                    f"Organization {entity.display_name} is not currently connected (token expired)",
                    entity_id=entity.entity_id,
                )
            logger.debug(f"Resolved '{organization_name}' to {entity.entity_id}")
            return entity

    raise EntityUnresolvableError(
        f"No connected organization found matching: {organization_name}"
    )
