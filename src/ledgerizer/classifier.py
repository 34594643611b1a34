# ABOUTME: Converts report sections into classified account records
# ABOUTME: Applies section-title classification and the debit/credit sign convention

import logging
from decimal import Decimal

from ledgerizer.types import ZERO, AccountCategory, AccountRecord, Report, parse_amount

logger = logging.getLogger(__name__)

# Checked in order; the first category with a matching keyword wins
SECTION_KEYWORDS: list[tuple[AccountCategory, tuple[str, ...]]] = [
    (AccountCategory.ASSET, ("bank", "asset")),
    (AccountCategory.LIABILITY, ("liabilit",)),
    (AccountCategory.EQUITY, ("equity",)),
    (AccountCategory.REVENUE, ("income", "revenue")),
    (AccountCategory.EXPENSE, ("expense", "cost")),
]


def classify_section(title: str) -> AccountCategory:
    """Map a section title to a category, or UNCLASSIFIED."""
    lowered = title.lower()
    for category, keywords in SECTION_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return AccountCategory.UNCLASSIFIED


def split_balance(category: AccountCategory, balance: Decimal) -> tuple[Decimal, Decimal]:
    """
    Split a signed balance into (debit, credit).

    Assets are debit-normal and liabilities/equity credit-normal, with a
    negative balance landing on the opposite side. Revenue is always a
    credit and expenses always a debit. Unclassified rows carry neither.
    """
    if category is AccountCategory.ASSET:
        return max(balance, ZERO), max(-balance, ZERO)
    if category in (AccountCategory.LIABILITY, AccountCategory.EQUITY):
        return max(-balance, ZERO), max(balance, ZERO)
    if category is AccountCategory.REVENUE:
        return ZERO, abs(balance)
    if category is AccountCategory.EXPENSE:
        return abs(balance), ZERO
    return ZERO, ZERO


def classify_report(report: Report) -> list[AccountRecord]:
    """
    Flatten a report into classified account records.

    Subtotal rows (any name containing "total") and zero-amount rows are
    skipped, as are rows whose amount doesn't parse. Rows under a section
    that matches no category come back as UNCLASSIFIED so the caller can
    surface them.

    Args:
        report: Report to classify

    Returns:
        One AccountRecord per remaining row, in report order
    """
    records: list[AccountRecord] = []

    for section in report.sections:
        category = classify_section(section.title)
        kept = 0

        for row in section.rows:
            name = row.name or ""
            if "total" in name.lower():
                continue

            balance = parse_amount(row.amount)
            if balance == ZERO:
                continue

            debit, credit = split_balance(category, balance)
            records.append(
                AccountRecord(
                    name=name,
                    balance=balance,
                    debit=debit,
                    credit=credit,
                    section=section.title,
                    category=category,
                )
            )
            kept += 1

        if category is AccountCategory.UNCLASSIFIED and kept:
            logger.warning(
                f"Section '{section.title}' matched no category; {kept} rows left unclassified"
            )
        else:
            logger.debug(f"Section '{section.title}': {kept} {category.value} rows")

    return records
