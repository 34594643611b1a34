# ABOUTME: Manual journal analysis for imbalance investigation
# ABOUTME: Flags unbalanced or large journals and pulls out per-account movements

import calendar
from datetime import date
from decimal import Decimal

from ledgerizer.types import (
    ZERO,
    AccountMovement,
    JournalEntry,
    JournalFlags,
    JournalLine,
    Severity,
    UnbalancedJournal,
)

DEFAULT_MINIMUM_AMOUNT = Decimal("10000")
LARGE_JOURNAL_AMOUNT = Decimal("1000000")
CRITICAL_JOURNAL_IMBALANCE = Decimal("1000000")
HIGH_JOURNAL_IMBALANCE = Decimal("100000")

FUTURE_FUND = "future fund"

# Look-back windows accepted by find_unbalanced_transactions, in months
DATE_RANGES = {"3months": 3, "1year": 12}
ALL_TIME_START = date(2000, 1, 1)


def months_before(day: date, months: int) -> date:
    """Same day `months` months earlier, clamped to the end of a shorter month."""
    index = day.year * 12 + day.month - 1 - months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def window_start(date_range: str, today: date) -> date:
    """Start date for a named look-back window. Unknown names mean one year."""
    if date_range == "all":
        return ALL_TIME_START
    return months_before(today, DATE_RANGES.get(date_range, 12))


def journal_severity(imbalance: Decimal) -> Severity:
    magnitude = abs(imbalance)
    if magnitude > CRITICAL_JOURNAL_IMBALANCE:
        return Severity.CRITICAL
    if magnitude > HIGH_JOURNAL_IMBALANCE:
        return Severity.HIGH
    return Severity.MEDIUM


def check_journal(entry: JournalEntry, minimum_amount: Decimal) -> UnbalancedJournal | None:
    """
    Check one manual journal against the minimum amount.

    Positive line amounts are debits and negative ones credits. The
    journal is reported when its debits and credits differ by at least
    minimum_amount, or when either side alone reaches it.

    Returns:
        UnbalancedJournal, or None when the journal is below both gates
    """
    total_debits = sum((line.line_amount for line in entry.lines if line.line_amount > 0), ZERO)
    total_credits = sum((-line.line_amount for line in entry.lines if line.line_amount < 0), ZERO)
    imbalance = total_debits - total_credits
    largest_side = max(total_debits, total_credits)

    is_unbalanced = abs(imbalance) >= minimum_amount
    if not is_unbalanced and largest_side < minimum_amount:
        return None

    return UnbalancedJournal(
        journal_id=entry.journal_id,
        journal_date=entry.journal_date,
        narration=entry.narration,
        status=entry.status,
        total_debits=total_debits,
        total_credits=total_credits,
        imbalance_amount=imbalance,
        is_unbalanced=is_unbalanced,
        severity=journal_severity(imbalance),
        lines=entry.lines,
        flags=JournalFlags(
            large_amount=largest_side > LARGE_JOURNAL_AMOUNT,
            unbalanced=is_unbalanced,
            single_sided=len(entry.lines) == 1,
            affects_future_fund=any(
                FUTURE_FUND in (line.description or "").lower() for line in entry.lines
            ),
        ),
    )


def find_unbalanced_journals(
    entries: list[JournalEntry],
    minimum_amount: Decimal = DEFAULT_MINIMUM_AMOUNT,
) -> list[UnbalancedJournal]:
    """Journals that pass check_journal, largest imbalance first."""
    found = [j for j in (check_journal(e, minimum_amount) for e in entries) if j is not None]
    found.sort(key=lambda j: abs(j.imbalance_amount), reverse=True)
    return found


def _touches(line: JournalLine, account_code: str | None, name_needle: str) -> bool:
    if account_code and line.account_code == account_code:
        return True
    return bool(name_needle) and name_needle in (line.description or "").lower()


def account_movements(
    entries: list[JournalEntry],
    account_code: str | None,
    account_name: str,
) -> list[AccountMovement]:
    """
    The part of each journal that touches one account, newest first.

    A line touches the account when its account code matches, or when
    its description mentions the account name.
    """
    needle = account_name.lower()
    movements = []
    for entry in entries:
        lines = [line for line in entry.lines if _touches(line, account_code, needle)]
        if not lines:
            continue
        movements.append(
            AccountMovement(
                journal_id=entry.journal_id,
                journal_date=entry.journal_date,
                narration=entry.narration,
                status=entry.status,
                lines=lines,
                net_amount=sum((line.line_amount for line in lines), ZERO),
            )
        )

    movements.sort(key=lambda m: m.journal_date or date.min, reverse=True)
    return movements
