# ABOUTME: Heuristic triage of trial balance imbalances
# ABOUTME: Rule-based matchers rank accounts that may explain a nonzero difference

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from ledgerizer.types import (
    ZERO,
    AccountCategory,
    AccountRecord,
    ImbalanceFinding,
    ImbalanceInvestigation,
    Severity,
    TrialBalance,
)

logger = logging.getLogger(__name__)

CRITICAL_IMBALANCE = Decimal("1000000")
HIGH_IMBALANCE = Decimal("10000")


def severity_for(difference: Decimal) -> Severity:
    magnitude = abs(difference)
    if magnitude > CRITICAL_IMBALANCE:
        return Severity.CRITICAL
    if magnitude > HIGH_IMBALANCE:
        return Severity.HIGH
    return Severity.LOW


def _accounts(
    trial_balance: TrialBalance, categories: tuple[AccountCategory, ...]
) -> list[AccountRecord]:
    lists = {
        AccountCategory.ASSET: trial_balance.assets,
        AccountCategory.LIABILITY: trial_balance.liabilities,
        AccountCategory.EQUITY: trial_balance.equity,
        AccountCategory.REVENUE: trial_balance.revenue,
        AccountCategory.EXPENSE: trial_balance.expenses,
    }
    return [record for category in categories for record in lists.get(category, [])]


def _finding(heuristic: str, record: AccountRecord, difference: Decimal) -> ImbalanceFinding:
    magnitude = abs(difference)
    balance = abs(record.balance)
    closeness = min(balance, magnitude) / max(balance, magnitude)
    return ImbalanceFinding(
        heuristic=heuristic,
        account_name=record.name,
        section=record.section,
        category=record.category,
        balance=record.balance,
        share_of_imbalance_pct=(record.balance / magnitude * 100).quantize(Decimal("0.1")),
        score=closeness.quantize(Decimal("0.0001")),
    )


class ImbalanceHeuristic(Protocol):
    """A rule that flags accounts likely to explain an imbalance."""

    name: str

    def evaluate(self, trial_balance: TrialBalance) -> list[ImbalanceFinding]: ...


@dataclass(frozen=True)
class NamePatternHeuristic:
    """Flags accounts whose name contains a known-troublesome pattern."""

    name: str
    pattern: str
    categories: tuple[AccountCategory, ...] = (AccountCategory.EQUITY,)
    min_balance: Decimal = ZERO

    def evaluate(self, trial_balance: TrialBalance) -> list[ImbalanceFinding]:
        difference = trial_balance.balance_check.difference
        needle = self.pattern.lower()
        return [
            _finding(self.name, record, difference)
            for record in _accounts(trial_balance, self.categories)
            if needle in record.name.lower() and abs(record.balance) >= self.min_balance
        ]


@dataclass(frozen=True)
class MagnitudeMatchHeuristic:
    """Flags accounts whose balance is within `tolerance` (relative) of the imbalance."""

    name: str = "magnitude-match"
    tolerance: Decimal = Decimal("0.05")
    categories: tuple[AccountCategory, ...] = (
        AccountCategory.ASSET,
        AccountCategory.LIABILITY,
        AccountCategory.EQUITY,
    )

    def evaluate(self, trial_balance: TrialBalance) -> list[ImbalanceFinding]:
        difference = trial_balance.balance_check.difference
        magnitude = abs(difference)
        return [
            _finding(self.name, record, difference)
            for record in _accounts(trial_balance, self.categories)
            if abs(abs(record.balance) - magnitude) <= magnitude * self.tolerance
        ]


DEFAULT_HEURISTICS: tuple[ImbalanceHeuristic, ...] = (
    NamePatternHeuristic(name="future-fund-reserve", pattern="future fund"),
)


def _recommendations(finding: ImbalanceFinding) -> list[str]:
    name = finding.account_name
    if finding.category is AccountCategory.EQUITY:
        when = f"Use analyze_equity_movements to track when {name} was created"
    else:
        when = f"Use compare_periods to find when {name} moved"
    return [
        f"Use get_journal_entries to find entries affecting {name}",
        when,
        "Use find_unbalanced_transactions to identify the problematic entry",
        f"Use get_account_history for detailed {name} transaction history",
    ]


def investigate_imbalance(
    trial_balance: TrialBalance,
    focus_account: str | None = None,
    analysis_depth: str | None = None,
    heuristics: tuple[ImbalanceHeuristic, ...] = DEFAULT_HEURISTICS,
) -> ImbalanceInvestigation:
    """
    Triage a trial balance that doesn't balance.

    Advisory only: findings name accounts worth checking first and do
    not prove the cause. focus_account and analysis_depth are echoed
    back for display and do not filter anything.

    Args:
        trial_balance: Trial balance to investigate
        focus_account: Account the caller is interested in (display only)
        analysis_depth: Depth label (display only, default "detailed")
        heuristics: Rules to run, in order

    Returns:
        ImbalanceInvestigation with ranked findings and next steps
    """
    balance_check = trial_balance.balance_check
    common = {
        "entity_id": trial_balance.entity_id,
        "entity_name": trial_balance.entity_name,
        "report_date": trial_balance.report_date,
        "analysis_depth": analysis_depth or "detailed",
        "focus_account": focus_account or "All accounts",
        "difference": balance_check.difference,
    }

    if balance_check.debits_equal_credits:
        return ImbalanceInvestigation(
            **common,
            status="BALANCED",
            message="Books are properly balanced - no investigation needed",
        )

    severity = severity_for(balance_check.difference)

    findings: list[ImbalanceFinding] = []
    for heuristic in heuristics:
        found = heuristic.evaluate(trial_balance)
        logger.debug(f"Heuristic {heuristic.name} flagged {len(found)} accounts")
        findings.extend(found)
    findings.sort(key=lambda f: f.score, reverse=True)

    if findings:
        top = findings[0]
        message = (
            f"{top.account_name} ({top.balance}) represents "
            f"{top.share_of_imbalance_pct}% of the imbalance"
        )
        recommendations = _recommendations(top)
    else:
        message = "Out of balance; no heuristic identified a likely account"
        recommendations = []

    logger.info(
        f"Imbalance investigation for {trial_balance.entity_name}: "
        f"difference={balance_check.difference}, severity={severity.value}, "
        f"{len(findings)} findings"
    )

    return ImbalanceInvestigation(
        **common,
        status="OUT_OF_BALANCE",
        severity=severity,
        findings=findings,
        recommendations=recommendations,
        message=message,
    )
