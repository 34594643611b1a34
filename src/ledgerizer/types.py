# ABOUTME: Pydantic models for Ledgerizer tool I/O
# ABOUTME: Defines report trees, AccountRecord, TrialBalance, and comparison types

from collections.abc import Iterable
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ledgerizer.exceptions import ValidationError

# Equality tolerance for debit/credit and accounting-equation checks
BALANCE_TOLERANCE = Decimal("0.01")

ZERO = Decimal("0")


def parse_amount(value: str | int | float | Decimal | None) -> Decimal:
    """
    Parse a report cell into a Decimal.

    Report cells carry amounts as text, sometimes with thousands
    separators. Anything that doesn't parse comes back as zero.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    text = str(value).strip().replace(",", "")
    if not text:
        return ZERO
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return ZERO
    if not amount.is_finite():
        return ZERO
    return amount


def parse_iso_date(value: str, field: str = "date") -> date:
    """Parse a YYYY-MM-DD string, raising ValidationError on anything else."""
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field} must be YYYY-MM-DD, got {value!r}") from e


class ReportKind(str, Enum):
    """Reports the core knows how to consume."""

    BALANCE_SHEET = "BalanceSheet"
    PROFIT_AND_LOSS = "ProfitAndLoss"


class ReportRow(BaseModel):
    """One account line of a report section. The amount is raw cell text."""

    name: str = ""
    amount: str | None = None


class ReportSection(BaseModel):
    """A titled section of a report (e.g. "Bank", "Current Liabilities")."""

    title: str
    rows: list[ReportRow] = Field(default_factory=list)


class Report(BaseModel):
    """Provider-neutral hierarchical report."""

    title: str = ""
    sections: list[ReportSection] = Field(default_factory=list)


class Entity(BaseModel):
    """A credentialed legal entity (accounting tenant)."""

    entity_id: str
    display_name: str
    is_usable: bool = True


class AccountCategory(str, Enum):
    """Trial balance classification of an account."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"
    UNCLASSIFIED = "unclassified"


class AccountRecord(BaseModel):
    """A single classified account line with its debit/credit split."""

    model_config = ConfigDict(frozen=True)

    name: str
    balance: Decimal
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    section: str
    category: AccountCategory


class Totals(BaseModel):
    """Aggregate figures for a trial balance."""

    model_config = ConfigDict(frozen=True)

    total_debits: Decimal = ZERO
    total_credits: Decimal = ZERO
    total_assets: Decimal = ZERO
    total_liabilities: Decimal = ZERO
    total_equity: Decimal = ZERO
    total_revenue: Decimal = ZERO
    total_expenses: Decimal = ZERO

    @classmethod
    def sum(cls, items: Iterable["Totals"]) -> "Totals":
        """Field-by-field sum, in iteration order."""
        fields = list(cls.model_fields)
        acc = {name: ZERO for name in fields}
        for item in items:
            for name in fields:
                acc[name] += getattr(item, name)
        return cls(**acc)


class AccountingEquation(BaseModel):
    """Assets against liabilities plus equity."""

    model_config = ConfigDict(frozen=True)

    assets: Decimal
    liabilities_and_equity: Decimal
    balanced: bool


class BalanceCheck(BaseModel):
    """Double-entry checks derived from a Totals block."""

    model_config = ConfigDict(frozen=True)

    debits_equal_credits: bool
    difference: Decimal
    accounting_equation: AccountingEquation

    @classmethod
    def from_totals(cls, totals: Totals) -> "BalanceCheck":
        difference = totals.total_debits - totals.total_credits
        liabilities_and_equity = totals.total_liabilities + totals.total_equity
        return cls(
            debits_equal_credits=abs(difference) < BALANCE_TOLERANCE,
            difference=difference,
            accounting_equation=AccountingEquation(
                assets=totals.total_assets,
                liabilities_and_equity=liabilities_and_equity,
                balanced=abs(totals.total_assets - liabilities_and_equity) < BALANCE_TOLERANCE,
            ),
        )


class TrialBalance(BaseModel):
    """Classified, totaled account balances for one entity as of one date."""

    model_config = ConfigDict(frozen=True)

    entity_id: str
    entity_name: str
    report_date: str
    assets: list[AccountRecord] = Field(default_factory=list)
    liabilities: list[AccountRecord] = Field(default_factory=list)
    equity: list[AccountRecord] = Field(default_factory=list)
    revenue: list[AccountRecord] = Field(default_factory=list)
    expenses: list[AccountRecord] = Field(default_factory=list)
    unclassified: list[AccountRecord] = Field(
        default_factory=list,
        description="Rows from sections that matched no category; excluded from totals",
    )
    totals: Totals
    balance_check: BalanceCheck
    processed_accounts: int = 0
    profit_and_loss_available: bool = True
    profit_and_loss_basis: str = Field(
        default="cumulative_to_date",
        description="P&L figures are a single-day snapshot, not period activity",
    )

    @property
    def balance_sheet_accounts(self) -> list[AccountRecord]:
        return [*self.assets, *self.liabilities, *self.equity]

    @property
    def account_count(self) -> int:
        return (
            len(self.assets)
            + len(self.liabilities)
            + len(self.equity)
            + len(self.revenue)
            + len(self.expenses)
        )


class SectionGroup(BaseModel):
    """One category of a company's accounts with its total."""

    title: str
    total: Decimal
    accounts: list[AccountRecord] = Field(default_factory=list)


class AccountCounts(BaseModel):
    total_accounts: int
    asset_accounts: int
    liability_accounts: int
    equity_accounts: int
    revenue_accounts: int
    expense_accounts: int
    unclassified_accounts: int = 0


class CompanyView(BaseModel):
    """A single entity's trial balance as shown inside a consolidation."""

    entity_id: str
    entity_name: str
    report_date: str
    trial_balance: TrialBalance
    sections: dict[str, SectionGroup]
    account_counts: AccountCounts

    @property
    def totals(self) -> Totals:
        return self.trial_balance.totals

    @property
    def balance_check(self) -> BalanceCheck:
        return self.trial_balance.balance_check


class EntityFailure(BaseModel):
    """An entity excluded from a consolidation and why."""

    entity_id: str
    entity_name: str
    error: str


class DataQuality(BaseModel):
    all_connected: bool
    all_balanced: bool
    consolidated_balanced: bool


class ConsolidationSummary(BaseModel):
    total_companies: int
    intended_companies: int
    total_accounts: int
    balanced_companies: int
    data_quality: DataQuality


class ConsolidatedTotals(BaseModel):
    totals: Totals
    balance_check: BalanceCheck


class ConsolidatedTrialBalance(BaseModel):
    """Summed trial balance across every entity that reported."""

    report_date: str
    consolidated: ConsolidatedTotals
    companies: list[CompanyView] = Field(default_factory=list)
    failed_entities: list[EntityFailure] = Field(default_factory=list)
    summary: ConsolidationSummary


class ChangeType(str, Enum):
    INCREASE = "INCREASE"
    DECREASE = "DECREASE"
    NEW_ACCOUNT = "NEW_ACCOUNT"
    REMOVED_ACCOUNT = "REMOVED_ACCOUNT"


class PeriodSummary(BaseModel):
    """Headline figures of one snapshot in a comparison."""

    report_date: str
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    total_revenue: Decimal
    total_expenses: Decimal
    total_debits: Decimal
    total_credits: Decimal
    balanced: bool


class PeriodChanges(BaseModel):
    assets_change: Decimal
    liabilities_change: Decimal
    equity_change: Decimal
    revenue_change: Decimal
    expenses_change: Decimal
    balance_status_changed: bool


class AccountChange(BaseModel):
    account_name: str
    from_balance: Decimal
    to_balance: Decimal
    change: Decimal
    change_type: ChangeType


class PeriodComparison(BaseModel):
    """Delta between two snapshots of the same entity."""

    entity_id: str
    entity_name: str
    from_date: str
    to_date: str
    account_filter: str | None = None
    from_period: PeriodSummary
    to_period: PeriodSummary
    changes: PeriodChanges
    account_changes: list[AccountChange] = Field(default_factory=list)
    significant_changes: list[AccountChange] = Field(default_factory=list)
    snapshot_basis: str = Field(
        default=(
            "Both periods are point-in-time snapshots. Revenue and expense "
            "deltas compare cumulative-to-date figures and may reflect the "
            "upstream fiscal-year reset rather than net movement."
        )
    )


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ImbalanceFinding(BaseModel):
    """An account a heuristic flagged as a likely cause of an imbalance."""

    heuristic: str
    account_name: str
    section: str
    category: AccountCategory
    balance: Decimal
    share_of_imbalance_pct: Decimal = Field(
        description="Account balance as a percentage of the absolute imbalance"
    )
    score: Decimal = Field(description="Suspicion score in [0, 1]")


class ImbalanceInvestigation(BaseModel):
    """Advisory triage of a trial balance that does not balance."""

    entity_id: str
    entity_name: str
    report_date: str
    analysis_depth: str
    focus_account: str
    status: str  # BALANCED, OUT_OF_BALANCE
    difference: Decimal
    severity: Severity | None = None
    findings: list[ImbalanceFinding] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    message: str
    advisory: str = (
        "Heuristic triage only. Findings point at accounts worth checking "
        "first; they do not prove the cause of the imbalance."
    )


class BankBalance(BaseModel):
    name: str
    balance: Decimal
    section: str


class CashPosition(BaseModel):
    """Bank-section balances from the balance sheet."""

    entity_id: str
    entity_name: str
    as_of_date: str
    total_cash: Decimal
    bank_accounts: list[BankBalance] = Field(default_factory=list)


class ChartAccount(BaseModel):
    """An account from the chart of accounts."""

    account_id: str
    code: str | None = None
    name: str
    type: str | None = None
    account_class: str | None = None
    status: str | None = None
    description: str | None = None


class Invoice(BaseModel):
    """A sales invoice that still has an amount due."""

    invoice_id: str
    invoice_number: str | None = None
    contact_name: str | None = None
    invoice_date: date | None = None
    due_date: date | None = None
    status: str
    total: Decimal
    amount_due: Decimal
    currency_code: str | None = None


class JournalLine(BaseModel):
    account_code: str | None = None
    description: str | None = None
    line_amount: Decimal
    tax_type: str | None = None


class JournalEntry(BaseModel):
    """A manual journal with its lines."""

    journal_id: str
    journal_date: date | None = None
    narration: str = ""
    status: str | None = None
    lines: list[JournalLine] = Field(default_factory=list)


class JournalFlags(BaseModel):
    large_amount: bool
    unbalanced: bool
    single_sided: bool
    affects_future_fund: bool


class UnbalancedJournal(BaseModel):
    """A manual journal whose debits and credits don't net out, or that moves a large amount."""

    journal_id: str
    journal_date: date | None = None
    narration: str = ""
    status: str | None = None
    total_debits: Decimal
    total_credits: Decimal
    imbalance_amount: Decimal
    is_unbalanced: bool
    severity: Severity
    lines: list[JournalLine] = Field(default_factory=list)
    flags: JournalFlags


class AccountMovement(BaseModel):
    """The lines of one manual journal that touch a given account."""

    journal_id: str
    journal_date: date | None = None
    narration: str = ""
    status: str | None = None
    lines: list[JournalLine] = Field(default_factory=list)
    net_amount: Decimal
