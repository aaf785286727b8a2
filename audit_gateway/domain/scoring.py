"""Risk scoring engine - core business logic for audit risk classification"""

from collections import Counter
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from audit_gateway.domain.duplicates import duplicate_counts, group_duplicates
from audit_gateway.domain.models import RiskAssessment, RiskFactor, RiskLevel, Severity, Transaction
from audit_gateway.utils.normalize import format_amount, normalize_country, normalize_vendor

HIGH_VALUE_THRESHOLD = Decimal("1000000")
MEDIUM_VALUE_THRESHOLD = Decimal("500000")
MEDIUM_RISK_COUNTRIES = frozenset({"PANAMA", "UAE"})

NO_RULE_REASON = "No rule triggered"


@dataclass(frozen=True)
class RuleOutcome:
    level: RiskLevel
    score: int
    reason: str
    factor: RiskFactor


@dataclass
class RuleContext:
    """Batch-wide state every rule may consult"""

    transactions: Sequence[Transaction]
    duplicate_groups: Dict[str, List[str]]
    duplicate_counts: Dict[str, int]
    vendor_date_counts: Counter

    @classmethod
    def from_batch(
        cls,
        transactions: Sequence[Transaction],
        duplicate_groups: Optional[Dict[str, List[str]]] = None,
    ) -> "RuleContext":
        if duplicate_groups is None:
            duplicate_groups = group_duplicates(transactions)

        vendor_date_counts: Counter = Counter()
        for txn in transactions:
            vendor = normalize_vendor(txn.vendor_name)
            if vendor:
                vendor_date_counts[(vendor, txn.transaction_date)] += 1

        return cls(
            transactions=transactions,
            duplicate_groups=duplicate_groups,
            duplicate_counts=duplicate_counts(duplicate_groups),
            vendor_date_counts=vendor_date_counts,
        )

    def same_vendor_same_date(self, vendor: str, day: date) -> int:
        return self.vendor_date_counts.get((vendor, day), 0)


def duplicate_rule(txn: Transaction, ctx: RuleContext) -> Optional[RuleOutcome]:
    """Rule 1: same vendor, date and amount appears more than once (HIGH)"""
    count = ctx.duplicate_counts.get(txn.id, 0)
    if count <= 1:
        return None
    return RuleOutcome(
        level=RiskLevel.HIGH,
        score=90,
        reason=f"Rule 1 triggered: Duplicate transaction ({count} occurrences)",
        factor=RiskFactor(
            type="duplicate_transaction",
            description=f"DUPLICATE TRANSACTION (Rule 1): Same vendor, amount, and date occurs {count} times",
            severity=Severity.HIGH,
        ),
    )


def high_value_rule(txn: Transaction, ctx: RuleContext) -> Optional[RuleOutcome]:
    """
    Rule 2: large amounts.

    > 1,000,000 is HIGH; 500,000 to 1,000,000 inclusive is MEDIUM. The
    1,000,000 boundary itself belongs to the MEDIUM band.
    """
    amount = Decimal(txn.amount)
    if amount > HIGH_VALUE_THRESHOLD:
        return RuleOutcome(
            level=RiskLevel.HIGH,
            score=85,
            reason="Rule 2 triggered: Amount > 1,000,000",
            factor=RiskFactor(
                type="high_value_transaction",
                description=f"HIGH-VALUE TRANSACTION (Rule 2): Amount {format_amount(amount)} exceeds 1,000,000",
                severity=Severity.HIGH,
            ),
        )
    if MEDIUM_VALUE_THRESHOLD <= amount <= HIGH_VALUE_THRESHOLD:
        return RuleOutcome(
            level=RiskLevel.MEDIUM,
            score=60,
            reason="Rule 2 triggered: Amount between 500,000 and 1,000,000",
            factor=RiskFactor(
                type="high_value_transaction",
                description=(
                    f"HIGH-VALUE TRANSACTION (Rule 2): Amount {format_amount(amount)} "
                    "is between 500,000 and 1,000,000"
                ),
                severity=Severity.MEDIUM,
            ),
        )
    return None


def vendor_country_rule(txn: Transaction, ctx: RuleContext) -> Optional[RuleOutcome]:
    """Rule 3: vendor located in a listed jurisdiction (MEDIUM)"""
    country = normalize_country(txn.vendor_country)
    if country not in MEDIUM_RISK_COUNTRIES:
        return None
    return RuleOutcome(
        level=RiskLevel.MEDIUM,
        score=50,
        reason=f"Rule 3 triggered: Vendor country is {country}",
        factor=RiskFactor(
            type="vendor_country_risk",
            description=f"VENDOR COUNTRY RISK (Rule 3): Vendor country is {country}",
            severity=Severity.MEDIUM,
        ),
    )


def frequency_rule(txn: Transaction, ctx: RuleContext) -> Optional[RuleOutcome]:
    """Rule 4: several payments to the same vendor on the same date (MEDIUM)"""
    vendor = normalize_vendor(txn.vendor_name)
    if not vendor:
        return None
    count = ctx.same_vendor_same_date(vendor, txn.transaction_date)
    if count <= 1:
        return None
    return RuleOutcome(
        level=RiskLevel.MEDIUM,
        score=45,
        reason=f"Rule 4 triggered: {count} payments to same vendor on same date",
        factor=RiskFactor(
            type="frequency_risk",
            description=f"FREQUENCY RISK (Rule 4): {count} payments to the same vendor on the same date",
            severity=Severity.MEDIUM,
        ),
    )


Rule = Callable[[Transaction, RuleContext], Optional[RuleOutcome]]

# Evaluation order is priority order
RULE_CHAIN: Tuple[Rule, ...] = (
    duplicate_rule,
    high_value_rule,
    vendor_country_rule,
    frequency_rule,
)


def evaluate_transaction(txn: Transaction, ctx: RuleContext) -> RiskAssessment:
    """
    Classify one transaction. First matching rule wins and stops the chain,
    so an assessment carries at most one factor.
    """
    for rule in RULE_CHAIN:
        outcome = rule(txn, ctx)
        if outcome is not None:
            return RiskAssessment(
                transaction_id=txn.id,
                risk_level=outcome.level,
                risk_score=outcome.score,
                risk_factors=[outcome.factor],
                risk_reason=outcome.reason,
            )

    return RiskAssessment(
        transaction_id=txn.id,
        risk_level=RiskLevel.LOW,
        risk_score=0,
        risk_factors=[],
        risk_reason=NO_RULE_REASON,
    )


def assess_batch(transactions: Sequence[Transaction]) -> List[RiskAssessment]:
    """
    Main entry point: group duplicates over the whole batch, then evaluate
    every transaction against the same context.

    Returns assessments in input order.
    """
    ctx = RuleContext.from_batch(transactions)
    return [evaluate_transaction(txn, ctx) for txn in transactions]
