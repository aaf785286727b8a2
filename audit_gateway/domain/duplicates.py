"""Dataset-level duplicate detection"""

from collections import defaultdict
from typing import Dict, Iterable, List

from audit_gateway.domain.models import Transaction
from audit_gateway.utils.normalize import normalize_vendor, to_cents


def duplicate_key(transaction: Transaction) -> str | None:
    """VENDOR|YYYY-MM-DD|cents, or None when the vendor is blank"""
    vendor = normalize_vendor(transaction.vendor_name)
    if not vendor:
        return None
    return f"{vendor}|{transaction.transaction_date.isoformat()}|{to_cents(transaction.amount)}"


def group_duplicates(transactions: Iterable[Transaction]) -> Dict[str, List[str]]:
    """
    Group transaction ids by normalized vendor, date and amount.

    Must run over the whole batch before any rule evaluation: whether a row
    is a duplicate depends on siblings anywhere in the batch. Groups of size
    one are kept; callers treat only groups with more than one id as
    duplicates. Ids keep batch order within a group.
    """
    groups: Dict[str, List[str]] = defaultdict(list)
    for txn in transactions:
        key = duplicate_key(txn)
        if key is None:
            continue
        groups[key].append(txn.id)
    return dict(groups)


def duplicate_counts(groups: Dict[str, List[str]]) -> Dict[str, int]:
    """Reverse index: transaction id -> size of its duplicate group (size > 1 only)"""
    counts: Dict[str, int] = {}
    for ids in groups.values():
        if len(ids) > 1:
            for txn_id in ids:
                counts[txn_id] = len(ids)
    return counts
