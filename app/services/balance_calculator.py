"""
BALANCE CALCULATOR
==================

Pure arithmetic: (current balances, transaction) -> new balances.
No database access, no validation. Amount and charge are rounded to
the nearest whole unit (halves round up) before they are applied.

| Type                      | cash at hand      | cash in bank        |
|---------------------------|-------------------|---------------------|
| Transfer                  | + amount          | - (amount + charge) |
| Withdrawal                | - amount          | + amount            |
| Airtime / Data / Utilities| + amount          | - amount            |
| Withdraw and Transfer     | unchanged         | unchanged           |
"""

import math
from typing import Callable, Dict, Iterable, NamedTuple

from app.models import TransactionType


class Balances(NamedTuple):
    cash_at_hand: float
    cash_in_bank: float


ZERO_BALANCES = Balances(0, 0)


def round_unit(value) -> int:
    """Round to the nearest integer unit, halves towards +infinity."""
    return math.floor(float(value) + 0.5)


def _transfer(balances: Balances, amount: int, charge: int) -> Balances:
    return Balances(balances.cash_at_hand + amount, balances.cash_in_bank - (amount + charge))


def _withdrawal(balances: Balances, amount: int, charge: int) -> Balances:
    return Balances(balances.cash_at_hand - amount, balances.cash_in_bank + amount)


def _sale(balances: Balances, amount: int, charge: int) -> Balances:
    return Balances(balances.cash_at_hand + amount, balances.cash_in_bank - amount)


def _no_effect(balances: Balances, amount: int, charge: int) -> Balances:
    return balances


RULES: Dict[TransactionType, Callable[[Balances, int, int], Balances]] = {
    TransactionType.TRANSFER: _transfer,
    TransactionType.WITHDRAWAL: _withdrawal,
    TransactionType.AIRTIME: _sale,
    TransactionType.DATA: _sale,
    TransactionType.UTILITIES: _sale,
    TransactionType.WITHDRAW_AND_TRANSFER: _no_effect,
}

_missing = set(TransactionType) - set(RULES)
if _missing:
    raise RuntimeError(f"No balance rule for transaction types: {sorted(t.value for t in _missing)}")


def apply_transaction(balances, transaction_type, amount, charge=0) -> Balances:
    """
    Apply one transaction to a balance pair.

    Args:
        balances: (cash_at_hand, cash_in_bank)
        transaction_type: TransactionType or its string value
        amount, charge: any number; rounded before use

    Returns: new Balances
    """
    rule = RULES[TransactionType(transaction_type)]
    current = Balances(*balances)
    return rule(current, round_unit(amount), round_unit(charge or 0))


def fold_transactions(transactions: Iterable[dict], start=ZERO_BALANCES) -> Balances:
    """Left-fold transaction records (in the order given) over a starting pair."""
    balances = Balances(*start)
    for txn in transactions:
        balances = apply_transaction(
            balances, txn['transaction_type'], txn['amount'], txn.get('charge', 0)
        )
    return balances
