"""
TRANSACTION SERVICE - BALANCE MUTATION ENGINE
=============================================

CRITICAL BUSINESS RULES:
1. A transaction is written once and never edited or deleted
2. Balances change ONLY through process_transaction() or an admin override
3. Each step below is its own store round-trip; there is NO rollback
4. Every committed transaction raises exactly one 'New Transaction' admin alert
5. A 'Low Balance Alert' is raised iff the new cash at hand < LOW_BALANCE_THRESHOLD

process_transaction() steps:
1. Persist the transaction (create-only)
2. Load the owner's balances (with their version)
3. Compute new balances (balance_calculator)
4. Write balances, conditional on the version read in step 2.
   On a version conflict, go back to step 2 (bounded by BALANCE_WRITE_RETRIES)
5. Notify admin: New Transaction
6. Notify admin: Low Balance Alert (when applicable)

If step 4 fails for good, the transaction stays committed with stale
balances. reconcile_balances() rebuilds balances from the log.
"""

import logging
import math
import uuid
from datetime import date

from flask import current_app

from app.models import TransactionType, now_millis
from app.store import (
    LedgerStore, USERS, TRANSACTIONS,
    LedgerStoreError, NotFoundError, TransientIOError, VersionConflictError
)
from app.services.authorization_service import (
    can_log_transaction, can_view_transactions, can_manage_ledger, require_authorization
)
from app.services.balance_calculator import (
    Balances, ZERO_BALANCES, apply_transaction, fold_transactions
)
from app.services.notification_service import notify_admin, format_money

logger = logging.getLogger(__name__)

# Differences below this are treated as float noise during reconciliation
RECONCILE_TOLERANCE = 0.01


# ============================================================
# CUSTOM EXCEPTIONS
# ============================================================

class TransactionError(Exception):
    """Raised when a transaction request is malformed"""
    pass


def parse_transaction_type(value):
    """Accept a TransactionType, its value ('Transfer') or its name ('TRANSFER')."""
    if isinstance(value, TransactionType):
        return value
    try:
        return TransactionType(value)
    except ValueError:
        pass
    try:
        return TransactionType[str(value).upper()]
    except KeyError:
        raise TransactionError(f"Unknown transaction type: {value}")


def parse_amounts(amount, charge=0):
    """Amount and charge as finite floats. Sign is not checked."""
    try:
        amount = float(amount)
        charge = float(charge or 0)
    except (TypeError, ValueError):
        raise TransactionError("Amount and charge must be numbers")

    if not (math.isfinite(amount) and math.isfinite(charge)):
        raise TransactionError("Amount and charge must be finite numbers")
    return amount, charge


# ============================================================
# BUILD
# ============================================================

def build_transaction(owner, transaction_type, amount, charge=0, description=None):
    """
    Create a new transaction record for `owner` (a user record).

    Assigns the id, today's date and the creation timestamp, and copies
    the owner's name for display.
    """
    amount, charge = parse_amounts(amount, charge)

    return {
        'id': str(uuid.uuid4()),
        'user_id': owner['id'],
        'user_name': owner['full_name'],
        'date': date.today().isoformat(),
        'timestamp': now_millis(),
        'transaction_type': parse_transaction_type(transaction_type).value,
        'amount': amount,
        'charge': charge,
        'description': description or None,
    }


# ============================================================
# PROCESS (steps 1-6)
# ============================================================

def _write_balances(store, transaction):
    """
    Steps 2-4: read, compute, conditional write. Retries on version conflict.

    Returns: (owner record as read, new Balances)
    """
    user_id = transaction['user_id']
    attempts = current_app.config.get('BALANCE_WRITE_RETRIES', 5)

    for attempt in range(1, attempts + 1):
        owner = store.get(USERS, user_id)
        if owner is None:
            raise NotFoundError(f"User {user_id} not found")

        new_balances = apply_transaction(
            (owner['cash_at_hand'], owner['cash_in_bank']),
            transaction['transaction_type'],
            transaction['amount'],
            transaction['charge'],
        )

        try:
            store.patch(
                USERS, user_id,
                {'cash_at_hand': new_balances.cash_at_hand, 'cash_in_bank': new_balances.cash_in_bank},
                expected_version=owner['version'],
            )
            return owner, new_balances
        except VersionConflictError:
            logger.warning(
                "Balance write for user %s raced another writer (attempt %d/%d)",
                user_id, attempt, attempts
            )

    raise VersionConflictError(
        f"Could not update balances for user {user_id} after {attempts} attempts"
    )


def process_transaction(actor, transaction, store=None):
    """
    Commit a transaction and apply its balance effect.

    Args:
        actor: Actor performing the operation
        transaction: record from build_transaction() (id and timestamp assigned)

    Returns: the committed transaction record
    """
    store = store or LedgerStore()
    record = dict(transaction)
    record['transaction_type'] = parse_transaction_type(record['transaction_type']).value
    record['amount'], record['charge'] = parse_amounts(record['amount'], record.get('charge', 0))

    require_authorization(can_log_transaction, actor, record['user_id'])

    if store.get(USERS, record['user_id']) is None:
        raise NotFoundError(f"User {record['user_id']} not found")

    # Step 1
    store.put(TRANSACTIONS, record, overwrite=False)
    logger.info(
        "Transaction %s committed: %s of %s for user %s",
        record['id'], record['transaction_type'], record['amount'], record['user_id']
    )

    # Steps 2-4
    try:
        owner, new_balances = _write_balances(store, record)
    except LedgerStoreError:
        logger.exception(
            "Transaction %s is committed but balances for user %s were not updated",
            record['id'], record['user_id']
        )
        raise

    # Step 5
    notify_admin(
        'New Transaction',
        f"{record['user_name']} logged a {record['transaction_type']} of {format_money(record['amount'])}.",
        store=store,
    )

    # Step 6
    threshold = current_app.config['LOW_BALANCE_THRESHOLD']
    if new_balances.cash_at_hand < threshold:
        notify_admin(
            'Low Balance Alert',
            f"{owner['full_name']}'s Cash at Hand is low ({format_money(new_balances.cash_at_hand)}).",
            store=store,
        )
        logger.info("Low balance for user %s: %s", owner['id'], new_balances.cash_at_hand)

    return record


# ============================================================
# LISTING
# ============================================================

def list_user_transactions(actor, user_id, start_date=None, end_date=None,
                           transaction_type=None, store=None):
    """
    A user's transactions, newest first.

    Filters: inclusive YYYY-MM-DD date range, and an optional type
    (None or 'ALL' means every type). A store outage degrades to [].
    """
    store = store or LedgerStore()
    require_authorization(can_view_transactions, actor, user_id)

    type_value = None
    if transaction_type and transaction_type != 'ALL':
        type_value = parse_transaction_type(transaction_type).value

    try:
        transactions = store.scan(TRANSACTIONS, user_id=user_id)
    except TransientIOError:
        logger.exception("Could not load transactions for user %s", user_id)
        return []

    if start_date:
        transactions = [t for t in transactions if t['date'] >= start_date]
    if end_date:
        transactions = [t for t in transactions if t['date'] <= end_date]
    if type_value:
        transactions = [t for t in transactions if t['transaction_type'] == type_value]

    return sorted(transactions, key=lambda t: t['timestamp'], reverse=True)


# ============================================================
# BALANCE RECALCULATION (AUDIT)
# ============================================================

def reconcile_balances(actor, user_id, store=None):
    """
    Recalculate a user's balances from the transaction log.

    Starts from the last override (or zero) and folds every later
    transaction in timestamp order. Safe to run repeatedly.
    """
    store = store or LedgerStore()
    require_authorization(can_manage_ledger, actor)

    user = store.get(USERS, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")

    transactions = store.scan(TRANSACTIONS, user_id=user_id)
    anchor_at = user['override_at']
    if anchor_at is not None:
        start = Balances(user['override_cash_at_hand'], user['override_cash_in_bank'])
        transactions = [t for t in transactions if t['timestamp'] > anchor_at]
    else:
        start = ZERO_BALANCES

    transactions.sort(key=lambda t: t['timestamp'])
    calculated = fold_transactions(transactions, start)
    previous = Balances(user['cash_at_hand'], user['cash_in_bank'])

    difference = Balances(
        calculated.cash_at_hand - previous.cash_at_hand,
        calculated.cash_in_bank - previous.cash_in_bank,
    )

    was_corrected = False
    if abs(difference.cash_at_hand) > RECONCILE_TOLERANCE or abs(difference.cash_in_bank) > RECONCILE_TOLERANCE:
        store.patch(
            USERS, user_id,
            {'cash_at_hand': calculated.cash_at_hand, 'cash_in_bank': calculated.cash_in_bank},
            expected_version=user['version'],
        )
        was_corrected = True
        logger.warning(
            "Reconciled balances for user %s: %s -> %s", user_id, tuple(previous), tuple(calculated)
        )
        notify_admin(
            'Balance Reconciled',
            f"{user['full_name']}'s balances were corrected from the transaction log. "
            f"Cash at Hand: {format_money(calculated.cash_at_hand)}, "
            f"Cash in Bank: {format_money(calculated.cash_in_bank)}",
            store=store,
        )

    return {
        'user_id': user_id,
        'previous_balances': previous._asdict(),
        'calculated_balances': calculated._asdict(),
        'difference': difference._asdict(),
        'was_corrected': was_corrected,
        'transactions_applied': len(transactions),
        'starting_point': 'override' if anchor_at is not None else 'zero',
    }
