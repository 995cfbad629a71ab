"""
BALANCE OVERRIDE SERVICE
========================

Admin sets a worker's balances directly.

- No range check: values may be negative or inconsistent with history.
  Only non-numeric or non-finite values are rejected
- Bypasses the balance calculator; later transactions fold forward
  from the new values
- Records the override as the reconciliation starting point
- Emits exactly one notification, addressed to the worker
"""

import logging
import math

from app.models import now_millis
from app.store import LedgerStore, USERS, NotFoundError
from app.services.authorization_service import can_override_balances, require_authorization
from app.services.notification_service import notify_user, format_money

logger = logging.getLogger(__name__)


class InvalidBalanceError(ValueError):
    """Raised when an override value is not a finite number"""
    pass


def override_balances(actor, user_id, cash_at_hand, cash_in_bank, store=None):
    """
    Set both balances for a user.

    Returns: the updated user record (re-read from the store)
    """
    store = store or LedgerStore()
    require_authorization(can_override_balances, actor)

    try:
        cash_at_hand = float(cash_at_hand)
        cash_in_bank = float(cash_in_bank)
    except (TypeError, ValueError):
        raise InvalidBalanceError("Balances must be numbers")
    if not (math.isfinite(cash_at_hand) and math.isfinite(cash_in_bank)):
        raise InvalidBalanceError("Balances must be finite numbers")

    store.patch(USERS, user_id, {
        'cash_at_hand': cash_at_hand,
        'cash_in_bank': cash_in_bank,
        'override_cash_at_hand': cash_at_hand,
        'override_cash_in_bank': cash_in_bank,
        'override_at': now_millis(),
    })
    logger.info(
        "Admin %s set balances for user %s: at hand=%s, in bank=%s",
        actor.id, user_id, cash_at_hand, cash_in_bank
    )

    notify_user(
        user_id,
        'Balance Updated',
        f"Your balances have been updated by the admin. "
        f"Cash at Hand: {format_money(cash_at_hand)}, Cash in Bank: {format_money(cash_in_bank)}",
        store=store,
    )

    user = store.get(USERS, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user
