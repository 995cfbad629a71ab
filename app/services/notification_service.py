"""
NOTIFICATION SERVICE
====================

Emitter:
- notify_admin(): broadcast to the 'ADMIN' recipient
- notify_user(): addressed to exactly one user id

Query / read state:
- list_notifications(scope): scope is 'ADMIN' or a user id, never both.
  The admin scope does NOT include notifications addressed to the
  admin's own user id.
- mark_read(), mark_all_read()

mark_all_read() is a scan followed by one batch write. Anything created
between the two is left unread.
"""

import logging
import uuid

from flask import current_app

from app.models import ADMIN_RECIPIENT, utc_now_iso
from app.store import LedgerStore, NOTIFICATIONS

logger = logging.getLogger(__name__)


def format_money(value):
    """'₦5000' for whole values, '₦5000.5' otherwise."""
    symbol = current_app.config.get('CURRENCY_SYMBOL', '₦')
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return f"{symbol}{value}"


def notification_scope(actor):
    """The recipient scope an actor reads from."""
    return ADMIN_RECIPIENT if actor.is_admin else actor.id


# ============================================================
# EMITTER
# ============================================================

def emit_notification(recipient_id, title, message, store=None):
    """Append one unread notification. Returns the stored record."""
    store = store or LedgerStore()
    record = {
        'id': str(uuid.uuid4()),
        'recipient_id': recipient_id,
        'title': title,
        'message': message,
        'read': False,
        'created_at': utc_now_iso(),
    }
    store.put(NOTIFICATIONS, record, overwrite=False)
    logger.debug("Notification %s -> %s: %s", record['id'], recipient_id, title)
    return record


def notify_admin(title, message, store=None):
    return emit_notification(ADMIN_RECIPIENT, title, message, store=store)


def notify_user(user_id, title, message, store=None):
    if user_id == ADMIN_RECIPIENT:
        raise ValueError("Use notify_admin() for the admin broadcast target")
    return emit_notification(user_id, title, message, store=store)


# ============================================================
# QUERY / READ STATE
# ============================================================

def list_notifications(scope, store=None):
    """All notifications for one scope, newest first."""
    store = store or LedgerStore()
    notifications = store.scan(NOTIFICATIONS, recipient_id=scope)
    return sorted(notifications, key=lambda n: n['created_at'], reverse=True)


def unread_count(scope, store=None):
    return sum(1 for n in list_notifications(scope, store=store) if not n['read'])


def mark_read(notification_id, store=None):
    """Flip one notification to read. Raises NotFoundError for unknown ids."""
    store = store or LedgerStore()
    store.patch(NOTIFICATIONS, notification_id, {'read': True})


def mark_all_read(scope, store=None):
    """
    Mark every currently unread notification in scope as read.

    Returns: number of notifications updated
    """
    store = store or LedgerStore()
    unread = [n for n in list_notifications(scope, store=store) if not n['read']]
    if not unread:
        return 0

    count = store.batch_commit(
        [(NOTIFICATIONS, n['id'], {'read': True}) for n in unread]
    )
    logger.info("Marked %d notification(s) read for scope %s", count, scope)
    return count
