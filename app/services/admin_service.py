"""
ADMIN SERVICE
=============

Whole-ledger utilities:
- export_snapshot(): dump all three collections
- reset_ledger(): wipe everything and recreate the default admin
"""

import logging

from app.models import utc_now_iso
from app.store import LedgerStore, USERS, TRANSACTIONS, NOTIFICATIONS
from app.services.authorization_service import can_manage_ledger, require_authorization
from app.services.user_service import ensure_admin_exists

logger = logging.getLogger(__name__)


def export_snapshot(actor, store=None):
    """JSON-serialisable dump of users, transactions and notifications."""
    store = store or LedgerStore()
    require_authorization(can_manage_ledger, actor)

    snapshot = {
        'exported_at': utc_now_iso(),
        'users': store.scan(USERS),
        'transactions': sorted(store.scan(TRANSACTIONS), key=lambda t: t['timestamp']),
        'notifications': sorted(store.scan(NOTIFICATIONS), key=lambda n: n['created_at']),
    }
    logger.info(
        "Exported %d users, %d transactions, %d notifications",
        len(snapshot['users']), len(snapshot['transactions']), len(snapshot['notifications'])
    )
    return snapshot


def reset_ledger(actor, store=None):
    """Delete every record, then recreate the default admin."""
    store = store or LedgerStore()
    require_authorization(can_manage_ledger, actor)

    store.clear(TRANSACTIONS, NOTIFICATIONS, USERS)
    logger.warning("Ledger reset by %s", actor.id)
    ensure_admin_exists(store=store)
