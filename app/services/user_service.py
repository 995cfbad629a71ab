"""
USER SERVICE
============

Registration, login lookup, the mandatory admin record, and the
worker listings shown on the admin dashboard.
"""

import logging
import re
import uuid

from flask import current_app

from app.models import UserRole, utc_now_iso
from app.store import LedgerStore, USERS, TransientIOError, DuplicateRecordError
from app.services.authorization_service import can_manage_ledger, require_authorization

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r'^\+234\d{10}$')
PIN_PATTERN = re.compile(r'^\d{4}$')


class RegistrationError(Exception):
    """Raised when registration input is rejected"""
    pass


# ============================================================
# ADMIN BOOTSTRAP
# ============================================================

def ensure_admin_exists(store=None):
    """
    Create the default admin when no ADMIN user exists.

    Returns: True if an admin was created
    """
    store = store or LedgerStore()
    if store.scan(USERS, role=UserRole.ADMIN.value):
        return False

    admin = dict(current_app.config['DEFAULT_ADMIN'])
    admin.update({
        'role': UserRole.ADMIN.value,
        'cash_at_hand': 0.0,
        'cash_in_bank': 0.0,
        'version': 0,
        'created_at': utc_now_iso(),
    })
    store.put(USERS, admin)
    logger.info("Default admin %s created", admin['id'])
    return True


# ============================================================
# REGISTRATION / LOGIN
# ============================================================

def register_worker(full_name, address, phone_number, guardian_phone_number,
                    pin, confirm_pin, store=None):
    """
    Register a new worker with zero balances.

    Rules:
    - Full name required
    - Both phone numbers: +234 followed by 10 digits
    - PIN: exactly 4 digits, must match confirmation
    - Phone number must not already be registered
    """
    store = store or LedgerStore()
    full_name = (full_name or '').strip()
    phone_number = (phone_number or '').strip()
    guardian_phone_number = (guardian_phone_number or '').strip()
    pin = pin or ''

    if not full_name:
        raise RegistrationError('Full name is required.')
    if not PIN_PATTERN.match(pin):
        raise RegistrationError('Password must be exactly 4 digits.')
    if pin != confirm_pin:
        raise RegistrationError('Passwords do not match.')
    if not PHONE_PATTERN.match(phone_number):
        raise RegistrationError(
            'Phone number must start with +234 followed by 10 digits (e.g., +2348012345678).'
        )
    if not PHONE_PATTERN.match(guardian_phone_number):
        raise RegistrationError('Guardian phone number must start with +234 followed by 10 digits.')

    if store.scan(USERS, phone_number=phone_number):
        raise RegistrationError('A user with this phone number already exists.')

    user = {
        'id': str(uuid.uuid4()),
        'role': UserRole.WORKER.value,
        'full_name': full_name,
        'address': (address or '').strip(),
        'phone_number': phone_number,
        'guardian_phone_number': guardian_phone_number,
        'pin': pin,
        'cash_at_hand': 0.0,
        'cash_in_bank': 0.0,
        'version': 0,
        'created_at': utc_now_iso(),
    }
    try:
        store.put(USERS, user, overwrite=False)
    except DuplicateRecordError:
        raise RegistrationError('A user with this phone number already exists.')

    logger.info("Registered worker %s (%s)", user['id'], full_name)
    return user


def authenticate(phone_number, pin, store=None):
    """Return the user record for a matching phone/PIN pair, else None."""
    store = store or LedgerStore()
    matches = store.scan(USERS, phone_number=(phone_number or '').strip())
    if matches and matches[0]['pin'] == pin:
        return matches[0]
    return None


def public_user(user):
    """User record without the PIN, for API responses."""
    return {key: value for key, value in user.items() if key != 'pin'}


def is_low_balance(user):
    """True when cash at hand is under LOW_BALANCE_THRESHOLD."""
    return user['cash_at_hand'] < current_app.config['LOW_BALANCE_THRESHOLD']


# ============================================================
# LISTINGS
# ============================================================

def list_users(store=None):
    """Every user. A store outage degrades to []."""
    store = store or LedgerStore()
    try:
        return store.scan(USERS)
    except TransientIOError:
        logger.exception("Could not load users")
        return []


def search_workers(actor, term=None, store=None):
    """Workers whose name contains `term` (case-insensitive) or whose phone contains it."""
    require_authorization(can_manage_ledger, actor)
    workers = [u for u in list_users(store=store) if u['role'] == UserRole.WORKER.value]
    if term:
        needle = term.lower()
        workers = [
            w for w in workers
            if needle in w['full_name'].lower() or term in w['phone_number']
        ]
    return sorted(workers, key=lambda w: w['full_name'].lower())


def ledger_summary(actor, store=None):
    """Totals across all workers."""
    workers = search_workers(actor, store=store)
    return {
        'worker_count': len(workers),
        'total_cash_at_hand': sum(w['cash_at_hand'] for w in workers),
        'total_cash_in_bank': sum(w['cash_in_bank'] for w in workers),
    }
