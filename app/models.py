from datetime import datetime, timezone
from enum import Enum
from flask_login import UserMixin
from app.extensions import db


ADMIN_RECIPIENT = 'ADMIN'


def utc_now_iso():
    """Current UTC time as an ISO-8601 string (sortable lexically)."""
    return datetime.now(timezone.utc).isoformat()


def now_millis():
    """Current UTC time as integer milliseconds since the epoch."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


# ============================================================
# ENUMS
# ============================================================
class UserRole(str, Enum):
    ADMIN = 'ADMIN'
    WORKER = 'WORKER'


class TransactionType(str, Enum):
    TRANSFER = 'Transfer'
    WITHDRAWAL = 'Withdrawal'
    AIRTIME = 'Airtime'
    UTILITIES = 'Utilities'
    DATA = 'Data'
    WITHDRAW_AND_TRANSFER = 'Withdraw and Transfer'


class RecordMixin:
    """Plain dict view of a row, keyed by column name."""

    def to_dict(self):
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}


# ============================================================
# USER MODEL
# ============================================================
class User(UserMixin, RecordMixin, db.Model):
    """
    A worker (field cash agent) or the single admin.

    CRITICAL: cash_at_hand and cash_in_bank are ONLY changed by the
    transaction processor and the balance override processor. Every
    balance write bumps `version` so concurrent writers can detect
    that they computed from a stale read.
    """
    __tablename__ = 'users'

    id = db.Column(db.String(64), primary_key=True)
    role = db.Column(db.String(10), nullable=False, default=UserRole.WORKER.value)
    full_name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.String(255), nullable=False, default='')
    phone_number = db.Column(db.String(20), unique=True, nullable=False)
    guardian_phone_number = db.Column(db.String(20), nullable=False, default='')

    # 4-digit PIN, stored as entered
    pin = db.Column(db.String(4), nullable=False)

    # Running balances (may go negative)
    cash_at_hand = db.Column(db.Float, nullable=False, default=0.0)
    cash_in_bank = db.Column(db.Float, nullable=False, default=0.0)
    version = db.Column(db.Integer, nullable=False, default=0)

    # Last admin override: the starting point for reconciliation
    override_cash_at_hand = db.Column(db.Float, nullable=True)
    override_cash_in_bank = db.Column(db.Float, nullable=True)
    override_at = db.Column(db.BigInteger, nullable=True)

    created_at = db.Column(db.String(40), nullable=False, default=utc_now_iso)

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN.value

    def __repr__(self):
        return f'<User {self.full_name} role={self.role}>'


# ============================================================
# TRANSACTION MODEL
# ============================================================
class Transaction(RecordMixin, db.Model):
    """
    A cash movement logged by a worker. Immutable once written.

    `user_name` is copied from the owner at creation time and is never
    re-synced. `timestamp` (epoch millis) drives ordering; `date` is the
    calendar day the transaction was logged on.
    """
    __tablename__ = 'transactions'

    id = db.Column(db.String(64), primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    user_name = db.Column(db.String(120), nullable=False)
    date = db.Column(db.String(10), nullable=False)
    timestamp = db.Column(db.BigInteger, nullable=False)
    transaction_type = db.Column(db.String(30), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    charge = db.Column(db.Float, nullable=False, default=0.0)
    description = db.Column(db.String(255), nullable=True)

    def __repr__(self):
        return f'<Transaction {self.transaction_type} amount={self.amount} user={self.user_id}>'


# ============================================================
# NOTIFICATION MODEL
# ============================================================
class Notification(RecordMixin, db.Model):
    """
    An alert addressed either to the admin broadcast target ('ADMIN')
    or to exactly one user id. `read` only ever goes False -> True.
    """
    __tablename__ = 'notifications'

    id = db.Column(db.String(64), primary_key=True)
    recipient_id = db.Column(db.String(64), nullable=False, index=True)
    title = db.Column(db.String(120), nullable=False)
    message = db.Column(db.String(500), nullable=False)
    read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.String(40), nullable=False, default=utc_now_iso)

    def __repr__(self):
        status = "read" if self.read else "unread"
        return f'<Notification {self.title!r} to={self.recipient_id} {status}>'
