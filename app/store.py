"""
LEDGER STORE
============

Document-style access to the three ledger collections:
- 'users'
- 'transactions'
- 'notifications'

Records cross this boundary as plain dicts keyed by column name.
Every call is its own round-trip and commits on its own; nothing here
groups several calls into one unit of work. batch_commit() is the only
multi-record write and it is all-or-nothing for that single call.

Database failures are translated into the ledger error taxonomy:
NotFoundError, AccessDeniedError, TransientIOError (plus
DuplicateRecordError and VersionConflictError for conditional writes, and
ConstraintViolationError for records the schema rejects).
"""

import logging
from contextlib import contextmanager

from sqlalchemy import delete, update
from sqlalchemy.exc import DBAPIError, IntegrityError

from app.extensions import db
from app.models import User, Transaction, Notification

logger = logging.getLogger(__name__)

USERS = 'users'
TRANSACTIONS = 'transactions'
NOTIFICATIONS = 'notifications'

COLLECTIONS = {
    USERS: User,
    TRANSACTIONS: Transaction,
    NOTIFICATIONS: Notification,
}

# Driver messages that mean "the store refused us", not "the store is down"
ACCESS_DENIED_MARKERS = (
    'readonly',
    'read-only',
    'permission denied',
    'access denied',
    'not authorized',
)

# Integrity failures that mean "this id or unique key is already taken"
DUPLICATE_MARKERS = (
    'unique',
    'duplicate',
    'primary key',
)


# ============================================================
# CUSTOM EXCEPTIONS
# ============================================================

class LedgerStoreError(Exception):
    """Base exception for store operations"""
    pass


class NotFoundError(LedgerStoreError):
    """Raised when a record identifier does not resolve"""
    pass


class AccessDeniedError(LedgerStoreError):
    """Raised when the store rejects the operation (configuration problem)"""
    pass


class TransientIOError(LedgerStoreError):
    """Raised when the store is unreachable or the operation failed mid-flight"""
    pass


class DuplicateRecordError(LedgerStoreError):
    """Raised when a create-only write hits an existing identifier"""
    pass


class VersionConflictError(LedgerStoreError):
    """Raised when a conditional write finds the record changed since it was read"""
    pass


class ConstraintViolationError(LedgerStoreError):
    """Raised when a write breaks a schema constraint other than uniqueness (e.g. NOT NULL)"""
    pass


# ============================================================
# STORE
# ============================================================

class LedgerStore:
    """
    Usage:
        store = LedgerStore()
        user = store.get(USERS, 'admin-001')
        store.patch(USERS, user['id'], {'cash_at_hand': 0}, expected_version=user['version'])
    """

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def _model(self, collection):
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}")

    @contextmanager
    def _translate_errors(self, action, collection):
        try:
            yield
        except IntegrityError as e:
            self.session.rollback()
            message = str(e.orig if e.orig is not None else e)
            if any(marker in message.lower() for marker in DUPLICATE_MARKERS):
                raise DuplicateRecordError(f"{action} on {collection} hit an existing record: {message}") from e
            logger.error("Store rejected %s on %s: %s", action, collection, message)
            raise ConstraintViolationError(f"{action} on {collection} violated a constraint: {message}") from e
        except DBAPIError as e:
            self.session.rollback()
            message = str(e.orig if e.orig is not None else e).lower()
            if any(marker in message for marker in ACCESS_DENIED_MARKERS):
                logger.error("Store refused %s on %s: %s", action, collection, message)
                raise AccessDeniedError(
                    f"Store denied {action} on {collection}. Check database permissions."
                ) from e
            logger.warning("Store unavailable during %s on %s: %s", action, collection, message)
            raise TransientIOError(f"{action} on {collection} failed: {message}") from e

    # ---------- point reads/writes ----------

    def get(self, collection, record_id):
        """Return the record as a dict, or None when absent."""
        model = self._model(collection)
        with self._translate_errors('get', collection):
            row = self.session.get(model, record_id, populate_existing=True)
            return row.to_dict() if row is not None else None

    def put(self, collection, record, overwrite=True):
        """
        Write a full record under record['id'].

        overwrite=False makes this create-only: an existing id raises
        DuplicateRecordError instead of being replaced.
        """
        model = self._model(collection)
        with self._translate_errors('put', collection):
            row = model(**record)
            if overwrite:
                self.session.merge(row)
            else:
                self.session.add(row)
            self.session.commit()

    def patch(self, collection, record_id, fields, expected_version=None):
        """
        Update some fields of one record.

        Records that carry a `version` column get it bumped on every patch.
        With expected_version set, the write only lands if the stored
        version still matches; otherwise VersionConflictError.
        """
        model = self._model(collection)
        values = dict(fields)
        has_version = 'version' in model.__table__.columns

        with self._translate_errors('patch', collection):
            stmt = update(model).where(model.id == record_id)
            if has_version:
                values['version'] = model.version + 1
                if expected_version is not None:
                    stmt = stmt.where(model.version == expected_version)

            result = self.session.execute(
                stmt.values(**values).execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                self.session.rollback()
                exists = self.session.get(model, record_id) is not None
                if exists and expected_version is not None:
                    raise VersionConflictError(
                        f"{collection}/{record_id} changed since version {expected_version}"
                    )
                raise NotFoundError(f"{collection}/{record_id} not found")

            self.session.commit()

    # ---------- scans ----------

    def scan(self, collection, **filters):
        """Return every record matching all equality filters (unordered)."""
        model = self._model(collection)
        with self._translate_errors('scan', collection):
            rows = self.session.query(model).filter_by(**filters).populate_existing().all()
            return [row.to_dict() for row in rows]

    # ---------- grouped writes ----------

    def batch_commit(self, operations):
        """
        Apply a sequence of (collection, record_id, fields) patches in one commit.

        All-or-nothing for this call: a missing record rolls back the
        whole batch and raises NotFoundError.

        Returns: number of records updated
        """
        count = 0
        with self._translate_errors('batch_commit', 'batch'):
            for collection, record_id, fields in operations:
                model = self._model(collection)
                values = dict(fields)
                if 'version' in model.__table__.columns:
                    values['version'] = model.version + 1
                result = self.session.execute(
                    update(model)
                    .where(model.id == record_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    self.session.rollback()
                    raise NotFoundError(f"{collection}/{record_id} not found (batch rolled back)")
                count += 1
            self.session.commit()
        return count

    def clear(self, *collections):
        """Delete every record in the given collections in one commit."""
        with self._translate_errors('clear', ', '.join(collections)):
            for collection in collections:
                self.session.execute(delete(self._model(collection)))
            self.session.commit()
