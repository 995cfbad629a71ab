from datetime import date

import pytest

from app.models import TransactionType
from app.store import (
    LedgerStore, USERS, TRANSACTIONS, NotFoundError, TransientIOError, VersionConflictError
)
from app.services.authorization_service import AuthorizationError
from app.services.balance_calculator import apply_transaction, fold_transactions
from app.services.notification_service import list_notifications
from app.services.override_service import override_balances
from app.services.transaction_service import (
    build_transaction, process_transaction, list_user_transactions,
    reconcile_balances, parse_transaction_type, TransactionError
)


def _log(store, actor, owner, tx_type, amount, charge=0, **overrides):
    txn = build_transaction(owner, tx_type, amount, charge)
    txn.update(overrides)
    return process_transaction(actor, txn, store=store)


def _balances(store, user_id):
    user = store.get(USERS, user_id)
    return user['cash_at_hand'], user['cash_in_bank']


# ============================================================
# BUILD
# ============================================================

def test_build_transaction_fills_identity_and_owner_name(worker):
    txn = build_transaction(worker, 'TRANSFER', '5000', '100', 'Shop 4')
    assert txn['user_id'] == worker['id']
    assert txn['user_name'] == 'Ada Obi'
    assert txn['date'] == date.today().isoformat()
    assert txn['transaction_type'] == 'Transfer'
    assert txn['amount'] == 5000.0
    assert txn['charge'] == 100.0
    assert isinstance(txn['timestamp'], int)


def test_build_transaction_rejects_non_numeric_amount(worker):
    with pytest.raises(TransactionError):
        build_transaction(worker, TransactionType.AIRTIME, 'lots')


@pytest.mark.parametrize('amount, charge', [('inf', 0), ('nan', 0), (100, '-inf')])
def test_build_transaction_rejects_non_finite_values(worker, amount, charge):
    with pytest.raises(TransactionError):
        build_transaction(worker, TransactionType.WITHDRAWAL, amount, charge)


def test_parse_transaction_type_accepts_names_and_values():
    assert parse_transaction_type('Withdraw and Transfer') is TransactionType.WITHDRAW_AND_TRANSFER
    assert parse_transaction_type('withdrawal') is TransactionType.WITHDRAWAL
    with pytest.raises(TransactionError):
        parse_transaction_type('Refund')


# ============================================================
# PROCESS
# ============================================================

def test_transaction_is_persisted_and_balances_updated(store, worker, worker_actor):
    committed = _log(store, worker_actor, worker, TransactionType.TRANSFER, 5000, 100)

    assert store.get(TRANSACTIONS, committed['id'])['amount'] == 5000.0
    assert _balances(store, worker['id']) == (5000, -5100)


def test_low_balance_raises_two_admin_notifications(store, worker, worker_actor):
    _log(store, worker_actor, worker, TransactionType.TRANSFER, 5000, 100)

    admin_notes = list_notifications('ADMIN', store=store)
    titles = sorted(n['title'] for n in admin_notes)
    assert titles == ['Low Balance Alert', 'New Transaction']

    new_txn = next(n for n in admin_notes if n['title'] == 'New Transaction')
    low = next(n for n in admin_notes if n['title'] == 'Low Balance Alert')
    assert new_txn['message'] == 'Ada Obi logged a Transfer of ₦5000.'
    assert low['message'] == "Ada Obi's Cash at Hand is low (₦5000)."
    assert list_notifications(worker['id'], store=store) == []


def test_healthy_balance_raises_one_admin_notification(store, worker, worker_actor, admin_actor):
    override_balances(admin_actor, worker['id'], 20000, 50000, store=store)

    _log(store, worker_actor, worker, TransactionType.AIRTIME, 1000)

    admin_notes = list_notifications('ADMIN', store=store)
    assert [n['title'] for n in admin_notes] == ['New Transaction']
    assert _balances(store, worker['id']) == (21000, 49000)


def test_threshold_is_strictly_below(store, worker, worker_actor):
    _log(store, worker_actor, worker, TransactionType.AIRTIME, 10000)
    assert len(list_notifications('ADMIN', store=store)) == 1


def test_balances_equal_fold_of_history(store, worker, worker_actor):
    steps = [
        (TransactionType.TRANSFER, 5000, 100),
        (TransactionType.WITHDRAWAL, 3000, 0),
        (TransactionType.DATA, 250.4, 0),
        (TransactionType.WITHDRAW_AND_TRANSFER, 900, 10),
        (TransactionType.UTILITIES, 1200, 0),
    ]
    for tx_type, amount, charge in steps:
        _log(store, worker_actor, worker, tx_type, amount, charge)

    history = sorted(store.scan(TRANSACTIONS, user_id=worker['id']), key=lambda t: t['timestamp'])
    assert _balances(store, worker['id']) == tuple(fold_transactions(history))


def test_transactions_fold_forward_from_override(store, worker, worker_actor, admin_actor):
    _log(store, worker_actor, worker, TransactionType.TRANSFER, 5000, 100)
    override_balances(admin_actor, worker['id'], 20000, 50000, store=store)
    _log(store, worker_actor, worker, TransactionType.TRANSFER, 5000, 100)

    assert _balances(store, worker['id']) == (25000, 44900)


def test_unknown_owner_is_not_found_and_nothing_is_written(store, admin_actor, worker):
    txn = build_transaction(worker, TransactionType.AIRTIME, 100)
    txn['user_id'] = 'ghost'

    with pytest.raises(NotFoundError):
        process_transaction(admin_actor, txn, store=store)
    assert store.get(TRANSACTIONS, txn['id']) is None


def test_non_finite_record_is_rejected_before_any_write(store, worker, worker_actor, admin_actor):
    txn = build_transaction(worker, TransactionType.WITHDRAWAL, 100)
    txn['amount'] = float('nan')

    with pytest.raises(TransactionError):
        process_transaction(worker_actor, txn, store=store)
    assert store.get(TRANSACTIONS, txn['id']) is None
    assert _balances(store, worker['id']) == (0, 0)
    assert list_notifications('ADMIN', store=store) == []
    assert reconcile_balances(admin_actor, worker['id'], store=store)['was_corrected'] is False


def test_worker_cannot_log_for_someone_else(store, worker, other_worker, worker_actor):
    txn = build_transaction(other_worker, TransactionType.AIRTIME, 100)
    with pytest.raises(AuthorizationError):
        process_transaction(worker_actor, txn, store=store)


def test_admin_can_log_for_worker(store, worker, admin_actor):
    _log(store, admin_actor, worker, TransactionType.WITHDRAWAL, 300)
    assert _balances(store, worker['id']) == (-300, 300)


def test_failed_balance_write_leaves_transaction_committed(store, worker, worker_actor, monkeypatch):
    def store_down(*args, **kwargs):
        raise TransientIOError('store unavailable')

    monkeypatch.setattr(store, 'patch', store_down)
    txn = build_transaction(worker, TransactionType.TRANSFER, 5000, 100)

    with pytest.raises(TransientIOError):
        process_transaction(worker_actor, txn, store=store)
    monkeypatch.undo()

    assert store.get(TRANSACTIONS, txn['id']) is not None
    assert _balances(store, worker['id']) == (0, 0)
    assert list_notifications('ADMIN', store=store) == []


def test_concurrent_write_is_retried_not_lost(store, worker, worker_actor, monkeypatch):
    real_get = store.get
    user_reads = []

    def racing_get(collection, record_id):
        record = real_get(collection, record_id)
        if collection == USERS:
            user_reads.append(record_id)
            if len(user_reads) == 2:
                # Another writer lands between this read and our write
                racer = apply_transaction(
                    (record['cash_at_hand'], record['cash_in_bank']), TransactionType.AIRTIME, 1000
                )
                LedgerStore().patch(
                    USERS, record_id,
                    {'cash_at_hand': racer.cash_at_hand, 'cash_in_bank': racer.cash_in_bank},
                    expected_version=record['version'],
                )
        return record

    monkeypatch.setattr(store, 'get', racing_get)
    _log(store, worker_actor, worker, TransactionType.TRANSFER, 5000, 100)
    monkeypatch.undo()

    # Both effects survive: +1000/-1000 from the racer, +5000/-5100 from ours
    assert _balances(store, worker['id']) == (6000, -6100)
    assert len(user_reads) == 3


def test_gives_up_after_configured_retries(ctx, store, worker, worker_actor, monkeypatch):
    ctx.config['BALANCE_WRITE_RETRIES'] = 2
    real_get = store.get

    def always_stale(collection, record_id):
        record = real_get(collection, record_id)
        if collection == USERS:
            LedgerStore().patch(USERS, record_id, {'address': 'moved'})
        return record

    monkeypatch.setattr(store, 'get', always_stale)
    txn = build_transaction(worker, TransactionType.AIRTIME, 100)

    with pytest.raises(VersionConflictError):
        process_transaction(worker_actor, txn, store=store)
    monkeypatch.undo()

    assert store.get(TRANSACTIONS, txn['id']) is not None
    assert _balances(store, worker['id']) == (0, 0)


# ============================================================
# LISTING
# ============================================================

def test_list_user_transactions_newest_first_with_filters(store, worker, worker_actor):
    _log(store, worker_actor, worker, TransactionType.AIRTIME, 100, timestamp=1000, date='2026-01-01')
    _log(store, worker_actor, worker, TransactionType.TRANSFER, 200, timestamp=2000, date='2026-01-05')
    _log(store, worker_actor, worker, TransactionType.AIRTIME, 300, timestamp=3000, date='2026-01-10')

    everything = list_user_transactions(worker_actor, worker['id'], store=store)
    assert [t['amount'] for t in everything] == [300.0, 200.0, 100.0]

    airtime = list_user_transactions(worker_actor, worker['id'], transaction_type='Airtime', store=store)
    assert [t['amount'] for t in airtime] == [300.0, 100.0]

    ranged = list_user_transactions(
        worker_actor, worker['id'], start_date='2026-01-02', end_date='2026-01-10', store=store
    )
    assert [t['amount'] for t in ranged] == [300.0, 200.0]

    assert len(list_user_transactions(worker_actor, worker['id'], transaction_type='ALL', store=store)) == 3


def test_worker_cannot_list_other_workers_transactions(store, worker_actor, other_worker):
    with pytest.raises(AuthorizationError):
        list_user_transactions(worker_actor, other_worker['id'], store=store)


def test_listing_degrades_to_empty_when_store_is_down(store, worker_actor, monkeypatch):
    def store_down(*args, **kwargs):
        raise TransientIOError('down')

    monkeypatch.setattr(store, 'scan', store_down)
    assert list_user_transactions(worker_actor, worker_actor.id, store=store) == []


# ============================================================
# RECONCILIATION
# ============================================================

def test_reconcile_repairs_balances_after_failed_write(store, worker, worker_actor, admin_actor, monkeypatch):
    _log(store, worker_actor, worker, TransactionType.WITHDRAWAL, 1000)

    def store_down(*args, **kwargs):
        raise TransientIOError('down')

    monkeypatch.setattr(store, 'patch', store_down)
    with pytest.raises(TransientIOError):
        _log(store, worker_actor, worker, TransactionType.TRANSFER, 5000, 100)
    monkeypatch.undo()

    result = reconcile_balances(admin_actor, worker['id'], store=store)

    assert result['was_corrected'] is True
    assert result['transactions_applied'] == 2
    assert _balances(store, worker['id']) == (4000, -4100)
    assert any(n['title'] == 'Balance Reconciled' for n in list_notifications('ADMIN', store=store))

    again = reconcile_balances(admin_actor, worker['id'], store=store)
    assert again['was_corrected'] is False


def test_reconcile_starts_from_last_override(store, worker, worker_actor, admin_actor):
    _log(store, worker_actor, worker, TransactionType.AIRTIME, 700)
    user = override_balances(admin_actor, worker['id'], 20000, 50000, store=store)
    _log(store, worker_actor, worker, TransactionType.TRANSFER, 5000, 100,
         timestamp=user['override_at'] + 1)

    result = reconcile_balances(admin_actor, worker['id'], store=store)

    assert result['starting_point'] == 'override'
    assert result['transactions_applied'] == 1
    assert result['was_corrected'] is False
    assert _balances(store, worker['id']) == (25000, 44900)


def test_reconcile_requires_admin(store, worker, worker_actor):
    with pytest.raises(AuthorizationError):
        reconcile_balances(worker_actor, worker['id'], store=store)


def test_reconcile_unknown_user(store, admin_actor):
    with pytest.raises(NotFoundError):
        reconcile_balances(admin_actor, 'ghost', store=store)
