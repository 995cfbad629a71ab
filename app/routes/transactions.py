"""
TRANSACTION ROUTES
==================

Uses transaction_service for all balance-changing operations.
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from app.store import LedgerStore, USERS
from app.services.authorization_service import Actor, can_log_transaction, require_authorization
from app.services.transaction_service import (
    build_transaction, process_transaction, list_user_transactions, TransactionError
)
from app.services.user_service import public_user

transactions_bp = Blueprint('transactions', __name__)


# ============== LOG TRANSACTION ==============
@transactions_bp.route('/transactions', methods=['POST'])
@login_required
def log_transaction():
    actor = Actor.from_user(current_user)
    data = request.get_json(silent=True) or request.form
    store = LedgerStore()

    # Admin may log on behalf of a worker
    owner_id = data.get('user_id') or actor.id
    require_authorization(can_log_transaction, actor, owner_id)

    owner = store.get(USERS, owner_id)
    if owner is None:
        return jsonify({'error': 'User not found'}), 404

    try:
        transaction = build_transaction(
            owner,
            transaction_type=data.get('transaction_type'),
            amount=data.get('amount'),
            charge=data.get('charge', 0),
            description=data.get('description'),
        )
    except TransactionError as e:
        return jsonify({'error': str(e)}), 400

    committed = process_transaction(actor, transaction, store=store)

    return jsonify({
        'message': 'Transaction logged successfully',
        'transaction': committed,
        'user': public_user(store.get(USERS, owner_id)),
    }), 201


# ============== TRANSACTION HISTORY ==============
@transactions_bp.route('/transactions')
@login_required
def my_transactions():
    actor = Actor.from_user(current_user)

    try:
        transactions = list_user_transactions(
            actor, actor.id,
            start_date=request.args.get('start'),
            end_date=request.args.get('end'),
            transaction_type=request.args.get('type'),
        )
    except TransactionError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'transactions': transactions})
