"""
ADMIN ROUTES
============

Admin-specific actions:
- Worker list, search and totals
- Worker transaction history
- Balance override
- Balance reconciliation
- Export / reset
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from app.services.authorization_service import Actor
from app.services.admin_service import export_snapshot, reset_ledger
from app.services.override_service import override_balances, InvalidBalanceError
from app.services.transaction_service import (
    list_user_transactions, reconcile_balances, TransactionError
)
from app.services.user_service import search_workers, ledger_summary, public_user, is_low_balance

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


# ============== WORKERS ==============
@admin_bp.route('/workers')
@login_required
def workers():
    actor = Actor.from_user(current_user)
    found = search_workers(actor, request.args.get('q'))
    return jsonify({
        'workers': [dict(public_user(w), low_balance=is_low_balance(w)) for w in found],
        'summary': ledger_summary(actor),
    })


@admin_bp.route('/workers/<user_id>/transactions')
@login_required
def worker_transactions(user_id):
    actor = Actor.from_user(current_user)

    try:
        transactions = list_user_transactions(
            actor, user_id,
            start_date=request.args.get('start'),
            end_date=request.args.get('end'),
            transaction_type=request.args.get('type'),
        )
    except TransactionError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'transactions': transactions})


# ============== BALANCE OVERRIDE ==============
@admin_bp.route('/workers/<user_id>/balances', methods=['POST'])
@login_required
def update_balances(user_id):
    actor = Actor.from_user(current_user)
    data = request.get_json(silent=True) or request.form

    try:
        user = override_balances(actor, user_id, data.get('cash_at_hand'), data.get('cash_in_bank'))
    except InvalidBalanceError:
        return jsonify({'error': 'Please enter valid balances!'}), 400

    return jsonify({'message': 'Balances updated successfully', 'user': public_user(user)})


# ============== RECALCULATE BALANCE ==============
@admin_bp.route('/workers/<user_id>/reconcile', methods=['POST'])
@login_required
def reconcile(user_id):
    actor = Actor.from_user(current_user)
    result = reconcile_balances(actor, user_id)

    if result['was_corrected']:
        message = 'Balance corrected from the transaction log.'
    else:
        message = 'Balance verified - no correction needed.'

    return jsonify({'message': message, 'result': result})


# ============== EXPORT / RESET ==============
@admin_bp.route('/export')
@login_required
def export():
    return jsonify(export_snapshot(Actor.from_user(current_user)))


@admin_bp.route('/reset', methods=['POST'])
@login_required
def reset():
    actor = Actor.from_user(current_user)
    reset_ledger(actor)
    return jsonify({'message': 'Ledger reset. Default admin restored.'})
