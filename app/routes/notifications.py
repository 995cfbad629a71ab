"""
NOTIFICATION ROUTES
===================

Scope comes from the logged-in user: admin reads the 'ADMIN' broadcast
list, workers read their own.
"""

from flask import Blueprint, current_app, jsonify
from flask_login import login_required, current_user
from app.store import LedgerStore, NOTIFICATIONS
from app.services.authorization_service import Actor
from app.services.notification_service import (
    notification_scope, list_notifications, mark_read, mark_all_read, unread_count
)

notifications_bp = Blueprint('notifications', __name__, url_prefix='/notifications')


@notifications_bp.route('')
@login_required
def index():
    scope = notification_scope(Actor.from_user(current_user))
    return jsonify({
        'notifications': list_notifications(scope),
        'unread_count': unread_count(scope),
        'poll_seconds': current_app.config['NOTIFICATION_POLL_SECONDS'],
    })


@notifications_bp.route('/<notification_id>/read', methods=['POST'])
@login_required
def read_one(notification_id):
    scope = notification_scope(Actor.from_user(current_user))
    notification = LedgerStore().get(NOTIFICATIONS, notification_id)

    if notification is None or notification['recipient_id'] != scope:
        return jsonify({'error': 'Notification not found'}), 404

    mark_read(notification_id)
    return jsonify({'message': 'Marked as read'})


@notifications_bp.route('/read-all', methods=['POST'])
@login_required
def read_all():
    scope = notification_scope(Actor.from_user(current_user))
    count = mark_all_read(scope)
    return jsonify({'message': f'{count} notification(s) marked as read', 'count': count})
