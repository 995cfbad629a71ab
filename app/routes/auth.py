"""
AUTHENTICATION ROUTES
=====================
"""

from flask import Blueprint, jsonify, request
from flask_login import login_user, logout_user, login_required, current_user
from app.extensions import db
from app.models import User
from app.services.user_service import (
    register_worker, authenticate, public_user, RegistrationError
)

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/register', methods=['POST'])
def register():
    if current_user.is_authenticated:
        return jsonify({'error': 'Already logged in'}), 400

    data = request.get_json(silent=True) or request.form

    try:
        user = register_worker(
            full_name=data.get('full_name'),
            address=data.get('address'),
            phone_number=data.get('phone_number'),
            guardian_phone_number=data.get('guardian_phone_number'),
            pin=data.get('pin'),
            confirm_pin=data.get('confirm_pin'),
        )
    except RegistrationError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({
        'message': 'Registration successful! Please login with your credentials.',
        'user': public_user(user)
    }), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or request.form
    record = authenticate(data.get('phone_number'), data.get('pin'))

    if record is None:
        return jsonify({'error': 'Invalid phone number or PIN'}), 401

    user = db.session.get(User, record['id'])
    login_user(user, remember=bool(data.get('remember', False)))
    return jsonify({'message': f"Welcome back, {record['full_name']}!", 'user': public_user(record)})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'You have been logged out.'})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify({'user': public_user(current_user.to_dict())})
