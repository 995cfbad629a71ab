import json
import logging
import os

import click
from flask import Flask, jsonify
from app.extensions import db, login_manager
from config import Config

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    os.makedirs(app.instance_path, exist_ok=True)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    # User loader for Flask-Login
    from app.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Login required'}), 401

    # Register blueprints
    from app.routes.auth import auth_bp
    from app.routes.transactions import transactions_bp
    from app.routes.admin import admin_bp
    from app.routes.notifications import notifications_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(notifications_bp)

    register_error_handlers(app)
    register_commands(app)

    with app.app_context():
        db.create_all()
        from app.services.user_service import ensure_admin_exists
        ensure_admin_exists()
        logger.debug("Database tables ready")

    return app


def register_error_handlers(app):
    from app.store import (
        NotFoundError, AccessDeniedError, TransientIOError,
        VersionConflictError, DuplicateRecordError, ConstraintViolationError
    )
    from app.services.authorization_service import AuthorizationError
    from app.services.override_service import InvalidBalanceError
    from app.services.transaction_service import TransactionError

    @app.errorhandler(AuthorizationError)
    def handle_authorization(e):
        return jsonify({'error': str(e)}), 403

    @app.errorhandler(TransactionError)
    @app.errorhandler(InvalidBalanceError)
    @app.errorhandler(ConstraintViolationError)
    def handle_bad_request(e):
        return jsonify({'error': str(e)}), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        return jsonify({'error': str(e)}), 404

    @app.errorhandler(DuplicateRecordError)
    @app.errorhandler(VersionConflictError)
    def handle_conflict(e):
        return jsonify({'error': str(e)}), 409

    @app.errorhandler(AccessDeniedError)
    def handle_access_denied(e):
        return jsonify({
            'error': 'The ledger database refused access. Contact the operator to check its permissions.'
        }), 500

    @app.errorhandler(TransientIOError)
    def handle_transient(e):
        return jsonify({'error': 'The ledger database is unavailable. Please try again.'}), 503


def register_commands(app):
    from app.models import UserRole
    from app.store import LedgerStore, USERS
    from app.services.authorization_service import Actor
    from app.services.admin_service import export_snapshot, reset_ledger
    from app.services.transaction_service import reconcile_balances
    from app.services.user_service import ensure_admin_exists

    def system_actor():
        admin = LedgerStore().scan(USERS, role=UserRole.ADMIN.value)[0]
        return Actor.from_user(admin)

    @app.cli.command('init-ledger')
    def init_ledger():
        """Create tables and the default admin."""
        db.create_all()
        created = ensure_admin_exists()
        click.echo('Default admin created.' if created else 'Admin already exists.')

    @app.cli.command('export-ledger')
    @click.argument('output', type=click.File('w'), default='-')
    def export_ledger(output):
        """Write all collections as JSON (stdout by default)."""
        json.dump(export_snapshot(system_actor()), output, indent=2)

    @app.cli.command('reset-ledger')
    @click.confirmation_option(prompt='This deletes every user, transaction and notification. Continue?')
    def reset_ledger_command():
        """Delete everything and recreate the default admin."""
        reset_ledger(system_actor())
        click.echo('Ledger reset.')

    @app.cli.command('reconcile')
    @click.argument('user_id', required=False)
    def reconcile_command(user_id):
        """Recalculate balances from the transaction log (one user or all workers)."""
        actor = system_actor()
        store = LedgerStore()
        if user_id:
            user_ids = [user_id]
        else:
            user_ids = [u['id'] for u in store.scan(USERS, role=UserRole.WORKER.value)]

        for uid in user_ids:
            result = reconcile_balances(actor, uid, store=store)
            status = 'corrected' if result['was_corrected'] else 'ok'
            click.echo(f"{uid}: {status} {result['calculated_balances']}")
