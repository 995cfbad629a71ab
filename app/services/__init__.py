"""
Services Package
================

Business logic layer for the cash ledger.

All balance and notification operations are handled here.
Routes should call these services, not manipulate models directly.
"""

from app.services.balance_calculator import (
    Balances,
    apply_transaction,
    fold_transactions,
    round_unit
)

from app.services.transaction_service import (
    build_transaction,
    process_transaction,
    list_user_transactions,
    reconcile_balances,
    TransactionError
)

from app.services.override_service import override_balances

from app.services.notification_service import (
    notify_admin,
    notify_user,
    notification_scope,
    list_notifications,
    unread_count,
    mark_read,
    mark_all_read
)

from app.services.authorization_service import (
    Actor,
    can_log_transaction,
    can_view_transactions,
    can_override_balances,
    can_manage_ledger,
    require_authorization,
    AuthorizationError
)

from app.services.user_service import (
    ensure_admin_exists,
    register_worker,
    authenticate,
    public_user,
    list_users,
    search_workers,
    ledger_summary,
    RegistrationError
)

from app.services.admin_service import (
    export_snapshot,
    reset_ledger
)
