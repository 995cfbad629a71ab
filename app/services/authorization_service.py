"""
CENTRALIZED AUTHORIZATION SERVICE
==================================

All permission checks live here.
Every core operation receives the acting user explicitly (an Actor);
nothing reads "who is logged in" from global state.

Each can_* check returns (allowed, reason).
"""

from typing import NamedTuple

from app.models import UserRole


class AuthorizationError(Exception):
    """Raised when authorization fails"""
    pass


class Actor(NamedTuple):
    """Who is performing an operation."""
    id: str
    role: str

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN.value

    @classmethod
    def from_user(cls, user):
        """Build from a User row (e.g. flask_login.current_user) or a user record dict."""
        if isinstance(user, dict):
            return cls(id=user['id'], role=user['role'])
        return cls(id=user.id, role=user.role)


# ============================================================
# TRANSACTION AUTHORIZATION
# ============================================================

def can_log_transaction(actor, user_id):
    """
    Check if actor can log a transaction against user_id.

    Requirements:
    - Workers log only for themselves
    - Admin may log for anyone
    """
    if actor.is_admin:
        return True, None

    if actor.id != user_id:
        return False, "You can only log transactions for yourself"

    return True, None


def can_view_transactions(actor, user_id):
    """Workers see their own history; admin sees everyone's."""
    if actor.is_admin or actor.id == user_id:
        return True, None
    return False, "You can only view your own transactions"


# ============================================================
# ADMIN-ONLY AUTHORIZATION
# ============================================================

def can_override_balances(actor):
    if not actor.is_admin:
        return False, "Only admin can update balances"
    return True, None


def can_manage_ledger(actor):
    """Export, reset, reconciliation and worker listings."""
    if not actor.is_admin:
        return False, "Admin access required"
    return True, None


# ============================================================
# HELPER FUNCTION: REQUIRE AUTHORIZATION
# ============================================================

def require_authorization(check_func, *args, error_class=AuthorizationError):
    """
    Wrapper to raise exception if authorization fails.

    Usage:
        require_authorization(can_override_balances, actor)
    """
    allowed, reason = check_func(*args)
    if not allowed:
        raise error_class(reason)
