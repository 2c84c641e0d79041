"""
Ombor — Role gate
Route access decisions and the DRF permission classes built on them.
"""
from enum import Enum

from rest_framework.permissions import BasePermission, SAFE_METHODS

from .models import UserRole

OWNER = UserRole.OWNER
ADMIN = UserRole.ADMIN
USER = UserRole.USER

BLOCKED_MESSAGE = 'Sizning hisobingiz bloklangan.'

# Client routes and the roles allowed on each. Unlisted routes accept any signed-in role.
ROUTE_ROLES = {
    '/dashboard': (OWNER, ADMIN),
    '/dashboard/admins': (OWNER,),
    '/dashboard/warehouses': (OWNER, ADMIN),
    '/dashboard/tenants': (ADMIN,),
    '/dashboard/payments': (ADMIN,),
    '/dashboard/statistics': (OWNER, ADMIN),
    '/dashboard/profile': (OWNER, ADMIN),
}

LOGIN_ROUTE = '/auth'
DASHBOARD_ROUTE = '/dashboard'


class AccessDecision(str, Enum):
    LOGIN = 'login'
    BLOCKED = 'blocked'
    DASHBOARD = 'dashboard'
    ALLOW = 'allow'


def resolve_access(user, allowed_roles=None):
    """
    Decide what happens when ``user`` requests a route open to ``allowed_roles``.

    Blocked admins are stopped before any role check, so they land on the
    blocked screen whatever route they asked for.
    """
    if user is None or not user.is_authenticated:
        return AccessDecision.LOGIN
    if user.is_blocked:
        return AccessDecision.BLOCKED
    role = user.role
    if allowed_roles and role and role not in allowed_roles:
        return AccessDecision.DASHBOARD
    return AccessDecision.ALLOW


def redirect_for(decision):
    if decision == AccessDecision.LOGIN:
        return LOGIN_ROUTE
    if decision == AccessDecision.DASHBOARD:
        return DASHBOARD_ROUTE
    return None


class RoleGatePermission(BasePermission):
    """Base class: authenticated, not blocked, and role in ``allowed_roles``."""
    allowed_roles = None
    message = "Bu amal uchun ruxsat yo'q."

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if user.is_blocked:
            self.message = BLOCKED_MESSAGE
            return False
        if self.allowed_roles is None:
            return True
        return user.role in self.allowed_roles


class IsActiveAccount(RoleGatePermission):
    """Any signed-in role that is not blocked."""


class IsOwner(RoleGatePermission):
    """Only the system owner."""
    allowed_roles = (OWNER,)


class IsAdmin(RoleGatePermission):
    """Only warehouse admins."""
    allowed_roles = (ADMIN,)


class IsOwnerOrAdmin(RoleGatePermission):
    allowed_roles = (OWNER, ADMIN)


class IsAdminOrReadOnlyOwner(RoleGatePermission):
    """Admins read and write their own data; the owner may only read."""
    allowed_roles = (OWNER, ADMIN)

    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False
        if request.method in SAFE_METHODS:
            return True
        return request.user.role == ADMIN

    def has_object_permission(self, request, view, obj):
        if request.user.role == OWNER:
            return request.method in SAFE_METHODS
        owner_id = getattr(obj, 'admin_id', None)
        if owner_id is None and hasattr(obj, 'tenant'):
            owner_id = obj.tenant.admin_id
        return owner_id == request.user.id
