# payments/permissions.py

from rest_framework import permissions


def is_admin_user(user):
    """Staff or users with the 'admin' role may run settlement tooling."""
    return bool(user and user.is_authenticated and (user.is_staff or getattr(user, 'role', '') == 'admin'))


class IsAuthenticatedAndBusiness(permissions.BasePermission):
    """Allow access only to authenticated users with the role 'business'."""
    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.role == 'business')


class IsAuthenticatedAndAdmin(permissions.BasePermission):
    """Allow access only to staff or users with the role 'admin'."""
    message = 'Admin access required.'

    def has_permission(self, request, view):
        return is_admin_user(request.user)
