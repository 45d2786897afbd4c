"""Permission classes for CMS (back-office) endpoints."""

from __future__ import annotations

from django.db import models
from rest_framework.permissions import BasePermission


class CmsRole(models.TextChoices):
    ADMIN = "ADMIN_CMS", "CMS administrator"
    OWNER = "OWNER", "Store owner"
    SUPERUSER = "SUPER_SU", "Super user"
    SALES = "SALES", "Sales staff"
    COMMERCIAL_MANAGER = "COMMERCIAL_MANAGER", "Commercial manager"


def role_of(user) -> str | None:
    """Return the first CMS role group the user belongs to, if any."""
    if not getattr(user, "is_authenticated", False):
        return None
    if getattr(user, "is_superuser", False):
        return CmsRole.SUPERUSER
    names = set(user.groups.values_list("name", flat=True))
    for role in CmsRole:
        if role.value in names:
            return role.value
    return CmsRole.ADMIN if getattr(user, "is_staff", False) else None


class IsCmsOperator(BasePermission):
    """Staff users or members of a CMS role group."""

    message = "You do not have permission to operate on orders."

    def has_permission(self, request, view) -> bool:
        return role_of(request.user) is not None
