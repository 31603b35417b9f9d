from rest_framework.permissions import SAFE_METHODS
from rest_framework.permissions import BasePermission


class IsOwnerOrReadOnly(BasePermission):
    """Allow writes only to the user who created the object.

    Objects expose their creator through ``user_id`` (posts, comments,
    events) or ``sender_id`` (chat messages).
    """

    message = "Only the author can modify this resource."

    def has_object_permission(self, request, view, obj):
        if request.method in SAFE_METHODS:
            return True
        owner_id = getattr(obj, "user_id", None)
        if owner_id is None:
            owner_id = getattr(obj, "sender_id", None)
        return owner_id is not None and owner_id == getattr(request.user, "id", None)


class IsStaffOrReadOnly(BasePermission):
    """Read access for any authenticated user, writes for staff only."""

    def has_permission(self, request, view):
        u = getattr(request, "user", None)
        if not (u and getattr(u, "is_authenticated", False)):
            return False
        if request.method in SAFE_METHODS:
            return True
        return bool(getattr(u, "is_staff", False))


class IsSelfOrReadOnly(BasePermission):
    """Users may read any profile but change only their own account."""

    message = "You can only modify your own account."

    def has_object_permission(self, request, view, obj):
        if request.method in SAFE_METHODS:
            return True
        return obj.pk == getattr(request.user, "pk", None)
