from rest_framework.permissions import BasePermission


class IsChainManager(BasePermission):
    """
    Allows access to managers and admins of the object's chain
    Objects are expected to expose a chain_id attribute
    """

    message = "Only managers of this chain may perform this action."

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and (user.is_superuser or user.role in ("manager", "admin")))

    def has_object_permission(self, request, view, obj):
        return request.user.can_manage_chain(obj.chain_id)
