"""Per-infra user permissions."""
import logging
from typing import List, Optional, Union

from pydantic import ValidationError

from ..dispatch import OperationDispatcher
from ..errors import PermissionDeniedError
from ..models.registry import InfraPermission, PermissionRole, SystemUser
from ..operations import Operation

logger = logging.getLogger("kubehop.permissions")


class PermissionRegistry:
    def __init__(self, dispatcher: OperationDispatcher):
        self.dispatcher = dispatcher

    def get_infra_permissions(self, infra_id: int) -> List[InfraPermission]:
        data = self.dispatcher.fetch(Operation.GET_INFRA_PERMISSIONS, infra_id=infra_id) or []
        permissions = [InfraPermission.model_validate(item) for item in data]
        if not permissions:
            logger.warning(f"Infra {infra_id} has no permissions assigned")
        return permissions

    def set_infra_permission(self, infra_id: int, email: str,
                             role: Union[PermissionRole, str] = PermissionRole.MEMBER) -> None:
        """Grant ``role`` on the infra to the user with ``email``, replacing any previous role."""
        self.dispatcher.fetch(Operation.SET_INFRA_PERMISSION, infra_id=infra_id, email=email, role=role)
        logger.info(f"Granted {PermissionRole(role).value} on infra {infra_id} to {email}")

    def remove_infra_permission(self, infra_id: int, user_id: int) -> None:
        self.dispatcher.fetch(Operation.REMOVE_INFRA_PERMISSION, infra_id=infra_id, user_id=user_id)
        logger.info(f"Removed user {user_id} from infra {infra_id}")

    def get_all_users(self) -> List[SystemUser]:
        users = []
        for item in self.dispatcher.fetch(Operation.GET_ALL_USERS):
            try:
                users.append(SystemUser.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed user record: {e.error_count()} errors")
        return users


class PermissionGate:
    """Checks that a user holds the role an action needs on an infra."""

    def __init__(self, registry: PermissionRegistry):
        self.registry = registry

    def role_of(self, infra_id: int, user_id: int) -> Optional[PermissionRole]:
        for permission in self.registry.get_infra_permissions(infra_id):
            if permission.user_id == user_id:
                return permission.role
        return None

    def require(self, infra_id: int, user_id: int, admin: bool = False) -> PermissionRole:
        """Return the user's role, or raise if it is missing or too weak.

        Args:
            infra_id: Infra the action targets
            user_id: Acting user
            admin: True for topology changes, which need the admin role

        Raises:
            PermissionDeniedError: If the user may not act on the infra
        """
        role = self.role_of(infra_id, user_id)
        if role is None:
            raise PermissionDeniedError(
                f"User {user_id} has no access to infra {infra_id}", infra_id=infra_id, user_id=user_id
            )
        if admin and role is not PermissionRole.ADMIN:
            raise PermissionDeniedError(
                f"User {user_id} needs the admin role on infra {infra_id}", infra_id=infra_id, user_id=user_id
            )
        return role
