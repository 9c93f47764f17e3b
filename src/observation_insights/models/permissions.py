"""
Role-based scoping for analytics requests.

The identity service decides who the current actor is; this module only
narrows or rejects a filter scope based on that actor's role, so that a
non-admin never aggregates data outside their own observations.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from .scope import FilterScope


class PermissionDeniedError(PermissionError):
    """Raised when an actor requests analytics outside their permitted scope."""
    pass


class ActorRole(str, Enum):
    """Roles known to the observation system."""
    ADMIN = "admin"
    TEACHER = "teacher"


class ActorScope(BaseModel):
    """The current actor as supplied by the identity service."""

    actor_id: str
    role: ActorRole = ActorRole.TEACHER
    display_name: Optional[str] = None

    @classmethod
    def from_identity(cls, actor_id: str, role: Optional[str], display_name: Optional[str] = None) -> "ActorScope":
        """Create an ActorScope from the identity service's user record."""
        return cls(actor_id=str(actor_id), role=cls._parse_role(role), display_name=display_name)

    @staticmethod
    def _parse_role(role: Optional[str]) -> ActorRole:
        """Anything that is not clearly an administrator is treated as a teacher."""
        if not role:
            return ActorRole.TEACHER

        role_lower = role.lower()
        if "admin" in role_lower or "head" in role_lower or "leader" in role_lower:
            return ActorRole.ADMIN
        return ActorRole.TEACHER

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    def restrict(self, scope: FilterScope) -> FilterScope:
        """
        Narrow a scope to what this actor may aggregate.

        Admins get the scope unchanged. Teachers are limited to their own
        observations; asking for anyone else's is refused.

        Raises:
            PermissionDeniedError: if a teacher asks for other teachers' data
        """
        if self.is_admin:
            return scope

        if scope.teacher_ids and scope.teacher_ids != {self.actor_id}:
            raise PermissionDeniedError(
                f"Actor {self.actor_id} may only view their own observations"
            )
        return scope.with_teacher_ids({self.actor_id})

    def require_admin(self, operation: str) -> None:
        """Refuse cross-teacher operations for non-admin actors."""
        if not self.is_admin:
            raise PermissionDeniedError(f"{operation} requires an administrator")
