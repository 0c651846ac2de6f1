"""Authority checks for approval steps.

The engine never walks the organization directory itself. Callers build an
:class:`Actor` from the identity provider (role grants) and the directory
(whether the actor heads the enrollee's department) before invoking it.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional, Tuple
from uuid import UUID


SYSTEM_ACTOR_ID = uuid.UUID("00000000-0000-0000-0000-000000000000")


@dataclass(frozen=True)
class RoleGrant:
    """A role held by a user, with its organizational scope."""

    role_id: UUID
    organization_id: Optional[UUID] = None
    applies_to_all_organizations: bool = False

    def covers(self, organization_id: Optional[UUID]) -> bool:
        """Check if this grant's scope includes ``organization_id``."""
        if self.applies_to_all_organizations:
            return True
        return self.organization_id is not None and self.organization_id == organization_id


@dataclass(frozen=True)
class Actor:
    """
    The user acting on an enrollment.

    Attributes:
        user_id: ID of the acting user
        roles: Role grants of the user
        is_head_of_enrollee: Precomputed by the directory for the enrollee
            of the enrollment being actioned
        is_system: Internal actor used for auto-approving categories
    """

    user_id: UUID
    roles: Tuple[RoleGrant, ...] = field(default_factory=tuple)
    is_head_of_enrollee: bool = False
    is_system: bool = False

    @classmethod
    def system(cls) -> "Actor":
        return cls(user_id=SYSTEM_ACTOR_ID, is_system=True)

    def grants_for(self, role_id: UUID) -> Tuple[RoleGrant, ...]:
        return tuple(grant for grant in self.roles if grant.role_id == role_id)


class AuthorityChecker:
    """Decides whether an actor may resolve a given approval step."""

    def __init__(self, actor: Actor):
        self.actor = actor

    def can_resolve(self, step, enrollee_organization_id: Optional[UUID]) -> bool:
        return not self.explain(step, enrollee_organization_id)

    def explain(self, step, enrollee_organization_id: Optional[UUID]) -> str:
        """Return why the actor may not resolve ``step``, or "" if it may."""
        actor = self.actor

        if getattr(step, "is_implicit", False):
            return "" if actor.is_system else "auto-approve steps are resolved by the system"

        if step.is_head_approval:
            return "" if actor.is_head_of_enrollee else "actor is not head of the enrollee"

        if step.role_id is None:
            return "step has no role"

        grants = actor.grants_for(step.role_id)
        if not grants:
            return f"actor does not hold role {step.role_id}"

        if not any(grant.covers(enrollee_organization_id) for grant in grants):
            return f"role {step.role_id} does not cover organization {enrollee_organization_id}"

        return ""
