"""Approval chain templates.

A course category defines an ordered chain of approval steps: an optional
head-of-department step (conventionally order 1) followed by role-scoped
steps, the last of which is marked final. Categories without any step are
auto-approving and get a single implicit final step.
"""

import uuid
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Collection
from uuid import UUID

from coursehub.core.errors import ChainMisconfigured


# Namespace for deterministic ids of implicit auto-approve steps
IMPLICIT_STEP_NAMESPACE = uuid.UUID("6f1c1a52-3c2e-4d0b-9a57-2f6f0f4f9a10")


@dataclass(frozen=True)
class ChainStep:
    """A step definition of a category's approval chain."""

    id: UUID
    category_id: Optional[UUID]
    order: int
    is_head_approval: bool = False
    is_final: bool = False
    role_id: Optional[UUID] = None
    is_implicit: bool = False


def implicit_chain(category_id: Optional[UUID]) -> List[ChainStep]:
    """Chain used by categories that define no approval steps."""
    step_id = uuid.uuid5(IMPLICIT_STEP_NAMESPACE, str(category_id))
    return [
        ChainStep(
            id=step_id,
            category_id=category_id,
            order=1,
            is_head_approval=False,
            is_final=True,
            role_id=None,
            is_implicit=True,
        )
    ]



def validate_chain(
    steps: Iterable[ChainStep],
    *,
    known_role_ids: Optional[Collection[UUID]] = None,
    category_id: Optional[UUID] = None,
) -> List[ChainStep]:
    """
    Validate a chain definition.

    Args:
        steps: Chain steps in any order
        known_role_ids: When given, every referenced role must be in it
        category_id: Category being validated (for error context)

    Returns:
        The steps sorted by order

    Raises:
        ChainMisconfigured: If the chain is empty, has no or several final
            steps, several head steps, non-contiguous or duplicate orders,
            a role step without a role, or a head step with a role
    """
    ordered = sorted(steps, key=lambda s: s.order)

    if not ordered:
        raise ChainMisconfigured("Approval chain has no steps", category_id)

    final_steps = [s for s in ordered if s.is_final]
    if len(final_steps) != 1:
        raise ChainMisconfigured(
            f"Approval chain must have exactly one final step, found {len(final_steps)}",
            category_id,
        )

    head_steps = [s for s in ordered if s.is_head_approval]
    if len(head_steps) > 1:
        raise ChainMisconfigured(
            f"Approval chain may have at most one head approval step, found {len(head_steps)}",
            category_id,
        )

    orders = [s.order for s in ordered]
    if orders != list(range(1, len(ordered) + 1)):
        raise ChainMisconfigured(
            f"Approval orders must be unique and contiguous from 1, got {orders}",
            category_id,
        )

    for step in ordered:
        if step.is_implicit:
            continue
        if not step.is_head_approval and step.role_id is None:
            raise ChainMisconfigured(
                f"Role must be specified for non-head approval step {step.order}",
                category_id,
            )
        if step.is_head_approval and step.role_id is not None:
            raise ChainMisconfigured(
                f"Head approval step {step.order} must not reference a role",
                category_id,
            )
        if known_role_ids is not None and step.role_id is not None and step.role_id not in known_role_ids:
            raise ChainMisconfigured(
                f"Approval step {step.order} references unknown role {step.role_id}",
                category_id,
            )

    return ordered


def get_chain(
    category_id: UUID,
    loader: Callable[[UUID], Iterable[ChainStep]],
) -> List[ChainStep]:
    """
    Return the ordered approval chain of a category.

    Categories with no steps are auto-approving: a single implicit final
    step is returned instead of an error.
    """
    steps = sorted(loader(category_id), key=lambda s: s.order)
    if not steps:
        return implicit_chain(category_id)
    return steps
