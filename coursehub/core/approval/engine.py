"""Sequential approval workflow engine.

Walks an enrollment through its frozen approval chain one step at a time.
Every operation works on a single, already-loaded enrollment aggregate and
is meant to run inside the persistence collaborator's per-enrollment lock;
the engine itself performs no I/O.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Collection, Iterable, List, Optional
from uuid import UUID

from coursehub.core.approval.authority import Actor, AuthorityChecker
from coursehub.core.approval.chain import ChainStep, validate_chain
from coursehub.core.enrollment.machine import EnrollmentStateMachine
from coursehub.core.enrollment.models import ApprovalStep, Enrollment
from coursehub.core.enrollment.states import EnrollmentAction, EnrollmentStatus
from coursehub.core.errors import (
    AlreadyResolved,
    EnrollmentFinalized,
    NotCurrentStep,
    Unauthorized,
)

logger = logging.getLogger(__name__)


@dataclass
class StepOutcome:
    """Result of resolving one approval step."""

    enrollment_id: UUID
    step: ApprovalStep
    approved: bool
    from_status: EnrollmentStatus
    to_status: EnrollmentStatus

    @property
    def completed(self) -> bool:
        """True if the step ended the workflow."""
        return self.from_status != self.to_status


class WorkflowEngine:
    """
    Orchestrates approval steps of enrollments.

    Handles:
    - Materializing the per-enrollment snapshot of a chain
    - Strict step ordering
    - Authority checks for head and role-scoped steps
    - Status transitions on final approval and on rejection
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = datetime.utcnow,
        known_role_ids: Optional[Collection[UUID]] = None,
    ):
        """
        Args:
            clock: Source of the current time
            known_role_ids: Roles that chain steps may reference; not
                checked when None
        """
        self.clock = clock
        self.known_role_ids = known_role_ids

    def create_enrollment_snapshot(
        self,
        enrollment: Enrollment,
        chain: Iterable[ChainStep],
    ) -> List[ApprovalStep]:
        """
        Freeze ``chain`` into unresolved approval steps of ``enrollment``.

        Raises:
            ChainMisconfigured: If the chain is invalid
            AlreadyResolved: If the enrollment already has a snapshot
        """
        if enrollment.steps:
            raise AlreadyResolved(
                f"Enrollment {enrollment.id} already has approval steps",
                enrollment_id=enrollment.id,
            )
        if enrollment.is_finalized:
            raise EnrollmentFinalized(enrollment.id, enrollment.status.value)

        ordered = validate_chain(chain, known_role_ids=self.known_role_ids)

        enrollment.steps = [
            ApprovalStep(
                id=uuid.uuid4(),
                enrollment_id=enrollment.id,
                template_step_id=None if template.is_implicit else template.id,
                order=template.order,
                is_head_approval=template.is_head_approval,
                is_final=template.is_final,
                role_id=template.role_id,
                is_implicit=template.is_implicit,
            )
            for template in ordered
        ]
        logger.debug("Enrollment %s: created %d approval steps", enrollment.id, len(enrollment.steps))
        return enrollment.steps

    def current_step(self, enrollment: Enrollment) -> Optional[ApprovalStep]:
        """First unresolved step in chain order, or None when all are resolved."""
        for step in enrollment.ordered_steps():
            if not step.is_resolved:
                return step
        return None

    def check_authority(self, step: ApprovalStep, actor: Actor, enrollment: Enrollment) -> bool:
        return AuthorityChecker(actor).can_resolve(step, enrollment.organization_id)

    def approve_step(
        self,
        enrollment: Enrollment,
        step_id: UUID,
        actor: Actor,
        comment: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> StepOutcome:
        """
        Approve the current step.

        Approving the final step moves the enrollment to Approve; any other
        step leaves it Pending and advances the chain.

        Raises:
            EnrollmentFinalized: If the enrollment already left Pending
            AlreadyResolved: If the step already carries a result
            NotCurrentStep: If an earlier step is still unresolved
            Unauthorized: If the actor may not resolve the step
        """
        return self._resolve(enrollment, step_id, actor, comment, approved=True, now=now)

    def reject_step(
        self,
        enrollment: Enrollment,
        step_id: UUID,
        actor: Actor,
        comment: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> StepOutcome:
        """
        Reject the current step.

        A rejection at any position moves the enrollment to Reject. Later
        steps stay unresolved.

        Raises:
            Same as :meth:`approve_step`.
        """
        return self._resolve(enrollment, step_id, actor, comment, approved=False, now=now)

    def auto_approve(self, enrollment: Enrollment, *, now: Optional[datetime] = None) -> Optional[StepOutcome]:
        """Resolve the implicit step of an auto-approving enrollment, if any."""
        step = self.current_step(enrollment)
        if step is None or not step.is_implicit or enrollment.is_finalized:
            return None
        return self._resolve(enrollment, step.id, Actor.system(), "Auto-approved", approved=True, now=now)

    def _resolve(
        self,
        enrollment: Enrollment,
        step_id: UUID,
        actor: Actor,
        comment: Optional[str],
        *,
        approved: bool,
        now: Optional[datetime],
    ) -> StepOutcome:
        verb = "approve" if approved else "reject"

        if enrollment.is_finalized:
            logger.warning(
                "Enrollment %s: refused %s of step %s by %s, enrollment is %s",
                enrollment.id, verb, step_id, actor.user_id, enrollment.status.value,
            )
            raise EnrollmentFinalized(enrollment.id, enrollment.status.value)

        step = enrollment.get_step(step_id)
        if step is not None and step.is_resolved:
            raise AlreadyResolved(
                f"Approval step {step_id} is already {'approved' if step.is_approved else 'rejected'}",
                enrollment_id=enrollment.id,
                step_id=step_id,
            )

        current = self.current_step(enrollment)
        if step is None or current is None or current.id != step_id:
            logger.warning(
                "Enrollment %s: refused %s of step %s, current step is %s",
                enrollment.id, verb, step_id, current.id if current else None,
            )
            raise NotCurrentStep(step_id, current.id if current else None)

        reason = AuthorityChecker(actor).explain(step, enrollment.organization_id)
        if reason:
            logger.warning(
                "Enrollment %s: refused %s of step %s by %s: %s",
                enrollment.id, verb, step_id, actor.user_id, reason,
            )
            raise Unauthorized(actor.user_id, step_id, reason)

        at = now or self.clock()
        from_status = enrollment.status
        step.resolve(approved, actor.user_id, at, comment)

        machine = EnrollmentStateMachine(enrollment)
        if not approved:
            machine.transition(EnrollmentAction.REJECT, actor_id=actor.user_id, at=at)
        elif step.is_final:
            machine.transition(EnrollmentAction.APPROVE, actor_id=actor.user_id, at=at)
        else:
            enrollment.updated_at = at

        logger.info(
            "Enrollment %s: step %d %sd by %s (status %s)",
            enrollment.id, step.order, verb, actor.user_id, enrollment.status.value,
        )
        return StepOutcome(
            enrollment_id=enrollment.id,
            step=step,
            approved=approved,
            from_status=from_status,
            to_status=enrollment.status,
        )
