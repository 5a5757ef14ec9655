"""
Distribution Request Service

Routes a member's payout request through a sequential approval chain and
then through payment:

    draft -> pending_approval -> approved -> payment_pending
          -> payment_processing -> paid | failed

Only the approver on the first pending step may act. A reject at any step
rejects the whole request; a request_edit sends it back to the requester;
an approve advances to the next pending step, or approves the request when
none remain.

Requests are pydantic models; every method returns an updated copy.
"""
from collections import Counter
from datetime import date, datetime, timezone
from typing import List, Optional, Sequence

from app.core.rounding import decimal_sum, to_decimal
from app.core.status_config import (
    ACTION_TO_STEP_STATUS,
    ApprovalAction,
    ApprovalStepStatus,
    RequestStatus,
    validate_request_transition,
)
from app.exceptions import InvalidStateError, PermissionDeniedError, ValidationError
from app.logging_config import get_logger
from app.schemas.distribution import (
    ApprovalStep,
    DistributionRequest,
    DistributionRequestSummary,
    RequestComment,
)

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _status_value(status) -> str:
    return getattr(status, "value", status)


class DistributionRequestService:
    """
    Manages distribution request status transitions.

    Responsibilities:
    - Build requests with an ordered approval chain
    - Enforce approver order
    - Validate every status change against REQUEST_TRANSITIONS
    """

    def __init__(self, number_prefix: str = "DR"):
        self.number_prefix = number_prefix
        self._sequence = 0

    def next_request_number(self, year: Optional[int] = None) -> str:
        """Request numbers look like DR-2024-001."""
        self._sequence += 1
        year = year or _now().year
        return f"{self.number_prefix}-{year}-{self._sequence:03d}"

    # ========================================================================
    # Creation
    # ========================================================================

    def create(
        self,
        request_id: str,
        member_id: str,
        requested_by: str,
        amount,
        approval_chain: Sequence[ApprovalStep],
        **fields,
    ) -> DistributionRequest:
        """
        Create a draft request.

        Approval steps are sorted by their order field; duplicate orders are rejected.

        Raises:
            ValidationError: Empty chain or duplicate step order
        """
        if not approval_chain:
            raise ValidationError("Approval chain must have at least one step", field="approval_chain")
        orders = [step.order for step in approval_chain]
        if len(set(orders)) != len(orders):
            raise ValidationError("Approval steps must have distinct order values", field="approval_chain")

        now = _now()
        chain = sorted((step.model_copy() for step in approval_chain), key=lambda s: s.order)
        request = DistributionRequest(
            id=request_id,
            request_number=fields.pop("request_number", None) or self.next_request_number(now.year),
            member_id=member_id,
            requested_by=requested_by,
            amount=to_decimal(amount),
            approval_chain=chain,
            status=RequestStatus.DRAFT,
            comments=[RequestComment(
                user_id=requested_by,
                user_name="System",
                user_role="System",
                comment="Distribution request created",
                created_at=now,
            )],
            created_at=now,
            updated_at=now,
            **fields,
        )
        logger.info(
            "Distribution request created",
            extra={"request_id": request_id, "member_id": member_id, "amount": str(request.amount)},
        )
        return request

    # ========================================================================
    # Helpers
    # ========================================================================

    @staticmethod
    def current_step(request: DistributionRequest) -> Optional[ApprovalStep]:
        """First pending step in chain order, if any."""
        for step in request.approval_chain:
            if step.status == ApprovalStepStatus.PENDING:
                return step
        return None

    def _transition(self, request: DistributionRequest, new_status: RequestStatus, **updates) -> DistributionRequest:
        validate_request_transition(request.status, new_status)
        updated = request.model_copy(update={"status": new_status, "updated_at": _now(), **updates})
        logger.info(
            "Distribution request status changed",
            extra={
                "request_id": request.id,
                "from_status": _status_value(request.status),
                "to_status": _status_value(new_status),
            },
        )
        return updated

    # ========================================================================
    # Approval
    # ========================================================================

    def submit(self, request: DistributionRequest) -> DistributionRequest:
        """
        Send a draft (or edited) request for approval.

        Steps that did not approve are reset to pending, so after an edit
        the chain resumes with the approver who asked for changes.

        Raises:
            InvalidStateError: Request is not a draft or awaiting edits
        """
        if request.status not in (RequestStatus.DRAFT, RequestStatus.EDIT_REQUESTED):
            raise InvalidStateError(
                f"Request {request.request_number} cannot be submitted",
                current_state=_status_value(request.status),
                allowed_states=[RequestStatus.DRAFT.value, RequestStatus.EDIT_REQUESTED.value],
            )
        chain = []
        for step in request.approval_chain:
            if step.status == ApprovalStepStatus.APPROVED:
                chain.append(step.model_copy())
            else:
                chain.append(step.model_copy(update={
                    "status": ApprovalStepStatus.PENDING,
                    "action": None,
                    "action_date": None,
                }))
        first_pending = next((s for s in chain if s.status == ApprovalStepStatus.PENDING), None)
        if first_pending is None:
            raise InvalidStateError(
                "Every approval step has already approved; nothing to submit",
                current_state=_status_value(request.status),
            )
        return self._transition(
            request,
            RequestStatus.PENDING_APPROVAL,
            approval_chain=chain,
            current_approver=first_pending.approver_id,
        )

    def act(
        self,
        request: DistributionRequest,
        approver_id: str,
        action: ApprovalAction,
        comments: Optional[str] = None,
    ) -> DistributionRequest:
        """
        Record an approver's decision on the current step.

        Raises:
            InvalidStateError: Request is not pending approval
            PermissionDeniedError: approver_id is not the current approver
        """
        action = ApprovalAction(action)
        if request.status != RequestStatus.PENDING_APPROVAL:
            raise InvalidStateError(
                f"Request {request.request_number} is not awaiting approval",
                current_state=_status_value(request.status),
                allowed_states=[RequestStatus.PENDING_APPROVAL.value],
            )

        step = self.current_step(request)
        if step is None:
            raise InvalidStateError(
                f"Request {request.request_number} has no pending approval step",
                current_state=_status_value(request.status),
            )
        if step.approver_id != approver_id:
            raise PermissionDeniedError(
                f"Approval step {step.order} is assigned to {step.approver_id}",
                action=action.value,
                resource=f"distribution_request:{request.id}",
            )

        now = _now()
        chain: List[ApprovalStep] = [
            s.model_copy(update={
                "status": ACTION_TO_STEP_STATUS[action],
                "action": action,
                "comments": comments,
                "action_date": now,
            }) if s is step else s.model_copy()
            for s in request.approval_chain
        ]

        request_comments = list(request.comments)
        if comments:
            request_comments.append(RequestComment(
                user_id=step.approver_id,
                user_name=step.approver_name,
                user_role=step.approver_role,
                comment=comments,
                created_at=now,
            ))

        if action == ApprovalAction.REJECT:
            new_status, current_approver = RequestStatus.REJECTED, None
        elif action == ApprovalAction.REQUEST_EDIT:
            new_status, current_approver = RequestStatus.EDIT_REQUESTED, None
        else:
            next_step = next((s for s in chain if s.status == ApprovalStepStatus.PENDING), None)
            if next_step is not None:
                # Still pending approval; hand off to the next approver
                return request.model_copy(update={
                    "approval_chain": chain,
                    "comments": request_comments,
                    "current_approver": next_step.approver_id,
                    "updated_at": now,
                })
            new_status, current_approver = RequestStatus.APPROVED, None

        return self._transition(
            request,
            new_status,
            approval_chain=chain,
            comments=request_comments,
            current_approver=current_approver,
        )

    def cancel(self, request: DistributionRequest) -> DistributionRequest:
        return self._transition(request, RequestStatus.CANCELLED, current_approver=None)

    # ========================================================================
    # Payment
    # ========================================================================

    def schedule_payment(self, request: DistributionRequest) -> DistributionRequest:
        return self._transition(request, RequestStatus.PAYMENT_PENDING)

    def start_payment(self, request: DistributionRequest) -> DistributionRequest:
        return self._transition(request, RequestStatus.PAYMENT_PROCESSING)

    def complete_payment(
        self,
        request: DistributionRequest,
        transaction_reference: str,
        payment_date: Optional[date] = None,
    ) -> DistributionRequest:
        return self._transition(
            request,
            RequestStatus.PAID,
            transaction_reference=transaction_reference,
            actual_payment_date=payment_date or _now().date(),
            failure_reason=None,
        )

    def fail_payment(self, request: DistributionRequest, reason: str) -> DistributionRequest:
        logger.warning(
            "Distribution payment failed",
            extra={"request_id": request.id, "reason": reason},
        )
        return self._transition(request, RequestStatus.FAILED, failure_reason=reason)

    def retry_payment(self, request: DistributionRequest) -> DistributionRequest:
        return self._transition(request, RequestStatus.PAYMENT_PENDING)

    # ========================================================================
    # Reporting
    # ========================================================================

    def summarize(self, requests: Sequence[DistributionRequest]) -> DistributionRequestSummary:
        counts = Counter(_status_value(r.status) for r in requests)
        paid = [r.amount for r in requests if r.status == RequestStatus.PAID]
        return DistributionRequestSummary(
            total_requests=len(requests),
            by_status=dict(counts),
            pending_approval=counts.get(RequestStatus.PENDING_APPROVAL.value, 0),
            approved=counts.get(RequestStatus.APPROVED.value, 0),
            rejected=counts.get(RequestStatus.REJECTED.value, 0),
            total_amount=decimal_sum(r.amount for r in requests),
            awaiting_payment=(
                counts.get(RequestStatus.APPROVED.value, 0)
                + counts.get(RequestStatus.PAYMENT_PENDING.value, 0)
            ),
            paid_amount=decimal_sum(paid),
        )
