"""
Policy Lifecycle Manager

State machine per policy:

    ACTIVE --cancel--> CANCELED
    ACTIVE --paid claim--> CLAIMED
    ACTIVE (expired by height, or inside the renewal window) --renew--> ACTIVE

EXPIRED is never written. Whether a policy is in force is derived from the
stored heights and the current height, so passive expiry needs no job.
"""

from typing import TYPE_CHECKING, Optional

from ..schemas import EventType, Policy, PolicyStatus
from .errors import (
    InvalidInputError,
    InvalidStateError,
    PolicyNotFoundError,
    UnauthorizedError,
)
from .pricing import RiskCatalog, premium_for
from .treasury import TreasuryLedger

if TYPE_CHECKING:
    from ..db.store import CallContext, EngineState


def is_in_force(policy: Policy, height: int) -> bool:
    """ACTIVE status and start_height <= height <= end_height."""
    return (
        policy.status == PolicyStatus.ACTIVE
        and policy.start_height <= height <= policy.end_height
    )


def effective_status(policy: Policy, height: int) -> PolicyStatus:
    """Stored status, with EXPIRED substituted for an ACTIVE policy past its end."""
    if policy.status == PolicyStatus.ACTIVE and height > policy.end_height:
        return PolicyStatus.EXPIRED
    return policy.status


class PolicyManager:
    """Creates, renews and cancels policies."""

    def __init__(self, catalog: RiskCatalog, treasury: TreasuryLedger, renewal_window: int):
        self._catalog = catalog
        self._treasury = treasury
        self._renewal_window = renewal_window

    @property
    def renewal_window(self) -> int:
        return self._renewal_window

    def create(
        self,
        ctx: "CallContext",
        profile_id: int,
        coverage_amount: int,
        duration: int,
        auto_renew: bool = False,
        location: str = "",
    ) -> Policy:
        """
        Price, collect and open a policy for the caller.

        Pause gating is checked by the engine before this runs.
        """
        if duration <= 0:
            raise InvalidInputError(f"Duration must be positive, got {duration}")

        profile = self._catalog.require_profile(ctx.state, profile_id)
        premium = premium_for(profile, coverage_amount)

        self._treasury.collect_premium(ctx, ctx.caller, premium)

        policy_id = ctx.state.last_policy_id + 1
        policy = Policy(
            policy_id=policy_id,
            holder=ctx.caller,
            risk_profile_id=profile_id,
            coverage_amount=coverage_amount,
            premium_amount=premium,
            start_height=ctx.height,
            end_height=ctx.height + duration,
            status=PolicyStatus.ACTIVE,
            auto_renew=auto_renew,
            location=location,
            created_at=ctx.height,
            last_updated=ctx.height,
        )
        ctx.state.policies[policy_id] = policy
        ctx.state.last_policy_id = policy_id
        ctx.state.user_policies.setdefault(ctx.caller, []).append(policy_id)

        ctx.record(EventType.POLICY_CREATED, "policy", policy_id, policy.model_dump())
        return policy

    def renew(self, ctx: "CallContext", policy_id: int, duration: int) -> Policy:
        policy = self.require_holder(ctx, policy_id)
        if duration <= 0:
            raise InvalidInputError(f"Duration must be positive, got {duration}")
        if policy.status != PolicyStatus.ACTIVE:
            raise InvalidStateError(
                f"Policy {policy_id} is {policy.status.value} and cannot be renewed"
            )
        if not self._in_renewal_window(policy, ctx.height):
            raise InvalidStateError(
                f"Policy {policy_id} ends at {policy.end_height}; renewal opens "
                f"{self._renewal_window} heights before expiry"
            )

        premium = self._catalog.calculate_premium(
            ctx.state, policy.risk_profile_id, policy.coverage_amount
        )
        self._treasury.collect_premium(ctx, ctx.caller, premium)

        renewed = policy.model_copy(update={
            "premium_amount": premium,
            "start_height": ctx.height,
            "end_height": ctx.height + duration,
            "renewal_count": policy.renewal_count + 1,
            "status": PolicyStatus.ACTIVE,
            "last_updated": ctx.height,
        })
        ctx.state.policies[policy_id] = renewed
        ctx.record(
            EventType.POLICY_RENEWED,
            "policy",
            policy_id,
            {
                "policy_id": policy_id,
                "premium_amount": premium,
                "start_height": renewed.start_height,
                "end_height": renewed.end_height,
                "renewal_count": renewed.renewal_count,
            },
        )
        return renewed

    def cancel(self, ctx: "CallContext", policy_id: int) -> tuple[Policy, int]:
        """
        Cancel an ACTIVE policy.

        Refunds half the premium when more than half the term remains.
        Returns the canceled policy and the refund paid.
        """
        policy = self.require_holder(ctx, policy_id)
        if policy.status != PolicyStatus.ACTIVE:
            raise InvalidStateError(
                f"Policy {policy_id} is {policy.status.value}; only active policies can be canceled"
            )

        refund = self.refund_due(policy, ctx.height)
        self._treasury.pay_out(ctx, policy.holder, refund, "refund")

        canceled = policy.model_copy(update={
            "status": PolicyStatus.CANCELED,
            "last_updated": ctx.height,
        })
        ctx.state.policies[policy_id] = canceled
        ctx.record(
            EventType.POLICY_CANCELED,
            "policy",
            policy_id,
            {"policy_id": policy_id, "refund": refund},
        )
        return canceled, refund

    def mark_claimed(self, ctx: "CallContext", policy_id: int) -> Policy:
        """Retire a policy after a paid claim. Not an entry point."""
        policy = self.require(ctx.state, policy_id)
        claimed = policy.model_copy(update={
            "status": PolicyStatus.CLAIMED,
            "last_updated": ctx.height,
        })
        ctx.state.policies[policy_id] = claimed
        return claimed

    # ------------------------------------------------------------
    # Derived predicates and lookups
    # ------------------------------------------------------------

    @staticmethod
    def refund_due(policy: Policy, height: int) -> int:
        remaining = max(policy.end_height - height, 0)
        if remaining * 2 > policy.duration:
            return policy.premium_amount // 2
        return 0

    def _in_renewal_window(self, policy: Policy, height: int) -> bool:
        return height > policy.end_height or policy.end_height - height <= self._renewal_window

    def is_renewable(self, policy: Policy, height: int) -> bool:
        return policy.status == PolicyStatus.ACTIVE and self._in_renewal_window(policy, height)

    @staticmethod
    def time_remaining(policy: Policy, height: int) -> int:
        if not is_in_force(policy, height):
            return 0
        return policy.end_height - height

    def get(self, state: "EngineState", policy_id: int) -> Optional[Policy]:
        return state.policies.get(policy_id)

    def require(self, state: "EngineState", policy_id: int) -> Policy:
        policy = state.policies.get(policy_id)
        if policy is None:
            raise PolicyNotFoundError(f"Policy {policy_id} does not exist")
        return policy

    def require_holder(self, ctx: "CallContext", policy_id: int) -> Policy:
        policy = self.require(ctx.state, policy_id)
        if policy.holder != ctx.caller:
            raise UnauthorizedError(f"Caller does not hold policy {policy_id}")
        return policy

    def list_for_holder(self, state: "EngineState", holder: str) -> list[Policy]:
        return [state.policies[pid] for pid in state.user_policies.get(holder, [])]
