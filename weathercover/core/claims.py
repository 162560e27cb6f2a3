"""
Claim Evaluation Engine

State machine per claim:

    PENDING --condition met, treasury solvent--> PAID    (policy -> CLAIMED)
    PENDING --condition not met-------------> REJECTED (policy untouched)

Both outcomes are terminal. A claim is bound at submission to one exact
(oracle, height) data point, so a claimant cannot race a stale or future
measurement. Each policy has a single claim slot; once occupied it stays
occupied.
"""

from typing import TYPE_CHECKING, Optional

from ..schemas import Claim, ClaimStatus, EventType, OracleDataPoint, PolicyCondition
from .conditions import CONDITION_INDEX, ConditionRegistry, evaluate
from .config import BPS_DENOMINATOR
from .errors import (
    AlreadyClaimedError,
    ClaimNotFoundError,
    ConditionNotFoundError,
    DataMismatchError,
    InvalidStateError,
)
from .oracles import OracleFeed
from .policies import PolicyManager, is_in_force
from .treasury import TreasuryLedger

if TYPE_CHECKING:
    from ..db.store import CallContext, EngineState


def payout_amount(coverage_amount: int, payout_bps: int) -> int:
    """coverage * payout_bps // 10000"""
    return coverage_amount * payout_bps // BPS_DENOMINATOR


class ClaimEngine:
    """Validates, evaluates and settles claims."""

    def __init__(
        self,
        policies: PolicyManager,
        conditions: ConditionRegistry,
        feed: OracleFeed,
        treasury: TreasuryLedger,
    ):
        self._policies = policies
        self._conditions = conditions
        self._feed = feed
        self._treasury = treasury

    def submit(
        self,
        ctx: "CallContext",
        policy_id: int,
        weather_event_type: str,
        weather_event_value: int,
        oracle_data_height: int,
    ) -> Claim:
        """
        Open a claim against the caller's policy.

        Pause gating is checked by the engine before this runs.
        """
        policy = self._policies.require_holder(ctx, policy_id)
        if not is_in_force(policy, ctx.height):
            raise InvalidStateError(f"Policy {policy_id} is not active")
        if policy_id in ctx.state.policy_claims:
            raise AlreadyClaimedError(
                f"Policy {policy_id} already has claim {ctx.state.policy_claims[policy_id]}"
            )

        condition = self._require_condition(ctx.state, policy_id)
        if weather_event_type != condition.weather_type:
            raise DataMismatchError(
                f"Claimed event type '{weather_event_type}' does not match the "
                f"policy condition '{condition.weather_type}'"
            )

        point = self._require_bound_point(ctx.state, condition, oracle_data_height)
        if (point.weather_type, point.value) != (weather_event_type, weather_event_value):
            raise DataMismatchError(
                f"Oracle {condition.oracle_id} reported {point.weather_type}={point.value} "
                f"at height {oracle_data_height}, claim asserts "
                f"{weather_event_type}={weather_event_value}"
            )

        claim_id = ctx.state.last_claim_id + 1
        claim = Claim(
            claim_id=claim_id,
            policy_id=policy_id,
            claimant=ctx.caller,
            status=ClaimStatus.PENDING,
            claim_amount=payout_amount(policy.coverage_amount, condition.payout_bps),
            weather_event_type=weather_event_type,
            weather_event_value=weather_event_value,
            condition_index=CONDITION_INDEX,
            oracle_data_height=oracle_data_height,
            submitted_at=ctx.height,
        )
        ctx.state.claims[claim_id] = claim
        ctx.state.last_claim_id = claim_id
        ctx.state.policy_claims[policy_id] = claim_id

        ctx.record(EventType.CLAIM_SUBMITTED, "claim", claim_id, claim.model_dump())
        return claim

    def process(self, ctx: "CallContext", claim_id: int) -> Claim:
        """
        Settle a PENDING claim.

        Re-reads the bound data point and re-evaluates the trigger. On an
        InsufficientFunds rejection the whole call unwinds and the claim
        stays PENDING.
        """
        claim = self.require(ctx.state, claim_id)
        if claim.status != ClaimStatus.PENDING:
            raise InvalidStateError(
                f"Claim {claim_id} is {claim.status.value}; only pending claims can be processed"
            )

        condition = self._require_condition(ctx.state, claim.policy_id)
        point = self._require_bound_point(ctx.state, condition, claim.oracle_data_height)

        if evaluate(condition.operator, point.value, condition.threshold):
            self._treasury.pay_out(ctx, claim.claimant, claim.claim_amount, "claim")
            settled = claim.model_copy(update={
                "status": ClaimStatus.PAID,
                "processed_at": ctx.height,
                "paid_at": ctx.height,
            })
            self._policies.mark_claimed(ctx, claim.policy_id)
            event_type = EventType.CLAIM_PAID
        else:
            settled = claim.model_copy(update={
                "status": ClaimStatus.REJECTED,
                "processed_at": ctx.height,
            })
            event_type = EventType.CLAIM_REJECTED

        ctx.state.claims[claim_id] = settled
        ctx.record(
            event_type,
            "claim",
            claim_id,
            {
                "claim_id": claim_id,
                "policy_id": claim.policy_id,
                "status": settled.status,
                "observed_value": point.value,
                "operator": condition.operator,
                "threshold": condition.threshold,
                "amount_paid": claim.claim_amount if settled.status == ClaimStatus.PAID else 0,
            },
        )
        return settled

    # ------------------------------------------------------------
    # Lookups and derived predicates
    # ------------------------------------------------------------

    def get(self, state: "EngineState", claim_id: int) -> Optional[Claim]:
        return state.claims.get(claim_id)

    def require(self, state: "EngineState", claim_id: int) -> Claim:
        claim = state.claims.get(claim_id)
        if claim is None:
            raise ClaimNotFoundError(f"Claim {claim_id} does not exist")
        return claim

    def for_policy(self, state: "EngineState", policy_id: int) -> Optional[Claim]:
        claim_id = state.policy_claims.get(policy_id)
        return state.claims.get(claim_id) if claim_id is not None else None

    def is_claimable(self, state: "EngineState", policy_id: int, height: int) -> bool:
        """In force, has a condition, and its claim slot is free."""
        policy = state.policies.get(policy_id)
        return (
            policy is not None
            and is_in_force(policy, height)
            and self._conditions.get(state, policy_id) is not None
            and policy_id not in state.policy_claims
        )

    def potential_amount(self, state: "EngineState", policy_id: int) -> int:
        policy = self._policies.require(state, policy_id)
        condition = self._conditions.get(state, policy_id)
        if condition is None:
            return 0
        return payout_amount(policy.coverage_amount, condition.payout_bps)

    def _require_condition(self, state: "EngineState", policy_id: int) -> PolicyCondition:
        condition = self._conditions.get(state, policy_id)
        if condition is None:
            raise ConditionNotFoundError(f"Policy {policy_id} has no condition attached")
        return condition

    def _require_bound_point(
        self,
        state: "EngineState",
        condition: PolicyCondition,
        height: int,
    ) -> OracleDataPoint:
        point = self._feed.get(state, condition.oracle_id, height)
        if point is None:
            raise DataMismatchError(
                f"Oracle {condition.oracle_id} has no data at height {height}"
            )
        return point
