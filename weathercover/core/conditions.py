"""
Condition Registry

Each policy carries exactly one trigger, stored at condition index 0.
Attaching again overwrites the previous trigger until a claim is filed;
from then on the trigger a claim is settled against cannot change.
"""

import operator as _op
from typing import TYPE_CHECKING, Callable, Optional

from ..schemas import ComparisonOperator, EventType, PolicyCondition
from .config import BPS_DENOMINATOR
from .errors import (
    AlreadyClaimedError,
    InvalidInputError,
    InvalidPayoutPercentageError,
    InvalidStateError,
)
from .oracles import OracleDirectory
from .policies import PolicyManager, is_in_force

if TYPE_CHECKING:
    from ..db.store import CallContext, EngineState


CONDITION_INDEX = 0

COMPARATORS: dict[str, Callable[[int, int], bool]] = {
    ComparisonOperator.GT.value: _op.gt,
    ComparisonOperator.LT.value: _op.lt,
    ComparisonOperator.EQ.value: _op.eq,
    ComparisonOperator.GE.value: _op.ge,
    ComparisonOperator.LE.value: _op.le,
}


def evaluate(operator: str, actual: int, threshold: int) -> bool:
    """Apply a trigger comparator. Unknown operators evaluate to False."""
    if isinstance(operator, ComparisonOperator):
        operator = operator.value
    comparator = COMPARATORS.get(operator)
    if comparator is None:
        return False
    return comparator(actual, threshold)


class ConditionRegistry:
    """Single-slot trigger storage per policy."""

    def __init__(self, policies: PolicyManager, directory: OracleDirectory):
        self._policies = policies
        self._directory = directory

    def attach(
        self,
        ctx: "CallContext",
        policy_id: int,
        weather_type: str,
        operator: str,
        threshold: int,
        payout_bps: int,
        oracle_id: str,
    ) -> PolicyCondition:
        policy = self._policies.require_holder(ctx, policy_id)
        if not is_in_force(policy, ctx.height):
            raise InvalidStateError(f"Policy {policy_id} is not active")
        if policy_id in ctx.state.policy_claims:
            raise AlreadyClaimedError(
                f"Policy {policy_id} has claim {ctx.state.policy_claims[policy_id]}; "
                "its trigger is fixed"
            )
        self._directory.require_active(ctx.state, oracle_id)
        if not weather_type:
            raise InvalidInputError("weather_type must not be empty")
        if not 0 <= payout_bps <= BPS_DENOMINATOR:
            raise InvalidPayoutPercentageError(
                f"payout_bps must be within [0, {BPS_DENOMINATOR}], got {payout_bps}"
            )

        if isinstance(operator, ComparisonOperator):
            operator = operator.value

        condition = PolicyCondition(
            policy_id=policy_id,
            condition_index=CONDITION_INDEX,
            weather_type=weather_type,
            operator=operator,
            threshold=threshold,
            payout_bps=payout_bps,
            oracle_id=oracle_id,
        )
        replaced = (policy_id, CONDITION_INDEX) in ctx.state.conditions
        ctx.state.conditions[(policy_id, CONDITION_INDEX)] = condition
        ctx.record(
            EventType.CONDITION_ATTACHED,
            "policy",
            policy_id,
            {**condition.model_dump(), "replaced": replaced},
        )
        return condition

    def get(self, state: "EngineState", policy_id: int) -> Optional[PolicyCondition]:
        return state.conditions.get((policy_id, CONDITION_INDEX))
