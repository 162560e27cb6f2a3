"""
Tests for claim submission, trigger evaluation and automatic settlement.

Lifecycle under test:
1. Oracle publishes a measurement
2. Holder submits a claim bound to that measurement
3. Anyone triggers processing
4. Claim is PAID (policy CLAIMED) or REJECTED (policy untouched)
"""

import pytest

from weathercover.core import (
    AlreadyClaimedError,
    ClaimNotFoundError,
    ConditionNotFoundError,
    ContractPausedError,
    DataMismatchError,
    InsufficientFundsError,
    InvalidStateError,
    UnauthorizedError,
    evaluate,
    payout_amount,
)
from weathercover.schemas import ClaimStatus, EventType, PolicyStatus


@pytest.fixture
def reading(market, operator_identity, clock):
    """Publish a dry_days reading at the next height; returns a factory."""
    def publish(value, weather_type="dry_days"):
        clock.advance(1)
        return market.submit_oracle_data(
            operator_identity, "station-7", weather_type, "Fresno", value, 1_700_000_000
        )
    return publish


class TestEvaluate:
    """Trigger comparators."""

    @pytest.mark.parametrize(
        "operator,actual,threshold,expected",
        [
            ("GT", 60, 50, True),
            ("GT", 50, 50, False),
            ("LT", 40, 50, True),
            ("LT", 50, 50, False),
            ("EQ", 50, 50, True),
            ("EQ", 51, 50, False),
            ("GE", 50, 50, True),
            ("GE", 49, 50, False),
            ("LE", 50, 50, True),
            ("LE", 51, 50, False),
        ],
    )
    def test_known_operators(self, operator, actual, threshold, expected):
        assert evaluate(operator, actual, threshold) is expected

    @pytest.mark.parametrize("operator", ["NE", "gt", "", ">"])
    def test_unknown_operator_never_triggers(self, operator):
        assert evaluate(operator, 100, 0) is False

    def test_payout_amount_rounds_down(self):
        assert payout_amount(10_000, 5_000) == 5_000
        assert payout_amount(999, 3_333) == 332


class TestClaimSubmission:
    """Validation of the claim against policy, condition and oracle data."""

    def test_submit_binds_measurement(self, covered_policy, market, holder, reading):
        point = reading(60)

        claim = market.submit_claim(holder, covered_policy.policy_id, "dry_days", 60, point.height)

        assert claim.claim_id == 1
        assert claim.status == ClaimStatus.PENDING
        assert claim.claim_amount == 5_000
        assert claim.oracle_data_height == point.height
        assert claim.submitted_at == point.height
        assert market.get_policy_claim(covered_policy.policy_id) == claim
        assert not market.is_claimable(covered_policy.policy_id)

    def test_only_holder_submits(self, covered_policy, market, admin, reading):
        point = reading(60)

        with pytest.raises(UnauthorizedError):
            market.submit_claim(admin, covered_policy.policy_id, "dry_days", 60, point.height)

    def test_requires_condition(self, policy, market, holder, reading):
        point = reading(60)

        assert not market.is_claimable(policy.policy_id)
        with pytest.raises(ConditionNotFoundError):
            market.submit_claim(holder, policy.policy_id, "dry_days", 60, point.height)

    def test_event_type_must_match_condition(self, covered_policy, market, holder, reading):
        point = reading(60, weather_type="rainfall_mm")

        with pytest.raises(DataMismatchError):
            market.submit_claim(holder, covered_policy.policy_id, "rainfall_mm", 60, point.height)

    def test_value_must_match_oracle(self, covered_policy, market, holder, reading):
        point = reading(40)

        with pytest.raises(DataMismatchError):
            market.submit_claim(holder, covered_policy.policy_id, "dry_days", 60, point.height)

    def test_oracle_type_must_match_claim(self, covered_policy, market, holder, reading):
        point = reading(60, weather_type="rainfall_mm")

        with pytest.raises(DataMismatchError):
            market.submit_claim(holder, covered_policy.policy_id, "dry_days", 60, point.height)

    def test_missing_oracle_data(self, covered_policy, market, holder, clock):
        with pytest.raises(DataMismatchError):
            market.submit_claim(holder, covered_policy.policy_id, "dry_days", 60, clock.current())

    def test_expired_policy(self, covered_policy, market, holder, operator_identity, clock):
        clock.set(covered_policy.end_height + 1)
        point = market.submit_oracle_data(
            operator_identity, "station-7", "dry_days", "Fresno", 60, 1
        )

        with pytest.raises(InvalidStateError):
            market.submit_claim(holder, covered_policy.policy_id, "dry_days", 60, point.height)

    def test_single_claim_slot(self, covered_policy, market, holder, reading):
        point = reading(60)
        market.submit_claim(holder, covered_policy.policy_id, "dry_days", 60, point.height)

        with pytest.raises(AlreadyClaimedError):
            market.submit_claim(holder, covered_policy.policy_id, "dry_days", 60, point.height)

    def test_rejected_claim_keeps_slot(self, covered_policy, market, holder, reading):
        low = reading(40)
        claim = market.submit_claim(holder, covered_policy.policy_id, "dry_days", 40, low.height)
        market.process_claim(holder, claim.claim_id)

        high = reading(60)
        with pytest.raises(AlreadyClaimedError):
            market.submit_claim(holder, covered_policy.policy_id, "dry_days", 60, high.height)

    def test_submit_blocked_while_paused(self, covered_policy, market, admin, holder, reading):
        point = reading(60)
        market.pause(admin)

        with pytest.raises(ContractPausedError):
            market.submit_claim(holder, covered_policy.policy_id, "dry_days", 60, point.height)


class TestClaimProcessing:
    """Automatic settlement."""

    def test_condition_met_pays_out(self, covered_policy, market, holder, settlement, reading):
        point = reading(60)
        claim = market.submit_claim(holder, covered_policy.policy_id, "dry_days", 60, point.height)
        treasury_before = market.get_treasury()

        settled = market.process_claim("stranger", claim.claim_id)

        assert settled.status == ClaimStatus.PAID
        assert settled.paid_at == settled.processed_at == point.height
        assert settlement.balance_of(holder) == 100_000 - 700 + 5_000
        treasury = market.get_treasury()
        assert treasury.balance == treasury_before.balance - 5_000
        assert treasury.total_claims_paid == 5_000
        assert market.get_policy(covered_policy.policy_id).status == PolicyStatus.CLAIMED
        assert market.get_policy_status(covered_policy.policy_id) == PolicyStatus.CLAIMED

        paid = market.list_journal(entity_type="claim")[-1]
        assert paid.event_type == EventType.CLAIM_PAID
        assert paid.payload["amount_paid"] == 5_000

    def test_condition_not_met_rejects(self, covered_policy, market, holder, settlement, reading):
        point = reading(40)
        claim = market.submit_claim(holder, covered_policy.policy_id, "dry_days", 40, point.height)
        treasury_before = market.get_treasury()

        settled = market.process_claim(holder, claim.claim_id)

        assert settled.status == ClaimStatus.REJECTED
        assert settled.paid_at is None
        assert market.get_treasury() == treasury_before
        assert settlement.balance_of(holder) == 100_000 - 700
        assert market.get_policy(covered_policy.policy_id).status == PolicyStatus.ACTIVE
        assert market.list_journal(entity_type="claim")[-1].event_type == EventType.CLAIM_REJECTED

    def test_unknown_operator_rejects(self, policy, market, holder, reading):
        market.add_condition(holder, policy.policy_id, "dry_days", "NE", 50, 5_000, "station-7")
        point = reading(60)
        claim = market.submit_claim(holder, policy.policy_id, "dry_days", 60, point.height)

        assert market.process_claim(holder, claim.claim_id).status == ClaimStatus.REJECTED

    def test_processing_is_terminal(self, covered_policy, market, holder, reading):
        point = reading(60)
        claim = market.submit_claim(holder, covered_policy.policy_id, "dry_days", 60, point.height)
        market.process_claim(holder, claim.claim_id)

        with pytest.raises(InvalidStateError):
            market.process_claim(holder, claim.claim_id)

    def test_unknown_claim(self, market, holder):
        with pytest.raises(ClaimNotFoundError):
            market.process_claim(holder, 99)

    def test_insufficient_funds_leaves_claim_pending(
        self, covered_policy, market, admin, holder, settlement, reading
    ):
        point = reading(60)
        claim = market.submit_claim(holder, covered_policy.policy_id, "dry_days", 60, point.height)
        market.emergency_withdraw(admin, market.get_treasury().balance - 100)
        journal_length = len(market.list_journal())
        holder_balance = settlement.balance_of(holder)

        with pytest.raises(InsufficientFundsError):
            market.process_claim(holder, claim.claim_id)

        assert market.get_claim(claim.claim_id).status == ClaimStatus.PENDING
        assert market.get_policy(covered_policy.policy_id).status == PolicyStatus.ACTIVE
        assert market.get_treasury().balance == 100
        assert settlement.balance_of(holder) == holder_balance
        assert len(market.list_journal()) == journal_length

        # Once recapitalised, the same claim settles
        market.fund_treasury(admin, 10_000)
        assert market.process_claim(holder, claim.claim_id).status == ClaimStatus.PAID

    def test_processing_allowed_while_paused(self, covered_policy, market, admin, holder, reading):
        point = reading(60)
        claim = market.submit_claim(holder, covered_policy.policy_id, "dry_days", 60, point.height)
        market.pause(admin)

        assert market.process_claim(holder, claim.claim_id).status == ClaimStatus.PAID

    def test_processing_reads_overwritten_point(
        self, covered_policy, market, holder, operator_identity, reading
    ):
        point = reading(60)
        claim = market.submit_claim(holder, covered_policy.policy_id, "dry_days", 60, point.height)
        # Same height: the oracle corrects its reading
        market.submit_oracle_data(operator_identity, "station-7", "dry_days", "Fresno", 30, 1)

        assert market.process_claim(holder, claim.claim_id).status == ClaimStatus.REJECTED

    def test_trigger_fixed_once_claim_filed(self, covered_policy, market, holder, reading):
        point = reading(40)
        claim = market.submit_claim(holder, covered_policy.policy_id, "dry_days", 40, point.height)

        with pytest.raises(AlreadyClaimedError):
            market.add_condition(holder, covered_policy.policy_id, "dry_days", "LT", 50, 5_000, "station-7")

        assert market.get_condition(covered_policy.policy_id).operator == "GT"
        settled = market.process_claim(holder, claim.claim_id)
        assert settled.status == ClaimStatus.REJECTED
        assert market.get_treasury().total_claims_paid == 0

    def test_oracle_fixed_once_claim_filed(self, covered_policy, market, admin, holder, reading):
        market.register_oracle(admin, "station-8", "Hill Station 8", "rain_gauge")
        point = reading(60)
        claim = market.submit_claim(holder, covered_policy.policy_id, "dry_days", 60, point.height)

        with pytest.raises(AlreadyClaimedError):
            market.add_condition(holder, covered_policy.policy_id, "dry_days", "GT", 50, 5_000, "station-8")

        assert market.get_condition(covered_policy.policy_id).oracle_id == "station-7"
        assert market.process_claim(holder, claim.claim_id).status == ClaimStatus.PAID

    def test_paid_policy_cannot_renew(self, covered_policy, market, holder, reading, clock):
        point = reading(60)
        claim = market.submit_claim(holder, covered_policy.policy_id, "dry_days", 60, point.height)
        market.process_claim(holder, claim.claim_id)
        clock.set(covered_policy.end_height)

        with pytest.raises(InvalidStateError):
            market.renew_policy(holder, covered_policy.policy_id, 1_000)

    def test_slot_survives_renewal(self, covered_policy, market, holder, reading, clock):
        point = reading(40)
        claim = market.submit_claim(holder, covered_policy.policy_id, "dry_days", 40, point.height)
        market.process_claim(holder, claim.claim_id)
        clock.set(covered_policy.end_height)
        market.renew_policy(holder, covered_policy.policy_id, 1_000)

        assert market.get_policy_claim(covered_policy.policy_id).claim_id == claim.claim_id
        assert not market.is_claimable(covered_policy.policy_id)
