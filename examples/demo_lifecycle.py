"""
Demonstration: Complete Policy Lifecycle

This example shows how a drought policy flows through the engine, from
oracle registration to an automatic payout.

Run with: python -m examples.demo_lifecycle [--export journal.json]
"""

import argparse
import json

from weathercover.core import EngineConfig, InMemorySettlement, InsuranceEngine, ManualClock


def main(argv=None):
    parser = argparse.ArgumentParser(description="WeatherCover lifecycle demo")
    parser.add_argument("--export", help="Write the resulting journal to this JSON file")
    args = parser.parse_args(argv)

    print("=" * 60)
    print("WeatherCover - Policy Lifecycle Demonstration")
    print("=" * 60)
    print()

    admin, station, farmer = "admin", "station-ops", "farmer"

    clock = ManualClock(start=1)
    settlement = InMemorySettlement({admin: 1_000_000, farmer: 5_000})
    engine = InsuranceEngine(
        config=EngineConfig(admin=admin),
        clock=clock,
        settlement=settlement,
    )

    # ================================================================
    # STEP 0: CAPITALISE THE POOL
    # ================================================================
    print("=" * 60)
    print("STEP 0: CAPITALISE THE POOL")
    print("=" * 60)

    treasury = engine.fund_treasury(admin, 50_000)
    print(f"[OK] Treasury funded, balance {treasury.balance}")
    print()

    # ================================================================
    # STEP 1: REGISTER ORACLE AND RISK PROFILE
    # ================================================================
    print("=" * 60)
    print("STEP 1: REGISTER ORACLE AND RISK PROFILE")
    print("=" * 60)

    oracle = engine.register_oracle(
        admin, "station-7", "Valley Station 7", "rain_gauge", controller=station
    )
    print(f"[OK] Oracle {oracle.oracle_id} registered, controlled by {oracle.controlling_identity}")

    profile = engine.create_risk_profile(
        admin,
        profile_id=1,
        name="Drought - Central Valley",
        base_rate_bps=500,
        risk_factor_bps=200,
        coverage_multiplier=1,
        min_coverage=1_000,
        max_coverage=100_000,
    )
    print(f"[OK] Profile {profile.profile_id} '{profile.name}' at {profile.total_rate_bps} bps")
    print()

    # ================================================================
    # STEP 2: BUY A POLICY AND ATTACH ITS TRIGGER
    # ================================================================
    print("=" * 60)
    print("STEP 2: BUY A POLICY AND ATTACH ITS TRIGGER")
    print("=" * 60)

    quote = engine.calculate_premium(1, 10_000)
    print(f"   Quote for 10000 coverage: {quote}")

    policy = engine.create_policy(farmer, 1, 10_000, duration=1_000, location="Fresno")
    print(f"[OK] Policy {policy.policy_id} active until height {policy.end_height}")
    print(f"   Premium paid: {policy.premium_amount}")

    condition = engine.add_condition(
        farmer,
        policy.policy_id,
        weather_type="dry_days",
        operator="GT",
        threshold=50,
        payout_bps=5_000,
        oracle_id="station-7",
    )
    print(
        f"[OK] Trigger: {condition.weather_type} {condition.operator} {condition.threshold} "
        f"pays {condition.payout_bps} bps"
    )
    print(f"   Potential payout: {engine.potential_claim_amount(policy.policy_id)}")
    print()

    # ================================================================
    # STEP 3: ORACLE REPORTS, HOLDER CLAIMS
    # ================================================================
    print("=" * 60)
    print("STEP 3: ORACLE REPORTS, HOLDER CLAIMS")
    print("=" * 60)

    clock.advance(200)
    point = engine.submit_oracle_data(station, "station-7", "dry_days", "Fresno", 60, 1_700_000_000)
    print(f"[OK] Oracle reported {point.weather_type}={point.value} at height {point.height}")

    claim = engine.submit_claim(farmer, policy.policy_id, "dry_days", 60, point.height)
    print(f"[OK] Claim {claim.claim_id} submitted for {claim.claim_amount}")
    print()

    # ================================================================
    # STEP 4: AUTOMATIC SETTLEMENT
    # ================================================================
    print("=" * 60)
    print("STEP 4: AUTOMATIC SETTLEMENT")
    print("=" * 60)

    clock.advance(1)
    settled = engine.process_claim(station, claim.claim_id)
    print(f"[OK] Claim {settled.claim_id} is {settled.status.value} at height {settled.paid_at}")
    print(f"   Policy status: {engine.get_policy_status(policy.policy_id).value}")
    print(f"   Farmer balance: {settlement.balance_of(farmer)}")
    print()

    # ================================================================
    # SUMMARY
    # ================================================================
    print("=" * 60)
    print("SUMMARY")
    print("=" * 60)

    for key, value in engine.get_contract_stats().items():
        print(f"   {key}: {value}")

    journal = engine.list_journal()
    print(f"\n   Journal events: {len(journal)}")
    for event in journal:
        print(f"   {event.sequence_number:>3}  {event.event_type.value:<28} {event.event_hash[:16]}...")
    print(f"\n   Journal verified: {engine.verify_journal()}")

    if args.export:
        with open(args.export, "w") as f:
            json.dump([event.model_dump(mode="json") for event in journal], f, indent=2)
        print(f"\n[OK] Exported {len(journal)} events to {args.export}")


if __name__ == "__main__":
    main()
