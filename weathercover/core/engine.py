"""
Insurance Engine - The Heart of the System

Every entry point is one atomic call:
- The caller identity is supplied already verified
- The height is read once from the host clock
- All reads and writes go to a private working copy of state
- The call either commits (state + journal event) or is rejected with
  a typed InsuranceError and leaves no trace, including in the
  settlement layer

Rules (enforced in code):
- No double payout: one claim slot per policy, PENDING is the only
  processable claim status
- No payout without matching data: a claim is bound to an exact
  (oracle, height) point whose type and value match
- Solvency before transfer: every outflow checks the treasury balance first
- No human override once data is submitted: settlement is fully automatic

ARCHITECTURE NOTE:
- InsuranceEngine: entry points, authorization gates, call boundary
- Component classes: business rules per concern
- StateStore: unit of work, ordering, journal
- HeightClock / SettlementLayer: host collaborators
"""

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Generator, Optional

from ..observability import get_logger, get_metrics
from ..schemas import (
    Claim,
    ClaimStatus,
    EventType,
    JournalEvent,
    OracleDataPoint,
    OracleRegistration,
    Policy,
    PolicyCondition,
    PolicyStatus,
    RiskProfile,
    TreasuryState,
)
from .admin import AdminControl
from .claims import ClaimEngine
from .conditions import ConditionRegistry
from .config import EngineConfig
from .errors import InsuranceError, UnauthorizedError
from .host import HeightClock, InMemorySettlement, ManualClock, SettlementLayer
from .oracles import OracleDirectory, OracleFeed
from .policies import PolicyManager, effective_status, is_in_force
from .pricing import RiskCatalog
from .treasury import TreasuryLedger

if TYPE_CHECKING:
    from ..db.store import CallContext, StateStore


logger = get_logger(__name__)


class InsuranceEngine:
    """
    The parametric insurance engine.

    Wires the components around one StateStore, one HeightClock and one
    SettlementLayer. All three are injectable, so tests build fully
    isolated engines.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        store: Optional["StateStore"] = None,
        clock: Optional[HeightClock] = None,
        settlement: Optional[SettlementLayer] = None,
    ):
        self._config = config or EngineConfig()

        # Import here to avoid circular imports
        if store is None:
            from ..db.store import InMemoryStateStore
            store = InMemoryStateStore(admin=self._config.admin)

        self._store = store
        self._clock = clock or ManualClock(self._config.start_height)
        self._settlement = settlement or InMemorySettlement()

        self._treasury = TreasuryLedger(self._settlement, self._config.treasury_account)
        self._admin = AdminControl(self._treasury)
        self._directory = OracleDirectory()
        self._feed = OracleFeed(self._directory)
        self._catalog = RiskCatalog()
        self._policies = PolicyManager(self._catalog, self._treasury, self._config.renewal_window)
        self._conditions = ConditionRegistry(self._policies, self._directory)
        self._claims = ClaimEngine(self._policies, self._conditions, self._feed, self._treasury)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def store(self) -> "StateStore":
        return self._store

    @property
    def clock(self) -> HeightClock:
        return self._clock

    @property
    def settlement(self) -> SettlementLayer:
        return self._settlement

    @property
    def _state(self):
        return self._store.state

    # ================================================================
    # CALL BOUNDARY
    # ================================================================

    @contextmanager
    def _call(self, action: str, caller: str) -> Generator["CallContext", None, None]:
        """
        Run one entry point as an all-or-nothing unit of work.

        On any exception the working state is discarded by the store and
        the settlement layer is rolled back to its savepoint. The height
        read, savepoint and rollback all happen in the store's call order.
        """
        if not caller:
            raise UnauthorizedError("A verified caller identity is required")

        start = time.perf_counter()
        with self._store.exclusive():
            height = self._clock.current()
            savepoint = self._settlement.savepoint()
            try:
                with self._store.begin_call(caller, height) as ctx:
                    yield ctx
            except Exception as e:
                self._settlement.rollback_to(savepoint)
                if isinstance(e, InsuranceError):
                    get_metrics().record_rejection(e.kind.value)
                    logger.info(
                        "Call rejected",
                        action=action,
                        height=height,
                        kind=e.kind.value,
                        code=e.code,
                        reason=str(e),
                    )
                else:
                    logger.exception("Call failed unexpectedly", action=action, height=height)
                raise

        get_metrics().record_call((time.perf_counter() - start) * 1000)
        logger.info("Call committed", action=action, height=height, events=len(ctx.events))

    # ================================================================
    # ADMINISTRATIVE CONTROL
    # ================================================================

    def transfer_admin(self, caller: str, new_admin: str) -> None:
        with self._call("transfer_admin", caller) as ctx:
            self._admin.transfer_admin(ctx, new_admin)

    def pause(self, caller: str) -> None:
        with self._call("pause", caller) as ctx:
            self._admin.set_paused(ctx, True)

    def unpause(self, caller: str) -> None:
        with self._call("unpause", caller) as ctx:
            self._admin.set_paused(ctx, False)

    def emergency_withdraw(self, caller: str, amount: int) -> TreasuryState:
        with self._call("emergency_withdraw", caller) as ctx:
            self._admin.emergency_withdraw(ctx, amount)
        return self.get_treasury()

    def fund_treasury(self, caller: str, amount: int) -> TreasuryState:
        """Deposit underwriting capital. Any identity may fund the pool."""
        with self._call("fund_treasury", caller) as ctx:
            self._treasury.deposit(ctx, caller, amount)
            ctx.record(
                EventType.TREASURY_FUNDED,
                "treasury",
                self._treasury.account,
                {"amount": amount, "depositor": caller},
            )
        return self.get_treasury()

    # ================================================================
    # ORACLE DIRECTORY & FEED
    # ================================================================

    def register_oracle(
        self,
        caller: str,
        oracle_id: str,
        name: str,
        oracle_type: str,
        controller: Optional[str] = None,
    ) -> OracleRegistration:
        with self._call("register_oracle", caller) as ctx:
            self._admin.require_admin(ctx)
            return self._directory.register(ctx, oracle_id, name, oracle_type, controller)

    def deactivate_oracle(self, caller: str, oracle_id: str) -> OracleRegistration:
        with self._call("deactivate_oracle", caller) as ctx:
            self._admin.require_admin(ctx)
            return self._directory.set_active(ctx, oracle_id, False)

    def reactivate_oracle(self, caller: str, oracle_id: str) -> OracleRegistration:
        with self._call("reactivate_oracle", caller) as ctx:
            self._admin.require_admin(ctx)
            return self._directory.set_active(ctx, oracle_id, True)

    def update_oracle_info(
        self,
        caller: str,
        oracle_id: str,
        name: str,
        oracle_type: str,
    ) -> OracleRegistration:
        with self._call("update_oracle_info", caller) as ctx:
            self._admin.require_admin(ctx)
            return self._directory.update_info(ctx, oracle_id, name, oracle_type)

    def transfer_oracle_ownership(
        self,
        caller: str,
        oracle_id: str,
        new_identity: str,
    ) -> OracleRegistration:
        with self._call("transfer_oracle_ownership", caller) as ctx:
            return self._directory.transfer_ownership(ctx, oracle_id, new_identity)

    def submit_oracle_data(
        self,
        caller: str,
        oracle_id: str,
        weather_type: str,
        location: str,
        value: int,
        timestamp: int,
    ) -> OracleDataPoint:
        with self._call("submit_oracle_data", caller) as ctx:
            return self._feed.submit(ctx, oracle_id, weather_type, location, value, timestamp)

    # ================================================================
    # RISK PROFILES
    # ================================================================

    def create_risk_profile(
        self,
        caller: str,
        profile_id: int,
        name: str,
        base_rate_bps: int,
        risk_factor_bps: int,
        coverage_multiplier: int,
        min_coverage: int,
        max_coverage: int,
        description: str = "",
    ) -> RiskProfile:
        with self._call("create_risk_profile", caller) as ctx:
            self._admin.require_admin(ctx)
            return self._catalog.create_profile(
                ctx,
                profile_id=profile_id,
                name=name,
                base_rate_bps=base_rate_bps,
                risk_factor_bps=risk_factor_bps,
                coverage_multiplier=coverage_multiplier,
                min_coverage=min_coverage,
                max_coverage=max_coverage,
                description=description,
            )

    # ================================================================
    # POLICY LIFECYCLE
    # ================================================================

    def create_policy(
        self,
        caller: str,
        profile_id: int,
        coverage_amount: int,
        duration: int,
        auto_renew: bool = False,
        location: str = "",
    ) -> Policy:
        with self._call("create_policy", caller) as ctx:
            self._admin.require_not_paused(ctx.state)
            return self._policies.create(
                ctx, profile_id, coverage_amount, duration, auto_renew, location
            )

    def renew_policy(self, caller: str, policy_id: int, duration: int) -> Policy:
        with self._call("renew_policy", caller) as ctx:
            return self._policies.renew(ctx, policy_id, duration)

    def cancel_policy(self, caller: str, policy_id: int) -> tuple[Policy, int]:
        """Returns the canceled policy and the refund paid to the holder."""
        with self._call("cancel_policy", caller) as ctx:
            return self._policies.cancel(ctx, policy_id)

    def add_condition(
        self,
        caller: str,
        policy_id: int,
        weather_type: str,
        operator: str,
        threshold: int,
        payout_bps: int,
        oracle_id: str,
    ) -> PolicyCondition:
        with self._call("add_condition", caller) as ctx:
            return self._conditions.attach(
                ctx, policy_id, weather_type, operator, threshold, payout_bps, oracle_id
            )

    # ================================================================
    # CLAIMS
    # ================================================================

    def submit_claim(
        self,
        caller: str,
        policy_id: int,
        weather_event_type: str,
        weather_event_value: int,
        oracle_data_height: int,
    ) -> Claim:
        with self._call("submit_claim", caller) as ctx:
            self._admin.require_not_paused(ctx.state)
            return self._claims.submit(
                ctx, policy_id, weather_event_type, weather_event_value, oracle_data_height
            )

    def process_claim(self, caller: str, claim_id: int) -> Claim:
        """Public trigger: any identity may settle a pending claim."""
        with self._call("process_claim", caller) as ctx:
            claim = self._claims.process(ctx, claim_id)

        paid = claim.status == ClaimStatus.PAID
        get_metrics().record_claim_outcome(paid, claim.claim_amount if paid else 0)
        logger.info(
            "Claim settled",
            claim_id=claim_id,
            policy_id=claim.policy_id,
            status=claim.status.value,
            amount=claim.claim_amount if paid else 0,
        )
        return claim

    # ================================================================
    # QUERIES
    # ================================================================

    def current_height(self) -> int:
        return self._clock.current()

    def get_admin(self) -> str:
        return self._state.admin

    def is_paused(self) -> bool:
        return self._state.paused

    def get_treasury(self) -> TreasuryState:
        return self._state.treasury

    def get_oracle(self, oracle_id: str) -> Optional[OracleRegistration]:
        return self._directory.get(self._state, oracle_id)

    def is_oracle_active(self, oracle_id: str) -> bool:
        oracle = self.get_oracle(oracle_id)
        return oracle is not None and oracle.is_active

    def get_oracle_data(self, oracle_id: str, height: int) -> Optional[OracleDataPoint]:
        return self._feed.get(self._state, oracle_id, height)

    def get_latest_oracle_data(self, oracle_id: str) -> Optional[OracleDataPoint]:
        return self._feed.latest(self._state, oracle_id, self.current_height())

    def get_risk_profile(self, profile_id: int) -> Optional[RiskProfile]:
        return self._catalog.get_profile(self._state, profile_id)

    def calculate_premium(self, profile_id: int, coverage_amount: int) -> int:
        return self._catalog.calculate_premium(self._state, profile_id, coverage_amount)

    def get_policy(self, policy_id: int) -> Optional[Policy]:
        return self._policies.get(self._state, policy_id)

    def get_policy_status(self, policy_id: int) -> PolicyStatus:
        """Stored status with EXPIRED derived from the current height."""
        policy = self._policies.require(self._state, policy_id)
        return effective_status(policy, self.current_height())

    def get_condition(self, policy_id: int) -> Optional[PolicyCondition]:
        return self._conditions.get(self._state, policy_id)

    def get_claim(self, claim_id: int) -> Optional[Claim]:
        return self._claims.get(self._state, claim_id)

    def get_policy_claim(self, policy_id: int) -> Optional[Claim]:
        return self._claims.for_policy(self._state, policy_id)

    def get_user_policy_count(self, holder: str) -> int:
        return len(self._state.user_policies.get(holder, []))

    def get_user_policy_at(self, holder: str, index: int) -> Optional[int]:
        policy_ids = self._state.user_policies.get(holder, [])
        if not 0 <= index < len(policy_ids):
            return None
        return policy_ids[index]

    def list_user_policies(self, holder: str) -> list[Policy]:
        return self._policies.list_for_holder(self._state, holder)

    def is_active(self, policy_id: int) -> bool:
        policy = self.get_policy(policy_id)
        return policy is not None and is_in_force(policy, self.current_height())

    def is_claimable(self, policy_id: int) -> bool:
        return self._claims.is_claimable(self._state, policy_id, self.current_height())

    def is_renewable(self, policy_id: int) -> bool:
        policy = self.get_policy(policy_id)
        return policy is not None and self._policies.is_renewable(policy, self.current_height())

    def time_remaining(self, policy_id: int) -> int:
        policy = self._policies.require(self._state, policy_id)
        return self._policies.time_remaining(policy, self.current_height())

    def potential_claim_amount(self, policy_id: int) -> int:
        return self._claims.potential_amount(self._state, policy_id)

    def get_contract_stats(self) -> dict[str, Any]:
        state = self._state
        return {
            "admin": state.admin,
            "paused": state.paused,
            "current_height": self.current_height(),
            "total_policies": state.last_policy_id,
            "total_claims": state.last_claim_id,
            "total_oracles": len(state.oracles),
            "total_risk_profiles": len(state.risk_profiles),
            "treasury": state.treasury.model_dump(),
        }

    # ================================================================
    # JOURNAL
    # ================================================================

    def list_journal(self, entity_type: Optional[str] = None, entity_id: Any = None) -> list[JournalEvent]:
        events = self._store.list_events()
        if entity_type is not None:
            events = [e for e in events if e.entity_type == entity_type]
        if entity_id is not None:
            events = [e for e in events if e.entity_id == str(entity_id)]
        return events

    def verify_journal(self) -> bool:
        return self._store.verify_journal()
