"""
API Routes for the WeatherCover engine

Every state-changing request is signed. The caller identity is the base64
Ed25519 public key in X-Caller-Key; X-Caller-Signature is a signature over
"{METHOD} {PATH}:{sha256(body)}". Reads are unauthenticated.

Command endpoints:
- POST /admin/oracles                      - Register an oracle
- POST /admin/oracles/{id}/deactivate      - Deactivate an oracle
- POST /admin/oracles/{id}/reactivate      - Reactivate an oracle
- PUT  /admin/oracles/{id}                 - Update oracle display info
- POST /oracles/{id}/transfer              - Hand an oracle to a new identity
- POST /oracles/{id}/data                  - Publish a measurement
- POST /admin/profiles                     - Create a risk profile
- POST /policies                           - Buy a policy
- POST /policies/{id}/renew                - Renew a policy
- POST /policies/{id}/cancel               - Cancel a policy
- POST /policies/{id}/condition            - Attach the trigger condition
- POST /policies/{id}/claims               - Submit a claim
- POST /claims/{id}/process                - Settle a pending claim
- POST /admin/pause | /admin/unpause       - Pause switch
- POST /admin/withdraw                     - Emergency withdrawal
- POST /admin/transfer                     - Transfer admin rights
- POST /treasury/fund                      - Deposit capital

Query endpoints:
- GET /oracles/{id}, /oracles/{id}/data/latest, /oracles/{id}/data/{height}
- GET /profiles/{id}, /profiles/{id}/quote
- GET /policies/{id}, /holders/{identity}/policies
- GET /claims/{id}
- GET /treasury, /stats
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel, Field

from ..schemas import (
    Claim,
    OracleDataPoint,
    OracleRegistration,
    Policy,
    PolicyCondition,
    PolicyStatus,
    RiskProfile,
    TreasuryState,
)
from ..core.engine import InsuranceEngine
from ..core.errors import ErrorKind, InsuranceError
from ..core.signer import Signer


router = APIRouter()

# ============================================================
# Dependency Injection
# ============================================================

def get_engine(request: Request) -> InsuranceEngine:
    """Get engine from app state."""
    return request.app.state.engine


async def require_caller(
    request: Request,
    x_caller_key: Optional[str] = Header(None),
    x_caller_signature: Optional[str] = Header(None),
) -> str:
    """
    Authenticate the caller of a state-changing request.

    Returns the verified identity (the public key itself).
    """
    if not x_caller_key or not x_caller_signature:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Caller-Key and X-Caller-Signature headers are required",
        )

    body = await request.body()
    if not Signer.verify_request(
        request.method, request.url.path, body, x_caller_signature, x_caller_key
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid request signature",
        )
    return x_caller_key


_STATUS_BY_KIND = {
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INSUFFICIENT_FUNDS: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.DATA_MISMATCH: 422,
}


def rejection(e: InsuranceError) -> HTTPException:
    """Translate an engine rejection into an HTTP error."""
    return HTTPException(
        status_code=_STATUS_BY_KIND[e.kind],
        detail={"kind": e.kind.value, "code": e.code, "message": str(e)},
    )


def not_found(what: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")


# ============================================================
# Request/Response Models
# ============================================================

class RegisterOracleRequest(BaseModel):
    """Request to register an oracle."""
    oracle_id: str = Field(..., min_length=1)
    name: str
    oracle_type: str
    controller: Optional[str] = None  # Defaults to the registering admin


class UpdateOracleRequest(BaseModel):
    name: str
    oracle_type: str


class TransferOracleRequest(BaseModel):
    new_identity: str


class SubmitDataRequest(BaseModel):
    """A single measurement, stamped with the current height."""
    weather_type: str
    location: str = ""
    value: int
    timestamp: int


class CreateProfileRequest(BaseModel):
    profile_id: int
    name: str
    base_rate_bps: int
    risk_factor_bps: int
    coverage_multiplier: int
    min_coverage: int
    max_coverage: int
    description: str = ""


class CreatePolicyRequest(BaseModel):
    profile_id: int
    coverage_amount: int
    duration: int
    auto_renew: bool = False
    location: str = ""


class RenewPolicyRequest(BaseModel):
    duration: int


class AddConditionRequest(BaseModel):
    """Trigger: observed value <operator> threshold pays payout_bps of coverage."""
    weather_type: str
    operator: str
    threshold: int
    payout_bps: int
    oracle_id: str


class SubmitClaimRequest(BaseModel):
    weather_event_type: str
    weather_event_value: int
    oracle_data_height: int


class AmountRequest(BaseModel):
    amount: int


class TransferAdminRequest(BaseModel):
    new_admin: str


class CancelPolicyResponse(BaseModel):
    policy: Policy
    refund: int


class PolicyView(BaseModel):
    """A policy together with its height-derived status."""
    policy: Policy
    effective_status: PolicyStatus
    is_active: bool
    is_claimable: bool
    is_renewable: bool
    time_remaining: int
    potential_claim_amount: int
    condition: Optional[PolicyCondition] = None
    claim: Optional[Claim] = None


class QuoteResponse(BaseModel):
    profile_id: int
    coverage_amount: int
    premium: int


class PauseResponse(BaseModel):
    paused: bool


class AdminResponse(BaseModel):
    admin: str


# ============================================================
# Oracle Endpoints
# ============================================================

@router.post(
    "/admin/oracles",
    response_model=OracleRegistration,
    status_code=status.HTTP_201_CREATED,
    tags=["Oracles"],
    summary="Register an oracle",
)
async def register_oracle(
    request: RegisterOracleRequest,
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    try:
        return engine.register_oracle(
            caller,
            oracle_id=request.oracle_id,
            name=request.name,
            oracle_type=request.oracle_type,
            controller=request.controller,
        )
    except InsuranceError as e:
        raise rejection(e) from e


@router.post(
    "/admin/oracles/{oracle_id}/deactivate",
    response_model=OracleRegistration,
    tags=["Oracles"],
)
async def deactivate_oracle(
    oracle_id: str,
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    """Stop an oracle from publishing. Published data is kept."""
    try:
        return engine.deactivate_oracle(caller, oracle_id)
    except InsuranceError as e:
        raise rejection(e) from e


@router.post(
    "/admin/oracles/{oracle_id}/reactivate",
    response_model=OracleRegistration,
    tags=["Oracles"],
)
async def reactivate_oracle(
    oracle_id: str,
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    try:
        return engine.reactivate_oracle(caller, oracle_id)
    except InsuranceError as e:
        raise rejection(e) from e


@router.put(
    "/admin/oracles/{oracle_id}",
    response_model=OracleRegistration,
    tags=["Oracles"],
)
async def update_oracle(
    oracle_id: str,
    request: UpdateOracleRequest,
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    try:
        return engine.update_oracle_info(caller, oracle_id, request.name, request.oracle_type)
    except InsuranceError as e:
        raise rejection(e) from e


@router.post(
    "/oracles/{oracle_id}/transfer",
    response_model=OracleRegistration,
    tags=["Oracles"],
)
async def transfer_oracle(
    oracle_id: str,
    request: TransferOracleRequest,
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    """Only the current controlling identity may hand the oracle over."""
    try:
        return engine.transfer_oracle_ownership(caller, oracle_id, request.new_identity)
    except InsuranceError as e:
        raise rejection(e) from e


@router.post(
    "/oracles/{oracle_id}/data",
    response_model=OracleDataPoint,
    status_code=status.HTTP_201_CREATED,
    tags=["Oracles"],
    summary="Publish a measurement",
)
async def submit_oracle_data(
    oracle_id: str,
    request: SubmitDataRequest,
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    try:
        return engine.submit_oracle_data(
            caller,
            oracle_id=oracle_id,
            weather_type=request.weather_type,
            location=request.location,
            value=request.value,
            timestamp=request.timestamp,
        )
    except InsuranceError as e:
        raise rejection(e) from e


@router.get("/oracles/{oracle_id}", response_model=OracleRegistration, tags=["Oracles"])
async def get_oracle(oracle_id: str, engine: InsuranceEngine = Depends(get_engine)):
    oracle = engine.get_oracle(oracle_id)
    if oracle is None:
        raise not_found(f"Oracle {oracle_id}")
    return oracle


@router.get(
    "/oracles/{oracle_id}/data/latest",
    response_model=OracleDataPoint,
    tags=["Oracles"],
)
async def get_latest_oracle_data(oracle_id: str, engine: InsuranceEngine = Depends(get_engine)):
    """The point published at the current height, if any."""
    point = engine.get_latest_oracle_data(oracle_id)
    if point is None:
        raise not_found(f"Data for oracle {oracle_id} at the current height")
    return point


@router.get(
    "/oracles/{oracle_id}/data/{height}",
    response_model=OracleDataPoint,
    tags=["Oracles"],
)
async def get_oracle_data(
    oracle_id: str,
    height: int,
    engine: InsuranceEngine = Depends(get_engine),
):
    point = engine.get_oracle_data(oracle_id, height)
    if point is None:
        raise not_found(f"Data for oracle {oracle_id} at height {height}")
    return point


# ============================================================
# Risk Profile Endpoints
# ============================================================

@router.post(
    "/admin/profiles",
    response_model=RiskProfile,
    status_code=status.HTTP_201_CREATED,
    tags=["Pricing"],
)
async def create_risk_profile(
    request: CreateProfileRequest,
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    try:
        return engine.create_risk_profile(caller, **request.model_dump())
    except InsuranceError as e:
        raise rejection(e) from e


@router.get("/profiles/{profile_id}", response_model=RiskProfile, tags=["Pricing"])
async def get_risk_profile(profile_id: int, engine: InsuranceEngine = Depends(get_engine)):
    profile = engine.get_risk_profile(profile_id)
    if profile is None:
        raise not_found(f"Risk profile {profile_id}")
    return profile


@router.get("/profiles/{profile_id}/quote", response_model=QuoteResponse, tags=["Pricing"])
async def quote_premium(
    profile_id: int,
    coverage_amount: int,
    engine: InsuranceEngine = Depends(get_engine),
):
    """Price coverage without buying it."""
    try:
        premium = engine.calculate_premium(profile_id, coverage_amount)
    except InsuranceError as e:
        raise rejection(e) from e
    return QuoteResponse(profile_id=profile_id, coverage_amount=coverage_amount, premium=premium)


# ============================================================
# Policy Endpoints
# ============================================================

def _policy_view(engine: InsuranceEngine, policy_id: int) -> PolicyView:
    policy = engine.get_policy(policy_id)
    if policy is None:
        raise not_found(f"Policy {policy_id}")
    return PolicyView(
        policy=policy,
        effective_status=engine.get_policy_status(policy_id),
        is_active=engine.is_active(policy_id),
        is_claimable=engine.is_claimable(policy_id),
        is_renewable=engine.is_renewable(policy_id),
        time_remaining=engine.time_remaining(policy_id),
        potential_claim_amount=engine.potential_claim_amount(policy_id),
        condition=engine.get_condition(policy_id),
        claim=engine.get_policy_claim(policy_id),
    )


@router.post(
    "/policies",
    response_model=Policy,
    status_code=status.HTTP_201_CREATED,
    tags=["Policies"],
    summary="Buy a policy",
)
async def create_policy(
    request: CreatePolicyRequest,
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    """
    Price the coverage under the profile and collect the premium from the
    caller. Coverage starts at the current height.
    """
    try:
        return engine.create_policy(
            caller,
            profile_id=request.profile_id,
            coverage_amount=request.coverage_amount,
            duration=request.duration,
            auto_renew=request.auto_renew,
            location=request.location,
        )
    except InsuranceError as e:
        raise rejection(e) from e


@router.post("/policies/{policy_id}/renew", response_model=Policy, tags=["Policies"])
async def renew_policy(
    policy_id: int,
    request: RenewPolicyRequest,
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    try:
        return engine.renew_policy(caller, policy_id, request.duration)
    except InsuranceError as e:
        raise rejection(e) from e


@router.post(
    "/policies/{policy_id}/cancel",
    response_model=CancelPolicyResponse,
    tags=["Policies"],
)
async def cancel_policy(
    policy_id: int,
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    try:
        policy, refund = engine.cancel_policy(caller, policy_id)
    except InsuranceError as e:
        raise rejection(e) from e
    return CancelPolicyResponse(policy=policy, refund=refund)


@router.post(
    "/policies/{policy_id}/condition",
    response_model=PolicyCondition,
    status_code=status.HTTP_201_CREATED,
    tags=["Policies"],
)
async def add_condition(
    policy_id: int,
    request: AddConditionRequest,
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    """Attach (or replace) the policy's single trigger condition."""
    try:
        return engine.add_condition(
            caller,
            policy_id=policy_id,
            weather_type=request.weather_type,
            operator=request.operator,
            threshold=request.threshold,
            payout_bps=request.payout_bps,
            oracle_id=request.oracle_id,
        )
    except InsuranceError as e:
        raise rejection(e) from e


@router.get("/policies/{policy_id}", response_model=PolicyView, tags=["Policies"])
async def get_policy(policy_id: int, engine: InsuranceEngine = Depends(get_engine)):
    return _policy_view(engine, policy_id)


@router.get(
    "/holders/{identity:path}/policies",
    response_model=list[Policy],
    tags=["Policies"],
)
async def list_holder_policies(identity: str, engine: InsuranceEngine = Depends(get_engine)):
    """Policies in purchase order. Identities may contain '/', so the segment is a path."""
    return engine.list_user_policies(identity)


# ============================================================
# Claim Endpoints
# ============================================================

@router.post(
    "/policies/{policy_id}/claims",
    response_model=Claim,
    status_code=status.HTTP_201_CREATED,
    tags=["Claims"],
    summary="Submit a claim",
)
async def submit_claim(
    policy_id: int,
    request: SubmitClaimRequest,
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    """
    Open a claim bound to one oracle measurement.

    The claimed event must match the policy's condition and the oracle
    data recorded at oracle_data_height exactly.
    """
    try:
        return engine.submit_claim(
            caller,
            policy_id=policy_id,
            weather_event_type=request.weather_event_type,
            weather_event_value=request.weather_event_value,
            oracle_data_height=request.oracle_data_height,
        )
    except InsuranceError as e:
        raise rejection(e) from e


@router.post("/claims/{claim_id}/process", response_model=Claim, tags=["Claims"])
async def process_claim(
    claim_id: int,
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    """Settle a pending claim. Any signed caller may trigger settlement."""
    try:
        return engine.process_claim(caller, claim_id)
    except InsuranceError as e:
        raise rejection(e) from e


@router.get("/claims/{claim_id}", response_model=Claim, tags=["Claims"])
async def get_claim(claim_id: int, engine: InsuranceEngine = Depends(get_engine)):
    claim = engine.get_claim(claim_id)
    if claim is None:
        raise not_found(f"Claim {claim_id}")
    return claim


# ============================================================
# Administrative & Treasury Endpoints
# ============================================================

@router.post("/admin/pause", response_model=PauseResponse, tags=["Admin"])
async def pause(
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    try:
        engine.pause(caller)
    except InsuranceError as e:
        raise rejection(e) from e
    return PauseResponse(paused=engine.is_paused())


@router.post("/admin/unpause", response_model=PauseResponse, tags=["Admin"])
async def unpause(
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    try:
        engine.unpause(caller)
    except InsuranceError as e:
        raise rejection(e) from e
    return PauseResponse(paused=engine.is_paused())


@router.post("/admin/withdraw", response_model=TreasuryState, tags=["Admin"])
async def emergency_withdraw(
    request: AmountRequest,
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    """Pay treasury funds out to the admin."""
    try:
        return engine.emergency_withdraw(caller, request.amount)
    except InsuranceError as e:
        raise rejection(e) from e


@router.post("/admin/transfer", response_model=AdminResponse, tags=["Admin"])
async def transfer_admin(
    request: TransferAdminRequest,
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    try:
        engine.transfer_admin(caller, request.new_admin)
    except InsuranceError as e:
        raise rejection(e) from e
    return AdminResponse(admin=engine.get_admin())


@router.post("/treasury/fund", response_model=TreasuryState, tags=["Treasury"])
async def fund_treasury(
    request: AmountRequest,
    caller: str = Depends(require_caller),
    engine: InsuranceEngine = Depends(get_engine),
):
    try:
        return engine.fund_treasury(caller, request.amount)
    except InsuranceError as e:
        raise rejection(e) from e


@router.get("/treasury", response_model=TreasuryState, tags=["Treasury"])
async def get_treasury(engine: InsuranceEngine = Depends(get_engine)):
    return engine.get_treasury()


@router.get("/stats", tags=["Treasury"])
async def get_stats(engine: InsuranceEngine = Depends(get_engine)):
    """Platform totals and treasury snapshot."""
    return engine.get_contract_stats()
