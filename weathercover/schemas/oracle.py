"""
Oracle Schemas

An oracle is a registered identity allowed to publish weather measurements.
Measurements are keyed by (oracle_id, height): at most one point per oracle
per height.
"""

from pydantic import BaseModel, ConfigDict, Field


class OracleRegistration(BaseModel):
    """
    A trusted data provider.

    Mutated only by its controlling identity (ownership transfer)
    or by the platform admin (activation and metadata).
    """
    oracle_id: str = Field(
        ...,
        min_length=1,
        description="Unique oracle key"
    )

    controlling_identity: str = Field(
        ...,
        description="Identity allowed to submit data for this oracle"
    )

    display_name: str = Field(
        ...,
        description="Human-readable provider name"
    )

    oracle_type: str = Field(
        ...,
        description="Provider category, e.g. 'weather-station' or 'satellite'"
    )

    is_active: bool = Field(
        default=True,
        description="Inactive oracles cannot submit data or back new conditions"
    )

    registered_at: int = Field(
        ...,
        ge=0,
        description="Height at which the oracle was registered"
    )


class OracleDataPoint(BaseModel):
    """
    One published measurement.

    Frozen: a point is never edited. A later submission at the same
    height replaces the whole point.
    """
    model_config = ConfigDict(frozen=True)

    oracle_id: str
    height: int = Field(..., ge=0)
    weather_type: str = Field(
        ...,
        min_length=1,
        examples=["rainfall", "temperature", "wind_speed"]
    )
    location: str
    value: int
    timestamp: int = Field(
        ...,
        ge=0,
        description="Oracle-reported observation time (unix seconds)"
    )
