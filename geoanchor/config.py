"""
Runtime configuration for anchor relocation and proximity tracking
"""

__all__ = ['DEFAULT_CONFIG', 'RelocationConfig']

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RelocationConfig(BaseModel):
    """
    Options recognized by the frame converter, the vector resolver and the
    proximity state machine. Instances are immutable; derive variants with
    `model_copy(update={...})`.

    Options may be supplied either by attribute name or by their camelCase
    alias, e.g. `RelocationConfig.model_validate({'boundaryThresholdMeters': 75})`.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra='forbid',
    )

    # Ellipsoidal height substituted when a position arrives without one
    default_height_meters: float = 370.0

    # Distance from the reference point beyond which the observer is out of range
    boundary_threshold_meters: float = Field(default=50.0, gt=0)

    # Radius handed to the anchor lookup collaborator on a boundary crossing
    nearby_radius_meters: float = Field(default=100.0, gt=0)

    ecef_inverse_tolerance: float = Field(default=1e-12, gt=0)
    ecef_inverse_max_iterations: int = Field(default=50, ge=1)

    # Feed the raw fix to the state machine when refinement fails
    use_raw_on_refinement_failure: bool = True

    # Decimal places (meters) distances are quantized to before threshold tests
    distance_precision_digits: int = Field(default=6, ge=0, le=12)


DEFAULT_CONFIG = RelocationConfig()
