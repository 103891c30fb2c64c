"""Typed parameter sets for the outlier filters.

Each filter owns one frozen model. Fields use snake_case names and accept the
camelCase names of the libpointmatcher configuration format as aliases, so
``{"maxDist": 0.5}`` and ``{"max_dist": 0.5}`` are equivalent.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FilterParams(BaseModel):
    """Base for every filter parameter set."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class NullParams(FilterParams):
    pass


class MaxDistParams(FilterParams):
    max_dist: float = Field(1.0, alias="maxDist", ge=0.0,
                            description="Maximum distance to keep a match")


class MinDistParams(FilterParams):
    min_dist: float = Field(1.0, alias="minDist", ge=0.0,
                            description="Minimum distance to keep a match")


class MedianDistParams(FilterParams):
    factor: float = Field(3.0, ge=0.0,
                          description="Points farther away than factor * median are rejected")


class TrimmedDistParams(FilterParams):
    ratio: float = Field(0.85, ge=0.0000001, le=0.9999999,
                         description="Fraction of matches kept, by ascending distance")


class VarTrimmedDistParams(FilterParams):
    min_ratio: float = Field(0.05, alias="minRatio", ge=0.0000001, le=1.0,
                             description="Lower bound of the searched inlier ratio")
    max_ratio: float = Field(0.99, alias="maxRatio", ge=0.0000001, le=1.0,
                             description="Upper bound of the searched inlier ratio")
    lambda_: float = Field(2.35, alias="lambda", ge=0.0,
                           description="Exponent penalizing small inlier ratios")

    @model_validator(mode="after")
    def _check_ratio_bounds(self):
        if self.min_ratio >= self.max_ratio:
            raise ValueError(
                f"minRatio ({self.min_ratio}) should be smaller than maxRatio ({self.max_ratio})"
            )
        return self


class SurfaceNormalParams(FilterParams):
    max_angle: float = Field(1.57, alias="maxAngle", ge=0.0,
                             description="Maximum angle between matched normals, in radians")
