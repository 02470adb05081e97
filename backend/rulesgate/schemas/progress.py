"""Pydantic schemas for the reading-progress gate."""

from pydantic import BaseModel, Field, model_validator


class SectionBounds(BaseModel):
    """Bounding box of a section relative to the viewport, in CSS px."""
    top: float
    bottom: float


class SectionObservation(BaseModel):
    section_id: str
    bounds: SectionBounds | None = None
    # Lets a client that already evaluated the predicate send the result
    is_read: bool | None = None

    @model_validator(mode="after")
    def _bounds_or_flag(self):
        if self.bounds is None and self.is_read is None:
            raise ValueError("Either bounds or is_read is required")
        return self


class ObserveRequest(BaseModel):
    """One throttled frame tick worth of section observations."""
    viewport_height: float | None = Field(default=None, gt=0)
    observations: list[SectionObservation]

    @model_validator(mode="after")
    def _viewport_for_bounds(self):
        if self.viewport_height is None and any(
            o.bounds is not None and o.is_read is None for o in self.observations
        ):
            raise ValueError("viewport_height is required when sending bounds")
        return self


class ProgressOut(BaseModel):
    completed: list[int]
    unlocked: bool
    signed: bool
    active_step: int | None
    total_sections: int


class ObserveOut(ProgressOut):
    newly_completed: list[int] = []
