"""Schemas for overlay display settings."""

from pydantic import BaseModel, Field


class Goal(BaseModel):
    """Fundraising goal shown on the overlay progress bar."""

    label: str = ""
    target: float = Field(default=0.0, ge=0.0, allow_inf_nan=False)
    active: bool = False
