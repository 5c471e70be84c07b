# src/padelrank/schemas/player.py

"""Pydantic schemas for the Player resource."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field

from padelrank.rating.glicko2_engine import describe_rating

from .common import RatingInfo


class PlayerBase(BaseModel):
    """Shared properties for a player."""

    name: str = Field(..., min_length=1, max_length=100)


class PlayerCreate(PlayerBase):
    """Properties to receive via API on create."""

    pass


class PlayerRead(PlayerBase):
    """Properties to return to the client."""

    id: int
    rating_info: RatingInfo
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def tier(self) -> str:
        """Skill tier label for the current rating."""
        return describe_rating(self.rating_info.rating)
