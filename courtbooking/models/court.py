"""Pydantic model for a bookable court."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Court(BaseModel):
    """A court as stored in the ``courts`` table."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    name: str
    address: str = ""
    price: float = Field(gt=0)  # per hour
    status: str = "active"  # "active" or "maintenance"
    image_url: Optional[str] = None
