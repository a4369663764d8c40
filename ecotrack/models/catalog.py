from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Category(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    icon: str = ""


class Activity(BaseModel):
    """A loggable action. Negative ``carbon_per_unit`` marks a carbon-saving action."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    category_id: str = Field(min_length=1)
    name: str
    carbon_per_unit: Decimal
    unit: str
    description: Optional[str] = None
