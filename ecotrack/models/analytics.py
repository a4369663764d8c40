"""Read models produced by the aggregation reducers."""

from datetime import datetime
from decimal import Decimal
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field


class AggregateResult(BaseModel):
    """
    Totals for one owner over a half-open window.

    ``per_category_totals`` partitions ``total_impact`` exactly;
    ``per_day_totals`` is keyed by local ISO date and covers every day of the window.
    """

    model_config = ConfigDict(frozen=True)

    window_start: datetime
    window_end: datetime
    total_impact: Decimal
    entry_count: int = Field(ge=0)
    per_category_totals: Dict[str, Decimal]
    per_day_totals: Dict[str, Decimal]
