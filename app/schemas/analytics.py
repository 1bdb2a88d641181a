from pydantic import BaseModel, ConfigDict, Field
from typing import Any, List


class AggregateResult(BaseModel):
    """One group or time bucket with its aggregate value"""

    model_config = ConfigDict(populate_by_name=True)

    key: Any = Field(..., alias="_id")
    value: float | int | None


class StatsData(BaseModel):
    """Grouped aggregate response"""

    model_config = ConfigDict(populate_by_name=True)

    group_by: str = Field(..., alias="groupBy")
    aggregates: str
    stats: List[AggregateResult]


class TimeSeriesData(BaseModel):
    """Time-bucketed aggregate response"""

    model_config = ConfigDict(populate_by_name=True)

    interval: str
    aggregates: str
    time_series: List[AggregateResult] = Field(..., alias="timeSeries")
