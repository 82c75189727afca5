# rumlab/models.py
from datetime import datetime
from enum import Enum
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

class MetricName(str, Enum):
    INP_LAB = "INP (lab)"
    TBT = "TBT"
    JS_BLOCKING_TIME = "JS blocking time"
    LONG_TASK_COUNT = "Long tasks count"

class MetricStatus(str, Enum):
    GOOD = "Good"
    NEEDS_IMPROVEMENT = "Needs Improvement"
    POOR = "Poor"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    UNKNOWN = "Unknown"

class AnalysisRequest(BaseModel):
    url: str

class LongTaskSample(BaseModel):
    model_config = ConfigDict(frozen=True)

    duration_ms: float = Field(..., ge=0)

class Metric(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    value: Union[int, float]
    unit: Literal["ms", ""] = "ms"
    status: MetricStatus

class AnalysisReport(BaseModel):
    url: str
    test_run: datetime = Field(..., serialization_alias="testRun")
    device: str
    metrics: List[Metric]

class RumSample(BaseModel):
    """A single interaction-latency sample posted by the in-page RUM beacon."""
    timestamp: str
    inp: Union[int, float]
    element: str
    device: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    connection: Optional[str] = None
    pageUrl: Optional[str] = None

class ErrorResponse(BaseModel):
    error: str
    details: Optional[Any] = None
