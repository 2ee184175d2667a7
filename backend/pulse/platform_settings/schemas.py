from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["none", "low", "medium", "high", "critical"]


class SeverityThreshold(BaseModel):
    """One ordered rule: ``impacted >= min_streams and avg_confidence < max_confidence``.

    A null ``max_confidence`` matches any confidence.
    """

    model_config = ConfigDict(extra="forbid")

    min_streams: int = Field(strict=True, ge=0)
    max_confidence: float | None = Field(default=None, strict=True, ge=0, le=100)
    severity: Severity


class SeverityThresholdTable(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: Literal[1] = 1
    rules: list[SeverityThreshold] = Field(min_length=1)


class RetentionPolicy(BaseModel):
    """Per-table retention horizon in months. Keys override compiled defaults."""

    model_config = ConfigDict(extra="forbid")

    version: Literal[1] = 1
    months: dict[str, Annotated[int, Field(strict=True, gt=0)]] = Field(default_factory=dict)

    def merged_over(self, defaults: dict[str, int]) -> dict[str, int]:
        return {**defaults, **self.months}


class SettingWriteRequest(BaseModel):
    value: Any
    description: str | None = None


class SettingResponse(BaseModel):
    key: str
    value: Any
    description: str | None = None
    updated_at: datetime | None = None
