import json
from typing import Any, Dict, Optional

import torch
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import DEFAULT_ACCUM_DTYPE, DEFAULT_ALPHA, DEFAULT_SAMPLE_DTYPE
from .dtypes import resolve_dtype
from .reference import ReferenceStatistics
from .statistics import Statistics
from .summation import SummationType


class StatisticsConfig(BaseModel):
    """Configuration for creating a statistics engine."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    # > 1 is allowed on purpose (reliability boost); stability is the caller's problem
    alpha: float = Field(default=DEFAULT_ALPHA, gt=0.0)

    # Use suffix fields for JSON-serializable dtype representation.
    sample_dtype_: str = DEFAULT_SAMPLE_DTYPE
    accum_dtype_: str = DEFAULT_ACCUM_DTYPE

    summation: SummationType = SummationType.kahan

    @property
    def sample_dtype(self) -> torch.dtype:
        return resolve_dtype(self.sample_dtype_)

    @sample_dtype.setter
    def sample_dtype(self, v: torch.dtype) -> None:
        self.sample_dtype_ = str(v).replace("torch.", "")

    @property
    def accum_dtype(self) -> torch.dtype:
        return resolve_dtype(self.accum_dtype_)

    @accum_dtype.setter
    def accum_dtype(self, v: torch.dtype) -> None:
        self.accum_dtype_ = str(v).replace("torch.", "")

    @field_validator("sample_dtype_", "accum_dtype_")
    @classmethod
    def _check_dtype_name(cls, v: str) -> str:
        dtype = resolve_dtype(v)
        if dtype.is_complex or dtype == torch.bool:
            raise ValueError(f"Unsupported dtype for statistics: {v}")
        return str(dtype).replace("torch.", "")

    @field_validator("accum_dtype_")
    @classmethod
    def _check_accum_floating(cls, v: str) -> str:
        if not resolve_dtype(v).is_floating_point:
            raise ValueError(f"Accumulation dtype must be floating point: {v}")
        return v

    def build(self) -> Statistics:
        """Build an empty running engine from this config."""
        return Statistics(
            alpha=self.alpha,
            sample_dtype=self.sample_dtype,
            accum_dtype=self.accum_dtype,
            summation=self.summation,
        )

    def build_reference(self) -> ReferenceStatistics:
        """Build the matching naive oracle (tests and offline checks only)."""
        return ReferenceStatistics(
            alpha=self.alpha,
            sample_dtype=self.sample_dtype,
            accum_dtype=self.accum_dtype,
        )


class RecorderConfig(BaseModel):
    """Display and logging parameters for StatsRecorder"""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    # print describe() every n updates of a stream, 0 disables
    display_every: int = Field(default=1000, ge=0)
    tensorboard: bool = True
    jsonl: bool = True

    ci_enabled: bool = True
    ci_confidence: float = 0.95

    @field_validator("ci_confidence")
    @classmethod
    def _check_confidence(cls, v: float) -> float:
        if not (0.0 < v < 1.0):
            raise ValueError("ci_confidence must be in (0, 1)")
        return v


class Config(BaseModel):
    """Main configuration combining all sub-configs"""

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        populate_by_name=True,
    )

    version: str = "0.1"
    statistics: StatisticsConfig = Field(default_factory=StatisticsConfig)
    recorder: RecorderConfig = Field(default_factory=RecorderConfig)

    # Per-stream overrides, e.g. {"latency": {"alpha": 0.99}}
    streams: Dict[str, StatisticsConfig] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_streams(self) -> "Config":
        for name in self.streams:
            if not name:
                raise ValueError("Stream names must be non-empty")
        return self

    def stream_config(self, name: str) -> StatisticsConfig:
        """Config for a named stream, falling back to the shared one."""
        return self.streams.get(name, self.statistics)

    def to_dict(self) -> Dict[str, Any]:
        """
        Export config to a JSON-serializable dict.
        """
        return self.model_dump(mode="json", by_alias=True)

    def to_json(
        self,
        indent: Optional[int] = 2,
        ensure_ascii: bool = False,
    ) -> str:
        return json.dumps(
            self.to_dict(),
            indent=indent,
            ensure_ascii=ensure_ascii,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        return cls.model_validate(data)

    @classmethod
    def from_json(cls, s: str) -> "Config":
        return cls.from_dict(json.loads(s))


def get_default_config() -> Config:
    """Get default configuration"""
    return Config()
