from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

COMPARABLE_FIELDS = frozenset(
    {
        "unit",
        "subaddress_type",
        "zip_code",
        "postal_community",
        "state",
        "post_directional",
        "floor",
        "building",
        "coordinates",
        "status",
    }
)
DEFAULT_COMPARABLE_FIELDS = (
    "unit",
    "subaddress_type",
    "floor",
    "building",
    "zip_code",
    "postal_community",
    "coordinates",
)


class ConfigurationError(ValueError):
    """Raised before any record is processed when the configuration cannot be used."""


class VocabularyConfig(BaseModel):
    """Alias tables merged over the built-in vocabulary (alias -> canonical form)."""

    directionals: dict[str, str] = Field(default_factory=dict)
    street_types: dict[str, str] = Field(default_factory=dict)
    subaddress_types: dict[str, str] = Field(default_factory=dict)
    states: dict[str, str] = Field(default_factory=dict)
    postal_communities: dict[str, str] = Field(default_factory=dict)
    replace_defaults: bool = False


class ReconcileOptions(BaseModel):
    comparable_fields: tuple[str, ...] = DEFAULT_COMPARABLE_FIELDS
    drift_threshold: float = 30.0
    workers: int = 1
    chunk_size: int = 2000
    report_unmatched_targets: bool = False

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise ConfigurationError(f"invalid reconcile options: {exc}") from exc

    @field_validator("comparable_fields", mode="before")
    @classmethod
    def check_fields(cls, value: object) -> tuple[str, ...]:
        if isinstance(value, str):
            value = [value]
        names = tuple(str(name).strip().lower() for name in value)  # type: ignore[union-attr]
        unknown = sorted(set(names) - COMPARABLE_FIELDS)
        if unknown:
            raise ConfigurationError(f"unknown comparable fields: {', '.join(unknown)}")
        return names

    @field_validator("drift_threshold")
    @classmethod
    def check_threshold(cls, value: float) -> float:
        if value <= 0:
            raise ConfigurationError("drift_threshold must be positive")
        return value

    @field_validator("workers", "chunk_size")
    @classmethod
    def check_positive(cls, value: int) -> int:
        if value < 1:
            raise ConfigurationError("workers and chunk_size must be at least 1")
        return value


class DatasetConfig(BaseModel):
    file: Path
    sheet: Optional[str] = None
    label: str = ""
    kind: Literal["municipal", "business"] = "municipal"
    columns: dict[str, str] = Field(default_factory=dict)

    @field_validator("columns")
    @classmethod
    def check_columns(cls, value: dict[str, str]) -> dict[str, str]:
        if "address" not in value and "street" not in value:
            raise ConfigurationError("columns must map either 'address' or 'street'")
        return value


class RuntimeConfig(BaseModel):
    workers: int = 4
    chunk_size: int = 2000
    log_level: str = "INFO"


class PipelineConfig(BaseModel):
    source: DatasetConfig
    target: DatasetConfig
    output_file: Path = Path("output/reconciliation.xlsx")
    suggestion_min_score: float = 80.0

    vocabulary: VocabularyConfig = Field(default_factory=VocabularyConfig)
    matching: ReconcileOptions = Field(default_factory=ReconcileOptions)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @field_validator("output_file", mode="before")
    @classmethod
    def ensure_output_parent(cls, value: Path | str) -> Path:
        path = Path(value)
        if not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def reconcile_options(self) -> ReconcileOptions:
        data = self.matching.model_dump()
        data.update(workers=self.runtime.workers, chunk_size=self.runtime.chunk_size)
        return ReconcileOptions(**data)


def load_config(path: str | Path) -> PipelineConfig:
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    try:
        return PipelineConfig(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid configuration {path}: {exc}") from exc
