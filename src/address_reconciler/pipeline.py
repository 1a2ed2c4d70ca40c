from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from loguru import logger

from .address_cleaner import outcome_to_row
from .capability import AddressCapable
from .config import DatasetConfig, PipelineConfig
from .engine import compute_drift, find_duplicates, find_orphan_streets, reconcile, suggest_counterparts
from .models import (
    Address,
    AddressStatus,
    BusinessLicense,
    ComparisonReport,
    DriftRecord,
    DuplicateGroup,
    MunicipalAddress,
    OrphanStreet,
    ParseOutcome,
    PartialWithRemainder,
    Unparseable,
)
from .parser import AddressParser
from .vocabulary import build_vocabulary


@dataclass
class PipelineResult:
    report: ComparisonReport
    source_duplicates: list[DuplicateGroup] = field(default_factory=list)
    target_duplicates: list[DuplicateGroup] = field(default_factory=list)
    drift: list[DriftRecord] = field(default_factory=list)
    orphan_streets: list[OrphanStreet] = field(default_factory=list)


class ReconciliationPipeline:
    def __init__(self, config: PipelineConfig) -> None:
        self.config = config
        self.vocabulary = build_vocabulary(config.vocabulary)
        self.options = config.reconcile_options()
        self.parser = AddressParser(self.vocabulary)
        self.sources: list[AddressCapable] = []
        self.targets: list[AddressCapable] = []
        self.review: list[dict[str, Any]] = []
        self._loaded = False

    def load(self) -> None:
        self.review = []
        self.sources = self._load_dataset(self.config.source, "source")
        self.targets = self._load_dataset(self.config.target, "target")
        self._loaded = True
        logger.info(
            "loaded {sources} source records and {targets} target records, {review} need review",
            sources=len(self.sources),
            targets=len(self.targets),
            review=len(self.review),
        )

    def run(self) -> PipelineResult:
        if not self._loaded:
            raise RuntimeError("call load() before run()")
        report = reconcile(self.sources, self.targets, self.options, self.vocabulary)
        source_only, target_only = find_orphan_streets(self.sources, self.targets, self.vocabulary)
        min_score = self.config.suggestion_min_score
        orphans = suggest_counterparts(source_only, target_only, min_score, side=self._label("source"))
        orphans += suggest_counterparts(target_only, source_only, min_score, side=self._label("target"))
        return PipelineResult(
            report=report,
            source_duplicates=find_duplicates(self.sources, self.vocabulary),
            target_duplicates=find_duplicates(self.targets, self.vocabulary),
            drift=compute_drift(report, self.options.drift_threshold),
            orphan_streets=orphans,
        )

    def export(self, result: PipelineResult) -> None:
        duplicates = self._duplicates_frame(result)
        drift = pd.DataFrame(
            [
                {
                    "source_id": record.source_id,
                    "target_id": record.target_id,
                    "distance": record.distance,
                    "exceeds_threshold": record.exceeds_threshold,
                }
                for record in result.drift
            ],
            columns=["source_id", "target_id", "distance", "exceeds_threshold"],
        )
        orphans = pd.DataFrame(
            [
                {"street": orphan.name, "side": orphan.side, "closest": orphan.closest, "score": orphan.score}
                for orphan in result.orphan_streets
            ],
            columns=["street", "side", "closest", "score"],
        )
        with pd.ExcelWriter(self.config.output_file) as writer:
            result.report.to_frame().to_excel(writer, sheet_name="comparison", index=False)
            duplicates.to_excel(writer, sheet_name="duplicates", index=False)
            drift.to_excel(writer, sheet_name="drift", index=False)
            orphans.to_excel(writer, sheet_name="orphan_streets", index=False)
            pd.DataFrame(self.review).to_excel(writer, sheet_name="parse_review", index=False)
        logger.info("results written to {path}", path=self.config.output_file)

    def _duplicates_frame(self, result: PipelineResult) -> pd.DataFrame:
        rows = []
        for side, groups in (("source", result.source_duplicates), ("target", result.target_duplicates)):
            for group in groups:
                for record in group.records:
                    rows.append(
                        {
                            "side": self._label(side),
                            "match_key": str(group.key),
                            "record_id": record.identity,
                            "address_label": record.components.label(),
                        }
                    )
        return pd.DataFrame(rows, columns=["side", "match_key", "record_id", "address_label"])

    def _label(self, side: str) -> str:
        dataset: DatasetConfig = getattr(self.config, side)
        return dataset.label or side

    def _load_dataset(self, dataset: DatasetConfig, side: str) -> list[AddressCapable]:
        df = self._read_table(dataset.file, sheet_name=dataset.sheet)
        mapper = dataset.columns
        df = df.rename(columns={v: k for k, v in mapper.items() if v in df.columns})
        label = dataset.label or side
        records: list[AddressCapable] = []
        for idx, row in enumerate(df.to_dict(orient="records"), start=1):
            record_id = self._ensure_record_id(row.get("record_id"), idx)
            identity = dict(
                record_id=record_id,
                source=label,
                latitude=self._float(row.get("latitude")),
                longitude=self._float(row.get("longitude")),
            )
            if "address" in mapper:
                outcome = self.parser.parse(self._text(row.get("address")), **identity)
            else:
                outcome = self.parser.parse_fields(
                    self._text(row.get("street")),
                    self._text(row.get("city")),
                    self._text(row.get("state")),
                    self._text(row.get("zip_code")),
                    **identity,
                )
            address = self._collect(outcome, label, identity)
            records.append(self._wrap(dataset, address, row))
        return records

    def _collect(self, outcome: ParseOutcome, label: str, identity: dict[str, Any]) -> Address:
        if isinstance(outcome, Unparseable):
            logger.warning(
                "{label} record {id} is unparseable: {reason}", label=label, id=identity["record_id"], reason=outcome.reason
            )
            self.review.append({"side": label, "record_id": identity["record_id"], **outcome_to_row(outcome)})
            return Address(**identity)
        if isinstance(outcome, PartialWithRemainder):
            logger.warning("{label} record {id} parsed partially", label=label, id=identity["record_id"])
            self.review.append({"side": label, "record_id": identity["record_id"], **outcome_to_row(outcome)})
        return outcome.address

    def _wrap(self, dataset: DatasetConfig, address: Address, row: dict[str, Any]) -> AddressCapable:
        if dataset.kind == "business":
            return BusinessLicense(
                license=address.record_id,
                address=address,
                company_name=self._text(row.get("company_name")),
                business_type=self._text(row.get("business_type")) or "",
            )
        return MunicipalAddress(address=address, status=self._status(row.get("status")))

    def _read_table(self, path: Path, sheet_name: Optional[str] = None) -> pd.DataFrame:
        ext = path.suffix.lower()
        if ext in {".csv", ".txt"}:
            return pd.read_csv(path, encoding="utf-8-sig", dtype=str, keep_default_na=False)
        kwargs = {}
        if sheet_name is not None:
            kwargs["sheet_name"] = sheet_name
        return pd.read_excel(path, dtype=str, keep_default_na=False, **kwargs)

    def _ensure_record_id(self, raw_value: object, index: int) -> str:
        if isinstance(raw_value, str):
            candidate = raw_value.strip()
            if candidate:
                return candidate
        elif raw_value is not None and not pd.isna(raw_value):
            return str(raw_value)
        return f"ROW_{index}"

    def _text(self, value: object) -> Optional[str]:
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return None
        text = str(value).strip()
        return text or None

    def _float(self, value: object) -> Optional[float]:
        text = self._text(value)
        if text is None:
            return None
        try:
            return float(text)
        except ValueError:
            return None

    def _status(self, value: object) -> AddressStatus:
        text = (self._text(value) or "").lower()
        try:
            return AddressStatus(text)
        except ValueError:
            return AddressStatus.OTHER
