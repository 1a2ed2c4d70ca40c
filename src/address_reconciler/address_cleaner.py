from __future__ import annotations

from pathlib import Path
from typing import Optional

import pandas as pd

from .models import ParseOutcome, PartialWithRemainder, Unparseable
from .parser import AddressParser
from .vocabulary import Vocabulary

COMPONENT_COLUMNS = (
    "house_number",
    "pre_directional",
    "street_name",
    "street_type",
    "post_directional",
    "subaddress_type",
    "subaddress_id",
    "floor",
    "building",
    "postal_community",
    "state",
    "zip_code",
)


def outcome_to_row(outcome: ParseOutcome) -> dict[str, str]:
    """Flatten a parse outcome into one spreadsheet row of strings."""
    row = {name: "" for name in COMPONENT_COLUMNS}
    row.update(parse_status=outcome.status.value, remainder="", missing="", label="")
    if isinstance(outcome, Unparseable):
        row["remainder"] = outcome.raw_text
        row["missing"] = outcome.reason
        return row
    address = outcome.address
    for name in COMPONENT_COLUMNS:
        value = getattr(address, name)
        if value is not None:
            row[name] = value.value if hasattr(value, "value") else str(value)
    row["label"] = address.label()
    if isinstance(outcome, PartialWithRemainder):
        row["remainder"] = outcome.remainder
        row["missing"] = ";".join(sorted(outcome.missing))
    return row


class AddressCleaner:
    def __init__(self, parser: AddressParser | None = None, vocabulary: Optional[Vocabulary] = None) -> None:
        self.parser = parser or AddressParser(vocabulary)

    def clean_dataframe(self, df: pd.DataFrame, column: str) -> pd.DataFrame:
        if column not in df.columns:
            raise ValueError(f"address column {column} not found")
        parsed_rows: list[dict[str, str]] = []
        for value in df[column].fillna(""):
            parsed_rows.append(outcome_to_row(self.parser.parse(str(value))))
        parsed_df = pd.DataFrame(parsed_rows, index=df.index)
        merged = df.copy()
        for col in parsed_df.columns:
            merged[col] = parsed_df[col]
        return merged

    def process_file(self, input_path: Path, output_path: Path, column: str) -> pd.DataFrame:
        if input_path.suffix.lower() in {".csv", ".txt"}:
            df = pd.read_csv(input_path, encoding="utf-8-sig")
        else:
            df = pd.read_excel(input_path)
        cleaned = self.clean_dataframe(df, column)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        cleaned.to_excel(output_path, index=False)
        return cleaned
