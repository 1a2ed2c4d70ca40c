import pandas as pd
import pytest

from address_reconciler import validate_cli
from address_reconciler.config import PipelineConfig
from address_reconciler.pipeline import ReconciliationPipeline


def build_config(tmp_path):
    source = tmp_path / "points.csv"
    pd.DataFrame(
        {
            "ID": ["A1", "A2", "A3"],
            "FULL_ADDRESS": ["123 Main St Apt 4, Springfield, IL 62701", "45 Oak Ave, Springfield, IL 62701", "??"],
            "Y": ["10.0", "20.0", ""],
            "X": ["10.0", "20.0", ""],
            "STATUS": ["current", "retired", ""],
        }
    ).to_csv(source, index=False)
    target = tmp_path / "licenses.csv"
    pd.DataFrame(
        {
            "LICENSE": ["L1", "L2"],
            "SITE": ["123 Main Street Apt 4", "45 Oak Ave Ste 9"],
            "CITY": ["Springfield", "Springfield"],
            "STATE": ["IL", "IL"],
            "ZIP": ["62701", "62701"],
        }
    ).to_csv(target, index=False)
    return PipelineConfig(
        source={
            "file": source,
            "label": "city",
            "columns": {"record_id": "ID", "address": "FULL_ADDRESS", "latitude": "Y", "longitude": "X", "status": "STATUS"},
        },
        target={
            "file": target,
            "label": "licenses",
            "kind": "business",
            "columns": {"record_id": "LICENSE", "street": "SITE", "city": "CITY", "state": "STATE", "zip_code": "ZIP"},
        },
        output_file=tmp_path / "output" / "reconciliation.xlsx",
        runtime={"workers": 1},
    )


def test_pipeline_end_to_end(tmp_path):
    config = build_config(tmp_path)
    pipeline = ReconciliationPipeline(config)
    pipeline.load()
    assert len(pipeline.sources) == 3
    assert len(pipeline.targets) == 2
    assert [row["record_id"] for row in pipeline.review] == ["A3"]

    result = pipeline.run()
    assert result.report.counts() == {"matching": 1, "divergent": 1, "missing": 1}
    divergent = result.report.divergent[0]
    assert divergent.target_id == "L2"
    assert divergent.fields == frozenset({"unit", "subaddress_type"})
    assert result.drift == []

    pipeline.export(result)
    sheets = pd.read_excel(config.output_file, sheet_name=None)
    assert set(sheets) == {"comparison", "duplicates", "drift", "orphan_streets", "parse_review"}
    assert len(sheets["comparison"]) == 3
    assert len(sheets["parse_review"]) == 1


def test_run_requires_load(tmp_path):
    with pytest.raises(RuntimeError):
        ReconciliationPipeline(build_config(tmp_path)).run()


def test_validate_cli_fails_on_missing_input(tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text(
        "source:\n  file: {0}\n  columns: {{address: A}}\ntarget:\n  file: {0}\n  columns: {{address: A}}\n"
        "output_file: {1}\n".format(tmp_path / "nope.csv", tmp_path / "r.xlsx"),
        encoding="utf-8",
    )
    with pytest.raises(SystemExit) as exc:
        validate_cli.main([str(config)])
    assert exc.value.code == 1
