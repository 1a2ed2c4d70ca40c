import pandas as pd
import pytest

from address_reconciler import clean_cli
from address_reconciler.address_cleaner import AddressCleaner


def test_clean_dataframe_adds_component_columns():
    df = pd.DataFrame(
        {"address": ["123 Main St Apt 4, Springfield, IL 62701", None, "Main St"], "owner": ["a", "b", "c"]}
    )
    cleaned = AddressCleaner().clean_dataframe(df, "address")
    assert list(cleaned["parse_status"]) == ["complete", "unparseable", "partial"]
    assert cleaned.loc[0, "street_type"] == "ST"
    assert cleaned.loc[0, "subaddress_id"] == "4"
    assert cleaned.loc[0, "label"] == "123 MAIN ST APT 4"
    assert cleaned.loc[2, "missing"] == "house_number"
    assert list(cleaned["owner"]) == ["a", "b", "c"]


def test_clean_dataframe_requires_column():
    with pytest.raises(ValueError):
        AddressCleaner().clean_dataframe(pd.DataFrame({"other": ["x"]}), "address")


def test_clean_cli_writes_workbook(tmp_path):
    source = tmp_path / "licenses.csv"
    pd.DataFrame({"site": ["500 Oak Ave #4", "7 Pine Rd"]}).to_csv(source, index=False)
    output = tmp_path / "out" / "licenses_clean.xlsx"
    clean_cli.main(["-i", str(source), "-o", str(output), "-c", "site"])
    cleaned = pd.read_excel(output)
    assert list(cleaned["street_name"]) == ["OAK", "PINE"]
    assert list(cleaned["parse_status"]) == ["complete", "complete"]


def test_clean_cli_exits_when_input_is_missing(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        clean_cli.main(["-i", str(tmp_path / "absent.csv")])
    assert excinfo.value.code == 1
    assert not (tmp_path / "absent_clean.xlsx").exists()
