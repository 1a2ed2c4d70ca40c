from concurrent.futures import ProcessPoolExecutor

import pytest

from address_reconciler.config import ConfigurationError, ReconcileOptions
from address_reconciler.engine import (
    compute_drift,
    find_duplicates,
    find_orphan_streets,
    reconcile,
    suggest_counterparts,
)
from address_reconciler.models import (
    Address,
    AddressStatus,
    BusinessLicense,
    Divergent,
    Matching,
    Missing,
    MunicipalAddress,
)
from address_reconciler.parser import parse, parse_fields


def build_point(record_id: str, text: str, status=AddressStatus.CURRENT, **coordinates):
    return MunicipalAddress(address=parse(text, record_id=record_id, **coordinates).address, status=status)


def build_license(license: str, street: str, zip_code=None):
    return BusinessLicense(license=license, address=parse_fields(street, zip_code=zip_code, record_id=license).address)


def test_street_type_spelling_matches():
    source = [build_point("s1", "123 Main St, Springfield")]
    target = [build_point("t1", "123 Main Street, Springfield")]
    report = reconcile(source, target)
    assert len(report) == 1
    result = report.results[0]
    assert isinstance(result, Matching)
    assert result.target_id == "t1"


def test_different_unit_is_divergent():
    report = reconcile([build_point("s1", "45 Oak Ave Unit 2")], [build_point("t1", "45 Oak Ave Unit 3")])
    result = report.results[0]
    assert isinstance(result, Divergent)
    assert result.fields == frozenset({"unit"})


def test_empty_target_set_gives_missing():
    report = reconcile([build_point("s1", "7 Pine Rd")], [])
    assert isinstance(report.results[0], Missing)
    assert report.counts() == {"matching": 0, "divergent": 0, "missing": 1}


def test_partition_is_total():
    source = [
        build_point("s1", "123 Main St"),
        build_point("s2", "45 Oak Ave Unit 2"),
        build_point("s3", "99 Nowhere Ln"),
        MunicipalAddress(address=Address(record_id="s4")),
    ]
    target = [build_point("t1", "123 Main Street"), build_point("t2", "45 Oak Ave Unit 9")]
    report = reconcile(source, target)
    counts = report.counts()
    assert counts["matching"] + counts["divergent"] + counts["missing"] == len(source)
    assert [r.source_id for r in report] == ["s1", "s2", "s3", "s4"]
    assert isinstance(report.results[3], Missing)


def test_zero_difference_candidate_wins_and_earliest_breaks_ties():
    source = [build_point("s1", "45 Oak Ave Unit 2")]
    same = reconcile(source, [build_point("t1", "45 Oak Ave Unit 2"), build_point("t2", "45 Oak Ave Unit 2")])
    assert same.results[0].target_id == "t1"

    tied = reconcile(source, [build_point("t1", "45 Oak Ave Unit 3"), build_point("t2", "45 Oak Ave Unit 4")])
    assert isinstance(tied.results[0], Divergent)
    assert tied.results[0].target_id == "t1"


def test_fewest_differing_fields_wins():
    source = [build_license("s1", "45 Oak Ave Unit 2", zip_code="97526")]
    target = [
        build_license("t1", "45 Oak Ave Apt 3", zip_code="97527"),
        build_license("t2", "45 Oak Ave Unit 3", zip_code="97526"),
    ]
    result = reconcile(source, target).results[0]
    assert isinstance(result, Divergent)
    assert result.target_id == "t2"
    assert result.fields == frozenset({"unit"})


def test_coordinates_differ_only_beyond_threshold():
    source = [build_point("s1", "1 Main St", latitude=0.0, longitude=0.0)]
    near = [build_point("t1", "1 Main St", latitude=0.0, longitude=10.0)]
    far = [build_point("t1", "1 Main St", latitude=0.0, longitude=100.0)]
    options = ReconcileOptions(drift_threshold=30)
    assert isinstance(reconcile(source, near, options).results[0], Matching)
    result = reconcile(source, far, options).results[0]
    assert isinstance(result, Divergent)
    assert result.fields == frozenset({"coordinates"})


def test_only_fields_both_records_expose_are_compared():
    options = ReconcileOptions(comparable_fields=("status", "unit"))
    source = [build_point("s1", "1 Main St", status=AddressStatus.RETIRED)]
    target = [build_license("L-1", "1 Main St")]
    assert isinstance(reconcile(source, target, options).results[0], Matching)

    current = [build_point("t1", "1 Main St", status=AddressStatus.CURRENT)]
    result = reconcile(source, current, options).results[0]
    assert result.fields == frozenset({"status"})


def test_unlisted_fields_are_ignored():
    options = ReconcileOptions(comparable_fields="zip_code")
    report = reconcile([build_point("s1", "45 Oak Ave Unit 2")], [build_point("t1", "45 Oak Ave Unit 3")], options)
    assert isinstance(report.results[0], Matching)


def test_unmatched_targets_are_reported():
    source = [build_point("s1", "123 Main St")]
    target = [build_point("t1", "123 Main St"), build_point("t2", "9 Elm St")]
    report = reconcile(source, target, ReconcileOptions(report_unmatched_targets=True))
    missing = report.missing
    assert len(missing) == 1
    assert missing[0].side == "target"
    assert missing[0].target_id == "t2"
    assert missing[0].source_id is None


def test_parallel_run_equals_sequential_run():
    source = [build_point(f"s{i}", f"{i} Main St Unit {i % 3}") for i in range(1, 31)]
    target = [build_point(f"t{i}", f"{i} Main Street Unit {i % 2}") for i in range(1, 21)]
    sequential = reconcile(source, target)
    parallel = reconcile(source, target, ReconcileOptions(workers=2, chunk_size=5))
    assert parallel.results == sequential.results
    assert parallel.counts() == sequential.counts()


def test_invalid_options_are_rejected():
    with pytest.raises(ConfigurationError):
        ReconcileOptions(comparable_fields=("colour",))
    with pytest.raises(ConfigurationError):
        ReconcileOptions(workers=0)
    with pytest.raises(ConfigurationError):
        ReconcileOptions(drift_threshold=-1)
    with pytest.raises(ConfigurationError):
        ReconcileOptions(drift_threshold=0)


def test_duplicates_need_two_identities():
    dataset = [build_point("A", "10 Elm St"), build_point("B", "10 Elm Street"), build_point("C", "11 Elm St")]
    groups = find_duplicates(dataset)
    assert len(groups) == 1
    assert groups[0].identities == ("A", "B")
    assert len(groups[0]) == 2

    assert find_duplicates([build_point("A", "10 Elm St"), build_point("A", "10 Elm St")]) == []

    repeated = find_duplicates(
        [build_point("A", "10 Elm St"), build_point("A", "10 Elm St"), build_point("B", "10 Elm St")]
    )
    assert repeated[0].identities == ("A", "B")
    assert find_duplicates([MunicipalAddress(address=Address(record_id="x"))] * 2) == []


def test_drift_skips_missing_and_unlocated_pairs():
    source = [
        build_point("s1", "1 Main St", latitude=0.0, longitude=0.0),
        build_point("s2", "2 Main St", latitude=0.0, longitude=0.0),
        build_point("s3", "3 Main St"),
        build_point("s4", "4 Main St"),
    ]
    target = [
        build_point("t1", "1 Main St", latitude=3.0, longitude=4.0),
        build_point("t2", "2 Main St", latitude=0.0, longitude=50.0),
        build_point("t3", "3 Main St", latitude=0.0, longitude=0.0),
    ]
    report = reconcile(source, target, ReconcileOptions(comparable_fields=("unit",)))
    drift = compute_drift(report, threshold_distance=30)
    assert [record.source_id for record in drift] == ["s1", "s2"]
    assert drift[0].distance == pytest.approx(5.0)
    assert not drift[0].exceeds_threshold
    assert drift[1].exceeds_threshold


def test_orphan_streets_and_suggestions():
    source = [build_point("s1", "1 Main St"), build_point("s2", "2 Oak Ave")]
    target = [build_point("t1", "5 Main Street"), build_point("t2", "7 Oakk Ave")]
    source_only, target_only = find_orphan_streets(source, target)
    assert source_only == {"oak ave"}
    assert target_only == {"oakk ave"}
    assert source_only.isdisjoint(target_only)

    suggestions = suggest_counterparts(source_only, target_only, min_score=80)
    assert len(suggestions) == 1
    assert suggestions[0].closest == "oakk ave"
    assert suggestions[0].score >= 80

    unrelated = suggest_counterparts({"elm st"}, {"oakk ave"}, min_score=80)
    assert unrelated[0].closest is None


def test_report_filter_and_frame():
    source = [build_point("s1", "45 Oak Ave Unit 2"), build_point("s2", "7 Pine Rd")]
    target = [build_point("t1", "45 Oak Ave Unit 3")]
    report = reconcile(source, target)
    assert [r.source_id for r in report.filter("unit")] == ["s1"]
    assert [r.source_id for r in report.filter("missing")] == ["s2"]
    frame = report.to_frame()
    assert list(frame["match_status"]) == ["divergent", "missing"]
    assert frame.loc[0, "differing_fields"] == "unit"
    assert frame.loc[0, "address_label"] == "45 OAK AVE UNIT 2"


def test_drift_needs_coordinates_on_both_sides():
    source = [build_point("s1", "1 Main St", latitude=0.0, longitude=0.0), build_point("s2", "2 Main St")]
    target = [build_point("t1", "1 Main St"), build_point("t2", "2 Main St", latitude=5.0, longitude=5.0)]
    report = reconcile(source, target)
    assert all(isinstance(result, Matching) for result in report)
    assert compute_drift(report, threshold_distance=30) == []


def test_parse_is_stable_across_worker_processes():
    texts = [
        "123 Main St Apt 4, Springfield, IL 62701",
        "100 North St",
        "123 Main St N Portland OR 97201",
        "500 Oak Ave #4 & 5",
        "",
        "123 Main St, springfield 97526x",
    ] * 5
    sequential = [parse(text) for text in texts]
    with ProcessPoolExecutor(max_workers=2) as executor:
        parallel = list(executor.map(parse, texts, chunksize=4))
    assert parallel == sequential


def test_different_floor_is_divergent():
    report = reconcile([build_point("s1", "9 Elm St Fl 2 Ste 10")], [build_point("t1", "9 Elm St Fl 3 Ste 10")])
    result = report.results[0]
    assert isinstance(result, Divergent)
    assert result.fields == frozenset({"floor"})
