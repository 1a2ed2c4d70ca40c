"""Reconciliation of two address datasets.

Targets are indexed once by match key; every source is then classified against its
candidates independently, so the classification parallelizes over chunks of sources
without shared mutable state.
"""

from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor
from functools import partial
from typing import Iterable, Optional, Sequence

from loguru import logger
from rapidfuzz import fuzz, process

from .capability import AddressCapable
from .config import ReconcileOptions
from .indexers import KeyIndex
from .models import (
    ComparisonReport,
    ComparisonResult,
    Divergent,
    DriftRecord,
    DuplicateGroup,
    Matching,
    Missing,
    OrphanStreet,
)
from .normalizer import MatchKey, derive_key
from .scorer import FieldComparator, FieldRules, planar_distance
from .vocabulary import Vocabulary


def _classify(record: AddressCapable, index: KeyIndex, comparator: FieldComparator) -> ComparisonResult:
    if not record.components.is_matchable:
        return Missing(record=record)
    candidates = index.query(derive_key(record, index.vocabulary))
    if not candidates:
        return Missing(record=record)
    target, fields = comparator.best_candidate(record, candidates)
    if not fields:
        return Matching(source=record, target=target)
    return Divergent(source=record, target=target, fields=fields)


def _classify_chunk(
    chunk: Sequence[AddressCapable], index: KeyIndex, comparator: FieldComparator
) -> list[ComparisonResult]:
    return [_classify(record, index, comparator) for record in chunk]


def reconcile(
    source_set: Sequence[AddressCapable],
    target_set: Sequence[AddressCapable],
    options: Optional[ReconcileOptions] = None,
    vocabulary: Optional[Vocabulary] = None,
) -> ComparisonReport:
    """Classify every source record as Matching, Divergent or Missing against the targets."""
    options = options or ReconcileOptions()
    index = KeyIndex(vocabulary).build(target_set)
    logger.info(
        "indexed {} of {} target records under {} keys", len(index), len(target_set), len(index.key_to_records)
    )
    comparator = FieldComparator(
        FieldRules(comparable_fields=options.comparable_fields, drift_threshold=options.drift_threshold)
    )

    sources = list(source_set)
    worker = partial(_classify_chunk, index=index, comparator=comparator)
    if options.workers <= 1 or len(sources) <= options.chunk_size:
        results = worker(sources)
    else:
        chunks = [sources[i : i + options.chunk_size] for i in range(0, len(sources), options.chunk_size)]
        logger.info("classifying {} chunks on {} workers", len(chunks), options.workers)
        results = []
        with ProcessPoolExecutor(max_workers=options.workers) as executor:
            for chunk_results in executor.map(worker, chunks):
                results.extend(chunk_results)

    if options.report_unmatched_targets:
        results.extend(_unmatched_targets(results, target_set, vocabulary))

    report = ComparisonReport(results=results, source_count=len(sources), target_count=len(target_set))
    logger.info("reconciled {} source records: {}", len(sources), report.counts())
    return report


def _unmatched_targets(
    results: Sequence[ComparisonResult],
    target_set: Sequence[AddressCapable],
    vocabulary: Optional[Vocabulary],
) -> list[Missing]:
    # Results may come back from worker processes as copies, so targets are matched by value.
    chosen = {
        (result.target.identity, derive_key(result.target, vocabulary))
        for result in results
        if isinstance(result, (Matching, Divergent))
    }
    unmatched = []
    for record in target_set:
        if not record.components.is_matchable or (record.identity, derive_key(record, vocabulary)) not in chosen:
            unmatched.append(Missing(record=record, side="target"))
    return unmatched


def find_duplicates(
    dataset: Iterable[AddressCapable], vocabulary: Optional[Vocabulary] = None
) -> list[DuplicateGroup]:
    """Groups of records sharing a match key under at least two distinct identities."""
    groups: dict[MatchKey, list[AddressCapable]] = {}
    for record in dataset:
        if not record.components.is_matchable:
            continue
        records = groups.setdefault(derive_key(record, vocabulary), [])
        # one record per identity, first occurrence kept
        if all(seen.identity != record.identity for seen in records):
            records.append(record)
    duplicates = [
        DuplicateGroup(key=key, records=tuple(records)) for key, records in groups.items() if len(records) >= 2
    ]
    logger.info("found {} duplicate groups", len(duplicates))
    return duplicates


def compute_drift(
    pairs: Iterable[ComparisonResult], threshold_distance: float
) -> list[DriftRecord]:
    """Planar distance between the two sides of every located pair."""
    drift = []
    for result in pairs:
        if not isinstance(result, (Matching, Divergent)):
            continue
        a = result.source.coordinates
        b = result.target.coordinates
        if a is None or b is None:
            continue
        distance = planar_distance(a, b)
        drift.append(DriftRecord(pair=result, distance=distance, exceeds_threshold=distance > threshold_distance))
    return drift


def _street_names(dataset: Iterable[AddressCapable], vocabulary: Optional[Vocabulary]) -> set[str]:
    names = set()
    for record in dataset:
        name = derive_key(record, vocabulary).complete_street_name
        if name:
            names.add(name)
    return names


def find_orphan_streets(
    source_set: Iterable[AddressCapable],
    target_set: Iterable[AddressCapable],
    vocabulary: Optional[Vocabulary] = None,
) -> tuple[set[str], set[str]]:
    source_names = _street_names(source_set, vocabulary)
    target_names = _street_names(target_set, vocabulary)
    return source_names - target_names, target_names - source_names


def suggest_counterparts(
    orphans: Iterable[str],
    other_names: Iterable[str],
    min_score: float = 80.0,
    side: str = "source",
) -> list[OrphanStreet]:
    """Attach the closest street name from the other dataset to each orphan, if close enough."""
    choices = sorted(other_names)
    suggestions = []
    for name in sorted(orphans):
        match = None
        if choices:
            match = process.extractOne(name, choices, scorer=fuzz.token_sort_ratio, score_cutoff=min_score)
        if match is None:
            suggestions.append(OrphanStreet(name=name, side=side))
        else:
            closest, score, _ = match
            suggestions.append(OrphanStreet(name=name, side=side, closest=closest, score=float(score)))
    return suggestions
