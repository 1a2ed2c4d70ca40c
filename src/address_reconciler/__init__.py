from .capability import AddressCapable
from .config import ConfigurationError, ReconcileOptions, VocabularyConfig
from .engine import compute_drift, find_duplicates, find_orphan_streets, reconcile, suggest_counterparts
from .models import (
    Address,
    AddressStatus,
    BusinessLicense,
    ComparisonReport,
    Complete,
    Divergent,
    DriftRecord,
    DuplicateGroup,
    Matching,
    Missing,
    MunicipalAddress,
    OrphanStreet,
    PartialWithRemainder,
    Unparseable,
)
from .normalizer import MatchKey, derive_key
from .parser import AddressParser, parse, parse_fields
from .vocabulary import Directional, Vocabulary, build_vocabulary, default_vocabulary

__all__ = [
    "Address",
    "AddressCapable",
    "AddressParser",
    "AddressStatus",
    "BusinessLicense",
    "ComparisonReport",
    "Complete",
    "ConfigurationError",
    "Directional",
    "Divergent",
    "DriftRecord",
    "DuplicateGroup",
    "MatchKey",
    "Matching",
    "Missing",
    "MunicipalAddress",
    "OrphanStreet",
    "PartialWithRemainder",
    "ReconcileOptions",
    "Unparseable",
    "Vocabulary",
    "VocabularyConfig",
    "build_vocabulary",
    "compute_drift",
    "default_vocabulary",
    "derive_key",
    "find_duplicates",
    "find_orphan_streets",
    "parse",
    "parse_fields",
    "reconcile",
    "suggest_counterparts",
]
