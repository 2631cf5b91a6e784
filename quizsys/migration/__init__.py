"""Legacy settings migration pipeline."""

from .dedupe import Candidate, DedupResult, MergeInfo, dedupe
from .detection import (
    MigrationDetection,
    MigrationReason,
    classify_settings,
    detect_migration_needs,
    get_settings_version,
    needs_migration,
    needs_registry_migration,
)
from .extract import (
    BatchExtraction,
    ChairExtraction,
    ExtractionResult,
    extract_all_list_models,
    extract_chair,
    extract_consensus_models,
    extract_council_models,
    extract_list_model,
    extract_main_model,
)
from .matcher import RegistryMatch, match_against_registry
from .orchestrator import (
    MigrationError,
    MigrationResult,
    MigrationState,
    MigrationStats,
    SettingsMigrator,
    default_settings,
    migrate_settings,
)
from .prune import PruneResult, prune_legacy_fields
from .rewrite import ChairRewrite, merge_references, rewrite_chair, rewrite_references
from .sections import normalize_consensus_section, normalize_council_section

__all__ = [
    "BatchExtraction",
    "Candidate",
    "ChairExtraction",
    "ChairRewrite",
    "DedupResult",
    "ExtractionResult",
    "MergeInfo",
    "MigrationDetection",
    "MigrationError",
    "MigrationReason",
    "MigrationResult",
    "MigrationState",
    "MigrationStats",
    "PruneResult",
    "RegistryMatch",
    "SettingsMigrator",
    "classify_settings",
    "dedupe",
    "default_settings",
    "detect_migration_needs",
    "extract_all_list_models",
    "extract_chair",
    "extract_consensus_models",
    "extract_council_models",
    "extract_list_model",
    "extract_main_model",
    "get_settings_version",
    "match_against_registry",
    "merge_references",
    "migrate_settings",
    "needs_migration",
    "needs_registry_migration",
    "normalize_consensus_section",
    "normalize_council_section",
    "prune_legacy_fields",
    "rewrite_chair",
    "rewrite_references",
]
