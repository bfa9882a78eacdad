"""Domain models for the CSV giving / membership importer."""

from .config_models import DatabaseConfig, EnumConfig, FieldAliases, ImportConfig
from .error_record import ErrorRecord
from .import_result import (
    Accepted,
    ImportFailure,
    ImportResult,
    ImportStatus,
    Rejected,
    RowError,
    RowOutcome,
)
from .records import GivingItem, GivingRecord, HouseholdDraft, HouseholdRef, MemberDraft
from .row_data import ImportRow
from .snapshot import GivingCategory, MemberSnapshot, TenantSnapshot

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "EnumConfig",
    "FieldAliases",
    "ImportConfig",
    # Input / snapshot models
    "ImportRow",
    "GivingCategory",
    "MemberSnapshot",
    "TenantSnapshot",
    # Insertable records
    "GivingItem",
    "GivingRecord",
    "HouseholdDraft",
    "HouseholdRef",
    "MemberDraft",
    # Outcomes
    "Accepted",
    "ErrorRecord",
    "ImportFailure",
    "ImportResult",
    "ImportStatus",
    "Rejected",
    "RowError",
    "RowOutcome",
]
