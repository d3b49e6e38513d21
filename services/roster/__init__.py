"""
Client roster import and reconciliation.

Usage:
    from services.roster import (
        OwnerScopedClientRepository, TrackKind, detect_schema_capabilities, import_clients
    )

    repository = OwnerScopedClientRepository(current_user.id)
    result = import_clients(
        repository,
        detect_schema_capabilities(),
        content=text,
        kind=TrackKind.SAVINGS,
        filename='musteriler.csv',
    )
"""

from .exceptions import RosterImportError, StructuralImportError, RowValidationError
from .types import (
    TrackKind,
    ImportRow,
    SchemaCapabilities,
    ReconcileSummary,
    BirthdayCandidate,
    ActionResult,
)
from .headers import normalise_header, map_header_positions
from .parsing import parse_number, parse_date, detect_delimiter
from .reader import parse_roster_csv
from .repository import OwnerScopedClientRepository, detect_schema_capabilities, to_money
from .reconciler import reconcile_rows
from .birthdays import find_birthday_candidates, create_birthday_campaign, is_birthday_today
from .importer import import_clients

__all__ = [
    'RosterImportError',
    'StructuralImportError',
    'RowValidationError',
    'TrackKind',
    'ImportRow',
    'SchemaCapabilities',
    'ReconcileSummary',
    'BirthdayCandidate',
    'ActionResult',
    'normalise_header',
    'map_header_positions',
    'parse_number',
    'parse_date',
    'detect_delimiter',
    'parse_roster_csv',
    'OwnerScopedClientRepository',
    'detect_schema_capabilities',
    'to_money',
    'reconcile_rows',
    'find_birthday_candidates',
    'create_birthday_campaign',
    'is_birthday_today',
    'import_clients',
]
