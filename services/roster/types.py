"""
Roster Import Type Definitions

Dataclasses passed between the header mapper, row parser, validator,
reconciler and birthday trigger. Import rows only live for one request.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional


class TrackKind(Enum):
    """Business schema an import (and a client) follows."""
    SAVINGS = "BES"
    POLICY = "ES"

    @classmethod
    def from_form_value(cls, value: Optional[str]) -> "TrackKind":
        """Anything other than an explicit ES upload is a savings upload."""
        if value and value.strip().upper() == cls.POLICY.value:
            return cls.POLICY
        return cls.SAVINGS


@dataclass(frozen=True)
class ImportRow:
    """One validated line of an uploaded client file."""
    kind: TrackKind
    name: str
    email: str
    phone: Optional[str] = None
    birth_date: Optional[date] = None
    first_savings: Optional[float] = None
    current_savings: Optional[float] = None
    policy_type: Optional[str] = None
    policy_start_date: Optional[date] = None
    policy_end_date: Optional[date] = None


@dataclass(frozen=True)
class SchemaCapabilities:
    """
    Optional client columns available in the connected database.

    Computed once per request and passed to every function that writes
    client rows.
    """
    supports_birth_date: bool = True
    supports_policy_columns: bool = True


@dataclass
class ReconcileSummary:
    updated: int = 0
    inserted: int = 0
    snapshots: int = 0
    failures: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class BirthdayCandidate:
    name: str
    email: str
    birth_date: date
    first_savings: Optional[float] = None
    current_savings: Optional[float] = None


@dataclass(frozen=True)
class ActionResult:
    """Result shape returned to the caller of every client action."""
    success: bool
    message: str

    def to_dict(self) -> dict:
        return {'success': self.success, 'message': self.message}
