"""Pydantic schemas for bookmark import results."""
from enum import StrEnum

from pydantic import BaseModel


class ImportOutcome(StrEnum):
    """What happened to one accepted entry of an import document."""

    IMPORTED = "imported"
    SKIPPED = "skipped"
    ERRORED = "errored"


class ImportStats(BaseModel):
    """Totals for one import run. total counts accepted entries only."""

    total: int = 0
    imported: int = 0
    skipped: int = 0
    errors: int = 0
