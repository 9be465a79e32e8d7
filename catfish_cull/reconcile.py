"""
TryBooking import reconciliation.

TryBooking sells tickets per person, so each registrant arrives as a solo row
with a free-text "partner" field. ``reconcile_registrants`` pairs them into
team candidates for staff to review before anything is written.
"""

import io
import csv
import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Iterable

from openpyxl import load_workbook

from catfish_cull.models import TeamCandidate, blank_to_none

logger = logging.getLogger(__name__)

TRUTHY = {"y", "yes", "true", "1", "x"}


@dataclass
class ImportColumns:
    """Header names in the booking export."""
    first_name: str = "First Name"
    last_name: str = "Last Name"
    full_name: str = "Name"
    email: str = "Email"
    partner: str = "Partner Name"
    junior: str = "Junior"
    women: str = "Women"
    shirt: str = "Shirt Size"


@dataclass
class Registrant:
    name: str
    email: Optional[str] = None
    partner: str = ""
    is_junior: bool = False
    is_women: bool = False
    shirt: Optional[str] = None

    @property
    def key(self) -> str:
        return normalize_name(self.name)

    @property
    def tokens(self) -> List[str]:
        return self.key.split()


@dataclass
class ImportResult:
    candidates: List[TeamCandidate] = field(default_factory=list)
    matched: int = 0
    unmatched: int = 0


def normalize_name(value) -> str:
    return " ".join(str(value or "").casefold().split())


def _flag(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in TRUTHY


def parse_registrant(row: Dict, columns: ImportColumns) -> Optional[Registrant]:
    first = blank_to_none(str(row.get(columns.first_name) or ""))
    last = blank_to_none(str(row.get(columns.last_name) or ""))
    name = " ".join(p for p in (first, last) if p) or blank_to_none(str(row.get(columns.full_name) or ""))
    if not name:
        return None
    return Registrant(
        name=" ".join(name.split()),
        email=blank_to_none(str(row.get(columns.email) or "")),
        partner=" ".join(str(row.get(columns.partner) or "").split()),
        is_junior=_flag(row.get(columns.junior)),
        is_women=_flag(row.get(columns.women)),
        shirt=blank_to_none(str(row.get(columns.shirt) or "")),
    )


def _find_partner(i: int, registrants: List[Registrant], lookup: Dict[str, List[int]], consumed: List[bool]) -> Optional[int]:
    wanted = normalize_name(registrants[i].partner)
    if not wanted:
        return None

    for j in lookup.get(wanted, []):
        if not consumed[j]:
            return j

    tokens = set(wanted.split())
    overlapping = [
        j for j, other in enumerate(registrants)
        if not consumed[j] and len(tokens & set(other.tokens)) >= 2
    ]
    if len(overlapping) == 1:
        return overlapping[0]

    if len(wanted.split()) == 1:
        for j, other in enumerate(registrants):
            if not consumed[j] and wanted in other.key:
                return j
    return None


def reconcile_registrants(
    rows: Iterable[Dict],
    columns: Optional[ImportColumns] = None,
    first_team_number: int = 1,
) -> ImportResult:
    """Pair solo registrants by their stated partner.

    Matching order: exact normalised name, then two or more shared name tokens
    with exactly one candidate, then a one-word partner found in any name.
    Registrants are visited in input order so the result is reproducible.
    Pairs come first, then unmatched singles, numbered from ``first_team_number``.
    """
    columns = columns or ImportColumns()
    registrants = [r for r in (parse_registrant(row, columns) for row in rows) if r]

    lookup: Dict[str, List[int]] = {}
    for idx, reg in enumerate(registrants):
        lookup.setdefault(reg.key, []).append(idx)

    consumed = [False] * len(registrants)
    pairs = []
    singles = []
    for i, reg in enumerate(registrants):
        if consumed[i]:
            continue
        consumed[i] = True
        j = _find_partner(i, registrants, lookup, consumed)
        if j is None:
            singles.append(reg)
            continue
        consumed[j] = True
        pairs.append((reg, registrants[j]))

    result = ImportResult(matched=len(pairs), unmatched=len(singles))
    number = first_team_number
    for first, second in pairs:
        result.candidates.append(TeamCandidate(
            team_number=number,
            competitor1_name=first.name,
            competitor1_email=first.email,
            competitor1_shirt=first.shirt,
            competitor2_name=second.name,
            competitor2_email=second.email,
            competitor2_shirt=second.shirt,
            is_junior=first.is_junior or second.is_junior,
            is_women=first.is_women or second.is_women,
            matched=True,
        ))
        number += 1
    for reg in singles:
        result.candidates.append(TeamCandidate(
            team_number=number,
            competitor1_name=reg.name,
            competitor1_email=reg.email,
            competitor1_shirt=reg.shirt,
            is_junior=reg.is_junior,
            is_women=reg.is_women,
            matched=False,
            partner_text=reg.partner or None,
            notes=f"Specified partner: {reg.partner} (not registered)" if reg.partner else None,
        ))
        number += 1

    logger.info("Reconciled %d registrants: %d pairs, %d unmatched",
                len(registrants), result.matched, result.unmatched)
    return result


# ============================================================================
# File reading
# ============================================================================

def read_registrant_rows(filename: str, content: bytes) -> List[Dict[str, str]]:
    """Header-keyed rows from an .xlsx (first sheet) or .csv booking export."""
    name = (filename or "").lower()
    if name.endswith(".xlsx"):
        try:
            wb = load_workbook(io.BytesIO(content), data_only=True, read_only=True)
        except Exception:
            raise ValueError("Could not read Excel file")
        rows = wb.worksheets[0].iter_rows(values_only=True)
        header = next(rows, None)
        if not header:
            return []
        headers = [str(h).strip() if h is not None else "" for h in header]
        records = []
        for values in rows:
            if not values or all(v is None or str(v).strip() == "" for v in values):
                continue
            records.append({
                h: ("" if i >= len(values) or values[i] is None else str(values[i]))
                for i, h in enumerate(headers) if h
            })
        wb.close()
        return records

    if name.endswith(".csv"):
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise ValueError("CSV file must be UTF-8 encoded")
        reader = csv.DictReader(io.StringIO(text))
        return [
            {k.strip(): (v or "") for k, v in row.items() if k is not None}
            for row in reader
            if any((v or "").strip() for v in row.values() if isinstance(v, str))
        ]

    raise ValueError("Only .xlsx or .csv files are accepted")
