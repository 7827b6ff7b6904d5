"""
Moteur de rejeu FIFO d'un code NAC.

Ce module est PUR : aucune session, aucun SQL. Il reçoit l'historique complet
d'un code (position d'ouverture, lots reçus approuvés, sorties) et recalcule :

    - la quantité restante de chaque lot,
    - le coût FIFO de chaque sortie et le solde courant juste après elle,
    - la quantité d'ouverture restante.

La lecture verrouillée et l'écriture des champs dérivés sont dans
    backend.services.inventory
"""

from __future__ import annotations

import logging
import re
from collections import deque
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from backend.app.db.models.core_types import EventType


logger = logging.getLogger("nacledger.ledger")

EPOCH_DATE = "1970-01-01"
COST_PRECISION = 4
_QUANTUM = Decimal(1).scaleb(-COST_PRECISION)

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# réception avant sortie à date égale
_EVENT_RANK = {EventType.receive: 0, EventType.issue: 1}


# ---------- Helpers ----------
def to_float(value) -> float:
    """Coercition numérique tolérante : None / vide / non numérique -> 0.0"""
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def normalize_date_string(value) -> str:
    if value is None or value == "":
        return EPOCH_DATE
    if isinstance(value, str) and _ISO_DATE_RE.match(value):
        return value
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        return datetime.fromisoformat(str(value)).date().isoformat()
    except ValueError:
        return EPOCH_DATE


def unit_cost(total_cost: float, total_quantity: float) -> float:
    if total_quantity > 0 and total_cost > 0:
        return total_cost / total_quantity
    return 0.0


def round_half_up(value: float) -> float:
    """
    Arrondi à 4 décimales, demi vers le haut, sur la valeur binaire exacte du float.
    round() arrondit les égalités au pair : round(0.03125, 4) == 0.0312, ici 0.0313.
    """
    return float(Decimal(value).quantize(_QUANTUM, rounding=ROUND_HALF_UP))


def persisted(value: float) -> float:
    """Arrondi de persistance (jamais en cours de calcul), plancher à 0."""
    return max(0.0, round_half_up(value))


# ---------- Types ----------
@dataclass(frozen=True)
class StockPosition:
    nac_code: str
    open_quantity: float
    open_amount: float

    @property
    def opening_unit_cost(self) -> float:
        return unit_cost(self.open_amount, self.open_quantity)


@dataclass(frozen=True)
class ReceiptLot:
    id: int
    receive_date: str
    total_quantity: float
    total_cost: float

    @property
    def unit_cost(self) -> float:
        return unit_cost(self.total_cost, self.total_quantity)


@dataclass(frozen=True)
class IssueRecord:
    id: int
    issue_date: str
    issue_quantity: float
    issue_cost: float


@dataclass
class _ActiveLot:
    lot: ReceiptLot
    remaining: float


@dataclass(frozen=True)
class TimelineEvent:
    type: EventType
    day: str
    id: int
    lot: ReceiptLot | None = None
    issue: IssueRecord | None = None

    @property
    def sort_key(self) -> tuple[str, int, int]:
        return (self.day, _EVENT_RANK[self.type], self.id)


@dataclass(frozen=True)
class IssueUpdate:
    id: int
    issue_cost: float
    remaining_balance: float


@dataclass(frozen=True)
class ShortAllocation:
    issue_id: int
    shortfall: float


@dataclass
class LedgerResult:
    nac_code: str
    open_remaining_quantity: float
    lot_remaining: dict[int, float] = field(default_factory=dict)
    issue_updates: list[IssueUpdate] = field(default_factory=list)
    short_allocations: list[ShortAllocation] = field(default_factory=list)


# ---------- Timeline ----------
def build_timeline(
    lots: Iterable[ReceiptLot],
    issues: Iterable[IssueRecord],
) -> list[TimelineEvent]:
    """
    Fusionne réceptions et sorties en une seule chronologie.

    Ordre : date normalisée, puis réception avant sortie à date égale
    (le stock reçu un jour peut sortir le jour même), puis id.
    """
    events = [
        TimelineEvent(type=EventType.receive, day=normalize_date_string(lot.receive_date), id=lot.id, lot=lot)
        for lot in lots
    ]
    events.extend(
        TimelineEvent(type=EventType.issue, day=normalize_date_string(issue.issue_date), id=issue.id, issue=issue)
        for issue in issues
    )
    return sorted(events, key=lambda e: e.sort_key)


# ---------- Rejeu ----------
def replay_ledger(
    position: StockPosition,
    lots: Iterable[ReceiptLot],
    issues: Iterable[IssueRecord],
    *,
    is_fuel: bool = False,
    log: logging.Logger | None = None,
) -> LedgerResult:
    """
    Rejoue l'historique d'un code NAC et retourne les champs dérivés, déjà
    arrondis pour la persistance.

    Règles :
    - l'ouverture est consommée en premier, au coût unitaire d'ouverture
    - puis les lots actifs dans l'ordre d'arrivée (FIFO strict)
    - le solde baisse de toute la quantité sortie, même si l'allocation est
      incomplète ; le solde enregistré est planché à 0
    - sortie de quantité <= 0 : coût existant conservé
    - code carburant : un coût existant > 0 est conservé tel quel
    - allocation incomplète : warning, jamais d'exception
    """
    log = log or logger
    lots = list(lots)

    opening_cost = position.opening_unit_cost
    opening_remaining = position.open_quantity
    balance = opening_remaining

    active: deque[_ActiveLot] = deque()
    remaining_by_lot: dict[int, _ActiveLot] = {}

    result = LedgerResult(nac_code=position.nac_code, open_remaining_quantity=0.0)

    for event in build_timeline(lots, issues):
        if event.type is EventType.receive:
            entry = _ActiveLot(lot=event.lot, remaining=event.lot.total_quantity)
            active.append(entry)
            remaining_by_lot[event.lot.id] = entry
            balance += event.lot.total_quantity
            continue

        issue = event.issue
        if issue.issue_quantity <= 0:
            result.issue_updates.append(
                IssueUpdate(
                    id=issue.id,
                    issue_cost=issue.issue_cost,
                    remaining_balance=persisted(balance),
                )
            )
            continue

        need = issue.issue_quantity
        cost = 0.0

        if opening_remaining > 0:
            consumed = min(opening_remaining, need)
            cost += consumed * opening_cost
            opening_remaining -= consumed
            need -= consumed

        for entry in active:
            if need <= 0:
                break
            if entry.remaining <= 0:
                continue
            consumed = min(entry.remaining, need)
            cost += consumed * entry.lot.unit_cost
            entry.remaining -= consumed
            need -= consumed

        # lots épuisés en tête de file : plus jamais consommables
        while active and active[0].remaining <= 0:
            active.popleft()

        if need > 0:
            result.short_allocations.append(ShortAllocation(issue_id=issue.id, shortfall=need))
            log.warning(
                "NAC %s issue %s could not be fully allocated (%s short)",
                position.nac_code,
                issue.id,
                need,
                extra={"nac_code": position.nac_code, "issue_id": issue.id, "shortfall": need},
            )

        balance -= issue.issue_quantity

        if is_fuel and issue.issue_cost > 0:
            resolved_cost = issue.issue_cost
        else:
            resolved_cost = round_half_up(cost)

        result.issue_updates.append(
            IssueUpdate(
                id=issue.id,
                issue_cost=resolved_cost,
                remaining_balance=persisted(balance),
            )
        )

    result.lot_remaining = {lot.id: persisted(remaining_by_lot[lot.id].remaining) for lot in lots}
    result.open_remaining_quantity = persisted(opening_remaining)
    return result
