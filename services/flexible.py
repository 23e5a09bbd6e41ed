"""Hand-curated brackets over a fixed 16-team slot layout.

Operators place teams into labelled slots directly; nothing is propagated
between rounds. Edits happen in memory on a :class:`FlexibleSlotAssignor`
and are only stored by :func:`save_flexible_bracket`.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional

from errors import NotFoundError, PersistenceError, ValidationError
from models import Bracket, BracketKey, MODE_FLEXIBLE
from services.locking import bracket_lock
from stores import PositionStore, transaction

logger = logging.getLogger(__name__)

# Display seeds for the 16 opening slots, left half then right half.
ROUND_ONE_LABELS = ('9', '16', '13', '12', '8', '5', '4', '1', '2', '15', '7', '10', '11', '14', '6', '3')

# round -> (slot id prefix, slots in round)
LAYOUT = {
    1: ('r16', 16),
    2: ('qf', 8),
    3: ('sf', 4),
    4: ('f', 2),
}


@dataclass
class SlotPosition:
    id: str
    round: int
    position: int
    team_id: Optional[str] = None
    label: str = ''

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'round': self.round,
            'position': self.position,
            'team_id': self.team_id,
            'label': self.label,
        }


def default_positions() -> list[SlotPosition]:
    positions = []
    for round_number, (prefix, count) in LAYOUT.items():
        for position in range(1, count + 1):
            label = ROUND_ONE_LABELS[position - 1] if round_number == 1 else ''
            positions.append(SlotPosition(f'{prefix}-{position}', round_number, position, None, label))
    return positions


TOPOLOGY = {pos.id: pos for pos in default_positions()}


class FlexibleSlotAssignor:
    def __init__(self, positions=None):
        source = positions if positions else default_positions()
        self.positions = [replace(pos) for pos in source]

    def get(self, position_id: str) -> SlotPosition:
        for pos in self.positions:
            if pos.id == position_id:
                return pos
        raise NotFoundError(f"Bracket position '{position_id}' does not exist")

    def assign(self, position_id: str, team_id: Optional[str] = None) -> SlotPosition:
        """Place ``team_id`` in a slot, or clear it with ``None``."""
        pos = self.get(position_id)
        pos.team_id = team_id or None
        return pos

    def positions_in_round(self, round_number: int) -> list[SlotPosition]:
        return [pos for pos in self.positions if pos.round == round_number]

    def to_list(self) -> list[dict]:
        return [pos.to_dict() for pos in self.positions]


def _validate_positions(positions) -> None:
    seen = set()
    for pos in positions:
        expected = TOPOLOGY.get(pos.id)
        if expected is None or (expected.round, expected.position) != (pos.round, pos.position):
            raise ValidationError(f"Position '{pos.id}' is not part of the flexible bracket layout")
        if pos.id in seen:
            raise ValidationError(f"Position '{pos.id}' appears more than once")
        seen.add(pos.id)


def load_flexible_bracket(division_id, modality_id, gender) -> FlexibleSlotAssignor:
    """Stored positions for the key, or the default layout when none are stored yet."""
    key = BracketKey.resolve(division_id, modality_id, gender)
    store = PositionStore()
    if not store.is_available():
        return FlexibleSlotAssignor()

    # Stored rows are laid over the full layout so every slot stays assignable.
    stored = {row.slot_id: row for row in store.query_positions(key)}
    positions = default_positions()
    for pos in positions:
        row = stored.get(pos.id)
        if row is not None:
            pos.team_id = row.team_id
            pos.label = row.label or ''
    return FlexibleSlotAssignor(positions)


def save_flexible_bracket(division_id, modality_id, gender, positions) -> None:
    """Replace the stored positions for the key with ``positions``.

    Raises PersistenceError when the flexible storage has not been created;
    the caller's in-memory positions are left as they were.
    """
    key = BracketKey.resolve(division_id, modality_id, gender)
    positions = list(positions)
    _validate_positions(positions)

    store = PositionStore()
    if not store.is_available():
        raise PersistenceError('Flexible bracket storage is not initialised; create its table first')

    with bracket_lock(key):
        with transaction(f'saving flexible bracket {key.slug}'):
            store.delete_positions(key)
            store.insert_positions(key, positions)
            header = Bracket.for_key(key)
            header.mode = MODE_FLEXIBLE
            header.slot_count = LAYOUT[1][1]

    assigned = sum(1 for pos in positions if pos.team_id)
    logger.info('Saved flexible bracket %s: %d of %d slots assigned', key.slug, assigned, len(positions))
