"""Recording match winners and advancing them through the bracket."""

import logging
from dataclasses import dataclass
from typing import Optional

from errors import ConflictError, ValidationError
from models import db, Match
from services.generator import next_slot_field
from services.locking import bracket_lock
from stores import MatchStore, transaction

logger = logging.getLogger(__name__)


@dataclass
class AdvancementResult:
    match: Match
    next_match: Optional[Match] = None
    changed: bool = True

    def to_dict(self) -> dict:
        return {
            'match': self.match.to_dict(),
            'next_match': self.next_match.to_dict() if self.next_match else None,
            'changed': self.changed,
        }


def record_winner(match_id: str, winner_id: str) -> AdvancementResult:
    """Set the winner of ``match_id`` and place it in the feeding slot of the next match.

    Both rows are written in one transaction under the bracket's writer lock.
    Recording the same winner twice is a no-op. Choosing a different winner
    for a decided match overwrites the next match's slot as well.
    """
    if not winner_id:
        raise ValidationError('A winner must be provided')

    store = MatchStore()
    key = store.get_match(match_id).key

    with bracket_lock(key):
        # Re-read under the lock; another writer may have committed meanwhile.
        db.session.expire_all()
        match = store.get_match(match_id)

        if winner_id not in match.participants:
            raise ConflictError(f"Team '{winner_id}' is not playing in match '{match_id}'")

        if match.winner_id == winner_id:
            next_match = db.session.get(Match, match.next_match_id) if match.next_match_id else None
            return AdvancementResult(match=match, next_match=next_match, changed=False)

        previous_winner = match.winner_id
        with transaction(f'recording winner for {match_id}'):
            store.update_match(match_id, winner_id=winner_id)
            if match.next_match_id:
                slot = next_slot_field(match.position)
                next_match = store.get_match(match.next_match_id)
                displaced = getattr(next_match, slot)
                if previous_winner and displaced == previous_winner and next_match.winner_id == previous_winner:
                    logger.warning(
                        'Match %s winner changed from %s to %s; downstream result in %s is now stale',
                        match_id, previous_winner, winner_id, next_match.id,
                    )
                store.update_match(next_match.id, **{slot: winner_id})

        db.session.expire_all()
        match = store.get_match(match_id)
        next_match = store.get_match(match.next_match_id) if match.next_match_id else None
        if next_match is None:
            logger.info('Match %s decided: %s wins bracket %s', match_id, winner_id, key.slug)
        else:
            logger.info('Match %s decided: %s advances to %s', match_id, winner_id, next_match.id)
        return AdvancementResult(match=match, next_match=next_match)
