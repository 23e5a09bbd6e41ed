"""SQLAlchemy-backed stores the bracket services read from and write to.

Each store only stages changes on the shared session; a unit of work is
committed (or rolled back) through :func:`transaction`, so a delete followed
by an insert is never observable half-done.
"""

import logging
import uuid
from contextlib import contextmanager

from sqlalchemy import inspect, or_
from sqlalchemy.exc import SQLAlchemyError

from errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from models import db, Team, Match, BracketPosition, DIVISIONS

logger = logging.getLogger(__name__)

MATCH_FIELDS = {'team_a_id', 'team_b_id', 'winner_id', 'next_match_id'}


@contextmanager
def transaction(action: str):
    """Commit the session on success, roll back and raise PersistenceError on failure."""
    try:
        yield db.session
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error('Persistence failure while %s: %s', action, exc)
        raise PersistenceError(f'Could not complete {action}: storage unavailable') from exc
    except Exception:
        db.session.rollback()
        raise


def _key_filter(model, key):
    return model.query.filter_by(
        division_id=key.division_id,
        modality_id=key.modality_id,
        gender=key.gender,
    )


class TeamDirectory:
    def list_teams(self, division_id=None) -> list[Team]:
        query = Team.query
        if division_id:
            query = query.filter_by(division_id=division_id)
        return query.order_by(Team.name.asc()).all()

    def get_team(self, team_id: str) -> Team:
        team = db.session.get(Team, team_id)
        if not team:
            raise NotFoundError(f"Team '{team_id}' not found")
        return team

    def add_team(self, name: str, division_id: str, logo_url: str | None = None) -> Team:
        if not division_id:
            raise ValidationError('Team division is required')
        if division_id not in DIVISIONS:
            raise NotFoundError(f"Unknown division '{division_id}'")

        team = Team(
            id=str(uuid.uuid4()),
            name=name,
            division_id=division_id,
            logo_url=(logo_url or '').strip() or None,
        )
        with transaction('registering team'):
            db.session.add(team)
        return team

    def delete_team(self, team_id: str) -> None:
        team = self.get_team(team_id)
        in_bracket = Match.query.filter(
            or_(Match.team_a_id == team_id, Match.team_b_id == team_id, Match.winner_id == team_id)
        ).first()
        if in_bracket:
            raise ConflictError(f"Team '{team_id}' is drawn in bracket match '{in_bracket.id}'")
        with transaction('deleting team'):
            db.session.delete(team)


class MatchStore:
    def delete_matches(self, key) -> int:
        return _key_filter(Match, key).delete(synchronize_session='fetch')

    def insert_matches(self, matches) -> None:
        db.session.add_all(matches)
        db.session.flush()

    def query_matches(self, key) -> list[Match]:
        return _key_filter(Match, key).order_by(Match.round.asc(), Match.position.asc()).all()

    def get_match(self, match_id: str) -> Match:
        match = db.session.get(Match, match_id)
        if not match:
            raise NotFoundError(f"Match '{match_id}' not found")
        return match

    def update_match(self, match_id: str, **fields) -> Match:
        unknown = set(fields) - MATCH_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update match fields: {', '.join(sorted(unknown))}")

        match = self.get_match(match_id)
        for field, value in fields.items():
            setattr(match, field, value)
        db.session.flush()
        return match


class PositionStore:
    def is_available(self) -> bool:
        try:
            return inspect(db.engine).has_table(BracketPosition.__tablename__)
        except SQLAlchemyError as exc:
            logger.error('Could not inspect flexible bracket storage: %s', exc)
            return False

    def delete_positions(self, key) -> int:
        return _key_filter(BracketPosition, key).delete(synchronize_session='fetch')

    def insert_positions(self, key, positions) -> None:
        rows = [
            BracketPosition(
                slot_id=pos.id,
                division_id=key.division_id,
                modality_id=key.modality_id,
                gender=key.gender,
                round=pos.round,
                position=pos.position,
                team_id=pos.team_id,
                label=pos.label,
            )
            for pos in positions
        ]
        db.session.add_all(rows)
        db.session.flush()

    def query_positions(self, key) -> list[BracketPosition]:
        return (
            _key_filter(BracketPosition, key)
            .order_by(BracketPosition.round.asc(), BracketPosition.position.asc())
            .all()
        )
