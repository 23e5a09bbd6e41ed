from dataclasses import dataclass
from datetime import datetime

import pytz
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import validates

from errors import NotFoundError, ValidationError

db = SQLAlchemy()

TIMEZONE = pytz.timezone('America/Sao_Paulo')

DIVISIONS = {
    'primeira': {'name': '1ª DIVISÃO', 'emoji': '🔺'},
    'segunda': {'name': '2ª DIVISÃO', 'emoji': '🔷'},
    'terceira-roxa': {'name': '3ª ROXA', 'emoji': '🟣'},
    'terceira-laranja': {'name': '3ª LARANJA', 'emoji': '🟧'},
}

MODALITIES = {
    'basquete': {'name': 'Basquete', 'emoji': '🏀'},
    'futebol': {'name': 'Futebol', 'emoji': '⚽'},
    'volei': {'name': 'Vôlei', 'emoji': '🏐'},
    'handebol': {'name': 'Handebol', 'emoji': '🤾'},
    'futsal': {'name': 'Futsal', 'emoji': '⚽'},
    'atletismo': {'name': 'Atletismo', 'emoji': '🏃'},
}

GENDERS = {
    'masculino': {'name': 'Masculino'},
    'feminino': {'name': 'Feminino'},
}

MODE_GENERATED = 'generated'
MODE_FLEXIBLE = 'flexible'


def current_time():
    return datetime.now(TIMEZONE)


@dataclass(frozen=True)
class BracketKey:
    """Identity of one tournament instance: (division, modality, gender)."""

    division_id: str
    modality_id: str
    gender: str

    @property
    def slug(self) -> str:
        return f"{self.division_id}-{self.modality_id}-{self.gender}"

    @classmethod
    def resolve(cls, division_id, modality_id, gender) -> 'BracketKey':
        """Build a key from raw request values, checking them against the catalog."""
        values = {
            'division': (division_id or '').strip(),
            'modality': (modality_id or '').strip(),
            'gender': (gender or '').strip(),
        }
        missing = [field for field, value in values.items() if not value]
        if missing:
            raise ValidationError(f"Missing bracket key fields: {', '.join(missing)}")

        if values['division'] not in DIVISIONS:
            raise NotFoundError(f"Unknown division '{values['division']}'")
        if values['modality'] not in MODALITIES:
            raise NotFoundError(f"Unknown modality '{values['modality']}'")
        if values['gender'] not in GENDERS:
            raise NotFoundError(f"Unknown gender '{values['gender']}'")

        return cls(values['division'], values['modality'], values['gender'])


class Team(db.Model):
    __tablename__ = 'team'

    id = db.Column(db.String(36), primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    division_id = db.Column(db.String(40), nullable=False, index=True)
    logo_url = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=current_time)

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Team {self.id} {self.name}>"

    @validates('name')
    def validate_name(self, key, value):
        if not value or not value.strip():
            raise ValidationError('Team name is required')
        return value.strip()

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'division_id': self.division_id,
            'logo_url': self.logo_url,
        }


class Bracket(db.Model):
    """Header for one (division, modality, gender) tournament and its construction mode."""

    __tablename__ = 'bracket'

    id = db.Column(db.Integer, primary_key=True)
    division_id = db.Column(db.String(40), nullable=False)
    modality_id = db.Column(db.String(40), nullable=False)
    gender = db.Column(db.String(20), nullable=False)
    mode = db.Column(db.String(20), default=MODE_GENERATED)  # generated or flexible
    slot_count = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=current_time)
    updated_at = db.Column(db.DateTime, default=current_time, onupdate=current_time)

    __table_args__ = (
        db.UniqueConstraint('division_id', 'modality_id', 'gender', name='unique_bracket_key'),
    )

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Bracket {self.division_id}-{self.modality_id}-{self.gender} mode={self.mode}>"

    @property
    def key(self) -> BracketKey:
        return BracketKey(self.division_id, self.modality_id, self.gender)

    @classmethod
    def for_key(cls, key: BracketKey) -> 'Bracket':
        bracket = cls.query.filter_by(
            division_id=key.division_id,
            modality_id=key.modality_id,
            gender=key.gender,
        ).first()
        if not bracket:
            bracket = cls(
                division_id=key.division_id,
                modality_id=key.modality_id,
                gender=key.gender,
            )
            db.session.add(bracket)
        return bracket

    def to_dict(self) -> dict:
        return {
            'division_id': self.division_id,
            'modality_id': self.modality_id,
            'gender': self.gender,
            'mode': self.mode,
            'slot_count': self.slot_count,
        }


class Match(db.Model):
    __tablename__ = 'bracket_match'

    id = db.Column(db.String(160), primary_key=True)
    division_id = db.Column(db.String(40), nullable=False)
    modality_id = db.Column(db.String(40), nullable=False)
    gender = db.Column(db.String(20), nullable=False)
    round = db.Column(db.Integer, nullable=False)
    position = db.Column(db.Integer, nullable=False)
    team_a_id = db.Column(db.String(36), db.ForeignKey('team.id'))
    team_b_id = db.Column(db.String(36), db.ForeignKey('team.id'))
    winner_id = db.Column(db.String(36), db.ForeignKey('team.id'))
    # Not a foreign key: round 1 rows reference round 2 ids inserted in the same batch.
    next_match_id = db.Column(db.String(160))

    __table_args__ = (
        db.Index('ix_bracket_match_key', 'division_id', 'modality_id', 'gender'),
    )

    team_a = db.relationship('Team', foreign_keys=[team_a_id], lazy=True)
    team_b = db.relationship('Team', foreign_keys=[team_b_id], lazy=True)
    winner = db.relationship('Team', foreign_keys=[winner_id], lazy=True)

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<Match {self.id} winner={self.winner_id}>"

    @staticmethod
    def build_id(key: BracketKey, round_number: int, position: int) -> str:
        return f"{key.slug}-r{round_number}-p{position}"

    @property
    def key(self) -> BracketKey:
        return BracketKey(self.division_id, self.modality_id, self.gender)

    @property
    def participants(self) -> tuple:
        return tuple(team_id for team_id in (self.team_a_id, self.team_b_id) if team_id)

    @property
    def is_bye(self) -> bool:
        return self.round == 1 and len(self.participants) == 1

    @property
    def is_decided(self) -> bool:
        return self.winner_id is not None

    @property
    def is_final(self) -> bool:
        return self.next_match_id is None

    def display_name(self, slot: str) -> str:
        team = self.team_a if slot == 'a' else self.team_b
        return team.name if team else 'TBD'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'division_id': self.division_id,
            'modality_id': self.modality_id,
            'gender': self.gender,
            'round': self.round,
            'position': self.position,
            'team_a_id': self.team_a_id,
            'team_b_id': self.team_b_id,
            'winner_id': self.winner_id,
            'next_match_id': self.next_match_id,
        }


class BracketPosition(db.Model):
    """A hand-assigned slot of the fixed flexible topology."""

    __tablename__ = 'flexible_bracket'

    id = db.Column(db.Integer, primary_key=True)
    slot_id = db.Column(db.String(20), nullable=False)
    division_id = db.Column(db.String(40), nullable=False)
    modality_id = db.Column(db.String(40), nullable=False)
    gender = db.Column(db.String(20), nullable=False)
    round = db.Column(db.Integer, nullable=False)
    position = db.Column(db.Integer, nullable=False)
    team_id = db.Column(db.String(36))
    label = db.Column(db.String(10), default='')

    __table_args__ = (
        db.UniqueConstraint('division_id', 'modality_id', 'gender', 'slot_id', name='unique_flexible_slot'),
    )

    def __repr__(self):  # pragma: no cover - debug helper
        return f"<BracketPosition {self.slot_id} team={self.team_id}>"

    def to_dict(self) -> dict:
        return {
            'id': self.slot_id,
            'round': self.round,
            'position': self.position,
            'team_id': self.team_id,
            'label': self.label,
        }
