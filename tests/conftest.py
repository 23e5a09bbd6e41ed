import pytest

from app import create_app
from models import db, Team


class IdentityShuffle:
    """Random source that leaves the draw in the order it was given."""

    def shuffle(self, items):
        return None


@pytest.fixture
def flask_app(tmp_path):
    """Create test application with in-memory SQLite database"""
    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'SECRET_KEY': 'test-secret-key',
            'BRACKET_LOCK_DIR': str(tmp_path / 'locks'),
            'BRACKET_AUTO_ADVANCE_BYES': False,
        }
    )

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(flask_app):
    """Test client"""
    return flask_app.test_client()


@pytest.fixture
def identity_rng():
    return IdentityShuffle()


@pytest.fixture
def make_teams(flask_app):
    """Factory registering teams named after the given letters in one division."""

    def _make(names, division_id='primeira'):
        teams = []
        for name in names:
            team = Team(id=f'team-{name.lower()}', name=name, division_id=division_id)
            db.session.add(team)
            teams.append(team)
        db.session.commit()
        return teams

    return _make


@pytest.fixture
def four_teams(make_teams):
    return make_teams(['A', 'B', 'C', 'D'])


@pytest.fixture
def key_args():
    return ('primeira', 'futebol', 'masculino')
