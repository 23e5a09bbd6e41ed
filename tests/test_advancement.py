"""Winner recording and propagation into the next round."""

import pytest
from filelock import FileLock
from sqlalchemy.exc import SQLAlchemyError

from errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from models import db, BracketKey, Match
from services.advancement import record_winner
from services.generator import generate_bracket
from services.locking import _lock_path
from stores import MatchStore

PREFIX = 'primeira-futebol-masculino'
R1P1 = f'{PREFIX}-r1-p1'
R1P2 = f'{PREFIX}-r1-p2'
FINAL = f'{PREFIX}-r2-p1'


def _snapshot():
    db.session.expire_all()
    return [m.to_dict() for m in Match.query.order_by(Match.round, Match.position).all()]


@pytest.fixture
def four_team_bracket(flask_app, four_teams, key_args, identity_rng):
    return generate_bracket(*key_args, 4, rng=identity_rng)


class TestRecordWinner:
    def test_winner_fills_slot_a_from_odd_feeder(self, four_team_bracket):
        result = record_winner(R1P1, 'team-a')

        assert result.match.winner_id == 'team-a'
        assert result.next_match.id == FINAL
        assert result.next_match.team_a_id == 'team-a'
        assert result.next_match.team_b_id is None

    def test_even_feeder_fills_slot_b_without_disturbing_a(self, four_team_bracket):
        record_winner(R1P1, 'team-a')
        result = record_winner(R1P2, 'team-d')

        final = result.next_match
        assert (final.team_a_id, final.team_b_id) == ('team-a', 'team-d')

    def test_order_of_results_does_not_matter(self, four_team_bracket):
        record_winner(R1P2, 'team-c')
        record_winner(R1P1, 'team-b')

        final = MatchStore().get_match(FINAL)
        assert (final.team_a_id, final.team_b_id) == ('team-b', 'team-c')

    def test_final_resolves_tournament(self, four_team_bracket):
        record_winner(R1P1, 'team-a')
        record_winner(R1P2, 'team-d')
        result = record_winner(FINAL, 'team-a')

        assert result.match.winner_id == 'team-a'
        assert result.next_match is None
        assert result.match.is_final

    def test_same_winner_twice_is_a_no_op(self, four_team_bracket):
        first = record_winner(R1P1, 'team-a')
        state_after_first = _snapshot()

        second = record_winner(R1P1, 'team-a')

        assert first.changed is True
        assert second.changed is False
        assert _snapshot() == state_after_first

    def test_non_participant_is_rejected_without_changes(self, four_team_bracket):
        before = _snapshot()
        with pytest.raises(ConflictError):
            record_winner(R1P1, 'team-c')
        assert _snapshot() == before

    def test_winner_for_empty_final_is_rejected(self, four_team_bracket):
        with pytest.raises(ConflictError):
            record_winner(FINAL, 'team-a')

    def test_unknown_match(self, four_team_bracket):
        with pytest.raises(NotFoundError):
            record_winner(f'{PREFIX}-r9-p9', 'team-a')

    def test_missing_winner(self, four_team_bracket):
        with pytest.raises(ValidationError):
            record_winner(R1P1, '')

    def test_changing_winner_overwrites_next_slot(self, four_team_bracket):
        record_winner(R1P1, 'team-a')
        record_winner(R1P2, 'team-d')
        result = record_winner(R1P1, 'team-b')

        assert result.match.winner_id == 'team-b'
        assert (result.next_match.team_a_id, result.next_match.team_b_id) == ('team-b', 'team-d')

    def test_changing_winner_after_downstream_result_logs_warning(self, four_team_bracket, caplog):
        record_winner(R1P1, 'team-a')
        record_winner(R1P2, 'team-d')
        record_winner(FINAL, 'team-a')

        with caplog.at_level('WARNING', logger='services.advancement'):
            record_winner(R1P1, 'team-b')

        assert any('stale' in message for message in caplog.messages)
        final = MatchStore().get_match(FINAL)
        assert final.team_a_id == 'team-b'
        assert final.winner_id == 'team-a'


class TestByeAdvancement:
    def test_bye_stays_pending_until_recorded(self, flask_app, make_teams, key_args, identity_rng):
        make_teams(['A', 'B', 'C', 'D', 'E'])
        generate_bracket(*key_args, 8, rng=identity_rng)

        bye = MatchStore().get_match(f'{PREFIX}-r1-p4')
        assert bye.participants == ('team-e',)
        assert bye.winner_id is None

        result = record_winner(bye.id, 'team-e')
        assert result.next_match.id == f'{PREFIX}-r2-p2'
        assert result.next_match.team_b_id == 'team-e'

    def test_auto_advance_when_enabled(self, flask_app, make_teams, key_args, identity_rng):
        flask_app.config['BRACKET_AUTO_ADVANCE_BYES'] = True
        make_teams(['A', 'B', 'C'])
        generate_bracket(*key_args, 4, rng=identity_rng)

        bye = MatchStore().get_match(R1P2)
        final = MatchStore().get_match(FINAL)
        assert bye.winner_id == 'team-c'
        assert (final.team_a_id, final.team_b_id) == (None, 'team-c')


class TestAtomicity:
    def test_failed_next_match_write_rolls_back_winner(self, four_team_bracket, monkeypatch):
        before = _snapshot()
        original_update = MatchStore.update_match
        calls = []

        def flaky_update(self, match_id, **fields):
            calls.append(match_id)
            if len(calls) == 2:
                raise SQLAlchemyError('connection lost')
            return original_update(self, match_id, **fields)

        monkeypatch.setattr(MatchStore, 'update_match', flaky_update)

        with pytest.raises(PersistenceError):
            record_winner(R1P1, 'team-a')

        assert calls == [R1P1, FINAL]
        assert _snapshot() == before

    def test_busy_bracket_times_out(self, four_team_bracket, flask_app):
        flask_app.config['BRACKET_LOCK_TIMEOUT'] = 0.05
        key = BracketKey('primeira', 'futebol', 'masculino')

        with FileLock(_lock_path(key)):
            with pytest.raises(PersistenceError):
                record_winner(R1P1, 'team-a')

        assert MatchStore().get_match(R1P1).winner_id is None
