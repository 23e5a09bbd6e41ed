"""Single-elimination bracket generation."""

import logging
import math
import random

from flask import current_app

from errors import ValidationError
from models import Bracket, BracketKey, Match, MODE_GENERATED
from services.locking import bracket_lock
from stores import MatchStore, TeamDirectory, transaction

logger = logging.getLogger(__name__)

MIN_SLOT_COUNT = 2


def is_valid_slot_count(slot_count) -> bool:
    if isinstance(slot_count, bool) or not isinstance(slot_count, int):
        return False
    return slot_count >= MIN_SLOT_COUNT and slot_count & (slot_count - 1) == 0


def total_rounds(slot_count: int) -> int:
    return math.ceil(math.log2(slot_count))


def make_random_source() -> random.Random:
    """Random source for draws, seeded from BRACKET_RANDOM_SEED when configured."""
    return random.Random(current_app.config.get('BRACKET_RANDOM_SEED'))


def _validate_inputs(teams, slot_count: int) -> None:
    if not is_valid_slot_count(slot_count):
        raise ValidationError(
            f'Slot count must be a power of two of at least {MIN_SLOT_COUNT}, got {slot_count!r}'
        )
    if len(teams) < 2:
        raise ValidationError('At least 2 teams are needed to generate a bracket')


def next_slot_field(position: int) -> str:
    """Slot of the next-round match fed by a match at ``position``.

    Next-round position p is fed by positions 2p-1 and 2p; the odd (lower)
    feeder fills slot A and the even one fills slot B.
    """
    return 'team_a_id' if position % 2 == 1 else 'team_b_id'


def pair_first_round(team_ids: list, match_count: int) -> list[tuple]:
    """Pair team ids into ``match_count`` first-round (A, B) slots in position order.

    Teams are consumed two at a time; once the remaining teams no longer fill
    every remaining match, each match gets a single team in slot A (a bye).
    Empty matches only appear when there are fewer teams than matches.

    This differs on purpose from a strict two-per-match fill (which would
    give 5 teams in 8 slots the pairs (t0,t1),(t2,t3),(t4,-),(-,-)): here
    every bye match holds exactly one team. Without byes both orders agree.
    """
    byes = max(0, match_count * 2 - len(team_ids))
    full_matches = max(0, match_count - byes)
    pairs = []
    index = 0
    for position in range(match_count):
        if position < full_matches:
            pairs.append((team_ids[index], team_ids[index + 1]))
            index += 2
        elif index < len(team_ids):
            pairs.append((team_ids[index], None))
            index += 1
        else:
            pairs.append((None, None))
    return pairs


def generate_matches(teams, slot_count, division_id, modality_id, gender, rng, auto_advance_byes=False) -> list[Match]:
    """Build the full match tree for ``teams`` without touching storage.

    ``rng`` must provide ``shuffle``; it is the only source of randomness so
    a seeded or stubbed source gives reproducible draws. Teams beyond
    ``slot_count`` after shuffling are left out of the draw.
    """
    if not (division_id and modality_id and gender):
        raise ValidationError('Division, modality and gender are required')
    _validate_inputs(teams, slot_count)
    key = BracketKey(division_id, modality_id, gender)

    shuffled = list(teams)
    rng.shuffle(shuffled)
    if len(shuffled) > slot_count:
        logger.warning(
            'Bracket %s has %d slots for %d teams; %d teams left out of the draw',
            key.slug, slot_count, len(shuffled), len(shuffled) - slot_count,
        )
        shuffled = shuffled[:slot_count]

    rounds = total_rounds(slot_count)
    first_round = pair_first_round([team.id for team in shuffled], slot_count // 2)
    matches: list[Match] = []
    by_id: dict[str, Match] = {}

    for round_number in range(1, rounds + 1):
        matches_in_round = 2 ** (rounds - round_number)
        for position in range(1, matches_in_round + 1):
            next_match_id = None
            if round_number < rounds:
                next_match_id = Match.build_id(key, round_number + 1, math.ceil(position / 2))

            team_a_id = None
            team_b_id = None
            if round_number == 1:
                team_a_id, team_b_id = first_round[position - 1]

            match = Match(
                id=Match.build_id(key, round_number, position),
                division_id=division_id,
                modality_id=modality_id,
                gender=gender,
                round=round_number,
                position=position,
                team_a_id=team_a_id,
                team_b_id=team_b_id,
                winner_id=None,
                next_match_id=next_match_id,
            )
            matches.append(match)
            by_id[match.id] = match

    if auto_advance_byes:
        _auto_advance_byes(matches, by_id)

    return matches


def _auto_advance_byes(matches: list[Match], by_id: dict[str, Match]) -> None:
    for match in matches:
        if match.round != 1 or not match.is_bye:
            continue
        winner_id = match.participants[0]
        match.winner_id = winner_id
        next_match = by_id.get(match.next_match_id)
        if next_match is not None:
            setattr(next_match, next_slot_field(match.position), winner_id)


def generate_bracket(division_id, modality_id, gender, slot_count, rng=None) -> list[Match]:
    """Draw a new bracket for the key from its division's teams and replace any prior one.

    The old match set is removed and the new one inserted in a single
    transaction; on failure the prior set is left untouched.
    """
    key = BracketKey.resolve(division_id, modality_id, gender)
    if not is_valid_slot_count(slot_count):
        raise ValidationError(
            f'Slot count must be a power of two of at least {MIN_SLOT_COUNT}, got {slot_count!r}'
        )

    teams = TeamDirectory().list_teams(key.division_id)
    matches = generate_matches(
        teams,
        slot_count,
        key.division_id,
        key.modality_id,
        key.gender,
        rng or make_random_source(),
        auto_advance_byes=current_app.config.get('BRACKET_AUTO_ADVANCE_BYES', False),
    )

    store = MatchStore()
    with bracket_lock(key):
        with transaction(f'generating bracket {key.slug}'):
            removed = store.delete_matches(key)
            store.insert_matches(matches)
            header = Bracket.for_key(key)
            header.mode = MODE_GENERATED
            header.slot_count = slot_count

        drawn = min(len(teams), slot_count)
        logger.info(
            'Generated bracket %s: %d slots, %d teams, %d byes (replaced %d matches)',
            key.slug, slot_count, drawn, slot_count - drawn, removed,
        )
        return store.query_matches(key)
