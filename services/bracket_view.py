"""Read side of generated brackets."""

from models import Bracket, BracketKey, Match
from stores import MatchStore


def round_name(round_number: int, total_rounds: int) -> str:
    remaining = total_rounds - round_number
    if remaining == 0:
        return 'Final'
    if remaining == 1:
        return 'Semifinal'
    if remaining == 2:
        return 'Quarterfinal'
    return f'Round of {2 ** (remaining + 1)}'


def get_bracket(division_id, modality_id, gender) -> list[Match]:
    """All matches of the key, ordered by (round, position)."""
    key = BracketKey.resolve(division_id, modality_id, gender)
    return MatchStore().query_matches(key)


def bracket_rounds(matches: list[Match]) -> list[dict]:
    rounds: dict[int, list[Match]] = {}
    for match in matches:
        rounds.setdefault(match.round, []).append(match)

    total = max(rounds) if rounds else 0
    grouped = []
    for round_number in sorted(rounds):
        grouped.append(
            {
                'round': round_number,
                'name': round_name(round_number, total),
                'matches': [
                    dict(
                        match.to_dict(),
                        team_a_name=match.display_name('a'),
                        team_b_name=match.display_name('b'),
                    )
                    for match in sorted(rounds[round_number], key=lambda m: m.position)
                ],
            }
        )
    return grouped


def bracket_summary(division_id, modality_id, gender) -> dict:
    key = BracketKey.resolve(division_id, modality_id, gender)
    header = Bracket.query.filter_by(
        division_id=key.division_id,
        modality_id=key.modality_id,
        gender=key.gender,
    ).first()
    matches = MatchStore().query_matches(key)
    final = matches[-1] if matches else None
    return {
        'bracket': header.to_dict() if header else None,
        'rounds': bracket_rounds(matches),
        'champion_id': final.winner_id if final and final.is_final else None,
    }
