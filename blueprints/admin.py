"""Operator routes: team registration, bracket generation, results and flexible slots."""

from flask import Blueprint, current_app, jsonify, request

from errors import ValidationError
from services import (
    generate_bracket,
    record_winner,
    load_flexible_bracket,
    save_flexible_bracket,
)
from stores import TeamDirectory

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        payload = request.form.to_dict()
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    return payload


def _parse_slot_count(raw) -> int:
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    raise ValidationError('slot_count must be an integer')


@admin_bp.route('/teams', methods=['GET'])
def list_teams():
    division_id = request.args.get('division') or None
    teams = TeamDirectory().list_teams(division_id)
    return jsonify({'teams': [team.to_dict() for team in teams]})


@admin_bp.route('/teams', methods=['POST'])
def add_team():
    payload = _json_body()
    team = TeamDirectory().add_team(
        name=(payload.get('name') or '').strip(),
        division_id=(payload.get('division_id') or '').strip(),
        logo_url=payload.get('logo_url'),
    )
    current_app.logger.info('Registered team %s (%s) in %s', team.name, team.id, team.division_id)
    return jsonify({'team': team.to_dict()}), 201


@admin_bp.route('/teams/<team_id>', methods=['DELETE'])
def delete_team(team_id):
    TeamDirectory().delete_team(team_id)
    return jsonify({'deleted': team_id})


@admin_bp.route('/brackets/<division>/<modality>/<gender>', methods=['POST'])
def create_bracket(division, modality, gender):
    payload = _json_body()
    slot_count = _parse_slot_count(payload.get('slot_count'))

    matches = generate_bracket(division, modality, gender, slot_count)
    return jsonify({'matches': [match.to_dict() for match in matches]}), 201


@admin_bp.route('/matches/<match_id>/winner', methods=['POST'])
def set_winner(match_id):
    payload = _json_body()
    result = record_winner(match_id, (payload.get('winner_id') or '').strip())
    return jsonify(result.to_dict())


@admin_bp.route('/flexible/<division>/<modality>/<gender>', methods=['PUT'])
def save_flexible(division, modality, gender):
    payload = _json_body()
    assignments = payload.get('assignments') or {}
    if not isinstance(assignments, dict):
        raise ValidationError('assignments must map position ids to team ids')

    assignor = load_flexible_bracket(division, modality, gender)
    for position_id, team_id in assignments.items():
        assignor.assign(position_id, team_id)

    save_flexible_bracket(division, modality, gender, assignor.positions)
    return jsonify({'positions': assignor.to_list()})
