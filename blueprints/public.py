"""Public read-only routes for the catalog and bracket views."""

from flask import Blueprint, jsonify

from models import DIVISIONS, MODALITIES, GENDERS
from services import bracket_summary, load_flexible_bracket

public_bp = Blueprint("public", __name__, url_prefix="/public")


@public_bp.route("/divisions")
def divisions_listing():
    return jsonify(
        {
            "divisions": [dict(id=key, **meta) for key, meta in DIVISIONS.items()],
            "modalities": [dict(id=key, **meta) for key, meta in MODALITIES.items()],
            "genders": [dict(id=key, **meta) for key, meta in GENDERS.items()],
        }
    )


@public_bp.route("/brackets/<division>/<modality>/<gender>")
def bracket_detail(division: str, modality: str, gender: str):
    return jsonify(bracket_summary(division, modality, gender))


@public_bp.route("/flexible/<division>/<modality>/<gender>")
def flexible_detail(division: str, modality: str, gender: str):
    assignor = load_flexible_bracket(division, modality, gender)
    return jsonify({"positions": assignor.to_list()})
