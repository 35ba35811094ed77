"""``POST /sweep``: run one acceptance-deadline pass for external schedulers."""

from __future__ import annotations

from flask import Blueprint, jsonify

from atelier.app.context import get_container

sweep_bp = Blueprint("sweep", __name__)


@sweep_bp.route("/sweep", methods=["POST"])
def run_sweep():
    result = get_container().sweeper.run_sweep()
    return jsonify(result.to_dict())
