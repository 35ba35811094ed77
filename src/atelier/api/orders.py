"""Order endpoints.

- ``POST /orders``: place an order
- ``GET /orders/<id>``, ``GET /orders/by-number/<number>``
- ``POST /orders/<id>/transition``: versioned transition
- ``POST /orders/<id>/accept|reject|complete``: current-version shortcut
- ``GET /orders/<id>/progress``, ``PUT /orders/<id>/progress/<milestone>``
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from atelier.api.params import json_body
from atelier.api.serializers import serialize_order, serialize_progress
from atelier.app.context import get_container
from atelier.app.errors import InvalidInput
from atelier.services.progress import SUGGESTED_MILESTONES

order_bp = Blueprint("orders", __name__)


@order_bp.route("/orders", methods=["POST"])
def create_order():
    payload = json_body()
    order = get_container().lifecycle.create_order(
        payload.get("customer_id"),
        payload.get("producer_id"),
        payload.get("price"),
        payload.get("description", ""),
        payload.get("attributes"),
        product_name=payload.get("product_name", ""),
        payment_reference=payload.get("payment_reference"),
    )
    response = jsonify(serialize_order(order))
    response.status_code = 201
    response.headers["Location"] = f"/orders/{order.id}"
    return response


@order_bp.route("/orders/<int:order_id>", methods=["GET"])
def get_order(order_id: int):
    return jsonify(serialize_order(get_container().lifecycle.get_order(order_id)))


@order_bp.route("/orders/by-number/<order_number>", methods=["GET"])
def get_order_by_number(order_number: str):
    order = get_container().lifecycle.get_order_by_number(order_number)
    return jsonify(serialize_order(order))


@order_bp.route("/orders/<int:order_id>/transition", methods=["POST"])
def transition(order_id: int):
    """Apply ``action`` against the caller's ``version``; stale versions get 409."""
    payload = json_body()
    action = payload.get("action")
    version = payload.get("version")
    if not isinstance(action, str) or not action:
        msg = "'action' is required"
        raise InvalidInput(msg)
    if not isinstance(version, int) or isinstance(version, bool):
        msg = "'version' must be an integer"
        raise InvalidInput(msg)
    order = get_container().lifecycle.transition(order_id, version, action.lower())
    return jsonify(serialize_order(order))


@order_bp.route("/orders/<int:order_id>/accept", methods=["POST"])
def accept(order_id: int):
    return jsonify(serialize_order(get_container().lifecycle.accept(order_id)))


@order_bp.route("/orders/<int:order_id>/reject", methods=["POST"])
def reject(order_id: int):
    return jsonify(serialize_order(get_container().lifecycle.reject(order_id)))


@order_bp.route("/orders/<int:order_id>/complete", methods=["POST"])
def complete(order_id: int):
    return jsonify(serialize_order(get_container().lifecycle.complete(order_id)))


@order_bp.route("/orders/<int:order_id>/progress", methods=["GET"])
def get_progress(order_id: int):
    state = get_container().progress.get_progress(order_id)
    return jsonify(serialize_progress(state, SUGGESTED_MILESTONES))


@order_bp.route("/orders/<int:order_id>/progress/<milestone>", methods=["PUT"])
def set_milestone(order_id: int, milestone: str):
    payload = json_body()
    if "completed" not in payload:
        msg = "'completed' is required"
        raise InvalidInput(msg)
    state = get_container().progress.set_milestone(order_id, milestone, payload["completed"])
    return jsonify(serialize_progress(state))
