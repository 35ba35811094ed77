"""Customer and producer views.

- ``GET /customers/<id>/orders``
- ``GET /producers/<id>/orders``
- ``GET /producers/<id>/orders/pending``: still accept/reject-able
- ``GET /producers/<id>/summary``
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from atelier.api.params import pagination
from atelier.api.serializers import serialize_order_page, serialize_summary
from atelier.app.context import get_container

party_bp = Blueprint("parties", __name__)


@party_bp.route("/customers/<customer_id>/orders", methods=["GET"])
def customer_orders(customer_id: str):
    cursor, limit = pagination()
    orders, next_cursor = get_container().lifecycle.list_customer_orders(
        customer_id,
        cursor,
        limit,
    )
    return jsonify(serialize_order_page(orders, next_cursor))


@party_bp.route("/producers/<producer_id>/orders", methods=["GET"])
def producer_orders(producer_id: str):
    cursor, limit = pagination()
    orders, next_cursor = get_container().lifecycle.list_producer_orders(
        producer_id,
        cursor,
        limit,
    )
    return jsonify(serialize_order_page(orders, next_cursor))


@party_bp.route("/producers/<producer_id>/orders/pending", methods=["GET"])
def producer_pending(producer_id: str):
    cursor, limit = pagination()
    orders, next_cursor = get_container().lifecycle.list_pending_acceptance(
        producer_id,
        cursor,
        limit,
    )
    return jsonify(serialize_order_page(orders, next_cursor))


@party_bp.route("/producers/<producer_id>/summary", methods=["GET"])
def producer_summary(producer_id: str):
    summary = get_container().lifecycle.producer_summary(producer_id)
    return jsonify(serialize_summary(summary))
