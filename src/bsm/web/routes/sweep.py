# Overview: public maintenance trigger for an external scheduler.

import logging

from flask import Blueprint, jsonify

from ..context import container

log = logging.getLogger("bsm.sweep")

sweep_bp = Blueprint("sweep", __name__, url_prefix="/api")


@sweep_bp.get("/cleanup-delivery-records")
def cleanup_delivery_records():
    """
    Delete expired delivery records and their hosted images.

    Per-record failures are reported inside a 200 response; only a failure of
    the sweep itself (e.g. the database is unreachable) returns 500.
    """
    try:
        report = container().deliveries.sweep_expired()
    except Exception as e:
        log.exception("delivery_sweep_failed")
        return jsonify({"status": "error", "message": str(e) or "Cleanup failed"}), 500
    return jsonify(report.as_dict())
