from datetime import datetime, timezone

from flask import jsonify


def utcnow():
    """Naive UTC timestamp, matching what the DateTime columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_datetime(datetime_obj):
    """ISO-8601 string for a datetime, or None."""
    if not datetime_obj:
        return None
    return datetime_obj.isoformat()


def _timestamp():
    return datetime.now(timezone.utc).isoformat()


def success_response(data=None, meta=None, status=200):
    body = {"success": True, "data": data, "timestamp": _timestamp()}
    if meta:
        body["meta"] = meta
    return jsonify(body), status


def error_response(message, status=400):
    return jsonify({"success": False, "error": message, "timestamp": _timestamp()}), status


def round_half_up_percent(numerator, denominator):
    """Integer percentage rounded half up, computed without float error."""
    if denominator <= 0:
        return 0
    return (numerator * 200 + denominator) // (2 * denominator)
