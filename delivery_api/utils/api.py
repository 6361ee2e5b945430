# --- delivery_api/utils/api.py ---
from flask import jsonify

from .dates import utcnow

def _envelope(status: bool, message, data=None):
    return {
        "status": status,
        "message": message,
        "data": {
            **(data or {}),
            "server_time": utcnow().strftime("%Y-%m-%d %H:%M:%S"),
        },
    }

def api_ok(message, data=None):
    return _envelope(True, message, data)

def api_error(message, data=None):
    return _envelope(False, message, data)

# unified response helpers
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r

def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r
