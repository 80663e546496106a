"""
Trigger Authentication Utilities for AxixFinance
Shared-secret guard for scheduler and monitoring endpoints
"""

import hmac
from functools import wraps
from flask import current_app, jsonify, request


def _presented_secret():
    """Secret from X-Cron-Secret, or from an 'Authorization: Bearer' header"""
    secret = request.headers.get('X-Cron-Secret')
    if secret:
        return secret

    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header[len('Bearer '):].strip()
    return None


def cron_secret_required(f):
    """Decorator requiring the configured CRON_SECRET (open when unset)"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get('CRON_SECRET')
        if not expected:
            return f(*args, **kwargs)

        presented = _presented_secret()
        if not presented or not hmac.compare_digest(presented, expected):
            return jsonify({'success': False, 'message': 'Invalid or missing cron secret'}), 401

        return f(*args, **kwargs)

    return decorated_function
