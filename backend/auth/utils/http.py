"""HTTP response utilities."""
import os
import json
from typing import Optional


def get_cors_origin() -> str:
    """Get allowed CORS origin from env, fallback to '*'."""
    return os.environ.get('CORS_ORIGIN', '*')


def is_development() -> bool:
    """True when running with ENVIRONMENT=development."""
    return os.environ.get('ENVIRONMENT', 'production').lower() == 'development'


def get_header(event: dict, name: str) -> Optional[str]:
    """Case-insensitive request header lookup."""
    headers = event.get('headers') or {}
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def cors_headers() -> dict:
    """CORS headers carried by every response, preflight included."""
    return {
        'Access-Control-Allow-Origin': get_cors_origin(),
        'Access-Control-Allow-Methods': 'POST, OPTIONS',
        'Access-Control-Allow-Headers': 'Content-Type, Authorization',
        'Access-Control-Max-Age': '86400',
    }


def make_headers() -> dict:
    """Create JSON response headers with CORS."""
    headers = cors_headers()
    headers['Content-Type'] = 'application/json'
    return headers


def response(status_code: int, body: dict) -> dict:
    """Create HTTP response."""
    return {
        'statusCode': status_code,
        'headers': make_headers(),
        'body': json.dumps(body),
        'isBase64Encoded': False
    }


def options_response() -> dict:
    """Create OPTIONS preflight response."""
    return {
        'statusCode': 204,
        'headers': cors_headers(),
        'body': '',
        'isBase64Encoded': False
    }


def error(status_code: int, message: str, **extra) -> dict:
    """Create error response in the {success, message} envelope."""
    body = {'success': False, 'message': message}
    body.update(extra)
    return response(status_code, body)
