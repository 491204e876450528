import json
from urllib.parse import parse_qsl

import config

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET, POST, OPTIONS',
    'Access-Control-Allow-Headers': 'Content-Type'
}


def preflight_response(methods='GET, POST, OPTIONS'):
    return {
        'statusCode': 200,
        'headers': dict(CORS_HEADERS, **{'Access-Control-Allow-Methods': methods}),
        'body': ''
    }


def json_response(status_code, data):
    return {
        'statusCode': status_code,
        'headers': dict(CORS_HEADERS, **{'Content-Type': 'application/json'}),
        'body': json.dumps(data)
    }


def error_response(error):
    """Render a WebhookError with only its public message"""
    return json_response(error.status_code, {"error": error.message})


def internal_error_response(error):
    data = {"error": "Internal server error"}
    if config.is_development():
        data['detail'] = "{}: {}".format(type(error).__name__, error)
    return json_response(500, data)


def method_not_allowed():
    return json_response(405, {"error": "Method not allowed"})


# Request access. The runtime hands us objects of slightly different shapes,
# so every accessor tolerates missing attributes.

def get_method(request):
    return (getattr(request, 'method', '') or '').upper()


def get_header(request, name, default=''):
    headers = getattr(request, 'headers', None) or {}
    for key, value in headers.items():
        if key.lower() == name.lower():
            return value
    return default


def get_body(request):
    """Raw request body as bytes"""
    body = getattr(request, 'body', None)
    if body is None:
        return b''
    if isinstance(body, str):
        return body.encode('utf-8')
    return bytes(body)


def get_query_param(request, name):
    for attribute in ('args', 'query', 'query_params'):
        params = getattr(request, attribute, None)
        if params:
            value = params.get(name)
            if isinstance(value, list):
                value = value[0] if value else None
            if value:
                return value

    path = getattr(request, 'path', '') or getattr(request, 'url', '') or ''
    if '?' in path:
        for key, value in parse_qsl(path.split('?', 1)[1]):
            if key == name and value:
                return value
    return None
