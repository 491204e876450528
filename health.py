from responses import get_method, json_response, preflight_response
from submission import format_received_at, utc_now
from submission_store import default_store


def handler(request, store=None):
    """Liveness endpoint for the Vercel Python runtime"""
    if store is None:
        store = default_store

    if get_method(request) == 'OPTIONS':
        return preflight_response()

    return json_response(200, {
        'status': 'success',
        'message': 'Artwork webhook is running',
        'method': get_method(request),
        'timestamp': format_received_at(utc_now()),
        'storedSubmissions': len(store)
    })
