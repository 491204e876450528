from errors import BadRequest, NotFound, WebhookError
from responses import (
    error_response,
    get_method,
    get_query_param,
    internal_error_response,
    json_response,
    method_not_allowed,
    preflight_response,
)
from submission_store import default_store, start_default_sweeper


def lookup_submission(token, store):
    if not token:
        raise BadRequest("Missing token parameter")
    submission = store.get(token)
    if submission is None:
        raise NotFound("Unknown or expired token")
    return submission.to_public_dict()


# Vercel handler function
def handler(request, store=None):
    """Storefront poll for a stored submission by artwork token"""
    if store is None:
        store = default_store
    start_default_sweeper()

    method = get_method(request)
    if method == 'OPTIONS':
        return preflight_response('GET, OPTIONS')

    if method != 'GET':
        return method_not_allowed()

    try:
        return json_response(200, lookup_submission(get_query_param(request, 'token'), store))
    except NotFound as error:
        return error_response(error)
    except WebhookError as error:
        print("Submission lookup rejected: {}".format(error.message))
        return error_response(error)
    except Exception as error:
        print("Submission lookup error: {}".format(error))
        return internal_error_response(error)
