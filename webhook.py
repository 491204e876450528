from errors import InternalError, WebhookError
from payload_decoder import decode
from redirect import build_redirect_url, redirect_response
from responses import (
    error_response,
    get_body,
    get_header,
    get_method,
    internal_error_response,
    method_not_allowed,
    preflight_response,
)
from submission_store import default_store, start_default_sweeper


def receive_submission(body, content_type, store, redirect_mode=None):
    """Decode a Jotform webhook body, store it and build the redirect back"""
    submission = decode(body, content_type)
    token = store.put(submission)
    try:
        redirect_url = build_redirect_url(submission.return_url, token)
    except ValueError as error:
        raise InternalError("Could not build redirect URL") from error
    print("Stored submission {} as token {}; redirecting to {}".format(
        submission.submission_id or '-', token, redirect_url[:200]))
    return redirect_response(redirect_url, redirect_mode)


# Vercel handler function
def handler(request, store=None):
    """Jotform webhook receiver"""
    if store is None:
        store = default_store
    start_default_sweeper()

    method = get_method(request)
    if method == 'OPTIONS':
        return preflight_response('POST, OPTIONS')

    if method != 'POST':
        return method_not_allowed()

    body = get_body(request)
    content_type = get_header(request, 'Content-Type')
    print("Webhook received: {} bytes, content type {}".format(len(body), content_type or '-'))

    try:
        return receive_submission(body, content_type, store)
    except WebhookError as error:
        print("Webhook rejected: {}".format(error.message))
        return error_response(error)
    except Exception as error:
        print("Webhook handler error: {}".format(error))
        return internal_error_response(error)
