class WebhookError(Exception):
    """Base error carrying the HTTP status and the message safe to show callers"""
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(WebhookError):
    status_code = 400
    default_message = 'Bad request'


class DecodeFailure(BadRequest):
    """Webhook body could not be turned into a Submission"""

    def __init__(self, reason):
        self.reason = reason
        super().__init__(reason)


class NotFound(WebhookError):
    status_code = 404
    default_message = 'Not found'


class UpstreamFetchFailure(WebhookError):
    status_code = 502
    default_message = 'Failed to fetch upstream resource'


class InternalError(WebhookError):
    status_code = 500
