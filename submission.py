from datetime import datetime

import pytz


def utc_now():
    return datetime.now(pytz.utc)


def format_received_at(received_at):
    """Render a timestamp as ISO-8601 UTC, e.g. 2024-01-15T10:00:00Z"""
    if not received_at:
        return ''
    if received_at.tzinfo is None:
        received_at = pytz.utc.localize(received_at)
    return received_at.astimezone(pytz.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


class Submission:
    """Normalized record decoded from one form webhook call"""

    def __init__(self, return_url, submission_id='', form_id='', front_file_url='',
                 back_file_url='', received_at=None, ambiguous_fields=None):
        if not return_url:
            raise ValueError("Submission requires a returnUrl")
        self.return_url = return_url
        self.submission_id = submission_id or ''
        self.form_id = form_id or ''
        self.front_file_url = front_file_url or ''
        self.back_file_url = back_file_url or ''
        self.received_at = received_at or utc_now()
        self.ambiguous_fields = list(ambiguous_fields or [])

    def _key(self):
        return (
            self.return_url,
            self.submission_id,
            self.form_id,
            self.front_file_url,
            self.back_file_url,
            self.received_at,
        )

    def __eq__(self, other):
        if not isinstance(other, Submission):
            return NotImplemented
        return self._key() == other._key()

    def __repr__(self):
        return "Submission(submission_id={!r}, form_id={!r}, return_url={!r})".format(
            self.submission_id, self.form_id, self.return_url)

    def to_public_dict(self):
        """Fields exposed to the storefront poll; returnUrl stays private"""
        return {
            'submissionId': self.submission_id,
            'formId': self.form_id,
            'frontFileUrl': self.front_file_url,
            'backFileUrl': self.back_file_url,
            'receivedAt': format_received_at(self.received_at),
        }
