import json
from datetime import datetime
from types import SimpleNamespace

import pytest
import pytz

NOW = datetime(2024, 1, 15, 10, 0, 0, tzinfo=pytz.utc)

MULTIPART_BOUNDARY = '----JotformBoundary7MA4YWxkTrZu0gW'


def make_request(method='GET', body=b'', headers=None, args=None):
    return SimpleNamespace(method=method, body=body, headers=headers or {}, args=args or {})


def multipart_body(fields, boundary=MULTIPART_BOUNDARY):
    lines = []
    for name, value in fields:
        lines.append('--' + boundary)
        lines.append('Content-Disposition: form-data; name="{}"'.format(name))
        lines.append('')
        lines.append(value)
    lines.append('--' + boundary + '--')
    lines.append('')
    return '\r\n'.join(lines).encode('utf-8'), 'multipart/form-data; boundary=' + boundary


def response_json(response):
    return json.loads(response['body'])


@pytest.fixture
def now():
    return NOW
