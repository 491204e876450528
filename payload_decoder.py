"""
Decoder for Jotform webhook payloads.

Jotform posts the same submission in several shapes depending on the form
settings and the integration that forwards it: a plain JSON body, a
form-urlencoded body with the answers as JSON in ``rawRequest``, a
multipart body with the same ``rawRequest`` part, or something else with a
JSON object buried inside it. ``decode`` tries those shapes in a fixed order
and normalizes the first object it finds into a ``Submission``.
"""
import json
import re
from bisect import bisect_left
from urllib.parse import parse_qsl, quote, unquote, unquote_plus, urlparse

import config
from errors import DecodeFailure
from submission import Submission

ANSWER_KEYS = ('name', 'type', 'text', 'answer')
SUBMISSION_ID_KEYS = ('submissionID', 'submissionId', 'submission_id')
FORM_ID_KEYS = ('formID', 'formId', 'form_id')
RETURN_URL_KEYS = ('returnurl', 'q_returnurl')

FLAT_FIELD_PATTERN = re.compile(r'^q\d+_(.+)$')
SUBMISSION_MARKER = re.compile(r'returnurl|submissionid|formid', re.IGNORECASE)
URL_PATTERN = re.compile(r'https?://[^\s"\']+')
SLUG_RETURN_URL = re.compile(r'returnUrl=([^&]+)', re.IGNORECASE)
PERCENT_ESCAPE = re.compile(r'%[0-9A-Fa-f]{2}')
BOUNDARY_PATTERN = re.compile(r'boundary=(?:"([^"]+)"|([^;\s]+))', re.IGNORECASE)
FIELD_NAME_PATTERN = re.compile(r'\bname="([^"]*)"', re.IGNORECASE)


def _body_text(body):
    if body is None:
        return ''
    if isinstance(body, bytes):
        return body.decode('utf-8', errors='replace')
    return body


def _json_object(text):
    """Parse text as JSON, keeping the result only if it is an object"""
    if not text:
        return None
    try:
        value = json.loads(text)
    except (TypeError, ValueError, RecursionError):
        return None
    return value if isinstance(value, dict) else None


def _merge_outer_fields(obj, fields, source_key='rawRequest'):
    # Jotform sends ids, returnUrl and q-fields next to rawRequest as well as inside it
    for key, value in fields.items():
        if key != source_key and key not in obj:
            obj[key] = value
    return obj


def _first_values(pairs):
    fields = {}
    for key, value in pairs:
        fields.setdefault(key, value)
    return fields


# ----------------------------------------------------------------------------
# Multipart
# ----------------------------------------------------------------------------

def extract_boundary(content_type):
    match = BOUNDARY_PATTERN.search(content_type or '')
    if not match:
        return None
    return match.group(1) or match.group(2)


def parse_multipart(body, content_type):
    """Split a multipart/form-data body into (field name, text value) pairs"""
    boundary = extract_boundary(content_type)
    if not boundary:
        return []

    if isinstance(body, str):
        body = body.encode('utf-8')
    if not body:
        return []

    fields = []
    for part in body.split(('--' + boundary).encode('utf-8'))[1:]:
        if part.startswith(b'--'):
            break
        part = part.lstrip(b'\r\n')

        header_end = part.find(b'\r\n\r\n')
        separator_length = 4
        if header_end == -1:
            header_end = part.find(b'\n\n')
            separator_length = 2
        if header_end == -1:
            continue

        headers = part[:header_end].decode('utf-8', errors='ignore')
        value = part[header_end + separator_length:]
        if value.endswith(b'\r\n'):
            value = value[:-2]
        elif value.endswith(b'\n'):
            value = value[:-1]

        disposition = None
        for line in headers.splitlines():
            if line.lower().startswith('content-disposition:'):
                disposition = line
                break
        if not disposition:
            continue
        name_match = FIELD_NAME_PATTERN.search(disposition)
        if not name_match:
            continue

        fields.append((name_match.group(1), value.decode('utf-8', errors='replace')))
    return fields


# ----------------------------------------------------------------------------
# Decoding strategies, in priority order
# ----------------------------------------------------------------------------

def from_json(body, content_type):
    return _json_object(_body_text(body).strip())


def from_urlencoded(body, content_type):
    fields = _first_values(parse_qsl(_body_text(body), keep_blank_values=True))
    if 'rawRequest' not in fields:
        return None
    obj = _json_object(fields['rawRequest'])
    if obj is None:
        return None
    return _merge_outer_fields(obj, fields)


def from_multipart(body, content_type):
    pairs = parse_multipart(body, content_type)
    if not pairs:
        return None
    fields = _first_values(pairs)

    source_key = 'rawRequest'
    obj = _json_object(fields.get(source_key))
    if obj is None:
        for name, value in pairs:
            obj = _json_object(value)
            if obj is not None:
                source_key = name
                break
    if obj is None:
        return None
    return _merge_outer_fields(obj, fields, source_key)


def _balanced_spans(text):
    """(start, end) of every brace-balanced {...} in one pass, ordered by opening brace"""
    spans = []
    open_braces = []
    in_string = False
    escaped = False
    for index, current in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif current == '\\':
                escaped = True
            elif current == '"':
                in_string = False
        elif current == '{':
            open_braces.append(index)
        elif current == '}':
            if open_braces:
                spans.append((open_braces.pop(), index + 1))
        elif current == '"' and open_braces:
            # quotes only matter inside an object
            in_string = True
    spans.sort()
    return spans


def _embedded_objects(text):
    """Yield brace-balanced substrings that contain a submission marker"""
    markers = [(match.start(), match.end()) for match in SUBMISSION_MARKER.finditer(text)]
    if not markers:
        return
    marker_starts = [start for start, _ in markers]
    for start, end in _balanced_spans(text):
        index = bisect_left(marker_starts, start)
        if index < len(markers) and markers[index][1] <= end:
            yield text[start:end]


def from_embedded_json(body, content_type):
    text = _body_text(body)
    if len(text) > config.SCRAPE_MAX_BYTES:
        print("Skipping embedded JSON scan of {} byte body".format(len(text)))
        return None

    candidate_texts = [text]
    decoded = unquote_plus(text)
    if decoded != text:
        candidate_texts.append(decoded)

    attempts = 0
    for candidate_text in candidate_texts:
        for candidate in _embedded_objects(candidate_text):
            obj = _json_object(candidate)
            if obj is not None:
                return obj
            attempts += 1
            if attempts >= config.SCRAPE_MAX_CANDIDATES:
                return None
    return None


STRATEGIES = (
    ('json', from_json),
    ('urlencoded', from_urlencoded),
    ('multipart', from_multipart),
    ('embedded', from_embedded_json),
)


def decode_object(body, content_type=''):
    """Return (strategy name, payload object) for the first strategy that yields an object"""
    for name, strategy in STRATEGIES:
        obj = strategy(body, content_type)
        if obj is not None:
            return name, obj
    raise DecodeFailure('unparseable body')


# ----------------------------------------------------------------------------
# Field extraction
# ----------------------------------------------------------------------------

class AnswerField:
    def __init__(self, key, name, field_type, text, answer):
        self.key = key
        self.name = name
        self.type = field_type
        self.text = text
        self.answer = answer


def _as_text(value):
    if value is None:
        return ''
    return value if isinstance(value, str) else str(value)


def answer_fields(obj):
    """Collect answer fields from a decoded payload object"""
    fields = []
    for key, value in obj.items():
        if key == 'answers' and isinstance(value, dict):
            fields.extend(answer_fields(value))
        elif isinstance(value, dict) and any(k in value for k in ANSWER_KEYS):
            fields.append(AnswerField(
                key,
                _as_text(value.get('name')) or _as_text(key),
                _as_text(value.get('type')),
                _as_text(value.get('text')),
                value.get('answer'),
            ))
        else:
            match = FLAT_FIELD_PATTERN.match(_as_text(key))
            if match:
                name = match.group(1)
                field_type = config.FILE_UPLOAD_TYPE if 'upload' in name.lower() else ''
                fields.append(AnswerField(key, name, field_type, '', value))
    return fields


def answer_string(answer):
    """Reduce an answer value to one string (first element of a list answer)"""
    if isinstance(answer, str):
        stripped = answer.strip()
        if stripped.startswith('['):
            try:
                parsed = json.loads(stripped)
            except ValueError:
                return stripped
            return answer_string(parsed)
        return stripped
    if isinstance(answer, list):
        if not answer:
            return ''
        first = answer[0]
        if isinstance(first, dict):
            return _as_text(first.get('url')).strip()
        return answer_string(first) if isinstance(first, str) else ''
    return ''


def decode_once(value):
    """Percent-decode a URL that arrived fully encoded, leaving normal URLs alone"""
    if PERCENT_ESCAPE.search(value) and '://' not in value:
        return unquote(value)
    return value


def is_absolute_url(value):
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


def is_file_host_url(value):
    """True for http(s) URLs on the file-hosting domain or one of its subdomains"""
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    hostname = parsed.hostname or ''
    domain = config.FILE_HOST_DOMAIN.lower()
    return parsed.scheme in ('http', 'https') and (
        hostname == domain or hostname.endswith('.' + domain))


def _first_id(obj, keys):
    for key in keys:
        value = obj.get(key)
        if value not in (None, ''):
            return _as_text(value)
    return ''


def _caller_url(value):
    """URL inside a value that mentions the caller's shop domain"""
    if not config.CALLER_DOMAIN:
        return ''
    decoded = decode_once(value)
    if config.CALLER_DOMAIN not in decoded:
        return ''
    url_match = URL_PATTERN.search(decoded)
    return url_match.group(0) if url_match else ''


def resolve_return_url(obj, fields):
    """Return (returnUrl or '', keys of answer fields that disagreed on it)"""
    candidates = []
    for field in fields:
        if field.type == config.FILE_UPLOAD_TYPE:
            continue
        answer = answer_string(field.answer)
        if not answer:
            continue
        if 'returnurl' in field.name.lower():
            candidates.append((field.key, answer))
        else:
            url = _caller_url(answer)
            if url:
                candidates.append((field.key, url))

    if candidates:
        distinct = []
        for _, url in candidates:
            if decode_once(url) not in distinct:
                distinct.append(decode_once(url))
        ambiguous = [key for key, _ in candidates] if len(distinct) > 1 else []
        return decode_once(candidates[0][1]), ambiguous

    for key, value in obj.items():
        if _as_text(key).lower() not in RETURN_URL_KEYS:
            continue
        if isinstance(value, str) and value.strip():
            return decode_once(value.strip()), []

    slug = obj.get('slug')
    if isinstance(slug, str):
        slug_match = SLUG_RETURN_URL.search(slug)
        if slug_match:
            return unquote(slug_match.group(1)), []

    for value in obj.values():
        if isinstance(value, str):
            url = _caller_url(value)
            if url:
                return url, []

    return '', []


def build_upload_url(form_id, submission_id, filename):
    if not (form_id and submission_id and filename):
        return ''
    return config.UPLOAD_URL_TEMPLATE.format(
        account=config.UPLOAD_ACCOUNT,
        form_id=form_id,
        submission_id=submission_id,
        filename=quote(filename, safe='%'),
    )


def resolve_file_urls(fields, form_id, submission_id):
    """Return (front file URL, back file URL); either may be empty"""
    front_url = ''
    back_url = ''
    for field in fields:
        if field.type != config.FILE_UPLOAD_TYPE:
            continue
        value = answer_string(field.answer)
        if not value:
            continue

        if is_absolute_url(value):
            if not is_file_host_url(value):
                continue
            file_url = value
        elif '://' in value:
            continue
        else:
            file_url = build_upload_url(form_id, submission_id, value.rsplit('/', 1)[-1])
        if not file_url:
            continue

        name = field.name.lower()
        if 'front' in name:
            front_url = front_url or file_url
        elif 'back' in name:
            back_url = back_url or file_url
    return front_url, back_url


def decode(body, content_type='', now=None):
    """Decode a webhook body into a Submission, raising DecodeFailure"""
    strategy, obj = decode_object(body, content_type)
    fields = answer_fields(obj)

    submission_id = _first_id(obj, SUBMISSION_ID_KEYS)
    form_id = _first_id(obj, FORM_ID_KEYS)

    return_url, ambiguous = resolve_return_url(obj, fields)
    if ambiguous:
        print("Ambiguous returnUrl candidates in fields {}; using {}".format(
            ', '.join(ambiguous), return_url[:200]))
    if not return_url or not is_absolute_url(return_url):
        raise DecodeFailure('missing returnUrl')

    front_url, back_url = resolve_file_urls(fields, form_id, submission_id)

    print("Decoded {} payload: submission {} form {} front={} back={}".format(
        strategy, submission_id or '-', form_id or '-', bool(front_url), bool(back_url)))

    return Submission(
        return_url,
        submission_id=submission_id,
        form_id=form_id,
        front_file_url=front_url,
        back_file_url=back_url,
        received_at=now,
        ambiguous_fields=ambiguous,
    )
