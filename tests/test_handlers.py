"""
Webhook, submission status and health handlers
"""
from urllib.parse import parse_qs, urlencode, urlsplit

import config
import health
import submission_status
import webhook
from conftest import make_request, multipart_body, response_json
from submission_store import SubmissionStore

JSON_HEADERS = {'Content-Type': 'application/json'}


def post_webhook(store, body, headers=None):
    return webhook.handler(make_request('POST', body, headers or JSON_HEADERS), store=store)


def token_from_location(location):
    return parse_qs(urlsplit(location).query)['artwork_token'][0]


class TestWebhookHandler:

    def setup_method(self):
        self.store = SubmissionStore()

    def test_json_submission_redirects_with_token(self):
        response = post_webhook(self.store, b'{"returnUrl":"https://shop.example/product?id=9"}')

        assert response['statusCode'] == 302
        location = response['headers']['Location']
        assert location.startswith('https://shop.example/product?id=9&artwork_token=')
        assert self.store.get(token_from_location(location)) is not None

    def test_urlencoded_submission(self):
        body = b'rawRequest=%7B%22returnUrl%22%3A%22https%3A%2F%2Fa.test%22%7D'

        response = post_webhook(self.store, body, {'content-type': 'application/x-www-form-urlencoded'})

        assert response['statusCode'] == 302
        assert response['headers']['Location'].startswith('https://a.test?artwork_token=')

    def test_multipart_submission(self):
        body, content_type = multipart_body([
            ('formID', 'F1'),
            ('submissionID', 'S1'),
            ('rawRequest', '{"q3_uploadFront": "front.png", "q5_returnUrl": "https://a.test/p"}'),
        ])

        response = post_webhook(self.store, body, {'Content-Type': content_type})

        assert response['statusCode'] == 302
        stored = self.store.get(token_from_location(response['headers']['Location']))
        assert stored.submission_id == 'S1'
        assert stored.front_file_url == 'https://www.jotform.com/uploads/WECANDOIT_admin/F1/S1/front.png'

    def test_html_redirect_mode(self, monkeypatch):
        monkeypatch.setattr(config, 'REDIRECT_MODE', 'html')

        response = post_webhook(self.store, b'{"returnUrl":"https://a.test/p"}')

        assert response['statusCode'] == 200
        assert response['headers']['Content-Type'].startswith('text/html')
        assert 'https://a.test/p?artwork_token=' in response['body']

    def test_unparseable_body_is_bad_request(self):
        response = post_webhook(self.store, b'this is not a payload')

        assert response['statusCode'] == 400
        assert response_json(response) == {'error': 'unparseable body'}
        assert len(self.store) == 0

    def test_missing_return_url_is_bad_request(self):
        response = post_webhook(self.store, b'{"formID": "253427435509157"}')

        assert response['statusCode'] == 400
        assert response_json(response) == {'error': 'missing returnUrl'}

    def test_unexpected_error_is_generic_500(self, monkeypatch):
        def explode(body, content_type):
            raise RuntimeError('secret internals')
        monkeypatch.setattr(webhook, 'decode', explode)

        response = post_webhook(self.store, b'{"returnUrl":"https://a.test"}')

        assert response['statusCode'] == 500
        assert response_json(response) == {'error': 'Internal server error'}
        assert 'secret internals' not in response['body']

    def test_redirect_construction_failure_is_internal_error(self, monkeypatch):
        def broken(return_url, token):
            raise ValueError('Invalid IPv6 URL')
        monkeypatch.setattr(webhook, 'build_redirect_url', broken)

        response = post_webhook(self.store, b'{"returnUrl":"https://a.test"}')

        assert response['statusCode'] == 500
        assert response_json(response) == {'error': 'Could not build redirect URL'}

    def test_development_adds_detail(self, monkeypatch):
        def explode(body, content_type):
            raise RuntimeError('secret internals')
        monkeypatch.setattr(webhook, 'decode', explode)
        monkeypatch.setattr(config, 'APP_ENV', 'development')

        response = post_webhook(self.store, b'{"returnUrl":"https://a.test"}')

        assert response_json(response)['detail'] == 'RuntimeError: secret internals'

    def test_preflight(self):
        response = webhook.handler(make_request('OPTIONS'), store=self.store)

        assert response['statusCode'] == 200
        assert response['body'] == ''
        assert response['headers']['Access-Control-Allow-Origin'] == '*'
        assert 'POST' in response['headers']['Access-Control-Allow-Methods']

    def test_get_not_allowed(self):
        response = webhook.handler(make_request('GET'), store=self.store)

        assert response['statusCode'] == 405


class TestSubmissionStatusHandler:

    def setup_method(self):
        self.store = SubmissionStore()

    def poll(self, args=None, method='GET'):
        return submission_status.handler(make_request(method, args=args), store=self.store)

    def test_round_trip_from_webhook(self):
        response = post_webhook(self.store, b'{"returnUrl":"https://shop.example/product?id=9"}')
        token = token_from_location(response['headers']['Location'])

        poll = self.poll({'token': token})

        assert poll['statusCode'] == 200
        data = response_json(poll)
        assert set(data) == {'submissionId', 'formId', 'frontFileUrl', 'backFileUrl', 'receivedAt'}
        assert data['frontFileUrl'] == ''
        assert data['backFileUrl'] == ''
        assert data['receivedAt'].endswith('Z')
        assert 'shop.example' not in poll['body']

    def test_token_from_query_string_path(self):
        token = post_webhook(self.store, b'{"returnUrl":"https://a.test"}')['headers']['Location'].split('=')[-1]
        request = make_request('GET')
        request.args = {}
        request.path = '/api/submission_status?' + urlencode({'token': token})

        response = submission_status.handler(request, store=self.store)

        assert response['statusCode'] == 200

    def test_missing_token(self):
        response = self.poll()

        assert response['statusCode'] == 400
        assert response_json(response) == {'error': 'Missing token parameter'}

    def test_unknown_token(self):
        response = self.poll({'token': 'f' * 32})

        assert response['statusCode'] == 404
        assert response_json(response) == {'error': 'Unknown or expired token'}

    def test_post_not_allowed(self):
        assert self.poll(method='POST')['statusCode'] == 405

    def test_preflight(self):
        response = self.poll(method='OPTIONS')

        assert response['statusCode'] == 200
        assert response['headers']['Access-Control-Allow-Methods'] == 'GET, OPTIONS'


class TestHealthHandler:

    def test_reports_store_size(self):
        store = SubmissionStore()
        post_webhook(store, b'{"returnUrl":"https://a.test"}')

        response = health.handler(make_request('GET'), store=store)

        assert response['statusCode'] == 200
        data = response_json(response)
        assert data['status'] == 'success'
        assert data['storedSubmissions'] == 1
