"""requests-style session that sends calls to a Flask app's test client.

Lets RealtimeDatabaseClient talk to the mock API in-process.
"""
from urllib.parse import urlsplit

import requests


class FlaskResponse:
    def __init__(self, response):
        self._response = response
        self.status_code = response.status_code
        self.headers = response.headers

    def json(self):
        return self._response.get_json()

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)


class FlaskSession:
    def __init__(self, app):
        self.client = app.test_client()
        self.calls = []

    def _send(self, method, url, params=None, json=None, timeout=None):
        path = urlsplit(url).path
        self.calls.append((method, path, params))
        response = self.client.open(path, method=method, query_string=params, json=json)
        result = FlaskResponse(response)
        result.raise_for_status()
        return result

    def get(self, url, **kwargs):
        return self._send("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._send("POST", url, **kwargs)
