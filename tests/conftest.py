import json

import pytest
from requests.cookies import RequestsCookieJar
from requests.structures import CaseInsensitiveDict

from get_cookies import CookieStore

DOMAIN = "challenge.sunvoy.com"


class FakeResponse:
    def __init__(self, status_code=200, text="", headers=None, cookies=None):
        self.status_code = status_code
        self.text = text
        self.headers = CaseInsensitiveDict(headers or {})
        self.cookies = cookies if cookies is not None else RequestsCookieJar()

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return json.loads(self.text)


@pytest.fixture
def cookie_path(tmp_path):
    return tmp_path / "cookies.json"


@pytest.fixture
def store(cookie_path):
    return CookieStore(str(cookie_path))


def session_jar(value="xyz"):
    jar = RequestsCookieJar()
    jar.set("_sunvoy_session", value, domain=DOMAIN, path="/")
    return jar
