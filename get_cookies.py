#!/usr/bin/env python3
"""
Cookie Session - Log in to Sunvoy and keep the session cookies on disk

Performs the two-step nonce login against the Sunvoy challenge site and stores
the resulting session cookies in a JSON file, so the user exporter can reuse
them on later runs instead of logging in every time.

Author: Jason Bisnette
License: MIT
"""
# Import argparse for command-line argument parsing
import argparse
# Import json for reading and writing the cookie file
import json
# Import logging for debug-level diagnostics
import logging
# Import URL parsing utilities
from urllib.parse import urlparse

# Import requests library for HTTP requests
import requests
from requests.cookies import RequestsCookieJar
# Import BeautifulSoup for HTML parsing
from bs4 import BeautifulSoup

log = logging.getLogger(__name__)

# Target site and the endpoints used for logging in
BASE_URL = "https://challenge.sunvoy.com"
LOGIN_URL = f"{BASE_URL}/login"

# Demo account shipped with the challenge
USERNAME = "demo@example.org"
PASSWORD = "test"

# Default location of the saved session
COOKIE_FILE = "cookies.json"

# Define User-Agent header to identify the scraper to web servers
HEADERS = {"User-Agent": "WebScraper/1.0 (+https://github.com/Yeddo)"}


class SessionLoadError(Exception):
    """The cookie file could not be read or parsed."""


class ProtocolError(Exception):
    """The login page did not look the way the login flow expects."""


class AuthenticationError(Exception):
    """The server did not accept the login."""


class CookieStore:
    """
    Cookie jar for a single site, backed by a JSON file.

    The file holds a list of cookie dictionaries in the same shape Playwright
    uses (name, value, domain, path, expires, secure, httpOnly), so cookies
    exported from a browser session can be dropped in as well.

    Args:
        path (str): File the cookies are loaded from and saved to
        base_url (str): URL of the site the cookies belong to
    """

    def __init__(self, path=COOKIE_FILE, base_url=BASE_URL):
        self.path = path
        # Only the host part matters for cookie matching
        self.domain = urlparse(base_url).hostname
        self.jar = RequestsCookieJar()

    def __len__(self):
        return len(self.jar)

    def load(self):
        """
        Replace the jar with the cookies saved in the cookie file.

        A missing or broken file is not an error: the store simply stays
        empty and the caller is expected to log in again.

        Returns:
            int: Number of cookies loaded
        """
        try:
            self.jar = self._read()
        except SessionLoadError as e:
            log.debug("No usable session in %s: %s", self.path, e)
            self.jar = RequestsCookieJar()
        return len(self.jar)

    def _read(self):
        # Read and parse the cookie file
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                entries = json.load(f)
        except (OSError, ValueError) as e:
            raise SessionLoadError(str(e)) from e

        if not isinstance(entries, list):
            raise SessionLoadError("cookie file does not contain a list")

        # Fill a new jar; the live one is only replaced once every entry parsed
        jar = RequestsCookieJar()
        for entry in entries:
            try:
                expires = entry.get("expires")
                # Playwright writes -1 for cookies that end with the browser session
                if expires is not None and expires < 0:
                    expires = None
                # Add the cookie with the attributes stored alongside it
                jar.set(
                    entry["name"],
                    entry["value"],
                    domain=entry.get("domain") or self.domain,
                    path=entry.get("path") or "/",
                    expires=int(expires) if expires is not None else None,
                    secure=bool(entry.get("secure", False)),
                    rest={"HttpOnly": None} if entry.get("httpOnly") else {},
                )
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise SessionLoadError(f"malformed cookie entry {entry!r}") from e
        return jar

    def save(self):
        """Write every cookie in the jar to the cookie file, replacing it."""
        entries = [
            {
                "name": c.name,
                "value": c.value,
                "domain": c.domain,
                "path": c.path,
                "expires": c.expires,
                "secure": bool(c.secure),
                "httpOnly": _is_http_only(c),
            }
            for c in self.jar
        ]
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(entries, f, indent=2)

    def _matches(self, cookie):
        d = (cookie.domain or "").lstrip(".")
        return self.domain == d or self.domain.endswith("." + d)

    def cookies(self):
        """
        Live cookies that would be sent to the target site.

        Returns:
            list: http.cookiejar.Cookie objects, expired ones left out
        """
        return [c for c in self.jar if self._matches(c) and not c.is_expired()]

    def is_valid(self):
        """
        Check whether the store holds a session cookie for the site.

        This does not ask the server; a stale cookie still counts until a
        request made with it fails.

        Returns:
            bool: True if any live cookie name contains "session"
        """
        return any("session" in c.name for c in self.cookies())

    def cookie_header(self):
        """Build the value of a Cookie request header for the target site."""
        return "; ".join(f"{c.name}={c.value}" for c in self.cookies())

    def merge(self, jar):
        """
        Add every cookie from another jar (e.g. ``response.cookies``).

        Args:
            jar (http.cookiejar.CookieJar): Cookies to copy into the store
        """
        for cookie in jar:
            if not cookie.domain:
                cookie.domain = self.domain
            self.jar.set_cookie(cookie)

    def to_playwright(self):
        """
        Convert the site's cookies to the dictionaries Playwright accepts.

        Returns:
            list: Cookie dicts for ``BrowserContext.add_cookies``
        """
        return [
            {
                "name": c.name,
                "value": c.value,
                "domain": c.domain,
                "path": c.path or "/",
                # -1 tells Playwright the cookie has no expiry
                "expires": float(c.expires) if c.expires is not None else -1,
                "secure": bool(c.secure),
                "httpOnly": _is_http_only(c),
            }
            for c in self.cookies()
        ]


def _is_http_only(cookie):
    # http.cookiejar keeps the attribute name as the server spelled it
    return cookie.has_nonstandard_attr("HttpOnly") or cookie.has_nonstandard_attr("httponly")


def get_nonce(html):
    """
    Pull the one-time login token out of the login page.

    Args:
        html (str): HTML of the login page

    Returns:
        str: The nonce value

    Raises:
        ProtocolError: If the page has no nonce input with a value
    """
    soup = BeautifulSoup(html, "html.parser")
    field = soup.find("input", attrs={"name": "nonce"})
    nonce = field.get("value") if field else None
    if not isinstance(nonce, str):
        raise ProtocolError("Could not find nonce value on the login page.")
    return nonce


def authenticate(store, username=USERNAME, password=PASSWORD, login_url=LOGIN_URL):
    """
    Log in and put the new session cookies into the store.

    Step 1 fetches the login page to read the nonce, step 2 posts it back
    together with the credentials. The store is only touched once the server
    has answered with a redirect that sets cookies.

    Args:
        store (CookieStore): Store that receives the session cookies
        username (str): Account name
        password (str): Account password
        login_url (str): Login form URL, used for both steps

    Raises:
        ProtocolError: If the login page carries no nonce
        AuthenticationError: If the login is rejected
    """
    # Fetch the login form to get the nonce
    r = requests.get(login_url, headers=HEADERS)
    nonce = get_nonce(r.text)

    # Submit the form ourselves; the redirect is the success signal
    r = requests.post(
        login_url,
        data={"nonce": nonce, "username": username, "password": password},
        headers=HEADERS,
        allow_redirects=False,
    )
    # Anything but a redirect that sets cookies means the login was rejected
    log.debug("Login responded with %s", r.status_code)
    if r.status_code != 302 or "Set-Cookie" not in r.headers:
        raise AuthenticationError(
            "Authentication failed. The server did not return a valid session."
        )

    # Keep every cookie the server handed out
    store.merge(r.cookies)


def main(argv=None):
    ap = argparse.ArgumentParser(description="Log in to Sunvoy and save the session cookies.")
    ap.add_argument('--output', '-o', default=COOKIE_FILE, help='Save cookies to this file')
    args = ap.parse_args(argv)

    store = CookieStore(args.output)
    print(f"Logging in to {LOGIN_URL} as {USERNAME}")
    authenticate(store)
    store.save()
    print(f"Saved {len(store)} cookies to {args.output}")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
