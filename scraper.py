#!/usr/bin/env python3
"""
User Exporter - Export the Sunvoy user list to JSON

Logs in to the Sunvoy challenge site (or reuses a saved session), pulls the
user list from its internal API, scrapes the current user from the
JavaScript-rendered settings page via Playwright, and writes everything to a
single JSON file.

Author: Jason Bisnette
License: MIT
"""
# Import argparse for command-line argument parsing
import argparse
# Import json for writing the output file
import json
# Import logging for debug-level diagnostics
import logging
# Import os for file path handling
import os
# Import sys for stderr and exit codes
import sys

# Import requests library for HTTP requests
import requests
# Import BeautifulSoup for HTML parsing
from bs4 import BeautifulSoup
# Import Playwright's synchronous API for JavaScript rendering
from playwright.sync_api import sync_playwright

from get_cookies import BASE_URL, COOKIE_FILE, HEADERS, CookieStore, authenticate

log = logging.getLogger(__name__)

USERS_API_URL = f"{BASE_URL}/api/users"
SETTINGS_URL = f"{BASE_URL}/settings"

# Rendered once the settings page has finished its client-side work
FORM_SELECTOR = "form.space-y-4 input"

OUTPUT_FILE = os.path.join(os.getcwd(), "users.json")


class FetchError(Exception):
    """The users API answered with an error status."""

    def __init__(self, status_code):
        super().__init__(f"Users API fetch failed with status {status_code}.")
        self.status_code = status_code


def fetch_users(store, url=USERS_API_URL):
    """
    Fetch the user list from the internal API.

    Args:
        store (CookieStore): Store holding an authenticated session
        url (str): Users endpoint

    Returns:
        list: User dictionaries exactly as the API returned them

    Raises:
        FetchError: If the API does not answer with a 2xx status
    """
    headers = dict(HEADERS, Cookie=store.cookie_header())
    # The endpoint only answers POST, with an empty body
    r = requests.post(url, headers=headers)
    if not r.ok:
        raise FetchError(r.status_code)
    return r.json()


def extract_current_user(html):
    """
    Read the current user out of the rendered settings form.

    The form inputs have no stable names, so the fields are taken by
    position: id, first name, last name, email.

    Args:
        html (str): Rendered HTML of the settings page

    Returns:
        dict: User record; a missing input gives an empty string
    """
    soup = BeautifulSoup(html, "html.parser")
    inputs = soup.select("form input")
    values = [i.get("value") or "" for i in inputs[:4]]
    values += [""] * (4 - len(values))
    return dict(zip(("id", "firstName", "lastName", "email"), values))


def render_settings(store, url=SETTINGS_URL, headless=True):
    """
    Load the settings page in Chromium with the session cookies set.

    Args:
        store (CookieStore): Store holding an authenticated session
        url (str): Settings page URL
        headless (bool): Run the browser without a window

    Returns:
        str: HTML of the page after the form has rendered

    Raises:
        playwright.sync_api.TimeoutError: If the form never shows up
    """
    # Start Playwright and launch Chromium
    with sync_playwright() as p:
        browser = p.chromium.launch(headless=headless)
        try:
            # Create a fresh browser context and a single page within it
            context = browser.new_context()
            page = context.new_page()
            # add_cookies is fed one cookie at a time
            for cookie in store.to_playwright():
                context.add_cookies([cookie])
            # Navigate to the settings page
            page.goto(url)
            # Wait for the client-side JavaScript to build the form
            page.wait_for_selector(FORM_SELECTOR)
            # Grab the fully rendered HTML
            return page.content()
        finally:
            # Close the browser whether or not the form showed up
            browser.close()


def scrape_current_user(store, headless=True):
    """Render the settings page and return the current user record."""
    return extract_current_user(render_settings(store, headless=headless))


def save_users(users, out_path):
    """
    Write the user records to a pretty-printed JSON file.

    Args:
        users (list): User dictionaries
        out_path (str): Destination file, overwritten if present
    """
    os.makedirs(os.path.dirname(out_path) or '.', exist_ok=True)
    with open(out_path, 'w', encoding='utf-8') as f:
        json.dump(users, f, indent=2)


def run(out_path=OUTPUT_FILE, cookie_path=COOKIE_FILE, headless=True):
    """
    Export all users, logging in first if there is no usable session.

    Args:
        out_path (str): Where to write the JSON output
        cookie_path (str): Saved session file
        headless (bool): Run the browser without a window

    Returns:
        list: Every exported record, the current user last
    """
    # Load the saved session, if there is one
    store = CookieStore(cookie_path)
    store.load()

    # Log in again only when no session cookie is present
    if not store.is_valid():
        print("No valid session found, performing new login...")
        authenticate(store)
        # Persist the new session for the next run
        store.save()
    else:
        print(f"Reusing valid session from {cookie_path}.")

    # Pull the user list from the API
    users = fetch_users(store)
    log.debug("Users API returned %d records", len(users))
    # Scrape the current user from the rendered settings page
    current = scrape_current_user(store, headless=headless)

    # Current user goes last; the file is only written once everything succeeded
    all_users = list(users) + [current]
    save_users(all_users, out_path)
    return all_users


def _parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Export the Sunvoy user list to JSON.")
    ap.add_argument('--output', '-o', default=OUTPUT_FILE, help='Write users to this file')
    ap.add_argument('--cookies', default=COOKIE_FILE, help='Session cookie file')
    ap.add_argument('--headed', action='store_true', help='Show the browser window')
    ap.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    return ap.parse_args(argv)


def main(argv=None):
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        users = run(args.output, args.cookies, headless=not args.headed)
    except Exception as e:
        log.debug("Export failed", exc_info=True)
        print(f"\nAn error occurred: {e!r}", file=sys.stderr)
        return 1

    print(f"\nSuccess! All data has been saved to {args.output}")
    print(f"Total items in {os.path.basename(args.output)}: {len(users)}")
    return 0


# Entry point: execute this block only when script is run directly (not when imported)
if __name__ == '__main__':
    sys.exit(main())
