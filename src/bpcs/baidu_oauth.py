"""Baidu OAuth 2.0 (authorization code flow).

Three steps, all against https://openapi.baidu.com/oauth/2.0/:
  1. authorize: send the user agent to the consent page, which redirects back with ?code=...
  2. token (grant_type=authorization_code): code -> access_token + refresh_token
  3. token (grant_type=refresh_token): refresh_token -> new access_token

Token responses are returned as decoded JSON, unchanged. Baidu reports failures as
{"error": ..., "error_description": ...} with a 4xx status, so status codes are not checked.
"""
from __future__ import annotations

import sys
import webbrowser
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

import requests

from .config import DEFAULT_OAUTH_HOST, DEFAULT_SCOPE


class OAuthError(RuntimeError):
    """Provider-reported error ({"error", "error_description"}) or unusable response."""

    def __init__(self, error: str, description: str = "") -> None:
        self.error = error
        self.description = description
        super().__init__(f"{error}: {description}" if description else error)


def raise_for_error(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Return payload unchanged unless it is an error object."""
    if payload.get("error"):
        raise OAuthError(str(payload["error"]), str(payload.get("error_description") or ""))
    return payload


def parse_redirect(url_or_code: str) -> str:
    """
    Extract the authorization code from what the user pasted back:
    either the bare code (oob page) or the full redirect URL (?code=... or #code=...).
    """
    s = (url_or_code or "").strip()
    if not s:
        raise OAuthError("invalid_request", "empty authorization response")
    if "?" not in s and "#" not in s and "=" not in s:
        return s

    if "?" in s or "#" in s:
        parts = urlsplit(s)
        params = parse_qs(parts.query)
        if not params.get("code") and not params.get("error"):
            params = parse_qs(parts.fragment)
    else:
        params = parse_qs(s)
    if params.get("error"):
        # e.g. error=access_denied when the user cancels on the consent page
        raise OAuthError(params["error"][0], (params.get("error_description") or [""])[0])
    code = (params.get("code") or [""])[0]
    if not code:
        raise OAuthError("invalid_request", "no code in authorization response")
    return code


def _mask(s: str) -> str:
    return s[:6] + "..." if len(s) > 6 else "***"


class BaiduOAuth:
    """Builds the authorize URL and calls the token endpoint for one registered app."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        oauth_host: str = DEFAULT_OAUTH_HOST,
        *,
        timeout: float = 30,
        verbose: bool = False,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.oauth_host = oauth_host.rstrip("/") + "/"
        self.timeout = timeout
        self.verbose = verbose

    @property
    def authorize_endpoint(self) -> str:
        return self.oauth_host + "authorize"

    @property
    def token_endpoint(self) -> str:
        return self.oauth_host + "token"

    def authorization_url(
        self,
        *,
        redirect_uri: str,
        response_type: str = "code",
        scope: Optional[str] = DEFAULT_SCOPE,
        state: Optional[str] = None,
        display: Optional[str] = "page",
        force_login: Optional[str] = None,
        confirm_login: Optional[str] = None,
    ) -> str:
        """
        URL of the consent page. Unset optionals are sent empty, the way Baidu documents them.

        scope: space separated permission list (empty = app defaults).
        display: page | popup | dialog | mobile | pad | tv.
        force_login=1 ignores the browser's Baidu session; confirm_login=1 asks to confirm it.
        """
        params = {
            "client_id": self.client_id,
            "response_type": response_type,
            "redirect_uri": redirect_uri,
            "scope": scope or "",
            "state": state or "",
            "display": display or "",
            "force_login": force_login or "",
            "confirm_login": confirm_login or "",
        }
        return self.authorize_endpoint + "?" + urlencode(params)

    def redirect(self, **kwargs: Any) -> str:
        """Open the consent page in the local browser; returns the URL for printing."""
        url = self.authorization_url(**kwargs)
        if self.verbose:
            print(f"[oauth] opening {url}", file=sys.stderr)
        webbrowser.open(url)
        return url

    def fetch_access_token(self, code: str, redirect_uri: str) -> Dict[str, Any]:
        """Exchange an authorization code (single use, valid 10 minutes)."""
        return self._token_request(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
                "code": code,
            }
        )

    def refresh_access_token(self, refresh_token: str, scope: Optional[str] = None) -> Dict[str, Any]:
        """Mint a new access token. scope, if given, must not exceed the originally granted one."""
        params = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        if scope:
            params["scope"] = scope
        return self._token_request(params)

    def _token_request(self, params: Dict[str, str]) -> Dict[str, Any]:
        if self.verbose:
            print(
                f"[oauth] GET {self.token_endpoint} grant_type={params['grant_type']} client_id={_mask(self.client_id)}",
                file=sys.stderr,
            )
        r = requests.get(self.token_endpoint, params=params, timeout=self.timeout)
        try:
            data = r.json()
        except ValueError as exc:
            raise OAuthError("invalid_response", f"HTTP {r.status_code}: {r.text[:200]}") from exc
        if not isinstance(data, dict):
            raise OAuthError("invalid_response", f"HTTP {r.status_code}: expected a JSON object")
        if self.verbose:
            print(f"[oauth] HTTP {r.status_code} keys={sorted(data)}", file=sys.stderr)
        return data
