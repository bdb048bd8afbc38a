"""Unit tests for bpcs.baidu_oauth."""
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qsl, urlsplit

import pytest

from bpcs.baidu_oauth import BaiduOAuth, OAuthError, parse_redirect, raise_for_error

TOKEN_RESPONSE = {
    "access_token": "1.a6b7dbd428f731035f771b8d15063f61.86400.1292922000-2346678-124328",
    "expires_in": 86400,
    "refresh_token": "2.385d55f8615fdfd9edb7c4b5ebdc3e39.604800.1293440400-2346678-124328",
    "scope": "basic email",
    "session_key": "ANXxSNjwQDugf8615OnqeikRMu2bKaXCdlLxn",
    "session_secret": "248APxvxjCZ0VEC43EYrvxqaK4oZExMB",
}


def _response(payload, status=200):
    r = MagicMock()
    r.status_code = status
    r.json.return_value = payload
    r.text = str(payload)
    return r


def _oauth():
    return BaiduOAuth("Va5yQRHlA4Fq4eR3LT0vuXV4", "0rDSjzQ20XUj5itV7WRtznPQSzr5pVw2")


def test_authorization_url_parameters_in_documented_order():
    url = _oauth().authorization_url(redirect_uri="http://www.example.com/oauth_redirect", scope="email", display="popup")
    parts = urlsplit(url)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://openapi.baidu.com/oauth/2.0/authorize"
    assert parse_qsl(parts.query, keep_blank_values=True) == [
        ("client_id", "Va5yQRHlA4Fq4eR3LT0vuXV4"),
        ("response_type", "code"),
        ("redirect_uri", "http://www.example.com/oauth_redirect"),
        ("scope", "email"),
        ("state", ""),
        ("display", "popup"),
        ("force_login", ""),
        ("confirm_login", ""),
    ]
    assert "redirect_uri=http%3A%2F%2Fwww.example.com%2Foauth_redirect" in url


def test_authorization_url_defaults_and_encoding():
    url = _oauth().authorization_url(redirect_uri="oob", scope="basic netdisk", state="xyz", force_login="1")
    q = dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))
    assert q["scope"] == "basic netdisk"
    assert "scope=basic+netdisk" in url
    assert q["display"] == "page"
    assert q["state"] == "xyz"
    assert q["force_login"] == "1"
    assert q["confirm_login"] == ""


def test_custom_host_trailing_slash():
    oauth = BaiduOAuth("id", "secret", "https://idp.example.test/oauth/2.0")
    assert oauth.token_endpoint == "https://idp.example.test/oauth/2.0/token"
    assert oauth.authorize_endpoint == "https://idp.example.test/oauth/2.0/authorize"


def test_redirect_opens_browser():
    with patch("bpcs.baidu_oauth.webbrowser.open") as opened:
        url = _oauth().redirect(redirect_uri="oob")
    opened.assert_called_once_with(url)
    assert url.startswith("https://openapi.baidu.com/oauth/2.0/authorize?")


def test_fetch_access_token_request():
    with patch("bpcs.baidu_oauth.requests.get", return_value=_response(TOKEN_RESPONSE)) as get:
        data = _oauth().fetch_access_token("ANXxSNjwQDugOnqeikRMu2bKaXCdlLxn", "oob")
    assert data == TOKEN_RESPONSE
    args, kwargs = get.call_args
    assert args[0] == "https://openapi.baidu.com/oauth/2.0/token"
    assert kwargs["params"] == {
        "client_id": "Va5yQRHlA4Fq4eR3LT0vuXV4",
        "client_secret": "0rDSjzQ20XUj5itV7WRtznPQSzr5pVw2",
        "redirect_uri": "oob",
        "grant_type": "authorization_code",
        "code": "ANXxSNjwQDugOnqeikRMu2bKaXCdlLxn",
    }
    assert kwargs["timeout"] == 30


def test_refresh_access_token_request_with_and_without_scope():
    with patch("bpcs.baidu_oauth.requests.get", return_value=_response(TOKEN_RESPONSE)) as get:
        _oauth().refresh_access_token("2.refresh")
        params = get.call_args.kwargs["params"]
        assert params["grant_type"] == "refresh_token"
        assert params["refresh_token"] == "2.refresh"
        assert "scope" not in params

        _oauth().refresh_access_token("2.refresh", scope="email")
        assert get.call_args.kwargs["params"]["scope"] == "email"


def test_error_object_returned_as_is():
    err = {"error": "invalid_grant", "error_description": "Invalid authorization code: X"}
    with patch("bpcs.baidu_oauth.requests.get", return_value=_response(err, status=400)):
        assert _oauth().fetch_access_token("X", "oob") == err


def test_non_json_body_raises():
    r = _response(None, status=502)
    r.json.side_effect = ValueError("no json")
    r.text = "<html>Bad Gateway</html>"
    with patch("bpcs.baidu_oauth.requests.get", return_value=r):
        with pytest.raises(OAuthError, match="invalid_response"):
            _oauth().refresh_access_token("2.refresh")


def test_raise_for_error():
    assert raise_for_error(TOKEN_RESPONSE) is TOKEN_RESPONSE
    with pytest.raises(OAuthError) as ei:
        raise_for_error({"error": "invalid_grant", "error_description": "expired"})
    assert ei.value.error == "invalid_grant"
    assert ei.value.description == "expired"
    assert str(ei.value) == "invalid_grant: expired"


def test_parse_redirect_bare_code():
    assert parse_redirect("  ANXxSNjwQDugOnqeikRMu2bKaXCdlLxn\n") == "ANXxSNjwQDugOnqeikRMu2bKaXCdlLxn"


def test_parse_redirect_url():
    url = "http://www.example.com/oauth_redirect?code=ANXxSNjw&state=abc"
    assert parse_redirect(url) == "ANXxSNjw"


def test_parse_redirect_access_denied():
    with pytest.raises(OAuthError, match="access_denied"):
        parse_redirect("http://www.example.com/oauth_redirect?error=access_denied")


def test_parse_redirect_code_in_fragment():
    assert parse_redirect("http://localhost/#code=XYZ&state=abc") == "XYZ"
    assert parse_redirect("http://localhost/?state=abc#code=XYZ") == "XYZ"
    with pytest.raises(OAuthError, match="access_denied"):
        parse_redirect("http://localhost/#error=access_denied")


def test_parse_redirect_missing_code():
    with pytest.raises(OAuthError, match="no code"):
        parse_redirect("http://www.example.com/oauth_redirect?state=abc")
    with pytest.raises(OAuthError, match="empty"):
        parse_redirect("   ")
