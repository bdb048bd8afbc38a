"""CLI for bpcs: Baidu PCS OAuth tokens.

Commands: auth-url, login, exchange-code, refresh, token, status, logout, verify.

Exit codes: 0 success, 1 error, 2 usage.
"""
from __future__ import annotations

import json
import os
import sys
import time
from datetime import datetime, timezone
from typing import List, Optional

from .access_token import AccessTokenCache
from .baidu_oauth import BaiduOAuth, parse_redirect
from .config import default_scope, env, http_timeout, oauth_host, redirect_uri, token_store_path, verbose_enabled
from .token_store import TokenStore


def _oauth() -> BaiduOAuth:
    return BaiduOAuth(
        client_id=env("BPCS_CLIENT_ID"),
        client_secret=env("BPCS_CLIENT_SECRET"),
        oauth_host=oauth_host(),
        timeout=http_timeout(),
        verbose=verbose_enabled(),
    )


def _store() -> TokenStore:
    return TokenStore(token_store_path(), verbose=verbose_enabled())


def _cache(redirect: Optional[str] = None) -> AccessTokenCache:
    return AccessTokenCache(
        _oauth(),
        _store(),
        redirect_uri=redirect or redirect_uri(),
        scope=default_scope(),
        verbose=verbose_enabled(),
    )


def _fmt_ts(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


# ----------------------------
# Commands
# ----------------------------

def cmd_auth_url(
    *,
    redirect: Optional[str],
    scope: Optional[str],
    state: Optional[str],
    display: str,
    force_login: bool,
    confirm_login: bool,
    open_browser: bool,
) -> None:
    oauth = BaiduOAuth(env("BPCS_CLIENT_ID"), "", oauth_host(), verbose=verbose_enabled())
    kwargs = dict(
        redirect_uri=redirect or redirect_uri(),
        scope=scope if scope is not None else default_scope(),
        state=state,
        display=display,
        force_login="1" if force_login else None,
        confirm_login="1" if confirm_login else None,
    )
    url = oauth.redirect(**kwargs) if open_browser else oauth.authorization_url(**kwargs)
    print(url)


def cmd_login(*, redirect: Optional[str], code: Optional[str]) -> None:
    """Manual flow: print consent URL, read back the code (oob page) or the redirect URL."""
    cache = _cache(redirect)
    if not code:
        print("Visit this URL in any browser and approve access:")
        print()
        print(cache.authorization_url())
        print()
        print(
            "Then paste the authorization code shown by Baidu (redirect_uri=oob), "
            "or the *entire* URL you were redirected to."
        )
        try:
            response = input("\nCode or redirect URL: ").strip()
        except EOFError:
            response = ""
        if not response:
            raise SystemExit("Nothing pasted. Exiting.")
        code = parse_redirect(response)
    else:
        code = parse_redirect(code)

    record = cache.login(code)
    print(f"Wrote token to: {cache.store.path}")
    print(f"Refresh after: {_fmt_ts(record.checkpoint)}")


def cmd_exchange_code(code: str, redirect: Optional[str]) -> None:
    data = _oauth().fetch_access_token(parse_redirect(code), redirect or redirect_uri())
    print(json.dumps(data, indent=2, ensure_ascii=False))
    if data.get("error"):
        sys.exit(1)


def cmd_refresh(*, scope: Optional[str]) -> None:
    cache = _cache()
    record = cache.refresh(scope=scope)
    print(f"Refreshed token in: {cache.store.path}")
    print(f"Refresh after: {_fmt_ts(record.checkpoint)}")


def cmd_token() -> None:
    # token to stdout, everything else to stderr
    print(_cache().get_access_token())


def cmd_status() -> None:
    store = _store()
    print(f"Token store: {store.path}")
    record = store.load()
    if record is None:
        print("No cached token (run: bpcs login)")
        sys.exit(1)
    due = record.is_due(time.time())
    print(f"Checkpoint:  {_fmt_ts(record.checkpoint)}")
    print(f"Refresh due: {'yes' if due else 'no'}")


def cmd_logout() -> None:
    store = _store()
    if store.clear():
        print(f"Removed {store.path}")
    else:
        print(f"No token file at {store.path}")


def cmd_verify() -> None:
    """Check config and the token store (refreshing if due). Exit 0 if OK."""
    errors: List[str] = []
    for name in ("BPCS_CLIENT_ID", "BPCS_CLIENT_SECRET"):
        if not (os.environ.get(name) or "").strip():
            errors.append(f"Missing env: {name}")
    if errors:
        for e in errors:
            print(f"bpcs verify: {e}", file=sys.stderr)
        sys.exit(1)

    store = _store()
    if store.load() is None:
        print(f"bpcs verify: no usable token at {store.path}; run: bpcs login", file=sys.stderr)
        sys.exit(1)

    try:
        _cache().get_access_token()
    except Exception as e:
        print(f"bpcs verify: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Config OK. Token store {store.path} is valid.")


def main(argv: Optional[List[str]] = None) -> None:
    import argparse

    p = argparse.ArgumentParser(
        prog="bpcs",
        description="Obtain, cache and refresh Baidu PCS OAuth 2.0 access tokens.",
        epilog=(
            "First run:  bpcs login        (consent in a browser, paste the code back)\n"
            "Then:       bpcs token        (prints a valid access token; refreshes when due)\n"
            "\n"
            "Config: BPCS_CLIENT_ID, BPCS_CLIENT_SECRET (.env), optional BPCS_REDIRECT_URI (default oob),\n"
            "BPCS_SCOPE (default netdisk), BPCS_TOKEN_STORE (default access_token.csv).\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging (same as BPCS_VERBOSE=1).",
    )

    sub = p.add_subparsers(dest="cmd", required=True, metavar="COMMAND")

    p_url = sub.add_parser("auth-url", help="Print the authorization (consent) URL.")
    p_url.add_argument("--redirect-uri", default=None, help="Env: BPCS_REDIRECT_URI. Default: oob.")
    p_url.add_argument("--scope", default=None, help="Space separated permissions. Env: BPCS_SCOPE. Default: netdisk.")
    p_url.add_argument("--state", default=None, help="Opaque value echoed back on redirect (CSRF protection).")
    p_url.add_argument(
        "--display",
        default="page",
        choices=["page", "popup", "dialog", "mobile", "pad", "tv"],
        help="Consent page style (default: page).",
    )
    p_url.add_argument("--force-login", action="store_true", help="Always ask for username and password.")
    p_url.add_argument("--confirm-login", action="store_true", help="Ask to confirm an existing Baidu session.")
    p_url.add_argument("--open", action="store_true", help="Also open the URL in the local browser.")

    p_login = sub.add_parser("login", help="Authorize and write the token store.")
    p_login.add_argument("--redirect-uri", default=None, help="Must match the app's callback. Default: oob.")
    p_login.add_argument("--code", default=None, help="Authorization code or redirect URL (skip the prompt).")

    p_ex = sub.add_parser("exchange-code", help="Exchange an authorization code; print the raw JSON response.")
    p_ex.add_argument("--code", required=True, help="Authorization code (or the redirect URL carrying it).")
    p_ex.add_argument("--redirect-uri", default=None, help="Same redirect_uri used for the consent URL.")

    p_refresh = sub.add_parser("refresh", help="Refresh the stored token now.")
    p_refresh.add_argument("--scope", default=None, help="Narrower scope to request (optional).")

    sub.add_parser("token", help="Print a valid access token (refreshes when due).")
    sub.add_parser("status", help="Show token store path and refresh checkpoint.")
    sub.add_parser("logout", help="Delete the token store.")
    sub.add_parser("verify", help="Check config and token store.")

    args = p.parse_args(argv)

    if args.verbose:
        os.environ["BPCS_VERBOSE"] = "1"

    try:
        if args.cmd == "auth-url":
            cmd_auth_url(
                redirect=args.redirect_uri,
                scope=args.scope,
                state=args.state,
                display=args.display,
                force_login=args.force_login,
                confirm_login=args.confirm_login,
                open_browser=args.open,
            )
        elif args.cmd == "login":
            cmd_login(redirect=args.redirect_uri, code=args.code)
        elif args.cmd == "exchange-code":
            cmd_exchange_code(args.code, args.redirect_uri)
        elif args.cmd == "refresh":
            cmd_refresh(scope=args.scope)
        elif args.cmd == "token":
            cmd_token()
        elif args.cmd == "status":
            cmd_status()
        elif args.cmd == "logout":
            cmd_logout()
        elif args.cmd == "verify":
            cmd_verify()
        else:
            raise SystemExit(2)
        sys.exit(0)
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception as e:
        print(f"bpcs: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
