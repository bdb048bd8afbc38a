"""Access token for PCS API calls, cached in the token file.

First use needs an authorization code (AuthorizationRequired carries the consent URL).
After that the cached token is returned until its checkpoint (one day before expiry),
then refreshed with the stored refresh token.
"""
from __future__ import annotations

import sys
import time
from typing import Callable, Optional

from .baidu_oauth import BaiduOAuth, raise_for_error
from .config import DEFAULT_SCOPE
from .token_store import TokenRecord, TokenStore


class AuthorizationRequired(RuntimeError):
    """No cached token and no code: send the user agent to .url first."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Authorization required; visit: {url}")


class AccessTokenCache:
    """Returns a usable access token, talking to Baidu only when the cache cannot answer."""

    def __init__(
        self,
        oauth: BaiduOAuth,
        store: TokenStore,
        *,
        redirect_uri: str,
        scope: str = DEFAULT_SCOPE,
        clock: Callable[[], float] = time.time,
        verbose: bool = False,
    ) -> None:
        self.oauth = oauth
        self.store = store
        self.redirect_uri = redirect_uri
        self.scope = scope
        self.clock = clock
        self.verbose = verbose

    def get_access_token(self, code: Optional[str] = None) -> str:
        record = self.store.load()
        if record is None:
            if code is None:
                raise AuthorizationRequired(self.authorization_url())
            return self.login(code).access_token

        if record.is_due(self.clock()):
            self._log(f"checkpoint {record.checkpoint} passed; refreshing")
            return self.refresh(record).access_token

        self._log(f"using cached token (refresh after {record.checkpoint})")
        return record.access_token

    def authorization_url(self, state: Optional[str] = None) -> str:
        return self.oauth.authorization_url(
            redirect_uri=self.redirect_uri,
            scope=self.scope,
            state=state,
            display="page",
        )

    def login(self, code: str) -> TokenRecord:
        """Exchange code and overwrite the cache."""
        data = raise_for_error(self.oauth.fetch_access_token(code, self.redirect_uri))
        record = TokenRecord.from_response(data)
        self.store.save(record)
        return record

    def refresh(self, record: Optional[TokenRecord] = None, scope: Optional[str] = None) -> TokenRecord:
        """Refresh the cached (or given) record and overwrite the cache."""
        record = record or self.store.load()
        if record is None:
            raise AuthorizationRequired(self.authorization_url())
        data = raise_for_error(self.oauth.refresh_access_token(record.refresh_token, scope=scope))
        new_record = TokenRecord.from_response(data, previous_refresh_token=record.refresh_token)
        self.store.save(new_record)
        return new_record

    def _log(self, msg: str) -> None:
        if self.verbose:
            print(f"[token] {msg}", file=sys.stderr)
