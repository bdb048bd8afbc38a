"""Token cache file: one CSV row of checkpoint, access_token, refresh_token.

checkpoint = expiry embedded in the access token minus one day (epoch seconds).
Baidu access tokens look like "1.<hash>.<ttl>.<expiry>-<uid>-<appid>"; the expiry
is the leading digits of the fourth dot-separated segment.
"""
from __future__ import annotations

import csv
import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

ONE_DAY = 86400

_LEADING_DIGITS = re.compile(r"\d+")


class TokenFormatError(ValueError):
    """Access token without an embedded expiry timestamp."""


class TokenStoreError(RuntimeError):
    """Token file could not be written. Not recoverable: fix permissions and retry."""


def embedded_expiry(access_token: str) -> int:
    parts = (access_token or "").split(".")
    if len(parts) < 4:
        raise TokenFormatError(f"access token has {len(parts)} segment(s), expected at least 4")
    m = _LEADING_DIGITS.match(parts[3])
    if not m:
        raise TokenFormatError(f"no expiry timestamp in access token segment {parts[3]!r}")
    return int(m.group(0))


def expiry_checkpoint(access_token: str) -> int:
    return embedded_expiry(access_token) - ONE_DAY


@dataclass(frozen=True)
class TokenRecord:
    checkpoint: int  # epoch seconds; refresh once now is past this
    access_token: str
    refresh_token: str

    @classmethod
    def from_response(cls, payload: Dict[str, Any], previous_refresh_token: Optional[str] = None) -> "TokenRecord":
        """Build from a token endpoint response. Refresh responses may omit refresh_token."""
        access = payload.get("access_token")
        if not access:
            raise TokenFormatError("token response has no access_token")
        refresh = payload.get("refresh_token") or previous_refresh_token
        if not refresh:
            raise TokenFormatError("token response has no refresh_token")
        access = str(access)
        return cls(checkpoint=expiry_checkpoint(access), access_token=access, refresh_token=str(refresh))

    def is_due(self, now: float) -> bool:
        return now > self.checkpoint


class TokenStore:
    def __init__(self, path: str | Path, *, verbose: bool = False) -> None:
        self.path = Path(path)
        self.verbose = verbose

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[TokenRecord]:
        """First row of the file, or None when missing, empty or unreadable."""
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r", newline="", encoding="utf-8") as f:
                row = next(csv.reader(f), None)
        except (OSError, csv.Error) as e:
            self._log(f"cannot read {self.path}: {e}")
            return None
        if not row or len(row) < 3:
            self._log(f"ignoring {self.path}: expected 3 fields, got {len(row or [])}")
            return None
        if not row[1] or not row[2]:
            self._log(f"ignoring {self.path}: empty access or refresh token")
            return None
        try:
            checkpoint = int(row[0])
        except ValueError:
            self._log(f"ignoring {self.path}: bad checkpoint {row[0]!r}")
            return None
        return TokenRecord(checkpoint=checkpoint, access_token=row[1], refresh_token=row[2])

    def save(self, record: TokenRecord) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", newline="", encoding="utf-8") as f:
                csv.writer(f, lineterminator="\n").writerow(
                    [record.checkpoint, record.access_token, record.refresh_token]
                )
        except OSError as e:
            raise TokenStoreError(f"Cannot write token file {self.path}: {e}") from e
        try:
            os.chmod(self.path, 0o600)
        except OSError:
            # e.g. filesystems without POSIX modes
            pass
        self._log(f"wrote {self.path} (checkpoint {record.checkpoint})")

    def clear(self) -> bool:
        if not self.path.exists():
            return False
        self.path.unlink()
        self._log(f"removed {self.path}")
        return True

    def _log(self, msg: str) -> None:
        if self.verbose:
            print(f"[store] {msg}", file=sys.stderr)
