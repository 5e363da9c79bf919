from __future__ import annotations

import os
import tempfile
from pathlib import Path

from auth.errors import InvalidInput, TokenNotFound

DEFAULT_TOKEN_FILE = ".token"


class RefreshTokenStore:
    """Persists the long-lived refresh token as a single line of text.

    Access tokens are never written here.
    """

    def __init__(self, path: str | Path = DEFAULT_TOKEN_FILE) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> str:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError as error:
            raise TokenNotFound(f"No refresh token stored at {self._path}.") from error

        token = raw.strip()
        if not token:
            raise TokenNotFound(f"Refresh token file {self._path} is empty.")
        return token

    def save(self, token: str) -> None:
        token = (token or "").strip()
        if not token:
            raise InvalidInput("Refusing to save an empty refresh token.")
        self._write(token + "\n")

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)

    def _write(self, payload: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        # mkstemp creates the file with mode 0600.
        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_path, self._path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
