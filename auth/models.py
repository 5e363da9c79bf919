from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Credentials:
    client_id: str
    client_secret: str
    redirect_uri: str

    def missing(self) -> list[str]:
        fields = {
            "SPOTIFY_CLIENT_ID": self.client_id,
            "SPOTIFY_CLIENT_SECRET": self.client_secret,
            "SPOTIFY_REDIRECT_URI": self.redirect_uri,
        }
        return [key for key, value in fields.items() if not value or not value.strip()]


@dataclass(frozen=True)
class CallbackAddress:
    host: str
    port: int
    path: str
