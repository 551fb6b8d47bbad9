"""
Authentication methods for the Loki push endpoint.

Each method resolves to the HTTP headers attached to every request.
"""

import base64
from dataclasses import dataclass, field


@dataclass(frozen=True)
class NoAuth:
    """No authentication."""

    def headers(self) -> dict[str, str]:
        return {}


@dataclass(frozen=True)
class BasicAuth:
    """HTTP Basic authentication."""

    username: str
    password: str = field(repr=False)

    def headers(self) -> dict[str, str]:
        credentials = f"{self.username}:{self.password}".encode()
        return {"Authorization": f"Basic {base64.b64encode(credentials).decode('ascii')}"}


@dataclass(frozen=True)
class BearerAuth:
    """Bearer token authentication (OAuth, JWT, API keys)."""

    token: str = field(repr=False)

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@dataclass(frozen=True)
class CustomAuth:
    """Arbitrary headers, e.g. X-Scope-OrgID for multi-tenant Loki."""

    custom_headers: dict[str, str] = field(default_factory=dict)

    def headers(self) -> dict[str, str]:
        return dict(self.custom_headers)


AuthMethod = NoAuth | BasicAuth | BearerAuth | CustomAuth
