"""Resolve the signed-in viewer from the request's bearer token."""

from __future__ import annotations

from collections.abc import Awaitable, Callable


class SessionDirectory:
    """Maps opaque bearer tokens to viewer ids."""

    def __init__(self, tokens: dict[str, str] | None = None) -> None:
        self._tokens = dict(tokens or {})

    def grant(self, token: str, viewer_id: str) -> None:
        self._tokens[token] = viewer_id

    def revoke(self, token: str) -> None:
        self._tokens.pop(token, None)

    async def resolve(self, token: str | None) -> str | None:
        if not token:
            return None
        return self._tokens.get(token)


def bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def auth_lookup_for(
    directory: SessionDirectory, authorization: str | None
) -> Callable[[], Awaitable[str | None]]:
    """Bind the header to a zero-argument lookup; the body `userId` is never consulted."""

    token = bearer_token(authorization)

    async def _lookup() -> str | None:
        return await directory.resolve(token)

    return _lookup
