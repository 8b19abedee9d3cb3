from collections.abc import Callable, Mapping
from enum import Enum
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer


class Role(str, Enum):
    """Supported roles, lowest privilege last."""

    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    TECHNICIAN = "technician"
    VIEWER = "viewer"


_ROLE_RANK: dict[Role, int] = {
    Role.VIEWER: 0,
    Role.TECHNICIAN: 1,
    Role.SUPERVISOR: 2,
    Role.ADMIN: 3,
}


class User:
    """Authenticated caller. A role grants every lower-ranked role too."""

    def __init__(self, username: str, roles: tuple[Role, ...]):
        self.username = username
        self.roles = roles

    def has_role(self, role: Role) -> bool:
        required = _ROLE_RANK[role]
        return any(_ROLE_RANK[granted] >= required for granted in self.roles)


DEFAULT_TOKENS: dict[str, tuple[str, tuple[Role, ...]]] = {
    "admin-token": ("admin", (Role.ADMIN,)),
    "supervisor-token": ("supervisor", (Role.SUPERVISOR,)),
    "technician-token": ("technician", (Role.TECHNICIAN,)),
    "viewer-token": ("viewer", (Role.VIEWER,)),
}

TOKEN_USER_MAP: dict[str, tuple[str, tuple[Role, ...]]] = dict(DEFAULT_TOKENS)

bearer_scheme = HTTPBearer(auto_error=False)


def parse_token_map(raw: str | None) -> dict[str, tuple[str, tuple[Role, ...]]]:
    """Parse ``token:username:role|role,...`` into a token map."""

    tokens: dict[str, tuple[str, tuple[Role, ...]]] = {}
    if not raw:
        return tokens
    for entry in raw.split(","):
        parts = entry.strip().split(":")
        if len(parts) != 3 or not parts[0]:
            raise ValueError(f"Malformed token entry: {entry!r}")
        token, username, role_names = parts
        roles = tuple(Role(name.strip()) for name in role_names.split("|") if name.strip())
        tokens[token] = (username, roles or (Role.VIEWER,))
    return tokens


def install_tokens(tokens: Mapping[str, tuple[str, tuple[Role, ...]]]) -> None:
    if not tokens:
        return
    TOKEN_USER_MAP.clear()
    TOKEN_USER_MAP.update(tokens)


def resolve_user_from_token(token: str | None) -> User:
    """Return a user instance associated with the provided bearer token."""

    if token is None:
        return User(username="anonymous", roles=(Role.VIEWER,))

    if token not in TOKEN_USER_MAP:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")

    username, roles = TOKEN_USER_MAP[token]
    return User(username=username, roles=roles)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    request: Request,
) -> User:
    cached = getattr(request.state, "user", None)
    if isinstance(cached, User):
        return cached

    token = credentials.credentials if credentials is not None else None
    user = resolve_user_from_token(token)
    request.state.user = user
    return user


def role_required(role: Role) -> Callable[[User], User]:
    """Dependency factory ensuring the current user has the requested role."""

    async def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if not user.has_role(role):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


CurrentUser = Annotated[User, Depends(get_current_user)]
