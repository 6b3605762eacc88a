from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from authz_engine.utils.roles import parse_roles

DEFAULT_ADMIN_ROLES: tuple[str, ...] = ("admin",)
DEFAULT_ROLE = "user"


def _action_set(value: Any) -> frozenset[str]:
    # malformed entries grant nothing
    if isinstance(value, str):
        return frozenset([value])
    if isinstance(value, Iterable) and not isinstance(value, Mapping):
        return frozenset(a for a in value if isinstance(a, str))
    return frozenset()


def freeze_statements(raw: Any) -> Mapping[str, frozenset[str]]:
    """Canonical read-only form of a resource -> actions mapping."""
    if isinstance(raw, MappingProxyType) and all(isinstance(v, frozenset) for v in raw.values()):
        return raw
    if not isinstance(raw, Mapping):
        return MappingProxyType({})
    return MappingProxyType(
        {str(resource): _action_set(actions) for resource, actions in raw.items()}
    )


@dataclass(frozen=True)
class Principal:
    id: str
    role: str | None = None

    @property
    def roles(self) -> tuple[str, ...]:
        return parse_roles(self.role)

    @classmethod
    def coerce(cls, value: Any) -> Principal | None:
        """
        Accept whatever the session layer hands over: a Principal, a mapping
        or any object with `id`/`role` attributes. Extra fields are ignored.
        """
        if value is None:
            return None
        if isinstance(value, Principal):
            return value
        if isinstance(value, Mapping):
            user_id = value.get("id")
            role = value.get("role")
        else:
            user_id = getattr(value, "id", None)
            role = getattr(value, "role", None)
        if isinstance(role, (list, tuple, set, frozenset)):
            role = ",".join(r for r in role if isinstance(r, str))
        elif not isinstance(role, str):
            role = None
        return cls(id=str(user_id) if user_id is not None else "", role=role)


@dataclass(frozen=True)
class AdminPolicy:
    admin_roles: tuple[str, ...] = DEFAULT_ADMIN_ROLES
    admin_user_ids: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        roles = self.admin_roles
        if roles is None or roles == "":
            # unset, or a blank string, selects the default
            roles = DEFAULT_ADMIN_ROLES
        elif isinstance(roles, str):
            roles = (roles,)
        else:
            # an explicit empty sequence stays empty: no role grants admin
            roles = tuple(r for r in roles if isinstance(r, str))

        ids = self.admin_user_ids
        if ids is None:
            ids = frozenset()
        elif isinstance(ids, str):
            ids = frozenset([ids])
        else:
            ids = frozenset(i for i in ids if isinstance(i, str))

        object.__setattr__(self, "admin_roles", roles)
        object.__setattr__(self, "admin_user_ids", ids)

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | None) -> AdminPolicy:
        options = options or {}
        return cls(
            admin_roles=options.get("admin_roles"),
            admin_user_ids=options.get("admin_user_ids"),
        )

    def as_options(self) -> dict[str, Any]:
        return {
            "admin_roles": list(self.admin_roles),
            "admin_user_ids": sorted(self.admin_user_ids),
        }


@dataclass(frozen=True)
class Role:
    """A named bundle's statement-set: resource -> granted actions."""

    statements: Mapping[str, frozenset[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "statements", freeze_statements(self.statements))

    def actions_for(self, resource: str) -> frozenset[str]:
        return self.statements.get(resource, frozenset())


def role_sets(value: Any) -> tuple[Role, ...]:
    """
    Normalize a role definition: a Role, a raw statement mapping, or a
    sequence of either (several underlying roles merged into one name).
    """
    if isinstance(value, Role):
        return (value,)
    if isinstance(value, Mapping):
        return (Role(value),)
    if isinstance(value, (list, tuple)):
        out: list[Role] = []
        for item in value:
            if isinstance(item, Role):
                out.append(item)
            elif isinstance(item, Mapping):
                out.append(Role(item))
        return tuple(out)
    return ()


@dataclass(frozen=True)
class PermissionPolicy:
    statements: Mapping[str, frozenset[str]] = field(default_factory=dict)
    roles: Mapping[str, tuple[Role, ...]] = field(default_factory=dict)
    default_role: str = DEFAULT_ROLE

    def __post_init__(self) -> None:
        object.__setattr__(self, "statements", freeze_statements(self.statements))
        raw_roles = self.roles if isinstance(self.roles, Mapping) else {}
        object.__setattr__(
            self,
            "roles",
            MappingProxyType({str(name): role_sets(value) for name, value in raw_roles.items()}),
        )
        if not isinstance(self.default_role, str):
            object.__setattr__(self, "default_role", DEFAULT_ROLE)


@dataclass(frozen=True)
class AuthorizationResult:
    success: bool
    error: str | None = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def allowed(cls) -> AuthorizationResult:
        return cls(True)

    @classmethod
    def denied(cls, error: str) -> AuthorizationResult:
        return cls(False, error)
