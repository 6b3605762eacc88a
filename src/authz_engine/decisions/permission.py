from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from authz_engine.auth.models import AuthorizationResult, PermissionPolicy
from authz_engine.configs.logging_config import get_logger
from authz_engine.utils.roles import parse_roles

log = get_logger(__name__)

AND = "AND"
OR = "OR"


def _connector(value: Any) -> str:
    return OR if isinstance(value, str) and value.upper() == OR else AND


def effective_grant(role: str | None, policy: PermissionPolicy) -> dict[str, set[str]] | None:
    """
    Union of granted actions per resource across every role name in `role`
    and every statement-set behind each name. None when no name resolves.
    """
    names = parse_roles(role) or parse_roles(policy.default_role)
    grant: dict[str, set[str]] = {}
    resolved = False
    for name in names:
        role_defs = policy.roles.get(name)
        if role_defs is None:
            log.debug("decision.permission.unknown_role role=%s", name)
            continue
        resolved = True
        for role_def in role_defs:
            for resource, actions in role_def.statements.items():
                grant.setdefault(resource, set()).update(actions)
    return grant if resolved else None


def _requirement(value: Any) -> tuple[list[str], str] | None:
    # list of actions, a single action, or {"actions": [...], "connector": "OR"}
    if isinstance(value, str):
        return [value], AND
    if isinstance(value, Mapping):
        actions = value.get("actions")
        connector = _connector(value.get("connector"))
    elif hasattr(value, "actions"):
        actions = getattr(value, "actions")
        connector = _connector(getattr(value, "connector", AND))
    else:
        actions, connector = value, AND
    if isinstance(actions, str):
        return [actions], connector
    if isinstance(actions, Iterable) and not isinstance(actions, Mapping):
        return [a for a in actions if isinstance(a, str)], connector
    return None


def _check_resource(resource: str, value: Any, grant: Mapping[str, set[str]]) -> str | None:
    """Return an error message, or None when the resource requirement holds."""
    granted = grant.get(resource, set())
    requirement = _requirement(value)
    if requirement is None:
        return f"malformed request for resource: {resource}"
    actions, connector = requirement
    if connector == OR:
        if any(a in granted for a in actions):
            return None
        return f"none of the actions {actions} are allowed on resource: {resource}"
    missing = [a for a in actions if a not in granted]
    if missing:
        return f"unauthorized to access resource: {resource} missing actions={missing}"
    return None


def authorize(
    role: str | None,
    policy: PermissionPolicy,
    requested: Mapping[str, Any] | None,
    *,
    connector: str = AND,
    user_id: str | None = None,
    admin_user_ids: Iterable[str] = (),
) -> AuthorizationResult:
    """
    Decide whether `role` grants `requested` under `policy`.

    `role` may name several comma-separated roles; grants are unioned. Every
    requested resource must be satisfied (AND) unless `connector="OR"`, in
    which case any one is enough. An empty request passes for a known role.
    Nothing here raises: unknown roles and malformed entries just deny.
    """
    if isinstance(admin_user_ids, str):
        admin_user_ids = (admin_user_ids,)
    if user_id and user_id in set(admin_user_ids):
        log.debug("decision.permission.identity_bypass user_id=%s", user_id)
        return AuthorizationResult.allowed()

    if requested is None or not isinstance(requested, Mapping):
        return AuthorizationResult.denied("no permissions requested")

    grant = effective_grant(role, policy)
    if grant is None:
        return AuthorizationResult.denied(f"unknown role: {role}")

    if not requested:
        return AuthorizationResult.allowed()

    any_resource = _connector(connector) == OR
    errors: list[str] = []
    for resource, value in requested.items():
        error = _check_resource(str(resource), value, grant)
        if error is None:
            if any_resource:
                return AuthorizationResult.allowed()
            continue
        if not any_resource:
            log.debug("decision.permission.denied role=%s reason=%s", role, error)
            return AuthorizationResult.denied(error)
        errors.append(error)

    if errors:
        log.debug("decision.permission.denied role=%s reason=%s", role, errors[0])
        return AuthorizationResult.denied(errors[0])
    return AuthorizationResult.allowed()


def has_permission(
    role: str | None,
    policy: PermissionPolicy,
    requested: Mapping[str, Any] | None,
    **kwargs: Any,
) -> bool:
    return authorize(role, policy, requested, **kwargs).success
