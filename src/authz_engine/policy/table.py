from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from authz_engine.auth.models import PermissionPolicy, Role
from authz_engine.configs.logging_config import get_logger
from authz_engine.errors import PolicyConfigError
from authz_engine.policy.defaults import DEFAULT_POLICY

log = get_logger(__name__)


def merge_options(
    defaults: Mapping[str, Any] | None, override: Mapping[str, Any] | None
) -> dict[str, Any]:
    """
    Layer `override` on top of `defaults`, one level deep.

    - override value replaces the default value (lists are replaced, never merged)
    - keys set to None in the override keep the default
    - neither input is mutated
    """
    effective: dict[str, Any] = dict(defaults or {})
    for key, value in (override or {}).items():
        if value is None:
            continue
        effective[key] = value
    return effective


def new_role(statements: Mapping[str, Any]) -> Role:
    return Role(statements)


def _get(overrides: Any, key: str) -> Any:
    if overrides is None:
        return None
    if isinstance(overrides, Mapping):
        return overrides.get(key)
    return getattr(overrides, key, None)


def build_policy(
    defaults: PermissionPolicy | None = None, overrides: Any = None
) -> PermissionPolicy:
    """
    Build the permission table used by every decision.

    `overrides` may be a PermissionPolicy, a mapping or any object with
    `statements` / `roles` / `default_role`. Roles and statements are merged
    per name: an overridden role replaces the default one entirely, roles not
    mentioned keep their default definition.
    """
    base = defaults if defaults is not None else DEFAULT_POLICY

    statements = merge_options(base.statements, _get(overrides, "statements"))
    roles = merge_options(base.roles, _get(overrides, "roles"))
    default_role = _get(overrides, "default_role") or base.default_role

    policy = PermissionPolicy(statements=statements, roles=roles, default_role=default_role)
    log.debug(
        "policy.build roles=%s resources=%s default_role=%s",
        sorted(policy.roles),
        sorted(policy.statements),
        policy.default_role,
    )
    return policy


def validate_policy(policy: PermissionPolicy) -> PermissionPolicy:
    """
    Check every role only grants declared resources/actions.

    Meant for engine construction; deciders never raise on a bad table,
    they just treat unknown entries as granting nothing.
    """
    problems: list[str] = []
    for name, role_defs in policy.roles.items():
        if not role_defs:
            problems.append(f"role={name} has no statement set")
            continue
        for role in role_defs:
            for resource, actions in role.statements.items():
                declared = policy.statements.get(resource)
                if declared is None:
                    problems.append(f"role={name} resource={resource} is not declared")
                    continue
                unknown = sorted(actions - declared)
                if unknown:
                    problems.append(
                        f"role={name} resource={resource} unknown actions={','.join(unknown)}"
                    )

    if problems:
        log.error("policy.invalid problems=%s", problems)
        raise PolicyConfigError(f"invalid policy: {'; '.join(problems)}", problems=problems)
    return policy
