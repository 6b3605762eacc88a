from __future__ import annotations

from authz_engine.auth.models import DEFAULT_ROLE, PermissionPolicy, Role

DEFAULT_STATEMENTS: dict[str, tuple[str, ...]] = {
    "user": (
        "create",
        "list",
        "set-role",
        "ban",
        "impersonate",
        "delete",
        "set-password",
        "get",
        "update",
    ),
    "session": ("list", "revoke", "delete"),
}

# privileged role: everything the default statements declare
ADMIN_ROLE = Role({resource: actions for resource, actions in DEFAULT_STATEMENTS.items()})

# standard role: knows the resources, holds no actions
USER_ROLE = Role({"user": (), "session": ()})

DEFAULT_ROLES: dict[str, Role] = {
    "admin": ADMIN_ROLE,
    "user": USER_ROLE,
}

DEFAULT_POLICY = PermissionPolicy(
    statements=DEFAULT_STATEMENTS,
    roles=DEFAULT_ROLES,
    default_role=DEFAULT_ROLE,
)
