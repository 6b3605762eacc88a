from __future__ import annotations

from typing import Any

from authz_engine.auth.models import AdminPolicy, Principal
from authz_engine.configs.logging_config import get_logger

log = get_logger(__name__)


def is_admin(principal: Principal | Any | None, policy: AdminPolicy | None = None) -> bool:
    """
    Tell whether `principal` has admin privileges.

    1. id listed in `policy.admin_user_ids` -> admin, whatever the role
    2. otherwise admin iff any of the principal's comma-separated roles is in
       `policy.admin_roles`

    Never raises; an absent principal or empty policy collections mean False.
    """
    principal = Principal.coerce(principal)
    if principal is None:
        return False

    policy = policy or AdminPolicy()

    if principal.id and principal.id in policy.admin_user_ids:
        log.debug("decision.admin.identity_bypass user_id=%s", principal.id)
        return True

    matched = set(principal.roles).intersection(policy.admin_roles)
    log.debug(
        "decision.admin user_id=%s roles=%s admin=%s",
        principal.id,
        principal.roles,
        bool(matched),
    )
    return bool(matched)
