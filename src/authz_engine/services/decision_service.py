from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from authz_engine.auth.models import AdminPolicy, AuthorizationResult, PermissionPolicy, Principal
from authz_engine.configs.logging_config import get_logger
from authz_engine.configs.settings import Settings, get_settings
from authz_engine.decisions.admin import is_admin
from authz_engine.decisions.permission import authorize
from authz_engine.domain.entities.decision import (
    AdminOptions,
    PermissionOverrides,
    RolePermissionRequest,
)
from authz_engine.policy.table import build_policy, merge_options, validate_policy
from authz_engine.utils.roles import split_csv

log = get_logger(__name__)

# Route names the surrounding service reserves for admin actions; handlers
# live there and call check_admin / check_role_permission first.
RESERVED_PATH_METHODS: Mapping[str, str] = MappingProxyType(
    {
        "/admin/list-users": "GET",
        "/admin/stop-impersonating": "POST",
    }
)


def _admin_options(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, AdminPolicy):
        return value.as_options()
    if not isinstance(value, AdminOptions):
        value = AdminOptions.model_validate(value)
    return value.model_dump(exclude_none=True)


def _policy_overrides(value: Any) -> Any:
    if value is None or isinstance(value, (PermissionPolicy, PermissionOverrides)):
        return value
    return PermissionOverrides.model_validate(value)


class DecisionFacade:
    """
    Entry point for callers: admin check and role permission check.

    Holds one AdminPolicy and one PermissionPolicy, both built in __init__ and
    never touched again. Use with_options() to get a differently configured
    instance instead of changing this one.
    """

    def __init__(
        self,
        admin_options: AdminOptions | Mapping[str, Any] | None = None,
        policy_overrides: PermissionOverrides | Mapping[str, Any] | None = None,
        *,
        base_policy: PermissionPolicy | None = None,
        validate: bool = False,
    ):
        self._admin_defaults = merge_options(AdminPolicy().as_options(), _admin_options(admin_options))
        self._admin_policy = AdminPolicy.from_options(self._admin_defaults)
        self._policy = build_policy(base_policy, _policy_overrides(policy_overrides))
        if validate:
            validate_policy(self._policy)

        log.info(
            "decision_service.build admin_roles=%s admin_user_ids=%s roles=%s",
            list(self._admin_policy.admin_roles),
            len(self._admin_policy.admin_user_ids),
            sorted(self._policy.roles),
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> DecisionFacade:
        settings = settings or get_settings()
        log.info(
            "decision_service.from_settings service=%s environment=%s",
            settings.SERVICE_NAME,
            settings.ENVIRONMENT,
        )
        admin_options = {
            "admin_roles": split_csv(settings.ADMIN_ROLES),
            "admin_user_ids": split_csv(settings.ADMIN_USER_IDS),
        }
        kwargs.setdefault("validate", True)
        overrides = kwargs.pop("policy_overrides", None)
        overrides = merge_options({"default_role": settings.DEFAULT_ROLE}, _as_dict(overrides))
        return cls(admin_options, overrides, **kwargs)

    @property
    def admin_policy(self) -> AdminPolicy:
        return self._admin_policy

    @property
    def permission_policy(self) -> PermissionPolicy:
        return self._policy

    def with_options(
        self,
        admin_options: AdminOptions | Mapping[str, Any] | None = None,
        policy_overrides: PermissionOverrides | Mapping[str, Any] | None = None,
    ) -> DecisionFacade:
        return DecisionFacade(
            merge_options(self._admin_defaults, _admin_options(admin_options)),
            policy_overrides,
            base_policy=self._policy,
        )

    def check_admin(self, principal: Any, admin_options: AdminOptions | Mapping[str, Any] | None = None) -> bool:
        policy = self._admin_policy
        if admin_options is not None:
            try:
                effective = merge_options(self._admin_defaults, _admin_options(admin_options))
            except ValidationError as exc:
                log.warning("decision.admin.invalid_options errors=%s", exc.error_count())
                return False
            policy = AdminPolicy.from_options(effective)
        return is_admin(Principal.coerce(principal), policy)

    def authorize_role_permission(
        self, request: RolePermissionRequest | Mapping[str, Any] | None = None, **fields: Any
    ) -> AuthorizationResult:
        if request is not None and not isinstance(request, (Mapping, RolePermissionRequest)):
            log.warning("decision.permission.invalid_request type=%s", type(request).__name__)
            return AuthorizationResult.denied("invalid permission request")
        try:
            if isinstance(request, RolePermissionRequest) and not fields:
                req = request
            else:
                data = merge_options(_as_dict(request), fields)
                req = RolePermissionRequest.model_validate(data)
        except ValidationError as exc:
            log.warning("decision.permission.invalid_request errors=%s", exc.error_count())
            return AuthorizationResult.denied("invalid permission request")

        return authorize(
            req.role,
            self._policy,
            req.permissions,
            connector=req.connector,
            user_id=req.user_id,
            admin_user_ids=self._admin_policy.admin_user_ids,
        )

    def check_role_permission(
        self, request: RolePermissionRequest | Mapping[str, Any] | None = None, **fields: Any
    ) -> bool:
        return self.authorize_role_permission(request, **fields).success


def _as_dict(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, (PermissionPolicy, PermissionOverrides)):
        # attribute access keeps Role objects intact
        return {
            key: getattr(value, key)
            for key in ("statements", "roles", "default_role")
            if getattr(value, key) is not None
        }
    if isinstance(value, RolePermissionRequest):
        return value.model_dump(exclude_none=True)
    return dict(value)


_facade: DecisionFacade | None = None


def get_decision_facade() -> DecisionFacade:
    global _facade
    if _facade is None:
        _facade = DecisionFacade.from_settings(get_settings())
    return _facade


def reload_decision_facade(settings: Settings | None = None, **kwargs: Any) -> DecisionFacade:
    """Build a fresh instance and swap it in; the previous one stays valid for in-flight callers."""
    global _facade
    fresh = DecisionFacade.from_settings(settings, **kwargs)
    _facade = fresh
    log.info("decision_service.reloaded")
    return fresh
