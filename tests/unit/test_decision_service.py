from __future__ import annotations

import pytest

from authz_engine.auth.models import AdminPolicy
from authz_engine.configs.settings import Settings
from authz_engine.domain.entities.decision import AdminOptions, RolePermissionRequest
from authz_engine.errors import PolicyConfigError
from authz_engine.policy.table import new_role
from authz_engine.services import decision_service
from authz_engine.services.decision_service import (
    RESERVED_PATH_METHODS,
    DecisionFacade,
    get_decision_facade,
    reload_decision_facade,
)


def _settings(**values) -> Settings:
    return Settings(_env_file=None, **values)


@pytest.fixture
def facade() -> DecisionFacade:
    return DecisionFacade()


def test_check_admin_defaults(facade) -> None:
    assert facade.check_admin({"id": "u1", "role": "admin"}) is True
    assert facade.check_admin({"id": "u1", "role": "user"}) is False
    assert facade.check_admin(None) is False


def test_check_admin_per_call_options_override_defaults() -> None:
    facade = DecisionFacade({"admin_user_ids": ["root"]})
    # admin_roles replaced, admin_user_ids kept from the facade defaults
    options = {"adminRoles": ["org_admin", "site_admin"]}
    assert facade.check_admin({"id": "u2", "role": "org_admin"}, options) is True
    assert facade.check_admin({"id": "u3", "role": "member"}, options) is False
    assert facade.check_admin({"id": "u4", "role": "admin"}, options) is False
    assert facade.check_admin({"id": "root", "role": "member"}, options) is True


def test_check_admin_empty_admin_roles_is_literal(facade) -> None:
    assert facade.check_admin({"id": "u1", "role": "admin"}, {"admin_roles": []}) is False


def test_check_admin_none_field_keeps_default(facade) -> None:
    assert facade.check_admin({"id": "u1", "role": "admin"}, AdminOptions(admin_roles=None)) is True


def test_check_admin_identity_bypass(facade) -> None:
    options = {"adminUserIds": ["emergency_admin"], "adminRoles": ["super_admin"]}
    assert facade.check_admin({"id": "emergency_admin", "role": "user"}, options) is True


def test_check_admin_accepts_admin_policy(facade) -> None:
    assert facade.check_admin({"id": "x", "role": "boss"}, AdminPolicy(admin_roles="boss")) is True


def test_check_admin_invalid_options_denies(facade) -> None:
    assert facade.check_admin({"id": "u1", "role": "admin"}, {"admin_user_ids": [object()]}) is False


def test_check_role_permission(facade) -> None:
    assert facade.check_role_permission({"role": "admin", "permissions": {"user": ["ban"]}}) is True
    assert facade.check_role_permission({"role": "user", "permissions": {"user": ["ban"]}}) is False


def test_check_role_permission_keyword_form(facade) -> None:
    assert facade.check_role_permission(role="admin", permissions={"session": ["revoke"]}) is True


def test_deprecated_permission_alias(facade) -> None:
    assert facade.check_role_permission({"role": "admin", "permission": {"user": ["ban"]}}) is True


def test_permissions_wins_over_permission(facade) -> None:
    request = {
        "role": "admin",
        "permission": {"user": ["ban"]},
        "permissions": {"user": ["fly"]},
    }
    assert facade.check_role_permission(request) is False
    request = {
        "role": "user",
        "permission": {"user": ["ban"]},
        "permissions": {},
    }
    assert facade.check_role_permission(request) is True


def test_missing_permissions_is_denied(facade) -> None:
    assert facade.check_role_permission({"role": "admin"}) is False


def test_invalid_request_is_denied(facade) -> None:
    result = facade.authorize_role_permission({"role": "admin", "permissions": ["user"]})
    assert not result
    assert result.error == "invalid permission request"


def test_authorize_role_permission_reports_reason(facade) -> None:
    result = facade.authorize_role_permission(
        RolePermissionRequest(role="user", permissions={"session": ["revoke"]})
    )
    assert not result
    assert "session" in result.error


def test_custom_roles_merge_with_defaults() -> None:
    facade = DecisionFacade(
        policy_overrides={
            "statements": {"post": ["create", "delete"]},
            "roles": {"editor": new_role({"post": ["create"]}), "cleaner": {"post": ["delete"]}},
        }
    )
    assert facade.check_role_permission(role="editor", permissions={"post": ["create"]})
    assert facade.check_role_permission(role="editor, cleaner", permissions={"post": ["create", "delete"]})
    assert facade.check_role_permission(role="admin", permissions={"user": ["ban"]})
    assert not facade.check_role_permission(role="user", permissions={"post": ["create"]})


def test_action_requirement_or(facade) -> None:
    request = {"role": "admin", "permissions": {"user": {"actions": ["fly", "ban"], "connector": "or"}}}
    assert facade.check_role_permission(request) is True


def test_user_id_bypass_uses_facade_allowlist() -> None:
    facade = DecisionFacade({"adminUserIds": ["root"]})
    assert facade.check_role_permission(role="user", permissions={"user": ["ban"]}, userId="root")
    assert not facade.check_role_permission(role="user", permissions={"user": ["ban"]}, userId="bob")


def test_with_options_returns_new_instance(facade) -> None:
    other = facade.with_options({"admin_roles": ["owner"]})
    assert other is not facade
    assert other.check_admin({"id": "u", "role": "owner"}) is True
    assert facade.check_admin({"id": "u", "role": "owner"}) is False
    assert other.permission_policy.roles == facade.permission_policy.roles


def test_from_settings_parses_comma_separated_values() -> None:
    facade = DecisionFacade.from_settings(
        _settings(ADMIN_ROLES="org_admin, site_admin", ADMIN_USER_IDS="root,ops", DEFAULT_ROLE="admin")
    )
    assert facade.admin_policy.admin_roles == ("org_admin", "site_admin")
    assert facade.admin_policy.admin_user_ids == frozenset({"root", "ops"})
    assert facade.permission_policy.default_role == "admin"
    assert facade.check_role_permission(role="", permissions={"user": ["ban"]})


def test_from_settings_empty_admin_roles_is_literal() -> None:
    facade = DecisionFacade.from_settings(_settings(ADMIN_ROLES=""))
    assert facade.check_admin({"id": "u1", "role": "admin"}) is False


def test_from_settings_validates_policy() -> None:
    with pytest.raises(PolicyConfigError):
        DecisionFacade.from_settings(
            _settings(), policy_overrides={"roles": {"editor": {"post": ["create"]}}}
        )


def test_reload_swaps_instance(monkeypatch) -> None:
    monkeypatch.setattr(decision_service, "_facade", None)
    monkeypatch.setattr(decision_service, "get_settings", lambda: _settings())
    first = get_decision_facade()
    assert get_decision_facade() is first

    second = reload_decision_facade(_settings(ADMIN_ROLES="owner"))
    assert second is not first
    assert get_decision_facade() is second
    # the old instance is untouched
    assert first.check_admin({"id": "u", "role": "admin"}) is True
    assert second.check_admin({"id": "u", "role": "admin"}) is False


def test_reserved_path_methods() -> None:
    assert RESERVED_PATH_METHODS == {"/admin/list-users": "GET", "/admin/stop-impersonating": "POST"}


@pytest.mark.parametrize("request_value", ["admin", 42, ["role", "admin"], object()])
def test_non_mapping_request_is_denied(facade, request_value) -> None:
    assert facade.check_role_permission(request_value) is False
    result = facade.authorize_role_permission(request_value)
    assert result.error == "invalid permission request"


@pytest.mark.parametrize("admin_user_ids", [{1, "a"}, frozenset({2.5, "b"}), (None, "c")])
def test_mixed_type_admin_user_ids_are_denied(facade, admin_user_ids) -> None:
    assert facade.check_admin({"id": "a", "role": "user"}, {"adminUserIds": admin_user_ids}) is False


def test_bare_string_action_at_the_boundary(facade) -> None:
    assert facade.check_role_permission({"role": "admin", "permissions": {"user": "ban"}}) is True
    assert facade.check_role_permission({"role": "user", "permissions": {"user": "ban"}}) is False


def test_blank_admin_roles_keeps_facade_default() -> None:
    facade = DecisionFacade({"admin_roles": ["owner"]})
    assert facade.check_admin({"id": "u", "role": "owner"}, {"adminRoles": ""}) is True
    assert facade.check_admin({"id": "u", "role": "admin"}, {"adminRoles": ""}) is False


def test_from_settings_logs_service_identity(caplog) -> None:
    with caplog.at_level("INFO", logger="authz_engine.services.decision_service"):
        DecisionFacade.from_settings(_settings(SERVICE_NAME="billing-authz", ENVIRONMENT="staging"))
    assert "service=billing-authz environment=staging" in caplog.text
