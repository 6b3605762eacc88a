from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Envelope(BaseModel):
    # camelCase keys from JS-style clients and snake_case both accepted
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AdminOptions(Envelope):
    """
    Per-call or per-engine admin settings. Unset (None) fields fall back to
    the engine defaults; an explicit empty list is kept as-is.
    """

    admin_roles: Optional[str | list[str]] = Field(default=None, alias="adminRoles")
    admin_user_ids: Optional[list[str]] = Field(default=None, alias="adminUserIds")

    @field_validator("admin_roles", mode="before")
    @classmethod
    def normalize_admin_roles(cls, v):
        if v == "":
            return None
        if isinstance(v, (tuple, set, frozenset)):
            return list(v)
        return v

    @field_validator("admin_user_ids", mode="before")
    @classmethod
    def normalize_admin_user_ids(cls, v):
        if isinstance(v, str):
            return [v]
        if isinstance(v, (tuple, set, frozenset)):
            return list(v)
        return v


class PermissionOverrides(Envelope):
    statements: Optional[dict[str, list[str]]] = None
    # Role objects, statement mappings or lists of either
    roles: Optional[dict[str, Any]] = None
    default_role: Optional[str] = Field(default=None, alias="defaultRole")


class ActionRequirement(BaseModel):
    actions: list[str]
    connector: Literal["AND", "OR"] = "AND"

    @field_validator("connector", mode="before")
    @classmethod
    def normalize_connector(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v


class RolePermissionRequest(Envelope):
    role: Optional[str] = None
    permissions: Optional[dict[str, str | list[str] | ActionRequirement]] = None
    connector: Literal["AND", "OR"] = "AND"
    user_id: Optional[str] = Field(default=None, alias="userId")

    @model_validator(mode="before")
    @classmethod
    def resolve_permission_alias(cls, data):
        # `permission` is the deprecated spelling; `permissions` wins if both are sent
        if isinstance(data, dict) and "permission" in data:
            data = dict(data)
            legacy = data.pop("permission")
            if data.get("permissions") is None:
                data["permissions"] = legacy
        return data

    @field_validator("connector", mode="before")
    @classmethod
    def normalize_connector(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v
