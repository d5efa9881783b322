"""Pydantic models for the authorization domain."""

import json

from pydantic import BaseModel, Field, field_validator


class Role(BaseModel):
    """
    A named set of permission strings such as "billing:read".

    Storage keeps permissions JSON-encoded, either as an array
    ('["billing:read"]') or as resource to actions
    ('{"billing": ["read", "update"]}'). Both are flattened into a set of
    "resource:action" strings here so nothing downstream sees the encoding.
    """

    id: str | None = None
    name: str = Field(..., min_length=1, max_length=100)
    permissions: frozenset[str] = frozenset()

    model_config = {"from_attributes": True, "frozen": True}

    @field_validator("permissions", mode="before")
    @classmethod
    def parse_permissions(cls, value):
        if value is None:
            return frozenset()
        if isinstance(value, str):
            value = json.loads(value) if value.strip() else []
        if isinstance(value, dict):
            return frozenset(
                f"{resource}:{action}"
                for resource, actions in value.items()
                for action in actions
            )
        return frozenset(value)
