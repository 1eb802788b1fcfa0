"""Shared Pydantic base models and utilities."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class FlarewiseBase(BaseModel):
    """Base model with shared config for all Flarewise schemas.

    Fields serialize as camelCase (``sampleSize``, ``lagHours``) for the
    dashboard client; requests accept either casing.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
    )


class ErrorDetail(BaseModel):
    detail: str
