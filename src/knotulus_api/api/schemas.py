"""
knotulus_api.api.schemas

Request/response models for the public endpoints. JSON field names are camelCase
to match the browser scripts.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from knotulus_api.services.financial_summary import FinancialSummary


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JoinWaitlistRequest(ApiModel):
    name: str = Field(min_length=1, max_length=256)
    email: str = Field(min_length=1, max_length=320)


class JoinWaitlistResponse(ApiModel):
    success: bool = True
    user_id: str
    exists: bool | None = None
    message: str | None = None


class ListUsersResponse(ApiModel):
    success: bool = True
    users: list[dict[str, Any]]


class DeleteUserRequest(ApiModel):
    user_id: str = Field(min_length=1)


class SaveShopCredentialRequest(ApiModel):
    shop_name: str = Field(min_length=1, max_length=255)
    access_token: str = Field(min_length=1, repr=False)
    user_id: str = Field(min_length=1)


class FinancialSummaryRequest(ApiModel):
    user_id: str = Field(min_length=1)
    shop_name: str = Field(min_length=1, max_length=255)
    # Days per period; strict so "30" or 30.5 are rejected rather than coerced.
    period: int = Field(gt=0, strict=True)


class SuccessResponse(ApiModel):
    success: bool = True


class FinancialSummaryResponse(ApiModel):
    success: bool = True
    data: FinancialSummary
