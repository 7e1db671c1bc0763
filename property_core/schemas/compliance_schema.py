"""Schemas for compliance requirements."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..enums import ComplianceCategory, ComplianceFrequency, RequirementStatus
from .mixins import IdMixin, ORMModel, SoftDeleteMixin, TimestampMixin


class ComplianceRequirementCreate(BaseModel):
    requirement_name: str = Field(min_length=1, max_length=200)
    category: ComplianceCategory
    description: Optional[str] = None
    applicable_properties: Optional[List[str]] = None
    frequency: ComplianceFrequency
    authority_agency: Optional[str] = Field(default=None, max_length=200)
    penalty_description: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class ComplianceRequirementUpdate(BaseModel):
    requirement_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[ComplianceCategory] = None
    description: Optional[str] = None
    applicable_properties: Optional[List[str]] = None
    frequency: Optional[ComplianceFrequency] = None
    authority_agency: Optional[str] = Field(default=None, max_length=200)
    penalty_description: Optional[str] = None
    status: Optional[RequirementStatus] = None

    model_config = ConfigDict(extra="ignore")


class ComplianceRequirementRead(ORMModel, IdMixin, TimestampMixin, SoftDeleteMixin):
    requirement_number: str
    requirement_name: str
    category: ComplianceCategory
    description: Optional[str] = None
    applicable_properties: Optional[List[str]] = None
    frequency: ComplianceFrequency
    authority_agency: Optional[str] = None
    penalty_description: Optional[str] = None
    status: RequirementStatus
