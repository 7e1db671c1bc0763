"""Schemas for properties and units."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..enums import PropertyStatus, PropertyType, UnitStatus
from .mixins import IdMixin, ORMModel, SoftDeleteMixin, TimestampMixin


class PropertyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    address: str = Field(min_length=1, max_length=500)
    city: Optional[str] = Field(default=None, max_length=100)
    property_type: PropertyType
    total_units_count: int = Field(default=0, ge=0)
    total_square_footage: Optional[Decimal] = Field(default=None, ge=0)
    year_built: Optional[int] = Field(default=None, ge=1800, le=2100)
    amenities: Optional[str] = None
    manager_id: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class PropertyUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    address: Optional[str] = Field(default=None, min_length=1, max_length=500)
    city: Optional[str] = Field(default=None, max_length=100)
    property_type: Optional[PropertyType] = None
    status: Optional[PropertyStatus] = None
    total_units_count: Optional[int] = Field(default=None, ge=0)
    total_square_footage: Optional[Decimal] = Field(default=None, ge=0)
    year_built: Optional[int] = Field(default=None, ge=1800, le=2100)
    amenities: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class PropertyRead(ORMModel, IdMixin, TimestampMixin, SoftDeleteMixin):
    name: str
    address: str
    city: Optional[str] = None
    property_type: PropertyType
    status: PropertyStatus
    total_units_count: int
    total_square_footage: Optional[Decimal] = None
    year_built: Optional[int] = None
    amenities: Optional[str] = None
    manager_id: Optional[str] = None
    is_active: bool


class UnitCreate(BaseModel):
    unit_number: str = Field(min_length=1, max_length=20)
    floor: Optional[int] = None
    bedroom_count: Optional[int] = Field(default=None, ge=0)
    bathroom_count: Optional[int] = Field(default=None, ge=0)
    square_footage: Optional[Decimal] = Field(default=None, ge=0)
    monthly_rent: Optional[Decimal] = Field(default=None, ge=0)
    status: UnitStatus = UnitStatus.AVAILABLE

    model_config = ConfigDict(extra="ignore")


class UnitRead(ORMModel, IdMixin, TimestampMixin):
    property_id: str
    unit_number: str
    floor: Optional[int] = None
    bedroom_count: Optional[int] = None
    bathroom_count: Optional[int] = None
    square_footage: Optional[Decimal] = None
    monthly_rent: Optional[Decimal] = None
    status: UnitStatus


class PropertyOccupancy(BaseModel):
    property_id: str
    total_units: int
    available_units: int
    occupied_units: int
    under_maintenance_units: int
    reserved_units: int
    occupancy_rate: float
