"""Properties and their units."""

from typing import Any, Dict, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..context.operation_context import operation
from ..db.db_property_models import Property, Unit
from ..db.db_user_models import User
from ..enums import PropertyStatus, PropertyType, UnitStatus
from ..exceptions import BaseError, duplicate, invalid_state, not_found
from ..schemas.property_schema import (
    PropertyCreate,
    PropertyOccupancy,
    PropertyRead,
    PropertyUpdate,
    UnitCreate,
    UnitRead,
)
from ..utils.crud_helpers import apply_updates, get_record_by_id, record_exists
from ..utils.logger import get_logger
from .base_service import SessionManagedService


class PropertyService(SessionManagedService):
    def __init__(self, session: Optional[Session] = None):
        super().__init__(read_schema_class=PropertyRead, logger=get_logger(), session=session)

    def _get_property_or_raise(self, property_id: str, include_deleted: bool = False) -> Property:
        prop = get_record_by_id(self.session, Property, property_id, include_deleted)
        if prop is None:
            raise not_found("Property", property_id=property_id)
        return prop

    def _check_name_available(self, name: str, exclude_id: Optional[str] = None) -> None:
        if record_exists(self.session, Property, {"name": name}, exclude_id=exclude_id):
            raise duplicate(
                "Property", message="Property with this name already exists", name=name
            )

    @operation()
    def create_property(self, data: PropertyCreate, created_by: Optional[str] = None) -> PropertyRead:
        try:
            self._check_name_available(data.name)
            prop = Property(
                **data.model_dump(exclude={"property_type"}),
                property_type=data.property_type.value,
                status=PropertyStatus.ACTIVE.value,
                is_active=True,
                created_by=created_by,
            )
            self.session.add(prop)
            self.session.flush()
            self.logger.info(f"Created property: id={prop.id}, name={prop.name}")
            return PropertyRead.model_validate(prop)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("create_property", e)

    @operation()
    def get_property(self, property_id: str) -> PropertyRead:
        return PropertyRead.model_validate(self._get_property_or_raise(property_id))

    @operation()
    def update_property(self, property_id: str, data: PropertyUpdate) -> PropertyRead:
        try:
            prop = self._get_property_or_raise(property_id)
            updates = data.model_dump(exclude_unset=True, exclude_none=True)
            if "name" in updates and updates["name"] != prop.name:
                self._check_name_available(updates["name"], exclude_id=prop.id)
            changes = apply_updates(prop, updates)
            if "status" in changes:
                prop.is_active = prop.status == PropertyStatus.ACTIVE.value
            self.session.flush()
            self.logger.info(f"Updated property: id={prop.id}, fields={sorted(changes)}")
            return PropertyRead.model_validate(prop)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("update_property", e, property_id)

    @operation()
    def search_properties(
        self,
        search: Optional[str] = None,
        property_type: Optional[PropertyType] = None,
        status: Optional[PropertyStatus] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        try:
            query = self.session.query(Property).filter(Property.is_deleted.is_(False))
            if search:
                pattern = f"%{search.strip()}%"
                query = query.filter(
                    or_(
                        Property.name.ilike(pattern),
                        Property.address.ilike(pattern),
                        Property.city.ilike(pattern),
                    )
                )
            if property_type:
                query = query.filter(Property.property_type == PropertyType(property_type).value)
            if status:
                query = query.filter(Property.status == PropertyStatus(status).value)
            query = query.order_by(Property.name)
            return self.paginate_query(query, page, page_size)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("search_properties", e)

    @operation()
    def assign_manager(self, property_id: str, manager_id: str) -> PropertyRead:
        prop = self._get_property_or_raise(property_id)
        if self.session.get(User, manager_id) is None:
            raise not_found("Manager", manager_id=manager_id)
        prop.manager_id = manager_id
        self.session.flush()
        self.logger.info(f"Assigned manager: property_id={prop.id}, manager_id={manager_id}")
        return PropertyRead.model_validate(prop)

    @operation()
    def add_unit(self, property_id: str, data: UnitCreate) -> UnitRead:
        try:
            prop = self._get_property_or_raise(property_id)
            if record_exists(
                self.session, Unit, {"property_id": prop.id, "unit_number": data.unit_number}
            ):
                raise duplicate(
                    "Unit",
                    message=f"Unit {data.unit_number} already exists in this property",
                    property_id=prop.id,
                    unit_number=data.unit_number,
                )
            unit = Unit(
                **data.model_dump(exclude={"status"}),
                property_id=prop.id,
                status=data.status.value,
            )
            self.session.add(unit)
            self.session.flush()
            self.logger.info(f"Added unit: id={unit.id}, property_id={prop.id}")
            return UnitRead.model_validate(unit)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("add_unit", e, property_id)

    @operation()
    def update_unit_status(self, unit_id: str, status: UnitStatus) -> UnitRead:
        unit = self.session.get(Unit, unit_id)
        if unit is None:
            raise not_found("Unit", unit_id=unit_id)
        unit.status = UnitStatus(status).value
        self.session.flush()
        return UnitRead.model_validate(unit)

    def _unit_status_counts(self, property_id: str) -> Dict[str, int]:
        rows = (
            self.session.query(Unit.status, func.count(Unit.id))
            .filter(Unit.property_id == property_id)
            .group_by(Unit.status)
            .all()
        )
        return dict(rows)

    @operation()
    def get_property_occupancy(self, property_id: str) -> PropertyOccupancy:
        prop = self._get_property_or_raise(property_id)
        counts = self._unit_status_counts(prop.id)
        total = sum(counts.values())
        occupied = counts.get(UnitStatus.OCCUPIED.value, 0)
        return PropertyOccupancy(
            property_id=prop.id,
            total_units=total,
            available_units=counts.get(UnitStatus.AVAILABLE.value, 0),
            occupied_units=occupied,
            under_maintenance_units=counts.get(UnitStatus.UNDER_MAINTENANCE.value, 0),
            reserved_units=counts.get(UnitStatus.RESERVED.value, 0),
            occupancy_rate=round(occupied / total * 100, 2) if total else 0.0,
        )

    @operation()
    def delete_property(self, property_id: str, deleted_by: Optional[str] = None) -> None:
        prop = self._get_property_or_raise(property_id)
        if self._unit_status_counts(prop.id).get(UnitStatus.OCCUPIED.value, 0):
            raise invalid_state(
                "Cannot delete property with occupied units", property_id=property_id
            )
        prop.mark_deleted(deleted_by)
        prop.is_active = False
        self.session.flush()
        self.logger.info(f"Deleted property: id={prop.id}")

    @operation()
    def restore_property(self, property_id: str) -> PropertyRead:
        prop = self._get_property_or_raise(property_id, include_deleted=True)
        if not prop.is_deleted:
            raise invalid_state("Property is not deleted", property_id=property_id)
        if record_exists(self.session, Property, {"name": prop.name}, exclude_id=prop.id):
            raise duplicate(
                "Property", message="Property with this name already exists", name=prop.name
            )
        prop.restore()
        prop.is_active = prop.status == PropertyStatus.ACTIVE.value
        self.session.flush()
        self.logger.info(f"Restored property: id={prop.id}")
        return PropertyRead.model_validate(prop)
