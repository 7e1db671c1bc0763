"""
Audit trail for administrative actions.

Writing an audit event must never break the action being audited, so
``log_event`` records failures in the application log and returns False.
"""

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..config import get_config
from ..context.operation_context import operation
from ..db.db_user_models import AuditLog
from ..exceptions import BaseError
from ..schemas.user_schema import AuditLogRead
from ..utils.logger import get_logger
from .base_service import SessionManagedService


class AuditLogService(SessionManagedService):
    def __init__(self, session: Optional[Session] = None, enabled: Optional[bool] = None):
        super().__init__(read_schema_class=AuditLogRead, logger=get_logger(), session=session)
        self.enabled = enabled if enabled is not None else get_config().features.enable_audit_logging

    def log_event(
        self,
        user_id: Optional[str],
        action: str,
        ip_address: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Queue an audit record on the session; it is written with the caller's
        transaction. Errors are logged, not raised. Returns whether the
        record was accepted.
        """
        if not self.enabled:
            return False
        action_value = getattr(action, "value", action)
        try:
            self.session.add(
                AuditLog(
                    user_id=user_id,
                    action=action_value,
                    ip_address=ip_address,
                    details=details or {},
                )
            )
            return True
        except Exception as e:
            self.logger.error(
                f"Failed to write audit log: action={action_value}",
                extra={"user_id": user_id, "error_details": str(e)},
                exc_info=True,
            )
            return False

    @operation()
    def list_events(
        self,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        try:
            query = self.session.query(AuditLog)
            if user_id:
                query = query.filter(AuditLog.user_id == user_id)
            if action:
                query = query.filter(AuditLog.action == getattr(action, "value", action))
            query = query.order_by(AuditLog.created_at.desc())
            return self.paginate_query(query, page, page_size)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("list_events", e)
