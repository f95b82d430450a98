# backend/confedit/auth/permissions.py
from sqlalchemy import or_, select
from sqlalchemy.orm import Session
from .models import User, UserRole
from ..conferences.models import Conference, ConferenceEditor


class RolePermissionChecker:
    """Who may edit a conference.

    Only existing conferences are editable. Admins edit all of them; editors
    edit those they created or are assigned to; viewers and disabled accounts
    edit nothing.
    """

    def __init__(self, db: Session):
        self.db = db

    def can_edit(self, user_id: int, resource_id: int) -> bool:
        user = self.db.get(User, user_id)
        if user is None or not user.is_active:
            return False
        if user.role == UserRole.admin:
            return self.db.get(Conference, resource_id) is not None
        if user.role != UserRole.editor:
            return False
        assigned = select(ConferenceEditor.conference_id).where(ConferenceEditor.user_id == user_id)
        q = select(Conference.id).where(
            Conference.id == resource_id,
            or_(Conference.created_by == user_id, Conference.id.in_(assigned)),
        )
        return self.db.scalar(q) is not None
