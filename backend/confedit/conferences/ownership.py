# backend/confedit/conferences/ownership.py
from sqlalchemy import or_, select
from sqlalchemy.orm import Session
from .models import Conference, ConferenceEditor


class ConferenceOwnershipIndex:
    """Conferences a user created or is assigned to edit."""

    def __init__(self, db: Session):
        self.db = db

    def resources_for(self, user_id: int) -> list[int]:
        assigned = select(ConferenceEditor.conference_id).where(ConferenceEditor.user_id == user_id)
        q = (
            select(Conference.id)
            .where(or_(Conference.created_by == user_id, Conference.id.in_(assigned)))
            .order_by(Conference.id)
        )
        return list(self.db.scalars(q))
