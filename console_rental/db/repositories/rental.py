from datetime import datetime
from typing import List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from console_rental.db.models import RentalSession


class RentalRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, session_id: str) -> Optional[RentalSession]:
        return self.session.get(RentalSession, session_id)

    def create_session(self, rental: RentalSession) -> None:
        self.session.add(rental)
        self.session.flush()

    def get_active_for_console(self, console_id: str) -> Optional[RentalSession]:
        return self.session.execute(
            select(RentalSession).where(
                RentalSession.console_id == console_id,
                RentalSession.is_active.is_(True),
            )
        ).scalar_one_or_none()

    def list_active(self) -> List[RentalSession]:
        result = (
            self.session.execute(
                select(RentalSession).where(RentalSession.is_active.is_(True))
            )
            .scalars()
            .all()
        )
        sessions = list(result)
        logger.debug(f"Active sessions: {[s.id for s in sessions]}")
        return sessions

    def list_closed_between(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[RentalSession]:
        query = select(RentalSession).where(RentalSession.is_active.is_(False))
        if start is not None:
            query = query.where(RentalSession.start_time >= start)
        if end is not None:
            query = query.where(RentalSession.start_time < end)
        return list(self.session.execute(query.order_by(RentalSession.start_time)).scalars())
