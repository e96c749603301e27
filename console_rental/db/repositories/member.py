from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from console_rental.db.models import Member


class MemberRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, member_id: str) -> Optional[Member]:
        return self.session.get(Member, member_id)

    def refresh(self, member: Member) -> Member:
        """Reload the member and its package list from the database."""
        self.session.refresh(member)
        self.session.refresh(member, attribute_names=["packages"])
        return member

    def list_all(self) -> List[Member]:
        return list(self.session.execute(select(Member).order_by(Member.name)).scalars())

    def create_member(self, member: Member) -> None:
        self.session.add(member)
        self.session.flush()
