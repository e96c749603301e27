from datetime import datetime
from typing import List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from console_rental.db.models import MembershipTransaction


class MembershipTransactionRepository:
    def __init__(self, session: Session):
        self.session = session

    def create_transaction(self, transaction: MembershipTransaction) -> None:
        self.session.add(transaction)
        logger.info(
            f"Membership transaction: member={transaction.member_id}, "
            f"kind={transaction.package_kind}, amount={transaction.amount}, "
            f"note={transaction.note}"
        )

    def list_for_member(self, member_id: str) -> List[MembershipTransaction]:
        return list(
            self.session.execute(
                select(MembershipTransaction)
                .where(MembershipTransaction.member_id == member_id)
                .order_by(MembershipTransaction.timestamp.desc())
            ).scalars()
        )

    def list_between(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[MembershipTransaction]:
        query = select(MembershipTransaction)
        if start is not None:
            query = query.where(MembershipTransaction.timestamp >= start)
        if end is not None:
            query = query.where(MembershipTransaction.timestamp < end)
        return list(
            self.session.execute(query.order_by(MembershipTransaction.timestamp)).scalars()
        )
