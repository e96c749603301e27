from datetime import datetime
from typing import List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from console_rental.db.models import PricingRule


class PricingRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_rule(self, console_type: str) -> Optional[PricingRule]:
        return self.session.get(PricingRule, console_type)

    def list_rules(self) -> List[PricingRule]:
        return list(self.session.execute(select(PricingRule)).scalars())

    def upsert_rule(
        self, console_type: str, day_rate: int, night_rate: int, now: datetime
    ) -> PricingRule:
        rule = self.get_rule(console_type)
        if rule:
            rule.day_rate = day_rate
            rule.night_rate = night_rate
            rule.updated_at = now
        else:
            rule = PricingRule(
                console_type=console_type,
                day_rate=day_rate,
                night_rate=night_rate,
                updated_at=now,
            )
            self.session.add(rule)
        self.session.flush()
        logger.debug(f"Pricing rule {console_type}: day={day_rate} night={night_rate}")
        return rule
