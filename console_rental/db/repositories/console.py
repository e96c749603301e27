from typing import List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from console_rental.db.models import Console


class ConsoleRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, console_id: str) -> Optional[Console]:
        return self.session.get(Console, console_id)

    def list_all(self) -> List[Console]:
        return list(self.session.execute(select(Console).order_by(Console.name)).scalars())

    def create_console(self, console: Console) -> None:
        self.session.add(console)
        self.session.flush()

    def delete_console(self, console: Console) -> None:
        self.session.delete(console)
        self.session.flush()
        logger.info(f"Deleted console {console.id}")
