"""
API Dependencies - Gemeinsame Abhängigkeiten für Endpoints
"""
from typing import Annotated
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from sprout.database import get_db

# Type Alias für DB Session Dependency
DBSession = Annotated[Session, Depends(get_db)]


def get_user_id(x_user_id: Annotated[str | None, Header()] = None) -> str | None:
    """Auslöser für Buchungen und Protokoll (vom vorgelagerten Gateway gesetzt)"""
    return x_user_id


UserId = Annotated[str | None, Depends(get_user_id)]


# Pagination Parameter
class PaginationParams:
    """Standard Pagination Parameter"""
    def __init__(
        self,
        page: int = 1,
        page_size: int = 20,
        max_page_size: int = 100
    ):
        self.page = max(1, page)
        self.page_size = min(max(1, page_size), max_page_size)
        self.offset = (self.page - 1) * self.page_size


Pagination = Annotated[PaginationParams, Depends()]
