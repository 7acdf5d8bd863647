from __future__ import annotations

from typing import List, Optional

from sqlmodel import Session, select

from ..db import store_errors
from ..models import Provider
from .codec import split_template
from .directory_base import ProviderDirectory, ProviderRecord


def _to_record(p: Provider) -> ProviderRecord:
    return ProviderRecord(id=p.id, name=p.name, weekly_template=split_template(p.fixed_times))


class SqlProviderDirectory(ProviderDirectory):
    """
    Read-only view of the provider table.
    Profile management lives in another service; only ids and templates are needed here.
    """

    def __init__(self, session: Session):
        self.session = session

    def list_active_providers(self) -> List[ProviderRecord]:
        with store_errors():
            rows = self.session.exec(
                select(Provider).where(Provider.is_active == True).order_by(Provider.id)  # noqa: E712
            ).all()
        return [_to_record(p) for p in rows]

    def find_provider_by_id(self, provider_id: str) -> Optional[ProviderRecord]:
        with store_errors():
            p = self.session.get(Provider, provider_id)
        return _to_record(p) if p else None
