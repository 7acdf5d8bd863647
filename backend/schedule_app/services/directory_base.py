from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol


@dataclass(frozen=True)
class ProviderRecord:
    id: str
    name: str
    # Seven encoded day strings, index 0 = Sunday. May be malformed.
    weekly_template: List[str]


class ProviderDirectory(Protocol):
    def list_active_providers(self) -> List[ProviderRecord]:
        ...

    def find_provider_by_id(self, provider_id: str) -> Optional[ProviderRecord]:
        ...
