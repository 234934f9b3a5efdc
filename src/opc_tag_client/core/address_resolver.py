import logging
from typing import Dict, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)


class AddressResolver:
    """Static display name -> node address table.

    The table is copied at construction and never changes afterwards, so
    lookups are pure and thread-safe. Unknown names resolve to None; there is
    no default address.
    """

    def __init__(self, table: Optional[Mapping[str, str]] = None):
        self._table: Dict[str, str] = {}
        for name, address in (table or {}).items():
            if not address:
                logger.warning(f"Ignoring empty address for tag '{name}'")
                continue
            self._table[name] = address

    @classmethod
    def from_catalog(cls, definitions: Iterable, extra: Optional[Mapping[str, str]] = None) -> 'AddressResolver':
        table = {d.name: d.address for d in definitions if d.address}
        if extra:
            table.update(extra)
        return cls(table)

    def resolve(self, name: str) -> Optional[str]:
        return self._table.get(name)

    def names(self) -> List[str]:
        return list(self._table)

    def __contains__(self, name) -> bool:
        return name in self._table

    def __len__(self) -> int:
        return len(self._table)
