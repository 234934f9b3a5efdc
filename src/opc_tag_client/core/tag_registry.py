import dataclasses
import logging
import threading
from typing import Dict, Iterable, List, Optional

from opc_tag_client.models.tag_models import Tag, TagDataType

logger = logging.getLogger(__name__)


class TagRegistry:
    """
    Catalog of tags and their last known values, keyed by display name.

    Registration may happen from any thread. Value changes go through
    `upsert`, which is only called by actions drained on the consumer thread.
    """

    def __init__(self):
        self._tags: Dict[str, Tag] = {}
        self._lock = threading.RLock()

    @classmethod
    def from_catalog(cls, definitions: Iterable) -> 'TagRegistry':
        """Build a registry from TagDefinition-like objects (name, data_type)."""
        registry = cls()
        for definition in definitions:
            registry.register(definition.name, definition.data_type)
        return registry

    def register(self, name: str, data_type: TagDataType = TagDataType.NULL) -> Tag:
        """Add a tag if it is not present yet. Returns the registered tag."""
        with self._lock:
            existing = self._tags.get(name)
            if existing is not None:
                logger.debug(f"Tag already registered: {name}")
                return existing
            tag = Tag(display_name=name, data_type=data_type)
            self._tags[name] = tag
            return tag

    def find(self, name: str) -> Optional[Tag]:
        with self._lock:
            return self._tags.get(name)

    def snapshot(self, name: str) -> Optional[Tag]:
        """Consistent copy of a tag, safe to read off the consumer thread."""
        with self._lock:
            tag = self._tags.get(name)
            return dataclasses.replace(tag) if tag is not None else None

    def upsert(self, name: str, value: str, timestamp: str, data_type: TagDataType) -> Tag:
        """Store a new value for `name`, creating the tag if it was never registered."""
        with self._lock:
            tag = self._tags.get(name)
            if tag is None:
                logger.info(f"Registering tag from notification: {name} ({data_type.value})")
                tag = Tag(display_name=name)
                self._tags[name] = tag
            tag.value = value
            tag.source_timestamp = timestamp
            tag.data_type = data_type
            return tag

    def names(self) -> List[str]:
        with self._lock:
            return list(self._tags)

    def tags(self) -> List[Tag]:
        with self._lock:
            return list(self._tags.values())

    def __contains__(self, name) -> bool:
        with self._lock:
            return name in self._tags

    def __len__(self) -> int:
        with self._lock:
            return len(self._tags)
