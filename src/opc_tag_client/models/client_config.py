from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
import json
import logging
import socket

from opc_tag_client.errors import ConfigurationError
from opc_tag_client.models.tag_models import TagDataType

logger = logging.getLogger(__name__)


@dataclass
class SecurityConfig:
    """Certificate settings passed through to the OPC UA library untouched."""
    certificate_path: Optional[str] = None
    private_key_path: Optional[str] = None
    server_certificate_path: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return bool(self.certificate_path and self.private_key_path)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'certificate_path': self.certificate_path,
            'private_key_path': self.private_key_path,
            'server_certificate_path': self.server_certificate_path,
            'username': self.username,
            'password': self.password,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SecurityConfig':
        return cls(
            certificate_path=data.get('certificate_path'),
            private_key_path=data.get('private_key_path'),
            server_certificate_path=data.get('server_certificate_path'),
            username=data.get('username'),
            password=data.get('password'),
        )


@dataclass
class ReconnectPolicy:
    """Retry schedule for the reconnect loop.

    Defaults give a fixed 5 s interval with no attempt cap.
    """
    interval_s: float = 5.0
    backoff_factor: float = 1.0
    max_interval_s: float = 60.0
    max_attempts: Optional[int] = None

    def delay_for(self, failures: int) -> float:
        """Delay to wait after `failures` consecutive failed attempts."""
        if failures <= 1 or self.backoff_factor <= 1.0:
            return self.interval_s
        delay = self.interval_s * (self.backoff_factor ** (failures - 1))
        return min(delay, max(self.max_interval_s, self.interval_s))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'interval_s': self.interval_s,
            'backoff_factor': self.backoff_factor,
            'max_interval_s': self.max_interval_s,
            'max_attempts': self.max_attempts,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReconnectPolicy':
        return cls(
            interval_s=data.get('interval_s', 5.0),
            backoff_factor=data.get('backoff_factor', 1.0),
            max_interval_s=data.get('max_interval_s', 60.0),
            max_attempts=data.get('max_attempts'),
        )


@dataclass
class TagDefinition:
    """Catalog entry: a tag name, its expected type and its node address."""
    name: str
    data_type: TagDataType = TagDataType.STRING
    address: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'data_type': self.data_type.value,
            'address': self.address,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TagDefinition':
        try:
            data_type = TagDataType.from_name(data.get('data_type', 'String'))
        except ValueError as e:
            raise ConfigurationError(f"Tag '{data.get('name')}': {e}") from e
        return cls(
            name=data['name'],
            data_type=data_type,
            address=data.get('address'),
        )


def _default_application_uri() -> str:
    return f"urn:{socket.gethostname()}:OPCTagClient"


@dataclass
class ClientConfig:
    """Everything the tag client needs to reach a server and what to watch."""
    endpoint: str = "opc.tcp://127.0.0.1:4840"
    application_name: str = "OPCTagClient"
    application_uri: str = field(default_factory=_default_application_uri)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    session_timeout_ms: int = 60000
    request_timeout_s: float = 10.0
    publishing_interval_ms: int = 1000
    reconnect: ReconnectPolicy = field(default_factory=ReconnectPolicy)
    tags: List[TagDefinition] = field(default_factory=list)
    # Monitored items outside the catalog: display name -> node address
    extra_items: Dict[str, str] = field(default_factory=dict)
    accept_unknown_tags: bool = True

    def validate(self):
        """Raise ConfigurationError when the configuration cannot work."""
        if not self.endpoint or not self.endpoint.startswith("opc.tcp://"):
            raise ConfigurationError(f"Endpoint must start with opc.tcp:// (got '{self.endpoint}')")
        if not self.application_name:
            raise ConfigurationError("Application name is required")
        if self.publishing_interval_ms <= 0:
            raise ConfigurationError("Publishing interval must be positive")
        if self.request_timeout_s <= 0 or self.session_timeout_ms <= 0:
            raise ConfigurationError("Timeouts must be positive")
        if self.reconnect.interval_s <= 0:
            raise ConfigurationError("Reconnect interval must be positive")
        if self.reconnect.max_attempts is not None and self.reconnect.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1 when set")
        sec = self.security
        if bool(sec.certificate_path) != bool(sec.private_key_path):
            raise ConfigurationError("Certificate and private key must be configured together")

        seen = set()
        for tag in self.tags:
            if not tag.name:
                raise ConfigurationError("Tag names must not be empty")
            if tag.name in seen:
                raise ConfigurationError(f"Duplicate tag name: {tag.name}")
            seen.add(tag.name)

    def address_table(self) -> Dict[str, str]:
        """Name -> address for every catalog tag that has one."""
        return {t.name: t.address for t in self.tags if t.address}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'endpoint': self.endpoint,
            'application_name': self.application_name,
            'application_uri': self.application_uri,
            'security': self.security.to_dict(),
            'session_timeout_ms': self.session_timeout_ms,
            'request_timeout_s': self.request_timeout_s,
            'publishing_interval_ms': self.publishing_interval_ms,
            'reconnect': self.reconnect.to_dict(),
            'tags': [t.to_dict() for t in self.tags],
            'extra_items': dict(self.extra_items),
            'accept_unknown_tags': self.accept_unknown_tags,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ClientConfig':
        config = cls(
            endpoint=data.get('endpoint', "opc.tcp://127.0.0.1:4840"),
            application_name=data.get('application_name', "OPCTagClient"),
            application_uri=data.get('application_uri') or _default_application_uri(),
            session_timeout_ms=data.get('session_timeout_ms', 60000),
            request_timeout_s=data.get('request_timeout_s', 10.0),
            publishing_interval_ms=data.get('publishing_interval_ms', 1000),
            extra_items=dict(data.get('extra_items', {})),
            accept_unknown_tags=data.get('accept_unknown_tags', True),
        )
        config.security = SecurityConfig.from_dict(data.get('security', {}))
        config.reconnect = ReconnectPolicy.from_dict(data.get('reconnect', {}))
        config.tags = [TagDefinition.from_dict(t) for t in data.get('tags', [])]
        return config

    @classmethod
    def load(cls, filepath: str) -> 'ClientConfig':
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to load configuration {filepath}: {e}") from e
        config = cls.from_dict(data)
        logger.info(f"Loaded configuration from {filepath} ({len(config.tags)} tags)")
        return config

    def save(self, filepath: str):
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=4)
