"""Cache Configuration

The location of the cache root and the behavior of lock acquisition are plain
values passed to `Cache` and `LockManager`. This module bundles them into a
single immutable `CacheConfig`, which can be read from a JSON file. Every
cooperating process on a host must use the same root, or the processes will
not see each other's locks.

The JSON representation looks like this, all keys are optional:

    {
        "root": "/var/cache",
        "interval": 0.000001,
        "timeout": null
    }
"""

import json
import os
from typing import Any, Dict, NamedTuple, Optional

import jsonschema

from plugincache.cache import DEFAULT_ROOT, Cache
from plugincache.exceptions import ConfigError
from plugincache.lock import DEFAULT_INTERVAL, LockManager

__all__ = [
    "SCHEMA",
    "CacheConfig",
    "load_config",
]


SCHEMA = {
    "$schema": "http://json-schema.org/draft-04/schema#",
    "title": "plugincache configuration",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "root": {
            "description": "Absolute path of the cache root",
            "type": "string",
            "pattern": "^/",
        },
        "interval": {
            "description": "Seconds to sleep between polls of a contended lock",
            "type": "number",
            "minimum": 0,
        },
        "timeout": {
            "description": "Seconds to wait for a lock, null waits forever",
            "type": ["number", "null"],
            "minimum": 0,
        },
    },
}


class CacheConfig(NamedTuple):
    """Cache Configuration

    root - Path of the cache root
    interval - Seconds to sleep between polls of a contended lock
    timeout - Seconds to wait for a lock by default, or `None` to wait forever
    """

    root: str = DEFAULT_ROOT
    interval: float = DEFAULT_INTERVAL
    timeout: Optional[float] = None

    @staticmethod
    def validate(data: Any):
        """Validate parsed JSON against `SCHEMA`

        Raises `ConfigError` listing every violation found.
        """

        validator = jsonschema.Draft4Validator(SCHEMA)
        errors = sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path))
        if errors:
            messages = []
            for error in errors:
                where = ".".join(str(p) for p in error.absolute_path) or "."
                messages.append(f"{where}: {error.message}")
            raise ConfigError("invalid cache configuration", messages)

    @classmethod
    def from_json(cls, data: Any) -> "CacheConfig":
        """Create a configuration from parsed JSON

        The input is validated first, missing keys take their default value.
        """

        cls.validate(data)

        root = data.get("root", DEFAULT_ROOT)
        interval = data.get("interval", DEFAULT_INTERVAL)
        timeout = data.get("timeout")

        return cls(
            root,
            float(interval),
            None if timeout is None else float(timeout),
        )

    def to_json(self) -> Dict[str, Any]:
        """Convert the configuration into parsed JSON"""

        return {
            "root": self.root,
            "interval": self.interval,
            "timeout": self.timeout,
        }

    def cache(self) -> Cache:
        return Cache(self.root)

    def lock_manager(self) -> LockManager:
        return LockManager(self.root, interval=self.interval, timeout=self.timeout)


def load_config(path: Any) -> CacheConfig:
    """Read a `CacheConfig` from the JSON file at 'path'

    Raises `ConfigError` if the file does not contain valid JSON or violates
    the schema. Errors opening the file are raised unmodified.
    """

    with open(os.fspath(path), encoding="utf8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"cannot parse {os.fspath(path)}: {e}") from None

    return CacheConfig.from_json(data)
