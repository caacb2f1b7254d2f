"""
Key Scheme

Storage keys follow the ``namespace:identifier[:variant]`` convention.
The namespace is the key's group: bulk invalidation (clear_group) works on
whatever shares it.

Examples:
    github:octocat:dark      -> group "github"
    LEETCODE:alice:cn        -> group "LEETCODE"
    http:GET:/api/github:... -> group "http"

Author: System Architect
Date: 2026-01-12
"""

import re
from dataclasses import dataclass

from badge_store.core.config.constants import (
    KEY_DELIMITER,
    KEY_PART_SANITIZE_PATTERN,
    NAMESPACE_BILIBILI,
    NAMESPACE_CSDN,
    NAMESPACE_GITHUB,
    NAMESPACE_JUEJIN,
    NAMESPACE_LEETCODE,
)
from badge_store.core.exceptions import InvalidKeyError

_SANITIZE_RE = re.compile(KEY_PART_SANITIZE_PATTERN)


@dataclass(frozen=True)
class KeyScheme:
    """
    Typed storage key.

    Attributes:
        namespace: Group prefix (e.g. "github")
        identifier: Entity id within the namespace (e.g. a username)
        variant: Optional qualifier (theme, region, ...). May itself
            contain the delimiter; everything after the second delimiter
            belongs to it.
    """
    namespace: str
    identifier: str
    variant: str | None = None

    def __post_init__(self):
        if not self.namespace:
            raise InvalidKeyError("Key namespace must not be empty")
        if KEY_DELIMITER in self.namespace:
            raise InvalidKeyError(
                f"Key namespace must not contain '{KEY_DELIMITER}'",
                details={"namespace": self.namespace},
            )
        if not self.identifier:
            raise InvalidKeyError(
                "Key identifier must not be empty", details={"namespace": self.namespace}
            )

    def __str__(self) -> str:
        parts = [self.namespace, self.identifier]
        if self.variant:
            parts.append(self.variant)
        return KEY_DELIMITER.join(parts)

    @property
    def key(self) -> str:
        return str(self)

    @property
    def group(self) -> str:
        return self.namespace

    @classmethod
    def parse(cls, key: str) -> "KeyScheme":
        """
        Parse a raw key string.

        Raises:
            InvalidKeyError: If the key has no namespace/identifier pair
        """
        if not key:
            raise InvalidKeyError("Key must not be empty")
        parts = key.split(KEY_DELIMITER, 2)
        if len(parts) < 2:
            raise InvalidKeyError(
                f"Key '{key}' does not follow namespace{KEY_DELIMITER}identifier",
                details={"key": key},
            )
        variant = parts[2] if len(parts) == 3 else None
        return cls(namespace=parts[0], identifier=parts[1], variant=variant)

    @staticmethod
    def group_of(key: str) -> str:
        """
        Group of an arbitrary key: the prefix up to the first delimiter.

        Keys without a delimiter form a group of their own.
        """
        return key.split(KEY_DELIMITER, 1)[0]


def sanitize_key_part(part) -> str:
    """Replace characters outside [a-zA-Z0-9_.-] with underscores."""
    return _SANITIZE_RE.sub("_", str(part))


class CacheKeyGenerator:
    """
    Builds keys for each supported platform.

    All methods return plain strings so callers can pass them straight to
    the cache or storage services.
    """

    @staticmethod
    def generate(prefix: str, *parts) -> str:
        """
        Build ``prefix:part1:part2...`` with every part sanitized.

        None parts are skipped.
        """
        clean = [sanitize_key_part(p) for p in parts if p is not None and p != ""]
        return KEY_DELIMITER.join([prefix, *clean])

    @staticmethod
    def github(username: str, theme: str = "default") -> str:
        return str(KeyScheme(NAMESPACE_GITHUB, sanitize_key_part(username), sanitize_key_part(theme)))

    @staticmethod
    def leetcode(username: str, cn: bool = False) -> str:
        region = "cn" if cn else "us"
        return str(KeyScheme(NAMESPACE_LEETCODE, sanitize_key_part(username), region))

    @staticmethod
    def csdn(user_id: str) -> str:
        return str(KeyScheme(NAMESPACE_CSDN, sanitize_key_part(user_id)))

    @staticmethod
    def juejin(user_id: str) -> str:
        return str(KeyScheme(NAMESPACE_JUEJIN, sanitize_key_part(user_id)))

    @staticmethod
    def bilibili(uid: str) -> str:
        return str(KeyScheme(NAMESPACE_BILIBILI, sanitize_key_part(uid)))
