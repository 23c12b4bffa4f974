from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Reversible translation between internal tool names and the restricted
alphabet (`^[a-zA-Z0-9_-]{1,128}$`) accepted by model providers.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from .types import ToolDefinition

logger = logging.getLogger(__name__)

MAX_TOOL_NAME_LENGTH = 128
NAMESPACE_SEPARATOR = ":"
SEPARATOR_TOKEN = "__COLON__"

_ILLEGAL_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


@dataclass(frozen=True, slots=True)
class ToolNameCollision:
    """Two distinct original names that sanitized to the same string."""

    original: str
    existing_original: str
    base_name: str
    disambiguated: str


@dataclass(slots=True)
class ToolNameMapping:
    """
    Per-invocation `sanitized -> original` table.

    Sanitized names are unique within one mapping.
    """

    names: dict[str, str] = field(default_factory=dict)
    collisions: list[ToolNameCollision] = field(default_factory=list)

    def __contains__(self, sanitized: object) -> bool:
        return sanitized in self.names

    def __len__(self) -> int:
        return len(self.names)

    def get(self, sanitized: str) -> str | None:
        return self.names.get(sanitized)

    def sanitized_names(self) -> list[str]:
        return list(self.names.keys())


class ToolNameCodec:
    """
    Sanitizes tool names for the wire and restores them from responses.

    `gateway_prefixes` lists strings some OpenAI-compatible proxies prepend
    to tool names in their responses; they are only stripped when a mapping
    can confirm the stripped name.
    """

    def __init__(self, gateway_prefixes: Sequence[str] = ("proxy_",)) -> None:
        self.gateway_prefixes = tuple(p for p in gateway_prefixes if p)

    def sanitize(self, name: str, suffix: str | None = None) -> str:
        sanitized = name.replace(NAMESPACE_SEPARATOR, SEPARATOR_TOKEN)
        sanitized = _ILLEGAL_CHARS.sub("_", sanitized)

        if suffix:
            suffix_str = f"_{suffix}"
            # Truncate the base, never the suffix.
            max_base = MAX_TOOL_NAME_LENGTH - len(suffix_str)
            return f"{sanitized[:max_base]}{suffix_str}"

        return sanitized[:MAX_TOOL_NAME_LENGTH]

    def restore(self, sanitized: str, mapping: ToolNameMapping | None = None) -> str:
        if mapping is not None:
            original = mapping.get(sanitized)
            if original is not None:
                return original

            for prefix in self.gateway_prefixes:
                if sanitized.startswith(prefix):
                    original = mapping.get(sanitized[len(prefix):])
                    if original is not None:
                        return original

        # No mapping could vouch for a stripped prefix; only undo the separator.
        return sanitized.replace(SEPARATOR_TOKEN, NAMESPACE_SEPARATOR)

    def build_mapping(self, tools: Iterable[ToolDefinition]) -> ToolNameMapping:
        """Sanitize every tool name in input order, disambiguating collisions."""
        mapping = ToolNameMapping()
        collision_counts: dict[str, int] = {}

        for tool in tools:
            sanitized = self.sanitize(tool.name)
            existing = mapping.names.get(sanitized)

            if existing is not None and existing != tool.name:
                count = collision_counts.get(sanitized, 0) + 1
                collision_counts[sanitized] = count
                disambiguated = self.sanitize(tool.name, str(count))
                # A suffixed name can itself be taken by a literal tool name.
                while disambiguated in mapping.names:
                    count += 1
                    collision_counts[sanitized] = count
                    disambiguated = self.sanitize(tool.name, str(count))

                collision = ToolNameCollision(
                    original=tool.name,
                    existing_original=existing,
                    base_name=sanitized,
                    disambiguated=disambiguated,
                )
                mapping.collisions.append(collision)
                logger.warning(
                    "Tool name collision: %r and %r both sanitize to %r; using %r",
                    tool.name,
                    existing,
                    sanitized,
                    disambiguated,
                )
                sanitized = disambiguated

            mapping.names[sanitized] = tool.name

        return mapping
