"""Entity-type capability registry and compatibility resolution.

Every entity type belongs to exactly one compatibility class. A single
backend query may only target one class, so mixed requests are narrowed to
the highest-priority class represented, with an advisory for the caller.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from graphsearch.contracts.graph_search_v1 import (
    CompatibilityClass,
    EntityType,
    EntityTypeCapabilities,
)
from graphsearch.orchestrators.search.constants import CLASS_PRIORITY, DEFAULT_ENTITY_TYPES

logger = logging.getLogger(__name__)


def _caps(
    entity_type: EntityType,
    compatibility_class: CompatibilityClass,
    label: str,
    *,
    aggregation: bool = False,
    collapse: bool = False,
    top_results: bool = False,
) -> EntityTypeCapabilities:
    return EntityTypeCapabilities(
        entity_type=entity_type,
        compatibility_class=compatibility_class,
        supports_aggregation=aggregation,
        supports_collapse=collapse,
        supports_top_results=top_results,
        display_label=label,
    )


BUILTIN_CAPABILITIES: tuple[EntityTypeCapabilities, ...] = (
    _caps(EntityType.DRIVE_ITEM, CompatibilityClass.CONTENT, "File/Folder", aggregation=True, collapse=True),
    _caps(EntityType.LIST_ITEM, CompatibilityClass.CONTENT, "List Item", aggregation=True, collapse=True),
    _caps(EntityType.EXTERNAL_ITEM, CompatibilityClass.CONTENT, "External Item", aggregation=True, collapse=True),
    _caps(EntityType.LIST, CompatibilityClass.CONTENT, "List"),
    _caps(EntityType.DRIVE, CompatibilityClass.CONTENT, "Document Library"),
    _caps(EntityType.MESSAGE, CompatibilityClass.MESSAGE, "Email", top_results=True),
    _caps(EntityType.CHAT_MESSAGE, CompatibilityClass.MESSAGE, "Chat Message"),
    _caps(EntityType.EVENT, CompatibilityClass.EVENT, "Calendar Event"),
    _caps(EntityType.PERSON, CompatibilityClass.PERSON, "Person"),
)


# Descriptive names callers may use instead of the wire tags.
ENTITY_TYPE_ALIASES: dict[str, EntityType] = {
    "document-item": EntityType.DRIVE_ITEM,
    "file": EntityType.DRIVE_ITEM,
    "list-record": EntityType.LIST_ITEM,
    "document-library": EntityType.DRIVE,
    "chat-message": EntityType.CHAT_MESSAGE,
    "email": EntityType.MESSAGE,
    "calendar-event": EntityType.EVENT,
    "directory-person": EntityType.PERSON,
}


@dataclass(frozen=True)
class EntityTypeResolution:
    """Single-class entity-type set plus an optional advisory for the caller."""

    entity_types: tuple[EntityType, ...]
    compatibility_class: CompatibilityClass
    advisory: str | None = None
    dropped: tuple[str, ...] = ()


class EntityCapabilityRegistry:
    """Stores and queries per-entity-type capabilities."""

    def __init__(self, capabilities: Iterable[EntityTypeCapabilities] = BUILTIN_CAPABILITIES) -> None:
        self._capabilities: dict[EntityType, EntityTypeCapabilities] = {}
        for caps in capabilities:
            self.register(caps)

    def register(self, capabilities: EntityTypeCapabilities) -> None:
        self._capabilities[capabilities.entity_type] = capabilities
        logger.debug(
            "Registered entity type: %s class=%s aggregation=%s collapse=%s",
            capabilities.entity_type,
            capabilities.compatibility_class,
            capabilities.supports_aggregation,
            capabilities.supports_collapse,
        )

    def get(self, entity_type: str) -> EntityTypeCapabilities | None:
        name = str(entity_type).strip()
        try:
            return self._capabilities.get(ENTITY_TYPE_ALIASES.get(name.lower()) or EntityType(name))
        except ValueError:
            return None

    def class_of(self, entity_type: str) -> CompatibilityClass | None:
        caps = self.get(entity_type)
        return caps.compatibility_class if caps else None

    def supports_aggregation(self, entity_types: Iterable[str]) -> bool:
        return any((c := self.get(t)) is not None and c.supports_aggregation for t in entity_types)

    def supports_collapse(self, entity_types: Iterable[str]) -> bool:
        return any((c := self.get(t)) is not None and c.supports_collapse for t in entity_types)

    def supports_top_results(self, entity_types: Iterable[str]) -> bool:
        types = list(entity_types)
        return bool(types) and all(
            (c := self.get(t)) is not None and c.supports_top_results for t in types
        )

    def label(self, entity_type: str) -> str:
        caps = self.get(entity_type)
        if caps and caps.display_label:
            return caps.display_label
        return entity_type

    def resolve(self, requested: Iterable[str] | None) -> EntityTypeResolution:
        """Narrow the requested entity types to one backend-compatible class.

        Unrecognized names are dropped silently. If nothing recognizable
        remains, the default set is used. When several classes are
        represented, the first class in CLASS_PRIORITY wins and the others are
        discarded with an advisory.
        """
        recognized: list[EntityType] = []
        dropped: list[str] = []
        for raw in requested or ():
            name = str(raw).strip()
            caps = self.get(name)
            if caps is None:
                dropped.append(name)
                continue
            if caps.entity_type not in recognized:
                recognized.append(caps.entity_type)

        if dropped:
            logger.debug("Resolver: dropped unrecognized entity types %s", dropped)

        if not recognized:
            recognized = list(DEFAULT_ENTITY_TYPES)

        by_class: dict[CompatibilityClass, list[EntityType]] = {}
        for entity_type in recognized:
            by_class.setdefault(self._capabilities[entity_type].compatibility_class, []).append(
                entity_type
            )

        if len(by_class) == 1:
            (only_class,) = by_class
            return EntityTypeResolution(
                entity_types=tuple(recognized),
                compatibility_class=only_class,
                dropped=tuple(dropped),
            )

        chosen = next(c for c in CLASS_PRIORITY if c in by_class)
        kept = tuple(by_class[chosen])
        discarded = [str(t) for c, types in by_class.items() if c != chosen for t in types]
        advisory = (
            "Incompatible entity types cannot be searched together; "
            f"searched {', '.join(str(t) for t in kept)} only "
            f"(skipped {', '.join(discarded)})."
        )
        logger.warning("Resolver: %s", advisory)
        return EntityTypeResolution(
            entity_types=kept,
            compatibility_class=chosen,
            advisory=advisory,
            dropped=tuple(dropped) + tuple(discarded),
        )


def resolve_entity_types(requested: Iterable[str] | None) -> EntityTypeResolution:
    """Resolve against the built-in capability table."""
    return _DEFAULT_REGISTRY.resolve(requested)


_DEFAULT_REGISTRY = EntityCapabilityRegistry()
