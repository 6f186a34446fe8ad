"""
Entity Configuration Registry

Immutable in-memory model of the resources file: entities, their searches
and the links between them. Built once at startup by load() and never
mutated afterwards.
"""

import json
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from .errors import ConfigError, JsonPathSyntaxError
from .jsonpath import JsonPath, compile_path
from .models import JsonPathBindingDoc, LinkDoc, ResourceDoc, ResourcesDocument, SearchDoc
from .values import ParamType, known_param_types, lookup_param_type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParamSpec:
    """A search parameter; position is the 1-based placeholder index."""
    name: str
    type: ParamType
    position: int


@dataclass(frozen=True)
class Search:
    entity_id: str
    name: str
    query: str
    params: tuple = ()

    @property
    def param_types(self) -> tuple:
        return tuple(param.type for param in self.params)


@dataclass(frozen=True)
class ColumnBinding:
    """Copy a column of the source row."""
    column: str

    def __str__(self):
        return self.column


@dataclass(frozen=True)
class PathBinding:
    """Extract values from a JSON column of the source row."""
    column: str
    path: JsonPath

    def __str__(self):
        return f"{self.column}:{self.path}"


Binding = Union[ColumnBinding, PathBinding]


@dataclass(frozen=True)
class LinkCondition:
    binding: Binding
    equals: str


@dataclass(frozen=True)
class Link:
    source_entity: str
    name: str
    target_entity: str
    target_search: str
    bindings: tuple = ()
    condition: Optional[LinkCondition] = None


@dataclass(frozen=True)
class Entity:
    id: str
    name: str
    searches: Mapping[str, Search]
    links: Mapping[str, Link]


@dataclass(frozen=True)
class ConfigModel:
    """Validated configuration; all mappings are read-only."""
    entities: Mapping[str, Entity]

    def entity(self, entity_id: str) -> Entity:
        return self.entities[entity_id]

    def search(self, entity_id: str, search_name: str) -> Search:
        return self.entities[entity_id].searches[search_name]

    def link(self, entity_id: str, link_name: str) -> Link:
        return self.entities[entity_id].links[link_name]

    def link_target(self, link: Link) -> Search:
        return self.search(link.target_entity, link.target_search)

    def sorted_entities(self) -> list:
        """Entities in picker order (by display name)."""
        return sorted(self.entities.values(), key=lambda entity: (entity.name, entity.id))


# =============================================================================
# Loading
# =============================================================================

def _location(loc: tuple) -> str:
    return ".".join(str(part) for part in loc)


def _parse_document(document: Any) -> dict:
    if isinstance(document, ResourcesDocument):
        return document.root
    if not isinstance(document, Mapping):
        raise ConfigError("invalid_document", "", f"expected a mapping of entities, got {type(document).__name__}")
    try:
        return ResourcesDocument.model_validate(dict(document)).root
    except ValidationError as e:
        first = e.errors()[0]
        raise ConfigError("invalid_document", _location(first["loc"]), first["msg"]) from e


def _compile(path: Any, where: str) -> JsonPath:
    try:
        return compile_path(path)
    except JsonPathSyntaxError as e:
        raise ConfigError("invalid_json_path", where, str(e)) from e


def _build_binding(doc: Any, where: str) -> Binding:
    if isinstance(doc, JsonPathBindingDoc):
        column, path = doc.json_path
        return PathBinding(column, _compile(path, f"{where}.json_path"))
    return ColumnBinding(doc)


def _build_search(entity_id: str, search_name: str, doc: SearchDoc) -> Search:
    where = f"{entity_id}.search.{search_name}"
    if not search_name.strip():
        raise ConfigError("empty_identifier", where, "search names can't be empty")

    params = []
    seen = set()
    for index, param in enumerate(doc.params):
        param_type = lookup_param_type(param.type)
        if param_type is None:
            raise ConfigError(
                "unknown_param_type",
                f"{where}.params.{index}.type",
                f"unknown parameter type '{param.type}' (known types: {', '.join(known_param_types())})",
            )
        if param.name in seen:
            raise ConfigError("duplicate_param", f"{where}.params.{index}.name", f"parameter '{param.name}' is declared twice")
        seen.add(param.name)
        params.append(ParamSpec(param.name, param_type, index + 1))

    return Search(entity_id, search_name, doc.query, tuple(params))


def _condition_text(expected: Any) -> str:
    if isinstance(expected, bool):
        return "true" if expected else "false"
    if isinstance(expected, float):
        return json.dumps(expected)
    return str(expected)


def _build_link(entity_id: str, link_name: str, doc: LinkDoc, searches: dict) -> Link:
    where = f"{entity_id}.links.{link_name}"
    if not link_name.strip():
        raise ConfigError("empty_identifier", where, "link names can't be empty")

    target_searches = searches.get(doc.kind)
    if target_searches is None:
        raise ConfigError("unknown_entity", f"{where}.kind", f"link references a non existing resource {doc.kind}")

    target = target_searches.get(doc.search)
    if target is None:
        raise ConfigError(
            "unknown_search",
            f"{where}.search",
            f"referenced resource {doc.kind} has no search named {doc.search}",
        )

    if len(target.params) != len(doc.search_params):
        raise ConfigError(
            "binding_count_mismatch",
            f"{where}.search_params",
            f"referenced search {doc.search} has {len(target.params)} params "
            f"but link specifies {len(doc.search_params)}",
        )

    bindings = tuple(
        _build_binding(binding, f"{where}.search_params.{index}")
        for index, binding in enumerate(doc.search_params)
    )

    condition = None
    if doc.condition is not None:
        binding_doc, expected = doc.condition.eq
        condition = LinkCondition(_build_binding(binding_doc, f"{where}.if.eq.0"), _condition_text(expected))

    return Link(entity_id, link_name, doc.kind, doc.search, bindings, condition)


def load(document: Any) -> ConfigModel:
    """
    Validate a decoded resources document and build the ConfigModel.

    Two passes: every entity and search is collected first, then every link
    is checked against the already collected targets. Any problem raises
    ConfigError and no partial model is returned.
    """
    resources: dict[str, ResourceDoc] = _parse_document(document)

    searches: dict[str, dict] = {}
    display_names: dict[str, str] = {}

    for entity_id in sorted(resources):
        doc = resources[entity_id]
        if not entity_id.strip():
            raise ConfigError("empty_identifier", repr(entity_id), "resource identifiers can't be empty")
        if not doc.name.strip():
            raise ConfigError("empty_name", f"{entity_id}.name", f"resource {entity_id} has an empty name")
        other = display_names.get(doc.name)
        if other is not None:
            raise ConfigError("duplicate_name", f"{entity_id}.name", f"resource {entity_id} has the same name as {other}")
        display_names[doc.name] = entity_id

        searches[entity_id] = {
            search_name: _build_search(entity_id, search_name, search_doc)
            for search_name, search_doc in doc.search.items()
        }

    entities = {}
    for entity_id in sorted(resources):
        doc = resources[entity_id]
        links = {
            link_name: _build_link(entity_id, link_name, link_doc, searches)
            for link_name, link_doc in doc.links.items()
        }
        entities[entity_id] = Entity(
            id=entity_id,
            name=doc.name,
            searches=MappingProxyType(searches[entity_id]),
            links=MappingProxyType(links),
        )

    model = ConfigModel(MappingProxyType(entities))
    logger.info(
        f"✅ Loaded {len(entities)} resources, "
        f"{sum(len(e.searches) for e in entities.values())} searches, "
        f"{sum(len(e.links) for e in entities.values())} links"
    )
    return model
