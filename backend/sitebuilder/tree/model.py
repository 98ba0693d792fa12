# sitebuilder/tree/model.py
"""
Component tree model.

A page's content is stored as an arena: every component is addressed by
its id, each parent (including the synthetic ROOT) owns an ordered tuple
of child ids, and a parent index answers "where does this node live".
No node holds a reference to another node, so cycle checks and lookups
walk ids rather than object graphs.

Trees are immutable values. The mutation engine builds a new tree for
every successful operation and shares untouched nodes with the old one.
"""
from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from sitebuilder.domain.exceptions import (
    ComponentNotFound,
    DepthExceeded,
    DuplicateID,
    InvalidIdentifier,
    InvalidOperation,
    InvalidProperty,
)
from sitebuilder.utils.identifiers import ROOT, canonical_component_id, new_id

MAX_TREE_DEPTH = 32
MAX_PROP_DEPTH = 8

_TYPE_MAX_LEN = 64


# -------------------------------------------------
# Property values
# -------------------------------------------------

class PropKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    MAPPING = "mapping"
    LIST = "list"


class _Remove:
    """Patch sentinel: deletes the property it is assigned to."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "REMOVE"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


REMOVE = _Remove()


def prop_kind(value: Any) -> PropKind:
    # bool before number: bool is an int subclass
    if isinstance(value, bool):
        return PropKind.BOOLEAN
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise InvalidProperty("Numeric properties must be finite")
        return PropKind.NUMBER
    if isinstance(value, str):
        return PropKind.STRING
    if isinstance(value, Mapping):
        return PropKind.MAPPING
    if isinstance(value, (list, tuple)):
        return PropKind.LIST
    raise InvalidProperty(
        f"Unsupported property value of type {type(value).__name__}"
    )


def _validate_value(value: Any, depth: int) -> Any:
    if depth > MAX_PROP_DEPTH:
        raise InvalidProperty("Property value is nested too deeply")

    kind = prop_kind(value)

    if kind is PropKind.MAPPING:
        return _validate_mapping(value, depth + 1)
    if kind is PropKind.LIST:
        return [_validate_value(item, depth + 1) for item in value]
    return value


def _validate_mapping(props: Mapping, depth: int) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in props.items():
        if not isinstance(key, str) or not key:
            raise InvalidProperty(f"Property names must be non-empty strings: {key!r}")
        result[key] = _validate_value(value, depth)
    return result


def validate_props(props: Optional[Mapping]) -> Dict[str, Any]:
    """
    Validate a property mapping against the supported value kinds and
    return a private deep copy of it.
    """
    if props is None:
        return {}
    if not isinstance(props, Mapping):
        raise InvalidProperty("Component props must be a mapping")
    return _validate_mapping(props, 1)


def props_signature(value: Any) -> Any:
    """
    Comparison key that keeps value kinds apart: ``True`` and ``1`` are
    equal under ``==`` but are different property values.
    """
    kind = prop_kind(value)
    if kind is PropKind.MAPPING:
        return kind, tuple(sorted((key, props_signature(item)) for key, item in value.items()))
    if kind is PropKind.LIST:
        return kind, tuple(props_signature(item) for item in value)
    return kind, value


def validate_type(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidOperation("Component type is required")
    type_tag = value.strip().lower()
    if len(type_tag) > _TYPE_MAX_LEN:
        raise InvalidOperation(f"Component type is too long: {value!r}")
    return type_tag


# -------------------------------------------------
# Nodes
# -------------------------------------------------

@dataclass(frozen=True, eq=False)
class Node:
    """Arena entry: a component without its structural position."""
    id: str
    type: str
    props: Dict[str, Any] = field(default_factory=dict)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return (
            self.id == other.id
            and self.type == other.type
            and props_signature(self.props) == props_signature(other.props)
        )

    __hash__ = None


@dataclass(frozen=True)
class Component:
    """Read-only view of a component and where it sits in the tree."""
    id: str
    type: str
    props: Dict[str, Any]
    parent_id: str
    order: int
    children: Tuple[str, ...]
    depth: int


# -------------------------------------------------
# Tree
# -------------------------------------------------

class ComponentTree:
    __slots__ = ("_nodes", "_children", "_parents")

    def __init__(
        self,
        nodes: Optional[Dict[str, Node]] = None,
        children: Optional[Dict[str, Tuple[str, ...]]] = None,
        parents: Optional[Dict[str, str]] = None,
    ):
        self._nodes: Dict[str, Node] = nodes or {}
        self._children: Dict[str, Tuple[str, ...]] = children or {ROOT: ()}
        self._parents: Dict[str, str] = parents or {}

    # ------------------------
    # Construction
    # ------------------------

    @classmethod
    def empty(cls) -> "ComponentTree":
        return cls()

    @classmethod
    def from_payload(cls, payload: Optional[List[Mapping[str, Any]]]) -> "ComponentTree":
        """
        Build a tree from the stored/wire form: a list of the root's
        children, each ``{id, type, props, children, order}``.

        Sibling ``order`` values may contain gaps; siblings are sorted by
        them (ties keep list position) and exposed densely afterwards.
        """
        nodes: Dict[str, Node] = {}
        children: Dict[str, Tuple[str, ...]] = {ROOT: ()}
        parents: Dict[str, str] = {}

        _load_into(nodes, children, parents, payload or [], ROOT, 1, assign_ids=False)

        return cls(nodes, children, parents)

    def to_payload(self, component_id: Optional[str] = None) -> Any:
        """
        Serialize to the wire contract.

        Without an id, returns the list of top-level components; with an id,
        returns that component's object.
        """
        if component_id is None or component_id == ROOT:
            return [
                self._serialize(child_id, order)
                for order, child_id in enumerate(self._children[ROOT])
            ]

        self._require(component_id)
        return self._serialize(component_id, self.order_of(component_id))

    def _serialize(self, component_id: str, order: int) -> Dict[str, Any]:
        node = self._nodes[component_id]
        return {
            "id": node.id,
            "type": node.type,
            "props": copy.deepcopy(node.props),
            "children": [
                self._serialize(child_id, child_order)
                for child_order, child_id in enumerate(self._children.get(component_id, ()))
            ],
            "order": order,
        }

    # ------------------------
    # Queries
    # ------------------------

    def __contains__(self, component_id: object) -> bool:
        return component_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ComponentTree):
            return NotImplemented
        return (
            self._nodes == other._nodes
            and {k: v for k, v in self._children.items() if v}
            == {k: v for k, v in other._children.items() if v}
        )

    def __repr__(self) -> str:
        return f"<ComponentTree components={len(self._nodes)}>"

    def node(self, component_id: str) -> Node:
        self._require(component_id)
        return self._nodes[component_id]

    def children_of(self, parent_id: str) -> Tuple[str, ...]:
        if parent_id != ROOT:
            self._require(parent_id)
        return self._children.get(parent_id, ())

    def parent_of(self, component_id: str) -> str:
        self._require(component_id)
        return self._parents[component_id]

    def order_of(self, component_id: str) -> int:
        siblings = self._children[self.parent_of(component_id)]
        return siblings.index(component_id)

    def ancestors(self, component_id: str) -> Iterator[str]:
        """Yield parent ids from the component up to (excluding) ROOT."""
        current = self.parent_of(component_id)
        steps = 0
        while current != ROOT:
            steps += 1
            if steps > MAX_TREE_DEPTH:
                raise DepthExceeded("Ancestor chain exceeds the depth bound")
            yield current
            current = self._parents[current]

    def depth_of(self, component_id: str) -> int:
        """Top-level components have depth 1."""
        return sum(1 for _ in self.ancestors(component_id)) + 1

    def height_of(self, component_id: str) -> int:
        """Number of levels in the subtree rooted at ``component_id``."""
        child_ids = self._children.get(component_id, ())
        if not child_ids:
            return 1
        return 1 + max(self.height_of(child_id) for child_id in child_ids)

    def is_descendant(self, candidate_id: str, ancestor_id: str) -> bool:
        if candidate_id == ROOT:
            return False
        return ancestor_id in self.ancestors(candidate_id)

    def subtree_ids(self, component_id: str) -> List[str]:
        """Pre-order ids of the subtree, the component itself first."""
        result = []
        stack = [component_id]
        while stack:
            current = stack.pop()
            result.append(current)
            stack.extend(reversed(self._children.get(current, ())))
        return result

    def get(self, component_id: str) -> Component:
        node = self.node(component_id)
        parent_id = self._parents[component_id]
        return Component(
            id=node.id,
            type=node.type,
            props=copy.deepcopy(node.props),
            parent_id=parent_id,
            order=self._children[parent_id].index(component_id),
            children=self._children.get(component_id, ()),
            depth=self.depth_of(component_id),
        )

    def _require(self, component_id: str) -> None:
        if component_id not in self._nodes:
            raise ComponentNotFound(f"Component '{component_id}' does not exist")

    # ------------------------
    # Copy-on-write support for the mutation engine
    # ------------------------

    def _evolve(self) -> "_TreeBuilder":
        return _TreeBuilder(dict(self._nodes), dict(self._children), dict(self._parents))


class _TreeBuilder:
    """Scratch copy of the arena maps; tuples are replaced, never mutated."""

    def __init__(self, nodes, children, parents):
        self.nodes: Dict[str, Node] = nodes
        self.children: Dict[str, Tuple[str, ...]] = children
        self.parents: Dict[str, str] = parents

    def attach(self, parent_id: str, component_id: str, index: int) -> None:
        siblings = list(self.children.get(parent_id, ()))
        siblings.insert(index, component_id)
        self.children[parent_id] = tuple(siblings)
        self.parents[component_id] = parent_id

    def detach(self, component_id: str) -> str:
        parent_id = self.parents[component_id]
        self.children[parent_id] = tuple(
            child_id for child_id in self.children[parent_id] if child_id != component_id
        )
        return parent_id

    def load(self, payload: Mapping[str, Any], parent_id: str, depth: int) -> str:
        """Add a nested component payload (ids assigned where missing)."""
        return _load_component(
            self.nodes, self.children, self.parents, payload, parent_id, depth, assign_ids=True
        )

    def build(self) -> ComponentTree:
        return ComponentTree(self.nodes, self.children, self.parents)


def _load_into(nodes, children, parents, payload, parent_id, depth, *, assign_ids):
    if not isinstance(payload, (list, tuple)):
        raise InvalidOperation("Component children must be a list")

    indexed = list(enumerate(payload))
    indexed.sort(key=lambda item: (_order_key(item[1], item[0]), item[0]))

    loaded = [
        _load_component(nodes, children, parents, item, parent_id, depth, assign_ids=assign_ids)
        for _, item in indexed
    ]
    children[parent_id] = children.get(parent_id, ()) + tuple(loaded)


def _order_key(item: Any, position: int) -> float:
    if isinstance(item, Mapping):
        order = item.get("order")
        if isinstance(order, (int, float)) and not isinstance(order, bool):
            return order
    return position


def _load_component(nodes, children, parents, payload, parent_id, depth, *, assign_ids) -> str:
    if depth > MAX_TREE_DEPTH:
        raise DepthExceeded(f"Components may be nested at most {MAX_TREE_DEPTH} levels deep")
    if not isinstance(payload, Mapping):
        raise InvalidOperation("Component payload must be an object")

    raw_id = payload.get("id")
    if raw_id in (None, "") and assign_ids:
        raw_id = new_id()
    try:
        component_id = canonical_component_id(raw_id)
    except InvalidIdentifier as exc:
        raise InvalidOperation(str(exc)) from exc

    if component_id in nodes:
        raise DuplicateID(f"Component id '{component_id}' is already used in this page")

    nodes[component_id] = Node(
        id=component_id,
        type=validate_type(payload.get("type")),
        props=validate_props(payload.get("props")),
    )
    parents[component_id] = parent_id
    children[component_id] = ()

    _load_into(
        nodes,
        children,
        parents,
        payload.get("children") or [],
        component_id,
        depth + 1,
        assign_ids=assign_ids,
    )
    return component_id
