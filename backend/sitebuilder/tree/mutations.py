# sitebuilder/tree/mutations.py
"""
Tree mutation engine.

Every operation is a pure function ``(tree, ...) -> new tree``. Validation
happens before anything is copied, so a failing operation raises and the
caller still holds the unmodified prior tree.

Sibling order is positional: children are kept as an ordered tuple and the
externally visible ``order`` is the index, so every successful operation
leaves siblings numbered 0..n-1.
"""
from typing import Any, Dict, Mapping, NamedTuple, Optional

from sitebuilder.domain.exceptions import (
    ComponentNotFound,
    CycleDetected,
    DepthExceeded,
    InvalidOperation,
    ParentNotFound,
)
from sitebuilder.utils.identifiers import ROOT
from .model import (
    MAX_TREE_DEPTH,
    REMOVE,
    Component,
    ComponentTree,
    Node,
    props_signature,
    validate_props,
)

OPERATIONS = {"insert", "update", "move", "remove"}


def _clamp(index: Optional[int], size: int) -> int:
    if index is None:
        return size
    return max(0, min(int(index), size))


def _parent_key(parent_id: Optional[str]) -> str:
    return ROOT if parent_id in (None, "", ROOT) else parent_id


def _require_component(tree: ComponentTree, component_id: Optional[str]) -> str:
    if component_id in (None, "", ROOT):
        raise InvalidOperation("The page root cannot be the target of this operation")
    if component_id not in tree:
        raise ComponentNotFound(f"Component '{component_id}' does not exist")
    return component_id


def _require_parent(tree: ComponentTree, parent_id: Optional[str]) -> str:
    parent = _parent_key(parent_id)
    if parent != ROOT and parent not in tree:
        raise ParentNotFound(f"Parent component '{parent_id}' does not exist")
    return parent


def _parent_depth(tree: ComponentTree, parent: str) -> int:
    return 0 if parent == ROOT else tree.depth_of(parent)


# -------------------------------------------------
# Operations
# -------------------------------------------------

def find(tree: ComponentTree, component_id: str) -> Component:
    """Read-only lookup by id; raises ComponentNotFound."""
    return tree.get(_require_component(tree, component_id))


def insert(
    tree: ComponentTree,
    parent_id: Optional[str],
    component: Mapping[str, Any],
    at_index: Optional[int] = None,
) -> ComponentTree:
    """
    Insert ``component`` (optionally carrying nested children) under
    ``parent_id`` (None or ROOT for the page root) at ``at_index``.

    Missing ids are assigned. ``at_index`` is clamped to [0, child count];
    None appends.
    """
    parent = _require_parent(tree, parent_id)

    builder = tree._evolve()
    new_id = builder.load(component, parent, _parent_depth(tree, parent) + 1)

    # load() appended; reposition within the parent.
    builder.detach(new_id)
    builder.attach(parent, new_id, _clamp(at_index, len(tree.children_of(parent))))

    return builder.build()


def inserted_id(before: ComponentTree, after: ComponentTree, parent_id: Optional[str]) -> str:
    """Id of the component ``insert`` added under ``parent_id``."""
    parent = _parent_key(parent_id)
    for child_id in after.children_of(parent):
        if child_id not in before:
            return child_id
    raise ComponentNotFound("No component was inserted")


def update(
    tree: ComponentTree,
    component_id: str,
    props_patch: Optional[Mapping[str, Any]],
) -> ComponentTree:
    """
    Merge ``props_patch`` into a component's props.

    Keys in the patch overwrite, absent keys are untouched and a value of
    REMOVE deletes the property. Children and order never change.
    """
    component_id = _require_component(tree, component_id)

    if not props_patch:
        return tree
    if not isinstance(props_patch, Mapping):
        raise InvalidOperation("Props patch must be a mapping")

    removals = [key for key, value in props_patch.items() if value is REMOVE]
    changes = validate_props(
        {key: value for key, value in props_patch.items() if value is not REMOVE}
    )

    node = tree.node(component_id)
    props: Dict[str, Any] = dict(node.props)
    props.update(changes)
    for key in removals:
        props.pop(key, None)

    if props_signature(props) == props_signature(node.props):
        return tree

    builder = tree._evolve()
    builder.nodes[component_id] = Node(id=node.id, type=node.type, props=props)
    return builder.build()


def move(
    tree: ComponentTree,
    component_id: str,
    new_parent_id: Optional[str],
    at_index: Optional[int] = None,
) -> ComponentTree:
    """
    Relocate a component and its subtree.

    ``at_index`` addresses the new parent's children after the component
    has been detached from its old position, and is clamped.
    """
    component_id = _require_component(tree, component_id)
    parent = _require_parent(tree, new_parent_id)

    if parent == component_id or tree.is_descendant(parent, component_id):
        raise CycleDetected(
            f"Cannot move component '{component_id}' inside itself or one of its descendants"
        )

    if _parent_depth(tree, parent) + tree.height_of(component_id) > MAX_TREE_DEPTH:
        raise DepthExceeded(f"Components may be nested at most {MAX_TREE_DEPTH} levels deep")

    builder = tree._evolve()
    builder.detach(component_id)
    builder.attach(parent, component_id, _clamp(at_index, len(builder.children.get(parent, ()))))
    return builder.build()


def remove(tree: ComponentTree, component_id: str) -> ComponentTree:
    """Delete a component with its whole subtree."""
    component_id = _require_component(tree, component_id)

    builder = tree._evolve()
    builder.detach(component_id)
    for doomed in tree.subtree_ids(component_id):
        builder.nodes.pop(doomed, None)
        builder.children.pop(doomed, None)
        builder.parents.pop(doomed, None)
    return builder.build()


# -------------------------------------------------
# Wire operations
# -------------------------------------------------

class Operation(NamedTuple):
    op: str
    component_id: Optional[str] = None
    parent_id: Optional[str] = None
    index: Optional[int] = None
    props: Optional[Dict[str, Any]] = None
    component: Optional[Dict[str, Any]] = None


def _optional_index(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidOperation("index must be an integer")
    return value


def _patch_from_wire(props: Any) -> Dict[str, Any]:
    if props is None:
        return {}
    if not isinstance(props, Mapping):
        raise InvalidOperation("props must be an object")
    # JSON null is the wire form of the REMOVE sentinel
    return {key: (REMOVE if value is None else value) for key, value in props.items()}


def _optional_parent(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    raise InvalidOperation("parent_id must be a string or null")


def parse_operation(payload: Any) -> Operation:
    """
    Validate a mutation payload as sent by the editor:

        {"op": "insert", "parent_id": "c1" | null, "index": 0, "component": {...}}
        {"op": "update", "component_id": "c2", "props": {"text": "Hi", "color": null}}
        {"op": "move",   "component_id": "c2", "parent_id": "c1", "index": 0}
        {"op": "remove", "component_id": "c2"}
    """
    if not isinstance(payload, Mapping):
        raise InvalidOperation("Mutation payload must be an object")

    op = payload.get("op")
    if op not in OPERATIONS:
        raise InvalidOperation(f"Unknown operation: {op!r}")

    if op == "insert":
        component = payload.get("component")
        if not isinstance(component, Mapping):
            raise InvalidOperation("insert requires a component object")
        return Operation(
            op=op,
            parent_id=_optional_parent(payload.get("parent_id")),
            index=_optional_index(payload.get("index")),
            component=dict(component),
        )

    component_id = payload.get("component_id")
    if not component_id or not isinstance(component_id, str):
        raise InvalidOperation(f"{op} requires a component_id")

    if op == "update":
        return Operation(op=op, component_id=component_id, props=_patch_from_wire(payload.get("props")))

    if op == "move":
        return Operation(
            op=op,
            component_id=component_id,
            parent_id=_optional_parent(payload.get("parent_id")),
            index=_optional_index(payload.get("index")),
        )

    return Operation(op=op, component_id=component_id)


def apply_operation(tree: ComponentTree, operation: Operation) -> tuple[ComponentTree, Optional[str]]:
    """
    Apply a parsed operation.

    Returns the new tree and the id of the component whose fragment the
    editor should re-render (None when the change only removed markup from
    the page root).
    """
    if operation.op == "insert":
        new_tree = insert(tree, operation.parent_id, operation.component, operation.index)
        return new_tree, inserted_id(tree, new_tree, operation.parent_id)

    if operation.op == "update":
        return update(tree, operation.component_id, operation.props), operation.component_id

    if operation.op == "move":
        return (
            move(tree, operation.component_id, operation.parent_id, operation.index),
            operation.component_id,
        )

    if operation.op == "remove":
        parent = tree.parent_of(_require_component(tree, operation.component_id))
        return remove(tree, operation.component_id), (None if parent == ROOT else parent)

    raise InvalidOperation(f"Unknown operation: {operation.op!r}")

