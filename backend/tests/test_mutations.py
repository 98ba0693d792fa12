import random

import pytest

from sitebuilder.domain.exceptions import (
    ComponentNotFound,
    CycleDetected,
    DepthExceeded,
    DuplicateID,
    InvalidOperation,
    InvalidProperty,
    ParentNotFound,
)
from sitebuilder.tree import (
    MAX_TREE_DEPTH,
    REMOVE,
    ROOT,
    ComponentTree,
    apply_operation,
    find,
    insert,
    move,
    parse_operation,
    remove,
    update,
)
from sitebuilder.tree.mutations import inserted_id

from .test_tree_model import nested_chain


@pytest.fixture
def tree():
    return ComponentTree.from_payload([
        {"id": "A", "type": "container", "children": [
            {"id": "A1", "type": "text", "props": {"text": "one"}},
            {"id": "A2", "type": "container", "children": [{"id": "A21", "type": "text"}]},
        ]},
        {"id": "B", "type": "text", "props": {"text": "hi", "color": "red"}},
    ])


def orders(tree, parent_id=ROOT):
    return [tree.order_of(child_id) for child_id in tree.children_of(parent_id)]


# -------------------------------------------------
# insert
# -------------------------------------------------

def test_insert_then_find(tree):
    new = insert(tree, "A", {"id": "A3", "type": "image", "props": {"src": "/a.png"}}, 1)

    found = find(new, "A3")
    assert found.parent_id == "A"
    assert found.order == 1
    assert found.props == {"src": "/a.png"}
    assert new.children_of("A") == ("A1", "A3", "A2")
    assert orders(new, "A") == [0, 1, 2]


def test_insert_leaves_original_untouched(tree):
    before = tree.to_payload()
    insert(tree, None, {"id": "C", "type": "text"}, 0)
    assert tree.to_payload() == before
    assert "C" not in tree


def test_insert_assigns_missing_ids(tree):
    new = insert(tree, ROOT, {"type": "section", "children": [{"type": "text"}]})

    new_id = inserted_id(tree, new, ROOT)
    assert new.children_of(ROOT) == ("A", "B", new_id)
    assert len(new.children_of(new_id)) == 1
    assert len(new) == len(tree) + 2


@pytest.mark.parametrize("index, expected", [
    (-5, ("C", "A", "B")),
    (0, ("C", "A", "B")),
    (1, ("A", "C", "B")),
    (2, ("A", "B", "C")),
    (99, ("A", "B", "C")),
    (None, ("A", "B", "C")),
])
def test_insert_index_is_clamped(tree, index, expected):
    new = insert(tree, ROOT, {"id": "C", "type": "text"}, index)
    assert new.children_of(ROOT) == expected
    assert orders(new) == [0, 1, 2]


def test_insert_under_missing_parent(tree):
    with pytest.raises(ParentNotFound):
        insert(tree, "nope", {"id": "C", "type": "text"})


@pytest.mark.parametrize("component", [
    {"id": "A21", "type": "text"},
    {"id": "C", "type": "container", "children": [{"id": "B", "type": "text"}]},
])
def test_insert_duplicate_id(tree, component):
    with pytest.raises(DuplicateID):
        insert(tree, ROOT, component)
    assert len(tree) == 5


def test_insert_respects_depth_bound():
    tree = ComponentTree.from_payload(nested_chain(MAX_TREE_DEPTH))
    with pytest.raises(DepthExceeded):
        insert(tree, f"c{MAX_TREE_DEPTH}", {"id": "deeper", "type": "text"})


# -------------------------------------------------
# update
# -------------------------------------------------

def test_update_merges_props(tree):
    new = update(tree, "B", {"text": "hello", "size": 3})

    assert new.node("B").props == {"text": "hello", "color": "red", "size": 3}
    assert tree.node("B").props == {"text": "hi", "color": "red"}


def test_update_remove_sentinel(tree):
    new = update(tree, "B", {"color": REMOVE, "missing": REMOVE})
    assert new.node("B").props == {"text": "hi"}


def test_update_does_not_touch_structure(tree):
    new = update(tree, "A", {"css_class": "wide"})
    assert new.children_of("A") == tree.children_of("A")
    assert new.children_of(ROOT) == tree.children_of(ROOT)


def test_empty_patch_is_identity(tree):
    assert update(tree, "A1", {}) == tree
    assert update(tree, "A1", {"text": "one"}) is tree


def test_update_keeps_bool_and_int_apart():
    tree = ComponentTree.from_payload([{"id": "a", "type": "text", "props": {"visible": 1}}])

    new = update(tree, "a", {"visible": True})

    assert new is not tree
    assert new != tree
    assert new.node("a").props["visible"] is True
    assert update(new, "a", {"visible": True}) is new


def test_update_errors(tree):
    with pytest.raises(ComponentNotFound):
        update(tree, "nope", {"text": "x"})
    with pytest.raises(InvalidOperation):
        update(tree, ROOT, {"text": "x"})
    with pytest.raises(InvalidProperty):
        update(tree, "B", {"text": {"nested": {1: "bad key"}}})
    assert tree.node("B").props == {"text": "hi", "color": "red"}


# -------------------------------------------------
# move
# -------------------------------------------------

def test_move_into_sibling_container():
    tree = ComponentTree.from_payload([
        {"id": "A", "type": "container"},
        {"id": "B", "type": "text"},
    ])

    new = move(tree, "B", "A", 0)

    assert new.children_of(ROOT) == ("A",)
    assert new.children_of("A") == ("B",)
    assert find(new, "B").order == 0
    assert find(new, "A").order == 0


def test_move_into_own_descendant_is_rejected():
    tree = ComponentTree.from_payload([
        {"id": "A", "type": "container", "children": [{"id": "B", "type": "container"}]},
    ])

    with pytest.raises(CycleDetected):
        move(tree, "A", "B", 0)
    with pytest.raises(CycleDetected):
        move(tree, "A", "A", 0)

    assert tree.children_of("A") == ("B",)


def test_every_descendant_is_a_cycle(tree):
    for descendant in tree.subtree_ids("A"):
        with pytest.raises(CycleDetected):
            move(tree, "A", descendant, 0)


def test_move_carries_subtree(tree):
    new = move(tree, "A2", ROOT, 0)

    assert new.children_of(ROOT) == ("A2", "A", "B")
    assert new.children_of("A") == ("A1",)
    assert new.children_of("A2") == ("A21",)
    assert find(new, "A21").depth == 2


@pytest.mark.parametrize("component_id, index, expected", [
    ("C", 0, ("C", "A", "B")),
    ("A", 2, ("B", "C", "A")),
    ("A", 1, ("B", "A", "C")),
    ("B", -1, ("B", "A", "C")),
    ("A", 50, ("B", "C", "A")),
])
def test_move_within_same_parent(component_id, index, expected):
    tree = ComponentTree.from_payload([
        {"id": "A", "type": "text"},
        {"id": "B", "type": "text"},
        {"id": "C", "type": "text"},
    ])

    new = move(tree, component_id, ROOT, index)
    assert new.children_of(ROOT) == expected
    assert orders(new) == [0, 1, 2]


def test_move_errors(tree):
    with pytest.raises(ComponentNotFound):
        move(tree, "nope", ROOT, 0)
    with pytest.raises(ParentNotFound):
        move(tree, "B", "nope", 0)
    with pytest.raises(InvalidOperation):
        move(tree, ROOT, "A", 0)


def test_move_respects_depth_bound(tree):
    deep = insert(tree, ROOT, nested_chain(MAX_TREE_DEPTH - 1, prefix="d")[0])

    # A has height 3; under a node at depth 31 it would reach depth 34
    with pytest.raises(DepthExceeded):
        move(deep, "A", f"d{MAX_TREE_DEPTH - 1}", 0)

    ok = move(deep, "B", f"d{MAX_TREE_DEPTH - 1}", 0)
    assert find(ok, "B").depth == MAX_TREE_DEPTH


# -------------------------------------------------
# remove
# -------------------------------------------------

def test_remove_renumbers_siblings():
    tree = ComponentTree.from_payload([
        {"id": "A", "type": "text", "order": 0},
        {"id": "B", "type": "text", "order": 1},
    ])

    new = remove(tree, "A")

    assert new.to_payload() == [
        {"id": "B", "type": "text", "props": {}, "children": [], "order": 0},
    ]


def test_remove_drops_subtree(tree):
    new = remove(tree, "A")

    for component_id in ("A", "A1", "A2", "A21"):
        assert component_id not in new
    assert len(new) == 1
    assert "A21" in tree


def test_remove_errors(tree):
    with pytest.raises(ComponentNotFound):
        remove(tree, "nope")
    with pytest.raises(InvalidOperation):
        remove(tree, ROOT)


def test_find_errors(tree):
    with pytest.raises(ComponentNotFound):
        find(tree, "nope")
    with pytest.raises(InvalidOperation):
        find(tree, ROOT)


def test_sibling_orders_stay_dense_under_random_edits():
    rng = random.Random(1234)
    tree = ComponentTree.empty()

    for step in range(200):
        children = tree.children_of(ROOT)
        if children and rng.random() < 0.4:
            tree = remove(tree, rng.choice(children))
        else:
            tree = insert(tree, ROOT, {"id": f"n{step}", "type": "text"}, rng.randint(-2, len(children) + 2))

        assert [c["order"] for c in tree.to_payload()] == list(range(len(tree.children_of(ROOT))))


# -------------------------------------------------
# Wire operations
# -------------------------------------------------

def test_parse_update_maps_null_to_remove():
    operation = parse_operation({"op": "update", "component_id": "B", "props": {"color": None, "text": "x"}})
    assert operation.props == {"color": REMOVE, "text": "x"}


@pytest.mark.parametrize("payload", [
    None,
    {"op": "explode"},
    {"op": "insert"},
    {"op": "insert", "component": {"type": "text"}, "index": "1"},
    {"op": "move", "component_id": "B", "index": True},
    {"op": "remove"},
    {"op": "update", "component_id": "B", "props": ["x"]},
    {"op": "move", "component_id": "B", "parent_id": ["A"]},
    {"op": "insert", "parent_id": {"x": 1}, "component": {"type": "text"}},
])
def test_parse_rejects_malformed_payloads(payload):
    with pytest.raises(InvalidOperation):
        parse_operation(payload)


def test_apply_operation_reports_component_to_rerender(tree):
    new, component_id = apply_operation(
        tree, parse_operation({"op": "insert", "parent_id": "A", "component": {"id": "A3", "type": "text"}})
    )
    assert component_id == "A3" and "A3" in new

    _, component_id = apply_operation(tree, parse_operation({"op": "remove", "component_id": "A1"}))
    assert component_id == "A"

    _, component_id = apply_operation(tree, parse_operation({"op": "remove", "component_id": "B"}))
    assert component_id is None

    new, component_id = apply_operation(
        tree, parse_operation({"op": "move", "component_id": "B", "parent_id": "A2", "index": 0})
    )
    assert component_id == "B"
    assert new.children_of("A2") == ("B", "A21")
