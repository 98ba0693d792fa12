from .model import (
    MAX_TREE_DEPTH,
    REMOVE,
    Component,
    ComponentTree,
    PropKind,
    prop_kind,
    validate_props,
)
from .mutations import (
    Operation,
    apply_operation,
    find,
    insert,
    move,
    parse_operation,
    remove,
    update,
)
from sitebuilder.utils.identifiers import ROOT
