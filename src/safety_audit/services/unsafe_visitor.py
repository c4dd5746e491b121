"""Classify every ``unsafe`` carrier in one parsed Rust source unit.

The walk is a plain depth-first traversal over the tree-sitter tree. Each
node type that can carry the marker has exactly one classifier in
``_CLASSIFIERS``; every other node is walked without contributing anything.
Macro invocations and ``macro_rules!`` definitions are not entered: their
token trees are never expanded, so code generated by macros is not audited.
"""

from __future__ import annotations

from enum import Enum
from typing import AbstractSet, Callable, Iterator

from tree_sitter import Node

from ..domain.models import UnsafeFinding, UnsafeKind
from .rust_parser import SourceUnit
from .scan_limits import DEFAULT_UNSAFE_ATTRIBUTES


class _Scope(Enum):
    """Container a function declaration belongs to."""

    MODULE = "module"
    IMPL = "impl"
    TRAIT = "trait"


_FUNCTION_KIND_BY_SCOPE: dict[_Scope, UnsafeKind] = {
    _Scope.MODULE: UnsafeKind.UNSAFE_FUNCTION,
    _Scope.IMPL: UnsafeKind.UNSAFE_IMPL_ITEM,
    _Scope.TRAIT: UnsafeKind.UNSAFE_TRAIT_ITEM,
}

OPAQUE_NODE_TYPES = frozenset({"macro_invocation", "macro_definition"})

_UNSAFE_TOKEN = "unsafe"

Classifier = Callable[[Node, _Scope, SourceUnit, AbstractSet[str]], "UnsafeKind | None"]


def _has_unsafe_token(node: Node) -> bool:
    return any(child.type == _UNSAFE_TOKEN for child in node.children)


def _classify_function(
    node: Node, scope: _Scope, unit: SourceUnit, attribute_names: AbstractSet[str]
) -> UnsafeKind | None:
    for child in node.children:
        if child.type == "function_modifiers" and _has_unsafe_token(child):
            return _FUNCTION_KIND_BY_SCOPE[scope]
    return None


def _classify_block(
    node: Node, scope: _Scope, unit: SourceUnit, attribute_names: AbstractSet[str]
) -> UnsafeKind | None:
    return UnsafeKind.UNSAFE_BLOCK


def _classify_impl(
    node: Node, scope: _Scope, unit: SourceUnit, attribute_names: AbstractSet[str]
) -> UnsafeKind | None:
    return UnsafeKind.UNSAFE_IMPL if _has_unsafe_token(node) else None


def _classify_trait(
    node: Node, scope: _Scope, unit: SourceUnit, attribute_names: AbstractSet[str]
) -> UnsafeKind | None:
    return UnsafeKind.UNSAFE_TRAIT if _has_unsafe_token(node) else None


def _classify_attribute(
    node: Node, scope: _Scope, unit: SourceUnit, attribute_names: AbstractSet[str]
) -> UnsafeKind | None:
    name = attribute_word(node, unit)
    if name is not None and name in attribute_names:
        return UnsafeKind.UNSAFE_ATTR
    return None


def attribute_word(node: Node, unit: SourceUnit) -> str | None:
    """Return the name of a word-form attribute such as ``#[name]``.

    Attributes with arguments (``#[name(...)]``), values (``#[name = ...]``)
    or multi-segment paths are not word-form and yield ``None``.
    """

    attribute = next(
        (child for child in node.named_children if child.type == "attribute"), None
    )
    if attribute is None:
        return None
    if attribute.child_by_field_name("arguments") is not None:
        return None
    if attribute.child_by_field_name("value") is not None:
        return None
    path_nodes = attribute.named_children
    if len(path_nodes) != 1 or path_nodes[0].type != "identifier":
        return None
    return unit.text(path_nodes[0])


_CLASSIFIERS: dict[str, Classifier] = {
    "function_item": _classify_function,
    "function_signature_item": _classify_function,
    "unsafe_block": _classify_block,
    "impl_item": _classify_impl,
    "trait_item": _classify_trait,
    "attribute_item": _classify_attribute,
    "inner_attribute_item": _classify_attribute,
}
"""Carrier node types and the classifier that inspects each of them."""


def _child_scope(node: Node, scope: _Scope) -> _Scope:
    """Scope handed to the children of ``node``."""

    if node.type == "impl_item":
        return _Scope.IMPL
    if node.type == "trait_item":
        return _Scope.TRAIT
    if node.type == "declaration_list":
        return scope
    return _Scope.MODULE


def iter_unsafe_findings(
    unit: SourceUnit,
    unsafe_attributes: AbstractSet[str] = DEFAULT_UNSAFE_ATTRIBUTES,
) -> Iterator[UnsafeFinding]:
    """Yield a finding for every ``unsafe`` carrier in ``unit``.

    The same finding may be yielded more than once; callers collect into a set.
    """

    stack: list[tuple[Node, _Scope]] = [(unit.root, _Scope.MODULE)]
    while stack:
        node, scope = stack.pop()
        if node.type in OPAQUE_NODE_TYPES:
            continue
        classifier = _CLASSIFIERS.get(node.type)
        if classifier is not None:
            kind = classifier(node, scope, unit, unsafe_attributes)
            if kind is not None:
                yield UnsafeFinding(kind=kind, location=unit.location(node))
        child_scope = _child_scope(node, scope)
        stack.extend((child, child_scope) for child in reversed(node.children))


def classify_unit(
    unit: SourceUnit,
    unsafe_attributes: AbstractSet[str] = DEFAULT_UNSAFE_ATTRIBUTES,
) -> frozenset[UnsafeFinding]:
    """Return the de-duplicated findings for one source unit."""

    return frozenset(iter_unsafe_findings(unit, unsafe_attributes))
