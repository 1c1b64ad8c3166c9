"""
ClassiCrawl Document Tree
Parser-independent node interface and the attribute/text lookups used to
walk search result pages.
"""

from typing import List, Optional, Protocol, Tuple, Union

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

from errors import ParseError


ELEMENT = "element"
TEXT = "text"
DOCUMENT = "document"
OTHER = "other"


class Node(Protocol):
    """
    Read-only view of one node in a parsed document.

    Only the pieces the locator needs are exposed, so the lookups below
    work over any HTML parser that can be adapted to this shape.
    """

    @property
    def kind(self) -> str:
        ...

    @property
    def attributes(self) -> List[Tuple[str, str]]:
        ...

    @property
    def first_child(self) -> Optional["Node"]:
        ...

    @property
    def next_sibling(self) -> Optional["Node"]:
        ...

    @property
    def data(self) -> str:
        ...


class SoupNode:
    """Node adapter over a BeautifulSoup element."""

    __slots__ = ("_element",)

    def __init__(self, element):
        self._element = element

    @classmethod
    def wrap(cls, element) -> Optional["SoupNode"]:
        return cls(element) if element is not None else None

    @property
    def kind(self) -> str:
        element = self._element
        if isinstance(element, BeautifulSoup):
            return DOCUMENT
        if isinstance(element, Tag):
            return ELEMENT
        # Comments, doctypes and CDATA are all preformatted strings
        if isinstance(element, PreformattedString):
            return OTHER
        if isinstance(element, NavigableString):
            return TEXT
        return OTHER

    @property
    def attributes(self) -> List[Tuple[str, str]]:
        if not isinstance(self._element, Tag):
            return []
        attrs = []
        for key, value in self._element.attrs.items():
            if isinstance(value, (list, tuple)):
                value = " ".join(value)
            attrs.append((key, value))
        return attrs

    @property
    def first_child(self) -> Optional["SoupNode"]:
        if not isinstance(self._element, Tag) or not self._element.contents:
            return None
        return SoupNode(self._element.contents[0])

    @property
    def next_sibling(self) -> Optional["SoupNode"]:
        return SoupNode.wrap(self._element.next_sibling)

    @property
    def data(self) -> str:
        if isinstance(self._element, Tag):
            return self._element.name or ""
        return str(self._element)

    def __eq__(self, other):
        if not isinstance(other, SoupNode):
            return NotImplemented
        return self._element is other._element

    def __hash__(self):
        return id(self._element)

    def __repr__(self):
        return f"SoupNode({self.kind}, {self.data!r})"


def parse_document(markup: Union[bytes, str]) -> SoupNode:
    """
    Parse raw HTML into a document node.

    Multi-valued attributes are disabled so that class="result-title hdrlnk"
    stays a single string and can be matched exactly.

    Raises:
        ParseError: if the markup cannot be parsed
    """
    try:
        soup = BeautifulSoup(markup, "html.parser", multi_valued_attributes=None)
    except Exception as e:
        raise ParseError(f"unable to parse data: {e}") from e
    return SoupNode(soup)


def _preorder(root: Node, include_siblings: bool):
    """Yield nodes in document order: node, first child subtree, next sibling subtree."""
    stack = [root]
    at_root = True
    while stack:
        node = stack.pop()
        yield node

        sibling = node.next_sibling
        if sibling is not None and (include_siblings or not at_root):
            stack.append(sibling)
        at_root = False

        # pushed last so the child subtree is searched before the sibling
        child = node.first_child
        if child is not None:
            stack.append(child)


def _matches(node: Node, key: str, value: str) -> bool:
    if node.kind != ELEMENT:
        return False
    for attr_key, attr_value in node.attributes:
        if attr_key == key and attr_value == value:
            return True
    return False


def find_by_attribute(root: Optional[Node], key: str, value: str) -> Optional[Node]:
    """
    Find the first element carrying the attribute key/value pair.

    The search covers the root, its descendants and then everything that
    follows the root as a sibling, in document order.

    Args:
        root: Node to start from (None is allowed and finds nothing)
        key: Attribute name, e.g. 'class'
        value: Exact attribute value, e.g. 'result-info'

    Returns:
        The matching node, or None when nothing matches
    """
    if root is None:
        return None
    for node in _preorder(root, include_siblings=True):
        if _matches(node, key, value):
            return node
    return None


def find_within(root: Optional[Node], key: str, value: str) -> Optional[Node]:
    """Like find_by_attribute, but never leaves the subtree rooted at root."""
    if root is None:
        return None
    for node in _preorder(root, include_siblings=False):
        if _matches(node, key, value):
            return node
    return None


def find_attr(node: Optional[Node], key: str) -> str:
    """Return the value of an attribute, or '' if the node or attribute is absent."""
    if node is None:
        return ""
    for attr_key, attr_value in node.attributes:
        if attr_key == key:
            return attr_value
    return ""


def nearest_text(node: Optional[Node]) -> str:
    """
    Return the first text payload reached from node.

    Text lives on text nodes below the element that contains it. Descend
    through first children, fall back to next siblings, and once neither
    exists return the node's text (or '' if it is not a text node).
    """
    while node is not None:
        if node.first_child is not None:
            node = node.first_child
        elif node.next_sibling is not None:
            node = node.next_sibling
        elif node.kind == TEXT:
            return node.data
        else:
            return ""
    return ""


def element_children(node: Optional[Node]):
    """Iterate the element children of node, skipping text and comments."""
    if node is None:
        return
    child = node.first_child
    while child is not None:
        if child.kind == ELEMENT:
            yield child
        child = child.next_sibling
