"""Element tree of a host document, built from the scanner token stream."""

from __future__ import annotations

from dataclasses import dataclass, field

from embedmux.scanner import Scanner, TokenType

VOID_ELEMENTS = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img", "input", "keygen",
        "link", "meta", "param", "source", "track", "wbr",
    }
)


@dataclass(eq=False)
class Node:
    start: int
    end: int
    tag: str | None = None
    start_tag_end: int | None = None
    end_tag_start: int | None = None
    closed: bool = False
    parent: Node | None = None
    children: list[Node] = field(default_factory=list)
    attributes: dict[str, str | None] = field(default_factory=dict)
    attribute_spans: dict[str, tuple[int, int]] = field(default_factory=dict)

    @property
    def name_span(self) -> tuple[int, int] | None:
        if self.tag is None:
            return None
        return self.start + 1, self.start + 1 + len(self.tag)

    def end_name_span(self) -> tuple[int, int] | None:
        if self.tag is None or self.end_tag_start is None:
            return None
        start = self.end_tag_start + 2
        return start, start + len(self.tag)

    def is_same_tag(self, name: str) -> bool:
        return self.tag is not None and self.tag.lower() == name.lower()

    def ancestors(self):
        node = self.parent
        while node is not None and node.parent is not None:
            yield node
            node = node.parent

    def find_node_at(self, offset: int) -> Node:
        """Innermost element whose span contains ``offset``."""
        for child in self.children:
            if child.start < offset <= child.end:
                if offset == child.end and child.closed and child.end_tag_start is None:
                    continue
                return child.find_node_at(offset)
            if child.start > offset:
                break
        return self

    def find_node_before(self, offset: int) -> Node:
        """Innermost element starting before ``offset`` that is still open there."""
        for child in reversed(self.children):
            if child.start >= offset:
                continue
            if offset < child.end:
                return child.find_node_before(offset)
            if child.children and child.children[-1].end == child.end:
                return child.find_node_before(offset)
            return child
        return self


@dataclass
class HTMLTree:
    text: str
    roots: list[Node]
    root: Node
    comments: list[tuple[int, int]] = field(default_factory=list)

    def walk(self):
        stack = list(reversed(self.roots))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def find_node_at(self, offset: int) -> Node:
        return self.root.find_node_at(offset)

    def find_node_before(self, offset: int) -> Node:
        return self.root.find_node_before(offset)


def parse_html(text: str, void_elements: frozenset[str] = VOID_ELEMENTS) -> HTMLTree:
    scanner = Scanner(text)
    root = Node(start=0, end=len(text))
    current = root
    end_tag_start: int | None = None
    end_tag_node: Node | None = None
    pending_attribute: str | None = None
    comment_start: int | None = None
    comments: list[tuple[int, int]] = []

    for token in scanner:
        if token is TokenType.START_COMMENT_TAG:
            comment_start = scanner.token_offset
        elif token is TokenType.END_COMMENT_TAG:
            if comment_start is not None:
                comments.append((comment_start, scanner.token_end))
            comment_start = None
        elif token is TokenType.START_TAG_OPEN:
            child = Node(start=scanner.token_offset, end=len(text), parent=current)
            current.children.append(child)
            current = child
        elif token is TokenType.START_TAG:
            current.tag = scanner.token_text
        elif token is TokenType.START_TAG_CLOSE:
            if current.parent is not None:
                current.end = scanner.token_end
                current.start_tag_end = scanner.token_end
                if current.tag and current.tag.lower() in void_elements:
                    current.closed = True
                    current = current.parent
        elif token is TokenType.START_TAG_SELF_CLOSE:
            if current.parent is not None:
                current.closed = True
                current.start_tag_end = scanner.token_end
                current.end = scanner.token_end
                current = current.parent
        elif token is TokenType.END_TAG_OPEN:
            end_tag_start = scanner.token_offset
            end_tag_node = None
        elif token is TokenType.END_TAG:
            close_name = scanner.token_text.lower()
            node: Node | None = current
            while node is not None and node.parent is not None and not node.is_same_tag(close_name):
                node = node.parent
            if node is not None and node.parent is not None:
                while current is not node:
                    current.end = end_tag_start if end_tag_start is not None else current.end
                    current.closed = False
                    current = current.parent
                current.closed = True
                current.end_tag_start = end_tag_start
                end_tag_node = current
        elif token is TokenType.END_TAG_CLOSE:
            if end_tag_node is not None and end_tag_node.parent is not None:
                end_tag_node.end = scanner.token_end
                current = end_tag_node.parent
                end_tag_node = None
        elif token is TokenType.ATTRIBUTE_NAME:
            pending_attribute = scanner.token_text.lower()
            current.attributes[pending_attribute] = None
            current.attribute_spans[pending_attribute] = (scanner.token_offset, scanner.token_end)
        elif token is TokenType.ATTRIBUTE_VALUE:
            if pending_attribute is not None:
                current.attributes[pending_attribute] = scanner.token_text
                start, _ = current.attribute_spans[pending_attribute]
                current.attribute_spans[pending_attribute] = (start, scanner.token_end)
                pending_attribute = None

    if comment_start is not None:
        comments.append((comment_start, len(text)))
    while current.parent is not None:
        current.end = len(text)
        current.closed = False
        current = current.parent
    return HTMLTree(text=text, roots=root.children, root=root, comments=comments)
