"""Render node and style models.

A chapter is a tree of render nodes. The node type is a closed union
discriminated by ``type``; code that walks a tree matches every variant
and ends in ``assert_never`` so a new variant cannot be silently ignored.
"""

from collections.abc import Iterator
from typing import Annotated, Literal, Union, assert_never

from pydantic import BaseModel, ConfigDict, Field, model_serializer

# Properties a Text node picks up from its ancestors
INHERITED_PROPERTIES = frozenset(
    {
        "fontSize",
        "fontWeight",
        "fontFamily",
        "fontStyle",
        "color",
        "textAlign",
        "textDecorationLine",
        "textTransform",
        "lineHeight",
    }
)


class RnStyles(BaseModel):
    """Flattened style bag. Unset properties are left out when serialized."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Text
    fontSize: float | None = None
    fontWeight: str | None = None
    fontFamily: str | None = None
    fontStyle: str | None = None
    color: str | None = None
    textAlign: str | None = None
    textDecorationLine: str | None = None
    textTransform: str | None = None
    lineHeight: float | None = None
    textIndent: float | None = None

    # Background and colour
    backgroundColor: str | None = None
    opacity: float | None = None

    # Spacing
    marginTop: float | None = None
    marginBottom: float | None = None
    marginLeft: float | None = None
    marginRight: float | None = None
    paddingTop: float | None = None
    paddingBottom: float | None = None
    paddingLeft: float | None = None
    paddingRight: float | None = None

    # Size
    width: float | None = None
    height: float | None = None
    minWidth: float | None = None
    maxWidth: float | None = None
    minHeight: float | None = None
    maxHeight: float | None = None

    # Positioning
    position: str | None = None
    top: float | None = None
    bottom: float | None = None
    left: float | None = None
    right: float | None = None
    zIndex: int | None = None

    # Flexbox
    display: str | None = None
    flexDirection: str | None = None
    justifyContent: str | None = None
    alignItems: str | None = None
    alignSelf: str | None = None
    flexWrap: str | None = None
    flex: float | None = None
    flexGrow: float | None = None
    flexShrink: float | None = None
    flexBasis: float | None = None

    # Border
    borderWidth: float | None = None
    borderTopWidth: float | None = None
    borderBottomWidth: float | None = None
    borderLeftWidth: float | None = None
    borderRightWidth: float | None = None
    borderColor: str | None = None
    borderTopColor: str | None = None
    borderBottomColor: str | None = None
    borderLeftColor: str | None = None
    borderRightColor: str | None = None
    borderRadius: float | None = None
    borderStyle: str | None = None

    overflow: str | None = None

    @model_serializer(mode="wrap")
    def _drop_unset(self, handler):
        return {key: value for key, value in handler(self).items() if value is not None}

    def values(self) -> dict[str, float | int | str]:
        """Set properties only."""
        return {
            name: value
            for name in type(self).model_fields
            if (value := getattr(self, name)) is not None
        }

    def is_empty(self) -> bool:
        return not self.values()

    def merge(self, other: "RnStyles | None") -> "RnStyles":
        """Return a copy where every property set on ``other`` wins."""
        if other is None:
            return self
        update = other.values()
        if not update:
            return self
        return self.model_copy(update=update)

    def inherited(self) -> "RnStyles":
        """Only the properties that flow down to descendant text."""
        return RnStyles(
            **{k: v for k, v in self.values().items() if k in INHERITED_PROPERTIES}
        )

    def or_none(self) -> "RnStyles | None":
        return None if self.is_empty() else self


class TextNode(BaseModel):
    """Literal text run."""

    model_config = ConfigDict(frozen=True)

    type: Literal["Text"] = "Text"
    content: str
    styles: RnStyles | None = None


class ViewNode(BaseModel):
    """Structural container."""

    model_config = ConfigDict(frozen=True)

    type: Literal["View"] = "View"
    children: list["RnNode"] = Field(default_factory=list)
    styles: RnStyles | None = None


class ScrollViewNode(BaseModel):
    """Container the consumer should make scrollable."""

    model_config = ConfigDict(frozen=True)

    type: Literal["ScrollView"] = "ScrollView"
    children: list["RnNode"] = Field(default_factory=list)
    styles: RnStyles | None = None


class ImageNode(BaseModel):
    """Image; ``source`` is a data URI or the unresolved original src."""

    model_config = ConfigDict(frozen=True)

    type: Literal["Image"] = "Image"
    source: str
    alt: str | None = None
    styles: RnStyles | None = None


RnNode = Annotated[
    Union[TextNode, ViewNode, ScrollViewNode, ImageNode],
    Field(discriminator="type"),
]

ViewNode.model_rebuild()
ScrollViewNode.model_rebuild()


def iter_nodes(node: RnNode) -> Iterator[RnNode]:
    """Yield ``node`` and all of its descendants, depth first."""
    yield node
    if isinstance(node, (ViewNode, ScrollViewNode)):
        for child in node.children:
            yield from iter_nodes(child)
    elif isinstance(node, (TextNode, ImageNode)):
        return
    else:
        assert_never(node)


def node_text(node: RnNode) -> str:
    """Concatenated text content of a subtree."""
    if isinstance(node, TextNode):
        return node.content
    if isinstance(node, (ViewNode, ScrollViewNode)):
        return "".join(node_text(child) for child in node.children)
    if isinstance(node, ImageNode):
        return ""
    assert_never(node)
