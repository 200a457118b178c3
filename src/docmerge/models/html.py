"""Parsed HTML tree nodes."""

from pydantic import BaseModel, Field


class HtmlText(BaseModel):
    """A text node."""

    text: str


class HtmlElement(BaseModel):
    """An element node with lowercase tag name and flattened attributes."""

    tag: str
    attrs: dict[str, str] = Field(default_factory=dict)
    children: list["HtmlNode"] = Field(default_factory=list)

    def attr(self, name: str, default: str = "") -> str:
        return self.attrs.get(name, default)

    def text_content(self) -> str:
        """Concatenated text of the whole subtree."""
        parts: list[str] = []
        stack: list[HtmlNode] = [self]
        while stack:
            node = stack.pop()
            if isinstance(node, HtmlText):
                parts.append(node.text)
            else:
                stack.extend(reversed(node.children))
        return "".join(parts)


HtmlNode = HtmlText | HtmlElement

HtmlElement.model_rebuild()
