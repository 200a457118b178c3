"""Fill a template with a merge context and serialise the result."""

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from docx.oxml.ns import qn

from docmerge.assembly.adapters import DocxPartAdapter, OdtPartAdapter, PartAdapter, _DocumentNumbering
from docmerge.config import ConversionConfig
from docmerge.errors import GenerationError, TemplateInvalidError
from docmerge.html import HtmlConverter, looks_like_html
from docmerge.models.fields import ARRAY_PATH_RE, FieldSchema, ValueType
from docmerge.models.instructions import INLINE_KINDS, DocumentInstruction, Paragraph
from docmerge.models.merge import MergeContext
from docmerge.namespaces import odf
from docmerge.scanning.packages import DocxPackage, Package, open_package
from docmerge.scanning.slots import consolidate
from docmerge.scanning.tokens import TokenMatch, find_tokens

logger = logging.getLogger(__name__)

# Elements that must never be cloned or dropped with a repeat region.
_UNBOUNDED_TAGS = frozenset(
    {qn("w:sectPr"), qn("w:body"), odf("office:text"), odf("office:forms"), odf("text:sequence-decls")}
)


@dataclass
class Replacement:
    """What a token turns into; no instructions means the token is removed."""

    instructions: list[DocumentInstruction] = field(default_factory=list)
    inline: bool = True
    control: bool = False


REMOVE = Replacement()

Resolver = Callable[[TokenMatch], Replacement | None]


@dataclass
class AssemblyContext:
    """State of one ``assemble`` call.

    Attributes:
        merge: Resolved field values.
        rich_values: Every rich HTML value of the request.
        conversions: Converted instructions keyed by (text, rich).
    """

    merge: MergeContext
    rich_values: list[str] = field(default_factory=list)
    conversions: dict[tuple[str, bool], list[DocumentInstruction]] = field(default_factory=dict)


@dataclass
class _RepeatRegion:
    field: FieldSchema
    elements: list
    paragraphs: set = field(default_factory=set)


def is_inline(instructions: list[DocumentInstruction]) -> bool:
    """True when the content fits inside an existing paragraph."""
    body = instructions
    if body and isinstance(body[0], Paragraph):
        if not body[0].style.is_default:
            return False
        body = body[1:]
    return all(instruction.kind in INLINE_KINDS for instruction in body)


def _array_group(path: str) -> tuple[str, str] | None:
    match = ARRAY_PATH_RE.match(path)
    return (match.group("group"), match.group("leaf")) if match else None


def _removal_end(text: str, start: int, end: int) -> int:
    """End of a token removal, taking one space along when the token sat between two."""
    if 0 < start and end < len(text) and text[start - 1].isspace() and text[end].isspace():
        return end + 1
    return end


class DocumentAssembler:
    """Applies a merge context to a DOCX or ODT template.

    Args:
        config: Conversion settings used by the emitters.
        converter: HTML converter, shared across calls (it is stateless).
    """

    def __init__(self, config: ConversionConfig | None = None, converter: HtmlConverter | None = None) -> None:
        self.config = config or ConversionConfig()
        self.converter = converter or HtmlConverter()

    def assemble(self, template: bytes, file_format: str, schema: list[FieldSchema], context: MergeContext) -> bytes:
        """Produce the filled document.

        Args:
            template: Template container bytes.
            file_format: ``docx`` or ``odt``.
            schema: Field schema of the template.
            context: Values to merge.

        Returns:
            The generated container bytes, same format as the template.

        Raises:
            ParseError: If the template container is corrupt.
            GenerationError: If a repeat region cannot be bounded.
        """
        try:
            package = open_package(template, file_format)
        except ValueError as exc:
            raise TemplateInvalidError(str(exc)) from exc

        actx = AssemblyContext(merge=context, rich_values=context.rich_values())
        self._convert_rich_values(actx)
        adapters = self._adapters(package)
        for adapter in adapters:
            self._fill_part(adapter, schema, actx)
        for adapter in adapters:
            adapter.finalize()

        logger.info(
            "Assembled %s document: %d fields, %d rich values, %d conversions",
            file_format,
            len(schema),
            len(actx.rich_values),
            len(actx.conversions),
        )
        return package.to_bytes()

    def _adapters(self, package: Package) -> list[PartAdapter]:
        if isinstance(package, DocxPackage):
            numbering = _DocumentNumbering(package.main.owner, self.config)
            headings = DocxPartAdapter.heading_style_ids(package)
            return [DocxPartAdapter(package, part, numbering, headings, self.config) for part in package.parts]
        return [OdtPartAdapter(package, part, self.config) for part in package.parts]

    def _convert_rich_values(self, actx: AssemblyContext) -> None:
        """Convert each distinct rich value once, before any part is filled."""
        for text in actx.rich_values:
            key = (text, True)
            if key not in actx.conversions:
                actx.conversions[key] = self.converter.convert(text)

    # -- per part -----------------------------------------------------------

    def _fill_part(self, adapter: PartAdapter, schema: list[FieldSchema], actx: AssemblyContext) -> None:
        paragraphs = adapter.paragraphs()
        for paragraph in paragraphs:
            consolidate(adapter.slots(paragraph))

        arrays = {f.slug: f for f in schema if f.is_array}
        scalars = {f.slug: f for f in schema if not f.is_array}
        resolve_scalar = self._scalar_resolver(scalars, arrays, actx)

        regions = self._find_regions(adapter, paragraphs, arrays)
        in_region: set = set()
        for region in regions:
            in_region |= region.paragraphs

        # Snapshot the work list first so converted values are never rescanned.
        work: list[tuple[object, Resolver]] = [(p, resolve_scalar) for p in paragraphs if p not in in_region]
        for region in regions:
            work.extend(self._clone_region(adapter, region, actx, resolve_scalar))

        for paragraph, resolve in work:
            self._fill_paragraph(adapter, paragraph, resolve)

        for region in regions:
            for element in region.elements:
                adapter.remove(element)

    # -- repeat regions -----------------------------------------------------

    def _find_regions(self, adapter: PartAdapter, paragraphs: list, arrays: dict[str, FieldSchema]) -> list[_RepeatRegion]:
        if not arrays:
            return []
        occurrences: dict[str, list] = {}
        params: dict[str, dict[str, str]] = {}
        for paragraph in paragraphs:
            text = "".join(slot.text for slot in adapter.slots(paragraph))
            for match in find_tokens(text):
                if match.is_control:
                    group = match.parameters["repeat"].strip()
                    params.setdefault(group, {}).update(match.parameters)
                else:
                    parsed = _array_group(match.path)
                    group = parsed[0] if parsed else None
                if group in arrays:
                    found = occurrences.setdefault(group, [])
                    if paragraph not in found:
                        found.append(paragraph)

        regions: list[_RepeatRegion] = []
        for group, found in occurrences.items():
            elements = self._bound_region(adapter, group, found, params.get(group, {}))
            region = _RepeatRegion(field=arrays[group], elements=elements)
            for element in elements:
                region.paragraphs.update(adapter.paragraphs(element))
            for other in regions:
                if region.paragraphs & other.paragraphs:
                    raise GenerationError(
                        f"Repeat regions of '{group}' and '{other.field.slug}' overlap"
                    )
            regions.append(region)
        return regions

    def _bound_region(self, adapter: PartAdapter, group: str, paragraphs: list, params: dict[str, str]) -> list:
        rows = [adapter.row_of(p) for p in paragraphs]
        same_row = rows[0] is not None and all(row is rows[0] for row in rows)
        if params.get("block", "").lower() == "row":
            if not same_row:
                raise GenerationError(f"Repeat group '{group}' asks for a row but its tokens span several rows")
            return [rows[0]]
        if same_row:
            return [rows[0]]
        if len(paragraphs) == 1:
            return [paragraphs[0]]

        chains = [[p, *p.iterancestors()] for p in paragraphs]
        common = next(
            (el for el in chains[0] if all(any(el is a for a in chain) for chain in chains[1:])),
            None,
        )
        if common is None:
            raise GenerationError(f"Repeat group '{group}' spans unrelated parts")
        children = list(common)
        indexes = []
        for chain in chains:
            position = next(i for i, el in enumerate(chain) if el is common)
            child = chain[position - 1]
            indexes.append(next(i for i, el in enumerate(children) if el is child))
        elements = children[min(indexes) : max(indexes) + 1]

        for element in elements:
            if element.tag in _UNBOUNDED_TAGS or any(True for _ in element.iter(*_UNBOUNDED_TAGS)):
                raise GenerationError(f"Repeat group '{group}' cannot be bounded: it crosses a section boundary")
            if element.tag in adapter.paragraph_tags and not adapter.can_remove(element):
                raise GenerationError(f"Repeat group '{group}' cannot be bounded: it crosses a section boundary")
        return elements

    def _clone_region(
        self, adapter: PartAdapter, region: _RepeatRegion, actx: AssemblyContext, fallback: Resolver
    ) -> list[tuple[object, Resolver]]:
        value = actx.merge.items(region.field.slug)
        items = value.items if value is not None else ()
        item_types = value.item_types if value is not None else {}
        anchor = region.elements[0]
        work: list[tuple[object, Resolver]] = []
        for item in items:
            resolve = self._item_resolver(region.field, item, item_types, actx, fallback)
            for element in region.elements:
                clone = copy.deepcopy(element)
                adapter.prepare_clone(clone)
                clone.tail = element.tail
                anchor.addprevious(clone)
                work.extend((p, resolve) for p in adapter.paragraphs(clone))
        logger.debug("Repeated '%s' region %d time(s)", region.field.slug, len(items))
        return work

    # -- token resolution ---------------------------------------------------

    def _content(self, text: str, value_type: ValueType, actx: AssemblyContext) -> Replacement:
        if not text:
            return REMOVE
        rich = value_type == ValueType.RICH_HTML or looks_like_html(text)
        key = (text, rich)
        instructions = actx.conversions.get(key)
        if instructions is None:
            instructions = self.converter.convert(text) if rich else self.converter.convert_plain(text)
            actx.conversions[key] = instructions
        if not instructions:
            return REMOVE
        return Replacement(instructions=instructions, inline=is_inline(instructions))

    def _scalar_resolver(
        self, scalars: dict[str, FieldSchema], arrays: dict[str, FieldSchema], actx: AssemblyContext
    ) -> Resolver:
        def resolve(match: TokenMatch) -> Replacement | None:
            if match.is_control:
                return Replacement(control=True)
            path = match.path
            if not path:
                return None
            field_schema = scalars.get(path)
            if field_schema is not None:
                value = actx.merge.scalar(path)
                return self._content(value.value if value else "", field_schema.value_type, actx)
            if path in arrays:
                logger.warning("Array field '%s' used as a scalar placeholder; removed", path)
                return REMOVE
            parsed = _array_group(path)
            if parsed and parsed[0] in arrays:
                logger.warning("Item placeholder '%s' found outside its repeat region; removed", path)
                return REMOVE
            return None

        return resolve

    def _item_resolver(
        self,
        array: FieldSchema,
        item: dict[str, str],
        item_types: dict[str, ValueType],
        actx: AssemblyContext,
        fallback: Resolver,
    ) -> Resolver:
        def resolve(match: TokenMatch) -> Replacement | None:
            parsed = _array_group(match.path)
            if parsed and parsed[0] == array.slug and not match.is_control:
                leaf = parsed[1]
                leaf_schema = array.item_schema.get(leaf)
                value_type = item_types.get(leaf) or (leaf_schema.value_type if leaf_schema else ValueType.PLAIN_TEXT)
                return self._content(item.get(leaf, ""), value_type, actx)
            return fallback(match)

        return resolve

    # -- paragraph filling --------------------------------------------------

    def _fill_paragraph(self, adapter: PartAdapter, paragraph, resolve: Resolver) -> None:
        """Replace the tokens of one paragraph, last to first.

        Positions before the cursor never move, so content spliced in for one
        token is never scanned again.
        """
        cursor: int | None = None
        blocks: list[list[DocumentInstruction]] = []
        removable = False
        while True:
            located = []
            offset = 0
            for slot in adapter.slots(paragraph):
                text = slot.text
                if not slot.boundary:
                    located.extend((offset + m.start, slot, m) for m in find_tokens(text))
                offset += len(text)
            candidates = [entry for entry in located if cursor is None or entry[0] < cursor]
            if not candidates:
                break
            position, slot, match = candidates[-1]
            cursor = position

            replacement = resolve(match)
            if replacement is None:
                continue
            if replacement.control:
                removable = True
            if replacement.inline and replacement.instructions:
                adapter.splice_inline(slot, match.start, match.end, replacement.instructions)
            else:
                adapter.splice_inline(slot, match.start, _removal_end(slot.text, match.start, match.end), [])
            if not replacement.inline:
                blocks.insert(0, replacement.instructions)
                removable = True

        if paragraph.getparent() is None:
            return
        anchor = paragraph
        for instructions in blocks:
            anchor = adapter.insert_blocks_after(anchor, instructions)
        if removable and adapter.is_blank(paragraph) and adapter.can_remove(paragraph):
            adapter.remove(paragraph)
