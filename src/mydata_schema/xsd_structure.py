"""XSD-driven attribute declarations for resource kinds.

This module reads an XML Schema (XSD) and answers the two questions a
resource kind asks when it is declared from a schema:

* ``doc(kind_name)``: which top-level element is the document root for the
  kind, and which attributes (``xmlns``) the root element carries;
* ``resource_attributes(kind_name, mode)``: the ordered attribute
  declarations ``(name, type, options)`` of the document element
  (``mode="doc"``) or of the complexType named after the kind
  (``mode="complex_type"``).

Mapping rules:
* Children of ``sequence``/``choice``/``all`` groups are flattened in
    document order; ``complexContent/extension`` bases contribute their
    children first.
* Elements typed with a named complexType become ``"resource"`` attributes
    whose ``class_name`` is the complexType name; inline complexTypes use
    the camel-cased element name.
* ``maxOccurs`` above one (or ``unbounded``) marks a collection. An element
    whose inline complexType holds exactly one repeatable element is a
    *wrapped* collection: the attribute takes the item's type and records the
    item element as ``collection_element_name``.
* ``minOccurs`` other than ``0`` outside a ``choice`` sets ``required``.
* XSD builtin types map to caster tags (see ``XSD_TYPE_TAGS``); named
    simpleTypes resolve through their restriction base chain. Anything
    unrecognized falls back to ``"string"``.

Typical usage:
        from pathlib import Path
        from mydata_schema.xsd_structure import XsdStructure

        structure = XsdStructure(Path("InvoicesDoc.xsd"))
        doc_name, doc = structure.doc("InvoicesDoc")
        for name, type_tag, options in structure.resource_attributes("InvoicesDoc", "doc"):
                print(name, type_tag, options)

Notes:
* ``xs:include`` and ``xs:import`` with a relative ``schemaLocation`` are
    followed so split schemas index as one.
* XSD attributes (``xs:attribute``) are ignored; resources are element-centric.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from .exceptions import XsdStructureError
from .models import camelize

logger = logging.getLogger(__name__)

XS_NS = "{http://www.w3.org/2001/XMLSchema}"

XSD_MODES = ("doc", "complex_type")

XSD_TYPE_TAGS: Dict[str, str] = {
    "string": "string",
    "normalizedString": "string",
    "token": "string",
    "anyURI": "string",
    "ID": "string",
    "IDREF": "string",
    "NMTOKEN": "string",
    "Name": "string",
    "language": "string",
    "integer": "integer",
    "int": "integer",
    "long": "integer",
    "short": "integer",
    "byte": "integer",
    "nonNegativeInteger": "integer",
    "positiveInteger": "integer",
    "nonPositiveInteger": "integer",
    "negativeInteger": "integer",
    "unsignedLong": "integer",
    "unsignedInt": "integer",
    "unsignedShort": "integer",
    "unsignedByte": "integer",
    "decimal": "decimal",
    "float": "float",
    "double": "float",
    "boolean": "boolean",
    "date": "date",
    "dateTime": "datetime",
}


@dataclass
class StructureConfig:
    """Configuration for XSD structure extraction.

    Args:
        max_extension_depth: Maximum complexType extension chain followed
            before raising :class:`XsdStructureError`.
        include_namespace: Add ``xmlns`` (the schema targetNamespace) to the
            document container attributes.
        detect_collection_wrappers: Treat elements whose inline complexType
            holds a single repeatable element as wrapped collections.
        follow_includes: Index ``xs:include``/``xs:import`` targets.
        type_map: XSD builtin type name to caster tag.
    """

    max_extension_depth: int = 10
    include_namespace: bool = True
    detect_collection_wrappers: bool = True
    follow_includes: bool = True
    type_map: Dict[str, str] = field(default_factory=lambda: dict(XSD_TYPE_TAGS))


@dataclass
class XsdDocument:
    """Document root element name plus the attributes it carries."""

    name: str
    attributes: Dict[str, str] = field(default_factory=dict)


@dataclass
class XsdAttribute:
    """One attribute declaration derived from an XSD element."""

    name: str
    type: str
    class_name: Optional[str] = None
    collection: bool = False
    collection_element_name: Optional[str] = None
    required: bool = False

    def as_declaration(self) -> Tuple[str, str, Dict[str, Any]]:
        """Return ``(name, type, options)`` as consumed by resource kinds."""
        options: Dict[str, Any] = {}
        if self.class_name:
            options["class_name"] = self.class_name
        if self.collection:
            options["collection"] = True
        if self.collection_element_name:
            options["collection_element_name"] = self.collection_element_name
        if self.required:
            options["required"] = True
        return self.name, self.type, options


class XsdStructure:
    """Index an XSD and derive resource attribute declarations from it.

    Example:
        structure = XsdStructure(Path("schema.xsd"))
        structure.resource_attributes("LineItem", "complex_type")
        # [('sku', 'string', {'required': True}), ('qty', 'integer', {})]
    """

    def __init__(self, xsd_path: Path, config: Optional[StructureConfig] = None) -> None:
        self.xsd_path = Path(xsd_path)
        if not self.xsd_path.exists():
            raise XsdStructureError(f"XSD file not found: {self.xsd_path}")
        self.config = config or StructureConfig()
        self.target_namespace: Optional[str] = None
        self.simple_types: Dict[str, Optional[str]] = {}
        self.complex_types: Dict[str, ET.Element] = {}
        self.elements: Dict[str, ET.Element] = {}
        self._load(self.xsd_path, visited=set())
        logger.debug(
            f"Indexed {self.xsd_path}: {len(self.elements)} elements, "
            f"{len(self.complex_types)} complex types, {len(self.simple_types)} simple types"
        )

    # ---------------- Public lookups ---------------- #

    def doc(self, kind_name: str) -> Tuple[str, XsdDocument]:
        """Return ``(element_name, XsdDocument)`` for a document kind.

        Raises:
            XsdStructureError: If no top-level element matches ``kind_name``.
        """
        element = self._match(self.elements, kind_name)
        if element is None:
            raise XsdStructureError(
                f"No top-level element for '{kind_name}' in {self.xsd_path}"
            )
        name = element.get("name", kind_name)
        attributes: Dict[str, str] = {}
        if self.config.include_namespace and self.target_namespace:
            attributes["xmlns"] = self.target_namespace
        return name, XsdDocument(name=name, attributes=attributes)

    def resource_attributes(
        self, kind_name: str, mode: str
    ) -> List[Tuple[str, str, Dict[str, Any]]]:
        """Return the ordered attribute declarations for ``kind_name``.

        Args:
            kind_name: Resource kind name.
            mode: ``"doc"`` (children of the document element) or
                ``"complex_type"`` (children of the named complexType).

        Raises:
            XsdStructureError: Unknown mode or no matching definition.
        """
        if mode == "doc":
            element = self._match(self.elements, kind_name)
            if element is None:
                raise XsdStructureError(
                    f"No top-level element for '{kind_name}' in {self.xsd_path}"
                )
            complex_type = element.find(f"{XS_NS}complexType")
            if complex_type is None:
                complex_type = self.complex_types.get(_local_name(element.get("type")) or "")
        elif mode == "complex_type":
            complex_type = self._match(self.complex_types, kind_name, suffixes=("", "Type"))
        else:
            raise XsdStructureError(f"Unknown XSD mode {mode!r}; expected one of {XSD_MODES}")

        if complex_type is None:
            raise XsdStructureError(
                f"No complex type for '{kind_name}' ({mode}) in {self.xsd_path}"
            )
        return [attr.as_declaration() for attr in self.complex_type_attributes(complex_type)]

    def complex_type_attributes(
        self, node: ET.Element, extension_depth: int = 0
    ) -> List[XsdAttribute]:
        """Flatten a complexType (including extension bases) into attributes."""
        attributes: List[XsdAttribute] = []
        content = node
        complex_content = node.find(f"{XS_NS}complexContent")
        if complex_content is not None:
            extension = complex_content.find(f"{XS_NS}extension")
            if extension is not None:
                base = _local_name(extension.get("base"))
                if base and base in self.complex_types:
                    if extension_depth >= self.config.max_extension_depth:
                        raise XsdStructureError(
                            f"Extension chain deeper than {self.config.max_extension_depth} at '{base}'"
                        )
                    attributes.extend(
                        self.complex_type_attributes(
                            self.complex_types[base], extension_depth + 1
                        )
                    )
                content = extension
        attributes.extend(self._group_attributes(content, optional=False, repeated=False))
        return attributes

    # ---------------- Indexing ---------------- #

    def _load(self, path: Path, visited: Set[Path]) -> None:
        path = path.resolve()
        if path in visited:
            return
        visited.add(path)
        root = ET.parse(path).getroot()
        if self.target_namespace is None:
            self.target_namespace = root.get("targetNamespace")

        for node in root:
            name = node.get("name")
            if node.tag == f"{XS_NS}simpleType" and name:
                restriction = node.find(f"{XS_NS}restriction")
                base = restriction.get("base") if restriction is not None else None
                self.simple_types.setdefault(name, _local_name(base))
            elif node.tag == f"{XS_NS}complexType" and name:
                self.complex_types.setdefault(name, node)
            elif node.tag == f"{XS_NS}element" and name:
                self.elements.setdefault(name, node)
            elif node.tag in (f"{XS_NS}include", f"{XS_NS}import") and self.config.follow_includes:
                location = node.get("schemaLocation")
                if not location:
                    continue
                included = path.parent / location
                if included.exists():
                    self._load(included, visited)
                else:
                    logger.warning(f"Skipping missing schema {included} referenced by {path}")

    def _match(
        self,
        index: Dict[str, ET.Element],
        name: str,
        suffixes: Tuple[str, ...] = ("",),
    ) -> Optional[ET.Element]:
        """Look up ``name`` exactly, then with suffixes, then case-insensitively."""
        for suffix in suffixes:
            if f"{name}{suffix}" in index:
                return index[f"{name}{suffix}"]
        lowered = {key.lower(): value for key, value in index.items()}
        for suffix in suffixes:
            match = lowered.get(f"{name}{suffix}".lower())
            if match is not None:
                return match
        return None

    # ---------------- Element mapping ---------------- #

    def _group_attributes(
        self, node: ET.Element, optional: bool, repeated: bool
    ) -> List[XsdAttribute]:
        attributes: List[XsdAttribute] = []
        for child in node:
            if child.tag in (f"{XS_NS}sequence", f"{XS_NS}choice", f"{XS_NS}all"):
                attributes.extend(
                    self._group_attributes(
                        child,
                        optional=optional
                        or child.tag == f"{XS_NS}choice"
                        or child.get("minOccurs") == "0",
                        repeated=repeated or _is_repeatable(child.get("maxOccurs")),
                    )
                )
            elif child.tag == f"{XS_NS}element":
                attributes.append(self._element_attribute(child, optional, repeated))
        return attributes

    def _element_attribute(
        self, element: ET.Element, optional: bool, repeated: bool
    ) -> XsdAttribute:
        element = self._resolve_reference(element)
        name = element.get("name")
        if not name:
            raise XsdStructureError("Encountered anonymous element in XSD")

        collection = repeated or _is_repeatable(element.get("maxOccurs"))
        required = not optional and element.get("minOccurs", "1") != "0"

        inline_complex = element.find(f"{XS_NS}complexType")
        if inline_complex is not None:
            item = self._wrapped_item(inline_complex) if not collection else None
            if item is not None:
                return XsdAttribute(
                    name=name,
                    type=item.type,
                    class_name=item.class_name,
                    collection=True,
                    collection_element_name=item.name,
                    required=required,
                )
            return XsdAttribute(
                name=name,
                type="resource",
                class_name=camelize(name),
                collection=collection,
                required=required,
            )

        inline_simple = element.find(f"{XS_NS}simpleType")
        if inline_simple is not None:
            restriction = inline_simple.find(f"{XS_NS}restriction")
            base = restriction.get("base") if restriction is not None else None
            return XsdAttribute(
                name=name,
                type=self._type_tag(_local_name(base)),
                collection=collection,
                required=required,
            )

        type_name = _local_name(element.get("type"))
        if type_name and type_name in self.complex_types and type_name not in self.config.type_map:
            return XsdAttribute(
                name=name,
                type="resource",
                class_name=type_name,
                collection=collection,
                required=required,
            )
        return XsdAttribute(
            name=name,
            type=self._type_tag(type_name),
            collection=collection,
            required=required,
        )

    def _wrapped_item(self, complex_type: ET.Element) -> Optional[XsdAttribute]:
        """Return the item attribute if ``complex_type`` only wraps a collection."""
        if not self.config.detect_collection_wrappers:
            return None
        groups = [child for child in complex_type if child.tag != f"{XS_NS}annotation"]
        if len(groups) != 1 or groups[0].tag != f"{XS_NS}sequence":
            return None
        items = list(groups[0])
        if len(items) != 1 or items[0].tag != f"{XS_NS}element":
            return None
        item = self._element_attribute(items[0], optional=False, repeated=False)
        return item if item.collection else None

    def _type_tag(self, type_name: Optional[str]) -> str:
        """Resolve a builtin or named simple type to a caster tag."""
        type_map = self.config.type_map
        seen: Set[str] = set()
        current = type_name
        while current and current not in seen:
            seen.add(current)
            if current in type_map:
                return type_map[current]
            if current not in self.simple_types:
                break
            current = self.simple_types[current]
        return "string"

    def _resolve_reference(self, element: ET.Element) -> ET.Element:
        """Replace an ``element ref`` with a copy of the referenced element.

        Occurrence constraints on the referencing element win over the ones on
        the referenced definition.
        """
        ref = _local_name(element.get("ref"))
        if not ref:
            return element
        referenced = self.elements.get(ref)
        if referenced is None:
            raise XsdStructureError(f"Unresolved element reference '{ref}'")
        resolved = ET.Element(referenced.tag, dict(referenced.attrib))
        for child in referenced:
            resolved.append(deepcopy(child))
        for attr in ("minOccurs", "maxOccurs"):
            resolved.attrib.pop(attr, None)
            value = element.get(attr)
            if value is not None:
                resolved.set(attr, value)
        return resolved


def _is_repeatable(max_occurs: Optional[str]) -> bool:
    if max_occurs is None:
        return False
    return max_occurs == "unbounded" or (max_occurs.isdigit() and int(max_occurs) > 1)


def _local_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if ":" in value:
        return value.split(":", 1)[1]
    return value
