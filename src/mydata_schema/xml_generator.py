"""XML rendering and reading of resource graphs.

The generator walks a resource using only its schema metadata: the
container supplies the root element name and attributes, the ordered
attribute list decides child order and each :class:`AttributeMapping`
decides nesting and collection wrapping.

Rendering rules:
        * Unset attributes and empty collections produce no element.
        * A nested resource becomes an element named after the attribute,
            holding the nested resource's own children.
        * Collection items repeat the attribute element; when the mapping
            has ``collection_element_name`` the items are wrapped instead:
            ``<payments><payment>...</payment><payment>...</payment></payments>``.
        * Booleans render as ``true``/``false``, dates and datetimes as
            ISO 8601, decimals in plain notation.

Example:
        from mydata_schema.xml_generator import XmlGenerator

        xml_text = XmlGenerator(order).to_xml()
        same = Order.from_xml(xml_text)

The reader (:class:`XmlReader`) performs the inverse mapping: it converts an
element tree into the nested dictionaries a resource constructor accepts,
leaving type coercion to the caster. Text is kept verbatim and empty
elements read as empty strings. Namespaces are stripped from tags and
unknown elements are ignored.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Union

from .models import AttributeMapping


def format_value(value: Any) -> str:
    """Render a primitive value as XML text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def _is_resource(value: Any) -> bool:
    return hasattr(value, "schema") and hasattr(value, "read_attribute")


def _local_name(tag: str) -> str:
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    if ":" in tag:
        return tag.split(":", 1)[1]
    return tag


class XmlGenerator:
    """Build an XML document from a resource instance.

    Args:
        resource: Root resource; its container metadata names the root element.
        pretty: Indent the output (two spaces per level).
    """

    def __init__(self, resource: Any, pretty: bool = True) -> None:
        self.resource = resource
        self.pretty = pretty

    def to_element(self) -> ET.Element:
        """Return the detached root element."""
        container = self.resource.schema.container
        root = ET.Element(
            container.name,
            {str(key): format_value(value) for key, value in container.attributes.items()},
        )
        self._append_children(root, self.resource)
        return root

    def to_xml(self) -> str:
        """Return the document as text, starting with an XML declaration."""
        root = self.to_element()
        if self.pretty:
            ET.indent(ET.ElementTree(root), space="  ", level=0)
        return ET.tostring(root, encoding="UTF-8", xml_declaration=True).decode("utf-8")

    def _append_children(self, parent: ET.Element, resource: Any) -> None:
        schema = resource.schema
        for name in schema.attributes:
            mapping = schema.mappings[name]
            value = resource.read_attribute(name)
            if mapping.collection:
                if not value:
                    continue
                target, tag = parent, name
                if mapping.collection_element_name:
                    target = ET.SubElement(parent, name)
                    tag = mapping.collection_element_name
                for item in value:
                    if item is not None:
                        self._append_value(target, tag, item)
            elif value is not None:
                self._append_value(parent, name, value)

    def _append_value(self, parent: ET.Element, tag: str, value: Any) -> None:
        element = ET.SubElement(parent, tag)
        if _is_resource(value):
            self._append_children(element, value)
        else:
            element.text = format_value(value)


def render_xml(resource: Any) -> str:
    """Default registry renderer: pretty-printed XML text for ``resource``."""
    return XmlGenerator(resource).to_xml()


class XmlReader:
    """Build resource instances from XML produced by :class:`XmlGenerator`.

    Args:
        resource: Resource class describing the root element's children.
    """

    def __init__(self, resource: type) -> None:
        self.resource = resource

    def read(self, source: Union[str, bytes, ET.Element]) -> Any:
        """Parse ``source`` and construct an instance of the resource class."""
        if isinstance(source, ET.Element):
            element = source
        else:
            if isinstance(source, str):
                source = source.encode("utf-8")
            element = ET.fromstring(source)
        return self.resource(self.to_dict(element, self.resource))

    def to_dict(self, element: ET.Element, resource: type) -> Dict[str, Any]:
        """Convert the children of ``element`` into constructor input."""
        schema = resource.schema  # type: ignore[attr-defined]
        values: Dict[str, Any] = {}
        for child in element:
            name = _local_name(child.tag)
            mapping = schema.mappings.get(name)
            if mapping is None:
                continue
            if mapping.collection:
                items: List[Any] = values.setdefault(name, [])
                if mapping.collection_element_name:
                    sources = [
                        item
                        for item in child
                        if _local_name(item.tag) == mapping.collection_element_name
                    ]
                else:
                    sources = [child]
                items.extend(self._read_value(item, mapping) for item in sources)
            else:
                values[name] = self._read_value(child, mapping)
        return values

    def _read_value(self, element: ET.Element, mapping: AttributeMapping) -> Any:
        if mapping.resource is not None:
            return self.to_dict(element, mapping.resource)
        return element.text or ""
