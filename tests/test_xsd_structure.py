from pathlib import Path

import pytest

from mydata_schema.exceptions import XsdStructureError
from mydata_schema.xsd_structure import StructureConfig, XsdStructure

FIXTURE = Path(__file__).resolve().parent / "fixtures" / "schema" / "sample_invoices.xsd"
NAMESPACE = "http://www.aade.gr/myDATA/invoice/v1.0"


def _by_name(entries):
    return {name: (type_tag, options) for name, type_tag, options in entries}


def create_extension_chain_xsd(depth: int) -> str:
    """Create an XSD whose ``ExtendedType{depth}`` extends a chain of bases."""
    types = [
        """
    <xs:complexType name="BaseType">
        <xs:sequence>
            <xs:element name="BaseField" type="xs:string"/>
        </xs:sequence>
    </xs:complexType>"""
    ]
    for i in range(1, depth + 1):
        parent = "BaseType" if i == 1 else f"ExtendedType{i - 1}"
        types.append(
            f"""
    <xs:complexType name="ExtendedType{i}">
        <xs:complexContent>
            <xs:extension base="{parent}">
                <xs:sequence>
                    <xs:element name="Field{i}" type="xs:string"/>
                </xs:sequence>
            </xs:extension>
        </xs:complexContent>
    </xs:complexType>"""
        )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema">
    {''.join(types)}
</xs:schema>"""


def test_doc_returns_element_and_namespace():
    structure = XsdStructure(FIXTURE)

    name, doc = structure.doc("InvoicesDoc")

    assert name == "InvoicesDoc"
    assert doc.name == "InvoicesDoc"
    assert doc.attributes == {"xmlns": NAMESPACE}


def test_doc_matches_case_insensitively():
    structure = XsdStructure(FIXTURE)

    name, _ = structure.doc("invoicesdoc")

    assert name == "InvoicesDoc"


def test_doc_without_namespace_attribute():
    structure = XsdStructure(FIXTURE, config=StructureConfig(include_namespace=False))

    _, doc = structure.doc("InvoicesDoc")

    assert doc.attributes == {}


def test_doc_mode_attributes():
    structure = XsdStructure(FIXTURE)

    entries = structure.resource_attributes("InvoicesDoc", "doc")

    assert entries == [
        (
            "invoice",
            "resource",
            {"class_name": "AadeBookInvoiceType", "collection": True, "required": True},
        )
    ]


def test_complex_type_attributes_in_document_order():
    structure = XsdStructure(FIXTURE)

    entries = structure.resource_attributes("AadeBookInvoiceType", "complex_type")

    assert [name for name, _, _ in entries] == [
        "uid",
        "issuer",
        "counterpart",
        "invoiceHeader",
        "paymentMethods",
        "invoiceDetails",
        "invoiceSummary",
    ]
    by_name = _by_name(entries)
    assert by_name["uid"] == ("string", {})
    assert by_name["issuer"] == ("resource", {"class_name": "PartyType", "required": True})
    assert by_name["counterpart"] == ("resource", {"class_name": "PartyType"})
    assert by_name["invoiceDetails"] == (
        "resource",
        {"class_name": "InvoiceRowType", "collection": True, "required": True},
    )


def test_wrapped_collection_detection():
    structure = XsdStructure(FIXTURE)

    by_name = _by_name(structure.resource_attributes("AadeBookInvoiceType", "complex_type"))

    assert by_name["paymentMethods"] == (
        "resource",
        {
            "class_name": "PaymentMethodDetailType",
            "collection": True,
            "collection_element_name": "paymentMethodDetails",
        },
    )


def test_wrapped_collection_detection_can_be_disabled():
    structure = XsdStructure(
        FIXTURE, config=StructureConfig(detect_collection_wrappers=False)
    )

    by_name = _by_name(structure.resource_attributes("AadeBookInvoiceType", "complex_type"))

    assert by_name["paymentMethods"] == ("resource", {"class_name": "PaymentMethods"})


def test_element_reference_resolves_to_top_level_element():
    structure = XsdStructure(FIXTURE)

    by_name = _by_name(structure.resource_attributes("AadeBookInvoiceType", "complex_type"))

    assert by_name["invoiceSummary"] == (
        "resource",
        {"class_name": "InvoiceSummaryType", "required": True},
    )


def test_simple_types_resolve_through_base_chain():
    structure = XsdStructure(FIXTURE)

    by_name = _by_name(structure.resource_attributes("InvoiceHeaderType", "complex_type"))

    assert by_name["issueDate"] == ("date", {"required": True})
    # InvoiceKindType restricts xs:string
    assert by_name["invoiceType"] == ("string", {"required": True})
    # CurrencyType -> CountryType -> xs:string
    assert by_name["currency"] == ("string", {})
    assert by_name["exchangeRate"][0] == "decimal"


def test_choice_members_are_optional():
    structure = XsdStructure(FIXTURE)

    by_name = _by_name(structure.resource_attributes("InvoiceHeaderType", "complex_type"))

    assert by_name["selfPricing"] == ("boolean", {})
    assert by_name["exchangeRate"] == ("decimal", {})
    assert by_name["series"] == ("string", {"required": True})


def test_extension_base_children_come_first():
    structure = XsdStructure(FIXTURE)

    entries = structure.resource_attributes("InvoiceRowType", "complex_type")

    assert [name for name, _, _ in entries] == [
        "lineNumber",
        "netValue",
        "vatCategory",
        "vatAmount",
        "discountOption",
    ]
    by_name = _by_name(entries)
    assert by_name["lineNumber"] == ("integer", {"required": True})
    assert by_name["vatCategory"] == ("integer", {"required": True})
    assert by_name["discountOption"] == ("boolean", {})


def test_complex_type_matches_with_type_suffix():
    structure = XsdStructure(FIXTURE)

    assert structure.resource_attributes("Party", "complex_type") == structure.resource_attributes(
        "PartyType", "complex_type"
    )


def test_included_schema_is_indexed():
    structure = XsdStructure(FIXTURE)

    assert structure.simple_types["AmountType"] == "decimal"
    assert structure.simple_types["CurrencyType"] == "CountryType"


def test_includes_can_be_skipped():
    structure = XsdStructure(FIXTURE, config=StructureConfig(follow_includes=False))

    by_name = _by_name(structure.resource_attributes("PartyType", "complex_type"))

    assert "AmountType" not in structure.simple_types
    assert by_name["country"] == ("string", {"required": True})


def test_type_map_override():
    type_map = dict(StructureConfig().type_map)
    type_map["int"] = "string"
    structure = XsdStructure(FIXTURE, config=StructureConfig(type_map=type_map))

    by_name = _by_name(structure.resource_attributes("PartyType", "complex_type"))

    assert by_name["branch"] == ("string", {"required": True})


def test_extension_chain_depth(tmp_path):
    path = tmp_path / "chain.xsd"
    path.write_text(create_extension_chain_xsd(depth=3))

    structure = XsdStructure(path)
    entries = structure.resource_attributes("ExtendedType3", "complex_type")
    assert [name for name, _, _ in entries] == ["BaseField", "Field1", "Field2", "Field3"]

    shallow = XsdStructure(path, config=StructureConfig(max_extension_depth=1))
    with pytest.raises(XsdStructureError, match="Extension chain deeper than 1"):
        shallow.resource_attributes("ExtendedType3", "complex_type")


def test_missing_file_raises(tmp_path):
    with pytest.raises(XsdStructureError, match="not found"):
        XsdStructure(tmp_path / "missing.xsd")


def test_unknown_lookups_raise():
    structure = XsdStructure(FIXTURE)

    with pytest.raises(XsdStructureError, match="No top-level element"):
        structure.doc("CancelDoc")
    with pytest.raises(XsdStructureError, match="No complex type"):
        structure.resource_attributes("Unknown", "complex_type")
    with pytest.raises(XsdStructureError, match="Unknown XSD mode"):
        structure.resource_attributes("InvoicesDoc", "element")
