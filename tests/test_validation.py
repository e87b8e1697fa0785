import pytest

from mydata_schema import Attribute, Resource, ResourceRegistry
from mydata_schema.validation import (
    Errors,
    PresenceValidator,
    ValidationResult,
    as_validator,
    humanize,
    is_blank,
)

registry = ResourceRegistry()


class Base(Resource, abstract=True, registry=registry):
    pass


class LineItem(Base):
    sku = Attribute("string")
    qty = Attribute("integer")


LineItem.validates_presence_of("sku")


@LineItem.validates_with
def positive_quantity(item, errors):
    if item.qty is not None and item.qty <= 0:
        errors.add("qty", "invalid", "must be positive")


class Summary(Base):
    total = Attribute("decimal")


Summary.validates_presence_of("total")


class Order(Base):
    id = Attribute("integer")
    items = Attribute("resource", class_name="LineItem", collection=True)
    summary = Attribute("resource")


class Batch(Base):
    orders = Attribute("resource", class_name="Order", collection=True)


Batch.validates_presence_of("orders")


def test_valid_order():
    order = Order(id=1, items=[{"sku": "A", "qty": 1}], summary={"total": "10"})

    result = order.validate()

    assert isinstance(result, ValidationResult)
    assert result.valid is True
    assert result.errors.is_empty()
    assert order.is_valid()


def test_nested_presence_error_cascades():
    order = Order(items=[{"sku": None, "qty": 1}])

    assert order.is_valid() is False
    assert order.errors["items"] == ["Sku can't be blank"]
    assert order.errors.details("items")[0].kind == "invalid_resource"


def test_nested_failure_per_collection_item():
    order = Order(items=[{"sku": "A", "qty": 1}, {"qty": 0}, {"sku": " "}])

    assert order.errors["items"] == [
        "Sku can't be blank, Qty must be positive",
        "Sku can't be blank",
    ]


def test_single_nested_resource_cascades():
    order = Order(summary={})

    errors = order.errors

    assert errors.to_dict() == {"summary": ["Total can't be blank"]}
    assert errors.full_messages() == ["Summary Total can't be blank"]


def test_unset_nested_resources_are_skipped():
    assert Order(id=1).is_valid()


def test_cascade_is_recursive():
    batch = Batch(orders=[{"items": [{"qty": 2}]}])

    assert not batch.is_valid()
    assert batch.errors["orders"] == ["Items Sku can't be blank"]


def test_local_errors_still_report_nested_failures():
    batch = Batch()
    assert batch.errors.to_dict() == {"orders": ["can't be blank"]}

    batch.orders = [{"items": [{}]}]
    assert batch.errors["orders"] == ["Items Sku can't be blank"]


def test_errors_are_recomputed_on_every_check():
    order = Order(items=[{"qty": 1}])
    assert not order.is_valid()

    order.items[0].sku = "A"

    assert order.is_valid()
    assert order.errors.is_empty()


def test_validation_does_not_store_state():
    order = Order(items=[{"qty": 1}])

    first = order.validate()
    second = order.validate()

    assert first.errors is not second.errors
    assert "errors" not in vars(order)


def test_custom_validator_object():
    registry_local = ResourceRegistry()

    class Party(Resource, registry=registry_local):
        country = Attribute("string")

    class CountryCode:
        def validate(self, resource, errors):
            if resource.country and len(resource.country) != 2:
                errors.add("country", "invalid")

    validator = CountryCode()
    assert Party.validates_with(validator) is validator

    assert Party(country="GRC").errors["country"] == ["is invalid"]
    assert Party(country="GR").is_valid()


def test_presence_of_empty_collection():
    registry_local = ResourceRegistry()

    class Doc(Resource, registry=registry_local):
        codes = Attribute("string", collection=True)

    Doc.validates_presence_of("codes")

    assert Doc().errors["codes"] == ["can't be blank"]
    assert Doc(codes=["A"]).is_valid()


@pytest.mark.parametrize(
    "value, blank",
    [(None, True), ("", True), ("  ", True), ([], True), ({}, True), ("A", False), (0, False), (False, False)],
)
def test_is_blank(value, blank):
    assert is_blank(value) is blank


def test_humanize():
    assert humanize("sku") == "Sku"
    assert humanize("line_items") == "Line items"
    assert humanize("invoiceHeader") == "Invoice header"


def test_errors_collection():
    errors = Errors()
    errors.add("sku", "blank")
    errors.add("sku", "invalid", "is too long")
    errors.add("qty", "invalid")

    assert errors["sku"] == ["can't be blank", "is too long"]
    assert errors["missing"] == []
    assert "sku" in errors
    assert list(errors) == ["sku", "qty"]
    assert len(errors) == 3
    assert bool(errors)
    assert errors.attributes() == ["sku", "qty"]
    assert errors.full_messages() == ["Sku can't be blank", "Sku is too long", "Qty is invalid"]
    assert errors.full_messages_for("qty") == ["Qty is invalid"]
    assert not Errors()


def test_presence_validator_repr():
    assert repr(PresenceValidator(["sku"])) == "PresenceValidator(['sku'])"


def test_as_validator_rejects_non_callables():
    with pytest.raises(TypeError, match="Validator must define"):
        as_validator(42)
