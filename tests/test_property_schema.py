import pytest
from pydantic import ValidationError

from resource_portal.schemas.catalog import PropertyCreate
from resource_portal.schemas.resource import PropertyDefinition, ResourceCreate
from resource_portal.services.resource_service import (
    extract_item_fields,
    is_valid_property_value,
    resource_type_for_name,
    validate_properties_against_schema,
    validate_property_definitions,
)

SCHEMA = [
    PropertyDefinition(key="serialNumber", label="Serial Number", data_type="STRING", is_required=True),
    PropertyDefinition(key="warrantyExpiry", label="Warranty Expiry", data_type="DATE", is_required=True),
    PropertyDefinition(key="value", label="Value", data_type="NUMBER"),
    PropertyDefinition(key="encrypted", label="Encrypted", data_type="BOOLEAN"),
]


def test_valid_properties_pass():
    result = validate_properties_against_schema(
        {"serialNumber": "SN-1", "warrantyExpiry": "2027-01-31", "value": 1299.5, "encrypted": True},
        SCHEMA,
    )
    assert result.is_valid
    assert result.messages() == []


def test_missing_and_extra_keys_are_reported():
    result = validate_properties_against_schema({"serialNumber": "SN-1", "colour": "grey"}, SCHEMA)
    assert result.missing_keys == ["warrantyExpiry"]
    assert result.extra_keys == ["colour"]
    assert not result.is_valid
    assert "Missing required properties: warrantyExpiry" in result.messages()


def test_type_errors_skip_null_values():
    result = validate_properties_against_schema(
        {"serialNumber": 42, "warrantyExpiry": "next tuesday", "value": None, "encrypted": "yes"},
        SCHEMA,
    )
    assert [error["key"] for error in result.type_errors] == ["serialNumber", "warrantyExpiry", "encrypted"]
    assert result.missing_keys == []


@pytest.mark.parametrize(
    "value,data_type,expected",
    [
        ("x", "STRING", True),
        (1, "STRING", False),
        (3, "NUMBER", True),
        (2.5, "NUMBER", True),
        (True, "NUMBER", False),
        (float("nan"), "NUMBER", False),
        (False, "BOOLEAN", True),
        (0, "BOOLEAN", False),
        ("2026-10-18", "DATE", True),
        ("2026-10-18T09:30:00Z", "DATE", True),
        ("18/10/2026", "DATE", False),
        ("x", "JSON", False),
    ],
)
def test_property_value_types(value, data_type, expected):
    assert is_valid_property_value(value, data_type) is expected


def test_definition_errors():
    errors = validate_property_definitions(
        [
            PropertyDefinition(key="ram", label="RAM"),
            PropertyDefinition(key="ram", label="RAM again"),
            PropertyDefinition(key="cpu", label=""),
            PropertyDefinition(key="gpu", label="GPU", data_type="JSON"),
            PropertyDefinition(key="  ", label="Blank"),
        ]
    )
    messages = [error["message"] for error in errors]
    assert 'Duplicate property key: "ram"' in messages
    assert 'Property "cpu" is missing a label' in messages
    assert 'Property "gpu" has invalid data type "JSON"' in messages
    assert "Property key is required" in messages


def test_extract_item_fields():
    fields = extract_item_fields({"serialNumber": "SN-9", "ipAddress": "10.0.0.4", "memory": "16GB"})
    assert fields == {"serial_number": "SN-9", "hostname": None, "ip_address": "10.0.0.4", "mac_address": None}


def test_type_names_map_to_resource_types():
    assert resource_type_for_name("Hardware") == "PHYSICAL"
    assert resource_type_for_name("physical") == "PHYSICAL"
    assert resource_type_for_name("Software") == "SOFTWARE"
    assert resource_type_for_name("Cloud") == "CLOUD"
    assert resource_type_for_name("Furniture") == "PHYSICAL"
    assert resource_type_for_name(None) == "PHYSICAL"


def test_custom_property_keys_are_validated():
    assert PropertyCreate(key="rackUnit_2", label="Rack", data_type="string").data_type == "STRING"
    with pytest.raises(ValidationError):
        PropertyCreate(key="2fast", label="Bad", data_type="STRING")
    with pytest.raises(ValidationError):
        PropertyCreate(key="ok", label="Bad", data_type="JSON")


def test_resource_create_requires_a_shape():
    with pytest.raises(ValidationError):
        ResourceCreate(name="Orphan", custodian_id=1)
    assert ResourceCreate(name="Laptop", custodian_id=1, type="hardware").type == "PHYSICAL"
    with pytest.raises(ValidationError):
        ResourceCreate(name="Laptop", custodian_id=1, type="furniture")
