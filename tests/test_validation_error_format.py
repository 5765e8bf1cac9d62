from core.validation_errors import format_validation_error_details


def test_missing_required_field_summary_is_readable():
    errors = [
        {
            "type": "missing",
            "loc": ("body", "folderName"),
            "msg": "Field required",
            "input": {"parentPath": "docs"},
        }
    ]

    details = format_validation_error_details(errors)

    assert details["summary"] == "Validation failed: missing required field: folderName."
    assert details["missingFields"] == ["folderName"]
    assert details["fieldErrors"] == [
        {
            "path": "folderName",
            "location": "body",
            "message": "Field required",
            "errorType": "missing",
        }
    ]
    assert "errors" not in details


def test_invalid_query_value_has_field_error_without_missing_summary():
    errors = [
        {
            "type": "bool_parsing",
            "loc": ("query", "isFolder"),
            "msg": "Input should be a valid boolean",
            "input": "maybe",
        }
    ]

    details = format_validation_error_details(errors)

    assert details["summary"] == "Validation failed for 1 field."
    assert details["missingFields"] == []
    assert details["fieldErrors"][0]["path"] == "isFolder"
    assert details["fieldErrors"][0]["location"] == "query"
    assert details["fieldErrors"][0]["errorType"] == "bool_parsing"


def test_string_too_short_is_normalized():
    errors = [
        {
            "type": "string_too_short",
            "loc": ("body", "folderName"),
            "msg": "String should have at least 1 character",
            "input": "",
        }
    ]

    details = format_validation_error_details(errors)

    assert details["summary"] == "Validation failed for 1 field."
    assert details["fieldErrors"] == [
        {
            "path": "folderName",
            "location": "body",
            "message": "String should have at least 1 character",
            "errorType": "string_too_short",
        }
    ]


def test_multiple_missing_fields_are_deduplicated_and_listed():
    errors = [
        {"type": "missing", "loc": ("body", "folderName"), "msg": "Field required", "input": {}},
        {"type": "missing", "loc": ("body", "parentPath"), "msg": "Field required", "input": {}},
        {"type": "missing", "loc": ("body", "folderName"), "msg": "Field required", "input": {}},
    ]

    details = format_validation_error_details(errors)

    assert details["summary"] == "Validation failed: missing required fields: folderName, parentPath."
    assert details["missingFields"] == ["folderName", "parentPath"]


def test_body_root_error_has_root_path():
    details = format_validation_error_details([{"type": "json_invalid", "loc": ("body",), "msg": "JSON decode error"}])

    assert details["fieldErrors"][0]["path"] == "(root)"
