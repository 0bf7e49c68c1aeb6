"""
Tests for payload validation at the request boundary.

Covers:
- PayloadValidator: parse, sanitize, validate
- Malformed payloads as invalid_payload failures
- Routing of path/query/header/cookie fields
- FastAPI dependency and the 422 / 400 handlers
"""
import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from formwork.errors import ErrorFormatter, GroupBy, PayloadError, SchemaValidationException, failure_response
from formwork.errors import raise_for_outcome, register_error_handlers
from formwork.parsers import Sanitizer
from formwork.validation import Failure, PayloadValidator, SchemaBuilder, validate_payload, validate_request


@pytest.fixture
def search_schema():
    builder = SchemaBuilder("Search")
    with builder.from_path():
        builder.field("org_id", int, required=True)
    with builder.from_query():
        builder.field("q", str, required=True)
        builder.field("limit", int, default=20, max=100)
    with builder.from_header():
        builder.field("x_api_version", int, alias="X-Api-Version")
    with builder.from_cookie():
        builder.field("session", str)
    builder.field("filters", "dict[any]")
    return builder.build()


class TestPayloadValidator:
    def test_json_payload(self, signup_schema):
        outcome = PayloadValidator(signup_schema).validate_payload(
            b'{"name": "Al", "email": "al@example.com"}', "application/json")
        assert outcome.unwrap() == {"name": "Al", "email": "al@example.com"}

    def test_form_payload(self, signup_schema):
        outcome = validate_payload(signup_schema, "name=Al&email=al%40example.com", "application/x-www-form-urlencoded")
        assert outcome.is_success()

    def test_malformed_payload(self, signup_schema):
        outcome = PayloadValidator(signup_schema).validate_payload(b'{"name": ', "application/json")
        assert isinstance(outcome, Failure)
        assert [(e.field, e.code) for e in outcome.errors] == [("$", "invalid_payload")]
        assert outcome.error.raw_data == '{"name": '

    def test_sanitizer_runs_before_validation(self, signup_schema):
        validator = PayloadValidator(signup_schema, sanitizer=Sanitizer.of("trim_whitespace"))
        outcome = validator.validate_data({"name": "  Al  ", "email": " al@example.com "})
        assert outcome.unwrap() == {"name": "Al", "email": "al@example.com"}

    def test_validation_errors_from_parsed_payload(self, account_schema):
        outcome = PayloadValidator(account_schema).validate_payload(
            '{"name": "Acme", "type": "business", "address": {"street": "Main", "zip": "1"}}', "application/json")
        assert sorted(e.field for e in outcome.errors) == ["address.zip", "taxId"]


class TestSourceRouting:
    def test_assemble(self, search_schema):
        data = PayloadValidator(search_schema).assemble(
            body={"filters": {"lang": "en"}, "q": "from body"},
            query=[("q", "python"), ("limit", "5")],
            path={"org_id": "9"},
            headers={"X-Api-Version": "2"},
            cookies={"session": "abc"},
        )
        assert data == {"filters": {"lang": "en"}, "q": "python", "limit": 5, "org_id": "9",
                        "x_api_version": "2", "session": "abc"}

    def test_validate_request(self, search_schema):
        outcome = validate_request(search_schema, query={"q": "python"}, path={"org_id": "9"},
                                   headers={"x-api-version": "3"})
        assert outcome.unwrap() == {"org_id": 9, "q": "python", "limit": 20, "x_api_version": 3}

    def test_missing_sources_report_field_names(self, search_schema):
        outcome = validate_request(search_schema, query={"limit": "500"})
        assert sorted((e.field, e.code) for e in outcome.errors) == [
            ("limit", "out_of_range"),
            ("org_id", "required_field_missing"),
            ("q", "required_field_missing"),
        ]


class TestFastAPIDependency:
    def test_valid_account(self, client):
        response = client.post("/accounts", json={"name": "Ada", "type": "individual", "age": "36"})
        assert response.status_code == 200
        assert response.json() == {"data": {"name": "Ada", "type": "individual", "age": 36, "newsletter": False}}

    def test_invalid_account(self, client):
        response = client.post("/accounts", json={"name": "A", "type": "business"})
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["type"] == "validation_error"
        assert error["message"] == "2 validation errors in 2 fields"
        assert error["error_count"] == 2
        assert error["schema_name"] == "Account"
        assert [(e["field"], e["code"]) for e in error["errors"]] == [
            ("name", "invalid_length"),
            ("taxId", "required_field_missing"),
        ]

    def test_form_encoded_account(self, client):
        response = client.post("/accounts", data={"name": "Ada", "type": "individual", "newsletter": "yes"})
        assert response.status_code == 200
        assert response.json()["data"]["newsletter"] is True

    def test_multipart_upload(self, client):
        response = client.post("/uploads", data={"title": "Beach", "meta[count]": "3"},
                               files={"photo": ("beach.png", b"PNGDATA!", "image/png")})
        assert response.status_code == 200
        assert response.json()["data"] == {
            "title": "Beach",
            "photo": {"filename": "beach.png", "content_type": "image/png", "size": 8},
        }

    def test_multipart_upload_rejected(self, client):
        response = client.post("/uploads", data={"title": "Beach"},
                               files={"photo": ("notes.txt", b"x" * 2048, "text/plain")})
        assert response.status_code == 422
        assert {e["field"] for e in response.json()["error"]["errors"]} == {"photo"}

    def test_malformed_body(self, client):
        response = client.post("/accounts", content=b"{oops", headers={"Content-Type": "application/json"})
        assert response.status_code == 422
        [error] = response.json()["error"]["errors"]
        assert (error["field"], error["code"]) == ("$", "invalid_payload")

    def test_path_query_and_header_sources(self, client):
        response = client.get("/orgs/5/items?page=2&tags=a&tags=b", headers={"X-Request-Id": "req-1"})
        assert response.status_code == 200
        assert response.json()["data"] == {"org_id": 5, "page": 2, "tags": ["a", "b"], "x_request_id": "req-1"}

    def test_query_defaults(self, client):
        assert client.get("/orgs/5/items").json()["data"] == {"org_id": 5, "page": 1, "tags": []}

    def test_query_violation(self, client):
        response = client.get("/orgs/5/items?page=0")
        assert response.status_code == 422
        assert response.json()["error"]["errors"][0]["field"] == "page"


class TestHandlers:
    @pytest.fixture
    def bare_client(self, signup_schema):
        app = FastAPI()
        register_error_handlers(app)

        @app.post("/signup")
        async def signup(payload: dict):
            return raise_for_outcome(signup_schema.validate(payload), "Signup")

        @app.get("/broken")
        async def broken():
            raise PayloadError("Unsupported encoding", "text/csv")

        return TestClient(app)

    def test_raise_for_outcome(self, bare_client):
        assert bare_client.post("/signup", json={"name": "Al", "email": "al@example.com"}).status_code == 200
        response = bare_client.post("/signup", json={"name": "Al"})
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Field 'email' is required"

    def test_payload_error_is_a_400(self, bare_client):
        response = bare_client.get("/broken")
        assert response.status_code == 400
        assert response.json() == {"error": {"type": "invalid_payload", "message": "Unsupported encoding"}}

    def test_failure_response_grouped(self, signup_schema):
        outcome = signup_schema.validate({"name": "A"})
        response = failure_response(outcome.error, schema_name="Signup",
                                    formatter=ErrorFormatter(group_by=GroupBy.FIELD), include_warnings=False)
        assert response.status_code == 422
        errors = json.loads(response.body)["error"]["errors"]
        assert set(errors) == {"name", "email"}
        assert errors["email"][0]["code"] == "required_field_missing"

    def test_exception_carries_failure(self, signup_schema):
        failure = signup_schema.validate({}).error
        exc = SchemaValidationException(failure, "Signup")
        assert exc.failure is failure
        assert "Field 'name' is required" in str(exc)
