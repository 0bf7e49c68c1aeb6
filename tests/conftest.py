"""
Shared pytest fixtures.

Schemas mirror the kind of payloads a signup/account API receives; the
FastAPI app wires the validated() dependency and the 422 handlers.
"""
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from formwork.errors import register_error_handlers
from formwork.validation import FileUpload, SchemaBuilder, validated


@pytest.fixture
def signup_schema():
    builder = SchemaBuilder("Signup")
    builder.field("name", str, required=True, min_length=2)
    builder.field("email", str, required=True, format="email")
    return builder.build()


@pytest.fixture
def address_schema():
    builder = SchemaBuilder("Address")
    builder.field("street", str, required=True)
    builder.field("zip", str, required=True, pattern=r"^\d{5}$")
    return builder.build()


@pytest.fixture
def account_schema(address_schema):
    builder = SchemaBuilder("Account")
    builder.field("name", str, required=True, min_length=2)
    builder.field("type", str, required=True, enum=["individual", "business"])
    builder.field("age", int, min=18, max=130)
    builder.field("newsletter", bool, default=False)
    with builder.when_field("type", "business") as group:
        group.field("taxId", str, required=True, pattern=r"^\d{9}$")
    builder.nested("address", address_schema)
    return builder.build()


@pytest.fixture
def app(account_schema):
    builder = SchemaBuilder("ListItems")
    with builder.from_path():
        builder.field("org_id", int, required=True)
    with builder.from_query():
        builder.field("page", int, default=1, min=1)
        builder.field("tags", "list[str]", default=[])
    with builder.from_header():
        builder.field("x_request_id", str)
    list_items = builder.build()

    uploads = SchemaBuilder("Upload")
    uploads.field("title", str, required=True)
    uploads.field("photo", "dict[any]", required=True)
    uploads.add_validator(FileUpload("photo", max_size=1024, allowed_types=("image/png",)))
    upload_schema = uploads.build()

    app = FastAPI()
    register_error_handlers(app)

    @app.post("/accounts")
    async def create_account(data: dict = Depends(validated(account_schema))):
        return {"data": data}

    @app.get("/orgs/{org_id}/items")
    async def list_items_route(data: dict = Depends(validated(list_items))):
        return {"data": data}

    @app.post("/uploads")
    async def upload_route(data: dict = Depends(validated(upload_schema))):
        return {"data": data}

    return app


@pytest.fixture
def client(app):
    return TestClient(app)
