import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from app.core.errors import (
    AppError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
    UsageLimitError,
    propagate_error,
    register_exception_handlers,
    validate_input,
)


class _Payload(BaseModel):
    name: str
    count: int


def test_subclasses_carry_status_and_code():
    error = AppError.not_found("Content not found")

    assert isinstance(error, NotFoundError)
    assert error.status_code == 404
    assert error.to_dict() == {"error": "NOT_FOUND", "message": "Content not found", "data": None}
    assert AppError.too_many_requests("Limit reached").error_code == "TOO_MANY_REQUESTS"
    assert AppError("odd", 418).error_code == "INTERNAL_SERVER_ERROR"


def test_to_dict_renders_data_but_never_causes():
    assert AppError.internal("boom", cause=RuntimeError("secret")).to_dict() == {
        "error": "INTERNAL_SERVER_ERROR",
        "message": "boom",
        "data": None,
    }
    assert AppError.conflict("taken", cause="detail", data={"field": "email"}).to_dict() == {
        "error": "CONFLICT",
        "message": "taken",
        "data": {"field": "email"},
    }


def test_propagate_error_only_reraises_app_errors():
    with pytest.raises(ConflictError):
        propagate_error(ConflictError("Email already registered"))
    propagate_error(ValueError("plain errors are left to the caller"))


def test_validate_input_formats_paths():
    with pytest.raises(InvalidInputError) as exc_info:
        validate_input(_Payload, {"name": "x", "count": "many"})

    assert exc_info.value.cause.startswith("count:")
    assert exc_info.value.data == {"details": exc_info.value.cause}


def test_handler_renders_json_response():
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/limited")
    def limited():
        raise UsageLimitError("Monthly content limit reached", data={"limit": 5})

    response = TestClient(app).get("/limited")

    assert response.status_code == 429
    assert response.json() == {
        "error": "TOO_MANY_REQUESTS",
        "message": "Monthly content limit reached",
        "data": {"limit": 5},
    }
