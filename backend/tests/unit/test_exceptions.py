"""Tests for the lot error taxonomy and its HTTP mapping."""

import pytest

from api.helpers import lot_error_to_http
from services.exceptions import (
    ConflictError,
    InsufficientQuantityError,
    LotError,
    NotFoundError,
    StoreError,
    ValidationError,
)


@pytest.mark.parametrize(
    "error,status_code",
    [
        (ValidationError("bad"), 400),
        (InsufficientQuantityError("short", lot_id="lot-1"), 400),
        (NotFoundError("missing"), 404),
        (ConflictError("conflict"), 409),
        (StoreError("db down"), 500),
    ],
)
def test_status_codes(error, status_code):
    http = lot_error_to_http(error)
    assert http.status_code == status_code


def test_client_errors_keep_message():
    assert lot_error_to_http(ConflictError("has sales")).detail == "has sales"


def test_server_errors_hide_message():
    assert lot_error_to_http(StoreError("secret path")).detail == "Internal server error"


def test_insufficient_quantity_is_validation_error():
    error = InsufficientQuantityError("short", lot_id="lot-1")
    assert isinstance(error, ValidationError)
    assert isinstance(error, LotError)
    assert error.lot_id == "lot-1"
