"""Property-based tests for models using Hypothesis."""

import base64

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from cleankiss.models import LookupResult, StoredResponse

status_code_strategy = st.integers(min_value=100, max_value=599)
invalid_status_code_strategy = st.one_of(
    st.integers(max_value=99),
    st.integers(min_value=600, max_value=999),
)

invalid_base64_strategy = st.text(
    alphabet=st.characters(
        blacklist_characters="ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/="
    ),
    min_size=1,
    max_size=100,
)


@given(status=status_code_strategy, body=st.binary(max_size=10_000))
def test_persisted_form_preserves_body(status: int, body: bytes) -> None:
    stored = StoredResponse.model_validate_json(
        StoredResponse.from_body(status, body).model_dump_json()
    )
    lookup = LookupResult.hit(stored)
    assert lookup.status_code == status
    assert lookup.body == body


@given(status=invalid_status_code_strategy)
def test_invalid_status_rejected(status: int) -> None:
    with pytest.raises(ValidationError):
        StoredResponse(status=status)


@given(garbage=invalid_base64_strategy)
def test_invalid_base64_rejected(garbage: str) -> None:
    with pytest.raises(ValidationError):
        StoredResponse(status=200, body_b64=garbage)


@given(body=st.binary(max_size=1000))
def test_body_b64_is_standard_base64(body: bytes) -> None:
    stored = StoredResponse.from_body(200, body)
    assert stored.body_b64 == base64.b64encode(body).decode("ascii")
