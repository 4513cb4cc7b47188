"""Invite schema validation — request payloads are checked and normalized at the boundary.

Invariants:
    - IssueRequest.kind is code|link; limits optional, positive and bounded
    - Typed codes and short codes are uppercased with separators removed
    - Kitchen names are stripped and must not be blank
"""

import pytest
from pydantic import ValidationError

from kitchenpass.schemas.invites import (
    CodeRedeemRequest, IssueRequest, ShortCodeResolveRequest,
)
from kitchenpass.schemas.kitchens import KitchenCreate


# --- IssueRequest -------------------------------------------------------------

def test_issue_request_limits_optional():
    req = IssueRequest(kind="link")
    assert req.expiry_minutes is None
    assert req.max_uses is None


def test_issue_request_rejects_unknown_kind():
    with pytest.raises(ValidationError):
        IssueRequest(kind="qr")


@pytest.mark.parametrize("field,value", [
    ("expiry_minutes", 0),
    ("expiry_minutes", 60 * 24 * 31),
    ("max_uses", 0),
    ("max_uses", 1001),
])
def test_issue_request_bounds(field, value):
    with pytest.raises(ValidationError):
        IssueRequest(kind="code", **{field: value})


# --- CodeRedeemRequest --------------------------------------------------------

def test_code_is_normalized():
    req = CodeRedeemRequest(human_code=" ab3-k7m ")
    assert req.human_code == "AB3K7M"
    assert req.kitchen_id is None


def test_code_of_only_separators_rejected():
    with pytest.raises(ValidationError):
        CodeRedeemRequest(human_code="- - -")


def test_code_too_short_rejected():
    with pytest.raises(ValidationError):
        CodeRedeemRequest(human_code="AB")


# --- ShortCodeResolveRequest --------------------------------------------------

def test_short_code_is_normalized():
    assert ShortCodeResolveRequest(short_code="k7p 2qx").short_code == "K7P2QX"


def test_short_code_needs_six_characters():
    with pytest.raises(ValidationError):
        ShortCodeResolveRequest(short_code="K7-P2-Q")


# --- KitchenCreate ------------------------------------------------------------

def test_kitchen_name_stripped():
    assert KitchenCreate(name="  Pastry  ").name == "Pastry"


def test_blank_kitchen_name_rejected():
    with pytest.raises(ValidationError):
        KitchenCreate(name="   ")
