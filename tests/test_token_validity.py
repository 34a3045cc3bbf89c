from __future__ import annotations

import pytest
from jose import jwt

from conftest import make_access_token
from lead_bridge.services.token_validity import TokenValidityChecker, read_expiration

NOW = 1_700_000_000.0


@pytest.fixture
def checker() -> TokenValidityChecker:
    return TokenValidityChecker(clock=lambda: NOW)


def test_token_with_exactly_ten_percent_left_is_valid(checker) -> None:
    token = make_access_token(360, now=NOW)

    assert checker.is_valid(3600, token) is True


def test_token_one_second_below_threshold_needs_refresh(checker) -> None:
    token = make_access_token(359, now=NOW)

    assert checker.is_valid(3600, token) is False


@pytest.mark.parametrize("lifetime", [10, 86_400, 7_776_000])
def test_boundary_holds_for_any_lifetime(checker, lifetime: int) -> None:
    threshold = lifetime // 10

    assert checker.is_valid(lifetime, make_access_token(threshold, now=NOW)) is True
    assert checker.is_valid(lifetime, make_access_token(threshold - 1, now=NOW)) is False


def test_expired_token_is_never_valid(checker) -> None:
    token = make_access_token(-30, now=NOW)

    assert checker.is_valid(0, token) is False


def test_remaining_seconds_round_half_up() -> None:
    checker = TokenValidityChecker(clock=lambda: NOW - 0.5)

    assert checker.remaining_seconds(NOW) == 1


def test_token_without_exp_claim_needs_refresh(checker) -> None:
    token = jwt.encode({"sub": "42"}, "crm-secret", algorithm="HS256")

    assert read_expiration(token) is None
    assert checker.is_valid(3600, token) is False


@pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
def test_undecodable_token_needs_refresh(checker, token: str) -> None:
    assert checker.is_valid(3600, token) is False


def test_non_numeric_exp_claim_is_ignored() -> None:
    token = jwt.encode({"exp": "tomorrow"}, "crm-secret", algorithm="HS256")

    assert read_expiration(token) is None
