"""Tests for single-use token generation and slot handling."""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from projectcamp.core.tokens import (
    TokenPurpose,
    TokenSlot,
    clear_slot,
    cleared_slot_values,
    fill_slot,
    generate_single_use_token,
    hash_token,
    normalize_to_utc,
    read_slot,
    slot_columns,
    token_lifetime,
)


def _record() -> SimpleNamespace:
    return SimpleNamespace(
        email_verification_token_hash=None,
        email_verification_token_expires_at=None,
        forgot_password_token_hash=None,
        forgot_password_token_expires_at=None,
        invitation_token_hash=None,
        invitation_token_expires_at=None,
    )


def test_generated_token_digest_matches_secret() -> None:
    token = generate_single_use_token(TokenPurpose.EMAIL_VERIFICATION)

    assert token.digest == hashlib.sha256(token.secret.encode("utf-8")).hexdigest()
    assert token.digest == hash_token(token.secret)
    assert token.secret != token.digest
    assert len(token.secret) >= 43


def test_generated_tokens_are_unique() -> None:
    secrets_seen = {generate_single_use_token(TokenPurpose.PASSWORD_RESET).secret for _ in range(50)}

    assert len(secrets_seen) == 50


@pytest.mark.parametrize(
    ("purpose", "lifetime"),
    [
        (TokenPurpose.EMAIL_VERIFICATION, timedelta(minutes=20)),
        (TokenPurpose.PASSWORD_RESET, timedelta(minutes=20)),
        (TokenPurpose.PROJECT_INVITATION, timedelta(days=7)),
    ],
)
def test_token_expiry_follows_purpose_lifetime(purpose: TokenPurpose, lifetime: timedelta) -> None:
    now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    token = generate_single_use_token(purpose, now=now)

    assert token_lifetime(purpose) == lifetime
    assert token.expires_at == now + lifetime


def test_each_purpose_has_its_own_columns() -> None:
    columns = [slot_columns(purpose) for purpose in TokenPurpose]

    assert len(set(columns)) == len(columns)


def test_fill_slot_only_touches_its_purpose() -> None:
    record = _record()
    token = generate_single_use_token(TokenPurpose.PASSWORD_RESET)

    fill_slot(record, TokenPurpose.PASSWORD_RESET, token)

    assert record.forgot_password_token_hash == token.digest
    assert record.forgot_password_token_expires_at == token.expires_at
    assert read_slot(record, TokenPurpose.EMAIL_VERIFICATION).is_empty
    assert read_slot(record, TokenPurpose.PROJECT_INVITATION).is_empty


def test_filling_a_slot_replaces_the_pending_token() -> None:
    record = _record()
    first = generate_single_use_token(TokenPurpose.EMAIL_VERIFICATION)
    second = generate_single_use_token(TokenPurpose.EMAIL_VERIFICATION)

    fill_slot(record, TokenPurpose.EMAIL_VERIFICATION, first)
    fill_slot(record, TokenPurpose.EMAIL_VERIFICATION, second)
    slot = read_slot(record, TokenPurpose.EMAIL_VERIFICATION)

    assert not slot.accepts(first.digest)
    assert slot.accepts(second.digest)


def test_clear_slot_empties_digest_and_expiry_together() -> None:
    record = _record()
    fill_slot(record, TokenPurpose.PROJECT_INVITATION, generate_single_use_token(TokenPurpose.PROJECT_INVITATION))

    clear_slot(record, TokenPurpose.PROJECT_INVITATION)

    assert record.invitation_token_hash is None
    assert record.invitation_token_expires_at is None
    assert cleared_slot_values(TokenPurpose.PROJECT_INVITATION) == {
        "invitation_token_hash": None,
        "invitation_token_expires_at": None,
    }


def test_slot_rejects_at_and_after_expiry() -> None:
    expires_at = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
    slot = TokenSlot(digest="abc", expires_at=expires_at)

    assert slot.accepts("abc", now=expires_at - timedelta(seconds=1))
    assert not slot.accepts("abc", now=expires_at)
    assert not slot.accepts("abc", now=expires_at + timedelta(seconds=1))


def test_slot_rejects_wrong_digest_and_empty_slot() -> None:
    now = datetime.now(timezone.utc)
    live = TokenSlot(digest="abc", expires_at=now + timedelta(minutes=5))

    assert not live.accepts("abd", now=now)
    assert not TokenSlot(digest=None, expires_at=None).accepts("abc", now=now)


def test_normalize_to_utc_handles_naive_and_offset_datetimes() -> None:
    naive = datetime(2025, 1, 1, 12, 0)
    offset = datetime(2025, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

    assert normalize_to_utc(naive) == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert normalize_to_utc(offset) == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
