"""Tests for the core utilities: encryption, tokens, the password generator,
log redaction and row timestamps."""

from datetime import timedelta

import pytest
from cryptography.exceptions import InvalidTag
from jose import JWTError

from vault.core.encryption import decrypt, encrypt
from vault.core.logging import REDACTED, redact_sensitive
from vault.core.password_generator import (
    AMBIGUOUS,
    NUMBERS,
    SPECIAL,
    PasswordOptions,
    generate_password,
)
from vault.core.security import (
    create_access_token,
    hash_password,
    identity_from_token,
    verify_password,
)
from vault.db.base import utcnow
from vault.models.credential import Credential


class TestEncryption:

    def test_stored_form(self):
        """Three hex parts: 12-byte IV, ciphertext, 16-byte tag."""
        iv, body, tag = encrypt("hunter2").split(":")
        assert len(bytes.fromhex(iv)) == 12
        assert len(bytes.fromhex(tag)) == 16
        assert body

    def test_fresh_iv_per_call(self):
        """Encrypting the same value twice gives different ciphertext."""
        assert encrypt("same") != encrypt("same")
        assert decrypt(encrypt("same")) == "same"

    def test_empty_stays_empty(self):
        assert encrypt("") == ""
        assert decrypt("") == ""

    def test_malformed_decrypts_to_empty(self):
        """Wrong shape or non-hex parts give "" rather than raising."""
        assert decrypt("not-encrypted") == ""
        assert decrypt("zz:zz:zz") == ""

    def test_tampered_value_raises(self):
        """A well-formed value that fails authentication is never ""."""
        iv, body, tag = encrypt("hunter2").split(":")
        flipped = f"{int(body[0], 16) ^ 1:x}" + body[1:]
        with pytest.raises(InvalidTag):
            decrypt(f"{iv}:{flipped}:{tag}")

    def test_unicode(self):
        assert decrypt(encrypt("pässwörd ✓")) == "pässwörd ✓"


class TestSecurity:

    def test_password_hashing(self):
        hashed = hash_password("correct horse")
        assert hashed != "correct horse"
        assert verify_password("correct horse", hashed)
        assert not verify_password("wrong", hashed)

    def test_token_round_trip(self):
        """Identity carries user id, role and company, never grants."""
        token = create_access_token("user-1", "company_user", "company-1")
        identity = identity_from_token(token)
        assert (identity.id, identity.role, identity.company_id) == (
            "user-1",
            "company_user",
            "company-1",
        )

    def test_master_admin_has_no_company(self):
        token = create_access_token("root", "master_admin", None)
        assert identity_from_token(token).company_id is None

    def test_expired_token_rejected(self):
        token = create_access_token("u", "company_user", "c", expires_delta=timedelta(seconds=-1))
        with pytest.raises(JWTError):
            identity_from_token(token)

    def test_garbage_token_rejected(self):
        with pytest.raises(JWTError):
            identity_from_token("not.a.token")


class TestPasswordGenerator:

    def test_default_length_and_classes(self):
        password = generate_password(PasswordOptions())
        assert len(password) == 16
        assert any(c in NUMBERS for c in password)
        assert any(c in SPECIAL for c in password)

    def test_minimum_counts_honoured(self):
        password = generate_password(PasswordOptions(length=12, min_numbers=4, min_special=3))
        assert sum(c in NUMBERS for c in password) >= 4
        assert sum(c in SPECIAL for c in password) >= 3

    def test_avoid_ambiguous(self):
        for _ in range(20):
            password = generate_password(PasswordOptions(length=64, avoid_ambiguous=True))
            assert not set(password) & set(AMBIGUOUS)

    def test_single_class(self):
        password = generate_password(
            PasswordOptions(uppercase=False, lowercase=False, special=False, min_numbers=0)
        )
        assert password.isdigit()

    def test_no_classes_rejected(self):
        with pytest.raises(ValueError):
            generate_password(
                PasswordOptions(uppercase=False, lowercase=False, numbers=False, special=False)
            )

    def test_minimums_longer_than_length_rejected(self):
        with pytest.raises(ValueError):
            generate_password(PasswordOptions(length=4, min_numbers=3, min_special=3))


class TestLogRedaction:

    def test_sensitive_keys_masked(self):
        event = redact_sensitive(
            None, "info", {"event": "Saved", "secret": "hunter2", "Username": "bob", "count": 2}
        )
        assert event == {"event": "Saved", "secret": REDACTED, "Username": REDACTED, "count": 2}

    def test_nested_values_masked(self):
        """Dicts inside lists inside dicts are scrubbed too."""
        event = redact_sensitive(
            None,
            "info",
            {"event": "Batch", "items": [{"id": "c1", "notes": "pin 1234"}], "meta": {"token": "t"}},
        )
        assert event["items"] == [{"id": "c1", "notes": REDACTED}]
        assert event["meta"] == {"token": REDACTED}

    def test_event_text_untouched(self):
        event = redact_sensitive(None, "info", {"event": "password reset requested"})
        assert event["event"] == "password reset requested"


class TestTimestamps:

    def test_utcnow_is_aware(self):
        first, second = utcnow(), utcnow()
        assert first.tzinfo is not None
        assert second >= first

    async def test_rows_written_in_one_second_keep_their_order(self, db, factory):
        """Python-side stamps carry microseconds, so back-to-back rows are ordered."""
        company = await factory.company()
        first = Credential(
            item_name="First", username="", secret="", notes="",
            website_urls=[], company_id=company.id, created_by="u",
        )
        db.add(first)
        await db.flush()
        second = Credential(
            item_name="Second", username="", secret="", notes="",
            website_urls=[], company_id=company.id, created_by="u",
        )
        db.add(second)
        await db.flush()

        assert second.updated_at > first.updated_at
