from app.core.security import (
    generate_csrf_token,
    generate_session_token,
    generate_temporary_password,
    hash_password,
    hash_token,
    is_valid_csrf_token,
    verify_password,
)


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("S3cret!pass")
        assert hashed != "S3cret!pass"
        assert verify_password("S3cret!pass", hashed)
        assert not verify_password("wrong", hashed)

    def test_verify_rejects_empty_and_foreign_hashes(self):
        assert not verify_password("", "whatever")
        assert not verify_password("secret", "")
        assert not verify_password("secret", "not-a-bcrypt-hash")

    def test_temporary_password_shape(self):
        password = generate_temporary_password(12)
        assert len(password) == 12
        assert password[-1] in "@#$%"


class TestTokens:
    def test_session_tokens_are_unique(self):
        assert generate_session_token() != generate_session_token()

    def test_hash_token_is_sha256_hex(self):
        digest = hash_token("abc")
        assert len(digest) == 64
        assert digest == hash_token("abc")
        assert digest != hash_token("abd")

    def test_csrf_token_format(self):
        token = generate_csrf_token()
        assert len(token) == 32
        assert is_valid_csrf_token(token)
        assert is_valid_csrf_token(token.upper())

    def test_invalid_csrf_tokens(self):
        assert not is_valid_csrf_token("")
        assert not is_valid_csrf_token("abc")
        assert not is_valid_csrf_token("g" * 32)
        assert not is_valid_csrf_token("a" * 33)
