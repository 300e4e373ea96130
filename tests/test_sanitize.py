from app.utils.sanitize import (
    SanitizeConfig,
    contains_dangerous_content,
    sanitize_contract_content,
    sanitize_html,
    sanitize_rich_text,
    strip_html,
)
from app.utils.log_sanitizer import REDACTED, sanitize_for_logging, sanitize_headers


class TestSanitizeHtml:
    def test_scripts_removed_with_their_body(self):
        cleaned = sanitize_contract_content("<p>Hello</p><script>alert(1)</script>")
        assert "<p>Hello</p>" in cleaned
        assert "script" not in cleaned
        assert "alert" not in cleaned

    def test_event_handlers_dropped(self):
        cleaned = sanitize_contract_content('<p onclick="steal()">Terms</p>')
        assert "onclick" not in cleaned
        assert "Terms" in cleaned

    def test_javascript_links_dropped(self):
        cleaned = sanitize_contract_content('<a href="javascript:alert(1)">x</a>')
        assert "javascript:" not in cleaned

    def test_contract_markup_kept(self):
        html = "<table><tr><td colspan=\"2\">Fee</td></tr></table><h2>Scope</h2>"
        cleaned = sanitize_contract_content(html)
        assert "<table>" in cleaned
        assert 'colspan="2"' in cleaned
        assert "<h2>Scope</h2>" in cleaned

    def test_placeholders_survive(self):
        assert "{{COMPANY_NAME}}" in sanitize_contract_content("<p>{{COMPANY_NAME}}</p>")

    def test_rich_text_is_narrower(self):
        cleaned = sanitize_rich_text("<h1>Title</h1><p><strong>bold</strong></p>")
        assert "<h1>" not in cleaned
        assert "<strong>bold</strong>" in cleaned

    def test_plain_text_profile(self):
        assert sanitize_html("<b>bold</b> text", SanitizeConfig.PLAIN_TEXT) == "bold text"

    def test_non_string_input(self):
        assert sanitize_html(None) == ""
        assert sanitize_html("") == ""
        assert sanitize_html(42) == ""


class TestStripHtml:
    def test_text_only(self):
        assert strip_html("<p>Hello <b>world</b></p>") == "Hello world"

    def test_script_body_removed(self):
        assert strip_html("<p>a</p><script>var x = 1;</script>") == "a"

    def test_empty(self):
        assert strip_html(None) == ""


class TestDangerousContent:
    def test_detects_common_vectors(self):
        assert contains_dangerous_content("<script>x</script>")
        assert contains_dangerous_content('<img src=x onerror="y">')
        assert contains_dangerous_content('<a href="javascript:void(0)">')

    def test_plain_markup_is_safe(self):
        assert not contains_dangerous_content("<p>Payment within 30 days</p>")
        assert not contains_dangerous_content(None)


class TestLogSanitizer:
    def test_sensitive_keys_redacted(self):
        cleaned = sanitize_for_logging({"email": "jane.doe@example.com", "nested": {"access_token": "abc"}})
        assert cleaned["email"] == "j***@example.com"
        assert cleaned["nested"]["access_token"] == REDACTED

    def test_card_numbers_masked(self):
        assert sanitize_for_logging("card 4111 1111 1111 1234") == "card ****-****-****-1234"

    def test_headers(self):
        headers = sanitize_headers({"Cookie": "session_token=abc", "X-CSRF-Token": "f" * 32, "Accept": "*/*"})
        assert headers == {"Cookie": REDACTED, "X-CSRF-Token": REDACTED, "Accept": "*/*"}
