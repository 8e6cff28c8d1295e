import json
from pathlib import Path

from pagefetch.cookies import load_cookie_file, normalize_cookie


def write_cookies(tmp_path: Path, data) -> Path:
    path = tmp_path / "cookies.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_missing_domain_defaults_to_target_host():
    cookie = normalize_cookie({"name": "sid", "value": "abc"}, "https://annas-archive.org/md5/xyz")
    assert cookie["domain"] == "annas-archive.org"
    assert cookie["path"] == "/"
    assert cookie["sameSite"] == "Lax"
    assert cookie["secure"] is True
    assert cookie["httpOnly"] is False
    assert "expires" not in cookie


def test_supplied_fields_are_kept():
    raw = {
        "name": "sid",
        "value": "abc",
        "domain": ".example.com",
        "path": "/account",
        "expires": 1900000000,
        "httpOnly": True,
        "secure": False,
        "sameSite": "strict",
    }
    cookie = normalize_cookie(raw, "http://www.example.com/")
    assert cookie["domain"] == ".example.com"
    assert cookie["path"] == "/account"
    assert cookie["expires"] == 1900000000.0
    assert cookie["httpOnly"] is True
    assert cookie["secure"] is False
    assert cookie["sameSite"] == "Strict"


def test_plain_http_target_is_not_secure_by_default():
    cookie = normalize_cookie({"name": "a", "value": "b"}, "http://example.com/")
    assert cookie["secure"] is False


def test_same_site_none_forces_secure():
    cookie = normalize_cookie({"name": "a", "value": "b", "sameSite": "no_restriction"}, "http://example.com/")
    assert cookie["sameSite"] == "None"
    assert cookie["secure"] is True


def test_entry_without_name_or_value_is_rejected():
    assert normalize_cookie({"value": "b"}, "https://example.com") is None
    assert normalize_cookie({"name": "a"}, "https://example.com") is None


def test_load_cookie_file_skips_bad_entries(tmp_path):
    path = write_cookies(tmp_path, [{"name": "sid", "value": "1"}, {"name": "broken"}, "junk"])

    cookies = load_cookie_file(path, "https://example.com/page")

    assert [c["name"] for c in cookies] == ["sid"]
    assert cookies[0]["domain"] == "example.com"


def test_load_cookie_file_missing_or_malformed(tmp_path):
    assert load_cookie_file(tmp_path / "nope.json", "https://example.com") == []

    not_array = write_cookies(tmp_path, {"name": "sid", "value": "1"})
    assert load_cookie_file(not_array, "https://example.com") == []

    garbage = tmp_path / "garbage.json"
    garbage.write_text("{not json", encoding="utf-8")
    assert load_cookie_file(garbage, "https://example.com") == []


def test_load_cookie_file_not_utf8(tmp_path):
    path = tmp_path / "cookies.json"
    path.write_bytes(b'[{"name": "sid", "value": "\xff\xfe"}]')
    assert load_cookie_file(path, "https://example.com") == []


def test_malformed_target_host_leaves_domain_blank():
    cookie = normalize_cookie({"name": "sid", "value": "1"}, "http://[::1/page")
    assert cookie["domain"] == ""
    assert cookie["secure"] is False
