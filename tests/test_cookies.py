"""Tests for the session cookie jar."""

from src.dtek.cookies import CookieJar


class TestAbsorb:
    def test_keeps_name_value_and_drops_attributes(self):
        jar = CookieJar()
        jar.absorb(["dtek-oem=abc; path=/; HttpOnly; SameSite=Lax"])
        assert jar.get("dtek-oem") == "abc"
        assert jar.header() == "dtek-oem=abc"

    def test_repeated_name_overwrites(self):
        jar = CookieJar()
        jar.absorb(["dtek-oem=first; path=/"])
        jar.absorb(["dtek-oem=second; path=/"])
        assert jar.get("dtek-oem") == "second"
        assert len(jar) == 1

    def test_ignores_entries_without_name_or_separator(self):
        jar = CookieJar()
        jar.absorb(["=orphan", "garbage", "  ; path=/", "ok=1"])
        assert jar.header() == "ok=1"

    def test_value_may_contain_equals(self):
        jar = CookieJar()
        jar.absorb(["_csrf-dtek-oem=a=b==; path=/"])
        assert jar.get("_csrf-dtek-oem") == "a=b=="


class TestFiltered:
    def test_keeps_only_session_relevant_cookies(self):
        jar = CookieJar()
        jar.absorb(
            [
                "dtek-oem=sess",
                "_csrf-dtek-oem=csrf",
                "_language=uk",
                "visid_incap_2398465=v",
                "incap_ses_1234_2398465=s",
                "incap_wrt_77=w",
                "_ga=GA1.1.42",
                "nlbi_2398465=x",
            ]
        )
        assert jar.filtered("oem") == (
            "dtek-oem=sess; _csrf-dtek-oem=csrf; _language=uk; "
            "visid_incap_2398465=v; incap_ses_1234_2398465=s; incap_wrt_77=w"
        )

    def test_other_region_session_cookies_are_dropped(self):
        jar = CookieJar()
        jar.absorb(["dtek-kem=kem", "dtek-oem=oem"])
        assert jar.filtered("oem") == "dtek-oem=oem"

    def test_empty_jar_renders_empty_header(self):
        assert CookieJar().filtered("kem") == ""


class TestFromHeader:
    def test_rebuilds_from_cookie_header(self):
        jar = CookieJar.from_header("dtek-kem=a; _csrf-dtek-kem=b;  _ga=c")
        assert jar.get("dtek-kem") == "a"
        assert jar.get("_csrf-dtek-kem") == "b"
        assert jar.get("_ga") == "c"
        assert len(jar) == 3

    def test_empty_header(self):
        assert len(CookieJar.from_header("")) == 0

    def test_clear(self):
        jar = CookieJar.from_header("a=1; b=2")
        jar.clear()
        assert len(jar) == 0
