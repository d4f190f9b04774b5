from mailcrawl.parse.content import Raw, Rendered, markup_of
from mailcrawl.parse.extractor import extract_page

PROFILE_AND_EMAIL = (
    '<a href="mailto:team@acme.com">Email</a>'
    '<a href="https://facebook.com/acme.page">Facebook</a>'
)
PROFILE_ONLY = (
    '<a href="https://facebook.com/login">Log in</a>'
    '<a href="https://facebook.com/acme.page">Facebook</a>'
)


def test_social_urls_skipped_when_page_has_email():
    extraction = extract_page(Raw(url="https://acme.com/", body=PROFILE_AND_EMAIL))
    assert extraction.emails == {"team@acme.com"}
    assert extraction.facebook_urls == frozenset()


def test_social_urls_collected_when_page_has_no_email():
    extraction = extract_page(Raw(url="https://acme.com/", body=PROFILE_ONLY))
    assert extraction.emails == frozenset()
    assert extraction.facebook_urls == {"facebook.com/acme.page"}


def test_rendered_and_raw_content_are_treated_alike():
    rendered = extract_page(Rendered(url="https://acme.com/", html=PROFILE_AND_EMAIL))
    raw_bytes = extract_page(Raw(url="https://acme.com/", body=PROFILE_AND_EMAIL.encode("utf-8")))
    assert rendered == raw_bytes


def test_markup_of_decodes_bytes_with_declared_encoding():
    body = "<p>café@acme.fr</p>".encode("latin-1")
    assert markup_of(Raw(url="https://acme.fr/", body=body, encoding="latin-1")) == "<p>café@acme.fr</p>"
