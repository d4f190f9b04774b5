from mailcrawl.normalize.urls import is_http_url, normalize_url, registered_host, same_domain


def test_normalize_url_canonicalises_host_port_and_fragment():
    assert normalize_url("HTTPS://Example.COM:443/About/#team") == "https://example.com/About"
    assert normalize_url("http://example.com:8080/a?b=1") == "http://example.com:8080/a?b=1"


def test_normalize_url_keeps_root_slash():
    assert normalize_url("https://example.com") == "https://example.com/"
    assert normalize_url("https://example.com/") == "https://example.com/"


def test_same_domain_scope():
    seed = "https://www.example.com/start"
    assert same_domain("https://example.com/contact", seed)
    assert same_domain("https://blog.example.com/", seed)
    assert not same_domain("https://example.org/", seed)
    assert not same_domain("https://notexample.com/", seed)
    assert not same_domain("mailto:a@example.com", seed)


def test_helpers():
    assert registered_host("https://WWW.Acme.io/x") == "acme.io"
    assert is_http_url("http://acme.io")
    assert not is_http_url("ftp://acme.io")


def test_unparseable_urls_are_out_of_scope():
    seed = "https://example.com/"
    assert not is_http_url("https://example.com:abc/x")
    assert not is_http_url("https://example.com:99999/x")
    assert not is_http_url("http://[::1/x")
    assert not same_domain("https://example.com:abc/x", seed)
