# File: tests/test_link_extractor.py
from seo_autofix.crawler.link_extractor import extract_links

PAGE = "https://example.com/blog/post"


def test_same_origin_and_normalized():
    html = """
    <a href="/about?x=1#top">About</a>
    <a href="contact">Contact</a>
    <a href="https://EXAMPLE.com/About">Dup</a>
    <a href="https://other.com/">Other</a>
    <a href="mailto:me@example.com">Mail</a>
    <a href="javascript:void(0)">JS</a>
    """
    assert extract_links(html, PAGE) == [
        "https://example.com/about",
        "https://example.com/blog/contact",
        "https://example.com/About",
    ]


def test_skips_files_and_deny_patterns():
    html = """
    <a href="/report.pdf">PDF</a>
    <a href="/img/logo.PNG">Logo</a>
    <a href="/account/logout">Logout</a>
    <a href="/item/delete/4">Delete</a>
    <a href="/keep">Keep</a>
    """
    assert extract_links(html, PAGE) == ["https://example.com/keep"]
    assert extract_links(html, PAGE, deny_patterns=()) == [
        "https://example.com/account/logout",
        "https://example.com/item/delete/4",
        "https://example.com/keep",
    ]


def test_no_links():
    assert extract_links("<p>nothing</p>", PAGE) == []
