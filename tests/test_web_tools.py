from unittest import mock

import requests

from copilot.tools.web import MAX_CONTENT_CHARS, fetch_url_content, perform_web_search

DUCKDUCKGO_HTML = """
<div class="result">
  <a rel="nofollow" class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Flearn.microsoft.com%2Fdism&amp;rut=abc">DISM overview</a>
</div>
<div class="result">
  <a rel="nofollow" class="result__a" href="https://example.com/sfc">SFC scannow guide</a>
</div>
<div class="result">
  <a rel="nofollow" class="result__a" href="https://example.com/third">Third result</a>
</div>
"""


def test_duckduckgo_results_are_numbered_and_unwrapped():
    response = mock.Mock(text=DUCKDUCKGO_HTML)
    with mock.patch("copilot.tools.web.requests.get", return_value=response) as get:
        output = perform_web_search("repair windows image", max_results=2)

    assert output == (
        "Search results for 'repair windows image':\n\n"
        "1. DISM overview\n   https://learn.microsoft.com/dism\n"
        "2. SFC scannow guide\n   https://example.com/sfc\n"
    )
    assert get.call_args.kwargs["params"] == {"q": "repair windows image"}


def test_duckduckgo_without_matches():
    response = mock.Mock(text="<html>nothing here</html>")
    with mock.patch("copilot.tools.web.requests.get", return_value=response):
        assert perform_web_search("zzzz") == "No results found for: zzzz"


def test_search_failure_is_returned_as_text():
    with mock.patch("copilot.tools.web.requests.get", side_effect=requests.ConnectionError("offline")):
        assert perform_web_search("dism") == "Search failed: offline"


def test_tavily_is_used_when_key_is_set():
    response = mock.Mock()
    response.json.return_value = {
        "answer": "Use DISM /RestoreHealth.",
        "results": [{"title": "DISM", "url": "https://learn.microsoft.com/dism"}],
    }
    with mock.patch("copilot.tools.web.requests.post", return_value=response) as post:
        output = perform_web_search("repair windows image", tavily_api_key="tvly-key")

    assert "Summary: Use DISM /RestoreHealth." in output
    assert "1. DISM\n   https://learn.microsoft.com/dism\n" in output
    assert post.call_args.kwargs["json"]["max_results"] == 5
    assert post.call_args.kwargs["headers"]["Authorization"] == "Bearer tvly-key"


def test_fetch_strips_markup():
    html = (
        "<html><head><style>body { color: red; }</style><script>var x = 1;</script></head>"
        "<body><h1>Event ID 41</h1>\n\n<p>Kernel-Power   error</p></body></html>"
    )
    with mock.patch("copilot.tools.web.requests.get", return_value=mock.Mock(text=html, status_code=200)) as get:
        result = fetch_url_content("https://example.com/event-41")

    assert result.raw_data == "Event ID 41 Kernel-Power error"
    assert result.display == "Content from https://example.com/event-41:\nEvent ID 41 Kernel-Power error"
    assert get.call_args.kwargs["timeout"] == 10


def test_fetch_truncates_long_pages():
    html = "<p>" + "a" * (MAX_CONTENT_CHARS + 500) + "</p>"
    with mock.patch("copilot.tools.web.requests.get", return_value=mock.Mock(text=html, status_code=200)):
        result = fetch_url_content("https://example.com/long")

    assert result.raw_data == "a" * MAX_CONTENT_CHARS + "..."


def test_fetch_failure_is_returned_as_text():
    with mock.patch("copilot.tools.web.requests.get", side_effect=requests.Timeout("timed out")):
        result = fetch_url_content("https://example.com/slow")

    assert result.display == "Failed to fetch URL: timed out"
    assert result.raw_data == result.display


def test_duckduckgo_titles_with_markup_are_kept():
    html = '<a class="result__a" href="https://example.com/x">Fix <b>DISM</b> errors</a>'
    with mock.patch("copilot.tools.web.requests.get", return_value=mock.Mock(text=html)):
        output = perform_web_search("dism")

    assert output == "Search results for 'dism':\n\n1. Fix DISM errors\n   https://example.com/x\n"


def test_fetch_decodes_entities_and_skips_hidden_text():
    html = "<!-- <p>hidden</p> --><p>Tom &amp; Jerry&nbsp;&lt;3</p><noscript>enable js</noscript>"
    with mock.patch("copilot.tools.web.requests.get", return_value=mock.Mock(text=html, status_code=200)):
        result = fetch_url_content("https://example.com/cartoon")

    assert result.raw_data == "Tom & Jerry <3"
