import sys
from pathlib import Path

import pytest

# Allow `import bookmarkplus` without installing the package.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _block_network_and_browser(monkeypatch):
    """Tests must never reach the real network or open a browser.

    Tests that need HTTP inject an ``httpx.MockTransport``, which does not go
    through ``AsyncHTTPTransport`` and is unaffected.
    """
    import httpx
    import webbrowser

    async def _blocked_request(*_args, **_kwargs):
        raise AssertionError("Real HTTP request attempted during tests")

    def _blocked_open(*_args, **_kwargs):
        raise AssertionError("Browser open attempted during tests")

    monkeypatch.setattr(httpx.AsyncHTTPTransport, "handle_async_request", _blocked_request)
    monkeypatch.setattr(webbrowser, "open_new_tab", _blocked_open)
