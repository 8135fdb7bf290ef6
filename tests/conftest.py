import pytest

from file_uploader.github_storage import GitHubConfig, SelectedFile


class FakeResponse:
    def __init__(self, status_code=201, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakePut:
    """Stands in for requests.put: drains the body like the HTTP stack does."""

    def __init__(self, response=None, error=None, block_size=1024, before_block=None):
        self.response = response or FakeResponse(
            201, {"content": {"download_url": "https://example/report.pdf"}}
        )
        self.error = error
        self.block_size = block_size
        self.before_block = before_block
        self.calls = []

    def __call__(self, url, data=None, headers=None, timeout=None):
        sent = b""
        while True:
            if self.before_block:
                self.before_block(len(sent))
            chunk = data.read(self.block_size)
            if not chunk:
                break
            sent += chunk
        self.calls.append({"url": url, "body": sent, "headers": headers, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def config():
    return GitHubConfig(token="t0k3n", username="octo", repository="drop")


@pytest.fixture
def pdf_file():
    return SelectedFile(name="report.pdf", content=b"%PDF" * 2048, content_type="application/pdf")
