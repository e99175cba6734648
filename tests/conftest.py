from collections.abc import Callable
import io
import threading
import xmlrpc.client

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

from aleks_client.client import AleksClient
from aleks_client.report import END_OF_DATA_MARKER
from aleks_client.transport import build_session


HEADER = (
    '"Name","Student Id","Email","Last login","Placement Assessment Number",'
    '"Total Number of Placements Taken","Start Date","Start Time","End Date","End Time",'
    '"Proctored Assessment","Time in Placement (in hours)","Placement Results %"'
)


def csv_row(name: str, student_id: str, result: str = "62%") -> str:
    return (
        f'"{name}","{student_id}","{student_id}@EXAMPLE.EDU","03/06/2016","1","1",'
        f'"03/06/2016","01:42 PM","03/06/2016","03:23 PM","No/Complete","1.7","{result}"'
    )


def make_response(request, body: bytes, status: int = 200) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = "OK" if status == 200 else "Error"
    response.headers = CaseInsensitiveDict({"Content-Type": "text/xml", "Content-Length": str(len(body))})
    response.raw = io.BytesIO(body)
    response.request = request
    response.url = request.url
    return response


class FakeServiceAdapter(BaseAdapter):
    """Answers getPlacementReport calls from canned pages keyed by class code."""

    def __init__(
        self,
        pages: dict[str, list[str]],
        *,
        fail_at: dict[str, int] | None = None,
        raw_bodies: dict[tuple[str, int], bytes] | None = None,
    ) -> None:
        super().__init__()
        self.pages = pages
        self.fail_at = fail_at or {}
        self.raw_bodies = raw_bodies or {}
        self.calls: list[tuple[str, dict[str, str], dict[str, str]]] = []
        self._lock = threading.Lock()

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        (params,), method = xmlrpc.client.loads(request.body)
        with self._lock:
            self.calls.append((method, dict(params), dict(request.headers)))

        code = params["class_code"]
        page = int(params["page_num"])
        if self.fail_at.get(code) == page:
            raise requests.ConnectionError(f"connection reset while fetching {code}")
        if (code, page) in self.raw_bodies:
            return make_response(request, self.raw_bodies[(code, page)])

        pages = self.pages.get(code, [])
        value = pages[page - 1] if page <= len(pages) else END_OF_DATA_MARKER
        return make_response(request, xmlrpc.client.dumps((value,), methodresponse=True).encode("utf-8"))

    def close(self) -> None:
        pass

    def pages_requested(self, class_code: str) -> list[int]:
        return sorted(int(params["page_num"]) for _, params, _ in self.calls if params["class_code"] == class_code)


@pytest.fixture()
def fake_service() -> Callable[..., FakeServiceAdapter]:
    return FakeServiceAdapter


@pytest.fixture()
def make_client() -> Callable[[FakeServiceAdapter], AleksClient]:
    def _make(adapter: FakeServiceAdapter) -> AleksClient:
        return AleksClient(
            "https://aleks.example.edu/xmlrpc",
            "api-user",
            "s3cret",
            session_factory=lambda: build_session(adapter),
        )

    return _make
