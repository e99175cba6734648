from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
import logging
from urllib.parse import urlsplit
import xmlrpc.client

import requests

from aleks_client.config import DEFAULT_URL, Settings
from aleks_client.report import build_params, fetch_placement_records, validate_request
from aleks_client.schemas import PlacementRecord, PlacementReport, ReportError, ReportRequest
from aleks_client.transport import SessionTransport, build_session


logger = logging.getLogger(__name__)


class AleksClient:
    """Client for the ALEKS XML-RPC placement report service.

    Each class code is fetched on its own thread with its own HTTP session,
    and the results are gathered into a single report. Records are kept even
    when other records, pages or class codes fail; the caller always gets the
    records and the errors together.
    """

    def __init__(
        self,
        url: str | None,
        username: str,
        password: str,
        *,
        session_factory: Callable[[], requests.Session] = build_session,
    ) -> None:
        url = url or DEFAULT_URL
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ValueError(f"invalid service url: {url!r}")
        if not username or not password:
            raise ValueError("username and password parameters are both required")

        self.url = url
        self.username = username
        self.password = password
        self.session_factory = session_factory

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "AleksClient":
        return cls(settings.url, settings.username, settings.password, **kwargs)

    def get_placement_report(
        self, from_date: str, to_date: str, *class_codes: str
    ) -> tuple[PlacementReport, list[ReportError]]:
        return self.retrieve(ReportRequest(from_date, to_date, class_codes))

    def retrieve(self, request: ReportRequest) -> tuple[PlacementReport, list[ReportError]]:
        errors = validate_request(request)
        if errors:
            logger.warning("placement report request rejected", extra={"errors": len(errors)})
            return [], errors

        report: PlacementReport = []
        if not request.class_codes:
            return report, errors

        logger.info(
            "retrieving placement report",
            extra={
                "from_date": request.from_date,
                "to_date": request.to_date,
                "class_codes": len(request.class_codes),
            },
        )
        with ThreadPoolExecutor(max_workers=len(request.class_codes)) as executor:
            futures = {
                executor.submit(
                    self._fetch_class_code,
                    build_params(self.username, self.password, request, code),
                ): code
                for code in request.class_codes
            }
            for future in as_completed(futures):
                code = futures[future]
                try:
                    records, code_errors = future.result()
                except Exception as exc:
                    logger.exception("class code fetch crashed", extra={"class_code": code})
                    records, code_errors = [], [ReportError("transport", str(exc), class_code=code)]
                report.extend(records)
                errors.extend(code_errors)

        logger.info("placement report retrieved", extra={"records": len(report), "errors": len(errors)})
        return report, errors

    def _fetch_class_code(self, params: dict[str, str]) -> tuple[list[PlacementRecord], list[ReportError]]:
        with self.session_factory() as session:
            transport = SessionTransport(session, use_https=urlsplit(self.url).scheme == "https")
            proxy = xmlrpc.client.ServerProxy(self.url, transport=transport)
            return fetch_placement_records(proxy, params)
