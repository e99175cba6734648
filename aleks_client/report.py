from dataclasses import replace
from datetime import datetime
import logging
import re
from xml.parsers.expat import ExpatError
import xmlrpc.client

import requests

from aleks_client.decoding import decode_page
from aleks_client.schemas import PlacementRecord, ReportError, ReportRequest


logger = logging.getLogger(__name__)

PLACEMENT_REPORT_METHOD = "getPlacementReport"
END_OF_DATA_MARKER = "No records found"
REQUEST_DATE_FORMAT = "%Y-%m-%d"
CLASS_CODE_PATTERN = re.compile(r"[A-Z]{5}-[A-Z]{5}")
CLASS_CODE_ERROR_MESSAGE = "Class code does not match required format: "

_REQUEST_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_PAGE_WHITESPACE = " \t\n"
_TRANSPORT_ERRORS = (requests.RequestException, xmlrpc.client.Error, ExpatError, ValueError, OSError)


def validate_request_date(value: str, field: str | None = None) -> list[ReportError]:
    if _REQUEST_DATE_PATTERN.fullmatch(value):
        try:
            datetime.strptime(value, REQUEST_DATE_FORMAT)
            return []
        except ValueError:
            pass
    return [ReportError("validation", f"date {value!r} is not a valid YYYY-MM-DD calendar date", field=field)]


def validate_class_codes(class_codes) -> list[ReportError]:
    return [
        ReportError("validation", CLASS_CODE_ERROR_MESSAGE + code, class_code=code)
        for code in class_codes
        if not CLASS_CODE_PATTERN.fullmatch(code)
    ]


def validate_request(request: ReportRequest) -> list[ReportError]:
    errors = validate_request_date(request.from_date, "from_date")
    errors.extend(validate_request_date(request.to_date, "to_date"))
    errors.extend(validate_class_codes(request.class_codes))
    return errors


def build_params(username: str, password: str, request: ReportRequest, class_code: str) -> dict[str, str]:
    return {
        "username": username,
        "password": password,
        "from_completion_date": request.from_date,
        "to_completion_date": request.to_date,
        "class_code": class_code,
    }


def fetch_placement_records(proxy, params: dict[str, str]) -> tuple[list[PlacementRecord], list[ReportError]]:
    """Fetch every page of the placement report for one class code.

    Pages are requested one at a time until the service answers with the
    end-of-data marker. A transport failure ends the fetch; records decoded
    from earlier pages are still returned.
    """
    class_code = params.get("class_code")
    records: list[PlacementRecord] = []
    errors: list[ReportError] = []

    page = 1
    while True:
        call_params = {**params, "page_num": str(page)}
        try:
            data = getattr(proxy, PLACEMENT_REPORT_METHOD)(call_params)
        except _TRANSPORT_ERRORS as exc:
            logger.warning("placement report call failed", extra={"class_code": class_code, "page": page})
            errors.append(ReportError("transport", str(exc) or type(exc).__name__, class_code=class_code, page=page))
            return records, errors

        if not isinstance(data, str):
            errors.append(
                ReportError(
                    "transport",
                    f"expected a string response, got {type(data).__name__}",
                    class_code=class_code,
                    page=page,
                )
            )
            return records, errors

        data = data.strip(_PAGE_WHITESPACE)
        if data == END_OF_DATA_MARKER:
            break
        logger.debug("page data: %s", data, extra={"class_code": class_code, "page": page})

        page_records, page_errors = decode_page(data)
        records.extend(page_records)
        errors.extend(replace(error, class_code=class_code, page=page) for error in page_errors)
        page += 1

    logger.info(
        "class code fetched",
        extra={"class_code": class_code, "pages": page - 1, "records": len(records), "errors": len(errors)},
    )
    return records, errors
