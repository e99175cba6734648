import csv
from dataclasses import replace
from datetime import date, datetime
import io
import logging
import re

from aleks_client.schemas import RECORD_DATE_FORMAT, RECORD_TIME_FORMAT, PlacementRecord, ReportError


logger = logging.getLogger(__name__)

EXPECTED_HEADERS = (
    "Name",
    "Student Id",
    "Email",
    "Last login",
    "Placement Assessment Number",
    "Total Number of Placements Taken",
    "Start Date",
    "Start Time",
    "End Date",
    "End Time",
    "Proctored Assessment",
    "Time in Placement (in hours)",
    "Placement Results %",
)
RECORD_FIELD_COUNT = len(EXPECTED_HEADERS)
RECORD_TIMESTAMP_FORMAT = f"{RECORD_DATE_FORMAT} {RECORD_TIME_FORMAT}"

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")
_FLOAT_PATTERN = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")


class _FieldErrors:
    """Collects field conversion failures for a single record."""

    def __init__(self) -> None:
        self.errors: list[ReportError] = []

    def add(self, field: str, value: str, reason: str) -> None:
        self.errors.append(ReportError("decode", f"cannot parse {value!r} as {reason}", field=field))

    def parse_date(self, field: str, value: str) -> date:
        try:
            return datetime.strptime(value, RECORD_DATE_FORMAT).date()
        except ValueError:
            self.add(field, value, "MM/DD/YYYY date")
            return date.min

    def parse_timestamp(self, field: str, value: str) -> datetime:
        try:
            return datetime.strptime(value, RECORD_TIMESTAMP_FORMAT)
        except ValueError:
            self.add(field, value, "MM/DD/YYYY hh:mm AM/PM timestamp")
            return datetime.min

    def parse_int(self, field: str, value: str) -> int:
        if not _INTEGER_PATTERN.fullmatch(value):
            self.add(field, value, "base-10 integer")
            return 0
        return int(value, 10)

    def parse_float(self, field: str, value: str) -> float:
        number = value.replace("%", "")
        if not _FLOAT_PATTERN.fullmatch(number):
            self.add(field, value, "floating point number")
            return 0.0
        return float(number)


def decode_record(fields: list[str]) -> tuple[PlacementRecord, list[ReportError]]:
    logger.debug("csv record: %s", fields)
    collector = _FieldErrors()
    record = PlacementRecord(
        name=fields[0],
        student_id=fields[1],
        email=fields[2],
        last_login=collector.parse_date("last_login", fields[3]),
        placement_assessment_number=collector.parse_int("placement_assessment_number", fields[4]),
        total_number_of_placements_taken=collector.parse_int("total_number_of_placements_taken", fields[5]),
        start_time=collector.parse_timestamp("start_time", f"{fields[6]} {fields[7]}"),
        end_time=collector.parse_timestamp("end_time", f"{fields[8]} {fields[9]}"),
        proctored_assessment=fields[10],
        hours_in_placement=collector.parse_float("hours_in_placement", fields[11]),
        placement_results=collector.parse_float("placement_results", fields[12]),
    )
    return record, collector.errors


def validate_headers(row: list[str]) -> list[ReportError]:
    errors: list[ReportError] = []
    for index, (expected, actual) in enumerate(zip(EXPECTED_HEADERS, row)):
        if actual != expected:
            errors.append(
                ReportError(
                    "schema",
                    f"Unexpected header column title ({index}) - expected: {expected}, actual: {actual}",
                )
            )
    return errors


def decode_page(raw: str) -> tuple[list[PlacementRecord], list[ReportError]]:
    """Decode one CSV page into placement records.

    The first row is treated as the header. Rows with the wrong number of
    fields or malformed quoting are reported and skipped; rows whose fields
    fail to convert are still returned, with zero values in place of the
    defective fields.
    """
    reader = csv.reader(io.StringIO(raw), strict=True)
    records: list[PlacementRecord] = []
    errors: list[ReportError] = []

    first = True
    while True:
        try:
            row = next(reader)
        except StopIteration:
            break
        except csv.Error as exc:
            errors.append(ReportError("schema", f"malformed csv: {exc}", row=reader.line_num))
            first = False
            continue

        if not row:
            continue

        is_header, first = first, False
        if len(row) != RECORD_FIELD_COUNT:
            errors.append(
                ReportError(
                    "schema",
                    f"wrong number of fields: expected {RECORD_FIELD_COUNT}, got {len(row)}",
                    row=reader.line_num,
                )
            )
            continue

        if is_header:
            errors.extend(replace(error, row=reader.line_num) for error in validate_headers(row))
            continue

        record, record_errors = decode_record(row)
        logger.debug("placement record: %s", record)
        records.append(record)
        errors.extend(replace(error, row=reader.line_num) for error in record_errors)

    return records, errors
