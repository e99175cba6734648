from dataclasses import dataclass, field
from datetime import date, datetime


RECORD_DATE_FORMAT = "%m/%d/%Y"
RECORD_TIME_FORMAT = "%I:%M %p"


@dataclass(frozen=True)
class ReportRequest:
    from_date: str
    to_date: str
    class_codes: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Class codes behave as a set; keep the first occurrence of each.
        object.__setattr__(self, "class_codes", tuple(dict.fromkeys(self.class_codes)))


@dataclass(frozen=True)
class PlacementRecord:
    """One placement exam attempt.

    The service returns 13 CSV columns; the start and end date/time column
    pairs are combined into single timestamps here, leaving 11 fields.
    """

    name: str = ""
    student_id: str = ""
    email: str = ""
    last_login: date = date.min
    placement_assessment_number: int = 0
    total_number_of_placements_taken: int = 0
    start_time: datetime = datetime.min
    end_time: datetime = datetime.min
    proctored_assessment: str = ""
    hours_in_placement: float = 0.0
    placement_results: float = 0.0

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "student_id": self.student_id,
            "email": self.email,
            "last_login": self.last_login.isoformat(),
            "placement_assessment_number": self.placement_assessment_number,
            "total_number_of_placements_taken": self.total_number_of_placements_taken,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "proctored_assessment": self.proctored_assessment,
            "hours_in_placement": self.hours_in_placement,
            "placement_results": self.placement_results,
        }

    def to_row(self) -> list[str]:
        """Format the record back into the service's 13 CSV columns."""
        return [
            self.name,
            self.student_id,
            self.email,
            self.last_login.strftime(RECORD_DATE_FORMAT),
            str(self.placement_assessment_number),
            str(self.total_number_of_placements_taken),
            self.start_time.strftime(RECORD_DATE_FORMAT),
            self.start_time.strftime(RECORD_TIME_FORMAT),
            self.end_time.strftime(RECORD_DATE_FORMAT),
            self.end_time.strftime(RECORD_TIME_FORMAT),
            self.proctored_assessment,
            _format_number(self.hours_in_placement),
            f"{_format_number(self.placement_results)}%",
        ]


PlacementReport = list[PlacementRecord]


@dataclass(frozen=True)
class ReportError:
    kind: str
    message: str
    class_code: str | None = None
    page: int | None = None
    row: int | None = None
    field: str | None = None

    def __str__(self) -> str:
        context = [
            f"{name}={value}"
            for name, value in (
                ("class_code", self.class_code),
                ("page", self.page),
                ("row", self.row),
                ("field", self.field),
            )
            if value is not None
        ]
        if not context:
            return f"{self.kind}: {self.message}"
        return f"{self.kind} [{' '.join(context)}]: {self.message}"


def _format_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)
