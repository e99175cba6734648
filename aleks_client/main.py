import argparse
import csv
from datetime import datetime
import json
import logging
import sys
import time

from aleks_client.client import AleksClient
from aleks_client.config import ENV_PREFIX, ConfigError, Settings, get_settings
from aleks_client.decoding import EXPECTED_HEADERS
from aleks_client.schemas import PlacementReport, ReportRequest


logger = logging.getLogger("aleks_client")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Retrieve ALEKS placement reports")
    subparsers = parser.add_subparsers(dest="command", required=True)

    report_parser = subparsers.add_parser("report", help="retrieve placement results for one or more class codes")
    report_parser.add_argument("--from-date", help="Completion date lower bound in YYYY-MM-DD format")
    report_parser.add_argument("--to-date", help="Completion date upper bound in YYYY-MM-DD format")
    report_parser.add_argument(
        "--class-code",
        action="append",
        dest="class_codes",
        help="Class code in AAAAA-AAAAA format, may be repeated",
    )
    report_parser.add_argument(
        "--format",
        default="summary",
        choices=["summary", "jsonl", "csv"],
        help="Also write the records to stdout as JSON lines or CSV",
    )

    return parser.parse_args()


def write_records(report: PlacementReport, output_format: str) -> None:
    if output_format == "jsonl":
        for record in report:
            sys.stdout.write(json.dumps(record.to_dict(), sort_keys=True))
            sys.stdout.write("\n")
    elif output_format == "csv":
        writer = csv.writer(sys.stdout)
        writer.writerow(EXPECTED_HEADERS)
        writer.writerows(record.to_row() for record in report)


def build_request(args: argparse.Namespace, settings: Settings) -> ReportRequest:
    """Merge command line flags over the environment; flags win."""
    from_date = args.from_date or settings.from_date
    to_date = args.to_date or settings.to_date
    class_codes = tuple(args.class_codes or settings.class_codes)

    missing = [
        f"{ENV_PREFIX}{name} (or {flag})"
        for name, flag, value in (
            ("FROM_COMPLETION_DATE", "--from-date", from_date),
            ("TO_COMPLETION_DATE", "--to-date", to_date),
            ("CLASSCODES", "--class-code", class_codes),
        )
        if not value
    ]
    if missing:
        raise ConfigError(f"required report settings are not set: {', '.join(missing)}")

    return ReportRequest(from_date=from_date, to_date=to_date, class_codes=class_codes)


def main() -> None:
    args = parse_args()
    try:
        settings = get_settings()
    except ConfigError as exc:
        logging.basicConfig(level=logging.ERROR)
        logger.error("invalid configuration: %s", exc)
        raise SystemExit(1) from exc

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    try:
        request = build_request(args, settings)
    except ConfigError as exc:
        logger.error("invalid configuration: %s", exc)
        raise SystemExit(1) from exc

    try:
        client = AleksClient.from_settings(settings)
    except ValueError as exc:
        logger.error("invalid client configuration: %s", exc)
        raise SystemExit(1) from exc

    started = datetime.now()
    clock = time.perf_counter()
    report, errors = client.retrieve(request)
    elapsed = time.perf_counter() - clock
    finished = datetime.now()

    for error in errors:
        logger.error("%s", error)
    write_records(report, args.format)

    print(
        "records={records} errors={errors} class_codes={codes} started={started} finished={finished} elapsed={elapsed:.3f}s".format(
            records=len(report),
            errors=len(errors),
            codes=",".join(request.class_codes),
            started=started.isoformat(timespec="seconds"),
            finished=finished.isoformat(timespec="seconds"),
            elapsed=elapsed,
        ),
        file=sys.stderr if args.format != "summary" else sys.stdout,
    )
    if errors:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
