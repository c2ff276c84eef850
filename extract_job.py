#!/usr/bin/env python3
"""Extract job details from a posting URL or a saved e-mail and print them as JSON."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from job_extract.log import configure, get_logger

log = get_logger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description=__doc__)
    source = p.add_mutually_exclusive_group(required=True)
    source.add_argument("url", nargs="?", help="job posting URL")
    source.add_argument("--email", type=Path, metavar="FILE", help="text file holding a recruiter e-mail")
    p.add_argument("--ensemble", action="store_true", help="show every strategy's vote and the score breakdown")
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    if args.verbose:
        configure(level="DEBUG")

    from job_extract.service import ExtractionService

    service = ExtractionService()

    if args.email:
        try:
            text = args.email.read_text(encoding="utf-8")
        except OSError as exc:
            log.error("Cannot read %s: %s", args.email, exc)
            return 2
        result = service.extract_job_from_email(text)
        print(json.dumps({
            "success": result.success,
            "error": result.error,
            "confidence": result.confidence,
            "data": result.data.to_dict() if result.data else None,
        }, indent=2))
        return 0 if result.success else 1

    if args.ensemble:
        report = service.extract_with_ensemble(args.url)
        if report is None:
            log.error("No strategy could read %s", args.url)
            return 1
        print(json.dumps({
            "data": report.result.data.to_dict(),
            "confidence": report.score.overall,
            "consensus": report.result.consensus,
            "strategies": {r.strategy: round(r.confidence, 3) for r in report.result.strategies},
            "breakdown": report.score.breakdown,
            "recommendations": report.score.recommendations,
        }, indent=2))
        return 0

    record = service.extract_job_from_url(args.url)
    print(json.dumps(record.to_dict(), indent=2))
    return 1 if record.is_failure else 0


if __name__ == "__main__":
    sys.exit(main())
