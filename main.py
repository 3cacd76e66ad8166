"""
Command-line runner: summarize and review a peptide record stored as JSON.

Usage:
    python main.py record.json [--skip-summaries] [--skip-semantic] [--best-effort] [--json-logs] [-o report.json]

Exit codes: 0 = passed, 1 = rejected, 2 = operational error (bad input, config or remote failure).
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from peptalk_review.core.error_handling import (
    ClientConfigurationError,
    CompletionServiceError,
    RecordValidationError,
)
from peptalk_review.core.logging import setup_logging
from peptalk_review.models import CompletionConfig, coerce_record
from peptalk_review.services.compliance import review
from peptalk_review.services.summarization import summarize_record

logger = logging.getLogger(__name__)


async def run(args: argparse.Namespace) -> int:
    raw = json.loads(Path(args.record).read_text(encoding="utf-8"))
    record = coerce_record(raw)

    needs_remote = not (args.skip_summaries and args.skip_semantic)
    config = CompletionConfig.from_settings() if needs_remote else None

    if not args.skip_summaries:
        record = await summarize_record(record, config=config)

    result = await review(
        record,
        config=config,
        skip_semantic=args.skip_semantic,
        best_effort=args.best_effort or None,
    )

    output = {
        "record": record.model_dump(by_alias=True, exclude_none=True),
        "compliance": result.model_dump(mode="json", exclude_none=True),
    }
    rendered = json.dumps(output, indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(rendered + "\n", encoding="utf-8")
        logger.info(f"Wrote review report to {args.output}")
    else:
        print(rendered)
    return 0 if result.passed else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Summarize and compliance-review a peptide record")
    parser.add_argument("record", help="Path to a record JSON file (name, summaryHtml, sections)")
    parser.add_argument("--skip-summaries", action="store_true", help="Do not generate plain-language summaries")
    parser.add_argument("--skip-semantic", action="store_true", help="Only run the deterministic pre-validator")
    parser.add_argument("--best-effort", action="store_true", help="Treat malformed reviewer output as a failed review")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument("-o", "--output", help="Write the JSON report to this file instead of stdout")
    args = parser.parse_args()

    setup_logging("json" if args.json_logs else None)

    try:
        return asyncio.run(run(args))
    except (RecordValidationError, ClientConfigurationError) as e:
        logger.error(f"Cannot run review: {e}")
        return 2
    except CompletionServiceError as e:
        logger.error(f"Review could not complete ({'retryable' if e.retryable else 'non-retryable'}): {e}")
        return 2
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(f"Cannot read record file: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
