import argparse
import logging
import os
import sys
import traceback

from cohort_csv import read_page, resolve_cohorts
from lookup_scenarios import (
    SUCCESS_TIMEOUT_MS,
    build_scenarios,
    choose_cohort,
    format_report,
    run_scenarios,
)
from page_driver import InlinePageDriver

# --- Config ---
DEFAULT_HTML = os.environ.get("LOOKUP_INDEX_HTML", "/workspace/index.html")


def run(html_path, timeout_ms=SUCCESS_TIMEOUT_MS, show_progress=False, screenshot_on_error=None):
    html = read_page(html_path)
    cohort = choose_cohort(resolve_cohorts(html))
    print(f"Using cohort {cohort}", file=sys.stderr)

    driver = InlinePageDriver(html)
    with driver:
        try:
            lines = run_scenarios(
                driver,
                build_scenarios(cohort, await_first_sprint=True),
                success_timeout_ms=timeout_ms,
                show_progress=show_progress,
            )
        except Exception:
            if screenshot_on_error:
                driver.screenshot(screenshot_on_error)
            raise
    return format_report(lines)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Drive the cohort lookup page from memory and print its answers."
    )
    parser.add_argument("--html", default=DEFAULT_HTML, help="Path to index.html")
    parser.add_argument("--timeout", type=int, default=SUCCESS_TIMEOUT_MS,
                        help="Milliseconds to wait for the first successful answer")
    parser.add_argument("--progress", action="store_true", help="Show a progress bar on stderr")
    parser.add_argument("--screenshot-on-error", metavar="PATH",
                        help="Save a screenshot here if a scenario fails")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        report = run(args.html, args.timeout, args.progress, args.screenshot_on_error)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        traceback.print_exc()
        return 1

    print(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
