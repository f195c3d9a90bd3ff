import argparse
import logging
import os
import sys
import traceback

from cohort_csv import read_page, resolve_cohorts
from lookup_scenarios import (
    PROBE_TIMEOUT_MS,
    build_scenarios,
    format_report,
    probe_candidates,
    probe_cohort,
    run_scenarios,
)
from page_driver import DEFAULT_PORT, ServedPageDriver

# --- Config ---
DEFAULT_HTML = os.environ.get("LOOKUP_INDEX_HTML", "/workspace/index.html")


def run(html_path, port=DEFAULT_PORT, probe_timeout_ms=PROBE_TIMEOUT_MS,
        show_progress=False, screenshot_on_error=None):
    cohorts = resolve_cohorts(read_page(html_path))

    driver = ServedPageDriver(html_path, port=port)
    with driver:
        try:
            # The probe also waits out the page's own sheet download.
            print("Probing cohorts...", file=sys.stderr)
            cohort = probe_cohort(driver, probe_candidates(cohorts), timeout_ms=probe_timeout_ms)
            print(f"Using cohort {cohort}", file=sys.stderr)
            lines = run_scenarios(driver, build_scenarios(cohort), show_progress=show_progress)
        except Exception:
            if screenshot_on_error:
                driver.screenshot(screenshot_on_error)
            raise
    return format_report(lines)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Serve the cohort lookup page locally, drive it in Chromium and print its answers."
    )
    parser.add_argument("--html", default=DEFAULT_HTML, help="Path to index.html")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Local server port")
    parser.add_argument("--probe-timeout", type=int, default=PROBE_TIMEOUT_MS,
                        help="Milliseconds to wait on each candidate cohort")
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
        report = run(args.html, args.port, args.probe_timeout, args.progress,
                     args.screenshot_on_error)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        traceback.print_exc()
        return 1

    print(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
