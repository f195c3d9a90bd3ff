"""The fixed input sequence exercised against the lookup page."""

import logging
import sys
from dataclasses import dataclass

from tqdm import tqdm

from page_driver import WaitTimeout

logger = logging.getLogger(__name__)

# --- Config ---
SUCCESS_PATTERN = "Могу предложить тебе выйти"
FALLBACK_COHORT = "110"
INVALID_COHORT = "99999"
PROBE_COHORTS = tuple(str(n) for n in range(110, 120))
SPRINTS = range(1, 6)
SETTLE_MS = 100
SUCCESS_TIMEOUT_MS = 30_000
PROBE_TIMEOUT_MS = 15_000


@dataclass(frozen=True)
class Scenario:
    number: int
    cohort: str
    sprint: str = ""
    project: str = ""
    await_success: bool = False
    sprint_last: bool = False

    @property
    def description(self):
        return f"cohort={self.cohort}, sprint={self.sprint}, project={self.project}"

    def field_values(self):
        # The sprint loop types the sprint last; every other case types the project last.
        if self.sprint_last:
            return (("cohort", self.cohort), ("project", self.project), ("sprint", self.sprint))
        return (("cohort", self.cohort), ("sprint", self.sprint), ("project", self.project))


def build_scenarios(cohort, await_first_sprint=False):
    """
    Ten cases: cohort only, sprints 1-5, two projects, sprint+project
    conflict and an unknown cohort.
    """
    scenarios = [Scenario(1, cohort)]
    for sprint in SPRINTS:
        scenarios.append(
            Scenario(
                sprint + 1,
                cohort,
                sprint=str(sprint),
                await_success=await_first_sprint and sprint == 1,
                sprint_last=True,
            )
        )
    scenarios += [
        Scenario(7, cohort, project="1"),
        Scenario(8, cohort, project="фс"),
        Scenario(9, cohort, sprint="2", project="1"),
        Scenario(10, INVALID_COHORT, sprint="1"),
    ]
    return scenarios


def choose_cohort(cohorts):
    return cohorts[0] if cohorts else FALLBACK_COHORT


def probe_candidates(cohorts):
    return list(cohorts) if cohorts else list(PROBE_COHORTS)


def clear_fields(driver):
    for name in ("cohort", "sprint", "project"):
        driver.set_field(name, "")


def probe_cohort(driver, candidates, timeout_ms=PROBE_TIMEOUT_MS):
    """Return the first cohort the page answers sprint 1 for.

    Doubles as a readiness check: the page only answers once its sheet has
    loaded. Falls back to whatever the cohort field holds, then to 110.
    """
    clear_fields(driver)
    for cohort in candidates:
        driver.set_field("cohort", cohort)
        driver.set_field("project", "")
        driver.set_field("sprint", "1")
        try:
            driver.wait_for_text(SUCCESS_PATTERN, timeout_ms=timeout_ms)
        except WaitTimeout:
            logger.info("probe_miss cohort=%s", cohort)
            continue
        logger.info("probe_hit cohort=%s", cohort)
        return cohort
    fallback = driver.read_field("cohort") or FALLBACK_COHORT
    logger.warning("probe_exhausted candidates=%s fallback=%s", len(candidates), fallback)
    return fallback


def apply_scenario(driver, scenario):
    for name, value in scenario.field_values():
        driver.set_field(name, value)


def format_line(number, description, text):
    return f"{number}) {description} -> {text}"


def format_report(lines):
    return "\n".join(lines)


def run_scenarios(
    driver,
    scenarios,
    settle_ms=SETTLE_MS,
    success_timeout_ms=SUCCESS_TIMEOUT_MS,
    show_progress=False,
):
    lines = []
    for scenario in tqdm(
        scenarios, desc="scenarios", unit="case", file=sys.stderr, disable=not show_progress
    ):
        apply_scenario(driver, scenario)
        if scenario.await_success:
            driver.wait_for_text(SUCCESS_PATTERN, timeout_ms=success_timeout_ms)
        else:
            driver.delay(settle_ms)
        text = driver.read_result()
        logger.debug("scenario number=%s chars=%s", scenario.number, len(text or ""))
        lines.append(format_line(scenario.number, scenario.description, text))
    return lines
