"""Shared pytest fixtures for all tests."""

import time

import pytest

from lookup_scenarios import SUCCESS_PATTERN
from page_driver import PageDriver


class FakeLookupDriver(PageDriver):
    """
    In-memory stand-in for the lookup page.

    Answers like the real form does once its sheet has "loaded", which
    happens after ``ready_after`` delays. Polling goes through the real
    ``PageDriver.wait_for`` so timeouts behave the same.
    """

    def __init__(self, cohorts=("110", "111"), ready_after=0):
        super().__init__()
        self.cohorts = set(cohorts)
        self.ready_after = ready_after
        self.fields = {"cohort": "", "sprint": "", "project": "", "result": ""}
        self.history = []
        self.loaded = False
        self.closed = False

    def load(self):
        self.loaded = True
        self._recompute()
        return self

    def close(self):
        self.closed = True

    def set_field(self, name, value):
        self.history.append((name, value))
        self.fields[name] = value
        self._recompute()

    def read_field(self, name):
        return self.fields[name]

    def delay(self, ms):
        if self.ready_after:
            self.ready_after -= 1
        time.sleep(ms / 1000)
        self._recompute()

    def _recompute(self):
        cohort, sprint, project = (self.fields[k] for k in ("cohort", "sprint", "project"))
        if self.ready_after:
            text = "Загружаю данные..."
        elif cohort not in self.cohorts:
            text = f"Когорта {cohort} не найдена"
        elif sprint and project:
            text = "Укажи что-то одно: спринт или проект"
        elif not sprint and not project:
            text = "Укажи спринт или проект"
        elif sprint:
            text = f"{SUCCESS_PATTERN} после спринта {sprint}"
        else:
            text = f"{SUCCESS_PATTERN} с проекта {project}"
        self.fields["result"] = text


@pytest.fixture
def lookup_page():
    """Factory for fake lookup pages."""

    def make(**kwargs):
        return FakeLookupDriver(**kwargs).load()

    return make
