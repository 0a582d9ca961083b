"""
Tests for the filter engine.
"""
import pytest

from conftest import make_task
from taskbuddy.filters import FilterSelection, filter_tasks
from taskbuddy.schema import FilterCategory, TaskCategory


@pytest.fixture
def tasks():
    return [
        make_task("1", "Buy milk", category=TaskCategory.WORK, due_date="2024-01-10"),
        make_task("2", "Call mom", category=TaskCategory.PERSONAL, due_date="2024-01-12"),
    ]


def ids(result):
    return [t.id for t in result]


def test_category_filter(tasks):
    assert ids(filter_tasks(tasks, category=FilterCategory.PERSONAL)) == ["2"]


def test_single_day_range(tasks):
    assert ids(filter_tasks(tasks, date_range=("2024-01-10", "2024-01-10"))) == ["1"]


def test_open_end_collapses_to_start_day(tasks):
    assert ids(filter_tasks(tasks, date_range=("2024-01-12", ""))) == ["2"]


def test_range_inclusive(tasks):
    assert ids(filter_tasks(tasks, date_range=("2024-01-10", "2024-01-12"))) == ["1", "2"]
    assert ids(filter_tasks(tasks, date_range=("2024-01-11", "2024-01-31"))) == ["2"]


def test_empty_start_matches_all(tasks):
    assert ids(filter_tasks(tasks, date_range=("", "2024-01-10"))) == ["1", "2"]


def test_search_is_case_insensitive_substring(tasks):
    assert ids(filter_tasks(tasks, search="MILK")) == ["1"]
    assert ids(filter_tasks(tasks, search="")) == ["1", "2"]
    assert ids(filter_tasks(tasks, search="zzz")) == []


def test_predicates_are_anded(tasks):
    assert ids(filter_tasks(tasks, search="call", category=FilterCategory.WORK)) == []
    assert ids(filter_tasks(tasks, search="call", category=FilterCategory.PERSONAL,
                            date_range=("2024-01-12", ""))) == ["2"]


def test_order_preserved_and_input_untouched(tasks):
    reversed_tasks = list(reversed(tasks))
    snapshot = list(reversed_tasks)
    assert ids(filter_tasks(reversed_tasks)) == ["2", "1"]
    assert reversed_tasks == snapshot


def test_referentially_transparent(tasks):
    args = ("m", FilterCategory.ALL, ("2024-01-01", "2024-12-31"))
    assert filter_tasks(tasks, *args) == filter_tasks(tasks, *args)


def test_returns_new_list(tasks):
    result = filter_tasks(tasks)
    assert result == tasks
    assert result is not tasks


class TestFilterSelection:

    def test_default_is_inactive(self, tasks):
        selection = FilterSelection()
        assert not selection.is_active
        assert selection.apply(tasks) == tasks

    def test_apply(self, tasks):
        selection = FilterSelection(category=FilterCategory.PERSONAL)
        assert selection.is_active
        assert ids(selection.apply(tasks)) == ["2"]

    def test_cleared(self):
        assert FilterSelection.cleared() == FilterSelection()
