"""
Filter engine: projects the task collection onto the current filter selection.

All predicates are ANDed and the input order is kept; the store already
hands tasks over newest first, so nothing here sorts.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .schema import Task, FilterCategory

DateRange = Tuple[str, str]


def matches_search(task: Task, search: str) -> bool:
    return search.casefold() in task.title.casefold()


def matches_dates(task: Task, date_range: Optional[DateRange]) -> bool:
    """An unset end collapses the range to the single day `start`."""
    start, end = date_range or ("", "")
    if not start:
        return True
    return start <= task.due_date <= (end or start)


def filter_tasks(
    tasks: Iterable[Task],
    search: str = "",
    category: FilterCategory = FilterCategory.ALL,
    date_range: Optional[DateRange] = None,
) -> List[Task]:
    """Return the tasks matching search text, category and due-date range."""
    return [
        task for task in tasks
        if matches_search(task, search or "")
        and category.matches(task.category)
        and matches_dates(task, date_range)
    ]


@dataclass(frozen=True)
class FilterSelection:
    """Transient filter bar state. Never persisted."""
    search: str = ""
    category: FilterCategory = FilterCategory.ALL
    date_range: DateRange = ("", "")

    @property
    def is_active(self) -> bool:
        return bool(self.search or self.category is not FilterCategory.ALL or self.date_range[0])

    def apply(self, tasks: Iterable[Task]) -> List[Task]:
        return filter_tasks(tasks, self.search, self.category, self.date_range)

    @classmethod
    def cleared(cls) -> "FilterSelection":
        return cls()
