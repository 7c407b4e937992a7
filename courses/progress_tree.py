"""
Pure operations on the progress tree stored in ``Progress.modules``.

Nothing in this module touches the database: callers load a copy of the tree,
apply one of the mutations below, call :func:`recompute` and persist the
result. Keys are always strings because the tree round-trips through JSON.

Recomputation runs bottom-up in a fixed order:

1. every module's ``completion_percentage`` from its own items,
2. course counters as sums across modules,
3. ``overall_progress`` with the same item ratio over course totals,
4. ``average_score`` as the mean percentage of every recorded result.
"""
from typing import Dict, FrozenSet, NamedTuple

from .choices import ItemStatus
from .services.responses import ErrorCode

LESSONS = "lessons"
ASSESSMENTS = "assessments"


class ProgressError(Exception):
    """A mutation was rejected; ``code`` is one of ``ErrorCode``."""

    def __init__(self, code, message):
        super().__init__(message)
        self.code = code
        self.message = message


class ProgressSummary(NamedTuple):
    overall_progress: int
    completed_lessons: int
    total_lessons: int
    completed_assessments: int
    total_assessments: int
    average_score: int
    total_time_spent: int
    completed_modules: FrozenSet[str]
    course_complete: bool


def clamp_percentage(value) -> int:
    return max(0, min(100, int(value)))


def ratio_percentage(done: int, total: int) -> int:
    """round(100 * done / total), half up. An empty denominator counts as done."""
    if total <= 0:
        return 100
    return clamp_percentage((200 * done + total) // (2 * total))


def _iso(now):
    return now.isoformat() if now is not None else None


def new_module_node(total_lessons: int = 0, total_assessments: int = 0) -> dict:
    return {
        LESSONS: {},
        ASSESSMENTS: {},
        "total_lessons": total_lessons,
        "total_assessments": total_assessments,
        "completion_percentage": 0,
        "completed_at": None,
    }


def seed_tree(module_totals: Dict[int, tuple]) -> dict:
    """Build an empty tree from ``{module_id: (lessons, assessments)}``."""
    return {
        str(module_id): new_module_node(lessons, assessments)
        for module_id, (lessons, assessments) in module_totals.items()
    }


def sync_totals(modules: dict, module_totals: Dict[int, tuple]) -> bool:
    """
    Align module nodes and their denominators with the catalog.

    Missing modules are added, totals refreshed, and nodes for modules that
    no longer belong to the course are dropped. Returns True if anything
    changed.
    """
    changed = False
    wanted = {str(module_id): totals for module_id, totals in module_totals.items()}
    for key in list(modules):
        if key not in wanted:
            del modules[key]
            changed = True
    for key, (lessons, assessments) in wanted.items():
        node = modules.get(key)
        if node is None:
            modules[key] = new_module_node(lessons, assessments)
            changed = True
            continue
        if node.get("total_lessons") != lessons or node.get("total_assessments") != assessments:
            node["total_lessons"] = lessons
            node["total_assessments"] = assessments
            changed = True
    return changed


def ensure_module(modules: dict, module_id, totals: tuple) -> dict:
    key = str(module_id)
    if key not in modules:
        modules[key] = new_module_node(*totals)
    return modules[key]


def completed_module_ids(modules: dict) -> FrozenSet[str]:
    return frozenset(
        key for key, node in modules.items() if node.get("completion_percentage") == 100
    )


def start_item(modules: dict, module_id, kind: str, item_id, now) -> bool:
    """Move a lesson or assessment from not_started to in_progress. Never regresses."""
    node = modules.get(str(module_id))
    if node is None:
        raise ProgressError(ErrorCode.PROGRESS_NOT_FOUND, "Module progress not found.")
    items = node[kind]
    key = str(item_id)
    entry = items.get(key)
    if entry is None:
        entry = _new_lesson_entry() if kind == LESSONS else _new_assessment_entry()
        items[key] = entry
    if entry["status"] != ItemStatus.NOT_STARTED:
        return False
    entry["status"] = ItemStatus.IN_PROGRESS.value
    entry["started_at"] = _iso(now)
    return True


def _new_lesson_entry():
    return {
        "status": ItemStatus.NOT_STARTED.value,
        "started_at": None,
        "completed_at": None,
        "time_spent": 0,
    }


def _new_assessment_entry():
    return {
        "status": ItemStatus.NOT_STARTED.value,
        "started_at": None,
        "completed_at": None,
        "attempts": 0,
        "score": None,
        "results": {},
    }


def complete_lesson(modules: dict, module_id, lesson_id, time_spent: int, now) -> bool:
    """
    Mark a started lesson completed.

    ``completed_at`` is only set the first time; repeated calls accumulate
    ``time_spent``. Returns True when the lesson was not completed before.
    """
    node = modules.get(str(module_id))
    entry = node[LESSONS].get(str(lesson_id)) if node is not None else None
    if entry is None or entry["status"] == ItemStatus.NOT_STARTED:
        raise ProgressError(ErrorCode.LESSON_NOT_STARTED, "Lesson has not been started.")
    entry["time_spent"] = entry.get("time_spent", 0) + max(0, int(time_spent or 0))
    if entry["status"] == ItemStatus.COMPLETED:
        return False
    entry["status"] = ItemStatus.COMPLETED.value
    entry["completed_at"] = _iso(now)
    return True


def record_assessment_result(modules: dict, module_id, assessment_id, submission_id,
                             percentage: int, passed: bool, now) -> bool:
    """
    Store the graded percentage of one submission.

    Results are keyed by submission so that re-grading replaces the earlier
    value instead of counting a new attempt. A passed assessment stays
    completed even if a later result is lower.
    """
    node = modules.get(str(module_id))
    if node is None:
        raise ProgressError(ErrorCode.PROGRESS_NOT_FOUND, "Module progress not found.")
    key = str(assessment_id)
    entry = node[ASSESSMENTS].get(key)
    if entry is None:
        entry = _new_assessment_entry()
        node[ASSESSMENTS][key] = entry
    percentage = clamp_percentage(percentage)
    results = entry.setdefault("results", {})
    previous = results.get(str(submission_id))
    results[str(submission_id)] = percentage
    entry["attempts"] = len(results)
    entry["score"] = percentage
    if entry["status"] == ItemStatus.NOT_STARTED:
        entry["status"] = ItemStatus.IN_PROGRESS.value
        entry["started_at"] = _iso(now)
    if passed and entry["status"] != ItemStatus.COMPLETED:
        entry["status"] = ItemStatus.COMPLETED.value
        entry["completed_at"] = _iso(now)
        return True
    return previous != percentage


def _count_completed(items: dict) -> int:
    return sum(1 for entry in items.values() if entry.get("status") == ItemStatus.COMPLETED)


def recompute(modules: dict, now=None) -> ProgressSummary:
    """Refresh derived module fields in place and return course-level totals."""
    completed_lessons = total_lessons = 0
    completed_assessments = total_assessments = 0
    time_spent = 0
    scores = []

    for node in modules.values():
        done_lessons = _count_completed(node[LESSONS])
        done_assessments = _count_completed(node[ASSESSMENTS])
        # Catalog totals may lag behind items recorded before a reconcile.
        node_lessons = max(node.get("total_lessons", 0), done_lessons)
        node_assessments = max(node.get("total_assessments", 0), done_assessments)

        percentage = ratio_percentage(done_lessons + done_assessments, node_lessons + node_assessments)
        node["completion_percentage"] = percentage
        if percentage == 100:
            if not node.get("completed_at"):
                node["completed_at"] = _iso(now)
        else:
            node["completed_at"] = None

        completed_lessons += done_lessons
        total_lessons += node_lessons
        completed_assessments += done_assessments
        total_assessments += node_assessments
        time_spent += sum(entry.get("time_spent", 0) for entry in node[LESSONS].values())
        for entry in node[ASSESSMENTS].values():
            scores.extend(entry.get("results", {}).values())

    if modules:
        overall = ratio_percentage(
            completed_lessons + completed_assessments, total_lessons + total_assessments
        )
    else:
        overall = 0
    average = clamp_percentage((2 * sum(scores) + len(scores)) // (2 * len(scores))) if scores else 0
    completed = completed_module_ids(modules)

    return ProgressSummary(
        overall_progress=overall,
        completed_lessons=completed_lessons,
        total_lessons=total_lessons,
        completed_assessments=completed_assessments,
        total_assessments=total_assessments,
        average_score=average,
        total_time_spent=time_spent,
        completed_modules=completed,
        course_complete=bool(modules) and len(completed) == len(modules),
    )

