"""Path-addressed, copy-on-write edits of a question tree.

A path is the list of question ids from a root question down to the target.
Every operation returns a new root list; only the nodes along the edited
path are copied, untouched subtrees are shared with the input.
"""

from collections.abc import Callable, Iterable, Sequence
from typing import Any
from uuid import uuid4

from care_forms.registry.models import Question


class QuestionNotFoundError(Exception):
    """Raised when a question id or path does not resolve."""

    def __init__(self, question_id: str) -> None:
        self.question_id = question_id
        super().__init__(f"Question not found: {question_id}")


def find_question_path(questions: Sequence[Question], question_id: str) -> list[str] | None:
    """Return the id path to a question, or None when it is not in the tree."""
    for question in questions:
        if question.id == question_id:
            return [question.id]
        sub_path = find_question_path(question.questions, question_id)
        if sub_path is not None:
            return [question.id, *sub_path]
    return None


def get_question_at(questions: Sequence[Question], path: Sequence[str]) -> Question:
    """Resolve a path to its question.

    Raises:
        QuestionNotFoundError: If any segment of the path does not resolve.
    """
    if not path:
        raise QuestionNotFoundError("<empty path>")
    level: Sequence[Question] = questions
    node: Question | None = None
    for segment in path:
        node = next((q for q in level if q.id == segment), None)
        if node is None:
            raise QuestionNotFoundError(segment)
        level = node.questions
    assert node is not None
    return node


def _edit_at(
    questions: Sequence[Question],
    path: Sequence[str],
    edit: Callable[[Question], Question],
) -> list[Question]:
    head, rest = path[0], path[1:]
    result: list[Question] = []
    found = False
    for question in questions:
        if question.id != head:
            result.append(question)
            continue
        found = True
        if rest:
            children = _edit_at(question.questions, rest, edit)
            result.append(question.model_copy(update={"questions": children}))
        else:
            result.append(edit(question))
    if not found:
        raise QuestionNotFoundError(head)
    return result


def update_question_at(
    questions: Sequence[Question],
    path: Sequence[str],
    **changes: Any,
) -> list[Question]:
    """Replace fields of the question at a path.

    Args:
        questions: Root questions.
        path: Id path to the question to edit.
        **changes: Field values to set, e.g. ``text="Weight"``.

    Returns:
        New root questions.

    Raises:
        QuestionNotFoundError: If the path does not resolve.
    """
    if not path:
        raise QuestionNotFoundError("<empty path>")
    return _edit_at(questions, path, lambda q: q.model_copy(update=changes))


def _with_children(
    questions: Sequence[Question],
    destination_id: str | None,
    edit: Callable[[list[Question]], list[Question]],
) -> list[Question]:
    if destination_id is None:
        return edit(list(questions))
    path = find_question_path(questions, destination_id)
    if path is None:
        raise QuestionNotFoundError(destination_id)
    destination = get_question_at(questions, path)
    if not destination.is_group:
        raise ValueError(f"Question {destination_id} is not a group")
    return _edit_at(
        questions,
        path,
        lambda q: q.model_copy(update={"questions": edit(list(q.questions))}),
    )


def insert_questions(
    questions: Sequence[Question],
    destination_id: str | None,
    new_questions: Sequence[Question],
    index: int | None = None,
) -> list[Question]:
    """Insert questions into a group, or at the root when destination is None.

    Args:
        questions: Root questions.
        destination_id: Group to insert into; None for the root list.
        new_questions: Questions to insert, in order.
        index: Position among the destination's children; appended if None.

    Raises:
        QuestionNotFoundError: If the destination does not exist.
        ValueError: If the destination is not a group.
    """

    def edit(children: list[Question]) -> list[Question]:
        position = len(children) if index is None else index
        return [*children[:position], *new_questions, *children[position:]]

    return _with_children(questions, destination_id, edit)


def _remove(questions: Sequence[Question], ids: set[str]) -> tuple[list[Question], bool]:
    result: list[Question] = []
    changed = False
    for question in questions:
        if question.id in ids:
            changed = True
            continue
        children, children_changed = _remove(question.questions, ids)
        if children_changed:
            changed = True
            result.append(question.model_copy(update={"questions": children}))
        else:
            result.append(question)
    return result, changed


def remove_questions(questions: Sequence[Question], ids: Iterable[str]) -> list[Question]:
    """Remove questions (with their subtrees) wherever they are in the tree."""
    result, _ = _remove(questions, set(ids))
    return result


def move_questions(
    questions: Sequence[Question],
    ids: Sequence[str],
    destination_id: str | None,
) -> list[Question]:
    """Move questions into a group (or the root), in the order given.

    Raises:
        QuestionNotFoundError: If a moved question or the destination is missing.
        ValueError: If the destination is one of the moved questions or lies
            inside one of them.
    """
    moved_ids = set(ids)
    if destination_id is not None:
        destination_path = find_question_path(questions, destination_id)
        if destination_path is None:
            raise QuestionNotFoundError(destination_id)
        if moved_ids & set(destination_path):
            raise ValueError("Cannot move a question into itself or one of its descendants")

    moved: list[Question] = []
    for question_id in ids:
        path = find_question_path(questions, question_id)
        if path is None:
            raise QuestionNotFoundError(question_id)
        # a question nested in another moved question travels with its ancestor
        if moved_ids & set(path[:-1]):
            continue
        moved.append(get_question_at(questions, path))

    return insert_questions(remove_questions(questions, moved_ids), destination_id, moved)


def copy_question_with_new_ids(
    question: Question,
    id_factory: Callable[[], object] = uuid4,
) -> Question:
    """Deep-copy a question giving it and all descendants fresh ids.

    link_ids and enable_when conditions are kept as they are.
    """
    return question.model_copy(
        update={
            "id": str(id_factory()),
            "questions": [copy_question_with_new_ids(child, id_factory) for child in question.questions],
        },
        deep=True,
    )


def copy_questions(
    questions: Sequence[Question],
    ids: Sequence[str],
    destination_id: str | None = None,
    id_factory: Callable[[], object] = uuid4,
) -> list[Question]:
    """Copy questions with fresh ids into a group (or the root).

    Raises:
        QuestionNotFoundError: If a source question or the destination is missing.
    """
    copies = []
    for question_id in ids:
        path = find_question_path(questions, question_id)
        if path is None:
            raise QuestionNotFoundError(question_id)
        copies.append(copy_question_with_new_ids(get_question_at(questions, path), id_factory))
    return insert_questions(questions, destination_id, copies)


def enable_when_dependencies(questions: Sequence[Question]) -> dict[str, list[tuple[str, list[str]]]]:
    """Map each referenced link_id to the questions whose visibility depends on it.

    Returns:
        ``{link_id: [(question_id, path), ...]}`` in tree order.
    """
    dependencies: dict[str, list[tuple[str, list[str]]]] = {}

    def visit(level: Sequence[Question], prefix: list[str]) -> None:
        for question in level:
            path = [*prefix, question.id]
            for condition in question.enable_when:
                dependencies.setdefault(condition.question, []).append((question.id, path))
            visit(question.questions, path)

    visit(questions, [])
    return dependencies
