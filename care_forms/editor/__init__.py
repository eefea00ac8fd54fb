"""Copy-on-write editing of questionnaire question trees."""

from care_forms.editor.tree import (
    QuestionNotFoundError,
    copy_question_with_new_ids,
    copy_questions,
    enable_when_dependencies,
    find_question_path,
    get_question_at,
    insert_questions,
    move_questions,
    remove_questions,
    update_question_at,
)

__all__ = [
    "QuestionNotFoundError",
    "copy_question_with_new_ids",
    "copy_questions",
    "enable_when_dependencies",
    "find_question_path",
    "get_question_at",
    "insert_questions",
    "move_questions",
    "remove_questions",
    "update_question_at",
]
