"""File-backed questionnaire registry.

Definitions live at ``<registry_path>/questionnaires/<slug>/<version>.json``
with the dots of the version written as dashes (``1-0-0.json``). A
reference is either a bare slug (latest version) or ``slug@version``.
"""

from pathlib import Path
from typing import Any

import jsonschema

from care_forms.io import load_json
from care_forms.registry.fixed import get_fixed_questionnaire
from care_forms.registry.models import Questionnaire


class QuestionnaireNotFoundError(Exception):
    """Raised when no definition matches a slug or version."""


class QuestionnaireValidationError(Exception):
    """Raised when a stored definition does not match the questionnaire schema."""


def version_key(version: str) -> tuple[tuple[int, int | str], ...]:
    """Sort key ordering version segments numerically where they are numbers."""
    return tuple((0, int(part)) if part.isdigit() else (1, part) for part in version.split("."))


def split_reference(reference: str) -> tuple[str, str | None]:
    """Split ``slug@version`` into its parts; a bare slug has no version."""
    slug, _, version = reference.partition("@")
    return slug, version or None


class QuestionnaireRegistry:
    """Loads, validates and caches questionnaire definitions from disk.

    Built-in structured questionnaires are answered by ``resolve`` without
    touching the registry directory.
    """

    def __init__(
        self,
        registry_path: Path | str,
        schema_path: Path | str | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            registry_path: Directory holding a ``questionnaires`` folder.
            schema_path: Questionnaire JSON schema; definitions are not
                schema-checked when omitted.
        """
        self.root = Path(registry_path) / "questionnaires"
        self._schema: dict[str, Any] | None = load_json(schema_path) if schema_path else None
        self._loaded: dict[tuple[str, str], Questionnaire] = {}

    def _files(self, slug: str) -> dict[str, Path]:
        folder = self.root / slug
        if not folder.is_dir():
            return {}
        return {path.stem.replace("-", "."): path for path in folder.glob("*.json")}

    def validate_data(self, data: Any, label: str) -> Questionnaire:
        """Check raw definition data against the schema and build the model.

        Args:
            data: Parsed JSON definition.
            label: ``slug@version`` used in the error message.

        Raises:
            QuestionnaireValidationError: If the data fails schema validation.
        """
        if self._schema is not None:
            try:
                jsonschema.validate(data, self._schema)
            except jsonschema.ValidationError as e:
                raise QuestionnaireValidationError(f"{label} is not a valid questionnaire: {e.message}") from e
        return Questionnaire.model_validate(data)

    def get(self, slug: str, version: str) -> Questionnaire:
        """Load one version of a questionnaire.

        Raises:
            QuestionnaireNotFoundError: If that version has no file.
            QuestionnaireValidationError: If the file fails schema validation.
        """
        key = (slug, version)
        if key not in self._loaded:
            path = self._files(slug).get(version)
            if path is None:
                raise QuestionnaireNotFoundError(f"No questionnaire {slug}@{version} under {self.root}")
            self._loaded[key] = self.validate_data(load_json(path), f"{slug}@{version}")
        return self._loaded[key]

    def list_questionnaires(self) -> list[str]:
        """Slugs with a folder in the registry, alphabetically."""
        if not self.root.is_dir():
            return []
        return sorted(entry.name for entry in self.root.iterdir() if entry.is_dir())

    def list_versions(self, slug: str) -> list[str]:
        """Versions stored for a slug, oldest first."""
        return sorted(self._files(slug), key=version_key)

    def get_latest(self, slug: str) -> Questionnaire:
        """Load the highest stored version of a slug.

        Raises:
            QuestionnaireNotFoundError: If the slug has no stored versions.
        """
        versions = self.list_versions(slug)
        if not versions:
            raise QuestionnaireNotFoundError(f"No versions of questionnaire {slug} under {self.root}")
        return self.get(slug, versions[-1])

    def resolve(self, reference: str) -> Questionnaire:
        """Resolve ``slug`` or ``slug@version``, built-in questionnaires first."""
        slug, version = split_reference(reference)
        if version is None:
            fixed = get_fixed_questionnaire(slug)
            if fixed is not None:
                return fixed
            return self.get_latest(slug)
        return self.get(slug, version)
