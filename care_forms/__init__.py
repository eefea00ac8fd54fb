"""care-forms: questionnaire rendering and submission engine."""

__version__ = "0.1.0"
