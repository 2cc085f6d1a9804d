"""Questionnaire definition as produced by the authoring workflow.

Only the parts the sync core reads are modelled: ordered sections and
questions, and each question's optional dictionary link carrying its binding
path and current revision.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from intake.models.binding import DataSource


class FieldType:
    SHORT_TEXT = "SHORT_TEXT"
    LONG_TEXT = "LONG_TEXT"
    INTEGER = "INTEGER"
    SINGLE_SELECT = "SINGLE_SELECT"
    MULTI_SELECT = "MULTI_SELECT"
    CHECKBOX_GROUP = "CHECKBOX_GROUP"
    DATE = "DATE"
    REPEATABLE_GROUP = "REPEATABLE_GROUP"
    SCORING_0_3 = "SCORING_0_3"
    SCORING_MATRIX = "SCORING_MATRIX"


class DictionaryEntry(BaseModel):
    id: str
    key: str
    binding_path: str
    data_source: DataSource
    label: str = ""
    current_revision_id: Optional[str] = None
    current_version: Optional[int] = None


class QuestionDefinition(BaseModel):
    id: str
    label: str = ""
    field_type: str = FieldType.SHORT_TEXT
    order: int = 0
    dictionary_key: Optional[str] = None
    dictionary: Optional[DictionaryEntry] = None


class SectionDefinition(BaseModel):
    id: str
    code: str = ""
    title: str = ""
    order: int = 0
    questions: List[QuestionDefinition] = Field(default_factory=list)


class QuestionnaireDefinition(BaseModel):
    id: str
    name: str = ""
    version: str = ""
    sections: List[SectionDefinition] = Field(default_factory=list)

    def iter_questions(self):  # type: ignore[no-untyped-def]
        for section in sorted(self.sections, key=lambda s: s.order):
            for question in sorted(section.questions, key=lambda q: q.order):
                yield question


__all__ = [
    "FieldType",
    "DictionaryEntry",
    "QuestionDefinition",
    "SectionDefinition",
    "QuestionnaireDefinition",
]
