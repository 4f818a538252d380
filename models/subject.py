from enum import Enum


class Subject(str, Enum):
    ENGLISH = "English"
    MATH = "Math"
    SCIENCE = "Science"
    CHINESE = "Chinese"


class Grade(str, Enum):
    PRIMARY_3 = "Primary 3"
    PRIMARY_4 = "Primary 4"


def bank_key(subject: Subject, grade: Grade) -> str:
    """File stem used for a subject/grade question bank, e.g. ``math_primary_3``."""
    return f"{subject.value}_{grade.value}".lower().replace(" ", "_")
