import io
import logging
from dataclasses import dataclass, field

import pandas as pd

logger = logging.getLogger("rapid-steno.catalog")

TEMPLATE_COLUMNS = ["Question", "Option A", "Option B", "Option C", "Option D", "Correct Answer", "Points"]
TEMPLATE_ROWS = [
    ["What is the capital of India?", "New Delhi", "Mumbai", "Kolkata", "Chennai", "A", "1"],
    ["In Excel, which function returns the average of numbers ignoring text?", "AVERAGE", "AVERAGEIF", "COUNT", "SUM", "B", "1"],
    ["Which planet is known as the Red Planet?", "Venus", "Mars", "Jupiter", "Saturn", "B", "1"],
]
OPTION_LETTERS = ("A", "B", "C", "D")
NEGATIVE_POINTS = 0.25


@dataclass
class ParsedQuestions:
    questions: list[dict] = field(default_factory=list)
    skipped: int = 0


def _points(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        return 1
    return value or 1


def parse_questions_csv(content: bytes, negative_marking: bool = False) -> ParsedQuestions:
    """
    Read MCQ rows in the template layout:
    Question, Option A-D, Correct Answer (letter), Points.

    Rows missing any of the seven columns, or with an empty question or
    correct-answer cell, are skipped. Points default to 1.
    """
    try:
        df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False, skipinitialspace=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise ValueError(f"Could not read CSV file: {e}")

    if len(df.columns) < len(TEMPLATE_COLUMNS):
        raise ValueError("Invalid CSV format. Please use the template with all required columns.")

    parsed = ParsedQuestions()
    for _, row in df.iterrows():
        # absent trailing fields come back as NaN, blank ones as ""
        values = list(row.iloc[: len(TEMPLATE_COLUMNS)])
        if any(pd.isna(v) for v in values) or not str(values[0]).strip() or not str(values[5]).strip():
            parsed.skipped += 1
            continue

        values = [str(v).strip() for v in values]
        correct = values[5].upper()
        parsed.questions.append({
            "text": values[0],
            "points": _points(values[6]),
            "negative_points": NEGATIVE_POINTS if negative_marking else 0,
            "options": [
                {"label": values[1 + i], "is_correct": correct == letter}
                for i, letter in enumerate(OPTION_LETTERS)
            ],
        })

    logger.info("Parsed %d questions from CSV (%d skipped)", len(parsed.questions), parsed.skipped)
    return parsed


def template_csv() -> str:
    return pd.DataFrame(TEMPLATE_ROWS, columns=TEMPLATE_COLUMNS).to_csv(index=False)
