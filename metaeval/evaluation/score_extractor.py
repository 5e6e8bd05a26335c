"""Pull a bounded 0-1 score out of free-form judge output.

Order of preference:
  1. A JSON verdict object with a numeric ``score`` (structured output).
  2. A labelled score: "Score: 0.8", "I rate this as 0.7", "rating of 1".
  3. The first bare decimal ("0.65") that already lies in [0, 1].
  4. The neutral prior 0.5.

Never raises. A defaulted score is tagged ``ScoreSource.DEFAULT`` so callers
can tell it apart from a measured 0.5.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass

import structlog
from pydantic import BaseModel, ValidationError

from metaeval.evaluation.aggregation import clamp
from metaeval.evaluation.types import ScoreSource

logger = structlog.get_logger()

NEUTRAL_SCORE = 0.5

_JSON_DECODER = json.JSONDecoder()
_LABELLED_SCORE = re.compile(
    r"(?:score|rating|rate(?:\s+(?:this|it))?)(?:\s*(?:of|as|is|:))?\s*(\d+(?:\.\d+)?)",
    re.IGNORECASE,
)
_BARE_DECIMAL = re.compile(r"(\d+\.\d+)")


class JudgeVerdict(BaseModel):
    """Structured verdict the judge prompts ask for."""

    score: float
    rationale: str = ""


@dataclass(frozen=True)
class ScoreExtraction:
    score: float
    source: ScoreSource


def extract_score(text: str | None) -> float:
    """Return a score in [0, 1] parsed from ``text``."""
    return extract_score_detailed(text).score


def extract_score_detailed(text: str | None) -> ScoreExtraction:
    """Like ``extract_score`` but also reports which rule matched."""
    if not text:
        return _neutral(text)

    verdict = _parse_verdict(text)
    if verdict is not None:
        return ScoreExtraction(score=clamp(verdict.score), source=ScoreSource.STRUCTURED)

    match = _LABELLED_SCORE.search(text)
    if match:
        return ScoreExtraction(score=clamp(float(match.group(1))), source=ScoreSource.LABELLED)

    match = _BARE_DECIMAL.search(text)
    if match:
        value = float(match.group(1))
        if 0.0 <= value <= 1.0:
            return ScoreExtraction(score=value, source=ScoreSource.FALLBACK)

    return _neutral(text)


def _parse_verdict(text: str) -> JudgeVerdict | None:
    """First JSON object in ``text`` that validates as a verdict.

    Objects are decoded from each ``{`` in turn, so braces inside string
    values and any key order are handled.
    """
    start = text.find("{")
    while start != -1:
        try:
            candidate, _ = _JSON_DECODER.raw_decode(text, start)
        except json.JSONDecodeError:
            candidate = None
        if isinstance(candidate, dict):
            try:
                return JudgeVerdict.model_validate(candidate)
            except ValidationError:
                pass
        start = text.find("{", start + 1)
    return None


def _neutral(text: str | None) -> ScoreExtraction:
    logger.debug(
        "score_extraction_defaulted",
        default=NEUTRAL_SCORE,
        text_preview=(text or "")[:200],
    )
    return ScoreExtraction(score=NEUTRAL_SCORE, source=ScoreSource.DEFAULT)
