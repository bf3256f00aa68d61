"""!
@brief Aggregate optimisation score derived from toggle state.
@details The score is a pure function of a ``name -> active`` snapshot and the
per-toggle weights: the sum of the weights of active toggles, clamped to
``[0, 100]``. A four-band grade is derived from the score. Nothing here keeps
state or performs I/O, so identical input always produces identical output.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Mapping

from . import constants


class Grade(str, enum.Enum):
    """!
    @brief Qualitative band for a score.
    """

    BASELINE = "Baseline"
    FAIR = "Fair"
    GOOD = "Good"
    EXCELLENT = "Excellent"


@dataclass(frozen=True)
class ScoreSnapshot:
    """!
    @brief Score, grade, and the toggle snapshot they were computed from.
    """

    score: int
    grade: Grade
    active: Mapping[str, bool] = field(default_factory=dict)


def clamp_score(value: int) -> int:
    return max(constants.SCORE_MIN, min(constants.SCORE_MAX, int(value)))


def grade_for(score: int) -> Grade:
    """!
    @brief Map ``score`` onto its grade band.
    @details ``> 80`` Excellent, ``> 50`` Good, ``> 20`` Fair, otherwise Baseline.
    """

    for bound, label in constants.GRADE_THRESHOLDS:
        if score > bound:
            return Grade(label)
    return Grade.BASELINE


def compute(snapshot: Mapping[str, bool], weights: Mapping[str, int]) -> ScoreSnapshot:
    """!
    @brief Compute the score and grade for ``snapshot``.
    @param snapshot Mapping of toggle name to active flag.
    @param weights Mapping of toggle name to score contribution; names missing
    from ``weights`` contribute nothing.
    @returns :class:`ScoreSnapshot` holding a copy of ``snapshot``.
    """

    total = sum(int(weights.get(name, 0)) for name, active in snapshot.items() if active)
    score = clamp_score(total)
    return ScoreSnapshot(score=score, grade=grade_for(score), active=dict(snapshot))


__all__ = ["Grade", "ScoreSnapshot", "clamp_score", "compute", "grade_for"]
