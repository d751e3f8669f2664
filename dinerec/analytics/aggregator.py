from __future__ import annotations

from collections import Counter

from ..recommendations.models import FeedbackSummary
from ..storage.models import ExposureLogEntry, FeedbackAction, FeedbackType, Interaction

HISTORY_LIMIT = 50


def summarize_feedback(
    user_id: str,
    interactions: list[Interaction],
    exposures: list[ExposureLogEntry],
) -> FeedbackSummary:
    feedback = sorted(
        (i for i in interactions if i.feedback_type is not None),
        key=lambda i: i.timestamp,
        reverse=True,
    )[:HISTORY_LIMIT]

    type_counter: Counter[str] = Counter(i.feedback_type.value for i in feedback)
    action_counter: Counter[str] = Counter(i.type.value for i in feedback)

    return FeedbackSummary(
        user_id=user_id,
        total=len(feedback),
        by_feedback_type={t.value: type_counter.get(t.value, 0) for t in FeedbackType},
        by_action={a.value: action_counter.get(a.value, 0) for a in FeedbackAction},
        exposures=len(exposures),
        attributed_exposures=sum(1 for e in exposures if e.interaction is not None),
    )
