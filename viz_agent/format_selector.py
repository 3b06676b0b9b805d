"""Format Selector: classify free text into a visualization kind or "not visualizable", and rank the kinds that fit it best."""

import re
from dataclasses import dataclass
from typing import List, Optional

from api.utils.debug import print__pipeline_debug
from viz_agent.utils.document import VisualizationKind
from viz_agent.utils.errors import returns_outcome
from viz_agent.utils.prompts import FORMAT_RECOMMENDATION_PROMPT, FORMAT_SELECTION_PROMPT
from viz_agent.utils.schemas import (
    coerce_kind,
    validate_format_recommendations,
    validate_format_selection,
)

MANUAL_SELECTION_REASON = "User selected this format manually"
MAX_RECOMMENDATIONS = 3

# Advisory hints only; the model makes the decision
DATA_PATTERNS = {
    "dates": re.compile(
        r"\b(1[5-9]\d{2}|20\d{2})\b|\b\d{4}-\d{2}-\d{2}\b|"
        r"\b(january|february|march|april|may|june|july|august|september|"
        r"october|november|december)\b",
        re.IGNORECASE,
    ),
    "schedule": re.compile(
        r"\b(deadline|milestone|sprint|phase|task|schedule|due|week \d+)\b", re.IGNORECASE
    ),
    "hierarchy": re.compile(
        r"\b(consists of|subcategor\w*|parent|child(ren)?|branch\w*|taxonomy|"
        r"hierarch\w*|levels?)\b|^\s*[-*]\s",
        re.IGNORECASE | re.MULTILINE,
    ),
    "relationships": re.compile(
        r"\b(depends on|relates? to|connected|influences?|interacts?|causes?|"
        r"linked|network)\b",
        re.IGNORECASE,
    ),
    "sequence": re.compile(
        r"\b(first|then|next|finally|after that|step \d+)\b", re.IGNORECASE
    ),
}


@dataclass
class FormatChoice:
    visualizable: bool
    kind: str
    reason: str

    @property
    def is_visualizable(self) -> bool:
        return self.visualizable and self.kind != "none"

    @property
    def visualization_kind(self) -> Optional[VisualizationKind]:
        return VisualizationKind(self.kind) if self.is_visualizable else None


def detect_data_patterns(input_text: str) -> List[str]:
    """Names of the cheap regex patterns found in the input."""
    return [name for name, pattern in DATA_PATTERNS.items() if pattern.search(input_text)]


def _with_pattern_hints(input_text: str) -> str:
    patterns = detect_data_patterns(input_text)
    if not patterns:
        return input_text
    return f"{input_text}\n\nDetected patterns: {', '.join(patterns)}"


async def choose_format(
    input_text: str,
    model,
    preferred_kind: Optional[str] = None,
) -> FormatChoice:
    """Ask the model for the best kind; raises on a failed call or a bad response."""
    if preferred_kind:
        kind = coerce_kind(preferred_kind)
        print__pipeline_debug(f"🎯 FORMAT: manual selection {kind.value}")
        return FormatChoice(True, kind.value, MANUAL_SELECTION_REASON)

    user_message = _with_pattern_hints(input_text)

    raw = await model.complete(
        FORMAT_SELECTION_PROMPT,
        [{"role": "user", "content": user_message}],
        structured_output=True,
    )
    selection = validate_format_selection(raw)
    choice = FormatChoice(selection.visualizable, selection.kind, selection.reason)
    print__pipeline_debug(
        f"🎯 FORMAT: visualizable={choice.visualizable} kind={choice.kind}"
    )
    return choice


select_format = returns_outcome(choose_format)


@dataclass
class FormatRecommendation:
    kind: VisualizationKind
    score: float
    reason: str


async def recommend_formats(input_text: str, model) -> List[FormatRecommendation]:
    """Up to three supported kinds for the input, best score first."""
    user_message = _with_pattern_hints(input_text)

    raw = await model.complete(
        FORMAT_RECOMMENDATION_PROMPT,
        [{"role": "user", "content": user_message}],
        structured_output=True,
    )
    response = validate_format_recommendations(raw)
    ranked = sorted(response.recommendations, key=lambda item: item.score, reverse=True)
    recommendations = [
        FormatRecommendation(VisualizationKind(item.kind), item.score, item.reason)
        for item in ranked[:MAX_RECOMMENDATIONS]
    ]
    print__pipeline_debug(
        f"🎯 FORMAT: recommended {', '.join(r.kind.value for r in recommendations)}"
    )
    return recommendations


get_format_recommendations = returns_outcome(recommend_formats)
