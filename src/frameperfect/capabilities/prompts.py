"""
Enhancement Prompts
===================

Deterministic prompt construction for the enhancement capability.

The prompt is a base editing instruction plus one clause per requested
style. RESTORE is the base instruction itself and adds no clause.
"""

from typing import Iterable, List

from frameperfect.models.frame import EnhancementStyle


BASE_INSTRUCTION = (
    "Act as a professional photo editor. Sharpen details, fix lighting, "
    "and improve color grading."
)

ADVICE_TEMPLATE = 'Apply this advice: "{advice}".'

STYLE_CLAUSES = {
    EnhancementStyle.RESTORE: "",
    EnhancementStyle.UNBLUR: (
        "Aggressively unblur the image: restore facial details, sharpen edges, "
        "and reduce noise while keeping the colors natural."
    ),
    EnhancementStyle.REMOVE_BACKGROUND: (
        "Keep the main subject exactly as is, but replace the background with a "
        "solid clean white studio backdrop using high precision masking."
    ),
    EnhancementStyle.CINEMATIC: (
        "Apply a cinematic teal and orange color grade with high contrast and "
        "dramatic lighting, keeping the original image size."
    ),
    EnhancementStyle.BOKEH: (
        "Apply a strong portrait mode effect: keep the subject sharp and give the "
        "background a creamy bokeh blur to separate the subject."
    ),
}


def normalize_styles(styles: Iterable[EnhancementStyle]) -> List[EnhancementStyle]:
    """Styles in request order with duplicates dropped; RESTORE if empty."""
    ordered: List[EnhancementStyle] = []
    for style in styles:
        style = EnhancementStyle(style)
        if style not in ordered:
            ordered.append(style)
    return ordered or [EnhancementStyle.RESTORE]


def build_enhancement_prompt(advice: str, styles: Iterable[EnhancementStyle]) -> str:
    """
    Build the enhancement instruction.

    Args:
        advice: Free-text fix suggestions (may be empty)
        styles: Requested styles

    Returns:
        Prompt text; identical inputs always give identical prompts
    """
    parts = [BASE_INSTRUCTION]
    advice = advice.strip()
    if advice:
        parts.append(ADVICE_TEMPLATE.format(advice=advice))
    for style in normalize_styles(styles):
        clause = STYLE_CLAUSES[style]
        if clause:
            parts.append(clause)
    return " ".join(parts)
