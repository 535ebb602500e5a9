from __future__ import annotations

# ============================================================================
# Font metrics: character width estimates for Inter at different sizes.
# ============================================================================


def estimate_text_width(text: str, font_size: float, font_weight: int) -> float:
    """Average character width in px at the given font size and weight (proportional font)."""
    if font_weight >= 600:
        width_ratio = 0.58
    elif font_weight >= 500:
        width_ratio = 0.55
    else:
        width_ratio = 0.52
    return len(text) * font_size * width_ratio


def estimate_block_width(text: str, font_size: float, font_weight: int) -> float:
    """Width of the widest line in a multi-line text block."""
    lines = text.split("\n") or [""]
    return max(estimate_text_width(line, font_size, font_weight) for line in lines)


# Fixed font sizes (px)
FONT_SIZES = {
    "participant_label": 13,
    "message_label": 12,
    "return_label": 11,
    "block_label": 11,
    "section_label": 11,
    "group_label": 11,
    "note_text": 11,
    "title": 16,
}

# Font weights per element type
FONT_WEIGHTS = {
    "participant_label": 500,
    "message_label": 400,
    "return_label": 400,
    "block_label": 600,
    "section_label": 600,
    "group_label": 600,
    "note_text": 400,
    "title": 700,
}

# Line height multiplier for multi-line text blocks (notes)
LINE_HEIGHT = 1.4
