from __future__ import annotations

from dataclasses import dataclass

# ============================================================================
# Shared types, used by every diagram engine in the package
# ============================================================================


@dataclass(slots=True, frozen=True)
class Diagnostic:
    """A non-fatal problem found while reading a document."""
    # 1-based source line (0 when the problem is not tied to one line)
    line: int
    message: str

    def __str__(self) -> str:
        if self.line:
            return f"Line {self.line}: {self.message}"
        return self.message


# ============================================================================
# Render options: user-facing configuration
# ============================================================================

@dataclass(slots=True)
class RenderOptions:
    # Line numbers of top-level sections currently collapsed
    collapsed_sections: set[int] | None = None
    # Line numbers of notes showing their full text. None = every note expanded
    expanded_note_lines: set[int] | None = None
