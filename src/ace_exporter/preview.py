"""Size guards shared by the transcript parser and the Markdown renderer."""

PREVIEW_CHAR_GUARD = 120_000
PREVIEW_LINE_GUARD = 2_000


def count_lines(text: str) -> int:
    if not text:
        return 0
    return text.count("\n") + 1


def is_large_preview(char_count: int, line_count: int) -> bool:
    return char_count > PREVIEW_CHAR_GUARD or line_count > PREVIEW_LINE_GUARD


class PreviewBudget:
    """Running character/line tally for preview rendering.

    ``add`` returns True once either guard has been exceeded. With
    ``enabled=False`` the tally still runs but never trips.
    """

    def __init__(self, enabled: bool, char_guard: int = PREVIEW_CHAR_GUARD,
                 line_guard: int = PREVIEW_LINE_GUARD):
        self.enabled = enabled
        self.char_guard = char_guard
        self.line_guard = line_guard
        self.chars = 0
        self.lines = 0
        self.exceeded = False

    def add(self, chars: int, lines: int) -> bool:
        self.chars += chars
        self.lines += lines
        if not self.enabled:
            return False
        if self.chars > self.char_guard or self.lines > self.line_guard:
            self.exceeded = True
        return self.exceeded
