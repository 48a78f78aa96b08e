"""Quiz-related constants shared across the engine and server layers."""

PASS_THRESHOLD: float = 0.5
DEFAULT_GAP_SEPARATOR: str = ","
SHORT_ANSWER_DELIMITER: str = "|"
OPTION_LETTERS: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"

MAX_INLINE_FORMULA_LENGTH: int = 200
RERENDER_DELAY_SECONDS: float = 0.1

STALLED_REASON: str = "Quiz content has not arrived yet."
PASS_REQUIREMENT_MESSAGE: str = "minimum 50% required to continue"
