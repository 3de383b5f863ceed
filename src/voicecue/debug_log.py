"""
Debug logging for following what the pipeline did with each transcript.

Writes one file, logs/pipeline.log, with a timestamped line per transcript
received, per confirmed position change and per step of a skip being
explored. Useful for working out afterwards why the display did or did not
move.

Logging is disabled by default. Call enable() to turn it on.
"""

from datetime import datetime
from pathlib import Path

# Log files location (in the working directory)
LOG_DIR: Path = Path.cwd() / "logs"
PIPELINE_LOG: Path = LOG_DIR / "pipeline.log"

# Global flag to control whether debug logging is enabled
_ENABLED: bool = False  # pylint: disable=invalid-name


def enable() -> None:
    """Enable debug logging."""
    global _ENABLED  # pylint: disable=global-statement
    _ENABLED = True


def disable() -> None:
    """Disable debug logging."""
    global _ENABLED  # pylint: disable=global-statement
    _ENABLED = False


def is_enabled() -> bool:
    """Check if debug logging is enabled."""
    return _ENABLED


def _ensure_log_dir() -> None:
    """Create log directory if it doesn't exist."""
    LOG_DIR.mkdir(exist_ok=True)


def _timestamp() -> str:
    """Get current timestamp."""
    return datetime.now().strftime("%H:%M:%S.%f")[:-3]


def _append(line: str) -> None:
    _ensure_log_dir()
    with open(PIPELINE_LOG, 'a', encoding='utf-8') as f:
        f.write(f"[{_timestamp()}] {line}\n")


def clear_logs() -> None:
    """Clear the log file for a fresh session."""
    if not _ENABLED:
        return
    _ensure_log_dir()
    with open(PIPELINE_LOG, 'w', encoding='utf-8') as f:
        f.write(
            f"=== New session started at {datetime.now().isoformat()} ===\n\n")


def log_transcript(transcript: str, is_final: bool, window: list[str]) -> None:
    """Log a transcript event and the speech window built from it."""
    if not _ENABLED:
        return
    kind: str = "final" if is_final else "interim"
    _append(f"{kind:8} \"{transcript[-60:]}\" window={window}")


def log_position_change(
    old_pos: int,
    new_pos: int,
    words_in_range: list[str],
    score: float
) -> None:
    """
    Log a confirmed position change.

    Args:
        old_pos: Previous confirmed position
        new_pos: New confirmed position
        words_in_range: The script words between old and new positions
        score: combined_score of the accepted candidate
    """
    if not _ENABLED:
        return
    _append(f"POSITION CHANGE: {old_pos} -> {new_pos} (score {score:.3f})")
    with open(PIPELINE_LOG, 'a', encoding='utf-8') as f:
        f.write(f"                 words: {words_in_range}\n")


def log_exploring(candidate_pos: int, consecutive: int, required: int) -> None:
    """Log one step of a skip that is waiting for corroboration."""
    if not _ENABLED:
        return
    _append(f"exploring       pos={candidate_pos:4d} streak={consecutive}/{required}")
