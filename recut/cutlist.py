"""
Cut lists - apply CSV-driven cuts and fast-forwards to the primary track.

A cut list is a CSV of ``command,timestamp`` rows, optionally preceded by a
header. ``X`` removes the clip from the timestamp onward, ``F`` plays it at
fast-forward speed. Cuts act on the primary track only and are applied row
by row against the live track.
"""

import csv
import io
import locale
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .models import EditConfig, InputError, Project, Timecode

logger = logging.getLogger(__name__)

CUT = "X"
FAST_FORWARD = "F"
COMMANDS = (CUT, FAST_FORWARD)

# Maximum cut list size (5 MB)
_MAX_CUT_LIST_BYTES = 5 * 1024 * 1024


@dataclass
class CutCommand:
    """One parsed row of a cut list."""
    command: str
    timestamp: Timecode
    line_number: int = 0


@dataclass
class CutListResult:
    """Outcome of applying a cut list."""
    applied: int = 0
    skipped: int = 0
    clips_removed: int = 0
    fast_forwarded: int = 0
    messages: List[str] = field(default_factory=list)


def parse_number(text: str) -> Optional[float]:
    """Parse a float in invariant format, falling back to the current locale.

    The fallback only changes anything when the host application has called
    ``locale.setlocale``; under the default "C" locale it accepts the same
    input as ``float``.
    """
    text = text.strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        try:
            value = locale.atof(text)
        except ValueError:
            return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def parse_cut_list(text: str, config: Optional[EditConfig] = None) -> List[CutCommand]:
    """
    Parse cut list text into commands.

    The first row is treated as a header when its second field is not a
    number. Rows that are too short, have an unknown command or an
    unparsable timestamp are skipped, as are zero timestamps.
    """
    config = config or EditConfig()
    commands = []
    first_row = True

    for line_number, row in enumerate(csv.reader(io.StringIO(text)), start=1):
        if not row or not any(cell.strip() for cell in row):
            continue
        is_first, first_row = first_row, False

        if len(row) < 2:
            logger.debug("Line %d: too few fields, skipped", line_number)
            continue

        value = parse_number(row[1])
        if value is None:
            if is_first:
                logger.debug("Line %d: header row", line_number)
            else:
                logger.debug("Line %d: unparsable timestamp %r, skipped", line_number, row[1])
            continue

        command = row[0].strip().upper()
        if command not in COMMANDS:
            logger.debug("Line %d: unknown command %r, skipped", line_number, row[0])
            continue
        if value == 0:
            continue

        if config.cut_timestamp_unit == "s":
            timestamp = Timecode.from_seconds(value)
        else:
            timestamp = Timecode.from_milliseconds(value)
        commands.append(CutCommand(command, timestamp, line_number))

    return commands


def read_cut_list(path: str, config: Optional[EditConfig] = None) -> List[CutCommand]:
    """Read and parse a cut list file."""
    cut_path = Path(path)
    if cut_path.stat().st_size > _MAX_CUT_LIST_BYTES:
        raise InputError(
            f"Cut list exceeds maximum size ({_MAX_CUT_LIST_BYTES // (1024 * 1024)} MB)"
        )
    with open(cut_path, 'r', encoding='utf-8-sig', newline='') as f:
        return parse_cut_list(f.read(), config)


def apply_cut_list(
    project: Project,
    commands: List[CutCommand],
    config: Optional[EditConfig] = None,
) -> CutListResult:
    """
    Apply cut commands to the primary track, in order.

    Each command splits the clip containing its timestamp. ``X`` deletes the
    right-hand part, and also the clip before it when that clip starts at
    the previous command's timestamp (the remnant left by an earlier cut).
    ``F`` sets the right-hand part to the fast-forward rate and shortens it
    by the same factor.
    """
    config = config or EditConfig()
    track = project.primary_track(config)
    if not track.clips:
        raise InputError(f"Track '{track.name}' has no clips.")

    result = CutListResult()
    previous = Timecode.zero()

    for cmd in commands:
        clip = track.clip_at(cmd.timestamp)
        if clip is None:
            result.skipped += 1
            result.messages.append(
                f"Line {cmd.line_number}: no clip at {cmd.timestamp.to_string()}"
            )
            continue

        offset = cmd.timestamp - clip.start
        right = clip.split_at(offset) if offset.ticks > 0 else clip

        if cmd.command == CUT:
            index = right.index
            track.remove(right)
            result.clips_removed += 1
            if index > 0:
                before = track.clips[index - 1]
                if before.start == previous:
                    track.remove(before)
                    result.clips_removed += 1
        else:
            rate = config.fast_forward_rate
            right.set_playback_rate(rate, preserve_length=True)
            right.length = right.length.scale(1.0 / rate)
            result.fast_forwarded += 1

        logger.debug("Line %d: %s at %s", cmd.line_number, cmd.command, cmd.timestamp.to_string())
        previous = cmd.timestamp
        result.applied += 1

    return result
