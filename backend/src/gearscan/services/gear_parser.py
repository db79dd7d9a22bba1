from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from .gear_models import (
    Grade,
    HeaderNotFoundError,
    ItemRecord,
    ItemType,
    NoStatsFoundError,
    SetAffiliation,
    SetNotFoundError,
    StatRoll,
)
from .gear_tokens import decode_grade, decode_item_type, decode_set, decode_stat

logger = logging.getLogger("gearscan.parser")

MAX_STATS = 5

HEADER_PATTERN = re.compile(
    r"(Normal|Good|Rare|Heroic|Epic) (Weapon|Helmet|Armor|Necklace|Ring|Boots)"
)
STAT_PATTERN = re.compile(
    r"(Attack|Defense|Health|Critical Hit Chance|Critical Hit Damage"
    r"|Effectiveness|Effect Resistance|Speed) (\d{1,4})(%?)"
)
SET_PATTERN = re.compile(
    r"(Attack|Defense|Health|Effectiveness|Critical|Lifesteal|Effect Resistance"
    r"|Counter|Rage|Destruction|Immunity|Unity|Speed) (Set|set)"
)

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class ScanState(Enum):
    SEEKING_HEADER = "seeking_header"
    COLLECTING_STATS = "collecting_stats"
    DONE = "done"


@dataclass
class GearScan:
    """Intermediate findings of one pass over the OCR lines."""

    item_type: ItemType | None = None
    grade: Grade | None = None
    stats: list[StatRoll] = field(default_factory=list)
    set: SetAffiliation | None = None
    header_line: int | None = None
    footer_line: int | None = None


def split_lines(text: str | None) -> list[str]:
    if not text:
        return []
    return [line for line in _LINE_BREAK.split(text) if line]


def classify_lines(
    lines: Iterable[str],
    *,
    legacy_set_spelling: bool = False,
) -> GearScan:
    """Walk OCR lines once: header, then stats, then the set footer.

    Lines that do not fit the current phase are skipped. A missing header
    raises :class:`HeaderNotFoundError`; running out of lines before the
    footer raises :class:`SetNotFoundError`.
    """
    rows = list(lines)
    scan = GearScan()
    state = ScanState.SEEKING_HEADER
    cursor = 0

    while cursor < len(rows) and state is not ScanState.DONE:
        line = rows[cursor]

        if state is ScanState.SEEKING_HEADER:
            match = HEADER_PATTERN.search(line)
            if match:
                substring = match.group(0)
                scan.grade = decode_grade(substring)
                scan.item_type = decode_item_type(substring)
                scan.header_line = cursor
                state = ScanState.COLLECTING_STATS
        else:
            match = STAT_PATTERN.search(line)
            if match:
                if len(scan.stats) < MAX_STATS:
                    scan.stats.append(decode_stat(match.group(0)))
                else:
                    logger.debug("stat limit reached, skip line=%d text=%r", cursor, line)
            else:
                match = SET_PATTERN.search(line)
                if match:
                    scan.set = decode_set(
                        match.group(0),
                        legacy_spelling=legacy_set_spelling,
                    )
                    scan.footer_line = cursor
                    state = ScanState.DONE
        cursor += 1

    if state is ScanState.SEEKING_HEADER:
        raise HeaderNotFoundError(f"no grade/type header in {len(rows)} OCR lines")
    if state is ScanState.COLLECTING_STATS:
        raise SetNotFoundError(
            f"no set footer after header (collected {len(scan.stats)} stats)"
        )
    return scan


def assemble_item(scan: GearScan) -> ItemRecord:
    if not scan.stats:
        raise NoStatsFoundError("set footer reached without any stat line")
    if scan.item_type is None or scan.grade is None or scan.set is None:
        raise ValueError("scan is not complete")

    return ItemRecord(
        type=scan.item_type,
        grade=scan.grade,
        main=scan.stats[0],
        sub_stats=tuple(scan.stats[1:]),
        set=scan.set,
    )


def parse_ocr_text(text: str | None, *, legacy_set_spelling: bool = False) -> ItemRecord:
    lines = split_lines(text)
    scan = classify_lines(lines, legacy_set_spelling=legacy_set_spelling)
    item = assemble_item(scan)
    logger.debug(
        "parsed item type=%s grade=%s stats=%d set=%s",
        item.type.value,
        item.grade.value,
        1 + len(item.sub_stats),
        item.set.value,
    )
    return item
