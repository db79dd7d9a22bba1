from __future__ import annotations

import logging
from typing import Final

from .gear_models import (
    Grade,
    ItemType,
    SetAffiliation,
    StatDecodeError,
    StatKind,
    StatRoll,
)

logger = logging.getLogger("gearscan.tokens")

GRADE_WORDS: Final[tuple[tuple[str, Grade], ...]] = (
    ("Normal", Grade.NORMAL),
    ("Good", Grade.GOOD),
    ("Rare", Grade.RARE),
    ("Heroic", Grade.HEROIC),
    ("Epic", Grade.EPIC),
)

ITEM_TYPE_WORDS: Final[tuple[tuple[str, ItemType], ...]] = (
    ("Weapon", ItemType.WEAPON),
    ("Helmet", ItemType.HELMET),
    ("Armor", ItemType.ARMOR),
    ("Necklace", ItemType.NECKLACE),
    ("Ring", ItemType.RING),
    ("Boots", ItemType.BOOTS),
)

# Checked in order; the first label contained in the line wins.
PERCENT_STAT_LABELS: Final[tuple[tuple[str, StatKind], ...]] = (
    ("Attack", StatKind.ATTACK_PERCENT),
    ("Defense", StatKind.DEFENSE_PERCENT),
    ("Health", StatKind.HEALTH_PERCENT),
    ("Effectiveness", StatKind.EFFECTIVENESS),
    ("Effect Resist", StatKind.EFFECT_RESISTANCE),
    ("Critical Hit Chance", StatKind.CRITICAL_CHANCE),
    ("Critical Hit Damage", StatKind.CRITICAL_DAMAGE),
)

FLAT_STAT_LABELS: Final[tuple[tuple[str, StatKind], ...]] = (
    ("Attack", StatKind.ATTACK),
    ("Defense", StatKind.DEFENSE),
    ("Health", StatKind.HEALTH),
    ("Speed", StatKind.SPEED),
)

SET_PHRASES: Final[tuple[tuple[str, SetAffiliation], ...]] = (
    ("attack", SetAffiliation.ATTACK),
    ("counter", SetAffiliation.COUNTER),
    ("critical", SetAffiliation.CRIT),
    ("defense", SetAffiliation.DEFENSE),
    ("destruction", SetAffiliation.DESTRUCTION),
    ("health", SetAffiliation.HEALTH),
    ("effectiveness", SetAffiliation.HIT),
    ("immunity", SetAffiliation.IMMUNITY),
    ("lifesteal", SetAffiliation.LIFESTEAL),
    ("rage", SetAffiliation.RAGE),
    ("effect resistance", SetAffiliation.RESIST),
    ("speed", SetAffiliation.SPEED),
    ("unity", SetAffiliation.UNITY),
)

# Spelling shipped by the first release of the set reader; kept for
# byte-compatible comparisons against old exports.
LEGACY_LIFESTEAL_PHRASE: Final[str] = "fifesteal"


def decode_grade(text: str) -> Grade:
    for word, grade in GRADE_WORDS:
        if word in text:
            return grade
    logger.debug("grade fallback to Epic text=%r", text)
    return Grade.EPIC


def decode_item_type(text: str) -> ItemType:
    for word, item_type in ITEM_TYPE_WORDS:
        if word in text:
            return item_type
    logger.debug("item type fallback to Weapon text=%r", text)
    return ItemType.WEAPON


def _parse_value(token: str, text: str) -> float:
    try:
        value = float(token)
    except ValueError as exc:
        raise StatDecodeError(f"invalid stat value in {text!r}") from exc
    if value < 0:
        raise StatDecodeError(f"negative stat value in {text!r}")
    return value


def decode_stat(text: str) -> StatRoll:
    """Decode a matched stat substring such as ``"Attack 12%"``.

    The trailing ``%`` alone decides between the percent and flat tables.
    Flat readings only exist for Attack, Defense, Health and Speed; every
    other label without ``%`` raises :class:`StatDecodeError`.
    """
    tokens = text.split()
    if not tokens:
        raise StatDecodeError("empty stat text")

    value_token = tokens[-1]
    if text.endswith("%"):
        value = _parse_value(value_token[:-1], text)
        table = PERCENT_STAT_LABELS
    else:
        value = _parse_value(value_token, text)
        table = FLAT_STAT_LABELS

    for label, kind in table:
        if label in text:
            return StatRoll(kind=kind, value=value)

    raise StatDecodeError(f"could not parse given stat: {text!r}")


def decode_set(text: str, *, legacy_spelling: bool = False) -> SetAffiliation:
    lowered = text.lower()
    for phrase, affiliation in SET_PHRASES:
        if legacy_spelling and affiliation is SetAffiliation.LIFESTEAL:
            phrase = LEGACY_LIFESTEAL_PHRASE
        if f"{phrase} set" in lowered:
            return affiliation
    logger.debug("set fallback to Speed text=%r", text)
    return SetAffiliation.SPEED
