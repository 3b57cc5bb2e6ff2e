"""
Placement seeder: parent intake survey -> starting LevelState per section.

The heuristics are expressed as ordered rule tables so each rule can be read,
tested and tuned on its own:

1. Grade string -> grade index ("중2" -> 8, "middle 2" -> 8, "초5" -> 5).
2. Background category: first matching rule in BACKGROUND_RULES.
3. Base level: GRADE_BASE_LEVELS bucket plus every matching rule in
   BASE_ADJUSTMENT_RULES. An overseas background overrides the grade base.
4. Section modifiers: first matching keyword rule for the weakest subject
   (negative) and for the strongest subject (positive), clamped.
5. Start level per section = quantize(base + modifier), where quantize snaps
   the fraction to a sublevel (.1 / .2 / .3).
6. Profile tags for audit.

The seeder is pure; load_latest_survey() and compute_placement_seed_for_student()
are the only functions that touch the database.
"""
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from assessment.core.adaptive.levels import (
    LevelState,
    default_seed_state,
    from_decimal,
    max_state,
    min_state,
)
from assessment.core.config import settings
from assessment.core.datetime_utils import utc_now
from assessment.models.models import ParentSurvey, Section

logger = logging.getLogger(__name__)

SEED_META_KEY = "__meta"

# Base level used when the grade cannot be parsed
UNKNOWN_GRADE_BASE_LEVEL = 2.1
OVERSEAS_BASE_LEVEL = 6.9
# Early elementary grades never start below this value
LOW_GRADE_CEILING = 4
LOW_GRADE_FLOOR_LEVEL = 1.1

MODIFIER_MIN = -0.6
MODIFIER_MAX = 0.3
WEAK_SUBJECT_MODIFIER = -0.3
STRONG_SUBJECT_MODIFIER = 0.1

# (max grade index inclusive, base level); last bucket catches everything above
GRADE_BASE_LEVELS: Sequence[Tuple[int, float]] = (
    (4, 1.0),
    (6, 2.0),
    (8, 4.0),
    (10, 5.0),
)
DEFAULT_GRADE_BASE_LEVEL = 6.0

STAGE_OFFSETS: Mapping[str, int] = {
    "초": 0,
    "elementary": 0,
    "e": 0,
    "중": 6,
    "middle": 6,
    "m": 6,
    "고": 9,
    "high": 9,
    "h": 9,
}
_GRADE_PATTERN = re.compile(
    r"(초|중|고|(?<![a-z])(?:elementary|middle|high|e|m|h))(?:school|학교)?(\d)",
    re.IGNORECASE,
)
_INTEGER_PATTERN = re.compile(r"-?\d+")
_INTEGER_NOISE = re.compile(r"[,권\s]")

ACADEMY_COUNT_CODES: Mapping[str, int] = {
    "none": 0,
    "one": 1,
    "two": 2,
    "three": 3,
    "four_plus": 4,
}

OVERSEAS_KEYWORDS = ("유학", "해외", "overseas", "abroad")

# Subject keyword table: first matching section wins
SUBJECT_KEYWORDS: Sequence[Tuple[Section, Tuple[str, ...]]] = (
    (Section.LISTENING, ("듣", "listening")),
    (Section.READING, ("읽", "reading")),
    (Section.GRAMMAR, ("문법", "쓰", "grammar", "writing")),
    (Section.DIALOG, ("말", "회화", "대화", "스피킹", "speaking", "conversation")),
)


@dataclass(frozen=True)
class PlacementInputs:
    """Normalized survey fields used by the rules."""

    grade_raw: Optional[str] = None
    grade_index: Optional[int] = None
    past_learning: Tuple[str, ...] = ()
    academy_count: int = 0
    highest_score: Optional[int] = None
    weekly_reading_count: Optional[int] = None
    strongest_subject: Optional[str] = None
    weakest_subject: Optional[str] = None
    motivation: Optional[str] = None
    homework_amount: Optional[str] = None
    notes: str = ""

    @property
    def has_worksheet(self) -> bool:
        return "worksheet_program" in self.past_learning

    @property
    def has_academy(self) -> bool:
        return (
            "subject_academy" in self.past_learning
            or "multi_subject_academy" in self.past_learning
        )

    @property
    def has_private_tutoring(self) -> bool:
        return "private_tutoring" in self.past_learning

    @property
    def mentions_overseas(self) -> bool:
        lowered = self.notes.lower()
        return any(keyword in lowered for keyword in OVERSEAS_KEYWORDS)


Predicate = Callable[[PlacementInputs], bool]

BACKGROUND_RULES: Sequence[Tuple[str, Predicate]] = (
    ("overseas", lambda i: i.mentions_overseas),
    (
        "worksheet_only",
        lambda i: i.has_worksheet
        and not i.has_academy
        and not i.has_private_tutoring
        and i.academy_count == 0,
    ),
    (
        "multi_academy",
        lambda i: i.academy_count >= 2 or "multi_subject_academy" in i.past_learning,
    ),
    ("academy_plus", lambda i: i.academy_count >= 1 or i.has_private_tutoring),
)
DEFAULT_BACKGROUND = "mixed"


@dataclass(frozen=True)
class AdjustmentRule:
    """Base-level adjustment applied when ``applies`` matches.

    Rules sharing a ``group`` are exclusive: only the first match counts.
    """

    group: str
    delta: float
    applies: Callable[[PlacementInputs, str], bool]


BASE_ADJUSTMENT_RULES: Sequence[AdjustmentRule] = (
    AdjustmentRule("background", 0.2, lambda i, bg: bg == "multi_academy"),
    AdjustmentRule("background", 0.1, lambda i, bg: bg == "academy_plus"),
    AdjustmentRule("background", -0.1, lambda i, bg: bg == "worksheet_only"),
    AdjustmentRule(
        "score", 0.2, lambda i, bg: i.highest_score is not None and i.highest_score >= 95
    ),
    AdjustmentRule(
        "score", 0.1, lambda i, bg: i.highest_score is not None and i.highest_score >= 90
    ),
    AdjustmentRule(
        "score", -0.1, lambda i, bg: i.highest_score is not None and i.highest_score < 70
    ),
    AdjustmentRule(
        "reading",
        0.2,
        lambda i, bg: i.weekly_reading_count is not None and i.weekly_reading_count >= 5,
    ),
    AdjustmentRule(
        "reading",
        0.1,
        lambda i, bg: i.weekly_reading_count is not None and i.weekly_reading_count >= 3,
    ),
    AdjustmentRule(
        "reading",
        -0.1,
        lambda i, bg: i.weekly_reading_count is not None and i.weekly_reading_count <= 0,
    ),
)


@dataclass
class PlacementSeed:
    """Result of the seeder; serialized into tests.seed_start."""

    base_level: float
    background: str
    skill_modifiers: Dict[str, float]
    start_levels: Dict[str, float]
    start_states: Dict[str, LevelState]
    profile_tags: List[str]
    computed_at: datetime = field(default_factory=utc_now)
    source: str = "parent_survey"

    def to_seed_json(self) -> Dict[str, Any]:
        seed: Dict[str, Any] = {
            section: state.as_seed() for section, state in self.start_states.items()
        }
        seed[SEED_META_KEY] = {
            "source": self.source,
            "computed_at": self.computed_at.isoformat(),
            "base_level": self.base_level,
            "background": self.background,
            "skill_modifiers": self.skill_modifiers,
            "start_levels": self.start_levels,
            "profile_tags": self.profile_tags,
        }
        return seed


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_integer(value: Any) -> Optional[int]:
    """Pull the first integer out of a free-form answer ("3권" -> 3, "1,200" -> 1200)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if not isinstance(value, str):
        return None
    match = _INTEGER_PATTERN.search(_INTEGER_NOISE.sub("", value))
    if not match:
        return None
    return int(match.group(0))


def parse_grade_index(raw: Optional[str]) -> Optional[int]:
    """Map a grade string onto a 1-12 grade index; None when unparseable."""
    if not raw:
        return None
    normalized = re.sub(r"\s+", "", raw)
    match = _GRADE_PATTERN.search(normalized)
    if match:
        stage, digit = match.group(1).lower(), int(match.group(2))
        return STAGE_OFFSETS[stage] + digit
    grade = parse_integer(normalized)
    if grade is None or grade <= 0:
        return None
    return grade


def parse_academy_count(value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, str) and value in ACADEMY_COUNT_CODES:
        return ACADEMY_COUNT_CODES[value]
    return max(parse_integer(value) or 0, 0)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def extract_placement_inputs(data: Mapping[str, Any]) -> PlacementInputs:
    """Normalize a parent_surveys.data blob; malformed fields become absent."""
    past_learning = data.get("pastLearningMethods") or []
    if isinstance(past_learning, str):
        past_learning = [past_learning]
    elif not isinstance(past_learning, (list, tuple)):
        past_learning = []
    grade_raw = _text(data.get("grade"))
    notes = " ".join(
        text
        for text in (
            _text(data.get("additionalNotes")),
            _text(data.get("reasonForChange")),
            _text(data.get("perceivedGap")),
        )
        if text
    )

    return PlacementInputs(
        grade_raw=grade_raw,
        grade_index=parse_grade_index(grade_raw),
        past_learning=tuple(str(item) for item in past_learning),
        academy_count=parse_academy_count(data.get("currentAcademyCount")),
        highest_score=parse_integer(data.get("highestEnglishScore")),
        weekly_reading_count=parse_integer(data.get("weeklyReadingCount")),
        strongest_subject=_text(data.get("strongestSubject")),
        weakest_subject=_text(data.get("weakestSubject")),
        motivation=_text(data.get("academyGoal")) or _text(data.get("reasonForChange")),
        homework_amount=_text(data.get("homeworkAmount")),
        notes=notes,
    )


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def quantize_level_value(value: float) -> float:
    """
    Clamp to the level scale and snap the fraction onto a sublevel.

    Fractions below .17 become .1, below .25 become .2, anything else .3, so
    3.9 quantizes to 3.3 and 2.0 to 2.1.
    """
    lower, upper = min_state().as_decimal(), max_state().as_decimal()
    clamped = min(upper, max(lower, round(value, 4)))
    level = math.floor(clamped)
    fraction = round(clamped - level, 4)

    if fraction >= 0.25:
        sublevel = 3
    elif fraction >= 0.17:
        sublevel = 2
    else:
        sublevel = 1

    level = min(max(level, settings.ADAPTIVE_MIN_LEVEL), settings.ADAPTIVE_MAX_LEVEL)
    return round(level + sublevel / 10, 1)


def classify_background(inputs: PlacementInputs) -> str:
    for category, predicate in BACKGROUND_RULES:
        if predicate(inputs):
            return category
    return DEFAULT_BACKGROUND


def grade_base_level(grade_index: int) -> float:
    for max_grade, base in GRADE_BASE_LEVELS:
        if grade_index <= max_grade:
            return base
    return DEFAULT_GRADE_BASE_LEVEL


def base_adjustment(inputs: PlacementInputs, background: str) -> float:
    """Sum of the first matching rule of every adjustment group."""
    matched_groups = set()
    total = 0.0
    for rule in BASE_ADJUSTMENT_RULES:
        if rule.group in matched_groups:
            continue
        if rule.applies(inputs, background):
            matched_groups.add(rule.group)
            total += rule.delta
    return round(total, 4)


def determine_base_level(inputs: PlacementInputs, background: str) -> float:
    if inputs.grade_index is None:
        return quantize_level_value(UNKNOWN_GRADE_BASE_LEVEL)

    if background == "overseas":
        return quantize_level_value(OVERSEAS_BASE_LEVEL)

    raw = grade_base_level(inputs.grade_index) + base_adjustment(inputs, background)
    if inputs.grade_index <= LOW_GRADE_CEILING:
        raw = max(raw, LOW_GRADE_FLOOR_LEVEL)
    return quantize_level_value(raw)


def match_subject(subject: Optional[str]) -> Optional[Section]:
    if not subject:
        return None
    lowered = subject.lower()
    for section, keywords in SUBJECT_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return section
    return None


def clamp_modifier(value: float) -> float:
    return round(min(MODIFIER_MAX, max(MODIFIER_MIN, value)), 2)


def determine_skill_modifiers(inputs: PlacementInputs) -> Dict[str, float]:
    modifiers = {section.value: 0.0 for section in Section}

    weak = match_subject(inputs.weakest_subject)
    if weak is not None:
        modifiers[weak.value] += WEAK_SUBJECT_MODIFIER

    strong = match_subject(inputs.strongest_subject)
    if strong is not None:
        modifiers[strong.value] += STRONG_SUBJECT_MODIFIER

    return {section: clamp_modifier(value) for section, value in modifiers.items()}


def _sanitize_tag(value: str) -> str:
    return re.sub(r"[^\w-]", "", re.sub(r"\s+", "_", value)).lower()


def build_profile_tags(
    inputs: PlacementInputs,
    background: str,
    modifiers: Mapping[str, float],
    start_levels: Mapping[str, float],
) -> List[str]:
    tags: List[str] = []
    if inputs.grade_raw:
        grade = re.sub(r"\s+", "", inputs.grade_raw)
        tags.append(f"grade_{grade}")
    tags.append(f"background_{background}")
    if inputs.weekly_reading_count is not None:
        tags.append(f"reads_{inputs.weekly_reading_count}pw")
    if inputs.highest_score is not None:
        tags.append(f"score_{(inputs.highest_score // 10) * 10}")

    for section in Section:
        modifier = modifiers[section.value]
        if modifier < 0:
            tags.append(f"weak_{section.value}")
        elif modifier > 0:
            tags.append(f"strong_{section.value}")
        tags.append(f"{section.value}_{start_levels[section.value]:.1f}")

    if inputs.motivation:
        tags.append(f"motivation_{_sanitize_tag(inputs.motivation)}")
    if inputs.homework_amount:
        tags.append(f"homework_{inputs.homework_amount}")

    return list(dict.fromkeys(tags))


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def compute_placement_seed(
    survey_data: Optional[Mapping[str, Any]],
) -> Optional[PlacementSeed]:
    """
    Compute the placement seed for one survey.

    Args:
        survey_data: The parent_surveys.data JSON blob, or None.

    Returns:
        The PlacementSeed, or None when there is no survey (callers then use
        default_seed_json()).
    """
    if not survey_data:
        return None

    inputs = extract_placement_inputs(survey_data)
    background = classify_background(inputs)
    base_level = determine_base_level(inputs, background)
    modifiers = determine_skill_modifiers(inputs)

    start_levels = {
        section: quantize_level_value(base_level + modifier)
        for section, modifier in modifiers.items()
    }
    start_states = {
        section: from_decimal(value) for section, value in start_levels.items()
    }
    tags = build_profile_tags(inputs, background, modifiers, start_levels)

    return PlacementSeed(
        base_level=base_level,
        background=background,
        skill_modifiers=modifiers,
        start_levels=start_levels,
        start_states=start_states,
        profile_tags=tags,
    )


def default_seed_json() -> Dict[str, Any]:
    """Seed used when a student has no survey on file."""
    state = default_seed_state()
    seed: Dict[str, Any] = {section.value: state.as_seed() for section in Section}
    seed[SEED_META_KEY] = {
        "source": "default",
        "computed_at": utc_now().isoformat(),
        "base_level": state.as_decimal(),
        "skill_modifiers": {section.value: 0.0 for section in Section},
        "start_levels": {section.value: state.as_decimal() for section in Section},
        "profile_tags": [],
    }
    return seed


def load_latest_survey(db: Session, student_id: int) -> Optional[ParentSurvey]:
    return (
        db.query(ParentSurvey)
        .filter(ParentSurvey.student_id == student_id)
        .order_by(ParentSurvey.created_at.desc(), ParentSurvey.id.desc())
        .first()
    )


def compute_placement_seed_for_student(
    db: Session, student_id: int
) -> Optional[PlacementSeed]:
    """Seed from the student's most recent survey, or None without one."""
    survey = load_latest_survey(db, student_id)
    if survey is None:
        logger.info(f"No parent survey on file for student {student_id}")
        return None

    if not isinstance(survey.data, Mapping):
        logger.warning(
            f"Parent survey {survey.id} for student {student_id} is not an object; "
            "ignoring it"
        )
        return None

    seed = compute_placement_seed(survey.data)
    if seed is not None:
        logger.info(
            f"Placement seed for student {student_id}: base {seed.base_level}, "
            f"background {seed.background}"
        )
    return seed
