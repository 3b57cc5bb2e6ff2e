"""
Read-only access to the question/passage catalog.

The selector only depends on the ContentPool protocol. DatabaseContentPool
serves the live catalog tables; InMemoryContentPool backs the engine tests and
offline simulations.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from assessment.core.adaptive.levels import LevelState
from assessment.models.models import Question, QuestionPassage, Section


@dataclass(frozen=True)
class QuestionItem:
    """Catalog question with options in canonical order."""

    id: int
    section: Section
    level: int
    sublevel: str
    stem: str
    options: Tuple[str, ...]
    answer_index: int
    media_url: Optional[str] = None
    instructions: Optional[str] = None
    skill_tags: Tuple[str, ...] = ()
    passage_id: Optional[int] = None

    @property
    def state(self) -> LevelState:
        return LevelState(self.level, self.sublevel)

    @classmethod
    def from_model(cls, question: Question) -> "QuestionItem":
        return cls(
            id=question.id,
            section=Section(question.section),
            level=question.level,
            sublevel=question.sublevel,
            stem=question.stem,
            options=tuple(question.options or ()),
            answer_index=question.answer_index,
            media_url=question.media_url,
            instructions=question.instructions,
            skill_tags=tuple(question.skill_tags or ()),
            passage_id=question.passage_id,
        )


@dataclass(frozen=True)
class PassageItem:
    """Catalog reading passage."""

    id: int
    section: Section
    level: int
    sublevel: str
    title: Optional[str]
    body: str

    @property
    def state(self) -> LevelState:
        return LevelState(self.level, self.sublevel)

    @classmethod
    def from_model(cls, passage: QuestionPassage) -> "PassageItem":
        return cls(
            id=passage.id,
            section=Section(passage.section),
            level=passage.level,
            sublevel=passage.sublevel,
            title=passage.title,
            body=passage.body,
        )


class ContentPool(Protocol):
    """Catalog queries needed by the item selector. Results are ordered by id."""

    def find_questions(
        self, section: Section, state: LevelState, passage_id: Optional[int] = None
    ) -> Sequence[QuestionItem]:
        """Questions at ``state``; restricted to one passage when ``passage_id`` is given."""
        ...

    def find_passages(self, section: Section, state: LevelState) -> Sequence[PassageItem]:
        ...

    def passage_questions(self, passage_id: int) -> Sequence[QuestionItem]:
        ...

    def get_passage(self, passage_id: int) -> Optional[PassageItem]:
        ...

    def get_question(self, question_id: int) -> Optional[QuestionItem]:
        ...

    def section_sizes(self) -> Dict[Section, int]:
        """Number of catalog questions per section (sections with none are omitted)."""
        ...


class DatabaseContentPool:
    """ContentPool over the questions/question_passages tables."""

    def __init__(self, db: Session):
        self.db = db

    def find_questions(
        self, section: Section, state: LevelState, passage_id: Optional[int] = None
    ) -> List[QuestionItem]:
        query = self.db.query(Question).filter(
            Question.section == section,
            Question.level == state.level,
            Question.sublevel == state.sublevel,
        )
        if passage_id is not None:
            query = query.filter(Question.passage_id == passage_id)
        return [QuestionItem.from_model(q) for q in query.order_by(Question.id).all()]

    def find_passages(self, section: Section, state: LevelState) -> List[PassageItem]:
        passages = (
            self.db.query(QuestionPassage)
            .filter(
                QuestionPassage.section == section,
                QuestionPassage.level == state.level,
                QuestionPassage.sublevel == state.sublevel,
            )
            .order_by(QuestionPassage.id)
            .all()
        )
        return [PassageItem.from_model(p) for p in passages]

    def passage_questions(self, passage_id: int) -> List[QuestionItem]:
        questions = (
            self.db.query(Question)
            .filter(Question.passage_id == passage_id)
            .order_by(Question.id)
            .all()
        )
        return [QuestionItem.from_model(q) for q in questions]

    def get_passage(self, passage_id: int) -> Optional[PassageItem]:
        passage = (
            self.db.query(QuestionPassage)
            .filter(QuestionPassage.id == passage_id)
            .first()
        )
        return PassageItem.from_model(passage) if passage else None

    def get_question(self, question_id: int) -> Optional[QuestionItem]:
        question = self.db.query(Question).filter(Question.id == question_id).first()
        return QuestionItem.from_model(question) if question else None

    def section_sizes(self) -> Dict[Section, int]:
        rows = (
            self.db.query(Question.section, func.count(Question.id))
            .group_by(Question.section)
            .all()
        )
        return {Section(section): count for section, count in rows if count}


@dataclass
class InMemoryContentPool:
    """ContentPool over plain lists."""

    questions: List[QuestionItem] = field(default_factory=list)
    passages: List[PassageItem] = field(default_factory=list)

    def find_questions(
        self, section: Section, state: LevelState, passage_id: Optional[int] = None
    ) -> List[QuestionItem]:
        return sorted(
            (
                q
                for q in self.questions
                if q.section == section
                and q.state == state
                and (passage_id is None or q.passage_id == passage_id)
            ),
            key=lambda q: q.id,
        )

    def find_passages(self, section: Section, state: LevelState) -> List[PassageItem]:
        return sorted(
            (p for p in self.passages if p.section == section and p.state == state),
            key=lambda p: p.id,
        )

    def passage_questions(self, passage_id: int) -> List[QuestionItem]:
        return sorted(
            (q for q in self.questions if q.passage_id == passage_id),
            key=lambda q: q.id,
        )

    def get_passage(self, passage_id: int) -> Optional[PassageItem]:
        return next((p for p in self.passages if p.id == passage_id), None)

    def get_question(self, question_id: int) -> Optional[QuestionItem]:
        return next((q for q in self.questions if q.id == question_id), None)

    def section_sizes(self) -> Dict[Section, int]:
        sizes: Dict[Section, int] = {}
        for question in self.questions:
            sizes[question.section] = sizes.get(question.section, 0) + 1
        return sizes
