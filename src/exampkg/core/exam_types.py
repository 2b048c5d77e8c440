from __future__ import annotations
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from exampkg.core.parser import MediaAsset


class QuestionType(Enum):
    """문항 타입."""

    MULTIPLE_CHOICE = "multiple_choice"  # PHẦN 1
    TRUE_FALSE = "true_false"  # PHẦN 2
    SHORT_ANSWER = "short_answer"  # PHẦN 3
    WRITING = "writing"
    UNKNOWN = "unknown"


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """camelCase/snake_case 어느 쪽 키로 저장되었든 첫 번째로 존재하는 값을 반환한다."""
    for key in keys:
        if key in data:
            return data[key]
    return default


def _question_type(value: Any) -> QuestionType:
    if isinstance(value, QuestionType):
        return value
    if isinstance(value, str) and value in {e.value for e in QuestionType}:
        return QuestionType(value)
    return QuestionType.UNKNOWN


@dataclass
class QuestionOption:
    letter: str  # A-D (PHẦN 1) 또는 a-d (PHẦN 2)
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "QuestionOption":
        return QuestionOption(letter=data.get("letter", ""), text=data.get("text", ""))


@dataclass
class SectionInfo:
    letter: str
    name: str
    points: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "SectionInfo":
        return SectionInfo(
            letter=str(data.get("letter", "")),
            name=data.get("name", ""),
            points=data.get("points", ""),
        )


@dataclass
class Question:
    number: int  # part * 100 + 원문 번호
    text: str
    question_type: QuestionType
    options: List[QuestionOption] = field(default_factory=list)
    correct_answer: Optional[str] = None
    section: Optional[SectionInfo] = None
    part_label: str = ""
    images: List[MediaAsset] = field(default_factory=list)
    solution: str = ""

    @property
    def part(self) -> int:
        return self.number // 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "text": self.text,
            "type": self.question_type.value,
            "options": [opt.to_dict() for opt in self.options],
            "correctAnswer": self.correct_answer,
            "section": self.section.to_dict() if self.section else None,
            "part": self.part_label,
            "images": [img.to_dict() for img in self.images],
            "solution": self.solution,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Question":
        section = data.get("section")
        if section and not isinstance(section, SectionInfo):
            section = SectionInfo.from_dict(section)
        return Question(
            number=int(data.get("number", 0)),
            text=data.get("text", ""),
            question_type=_question_type(_pick(data, "type", "question_type")),
            options=[
                opt if isinstance(opt, QuestionOption) else QuestionOption.from_dict(opt)
                for opt in data.get("options") or []
            ],
            correct_answer=_pick(data, "correctAnswer", "correct_answer"),
            section=section,
            part_label=_pick(data, "part", "part_label", default="") or "",
            images=[
                img if isinstance(img, MediaAsset) else MediaAsset.from_dict(img)
                for img in data.get("images") or []
            ],
            solution=data.get("solution") or "",
        )


@dataclass
class ExamSection:
    name: str
    description: str
    section_type: QuestionType
    points: str = ""
    questions: List[Question] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "points": self.points,
            "questions": [q.to_dict() for q in self.questions],
            "sectionType": self.section_type.value,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ExamSection":
        return ExamSection(
            name=data.get("name", ""),
            description=data.get("description", ""),
            section_type=_question_type(_pick(data, "sectionType", "section_type")),
            points=data.get("points", ""),
            questions=[
                q if isinstance(q, Question) else Question.from_dict(q)
                for q in data.get("questions") or []
            ],
        )


@dataclass
class ExamData:
    """파서가 외부로 내보내는 유일한 결과물."""

    title: str
    time_limit: int = 90  # 분
    sections: List[ExamSection] = field(default_factory=list)
    questions: List[Question] = field(default_factory=list)
    answers: Dict[int, str] = field(default_factory=dict)
    images: List[MediaAsset] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.sections = [s if isinstance(s, ExamSection) else ExamSection.from_dict(s) for s in (self.sections or [])]
        self.questions = [q if isinstance(q, Question) else Question.from_dict(q) for q in (self.questions or [])]
        self.images = [img if isinstance(img, MediaAsset) else MediaAsset.from_dict(img) for img in (self.images or [])]
        self.answers = {int(k): v for k, v in (self.answers or {}).items()}

    def question_by_number(self, number: int) -> Optional[Question]:
        for q in self.questions:
            if q.number == number:
                return q
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "timeLimit": self.time_limit,
            "sections": [s.to_dict() for s in self.sections],
            "questions": [q.to_dict() for q in self.questions],
            "answers": {str(k): v for k, v in self.answers.items()},
            "images": [img.to_dict() for img in self.images],
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ExamData":
        return cls(
            title=payload.get("title", ""),
            time_limit=int(_pick(payload, "timeLimit", "time_limit", default=90) or 90),
            sections=payload.get("sections", []),
            questions=payload.get("questions", []),
            answers=payload.get("answers", {}),
            images=payload.get("images", []),
        )
