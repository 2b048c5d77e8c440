"""
채점 규칙

- PHẦN 1: 보기 글자 비교 (대소문자 무시)
- PHẦN 2: 문서에 정답이 없으므로 호출자가 {글자: 참/거짓} 정답표를 넘겨야 채점 가능
- PHẦN 3: normalize_short_answer로 정규화한 뒤 비교
"""
from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from exampkg.core.exam_types import ExamData, Question, QuestionType

log = logging.getLogger(__name__)

_CURLY_QUOTES_RE = re.compile(r"[‘’‚‛′]")
_DECIMAL_COMMA_RE = re.compile(r"(?<=\d),(?=\d)")
_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_PUNCT = ".,!?;:"


def normalize_short_answer(text: Optional[str]) -> str:
    if not text:
        return ""
    value = unicodedata.normalize("NFC", text).casefold()
    value = _CURLY_QUOTES_RE.sub("'", value)
    value = _WHITESPACE_RE.sub("", value)
    value = _DECIMAL_COMMA_RE.sub(".", value)
    return value.rstrip(_TRAILING_PUNCT)


def grade_question(question: Question, answer: Optional[str]) -> Optional[bool]:
    """단일 답안 채점. 채점할 수 없는 문항(PHẦN 2, 정답 없음)은 None."""
    if question.question_type is QuestionType.TRUE_FALSE or question.correct_answer is None:
        return None
    if answer is None:
        return False
    if question.question_type in (QuestionType.SHORT_ANSWER, QuestionType.WRITING):
        return normalize_short_answer(answer) == normalize_short_answer(question.correct_answer)
    return answer.strip().casefold() == question.correct_answer.strip().casefold()


def grade_true_false(
    question: Question,
    selected: Mapping[str, bool],
    key: Mapping[str, bool],
) -> int:
    """진술별로 selected와 key를 비교해 일치한 진술 수를 반환한다."""
    matched = 0
    for opt in question.options:
        letter = opt.letter.lower()
        if letter in key and letter in selected and bool(selected[letter]) == bool(key[letter]):
            matched += 1
    return matched


@dataclass
class QuestionGrade:
    number: int
    correct: Optional[bool]  # None = 채점 불가
    given: Optional[str] = None
    expected: Optional[str] = None

    def to_dict(self) -> dict:
        return {"number": self.number, "correct": self.correct, "given": self.given, "expected": self.expected}


@dataclass
class GradeReport:
    correct_count: int
    wrong_count: int
    total_questions: int
    percentage: int
    results: List[QuestionGrade] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "correctCount": self.correct_count,
            "wrongCount": self.wrong_count,
            "totalQuestions": self.total_questions,
            "percentage": self.percentage,
            "results": [r.to_dict() for r in self.results],
        }


def _normalize_key(raw: Mapping) -> Dict[int, object]:
    return {int(k): v for k, v in (raw or {}).items()}


def score_submission(
    exam: ExamData,
    answers: Mapping[int, str],
    statement_answers: Optional[Mapping[int, Mapping[str, bool]]] = None,
    statement_keys: Optional[Mapping[int, Mapping[str, bool]]] = None,
) -> GradeReport:
    """
    answers: {Question.number: 답안}
    statement_answers / statement_keys: PHẦN 2용 {Question.number: {글자: 참/거짓}}

    PHẦN 2 문항은 정답표가 있고 모든 진술이 일치할 때만 정답으로 칩니다.
    정답표가 없는 PHẦN 2 문항은 채점 불가(None)로 남고 오답으로 셉니다.
    """
    given_answers = _normalize_key(answers)
    selections = _normalize_key(statement_answers or {})
    keys = _normalize_key(statement_keys or {})

    results: List[QuestionGrade] = []
    correct = 0
    for q in exam.questions:
        if q.question_type is QuestionType.TRUE_FALSE:
            key = keys.get(q.number)
            if key is None:
                log.debug(f"Câu {q.number}: PHẦN 2 정답표가 없어 채점하지 않습니다")
                results.append(QuestionGrade(q.number, None))
                continue
            selected = selections.get(q.number) or {}
            ok = grade_true_false(q, selected, key) == len(q.options) and len(q.options) > 0
            results.append(QuestionGrade(q.number, ok))
        else:
            given = given_answers.get(q.number)
            ok = grade_question(q, given)
            results.append(QuestionGrade(q.number, ok, given=given, expected=q.correct_answer))
        if ok:
            correct += 1

    total = len(exam.questions)
    # .5는 올림 (round()의 짝수 반올림을 쓰지 않음)
    percentage = int(correct * 100 / total + 0.5) if total else 0
    return GradeReport(
        correct_count=correct,
        wrong_count=total - correct,
        total_questions=total,
        percentage=percentage,
        results=results,
    )
