"""
파트별 문항 파서 (하나의 상태 기계, 파트별 문법)

세 파트는 같은 모양의 좌→우 스캔을 공유하고, 보기/답 표기만 다릅니다.

| 파트 | 보기(진술) 줄 | 답 표기 | 정답 의미 |
|---|---|---|---|
| 1 다지선다 | `A.`~`D.` 또는 `A)` | 줄 어디든 `Chọn X` | 대문자 한 글자 |
| 2 참/거짓 | `a)`~`d)` | 없음 (채점 계층이 외부 정답표로 판정) | - |
| 3 단답형 | 없음 | 줄 시작의 `Đáp án: ...` | 나머지 텍스트 그대로 |

상태
- SEEKING_QUESTION: 첫 "Câu N." 이전. 이 상태의 줄과 이미지는 버려집니다.
- COLLECTING_CONTENT: 문제 본문과 보기를 모읍니다.
- IN_SOLUTION: "Lời giải" 이후. 본문에는 더 이상 추가하지 않지만 답 표기는 계속 인정합니다.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Pattern, Sequence

from exampkg.components.parser.image_extractor import ImageResolver
from exampkg.core.exam_types import QuestionType
from exampkg.core.parser import (
    ParagraphRecord,
    ParsedQuestion,
    QuestionOptionRecord,
    SectionRange,
    StageResult,
)

log = logging.getLogger(__name__)

# "Câu 5." / "Câu 5:" / "CAU 12 .", 번호는 양의 정수만
QUESTION_MARKER_RE = re.compile(r"^C[âa]u\s*0*([1-9]\d*)\s*[.:]\s*(.*)", re.IGNORECASE)
SOLUTION_MARKER_RE = re.compile(r"^L[ờơo]i\s*gi[ảa]i[\s.:]*(.*)", re.IGNORECASE)
FIGURE_CAPTION_RE = re.compile(r"^H[ìi]nh\s*\d+", re.IGNORECASE)

# 번호 인코딩(part * 100 + N)이 다른 파트와 겹치기 시작하는 지점
NUMBER_ENCODING_LIMIT = 100


class ParserState(Enum):
    SEEKING_QUESTION = "seeking_question"
    COLLECTING_CONTENT = "collecting_content"
    IN_SOLUTION = "in_solution"


@dataclass(frozen=True)
class PartGrammar:
    part: int
    question_type: QuestionType
    heading_pattern: Pattern[str]  # 파트 머리글 줄 (내용 없음으로 건너뜀)
    option_pattern: Optional[Pattern[str]] = None  # group(1)=글자, group(2)=텍스트
    option_case: str = "upper"
    answer_pattern: Optional[Pattern[str]] = None
    answer_from_match: Optional[Callable[[re.Match], str]] = None

    def option_letter(self, raw: str) -> str:
        return raw.upper() if self.option_case == "upper" else raw.lower()


PART1_GRAMMAR = PartGrammar(
    part=1,
    question_type=QuestionType.MULTIPLE_CHOICE,
    heading_pattern=re.compile(r"^[\s*]*(?:PH[ẦAÀ]N\s*\d|Tr[ắa]c\s*nghi[ệe]m)", re.IGNORECASE),
    option_pattern=re.compile(r"^([A-D])[.)]\s*(.*)"),
    option_case="upper",
    answer_pattern=re.compile(r"Ch[oọ]n\s*([A-D])\b", re.IGNORECASE),
    answer_from_match=lambda m: m.group(1).upper(),
)

PART2_GRAMMAR = PartGrammar(
    part=2,
    question_type=QuestionType.TRUE_FALSE,
    heading_pattern=re.compile(r"^[\s*]*PH[ẦAÀ]N\s*\d", re.IGNORECASE),
    option_pattern=re.compile(r"^([a-d])\)\s*(.*)", re.IGNORECASE),
    option_case="lower",
    # 정답(각 진술의 참/거짓)은 문서 안에서 읽지 않는다. 채점 계층의 책임.
)

PART3_GRAMMAR = PartGrammar(
    part=3,
    question_type=QuestionType.SHORT_ANSWER,
    heading_pattern=re.compile(r"^[\s*]*PH[ẦAÀ]N\s*\d", re.IGNORECASE),
    answer_pattern=re.compile(r"^[*\s]*[ĐD][áa]p\s*[áa]n[:\s]*(.+)", re.IGNORECASE),
    answer_from_match=lambda m: m.group(1).strip(),
)

GRAMMARS = {1: PART1_GRAMMAR, 2: PART2_GRAMMAR, 3: PART3_GRAMMAR}


class QuestionParser:
    """
    한 파트의 문단 구간을 읽어 ParsedQuestion 목록을 만드는 상태 기계.

    공통 규칙
    - "Câu N" 줄은 항상 새 문항을 엽니다 (직전 문항은 확정 후 추가, 나머지 텍스트는 본문 첫 줄).
    - 줄에 포함된 이미지는 열린 문항에 붙습니다. 첫 문항 이전의 이미지는 버립니다.
    - "Hình N" 캡션 줄은 본문에 넣지 않지만 이미지는 붙입니다.
    - 본문이 비어 있는 문항은 확정 시 버립니다.
    - 결과는 원문 번호 오름차순으로 정렬합니다 (같은 번호는 원문 순서 유지).
    """

    def __init__(self, grammar: PartGrammar, resolver: Optional[ImageResolver] = None) -> None:
        self.grammar = grammar
        self.resolver = resolver or ImageResolver([], {})
        self._reset()

    def _reset(self) -> None:
        self.state = ParserState.SEEKING_QUESTION
        self.current: Optional[ParsedQuestion] = None
        self.buffer: List[str] = []
        self.solution_lines: List[str] = []
        self.questions: List[ParsedQuestion] = []
        self.warnings: List[str] = []

    def parse(
        self,
        paragraphs: Sequence[ParagraphRecord],
        section_range: SectionRange,
    ) -> StageResult[List[ParsedQuestion]]:
        self._reset()
        for idx in section_range.indices():
            if idx >= len(paragraphs):
                break
            self._feed(paragraphs[idx])
        self._finalize()

        self.questions.sort(key=lambda q: q.local_number)
        log.info(f"PHẦN {self.grammar.part}: {len(self.questions)} questions parsed from paragraphs [{section_range.start}, {section_range.end})")
        return StageResult.degraded(list(self.questions), self.warnings)

    # ---- transitions ----
    def _feed(self, para: ParagraphRecord) -> None:
        text = para.text
        g = self.grammar

        marker = QUESTION_MARKER_RE.match(text) if text else None
        if marker:
            self._open(int(marker.group(1)), marker.group(2).strip())
            self._attach(para.image_rids)
            return

        if text and g.heading_pattern.match(text):
            return

        if self.current is None:
            if para.image_rids:
                log.debug(f"PHẦN {g.part}: 첫 문항 이전의 이미지 {list(para.image_rids)}는 버립니다")
            return

        self._attach(para.image_rids)
        if not text:
            return

        solution = SOLUTION_MARKER_RE.match(text)
        if solution:
            if not self.current.options and not self.current.text:
                self._flush_buffer()
            self.state = ParserState.IN_SOLUTION
            rest = solution.group(1).strip()
            if rest:
                self._handle_solution_text(rest)
            return

        if self._match_answer(text):
            return

        if g.option_pattern is not None and self.state is ParserState.COLLECTING_CONTENT:
            opt = g.option_pattern.match(text)
            if opt:
                if not self.current.options and self.buffer:
                    self._flush_buffer()
                self.current.options.append(
                    QuestionOptionRecord(letter=g.option_letter(opt.group(1)), text=opt.group(2).strip())
                )
                return

        if FIGURE_CAPTION_RE.match(text):
            return

        if self.state is ParserState.COLLECTING_CONTENT:
            self.buffer.append(text)
        elif self.state is ParserState.IN_SOLUTION:
            self.solution_lines.append(text)

    def _handle_solution_text(self, text: str) -> None:
        if self._match_answer(text) or FIGURE_CAPTION_RE.match(text):
            return
        self.solution_lines.append(text)

    def _match_answer(self, text: str) -> bool:
        g = self.grammar
        if g.answer_pattern is None or self.current is None:
            return False
        m = g.answer_pattern.search(text)
        if not m:
            return False
        answer = g.answer_from_match(m) if g.answer_from_match else m.group(1)
        if answer:
            self.current.correct_answer = answer
        return True

    def _open(self, number: int, rest: str) -> None:
        self._finalize()
        if number >= NUMBER_ENCODING_LIMIT:
            self.warnings.append(
                f"PHẦN {self.grammar.part} Câu {number}: 번호가 {NUMBER_ENCODING_LIMIT} 이상이라 다른 파트 번호와 겹칠 수 있습니다"
            )
        self.current = ParsedQuestion(
            local_number=number,
            part=self.grammar.part,
            question_type=self.grammar.question_type.value,
        )
        self.buffer = [rest] if rest else []
        self.solution_lines = []
        self.state = ParserState.COLLECTING_CONTENT

    def _flush_buffer(self) -> None:
        if self.current is not None and self.buffer:
            self.current.text = " ".join(self.buffer).strip()
        self.buffer = []

    def _finalize(self) -> None:
        q = self.current
        if q is None:
            return
        if self.buffer and not q.text:
            self._flush_buffer()
        if self.solution_lines:
            q.solution = " ".join(self.solution_lines).strip()
        if q.text:
            self.questions.append(q)
        else:
            log.debug(f"PHẦN {q.part} Câu {q.local_number}: 본문이 없어 버립니다")
        self.current = None
        self.buffer = []
        self.solution_lines = []
        self.state = ParserState.SEEKING_QUESTION

    def _attach(self, rids: Sequence[str]) -> None:
        if self.current is None or not rids:
            return
        for rid in rids:
            asset = self.resolver.resolve(rid)
            if asset is None:
                self.warnings.append(
                    f"PHẦN {self.grammar.part} Câu {self.current.local_number}: 이미지 참조 {rid}를 찾을 수 없습니다"
                )
                continue
            self.current.attach_image(asset)


def parse_part(
    part: int,
    paragraphs: Sequence[ParagraphRecord],
    section_range: SectionRange,
    resolver: Optional[ImageResolver] = None,
) -> StageResult[List[ParsedQuestion]]:
    return QuestionParser(GRAMMARS[part], resolver).parse(paragraphs, section_range)
