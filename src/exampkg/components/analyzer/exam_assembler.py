"""
파트별 파싱 결과 → ExamData 조립

- 번호: part * 100 + 원문 번호 (PHẦN 2의 Câu 3 → 203)
- 본문/보기/풀이는 수식을 보존한 채 HTML 이스케이프
- 정답표(answers)는 PHẦN 1, 3에서 정답이 인식된 문항만
"""
from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Sequence

from exampkg.components.sanitizer.text_normalizer import escape_html_preserve_latex
from exampkg.core.exam_types import (
    ExamData,
    ExamSection,
    Question,
    QuestionOption,
    QuestionType,
    SectionInfo,
)
from exampkg.core.parser import MediaAsset, ParsedQuestion

log = logging.getLogger(__name__)

PART_NAMES = {
    1: "Trắc nghiệm nhiều lựa chọn",
    2: "Trắc nghiệm đúng sai",
    3: "Trắc nghiệm trả lời ngắn",
}

SECTION_TEMPLATES = {
    1: ("PHẦN 1. Trắc nghiệm nhiều lựa chọn", "Thí sinh chọn một phương án đúng A, B, C hoặc D", QuestionType.MULTIPLE_CHOICE),
    2: ("PHẦN 2. Trắc nghiệm đúng sai", "Thí sinh chọn Đúng hoặc Sai cho mỗi ý a), b), c), d)", QuestionType.TRUE_FALSE),
    3: ("PHẦN 3. Trắc nghiệm trả lời ngắn", "Thí sinh điền đáp án số vào ô trống", QuestionType.SHORT_ANSWER),
}

# 정답표에 들어가는 파트 (PHẦN 2는 문서 안에 정답이 없다)
ANSWER_KEY_PARTS = (1, 3)


def encode_number(part: int, local_number: int) -> int:
    return part * 100 + local_number


def _to_question(parsed: ParsedQuestion) -> Question:
    part = parsed.part
    return Question(
        number=encode_number(part, parsed.local_number),
        text=escape_html_preserve_latex(parsed.text),
        question_type=QuestionType(parsed.question_type),
        options=[
            QuestionOption(letter=opt.letter, text=escape_html_preserve_latex(opt.text))
            for opt in parsed.options
        ],
        correct_answer=parsed.correct_answer,
        section=SectionInfo(letter=str(part), name=PART_NAMES[part], points=""),
        part_label=f"PHẦN {part}",
        images=list(parsed.images),
        solution=escape_html_preserve_latex(parsed.solution),
    )


def assemble_exam(
    part_questions: Mapping[int, Sequence[ParsedQuestion]],
    images: Sequence[MediaAsset],
    title: str,
    time_limit: int = 90,
) -> ExamData:
    """
    part_questions: {1: [...], 2: [...], 3: [...]} (각 목록은 원문 번호 순으로 정렬되어 있어야 함)
    images: 문서의 모든 MediaAsset (문항에서 참조되지 않은 것 포함)
    """
    sections: List[ExamSection] = []
    questions: List[Question] = []
    answers: Dict[int, str] = {}

    global_index = 0
    for part in sorted(SECTION_TEMPLATES):
        parsed_list = part_questions.get(part) or []
        if not parsed_list:
            continue
        name, description, section_type = SECTION_TEMPLATES[part]
        section = ExamSection(name=name, description=description, section_type=section_type, points="")
        for parsed in parsed_list:
            global_index += 1
            question = _to_question(parsed)
            log.debug(f"#{global_index} → {question.number} ({section_type.value})")
            section.questions.append(question)
            questions.append(question)
            if part in ANSWER_KEY_PARTS and question.correct_answer is not None:
                answers[question.number] = question.correct_answer
        sections.append(section)

    log.info(f"Assembled exam '{title}': {len(sections)} sections, {len(questions)} questions, {len(answers)} answers")
    return ExamData(
        title=title,
        time_limit=time_limit,
        sections=sections,
        questions=questions,
        answers=answers,
        images=list(images),
    )
