from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from exampkg.core.exam_types import ExamData

log = logging.getLogger(__name__)

NO_QUESTIONS_ERROR = "Không tìm thấy câu hỏi nào trong file"
MISSING_TEXT_ERROR = "Câu {number}: Thiếu nội dung câu hỏi"


@dataclass
class ValidationReport:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    counts: Dict[int, int] = field(default_factory=dict)  # part → 문항 수

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "counts": {str(k): v for k, v in sorted(self.counts.items())},
        }


def validate_exam_data(exam: ExamData, warnings: Optional[Sequence[str]] = None) -> ValidationReport:
    """
    ExamData 검증 (권고용, exam은 변경하지 않음)

    - errors: 문항 없음 / 본문이 빈 문항. 하나라도 있으면 valid=False
    - warnings: 파싱 단계 경고 + 중복 번호 + 정답이 인식되지 않은 PHẦN 1 문항
    """
    errors: List[str] = []
    advisories: List[str] = list(warnings or [])

    if not exam.questions:
        errors.append(NO_QUESTIONS_ERROR)

    for q in exam.questions:
        if not (q.text or "").strip():
            errors.append(MISSING_TEXT_ERROR.format(number=q.number))

    duplicated = sorted(n for n, c in Counter(q.number for q in exam.questions).items() if c > 1)
    for number in duplicated:
        advisories.append(f"Câu {number}: 번호가 중복되었습니다")

    for q in exam.questions:
        if q.part == 1 and not q.correct_answer:
            advisories.append(f"Câu {q.number}: 정답(Chọn X)을 찾지 못했습니다")

    counts = dict(Counter(q.part for q in exam.questions))
    report = ValidationReport(valid=not errors, errors=errors, warnings=advisories, counts=counts)
    if errors:
        log.warning(f"Validation failed: {len(errors)} errors")
    return report
