"""
시험지 파트(PHẦN) 구간 탐지기

이 모듈은 평탄화된 문단 목록에서 세 파트의 머리글을 찾아
파트별 문단 구간(SectionRange)을 만듭니다.

- PHẦN 1: 다지선다 (Trắc nghiệm nhiều lựa chọn)
- PHẦN 2: 참/거짓 (Trắc nghiệm đúng sai)
- PHẦN 3: 단답형 (Trắc nghiệm trả lời ngắn)

핵심 아이디어
- 머리글 탐지: 줄 시작에 앵커된 파트별 정규식 대안(철자/성조/로마 숫자 변형)을 대소문자 무시로 검사.
  "Câu N." 문항 줄은 본문에 "phần 3" 등이 있어도 머리글로 보지 않습니다
- 순서 제약: 각 파트는 이전 파트 시작 이후에서만 찾고, 뒤 파트가 이미 시작되었으면
  앞 파트 패턴의 늦은 매칭은 무시합니다. 한 문단은 최대 한 파트만 엽니다.
- 구간(span): [start, end) 반열린 구간. end는 다음으로 발견된 파트의 start 또는 문서 끝
- 누락 처리: PHẦN 1 머리글이 없으면 start=0 (문서 전체를 PHẦN 1 후보로),
  PHẦN 2/3이 없으면 다음 파트 시작 위치(또는 문서 끝)의 빈 구간
"""

# exampkg/components/analyzer/section_analyzer.py
from __future__ import annotations
import re
from typing import List, Optional, Sequence

from exampkg.components.analyzer.question_parser import QUESTION_MARKER_RE
from exampkg.core.parser import ParagraphRecord, SectionRange, StageResult

# 머리글은 줄 시작에서만 인정 (굵게 표시용 '*' 허용)
_LINE_START = r"^[\s*]*"
# 로마 숫자 표기 뒤에는 구두점/공백 또는 줄 끝
_ROMAN_END = r"(?:[.\s:]|$)"

PART_PATTERNS = {
    1: re.compile(
        rf"{_LINE_START}PH[ẦAÀ]N\s*1(?!\d)"
        rf"|{_LINE_START}PH[ẦAÀ]N\s+I{_ROMAN_END}"
        rf"|{_LINE_START}I\.\s*TR[ẮAĂ]C\s*NGHI[ỆEÊ]M",
        re.IGNORECASE,
    ),
    2: re.compile(
        rf"{_LINE_START}PH[ẦAÀ]N\s*2(?!\d)"
        rf"|{_LINE_START}PH[ẦAÀ]N\s+II{_ROMAN_END}"
        rf"|{_LINE_START}II\.\s*[ĐD][ÚU]NG\s*SAI"
        rf"|{_LINE_START}(?:TR[ẮAĂ]C\s*NGHI[ỆEÊ]M\s*)?ĐÚNG\s*SAI",
        re.IGNORECASE,
    ),
    3: re.compile(
        rf"{_LINE_START}PH[ẦAÀ]N\s*3(?!\d)"
        rf"|{_LINE_START}PH[ẦAÀ]N\s+III{_ROMAN_END}"
        rf"|{_LINE_START}III\.\s*TR[ẢA]\s*L[ỜO]I"
        rf"|{_LINE_START}(?:TR[ẮAĂ]C\s*NGHI[ỆEÊ]M\s*)?TRẢ\s*LỜI\s*NG[ẮAĂ]N",
        re.IGNORECASE,
    ),
}

# 머리말의 시험 시간, 예) "Thời gian làm bài: 90 phút"
TIME_LIMIT_RE = re.compile(r"Th[ờơo]i\s*gian(?:\s*l[àa]m\s*b[àa]i)?\s*[:：]?\s*(\d{1,3})\s*ph[úu]t", re.IGNORECASE)

PART_NUMBERS = (1, 2, 3)


def _find_part_starts(paragraphs: Sequence[ParagraphRecord]) -> List[Optional[int]]:
    starts: List[Optional[int]] = [None, None, None]
    for idx, para in enumerate(paragraphs):
        text = para.text
        if not text or QUESTION_MARKER_RE.match(text):
            continue
        for part in PART_NUMBERS:
            slot = part - 1
            if starts[slot] is not None:
                continue
            # 뒤 파트가 이미 시작되었으면 앞 파트는 더 이상 찾지 않는다
            if any(s is not None for s in starts[slot + 1:]):
                continue
            if PART_PATTERNS[part].search(text):
                starts[slot] = idx
                break
    return starts


def detect_sections(paragraphs: Sequence[ParagraphRecord]) -> StageResult[List[SectionRange]]:
    """
    문단 목록에서 PHẦN 1/2/3의 [start, end) 구간을 계산합니다.

    결과는 항상 세 개의 구간이며 start 오름차순이고 서로 겹치지 않습니다.
    머리글이 없는 파트는 경고를 남기고 (PHẦN 1은 문서 처음부터, 나머지는 빈 구간으로) 계속합니다.
    """
    total = len(paragraphs)
    found = _find_part_starts(paragraphs)
    warnings: List[str] = []

    starts: List[int] = []
    for slot, start in enumerate(found):
        part = slot + 1
        if start is not None:
            starts.append(start)
            continue
        if part == 1:
            warnings.append("PHẦN 1 머리글을 찾지 못해 문서 처음부터 PHẦN 1로 간주합니다")
            starts.append(0)
            continue
        # 다음으로 발견된 파트의 시작(없으면 문서 끝)에 빈 구간을 둔다
        following = [s for s in found[slot + 1:] if s is not None]
        warnings.append(f"PHẦN {part} 머리글을 찾지 못했습니다")
        starts.append(following[0] if following else total)

    ranges: List[SectionRange] = []
    for slot, start in enumerate(starts):
        part = slot + 1
        if found[slot] is None and part != 1:
            ranges.append(SectionRange(part, start, start))
            continue
        following = [s for s in found[slot + 1:] if s is not None]
        end = following[0] if following else total
        ranges.append(SectionRange(part, start, end))

    return StageResult.degraded(ranges, warnings)


def detect_time_limit(paragraphs: Sequence[ParagraphRecord], default: int = 90) -> int:
    """첫 문항("Câu N") 이전 머리말에서 시험 시간(분)을 찾는다. 없으면 default."""
    for para in paragraphs:
        if QUESTION_MARKER_RE.match(para.text):
            break
        m = TIME_LIMIT_RE.search(para.text)
        if m:
            minutes = int(m.group(1))
            if minutes > 0:
                return minutes
    return default
