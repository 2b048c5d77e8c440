"""
문단 텍스트 정규화 / HTML 이스케이프

베트남어 시험지는 같은 글자가 조합형(NFD)과 완성형(NFC)으로 섞여 들어오는 경우가 많고,
수식은 `\\(...\\)`, `\\[...\\]`, `$...$`, `$$...$$` 네 가지 구분자가 혼용됩니다.
여기서는 텍스트를 한 가지 형태로 맞추고, 내보내기 직전 HTML 이스케이프 시 수식 원문은
그대로 보존합니다.
"""
from __future__ import annotations

import html
import re
import unicodedata
from typing import List

_DISPLAY_BRACKET_RE = re.compile(r"\\\[([\s\S]*?)\\\]")
_INLINE_PAREN_RE = re.compile(r"\\\(([\s\S]*?)\\\)")
_DOLLAR_RUN_RE = re.compile(r"\${3,}")
WHITESPACE_RE = re.compile(r"\s+")

_DISPLAY_MATH_RE = re.compile(r"\$\$([\s\S]*?)\$\$")
_INLINE_MATH_RE = re.compile(r"\$(?!\$)([\s\S]*?)\$(?!\$)")
_PLACEHOLDER = "__LATEX_BLOCK_{}__"


def normalize_vietnamese(text: str) -> str:
    """Unicode NFC 정규화."""
    if not text:
        return ""
    return unicodedata.normalize("NFC", text)


def normalize_latex(text: str) -> str:
    """수식 구분자를 `$`/`$$`로 통일하고 공백을 정리한다."""
    if not text:
        return ""
    text = _DISPLAY_BRACKET_RE.sub(lambda m: f"$${m.group(1)}$$", text)
    text = _INLINE_PAREN_RE.sub(lambda m: f"${m.group(1)}$", text)
    text = _DOLLAR_RUN_RE.sub("$$", text)
    text = WHITESPACE_RE.sub(" ", text)
    return text.strip()


def normalize_paragraph_text(text: str) -> str:
    return normalize_latex(normalize_vietnamese(text))


def escape_html_preserve_latex(text: str) -> str:
    """`&`, `<`, `>`만 이스케이프하고 `$$...$$`, `$...$` 구간은 원문 그대로 둔다."""
    if not text:
        return ""
    blocks: List[str] = []

    def _protect(match: re.Match[str]) -> str:
        blocks.append(match.group(0))
        return _PLACEHOLDER.format(len(blocks) - 1)

    protected = _DISPLAY_MATH_RE.sub(_protect, text)
    protected = _INLINE_MATH_RE.sub(_protect, protected)
    escaped = html.escape(protected, quote=False)

    # 인라인 구간 안에 먼저 보호된 구간이 들어 있을 수 있으므로 역순으로 복원
    for idx in range(len(blocks) - 1, -1, -1):
        escaped = escaped.replace(_PLACEHOLDER.format(idx), blocks[idx], 1)
    return escaped


def strip_latex(text: str) -> str:
    """로그/미리보기용: 수식 구분자를 제거한 텍스트."""
    if not text:
        return ""
    return WHITESPACE_RE.sub(" ", text.replace("$", "")).strip()
