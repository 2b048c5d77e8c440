import logging
import time
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

import httpx

from exampkg.components.parser.archive_reader import open_docx_archive
from exampkg.components.sanitizer.text_normalizer import normalize_paragraph_text
from exampkg.core.io import read_source
from exampkg.core.parser import (
    BaseParser,
    ParagraphRecord,
    ParseResult,
    StageResult,
)

log = logging.getLogger(__name__)

NS = {
    "w": "http://schemas.openxmlformats.org/wordprocessingml/2006/main",
    "wp": "http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing",
    "a": "http://schemas.openxmlformats.org/drawingml/2006/main",
    "pic": "http://schemas.openxmlformats.org/drawingml/2006/picture",
    "v": "urn:schemas-microsoft-com:vml",
    "o": "urn:schemas-microsoft-com:office:office",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
}

_W_P = f"{{{NS['w']}}}p"
_W_R = f"{{{NS['w']}}}r"
_W_T = f"{{{NS['w']}}}t"
_SPACE_TAGS = {f"{{{NS['w']}}}tab", f"{{{NS['w']}}}br", f"{{{NS['w']}}}cr"}
_R_EMBED = f"{{{NS['r']}}}embed"
_R_ID = f"{{{NS['r']}}}id"
_O_RELID = f"{{{NS['o']}}}relid"


def _iter_paragraphs(node: ET.Element) -> Iterator[ET.Element]:
    """문서 순서대로 w:p를 찾는다. 문단 안(텍스트 상자 등)에 중첩된 문단으로는 내려가지 않는다."""
    for child in node:
        if child.tag == _W_P:
            yield child
        else:
            yield from _iter_paragraphs(child)


def _iter_runs(node: ET.Element) -> Iterator[ET.Element]:
    """최상위 w:r만 순회한다 (하이퍼링크/변경 추적 래퍼 안의 Run 포함)."""
    for child in node:
        if child.tag == _W_R:
            yield child
        else:
            yield from _iter_runs(child)


def _run_text(run: ET.Element) -> str:
    segments: List[str] = []
    for node in run.iter():
        if node.tag == _W_T:
            segments.append(node.text or "")
        elif node.tag in _SPACE_TAGS:
            segments.append(" ")
    return "".join(segments)


def _run_image_rids(run: ET.Element) -> List[str]:
    """Run에 포함된 그림의 rId. Word가 그림을 넣는 세 가지 마크업을 모두 확인한다."""
    rids: List[str] = []

    def _add(rid: Optional[str]) -> None:
        if rid and rid not in rids:
            rids.append(rid)

    # (a) inline/anchor drawing의 a:blip
    for blip in run.findall(".//a:blip", NS):
        _add(blip.get(_R_EMBED))
    # (b) 명시적인 w:drawing 래퍼 안의 a:blip
    for drawing in run.findall(".//w:drawing", NS):
        for blip in drawing.findall(".//a:blip", NS):
            _add(blip.get(_R_EMBED))
    # (c) 레거시 VML (수식 편집기 OLE 미리보기 포함)
    for imagedata in run.findall(".//v:imagedata", NS):
        _add(imagedata.get(_R_ID) or imagedata.get(_O_RELID))
    return rids


def _paragraph_content(p: ET.Element) -> Tuple[str, List[str]]:
    text_parts: List[str] = []
    image_rids: List[str] = []
    for run in _iter_runs(p):
        text_parts.append(_run_text(run))
        for rid in _run_image_rids(run):
            if rid not in image_rids:
                image_rids.append(rid)
    return "".join(text_parts), image_rids


def extract_paragraphs(document_xml: bytes) -> StageResult[List[ParagraphRecord]]:
    """document.xml을 평탄화된 문단 목록으로 변환한다. XML이 깨져 있으면 치명적 실패."""
    try:
        root = ET.fromstring(document_xml)
    except ET.ParseError as e:
        return StageResult.fatal(f"document.xml 파싱 실패: {e}")

    body = root.find("w:body", NS)
    container = body if body is not None else root

    paragraphs: List[ParagraphRecord] = []
    doc_index = 0
    for p in _iter_paragraphs(container):
        raw_text, image_rids = _paragraph_content(p)
        text = normalize_paragraph_text(raw_text)
        if text or image_rids:
            paragraphs.append(ParagraphRecord(text=text, image_rids=tuple(image_rids), doc_index=doc_index))
        doc_index += 1

    log.info(f"Extracted {len(paragraphs)} paragraphs (of {doc_index} in document)")
    return StageResult.ok(paragraphs)


class DocxXmlParser(BaseParser):
    """document.xml 문단만 필요한 경우를 위한 단독 파서 (디버깅/검사용)."""

    def __init__(self):
        super().__init__()
        self.supported_formats = [".docx"]

    async def parse(self, source: Union[str, Path, bytes], title: Optional[str] = None) -> ParseResult:
        t0 = time.time()
        try:
            data = await read_source(source)
            opened = open_docx_archive(data)
            if opened.is_fatal:
                return ParseResult(False, error=opened.error, processing_time=time.time() - t0, payload_tag="docx_xml")
            extracted = extract_paragraphs(opened.value.document_xml)
            if extracted.is_fatal:
                return ParseResult(False, error=extracted.error, processing_time=time.time() - t0, payload_tag="docx_xml")
            return ParseResult(
                True,
                {"paragraphs": extracted.value},
                processing_time=time.time() - t0,
                payload_tag="docx_xml",
                warnings=list(opened.warnings),
            )
        except (OSError, httpx.HTTPError) as e:
            log.exception("xml parser failed")
            return ParseResult(False, error=str(e), processing_time=time.time() - t0, payload_tag="docx_xml")
