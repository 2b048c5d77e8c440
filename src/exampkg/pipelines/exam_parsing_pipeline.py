# src/exampkg/pipelines/exam_parsing_pipeline.py

import logging
import time
from pathlib import Path
from typing import Dict, List, Optional, Union

import httpx

# 파서
from exampkg.components.parser.archive_reader import open_docx_archive
from exampkg.components.parser.image_extractor import ImageResolver, extract_images
from exampkg.components.parser.xml_parser import extract_paragraphs

# 분석기
from exampkg.components.analyzer.section_analyzer import detect_sections, detect_time_limit
from exampkg.components.analyzer.question_parser import parse_part
from exampkg.components.analyzer.exam_assembler import assemble_exam
from exampkg.components.analyzer.exam_validator import validate_exam_data

# 코어 유틸리티
from exampkg.core.config.extract_config import ExtractConfig
from exampkg.core.exam_types import ExamData
from exampkg.core.io import (
    exam_output_paths,
    read_source,
    save_media_assets,
    source_title,
    write_json_output,
)
from exampkg.core.parser import BaseParser, ExamParseError, ParseResult

log = logging.getLogger(__name__)

PAYLOAD_TAG = "exam_docx"


class DocxExamParser(BaseParser):
    """
    docx 시험지 → ExamData

    단계: archive → images + paragraphs → sections → PHẦN 1/2/3 → assemble
    각 단계는 StageResult를 반환하고, 치명적 실패만 여기서 ParseResult(success=False)로 바뀝니다.
    호출마다 독립적이며 공유 상태가 없습니다.
    """

    def __init__(self, config: Optional[ExtractConfig] = None):
        super().__init__()
        self.supported_formats = [".docx"]
        self.config = config or ExtractConfig()

    def _failure(self, error: str, t0: float, warnings: Optional[List[str]] = None) -> ParseResult:
        log.error(f"Exam parsing failed: {error}")
        return ParseResult(
            False,
            error=error,
            processing_time=time.time() - t0,
            payload_tag=PAYLOAD_TAG,
            warnings=list(warnings or []),
        )

    def parse_bytes(self, data: bytes, title: Optional[str] = None) -> ParseResult:
        t0 = time.time()
        warnings: List[str] = []
        try:
            opened = open_docx_archive(data)
            if opened.is_fatal:
                return self._failure(opened.error, t0)
            archive = opened.merge_warnings(warnings)

            extracted = extract_images(archive, probe_size=self.config.probe_image_size)
            assets, rel_map = extracted.merge_warnings(warnings)

            paragraphs_res = extract_paragraphs(archive.document_xml)
            if paragraphs_res.is_fatal:
                return self._failure(paragraphs_res.error, t0, warnings)
            paragraphs = paragraphs_res.merge_warnings(warnings)

            ranges = detect_sections(paragraphs).merge_warnings(warnings)

            resolver = ImageResolver(assets, rel_map)
            part_questions = {}
            for section_range in ranges:
                part_questions[section_range.part] = parse_part(
                    section_range.part, paragraphs, section_range, resolver
                ).merge_warnings(warnings)

            time_limit = self.config.default_time_limit
            if self.config.detect_time_limit:
                time_limit = detect_time_limit(paragraphs, default=time_limit)

            exam = assemble_exam(
                part_questions,
                assets,
                title=title or self.config.default_title,
                time_limit=time_limit,
            )
        except Exception as e:
            log.exception("exam parser failed")
            return self._failure(str(e), t0, warnings)

        for w in warnings:
            log.warning(w)
        return ParseResult(
            True,
            exam,
            processing_time=time.time() - t0,
            payload_tag=PAYLOAD_TAG,
            warnings=warnings,
        )

    async def parse(self, source: Union[str, Path, bytes], title: Optional[str] = None) -> ParseResult:
        t0 = time.time()
        try:
            data = await read_source(source, timeout=self.config.http_timeout)
        except (OSError, httpx.HTTPError) as e:
            log.exception(f"failed to read source {source if not isinstance(source, (bytes, bytearray)) else '<bytes>'}")
            return self._failure(str(e), t0)
        return self.parse_bytes(data, title=title or source_title(source))


def parse_exam_bytes(data: bytes, title: Optional[str] = None, config: Optional[ExtractConfig] = None) -> ExamData:
    """docx 바이트를 ExamData로 변환한다. 치명적 실패는 ExamParseError."""
    result = DocxExamParser(config).parse_bytes(data, title=title)
    if not result.success:
        raise ExamParseError(result.error)
    return result.content


class ExamParsingPipeline:
    """
    A pipeline that parses one docx exam, validates it,
    and saves the exam / validation JSON (and optionally the media files) to a directory.
    """

    def __init__(self, parser: Optional[DocxExamParser] = None, config: Optional[ExtractConfig] = None) -> None:
        self.config = config or (parser.config if parser else ExtractConfig())
        self.parser = parser or DocxExamParser(self.config)

    async def run(
        self,
        source: Union[str, Path, bytes],
        output_dir: Path,
        title: Optional[str] = None,
        save_media: bool = False,
    ) -> Dict[str, str]:
        """
        Executes parsing and validation and saves the outputs.
        Returns a dictionary of the paths to the saved files.
        """
        basename = source_title(source) or "exam"
        paths = exam_output_paths(Path(output_dir), basename)

        # 1. Parsing stage
        result = await self.parser.parse(source, title=title)
        if not result.success:
            raise ExamParseError(f"Exam parsing failed for {basename}: {result.error}")
        exam: ExamData = result.content

        # 2. Validation stage (권고용, 실패해도 저장은 한다)
        report = validate_exam_data(exam, warnings=result.warnings)

        # 3. Save outputs
        write_json_output(exam.to_dict(), paths["exam"])
        write_json_output(report.to_dict(), paths["validation"])

        outputs = {
            "exam_output": str(paths["exam"]),
            "validation_output": str(paths["validation"]),
        }
        if save_media and exam.images:
            written = save_media_assets(exam.images, paths["media"])
            outputs["media_dir"] = str(paths["media"])
            log.info(f"Saved {len(written)} media files → {paths['media']}")
        return outputs
