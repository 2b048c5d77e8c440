"""
docx 아카이브 리더

`.docx`는 OOXML 파트를 담은 zip 컨테이너입니다. 이 모듈은 메모리상의 바이트에서
시험지 추출에 필요한 세 가지 파트만 꺼냅니다.

- `word/document.xml` (필수, 없으면 치명적 실패)
- `word/_rels/document.xml.rels` (선택, 없으면 이미지 연결 없이 계속)
- `word/media/` 아래의 모든 파일
"""
from __future__ import annotations

import io
import logging
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from exampkg.core.parser import StageResult

log = logging.getLogger(__name__)

DOCUMENT_PART = "word/document.xml"
RELS_PART = "word/_rels/document.xml.rels"
MEDIA_PREFIX = "word/media/"


@dataclass
class DocxArchive:
    document_xml: bytes
    rels_xml: Optional[bytes] = None
    media: List[Tuple[str, bytes]] = field(default_factory=list)  # (엔트리 경로, 바이트), 아카이브 순서


def open_docx_archive(data: bytes) -> StageResult[DocxArchive]:
    warnings: List[str] = []
    try:
        zf = zipfile.ZipFile(io.BytesIO(data), "r")
    except (zipfile.BadZipFile, OSError) as e:
        return StageResult.fatal(f"docx 파일을 zip으로 열 수 없습니다: {e}")

    with zf:
        names = zf.namelist()
        if DOCUMENT_PART not in names:
            return StageResult.fatal(f"{DOCUMENT_PART}를 찾을 수 없습니다 (Word 문서가 아닙니다)")
        try:
            document_xml = zf.read(DOCUMENT_PART)
        except (zipfile.BadZipFile, zlib.error, OSError, RuntimeError) as e:
            return StageResult.fatal(f"{DOCUMENT_PART} 압축 해제 실패: {e}")

        rels_xml: Optional[bytes] = None
        if RELS_PART in names:
            try:
                rels_xml = zf.read(RELS_PART)
            except (zipfile.BadZipFile, zlib.error, OSError, RuntimeError) as e:
                warnings.append(f"관계 파일을 읽지 못했습니다: {e}")
        else:
            warnings.append(f"{RELS_PART} 없음: 이미지를 문항에 연결할 수 없습니다")

        media: List[Tuple[str, bytes]] = []
        for info in zf.infolist():
            if not info.filename.startswith(MEDIA_PREFIX) or info.is_dir():
                continue
            try:
                media.append((info.filename, zf.read(info.filename)))
            except (zipfile.BadZipFile, zlib.error, OSError, RuntimeError) as e:
                warnings.append(f"이미지 엔트리 {info.filename} 읽기 실패: {e}")

    log.info(f"docx archive opened: {len(media)} media entries, rels={'yes' if rels_xml else 'no'}")
    return StageResult.degraded(DocxArchive(document_xml, rels_xml, media), warnings)
