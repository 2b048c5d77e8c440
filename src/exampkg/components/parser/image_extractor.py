"""
이미지 추출기 (Image Extractor)

관계 파일(`document.xml.rels`)에서 rId → media 파일명 매핑을 만들고,
`word/media/`의 모든 엔트리를 `MediaAsset`으로 변환합니다.

주요 기능:
- **관계 스캔**: 완전한 XML 파싱 대신 `<Relationship .../>` 태그 단위 정규식 스캔.
  `Id`/`Target` 속성 순서에 의존하지 않습니다.
- **MIME 추정**: 확장자 조회표로만 결정하며, 모르는 확장자는 `image/png`.
- **크기 측정**: Pillow로 픽셀 크기를 읽습니다. 식별할 수 없는 포맷(EMF 등)은 건너뜁니다.
- **rId 해석**: `ImageResolver`가 문단의 rId를 실제 `MediaAsset`으로 되돌립니다.
"""
from __future__ import annotations

import base64
import io
import logging
import re
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

from exampkg.components.parser.archive_reader import DocxArchive
from exampkg.core.parser import MediaAsset, StageResult

log = logging.getLogger(__name__)

CONTENT_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
}
DEFAULT_CONTENT_TYPE = "image/png"

_RELATIONSHIP_TAG_RE = re.compile(r"<(?:\w+:)?Relationship\b([^>]*?)/?>", re.IGNORECASE)
_ID_ATTR_RE = re.compile(r"\bId\s*=\s*[\"']([^\"']+)[\"']")
_TARGET_ATTR_RE = re.compile(r"\bTarget\s*=\s*[\"']([^\"']+)[\"']")


def _extension(filename: str) -> str:
    suffix = PurePosixPath(filename).suffix
    return suffix[1:].lower() if suffix else ""


def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(_extension(filename), DEFAULT_CONTENT_TYPE)


def parse_relationships(rels_xml: Optional[bytes]) -> StageResult[Dict[str, str]]:
    """rId → media 파일명 매핑. 관계 파일이 없거나 깨져 있으면 빈 매핑으로 계속한다."""
    if rels_xml is None:
        # 파일 누락은 아카이브 단계에서 이미 경고함
        return StageResult.ok({})
    if not rels_xml:
        return StageResult.degraded({}, ["관계 파일이 비어 있어 rId 매핑 없이 진행합니다"])
    try:
        content = rels_xml.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        return StageResult.degraded({}, [f"관계 파일 디코딩 실패: {e}"])

    rel_map: Dict[str, str] = {}
    for match in _RELATIONSHIP_TAG_RE.finditer(content):
        attrs = match.group(1)
        id_match = _ID_ATTR_RE.search(attrs)
        target_match = _TARGET_ATTR_RE.search(attrs)
        if not id_match or not target_match:
            continue
        target = target_match.group(1)
        if "media/" not in target:
            continue
        filename = target.rsplit("/", 1)[-1]
        if filename:
            rel_map.setdefault(id_match.group(1), filename)
    return StageResult.ok(rel_map)


def _probe_size(blob: bytes, filename: str) -> Tuple[Optional[int], Optional[int]]:
    try:
        with Image.open(io.BytesIO(blob)) as img:
            width, height = img.size
            return int(width), int(height)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        log.debug(f"이미지 크기를 읽지 못했습니다: {filename}: {e}")
        return None, None


def extract_images(
    archive: DocxArchive,
    probe_size: bool = True,
) -> StageResult[Tuple[List[MediaAsset], Dict[str, str]]]:
    warnings: List[str] = []
    rel_map = parse_relationships(archive.rels_xml).merge_warnings(warnings) or {}

    # 파일명 → 첫 rId (관계 파일 등장 순서)
    rid_by_filename: Dict[str, str] = {}
    for rid, fname in rel_map.items():
        rid_by_filename.setdefault(fname, rid)

    assets: List[MediaAsset] = []
    for entry_name, blob in archive.media:
        filename = entry_name.rsplit("/", 1)[-1]
        ext = _extension(filename)
        if ext not in CONTENT_TYPES:
            warnings.append(f"알 수 없는 이미지 확장자 '{ext or '(없음)'}': {filename} → {DEFAULT_CONTENT_TYPE}")
        width = height = None
        if probe_size:
            width, height = _probe_size(blob, filename)
        assets.append(
            MediaAsset(
                id=f"img_{len(assets)}",
                filename=filename,
                data_b64=base64.b64encode(blob).decode("ascii"),
                content_type=content_type_for(filename),
                relationship_id=rid_by_filename.get(filename),
                width=width,
                height=height,
            )
        )

    orphaned = sum(1 for a in assets if a.relationship_id is None)
    log.info(f"Extracted {len(assets)} images ({orphaned} without relationship), {len(rel_map)} media relationships")
    return StageResult.degraded((assets, rel_map), warnings)


class ImageResolver:
    """문단의 이미지 rId를 MediaAsset으로 해석합니다."""

    def __init__(self, assets: Sequence[MediaAsset], rel_map: Dict[str, str]) -> None:
        self.assets = list(assets)
        self.rel_map = dict(rel_map)
        self._by_filename: Dict[str, MediaAsset] = {}
        for asset in self.assets:
            self._by_filename.setdefault(asset.filename, asset)

    def resolve(self, rid: str) -> Optional[MediaAsset]:
        filename = self.rel_map.get(rid)
        if filename is not None:
            asset = self._by_filename.get(filename)
            if asset is not None:
                return asset
        # rId 문자열에 파일명이 들어 있는 비표준 문서
        for asset in self.assets:
            if asset.filename and asset.filename in rid:
                return asset
        return None
