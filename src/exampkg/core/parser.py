import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Generic, List, Optional, TypeVar, Union

T = TypeVar("T")

# 브라우저에서 바로 렌더링 가능한 이미지 MIME 타입
WEB_IMAGE_TYPES = {"image/png", "image/jpeg", "image/gif", "image/webp", "image/svg+xml"}


class ExamParseError(RuntimeError):
    """docx 시험지 파싱이 치명적으로 실패했을 때 발생합니다."""


# --- Stage Outcome ---
class StageStatus(Enum):
    OK = "ok"
    DEGRADED = "degraded"  # 경고를 남기고 계속 진행
    FATAL = "fatal"  # 파싱 전체 중단


@dataclass
class StageResult(Generic[T]):
    """파이프라인 각 단계의 결과. 예외 대신 상태 태그로 성공/저하/실패를 구분합니다."""
    status: StageStatus
    value: Optional[T] = None
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "StageResult[T]":
        return cls(StageStatus.OK, value)

    @classmethod
    def degraded(cls, value: T, warnings: List[str]) -> "StageResult[T]":
        if not warnings:
            return cls(StageStatus.OK, value)
        return cls(StageStatus.DEGRADED, value, list(warnings))

    @classmethod
    def fatal(cls, error: str) -> "StageResult[T]":
        return cls(StageStatus.FATAL, None, error=error)

    @property
    def is_fatal(self) -> bool:
        return self.status is StageStatus.FATAL

    def merge_warnings(self, sink: List[str]) -> Optional[T]:
        """경고를 sink에 누적하고 값을 반환합니다."""
        sink.extend(self.warnings)
        return self.value


# --- Result Report Dataclasses ---
@dataclass
class ParseResult:
    success: bool
    content: Optional[Any] = None  # 성공 시 ExamData
    error: Optional[str] = None
    processing_time: float = 0.0
    payload_tag: str = ""
    warnings: List[str] = field(default_factory=list)


# --- Record Dataclasses ---
@dataclass(frozen=True)
class MediaAsset:
    """word/media/ 아래의 이미지 한 개. 생성 후 변경되지 않습니다."""
    id: str  # 순차 ID (img_0, img_1, ...)
    filename: str  # 원본 media 엔트리 파일명
    data_b64: str  # 바이너리의 base64 표현
    content_type: str  # 확장자로 추정한 MIME 타입
    relationship_id: Optional[str] = None  # 이 파일을 가리키는 첫 rId
    width: Optional[int] = None  # 픽셀 단위 (식별 가능한 경우)
    height: Optional[int] = None

    def raw_bytes(self) -> bytes:
        return base64.b64decode(self.data_b64) if self.data_b64 else b""

    @property
    def is_web_compatible(self) -> bool:
        return self.content_type in WEB_IMAGE_TYPES

    def to_data_url(self) -> str:
        if not self.data_b64:
            return ""
        return f"data:{self.content_type};base64,{self.data_b64}"

    def to_dict(self) -> dict:
        payload = {
            "id": self.id,
            "filename": self.filename,
            "base64": self.data_b64,
            "contentType": self.content_type,
            "rId": self.relationship_id or "",
        }
        if self.width is not None and self.height is not None:
            payload["width"] = self.width
            payload["height"] = self.height
        return payload

    @staticmethod
    def from_dict(data: dict) -> "MediaAsset":
        return MediaAsset(
            id=data.get("id", ""),
            filename=data.get("filename", ""),
            data_b64=data.get("base64", data.get("data_b64", "")),
            content_type=data.get("contentType", data.get("content_type", "image/png")),
            relationship_id=data.get("rId", data.get("relationship_id")) or None,
            width=data.get("width"),
            height=data.get("height"),
        )


@dataclass(frozen=True)
class ParagraphRecord:
    """평탄화된 문단 한 개 (정규화된 텍스트 + 포함된 이미지 rId)."""
    text: str  # Run 텍스트를 이어 붙여 정규화한 문단 텍스트
    image_rids: tuple = ()  # 문단에 포함된 이미지 rId (순서 유지, 중복 없음)
    doc_index: Optional[int] = None  # 문서 내 원본 문단 순서


@dataclass(frozen=True)
class SectionRange:
    """문단 목록 위의 반열린 구간 [start, end)."""
    part: int
    start: int
    end: int

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    def indices(self) -> range:
        return range(self.start, max(self.start, self.end))


@dataclass
class QuestionOptionRecord:
    letter: str
    text: str


@dataclass
class ParsedQuestion:
    """한 파트 안에서 파싱된 문항 (전역 번호 부여 전)."""
    local_number: int  # 원문의 "Câu N" 번호
    part: int  # 1, 2, 3
    question_type: str
    text: str = ""
    options: List[QuestionOptionRecord] = field(default_factory=list)
    correct_answer: Optional[str] = None
    images: List[MediaAsset] = field(default_factory=list)
    solution: str = ""

    def attach_image(self, asset: MediaAsset) -> None:
        if all(img.id != asset.id for img in self.images):
            self.images.append(asset)


# --- Parser Abstract Class ---
class BaseParser(ABC):
    def __init__(self) -> None:
        self.supported_formats: List[str] = []

    def can_handle(self, file_path: Union[str, Path]) -> bool:
        return Path(file_path).suffix.lower() in self.supported_formats

    @abstractmethod
    async def parse(self, source: Union[str, Path, bytes], title: Optional[str] = None) -> ParseResult:
        """문서 파싱 (추상 메서드)"""
        ...
