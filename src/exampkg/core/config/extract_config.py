# exampkg/core/config/extract_config.py
# docx 시험지 추출 파이프라인 설정. 기본값은 코드에, 운영 환경에서는 환경 변수로 덮어쓴다.
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

log = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}

T = TypeVar("T")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def _env_value(name: str, default: T, cast: Callable[[str], T]) -> T:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        log.warning(f"환경 변수 {name}={raw!r} 값을 해석할 수 없어 기본값 {default!r}을 사용합니다.")
        return default


@dataclass
class ExtractConfig:
    default_time_limit: int = 90  # 시험 시간을 찾지 못했을 때 (분)
    default_title: str = "Đề thi"
    probe_image_size: bool = True  # Pillow로 이미지 크기 측정
    http_timeout: float = 30.0  # URL 소스 다운로드 제한 시간 (초)
    detect_time_limit: bool = True  # 머리말의 "Thời gian làm bài: N phút" 탐지

    @classmethod
    def from_env(cls, base: Optional["ExtractConfig"] = None) -> "ExtractConfig":
        base = base or cls()
        return cls(
            default_time_limit=_env_value("EXAM_DEFAULT_TIME_LIMIT", base.default_time_limit, int),
            default_title=os.getenv("EXAM_DEFAULT_TITLE") or base.default_title,
            probe_image_size=_env_flag("EXAM_PROBE_IMAGE_SIZE", base.probe_image_size),
            http_timeout=_env_value("EXAM_HTTP_TIMEOUT", base.http_timeout, float),
            detect_time_limit=_env_flag("EXAM_DETECT_TIME_LIMIT", base.detect_time_limit),
        )
