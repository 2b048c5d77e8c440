from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union
from urllib.parse import urlparse

import httpx

from exampkg.core.parser import MediaAsset

Source = Union[str, Path, bytes, bytearray]


# General FS helpers
def ensure_dir(p: Path) -> Path:
    """디렉터리가 존재하도록 보장한다.

    매개변수:
        p: 생성(보장)할 디렉터리 경로.

    반환값:
        입력과 동일한 경로 `p` (존재하도록 생성 후 반환).
    """
    p.mkdir(parents=True, exist_ok=True)
    return p


def write_json_output(data: Dict[str, Any], path: Path) -> None:
    """딕셔너리를 JSON 파일로 저장한다.

    상위 디렉터리를 먼저 생성한 뒤, UTF-8 인코딩과 들여쓰기를 적용해
    사람이 읽기 쉬운 JSON으로 기록한다.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def load_json(path: Path) -> Any:
    """`path`로부터 JSON을 읽어 파싱한다."""
    return json.loads(path.read_text(encoding="utf-8"))


def is_url(source: Any) -> bool:
    if not isinstance(source, str):
        return False
    return urlparse(source).scheme in {"http", "https"}


def source_title(source: Source) -> Optional[str]:
    """경로/URL 소스의 파일 stem을 제목 후보로 반환한다. 바이트 입력이면 None."""
    if isinstance(source, (bytes, bytearray)):
        return None
    if is_url(source):
        name = Path(urlparse(str(source)).path).stem
        return name or None
    return Path(source).stem or None


async def read_source(
    source: Source,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 30.0,
) -> bytes:
    """docx 원본 바이트를 읽는다.

    - bytes: 그대로 반환
    - http(s) URL: httpx로 다운로드 (HTTP 오류는 그대로 전파)
    - 그 외: 파일 경로로 간주하고 스레드에서 읽는다
    """
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if is_url(source):
        if client is not None:
            response = await client.get(str(source), timeout=timeout, follow_redirects=True)
            response.raise_for_status()
            return response.content
        async with httpx.AsyncClient() as own_client:
            response = await own_client.get(str(source), timeout=timeout, follow_redirects=True)
            response.raise_for_status()
            return response.content
    return await asyncio.to_thread(Path(source).read_bytes)


def exam_output_paths(output_dir: Path, basename: str) -> Dict[str, Path]:
    """파이프라인 산출물 경로를 구성한다.

    반환값:
        `exam`, `validation`, `media` 키를 가지는 경로 매핑.
    """
    return {
        "exam": output_dir / f"{basename}_exam.json",
        "validation": output_dir / f"{basename}_validation.json",
        "media": output_dir / "_media",
    }


def save_media_assets(assets: Iterable[MediaAsset], dest_dir: Path) -> List[Path]:
    """이미지 바이너리를 `dest_dir`에 기록한다. 같은 파일명은 `<stem>_<n><suffix>`로 구분한다."""
    written: List[Path] = []
    name_counts: Dict[str, int] = {}
    for asset in assets:
        base_name = asset.filename or f"{asset.id}.bin"
        count = name_counts.get(base_name, 0)
        filename = base_name
        if count:
            stem = Path(base_name).stem or base_name
            filename = f"{stem}_{count}{Path(base_name).suffix}"
        name_counts[base_name] = count + 1

        ensure_dir(dest_dir)
        dest_path = dest_dir / filename
        dest_path.write_bytes(asset.raw_bytes())
        written.append(dest_path)
    return written
