import io
import zipfile
from xml.sax.saxutils import escape

import pytest
from PIL import Image

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"

_DOC_HEAD = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    f'<w:document xmlns:w="{W_NS}"'
    ' xmlns:wp="http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing"'
    ' xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main"'
    ' xmlns:pic="http://schemas.openxmlformats.org/drawingml/2006/picture"'
    ' xmlns:v="urn:schemas-microsoft-com:vml"'
    ' xmlns:o="urn:schemas-microsoft-com:office:office"'
    ' xmlns:r="http://schemas.openxmlformats.org/officeDocument/2006/relationships">'
    "<w:body>"
)
_DOC_TAIL = "</w:body></w:document>"


def drawing_run(rid: str) -> str:
    return (
        "<w:r><w:drawing><wp:inline><a:graphic><a:graphicData>"
        f'<pic:pic><pic:blipFill><a:blip r:embed="{rid}"/></pic:blipFill></pic:pic>'
        "</a:graphicData></a:graphic></wp:inline></w:drawing></w:r>"
    )


def vml_run(rid: str) -> str:
    return f'<w:r><w:pict><v:shape><v:imagedata r:id="{rid}"/></v:shape></w:pict></w:r>'


def text_run(text: str) -> str:
    return f'<w:r><w:t xml:space="preserve">{escape(text)}</w:t></w:r>'


def paragraph_xml(item) -> str:
    """str → 텍스트 문단, (str, [rid, ...]) → 텍스트 + 그림 Run."""
    if isinstance(item, str):
        return f"<w:p>{text_run(item)}</w:p>"
    text, rids = item
    runs = text_run(text) if text else ""
    runs += "".join(drawing_run(rid) for rid in rids)
    return f"<w:p>{runs}</w:p>"


def document_xml(items) -> bytes:
    body = "".join(item if isinstance(item, str) and item.startswith("<w:") else paragraph_xml(item) for item in items)
    return (_DOC_HEAD + body + _DOC_TAIL).encode("utf-8")


def rels_xml(relationships) -> bytes:
    rows = "".join(
        f'<Relationship Id="{rid}" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/image" Target="{target}"/>'
        for rid, target in relationships.items()
    )
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
        + rows
        + "</Relationships>"
    ).encode("utf-8")


def png_bytes(width: int = 4, height: int = 3, color=(255, 0, 0)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def build_docx(items, media=None, relationships=None, include_rels=True, include_document=True, raw_document=None) -> bytes:
    """
    items: 문단 목록 (paragraph_xml 형식 또는 원시 "<w:..." XML 조각)
    media: {"image1.png": bytes, ...} → word/media/
    relationships: {"rId5": "media/image1.png", ...}
    """
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("[Content_Types].xml", '<?xml version="1.0"?><Types/>')
        if include_document:
            zf.writestr("word/document.xml", raw_document if raw_document is not None else document_xml(items))
        if include_rels:
            zf.writestr("word/_rels/document.xml.rels", rels_xml(relationships or {}))
        for name, blob in (media or {}).items():
            zf.writestr(f"word/media/{name}", blob)
    return buf.getvalue()


SAMPLE_ITEMS = [
    "SỞ GIÁO DỤC VÀ ĐÀO TẠO",
    "Thời gian làm bài: 50 phút",
    "PHẦN 1. TRẮC NGHIỆM",
    "Câu 1. Giá trị của $2+2$ là?",
    "A. 3",
    "B. 4",
    "C. 5",
    "D. 6",
    "Chọn B",
    ("Câu 2. Cho hình vẽ bên. Chọn khẳng định đúng", ["rId7"]),
    "A. x < 1",
    "B. x > 1",
    "C. x = 1",
    "D. Không xác định",
    "Lời giải",
    "Chọn C",
    "PHẦN 2. ĐÚNG SAI",
    "Câu 1. Cho hàm số $y = x^2$.",
    "a) Hàm số đồng biến trên $(0; +\\infty)$",
    "b) Hàm số có giá trị nhỏ nhất bằng 0",
    "c) Đồ thị đi qua điểm (1; 1)",
    "d) Hàm số lẻ",
    "PHẦN 3. TRẢ LỜI NGẮN",
    "Câu 1. Tính $\\sqrt{16}$.",
    "Đáp án: 4",
]


@pytest.fixture
def sample_png():
    return png_bytes()


@pytest.fixture
def sample_docx(sample_png):
    return build_docx(
        SAMPLE_ITEMS,
        media={"image1.png": sample_png},
        relationships={"rId7": "media/image1.png"},
    )
