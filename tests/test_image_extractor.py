import base64

from conftest import build_docx, png_bytes, rels_xml

from exampkg.components.parser.archive_reader import open_docx_archive
from exampkg.components.parser.image_extractor import (
    ImageResolver,
    content_type_for,
    extract_images,
    parse_relationships,
)
from exampkg.core.parser import MediaAsset, StageStatus


def test_open_archive_rejects_non_zip():
    res = open_docx_archive(b"not a zip at all")
    assert res.is_fatal
    assert res.value is None


def test_open_archive_requires_document_xml():
    res = open_docx_archive(build_docx([], include_document=False))
    assert res.is_fatal
    assert "word/document.xml" in res.error


def test_open_archive_without_rels_is_degraded():
    res = open_docx_archive(build_docx(["Câu 1. x"], include_rels=False))
    assert res.status is StageStatus.DEGRADED
    assert res.value.rels_xml is None
    assert res.warnings


def test_parse_relationships_keeps_media_targets_only():
    xml = rels_xml({
        "rId1": "styles.xml",
        "rId5": "media/image1.png",
        "rId6": "../media/image2.jpeg",
    })
    res = parse_relationships(xml)
    assert res.status is StageStatus.OK
    assert res.value == {"rId5": "image1.png", "rId6": "image2.jpeg"}


def test_parse_relationships_attribute_order_independent():
    xml = b'<Relationships><Relationship Target="media/a.gif" Type="x" Id="rId9"/></Relationships>'
    assert parse_relationships(xml).value == {"rId9": "a.gif"}


def test_parse_relationships_missing_file_is_silent():
    res = parse_relationships(None)
    assert res.status is StageStatus.OK
    assert res.value == {}
    assert res.warnings == []


def test_parse_relationships_empty_file_degrades():
    res = parse_relationships(b"")
    assert res.status is StageStatus.DEGRADED
    assert res.value == {}


def test_content_type_lookup():
    assert content_type_for("image1.PNG") == "image/png"
    assert content_type_for("a.jpg") == "image/jpeg"
    assert content_type_for("a.jpeg") == "image/jpeg"
    assert content_type_for("a.webp") == "image/webp"
    assert content_type_for("a.emf") == "image/png"
    assert content_type_for("noext") == "image/png"


def test_extract_images_every_media_entry_becomes_asset():
    png = png_bytes(5, 7)
    data = build_docx(
        ["Câu 1. x"],
        media={"image1.png": png, "image2.emf": b"\x01\x00\x00\x00"},
        relationships={"rId3": "media/image1.png"},
    )
    archive = open_docx_archive(data).value
    res = extract_images(archive)
    assets, rel_map = res.value

    assert [a.id for a in assets] == ["img_0", "img_1"]
    first, second = assets
    assert first.filename == "image1.png"
    assert first.relationship_id == "rId3"
    assert base64.b64decode(first.data_b64) == png
    assert (first.width, first.height) == (5, 7)

    # 관계 없는 엔트리도 포함, 모르는 확장자는 image/png + 경고
    assert second.relationship_id is None
    assert second.content_type == "image/png"
    assert second.width is None
    assert res.status is StageStatus.DEGRADED
    assert any("emf" in w for w in res.warnings)
    assert rel_map == {"rId3": "image1.png"}


def test_extract_images_probe_disabled():
    data = build_docx([], media={"image1.png": png_bytes()}, relationships={"rId1": "media/image1.png"})
    assets, _ = extract_images(open_docx_archive(data).value, probe_size=False).value
    assert assets[0].width is None and assets[0].height is None


def test_first_relationship_wins_for_shared_file():
    data = build_docx(
        [],
        media={"image1.png": png_bytes()},
        relationships={"rId2": "media/image1.png", "rId8": "media/image1.png"},
    )
    assets, rel_map = extract_images(open_docx_archive(data).value).value
    assert assets[0].relationship_id == "rId2"

    resolver = ImageResolver(assets, rel_map)
    assert resolver.resolve("rId2") is assets[0]
    assert resolver.resolve("rId8") is assets[0]


def test_resolver_unknown_rid_and_filename_fallback():
    asset = MediaAsset(id="img_0", filename="image3.png", data_b64="", content_type="image/png")
    resolver = ImageResolver([asset], {})
    assert resolver.resolve("rId404") is None
    assert resolver.resolve("media/image3.png") is asset


def test_media_asset_data_url():
    data = build_docx([], media={"pic.jpg": b"\xff\xd8\xff"}, relationships={})
    assets, _ = extract_images(open_docx_archive(data).value).value
    asset = assets[0]
    assert asset.is_web_compatible
    assert asset.to_data_url().startswith("data:image/jpeg;base64,")
    assert asset.raw_bytes() == b"\xff\xd8\xff"
