import asyncio
import base64

import pytest
from conftest import build_docx, png_bytes

from exampkg.core.config.extract_config import ExtractConfig
from exampkg.core.exam_types import ExamData, QuestionType
from exampkg.core.io import load_json
from exampkg.core.parser import ExamParseError
from exampkg.pipelines.exam_parsing_pipeline import DocxExamParser, ExamParsingPipeline, parse_exam_bytes


def test_end_to_end_sample(sample_docx, sample_png):
    exam = parse_exam_bytes(sample_docx, title="Đề thi thử")

    assert exam.title == "Đề thi thử"
    assert exam.time_limit == 50
    assert [q.number for q in exam.questions] == [101, 102, 201, 301]
    assert [s.section_type for s in exam.sections] == [
        QuestionType.MULTIPLE_CHOICE,
        QuestionType.TRUE_FALSE,
        QuestionType.SHORT_ANSWER,
    ]

    q101 = exam.question_by_number(101)
    assert q101.text == "Giá trị của $2+2$ là?"
    assert q101.correct_answer == "B"
    assert [(o.letter, o.text) for o in q101.options] == [("A", "3"), ("B", "4"), ("C", "5"), ("D", "6")]

    q102 = exam.question_by_number(102)
    assert q102.correct_answer == "C"
    assert q102.options[0].text == "x &lt; 1"
    assert [img.filename for img in q102.images] == ["image1.png"]
    assert base64.b64decode(q102.images[0].data_b64) == sample_png

    q201 = exam.question_by_number(201)
    assert [o.letter for o in q201.options] == ["a", "b", "c", "d"]
    assert q201.correct_answer is None

    assert exam.question_by_number(301).correct_answer == "4"
    assert exam.answers == {101: "B", 102: "C", 301: "4"}
    assert len(exam.images) == 1


def test_title_defaults_to_config(sample_docx):
    exam = parse_exam_bytes(sample_docx, config=ExtractConfig(default_title="Mặc định", detect_time_limit=False))
    assert exam.title == "Mặc định"
    assert exam.time_limit == 90


def test_true_false_only_exam():
    data = build_docx(["PHẦN 2. ĐÚNG SAI", "Câu 1. Xét", "a) một", "b) hai"])
    exam = parse_exam_bytes(data)
    assert [q.number for q in exam.questions] == [201]
    assert exam.answers == {}


def test_out_of_order_questions_sorted_within_part():
    data = build_docx(["PHẦN 1", "Câu 5. năm", "Chọn A", "Câu 3. ba", "Chọn C"])
    exam = parse_exam_bytes(data)
    assert [q.number for q in exam.questions] == [103, 105]


def test_parse_is_repeatable(sample_docx):
    first = parse_exam_bytes(sample_docx, title="T").to_dict()
    second = parse_exam_bytes(sample_docx, title="T").to_dict()
    assert first == second


def test_not_a_zip_is_fatal():
    result = DocxExamParser().parse_bytes(b"hello")
    assert not result.success
    assert result.content is None
    with pytest.raises(ExamParseError):
        parse_exam_bytes(b"hello")


def test_missing_document_is_fatal():
    with pytest.raises(ExamParseError):
        parse_exam_bytes(build_docx([], include_document=False))


def test_malformed_document_xml_is_fatal():
    with pytest.raises(ExamParseError):
        parse_exam_bytes(build_docx([], raw_document=b"<w:document><oops"))


def test_missing_rels_degrades_but_keeps_questions():
    data = build_docx(
        ["PHẦN 1", ("Câu 1. Xem hình", ["rId7"]), "Chọn A"],
        media={"image1.png": png_bytes()},
        include_rels=False,
    )
    result = DocxExamParser().parse_bytes(data)
    assert result.success
    exam = result.content
    assert exam.questions[0].images == []
    assert len(exam.images) == 1
    assert sum("rels" in w or "관계 파일" in w for w in result.warnings) == 1
    assert any("rId7" in w for w in result.warnings)


def test_missing_headers_produce_warnings():
    result = DocxExamParser().parse_bytes(build_docx(["Câu 1. Không có tiêu đề", "Chọn D"]))
    assert result.success
    assert result.content.answers == {101: "D"}
    assert any("PHẦN 2" in w for w in result.warnings)
    assert any("PHẦN 3" in w for w in result.warnings)


def test_zero_question_document_still_parses():
    result = DocxExamParser().parse_bytes(build_docx(["Chỉ có lời dẫn"]))
    assert result.success
    assert result.content.questions == []


def test_async_parse_uses_file_stem_as_title(tmp_path, sample_docx):
    path = tmp_path / "de_thi_toan.docx"
    path.write_bytes(sample_docx)
    result = asyncio.run(DocxExamParser().parse(path))
    assert result.success
    assert result.content.title == "de_thi_toan"


def test_async_parse_missing_file(tmp_path):
    result = asyncio.run(DocxExamParser().parse(tmp_path / "khong_co.docx"))
    assert not result.success


def test_pipeline_writes_outputs(tmp_path, sample_docx):
    src = tmp_path / "de_1.docx"
    src.write_bytes(sample_docx)
    out = tmp_path / "out"

    res = asyncio.run(ExamParsingPipeline().run(src, out, save_media=True))

    exam_payload = load_json(out / "de_1_exam.json")
    assert exam_payload["timeLimit"] == 50
    assert exam_payload["answers"] == {"101": "B", "102": "C", "301": "4"}
    assert ExamData.from_dict(exam_payload).question_by_number(102).images[0].filename == "image1.png"

    validation = load_json(out / "de_1_validation.json")
    assert validation["valid"] is True
    assert validation["counts"] == {"1": 2, "2": 1, "3": 1}

    assert (out / "_media" / "image1.png").read_bytes() == png_bytes()
    assert res["media_dir"].endswith("_media")


def test_pipeline_raises_on_fatal(tmp_path):
    src = tmp_path / "broken.docx"
    src.write_bytes(b"not zip")
    with pytest.raises(ExamParseError):
        asyncio.run(ExamParsingPipeline().run(src, tmp_path / "out"))


def test_question_inside_table_cell():
    png = png_bytes()
    cell = (
        "<w:tbl><w:tr><w:tc><w:p><w:r><w:t>Câu 1. Bảng số liệu</w:t></w:r></w:p></w:tc></w:tr></w:tbl>"
    )
    data = build_docx(["PHẦN 3", cell, "Đáp án: 12"], media={"image1.png": png}, relationships={"rId1": "media/image1.png"})
    exam = parse_exam_bytes(data)
    assert exam.questions[0].text == "Bảng số liệu"
    assert exam.answers == {301: "12"}
