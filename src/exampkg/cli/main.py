# exampkg/cli/main.py
from __future__ import annotations
import argparse, asyncio, json, logging, sys
from pathlib import Path

from exampkg.components.analyzer.exam_validator import validate_exam_data
from exampkg.components.parser.xml_parser import DocxXmlParser
from exampkg.core.config.extract_config import ExtractConfig
from exampkg.core.io import load_json
from exampkg.core.parser import ExamParseError
from exampkg.pipelines.exam_parsing_pipeline import DocxExamParser, ExamParsingPipeline

DEFAULT_OUT_DIR = Path("exam_out")


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="DOCX 시험지 → ExamData JSON | 또는 파싱 결과(inspect) 확인")

    ap.add_argument("raw", help="DOCX 파일, 디렉터리 경로 또는 http(s) URL")
    ap.add_argument("--out", default=str(DEFAULT_OUT_DIR), help=f"출력 디렉터리 (기본: {DEFAULT_OUT_DIR})")
    ap.add_argument("--title", help="시험 제목 (기본: 파일명)")

    # 디렉터리 처리 모드: 전체 또는 하나 선택(비대화식)
    grp = ap.add_mutually_exclusive_group()
    grp.add_argument("--all", action="store_true", help="디렉터리 입력 시 모든 DOCX 처리")
    grp.add_argument("--one", help="디렉터리 입력 시 하나만 처리(파일명 또는 stem). 예: de_thi_1.docx")

    ap.add_argument("--save-media", action="store_true", help="이미지 파일을 <out>/_media 아래에 저장")

    # Inspect 모드: 파일을 쓰지 않고 파싱 결과만 출력
    ap.add_argument("--inspect", choices=["summary", "questions", "answers", "validate", "paragraphs"],
                    help="파싱 결과 확인 모드 (출력 파일을 만들지 않음)")
    ap.add_argument("--json", action="store_true", help="요약 대신 원본 JSON을 stdout으로 출력")
    ap.add_argument("--log-level", default="WARNING", help="로그 레벨 (기본: WARNING)")
    return ap.parse_args(argv)


def _resolve_one_from_dir(dir_path: Path, hint: str) -> Path | None:
    """디렉터리 내부에서 hint로 지정된 하나의 .docx를 찾아 Path 반환."""
    cand = Path(hint)
    if cand.is_file():
        return cand.resolve()
    cand2 = dir_path / hint
    if cand2.is_file():
        return cand2.resolve()
    matches = [p for p in dir_path.rglob("*.docx") if p.name == hint]
    if len(matches) == 1:
        return matches[0].resolve()
    matches = [p for p in dir_path.rglob("*.docx") if p.stem == hint]
    if len(matches) == 1:
        return matches[0].resolve()
    return None


def _print(payload, as_json: bool, summary: str) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        print(summary)


def _inspect(a, source, config: ExtractConfig) -> int:
    if a.inspect == "paragraphs":
        res = asyncio.run(DocxXmlParser().parse(source))
        if not res.success:
            print(f"error: {res.error}", file=sys.stderr)
            return 1
        paras = res.content["paragraphs"]
        if a.json:
            print(json.dumps([{"text": p.text, "image_rids": list(p.image_rids), "doc_index": p.doc_index} for p in paras],
                             ensure_ascii=False, indent=2))
        else:
            for p in paras:
                imgs = f"  [img: {', '.join(p.image_rids)}]" if p.image_rids else ""
                print(f"{p.doc_index:>4}: {p.text}{imgs}")
        return 0

    res = asyncio.run(DocxExamParser(config).parse(source, title=a.title))
    if not res.success:
        print(f"error: {res.error}", file=sys.stderr)
        return 1
    exam = res.content
    report = validate_exam_data(exam, warnings=res.warnings)

    if a.inspect == "summary":
        counts = ", ".join(f"PHẦN {k}={v}" for k, v in sorted(report.counts.items())) or "-"
        _print(
            {"title": exam.title, "timeLimit": exam.time_limit, "questions": len(exam.questions),
             "answers": len(exam.answers), "images": len(exam.images), "counts": report.to_dict()["counts"]},
            a.json,
            f"{exam.title}: {len(exam.questions)} questions ({counts}), {len(exam.answers)} answers, "
            f"{len(exam.images)} images, {exam.time_limit} phút",
        )
    elif a.inspect == "questions":
        if a.json:
            print(json.dumps([q.to_dict() for q in exam.questions], ensure_ascii=False, indent=2))
        else:
            for q in exam.questions:
                opts = " | ".join(f"{o.letter}) {o.text}" for o in q.options)
                print(f"[{q.number}] {q.text}" + (f"\n      {opts}" if opts else ""))
    elif a.inspect == "answers":
        _print(
            {str(k): v for k, v in exam.answers.items()},
            a.json,
            "\n".join(f"{k}: {v}" for k, v in exam.answers.items()) or "(no answers)",
        )
    elif a.inspect == "validate":
        lines = [f"valid: {report.valid}"] + [f"error: {e}" for e in report.errors] + [f"warn: {w}" for w in report.warnings]
        _print(report.to_dict(), a.json, "\n".join(lines))
    return 0 if report.valid else 1


def main(argv=None):
    a = parse_args(argv)
    logging.basicConfig(level=getattr(logging, str(a.log_level).upper(), logging.WARNING),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = ExtractConfig.from_env()

    is_remote = a.raw.startswith(("http://", "https://"))
    raw_path = None if is_remote else Path(a.raw)
    if raw_path is not None and not raw_path.exists():
        print(f"error: 입력 경로가 존재하지 않습니다: {a.raw}", file=sys.stderr)
        return 2

    if a.inspect:
        if raw_path is not None and raw_path.is_dir():
            if not a.one:
                print("error: --inspect 모드에서 디렉터리 입력 시 --one <파일>을 지정해야 합니다.", file=sys.stderr)
                return 2
            picked = _resolve_one_from_dir(raw_path, a.one)
            if not picked:
                print(f"error: --one 으로 지정한 파일을 찾지 못했습니다: {a.one}", file=sys.stderr)
                return 2
            return _inspect(a, picked, config)
        return _inspect(a, a.raw if is_remote else raw_path, config)

    out_dir = Path(a.out).resolve()
    pipeline = ExamParsingPipeline(config=config)

    def _run_one(source) -> int:
        try:
            res = asyncio.run(pipeline.run(source, out_dir, title=a.title, save_media=a.save_media))
        except ExamParseError as e:
            print(f"[fail] {e}", file=sys.stderr)
            return 1
        report = load_json(Path(res["validation_output"]))
        status = "ok" if report.get("valid") else "invalid"
        print(f"[{status}] {res['exam_output']}")
        for err in report.get("errors", []):
            print(f"  error: {err}", file=sys.stderr)
        return 0 if report.get("valid") else 1

    if is_remote:
        return _run_one(a.raw)

    if raw_path.is_dir():
        # 디렉터리 내 모든 .docx 수집(~$, 임시 파일 제외)
        candidates = [p for p in raw_path.rglob("*.docx") if p.is_file() and not p.name.startswith("~$")]
        if not candidates:
            print(f"warn: DOCX 파일을 찾지 못했습니다: {raw_path}")
            return 0
        if a.all:
            codes = [_run_one(docx_file) for docx_file in sorted(candidates)]
            return max(codes)
        if a.one:
            picked = _resolve_one_from_dir(raw_path, a.one)
            if not picked:
                print(f"error: --one 으로 지정한 파일을 찾지 못했습니다: {a.one}", file=sys.stderr)
                return 2
            return _run_one(picked)
        print("error: 디렉터리 입력 시 --all 또는 --one <파일> 중 하나를 지정해야 합니다.", file=sys.stderr)
        return 2

    if raw_path.suffix.lower() != ".docx":
        print(f"error: DOCX 파일이 아닙니다: {raw_path}", file=sys.stderr)
        return 2
    return _run_one(raw_path)


def entry_point():
    """콘솔 스크립트 진입점. setuptools의 [project.scripts]와 호환을 위해 제공."""
    return main()


if __name__ == "__main__":
    sys.exit(main())
