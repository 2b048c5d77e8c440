import unicodedata

from exampkg.components.sanitizer.text_normalizer import (
    escape_html_preserve_latex,
    normalize_latex,
    normalize_paragraph_text,
    normalize_vietnamese,
    strip_latex,
)


def test_normalize_vietnamese_composes_nfd():
    decomposed = unicodedata.normalize("NFD", "Câu hỏi")
    assert decomposed != "Câu hỏi"
    assert normalize_vietnamese(decomposed) == "Câu hỏi"


def test_normalize_latex_rewrites_delimiters():
    assert normalize_latex(r"Tính \(x^2\) và \[y = 1\]") == "Tính $x^2$ và $$y = 1$$"


def test_normalize_latex_collapses_dollar_runs_and_whitespace():
    assert normalize_latex("  $$$a$$$   b\t\nc ") == "$$a$$ b c"


def test_normalize_paragraph_text_empty():
    assert normalize_paragraph_text("") == ""
    assert normalize_paragraph_text("   ") == ""


def test_escape_preserves_math_spans():
    text = "Nếu $a < b$ và $$x > 0 & y$$ thì 1 < 2 & 3 > 2"
    escaped = escape_html_preserve_latex(text)
    assert escaped == "Nếu $a < b$ và $$x > 0 & y$$ thì 1 &lt; 2 &amp; 3 &gt; 2"


def test_escape_leaves_quotes_alone():
    assert escape_html_preserve_latex('He said "hi" & left') == 'He said "hi" &amp; left'


def test_escape_without_math():
    assert escape_html_preserve_latex("<b>") == "&lt;b&gt;"
    assert escape_html_preserve_latex("") == ""


def test_strip_latex():
    assert strip_latex("Tính $x^2$ và $$y$$") == "Tính x^2 và y"
