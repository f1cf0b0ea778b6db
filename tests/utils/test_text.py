from kirokun.utils.text import cell_text, normalize_name, split_csv


def test_normalize_name_removes_all_whitespace():
    """正常系: 全角スペースを含む空白を除去し小文字化すること"""
    assert normalize_name("山田　太郎 ") == "山田太郎"
    assert normalize_name(" Sato  Ken ") == "satoken"
    assert normalize_name(None) == ""


def test_cell_text():
    assert cell_text("  Alpha ") == "Alpha"
    assert cell_text(12) == "12"
    assert cell_text(None) == ""


def test_split_csv_skips_blank_items():
    assert split_csv(" Beta, Gamma ,,") == ["Beta", "Gamma"]
    assert split_csv("") == []
