import re
from typing import Any

# 全角スペース(U+3000)を含む空白
_WHITESPACE = re.compile(r"[\s　]+")


def normalize_name(value: Any) -> str:
    """
    氏名比較用に正規化する（空白をすべて除去し小文字化）

    例: "山田　太郎 " -> "山田太郎"
    """
    if value is None:
        return ""
    return _WHITESPACE.sub("", str(value)).lower()


def cell_text(value: Any) -> str:
    """セル値を前後空白なしの文字列にする"""
    if value is None:
        return ""
    return str(value).strip()


def split_csv(value: Any) -> list[str]:
    """カンマ区切りのセル値を分割する（空要素は除外）"""
    return [part.strip() for part in cell_text(value).split(",") if part.strip()]
