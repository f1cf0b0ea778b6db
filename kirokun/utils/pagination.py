"""
継続トークン

トークンは (パーティション名, そのパーティション内で消費済みの一致件数) を
URL-safe base64 の JSON として表したもの。サーバー側にカーソル状態は持たない。
"""
import base64
import binascii
import json
from typing import Tuple

from kirokun.core.exceptions import ValidationFailedError
from kirokun.messages import ja


def encode_token(partition: str, offset: int) -> str:
    payload = json.dumps({"p": partition, "o": offset}, ensure_ascii=False, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")


def decode_token(token: str) -> Tuple[str, int]:
    """
    継続トークンを解析する

    Raises:
        ValidationFailedError: トークンの形式が不正な場合
    """
    try:
        padded = token + "=" * (-len(token) % 4)
        payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
        partition = payload["p"]
        offset = payload["o"]
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError) as e:
        raise ValidationFailedError(ja.PAGINATION_TOKEN_INVALID) from e

    if not isinstance(partition, str) or not isinstance(offset, int) or isinstance(offset, bool) or offset < 0:
        raise ValidationFailedError(ja.PAGINATION_TOKEN_INVALID)
    return partition, offset
