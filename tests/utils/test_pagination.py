import base64

import pytest

from kirokun.core.exceptions import ValidationFailedError
from kirokun.utils.pagination import decode_token, encode_token


class TestContinuationToken:
    """継続トークンのテスト"""

    def test_token_preserves_partition_and_offset(self):
        """正常系: 日本語のパーティション名とオフセットを復元できること"""
        token = encode_token("記録_Archive_2025", 42)

        assert "=" not in token
        assert decode_token(token) == ("記録_Archive_2025", 42)

    @pytest.mark.parametrize("token", [
        "not-a-token",
        "%%%",
        base64.urlsafe_b64encode(b'{"p": "x"}').decode(),
        base64.urlsafe_b64encode(b'{"p": 1, "o": 2}').decode(),
        base64.urlsafe_b64encode(b'{"p": "x", "o": -1}').decode(),
        base64.urlsafe_b64encode(b'{"p": "x", "o": true}').decode(),
        base64.urlsafe_b64encode(b'[1, 2]').decode(),
    ])
    def test_malformed_token_is_rejected(self, token):
        """異常系: 不正なトークンは ValidationFailedError"""
        with pytest.raises(ValidationFailedError):
            decode_token(token)
