import re

from camping_gate.constants.constants import LookupKind

# 纯数字视为证件号，其余非空文本视为扫码得到的不透明编码
_NATIONAL_ID = re.compile(r"^[0-9]+$")


class LookupMatcher:
    def classify(self, text: str):
        """返回 (查询方式, 去掉首尾空白的文本)；空白输入返回 None"""
        value = (text or "").strip()
        if not value:
            return None
        if _NATIONAL_ID.match(value):
            return LookupKind.NATIONAL_ID, value
        return LookupKind.SCAN_CODE, value
