from typing import Any

from camping_gate.constants.constants import LookupKind
from camping_gate.utils.logging_config import get_logger

from .models import EligibilityVerdict, LookupQuery, parse_verdict

logger = get_logger(__name__)


class DirectoryBackend:
    """身份目录后端：按扫码编码或证件号返回核验数据（原始 JSON 结构）"""

    async def resolve_by_code(self, code: str) -> Any:
        raise NotImplementedError

    async def resolve_by_national_id(self, national_id: str) -> Any:
        raise NotImplementedError


class IdentityResolver:
    """
    身份核验.
    本身不持有状态；后端不可用时抛出 TransportError，与“未找到”的核验结果严格区分。
    """

    def __init__(self, backend: DirectoryBackend):
        self.backend = backend

    async def resolve(self, query: LookupQuery) -> EligibilityVerdict:
        logger.info(f"[IdentityResolver] 开始核验: {query.kind.name}={query.value}")

        if query.kind is LookupKind.NATIONAL_ID:
            payload = await self.backend.resolve_by_national_id(query.value)
        else:
            payload = await self.backend.resolve_by_code(query.value)

        verdict = parse_verdict(payload)
        logger.info(
            f"[IdentityResolver] 核验完成: allowed={verdict.allowed}, "
            f"reason={verdict.reason_code}, role={verdict.role.name}"
        )
        return verdict
