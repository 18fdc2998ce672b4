"""身份核验工具包.

按扫码编码或证件号查询人员，并给出入场资格判定。
"""

from .models import (
    DependentVerdict,
    EligibilityVerdict,
    GuestVerdict,
    LookupQuery,
    MemberVerdict,
    SponsorDependent,
    UnknownVerdict,
    parse_verdict,
)
from .resolver import DirectoryBackend, IdentityResolver

__all__ = [
    "DependentVerdict",
    "DirectoryBackend",
    "EligibilityVerdict",
    "GuestVerdict",
    "IdentityResolver",
    "LookupQuery",
    "MemberVerdict",
    "SponsorDependent",
    "UnknownVerdict",
    "parse_verdict",
]
