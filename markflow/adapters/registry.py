"""Target identifier -> adapter mapping."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from markflow.adapters.base import PlatformAdapter
from markflow.adapters.wechat import WeChatAdapter
from markflow.adapters.zhihu import ZhihuAdapter
from markflow.config.models import MarkflowConfig
from markflow.core.content import AdapterResult, Metadata, Target
from markflow.errors import UnknownTargetError

ALL = "all"

_ADAPTER_MAP: dict[Target, type[PlatformAdapter]] = {
    Target.wechat: WeChatAdapter,
    Target.zhihu: ZhihuAdapter,
}


class AdapterRegistry:
    """One adapter instance per Target, fixed at construction.

    The mapping is read-only afterwards, so concurrent runs share it
    without locking. Nothing is cached between calls: ``adapt`` always
    re-transforms from the canonical HTML it is given.
    """

    def __init__(self, config: MarkflowConfig | None = None) -> None:
        self.config = config or MarkflowConfig()
        self._adapters: Mapping[Target, PlatformAdapter] = MappingProxyType(
            {target: cls(self.config) for target, cls in _ADAPTER_MAP.items()}
        )

    @property
    def targets(self) -> list[Target]:
        return list(self._adapters)

    def resolve(self, identifiers: Iterable[str | Target]) -> list[Target]:
        """Expand "all" and validate identifiers. Order follows first mention."""
        resolved: list[Target] = []
        known = [t.value for t in self._adapters]
        for ident in identifiers:
            name = ident.value if isinstance(ident, Target) else str(ident).strip().lower()
            if name == ALL:
                candidates = self.targets
            elif name in known:
                candidates = [Target(name)]
            else:
                raise UnknownTargetError(str(ident), known)
            for target in candidates:
                if target not in resolved:
                    resolved.append(target)
        if not resolved:
            raise UnknownTargetError("", known)
        return resolved

    def get(self, target: Target) -> PlatformAdapter:
        return self._adapters[target]

    def adapt(self, target: Target, canonical_html: str, metadata: Metadata) -> AdapterResult:
        return self.get(target).adapt_html(canonical_html, metadata)
