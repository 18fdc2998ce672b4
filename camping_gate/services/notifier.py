from typing import Callable, Optional


class OperatorNotifier:
    """
    负责把面向操作员的提示发布给界面层，避免业务层直接依赖具体的界面实现。
    """

    def __init__(self, sink: Optional[Callable[[str, str], None]] = None, logger: Optional[object] = None):
        self._sink = sink
        self._log = logger

    def publish(self, level: str, message: str):
        """
        level: "info" | "warning" | "error"
        """
        if self._log:
            getattr(self._log, level, self._log.info)(f"[Operator] {message}")
        if not self._sink:
            return
        try:
            self._sink(level, message)
        except Exception as e:
            if self._log:
                self._log.error(f"发布操作员提示失败: {e}")

