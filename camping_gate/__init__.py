"""营地门岗入场控制客户端."""

__version__ = "0.1.0"
