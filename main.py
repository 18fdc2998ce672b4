import argparse
import asyncio
import json
import os
import sys

from camping_gate.devices.camera import CV2_AVAILABLE
from camping_gate.entry_control.manager import EntryControlManager
from camping_gate.entry_control.tools import Command, create_tools
from camping_gate.errors import EntryControlError
from camping_gate.services.notifier import OperatorNotifier
from camping_gate.services.session import StaticTokenSession
from camping_gate.utils.config_manager import CONFIG_ENV_VAR, ConfigManager
from camping_gate.utils.logging_config import get_logger, setup_logging

logger = get_logger(__name__)

# 参数为整段剩余文本的命令
TEXT_ARGUMENTS = {
    "open": "notes",
    "close": "notes",
    "lookup": "text",
    "toggle": "person_id",
    "confirm": "observations",
    "history": "limit",
}


def parse_args():
    """
    解析命令行参数.
    """
    parser = argparse.ArgumentParser(description="营地门岗入场控制")
    parser.add_argument(
        "--mode",
        choices=["cli"],
        default="cli",
        help="运行模式：cli(命令行)",
    )
    parser.add_argument(
        "--backend",
        choices=["api", "local"],
        default=None,
        help="后端：api(远程接口) 或 local(本地数据库)，默认读取配置 BACKEND",
    )
    parser.add_argument("--venue", type=int, default=None, help="营地ID，默认读取配置 ENTRY_CONTROL.VENUE_ID")
    parser.add_argument("--config", default=None, help="配置文件路径")
    return parser.parse_args()


def print_operator_message(level: str, message: str):
    prefix = {"warning": "[!]", "error": "[x]"}.get(level, "[i]")
    print(f"{prefix} {message}")


async def run_cli(manager: EntryControlManager) -> int:
    commands = {}

    def add_tool(command: Command):
        commands[command.name] = command

    create_tools(add_tool)

    print("Comandos: " + ", ".join(sorted(commands)) + ", help, exit")
    print("Cualquier otro texto se busca como QR o DNI.")

    try:
        await manager.refresh_period()
    except EntryControlError as e:
        logger.warning(f"读取当前班次失败: {e.message}")

    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            break

        line = line.strip()
        if not line:
            continue
        name, _, rest = line.partition(" ")
        name = name.lower()

        if name in ("exit", "quit"):
            break
        if name == "help":
            for command in commands.values():
                print(f"  {command.name:<8} {command.description}")
            continue

        if name in commands:
            arguments = {}
            if rest.strip() and name in TEXT_ARGUMENTS:
                arguments[TEXT_ARGUMENTS[name]] = rest.strip()
            result = await commands[name].callback(arguments)
        else:
            result = await commands["lookup"].callback({"text": line})

        print(json.dumps(json.loads(result), ensure_ascii=False, indent=2))

    return 0


async def main():
    """
    主函数.
    """
    args = parse_args()
    if args.config:
        os.environ[CONFIG_ENV_VAR] = args.config

    config = ConfigManager.get_instance()
    setup_logging(config.get_config("LOGGING.LEVEL", "INFO"), config.get_config("LOGGING.FILE"))

    if args.backend:
        config.update_config("BACKEND", args.backend, save=False)
    if args.venue is not None:
        config.update_config("ENTRY_CONTROL.VENUE_ID", args.venue, save=False)

    logger.info("启动门岗入场控制客户端")
    if not CV2_AVAILABLE:
        logger.warning("OpenCV 未安装，扫码不可用，请手动输入二维码或证件号")

    session = StaticTokenSession(
        config.get_config("API.TOKEN"),
        on_expired=lambda: print_operator_message("error", "La sesión expiró. Iniciá sesión nuevamente."),
    )
    notifier = OperatorNotifier(sink=print_operator_message, logger=logger)

    try:
        manager = EntryControlManager.from_config(config, session=session, notifier=notifier)
    except EntryControlError as e:
        logger.error(f"初始化失败: {e.message}")
        return 1
    EntryControlManager.set_instance(manager)

    try:
        return await run_cli(manager)
    finally:
        await manager.shutdown()


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("程序被用户中断")
        sys.exit(0)
    except Exception as e:
        logger.error(f"程序异常退出: {e}", exc_info=True)
        sys.exit(1)
