import enum
import functools
import inspect
import itertools
import json
import os
import shutil
import subprocess
import sys
import argparse
from collections.abc import Callable
from typing import ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")


class toolchain_error(RuntimeError):
    """构建流程中所有可预期错误的基类"""


class precondition_error(toolchain_error):
    """前置条件不满足，如配置文件缺失、不支持的操作系统等，不会重试"""


class command_error(toolchain_error):
    """外部命令执行失败"""

    command: str  # 失败的命令
    returncode: int  # 命令返回值

    def __init__(self, command: str, returncode: int, message: str | None = None) -> None:
        super().__init__(message or f'Command "{command}" failed with errno={returncode}.')
        self.command = command
        self.returncode = returncode


class toolchain_not_found_error(command_error):
    """构建声称成功，但找不到工具链安装目录"""


class smoke_test_error(command_error):
    """工具链已生成，但无法编译最简单的程序"""


class package_error(toolchain_error):
    """构建结束后压缩包缺失或损坏"""


class log_color(enum.StrEnum):
    """日志级别对应的终端颜色"""

    info = "\033[0;34m"
    success = "\033[0;32m"
    warning = "\033[1;33m"
    error = "\033[0;31m"
    reset = "\033[0m"


def _use_color(stream) -> bool:
    if "NO_COLOR" in os.environ:
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def _log(level: log_color, message: str) -> None:
    """输出带级别的日志，info和success输出到stdout，warning和error输出到stderr

    Args:
        level (log_color): 日志级别
        message (str): 日志内容
    """
    stream = sys.stderr if level in (log_color.warning, log_color.error) else sys.stdout
    tag = f"[{level.name.upper()}]"
    if _use_color(stream):
        tag = f"{level}{tag}{log_color.reset}"
    print(f"[toolchains] {tag} {message}", file=stream, flush=True)


def log_info(message: str) -> None:
    _log(log_color.info, message)


def log_success(message: str) -> None:
    _log(log_color.success, message)


def log_warning(message: str) -> None:
    _log(log_color.warning, message)


def log_error(message: str) -> None:
    _log(log_color.error, message)


def format_elapsed(seconds: float) -> str:
    """将耗时格式化为XmYs

    Args:
        seconds (float): 耗时，单位为秒

    Returns:
        str: 格式化后的字符串
    """
    total = int(seconds)
    return f"{total // 60}m{total % 60}s"


def format_size(size: int) -> str:
    """将字节数转换为便于阅读的大小，同ls -lh

    Args:
        size (int): 字节数

    Returns:
        str: 如"512B"、"1.5M"
    """
    value = float(size)
    for unit in ("B", "K", "M", "G", "T"):
        if value < 1024 or unit == "T":
            return f"{int(value)}{unit}" if unit == "B" else f"{value:.1f}{unit}"
        value /= 1024
    return f"{size}B"


def _support_dry_run(echo_fn: Callable[..., str | None] | None = None) -> Callable[[Callable[P, R]], Callable[P, R | None]]:
    """根据dry_run参数确定是否只回显命令而不执行，若fn没有dry_run参数则总是执行

    Args:
        echo_fn (Callable[..., str | None] | None, optional): 回调函数，返回要显示的命令字符串或None，无回调或返回None时不显示命令，所有参数需要能在主函数的参数列表中找到，默认为无回调.
    """

    def decorator(fn: Callable[P, R]) -> Callable[P, R | None]:
        signature = inspect.signature(fn)

        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R | None:
            bound_args = signature.bind(*args, **kwargs)
            bound_args.apply_defaults()
            if echo_fn:
                param_list: list = []
                for key in inspect.signature(echo_fn).parameters.keys():
                    assert (
                        key in bound_args.arguments
                    ), f"The param {key} of echo_fn is not in the param list of fn. Every param of echo_fn should be able to find in the param list of fn."
                    param_list.append(bound_args.arguments[key])
                echo = echo_fn(*param_list)
                if echo is not None:
                    print(echo, flush=True)
            dry_run = bound_args.arguments.get("dry_run", False)
            assert isinstance(dry_run, bool), f"The param dry_run must be a bool."
            if dry_run:
                return None
            return fn(*bound_args.args, **bound_args.kwargs)

        return wrapper

    return decorator


@_support_dry_run(lambda command, echo: f"[toolchains] Run command: {command}" if echo else None)
def run_command(
    command: str, ignore_error: bool = False, capture: bool = False, echo: bool = True, dry_run: bool = False
) -> subprocess.CompletedProcess[str] | None:
    """运行指定命令, 若不忽略错误, 则在命令执行出错时抛出command_error, 反之打印错误码

    Args:
        command (str): 要运行的命令
        ignore_error (bool, optional): 是否忽略错误. 默认不忽略错误.
        capture (bool, optional): 是否捕获命令输出，默认为不捕获.
        echo (bool, optional): 是否回显信息，设置为False将不回显任何信息，包括错误提示，默认为回显.
        dry_run (bool, optional): 是否只回显命令而不执行，默认为False.

    Raises:
        command_error: 命令执行失败且ignore_error为False时抛出异常

    Returns:
        None | subprocess.CompletedProcess[str]: 在命令正常执行结束后返回执行结果，否则返回None
    """

    if capture:
        pipe = subprocess.PIPE  # capture为True，不论是否回显都需要捕获输出
    elif echo:
        pipe = None  # 回显而不捕获输出则正常输出
    else:
        pipe = subprocess.DEVNULL  # 不回显又不捕获输出则丢弃输出
    try:
        result = subprocess.run(command, stdout=pipe, stderr=pipe, shell=True, check=True, text=True)
    except subprocess.CalledProcessError as e:
        if not ignore_error:
            raise command_error(command, e.returncode) from e
        if echo:
            print(f'[toolchains] Command "{command}" failed with errno={e.returncode}, but it is ignored.', flush=True)
        return None
    return result


@_support_dry_run(lambda path: f"[toolchains] Create directory {path}.")
def mkdir(path: str, remove_if_exist: bool = True, dry_run: bool = False) -> None:
    """创建目录

    Args:
        path (str): 要创建的目录
        remove_if_exist (bool, optional): 是否先删除已存在的同名目录. 默认先删除已存在的同名目录.
        dry_run (bool, optional): 是否只回显命令而不执行，默认为False.
    """
    if remove_if_exist and os.path.exists(path):
        shutil.rmtree(path)
    os.makedirs(path, exist_ok=True)


@_support_dry_run(lambda src, dst: f"[toolchains] Copy {src} -> {dst}.")
def copy(src: str, dst: str, dry_run: bool = False) -> None:
    """复制文件，目标存在时覆盖

    Args:
        src (str): 源路径
        dst (str): 目标路径
        dry_run (bool, optional): 是否只回显命令而不执行，默认为False.
    """
    dir = os.path.dirname(dst)
    if dir != "":
        os.makedirs(dir, exist_ok=True)
    shutil.copyfile(src, dst)


@_support_dry_run(lambda path: f"[toolchains] Remove {path} if path exists.")
def remove_if_exists(path: str, dry_run: bool = False) -> None:
    """如果指定路径存在则删除指定路径

    Args:
        path (str): 要删除的路径
        dry_run (bool, optional): 是否只回显命令而不执行，默认为False.
    """
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.remove(path)


class basic_configure:
    dry_run: bool  # 是否只回显命令而不执行

    def __init__(self, dry_run: bool = False) -> None:
        self.dry_run = dry_run

    @staticmethod
    def add_argument(parser: argparse.ArgumentParser) -> None:
        """为argparse添加--export、--import和--dry-run选项

        Args:
            parser (argparse.ArgumentParser): 命令行解析器
        """
        parser.add_argument("--export", dest="export_file", type=str, help="Export settings to specific file.")
        parser.add_argument("--import", dest="import_file", type=str, help="Import settings from specific file.")
        parser.add_argument(
            "--dry-run",
            dest="dry_run",
            action=argparse.BooleanOptionalAction,
            help="Preview the commands without actually executing them.",
            default=False,
        )

    @classmethod
    def parse_args(cls, args: argparse.Namespace):
        args_list = vars(args)
        parma_list: list = []
        for parma in itertools.islice(inspect.signature(cls.__init__).parameters.keys(), 1, None):
            assert parma in args_list, f"The parma {parma} is not in args. Every parma except self should be able to find in args."
            parma_list.append(args_list[parma])
        return cls(*parma_list)

    def save_config(self, args: argparse.Namespace) -> None:
        """将配置保存到文件，使用json格式

        Args:
            args (argparse.Namespace): 用户输入参数

        Raises:
            toolchain_error: 保存失败抛出异常
        """
        export_file: str | None = args.export_file
        if export_file:
            try:
                with open(export_file, "w") as file:
                    json.dump(vars(self), file, indent=4)
                print(f'[toolchains] Settings have been written to file "{export_file}"')
            except OSError as e:
                raise toolchain_error(f"Export settings failed: {e}") from e

    def load_config(self, args: argparse.Namespace) -> None:
        """从配置文件中加载配置，然后合并加载的配置和用户输入的配置，用户显式输入的值优先

        Args:
            args (argparse.Namespace): 用户输入参数

        Raises:
            precondition_error: 加载失败抛出异常
        """
        import_file: str | None = args.import_file
        if import_file:
            try:
                with open(import_file) as file:
                    import_config_list = json.load(file)
            except (OSError, ValueError) as e:
                raise precondition_error(f'Import file "{import_file}" failed: {e}') from e
            if not isinstance(import_config_list, dict):
                raise precondition_error(f'Invalid configure file "{import_file}".')
            current_config_list = vars(self)
            default_config_list = vars(type(self)())
            self.__dict__ = {
                # 若import_config中没有则使用default_config中的值，以便在配置类更新后原配置文件可以正确加载
                key: (import_config_list.get(key, default_config_list[key]) if value == default_config_list[key] else value)
                for key, value in current_config_list.items()
            }


assert __name__ != "__main__", "Import this file instead of running it directly."
