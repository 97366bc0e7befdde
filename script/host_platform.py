import enum
import platform
import sys
from dataclasses import dataclass

import psutil

import common

# 无法获取cpu核心数时使用的并发数
fallback_jobs = 4


class os_kind(enum.StrEnum):
    """受支持的宿主操作系统"""

    macos = "macos"
    linux = "linux"


@dataclass(frozen=True)
class host_platform:
    """宿主平台描述，启动时生成一次，此后只读"""

    os: os_kind  # 宿主操作系统
    jobs: int  # 构建并发数
    machine: str  # 宿主cpu架构，如x86_64、arm64、aarch64
    volumes_dir: str | None  # macOS下磁盘映像的挂载根目录，Linux下为None

    @property
    def volume_backed(self) -> bool:
        """工作目录是否需要放在区分大小写的磁盘映像中"""
        return self.os == os_kind.macos


def detect_os(os_type: str | None = None) -> os_kind:
    """根据sys.platform判断宿主操作系统

    Args:
        os_type (str | None, optional): 操作系统标识，默认为sys.platform.

    Raises:
        common.precondition_error: 不支持的操作系统

    Returns:
        os_kind: 宿主操作系统
    """
    os_type = sys.platform if os_type is None else os_type
    if os_type.startswith("darwin"):
        return os_kind.macos
    elif os_type.startswith("linux"):
        return os_kind.linux
    raise common.precondition_error(f"Unsupported operating system: {os_type}")


def detect_jobs() -> int:
    """获取逻辑cpu数作为构建并发数，获取失败时使用fallback_jobs"""
    try:
        count = psutil.cpu_count()
    except (OSError, RuntimeError):
        count = None
    return count if count and count > 0 else fallback_jobs


def detect(os_type: str | None = None) -> host_platform:
    """检测宿主平台

    Args:
        os_type (str | None, optional): 操作系统标识，默认为sys.platform.

    Returns:
        host_platform: 宿主平台描述
    """
    kind = detect_os(os_type)
    return host_platform(
        os=kind,
        jobs=detect_jobs(),
        machine=platform.machine(),
        volumes_dir="/Volumes" if kind == os_kind.macos else None,
    )


assert __name__ != "__main__", "Import this file instead of running it directly."
