import enum
import os
import tarfile
import zlib

import common

default_entry_count = 10  # 验证成功后显示的条目数
read_chunk_size = 1 << 20  # 校验压缩流时每次读取的字节数


class package_status(enum.StrEnum):
    """压缩包检查结果"""

    ok = "ok"
    missing = "missing"  # 文件不存在
    corrupted = "corrupted"  # 文件存在但无法列出内容


def list_entries(path: str) -> list[str]:
    """列出压缩包中的全部条目，不解压文件内容

    Args:
        path (str): 压缩包路径

    Raises:
        tarfile.TarError | OSError | EOFError | zlib.error: 压缩包损坏

    Returns:
        list[str]: 条目列表
    """
    with tarfile.open(path, "r:gz") as archive:
        entries = archive.getnames()
        # getnames在结束块处停止，需读完剩余数据才会校验gzip尾部的CRC和长度
        assert archive.fileobj is not None
        while archive.fileobj.read(read_chunk_size):
            pass
    return entries


def package_summary(path: str) -> str | None:
    """检查压缩包是否存在并返回其大小

    Args:
        path (str): 压缩包路径

    Returns:
        str | None: 便于阅读的大小，文件不存在时返回None
    """
    if not os.path.isfile(path):
        return None
    return common.format_size(os.path.getsize(path))


def verify_package(path: str, entry_count: int = default_entry_count) -> package_status:
    """验证压缩包存在且结构完整，并显示前entry_count个条目

    Args:
        path (str): 压缩包路径
        entry_count (int, optional): 显示的条目数. 默认为default_entry_count.

    Returns:
        package_status: 检查结果
    """
    common.log_info("Verifying created package...")
    name = os.path.basename(path)
    size = package_summary(path)
    if size is None:
        common.log_error(f"Package not found at {path}")
        return package_status.missing
    common.log_info(f"Package size: {size}")

    try:
        entries = list_entries(path)
    except (tarfile.TarError, OSError, EOFError, zlib.error) as e:
        common.log_error(f"Package verification failed - archive may be corrupted: {e}")
        return package_status.corrupted
    if not entries:
        common.log_error("Package verification failed - archive is empty")
        return package_status.corrupted

    common.log_success(f"Package created and verified: {name}")
    common.log_info(f"Package contents (first {entry_count} entries):")
    for entry in entries[:entry_count]:
        print(entry)
    return package_status.ok


def check_package(path: str, entry_count: int = default_entry_count) -> bool:
    """验证压缩包，缺失和损坏均视为失败

    Args:
        path (str): 压缩包路径
        entry_count (int, optional): 显示的条目数. 默认为default_entry_count.

    Returns:
        bool: 是否通过验证
    """
    return verify_package(path, entry_count) == package_status.ok


assert __name__ != "__main__", "Import this file instead of running it directly."
