import contextlib
import os
import shlex
import time
from collections.abc import Iterator

import common
from host_platform import host_platform
from variant import toolchain_variant

volume_size = "20g"  # 磁盘映像大小
volume_filesystem = "Case-sensitive HFS+"  # crosstool-NG要求区分大小写的文件系统
detach_settle_time = 2  # 卸载旧卷后等待的秒数


class workspace:
    """单个方案独占的临时工作目录，macOS下位于区分大小写的磁盘映像中"""

    platform: host_platform  # 宿主平台
    variant: toolchain_variant  # 构建方案
    root_dir: str  # 仓库根目录
    dry_run: bool  # 是否只回显命令而不执行
    image_path: str | None  # 磁盘映像路径，仅macOS
    mount_point: str | None  # 磁盘映像挂载点，仅macOS
    work_dir: str  # 工作目录

    def __init__(self, platform: host_platform, variant: toolchain_variant, root_dir: str, dry_run: bool = False) -> None:
        self.platform = platform
        self.variant = variant
        self.root_dir = root_dir
        self.dry_run = dry_run
        if platform.volume_backed:
            assert platform.volumes_dir, "Volume backed platform must provide the volumes dir."
            self.image_path = os.path.join(root_dir, f"{variant.volume_name}.dmg")
            self.mount_point = os.path.join(platform.volumes_dir, variant.volume_name)
            self.work_dir = os.path.join(self.mount_point, "toolchain_work")
        else:
            self.image_path = None
            self.mount_point = None
            self.work_dir = os.path.join(root_dir, variant.workspace_name)

    def _detach(self) -> None:
        assert self.mount_point
        if os.path.isdir(self.mount_point):
            common.run_command(f"hdiutil detach {shlex.quote(self.mount_point)}", ignore_error=True, echo=False, dry_run=self.dry_run)

    def create_volume(self) -> None:
        """创建并挂载区分大小写的磁盘映像，Linux下跳过"""
        if not self.platform.volume_backed:
            common.log_info("Skipping case-sensitive volume creation on Linux")
            return
        assert self.image_path and self.mount_point

        common.log_info(f"Setting up case-sensitive file system for crosstool-NG ({self.variant.name})...")
        if os.path.isdir(self.mount_point):
            self._detach()
            time.sleep(detach_settle_time)
        common.remove_if_exists(self.image_path, dry_run=self.dry_run)

        common.log_info(f"Creating case-sensitive disk image ({volume_size.upper()}B)...")
        common.run_command(
            f"hdiutil create -size {volume_size} -fs {shlex.quote(volume_filesystem)} "
            f"-volname {shlex.quote(self.variant.volume_name)} {shlex.quote(self.image_path)}",
            dry_run=self.dry_run,
        )
        common.log_info("Mounting case-sensitive volume...")
        common.run_command(f"hdiutil mount {shlex.quote(self.image_path)}", dry_run=self.dry_run)
        common.log_success(f"Case-sensitive volume created and mounted at {self.mount_point}")

    def prepare_directories(self) -> None:
        """删除并重建工作目录，保证其为空"""
        common.log_info("Preparing work directory...")
        common.mkdir(self.work_dir, dry_run=self.dry_run)
        if self.platform.volume_backed:
            common.log_success(f"Work directory prepared at {self.work_dir} (case-sensitive volume)")
        else:
            common.log_success(f"Work directory prepared at {self.work_dir}")

    def cleanup(self) -> None:
        """释放工作目录和磁盘映像，失败时只打印警告"""
        common.log_info("Cleaning up...")
        try:
            if self.platform.volume_backed:
                assert self.image_path
                self._detach()
                common.remove_if_exists(self.image_path, dry_run=self.dry_run)
            else:
                common.remove_if_exists(self.work_dir, dry_run=self.dry_run)
        except OSError as e:
            common.log_warning(f"Cleanup of {self.work_dir} failed: {e}")

    @contextlib.contextmanager
    def acquire(self) -> Iterator["workspace"]:
        """准备工作目录，并保证退出作用域时总是清理，包括准备过程失败和被中断的情况"""
        try:
            self.create_volume()
            self.prepare_directories()
            yield self
        finally:
            self.cleanup()


assert __name__ != "__main__", "Import this file instead of running it directly."
