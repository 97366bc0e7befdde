import argparse
import enum
import os
import signal
import sys
import textwrap
import time
from collections.abc import Callable
from dataclasses import dataclass

import common
import host_platform
import package
from docker_environment import docker_environment
from variant import toolchain_variant
from workspace import workspace

default_root_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))  # 仓库根目录
work_mount = "/home/builder/work"  # 工作目录在容器内的挂载点
output_mount = "/output"  # 输出目录在容器内的挂载点
staged_config_name = ".config"  # crosstool-NG要求的配置文件名
toolchain_dir_marker = ".toolchain_dir"  # 容器内脚本记录工具链安装目录的文件


class exit_code(enum.IntEnum):
    """容器内脚本用于区分失败原因的返回值，其余非零值均为构建失败"""

    toolchain_not_found = 10
    smoke_test_failed = 11


class configure(common.basic_configure):
    jobs: int | None  # 并发数，None表示使用逻辑cpu数
    output_dir: str | None  # 压缩包输出目录，None表示仓库根目录
    root_dir: str | None  # 仓库根目录，包含配置文件和镜像定义文件，None表示脚本所在仓库

    def __init__(
        self,
        jobs: int | None = None,
        output_dir: str | None = None,
        root_dir: str | None = None,
        dry_run: bool = False,
    ) -> None:
        super().__init__(dry_run)
        self.jobs = jobs
        self.output_dir = output_dir
        self.root_dir = root_dir

    @staticmethod
    def add_argument(parser: argparse.ArgumentParser) -> None:
        """为argparse添加构建相关选项

        Args:
            parser (argparse.ArgumentParser): 命令行解析器
        """
        common.basic_configure.add_argument(parser)
        parser.add_argument("--jobs", type=int, help="Number of concurrent jobs at build time. Use the number of logical cpus by default.")
        parser.add_argument("--output-dir", type=str, help="The dir to place toolchain archives. Use the repository root by default.")
        parser.add_argument("--root-dir", type=str, help="The dir contains toolchain configs and Dockerfile.ct-ng.")

    def check(self) -> None:
        """检查合并配置后的设置是否合法

        Raises:
            common.precondition_error: 设置不合法
        """
        if self.jobs is not None and self.jobs < 1:
            raise common.precondition_error(f"Invalid jobs: {self.jobs}.")
        if self.root_dir is not None and not os.path.isdir(self.root_dir):
            raise common.precondition_error(f'The root dir "{self.root_dir}" does not exist.')


@dataclass(frozen=True)
class build_result:
    """一次成功构建的结果"""

    variant: toolchain_variant  # 构建方案
    archive_path: str  # 压缩包在宿主上的路径
    toolchain_dir: str | None  # 容器内工具链安装目录，dry run时为None
    smoke_tested: bool  # 是否通过冒烟测试


def container_script(variant: toolchain_variant, jobs: int) -> str:
    """生成在容器内运行的脚本：构建、定位工具链、冒烟测试、打包均在同一个容器中完成

    Args:
        variant (toolchain_variant): 构建方案
        jobs (int): 并发数

    Returns:
        str: bash脚本
    """
    chown_output = f"sudo chown -R builder:builder {output_mount}" if variant.chown_output else ":"
    return textwrap.dedent(
        f"""\
        set -eo pipefail
        sudo chown -R builder:builder {work_mount}
        {chown_output}
        cd {work_mount}

        echo 'Container architecture info:'
        uname -m
        grep -m 1 'model name' /proc/cpuinfo || echo 'CPU info not available'

        ct-ng build.{jobs}
        echo 'Build completed, locating toolchain...'

        if [ -d {variant.install_dir} ]; then
            TOOLCHAIN_DIR={variant.install_dir}
        else
            echo 'Checking for toolchain in other locations...'
            GCC_FOUND=$(find / -name '{variant.gcc_name}' -type f 2>/dev/null | head -n 1 || true)
            TOOLCHAIN_DIR=""
            if [ -n "$GCC_FOUND" ]; then
                TOOLCHAIN_DIR=$(dirname "$(dirname "$GCC_FOUND")")
            fi
            if [ -z "$TOOLCHAIN_DIR" ] || [ ! -d "$TOOLCHAIN_DIR" ]; then
                echo 'ERROR: No toolchain found' >&2
                exit {exit_code.toolchain_not_found.value}
            fi
        fi
        echo "Toolchain found at $TOOLCHAIN_DIR"
        echo "$TOOLCHAIN_DIR" > {work_mount}/{toolchain_dir_marker}

        GCC_PATH="$TOOLCHAIN_DIR/bin/{variant.gcc_name}"
        if [ ! -f "$GCC_PATH" ]; then
            echo 'ERROR: GCC compiler not found at expected location' >&2
            exit {exit_code.toolchain_not_found.value}
        fi

        echo 'Running toolchain tests inside container...'
        echo 'Testing GCC version:'
        "$GCC_PATH" --version | head -n 1 || exit {exit_code.smoke_test_failed.value}
        echo 'Testing C compilation:'
        echo 'int main(){{return 0;}}' | "$GCC_PATH" -x c - -o /tmp/test_c || exit {exit_code.smoke_test_failed.value}
        echo 'C compilation test passed'
        GPP_PATH="$TOOLCHAIN_DIR/bin/{variant.gxx_name}"
        if [ -f "$GPP_PATH" ]; then
            echo 'Testing C++ compilation:'
            echo 'int main(){{return 0;}}' | "$GPP_PATH" -x c++ - -o /tmp/test_cpp || exit {exit_code.smoke_test_failed.value}
            echo 'C++ compilation test passed'
        fi

        echo 'Creating toolchain archive...'
        tar -czf {output_mount}/{variant.archive_name} -C "$(dirname "$TOOLCHAIN_DIR")" "$(basename "$TOOLCHAIN_DIR")"
        echo 'Archive created successfully'
        """
    )


class environment:
    """单个方案的完整构建流程"""

    variant: toolchain_variant  # 构建方案
    platform: host_platform.host_platform  # 宿主平台
    config: configure  # 用户配置
    jobs: int  # 并发数
    root_dir: str  # 仓库根目录
    output_dir: str  # 压缩包输出目录
    config_path: str  # crosstool-NG配置文件路径
    archive_path: str  # 输出压缩包路径
    workspace: workspace  # 工作目录
    docker: docker_environment  # 容器环境

    def __init__(
        self,
        variant: toolchain_variant,
        platform: host_platform.host_platform | None = None,
        config: configure | None = None,
    ) -> None:
        self.variant = variant
        self.platform = platform or host_platform.detect()
        self.config = config or configure()
        self.jobs = self.config.jobs or self.platform.jobs
        self.root_dir = os.path.abspath(self.config.root_dir or default_root_dir)
        self.output_dir = os.path.abspath(self.config.output_dir or self.root_dir)
        self.config_path = os.path.join(self.root_dir, variant.config_name)
        self.archive_path = os.path.join(self.output_dir, variant.archive_name)
        self.workspace = workspace(self.platform, variant, self.root_dir, self.config.dry_run)
        self.docker = docker_environment(variant, self.platform, self.root_dir, self.config.dry_run)

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run

    def check_config(self) -> None:
        """检查配置文件是否存在，在产生任何副作用之前调用

        Raises:
            common.precondition_error: 配置文件不存在
        """
        if not os.path.isfile(self.config_path):
            raise common.precondition_error(f"Configuration file not found: {self.config_path}")

    def stage_config(self) -> None:
        """复制配置文件到工作目录"""
        common.log_info(f"Copying {self.variant.name} toolchain configuration...")
        self.check_config()
        common.copy(self.config_path, os.path.join(self.workspace.work_dir, staged_config_name), dry_run=self.dry_run)
        common.log_success("Configuration copied")

    def _read_toolchain_dir(self) -> str | None:
        marker = os.path.join(self.workspace.work_dir, toolchain_dir_marker)
        if not os.path.isfile(marker):
            return None
        with open(marker) as file:
            return file.readline().strip() or None

    def run_toolchain_build(self) -> build_result:
        """在同一个容器中完成构建、冒烟测试和打包

        Raises:
            common.toolchain_not_found_error: 构建结束但找不到工具链
            common.smoke_test_error: 工具链无法编译测试程序
            common.command_error: 构建失败

        Returns:
            build_result: 构建结果
        """
        common.log_info(f"Starting {self.variant.name} toolchain build with {self.jobs} jobs...")
        common.mkdir(self.output_dir, False, dry_run=self.dry_run)
        mount_list = [(self.workspace.work_dir, work_mount), (self.output_dir, output_mount)]
        try:
            self.docker.run(mount_list, container_script(self.variant, self.jobs))
        except common.command_error as e:
            match e.returncode:
                case exit_code.toolchain_not_found:
                    raise common.toolchain_not_found_error(
                        e.command, e.returncode, f"Build of {self.variant.name} finished but no toolchain was found."
                    ) from e
                case exit_code.smoke_test_failed:
                    raise common.smoke_test_error(
                        e.command, e.returncode, f"Toolchain of {self.variant.name} failed to compile the smoke test programs."
                    ) from e
                case _:
                    common.log_error(f"Toolchain build of {self.variant.name} failed with status: {e.returncode}")
                    raise

        toolchain_dir = None
        if not self.dry_run:
            toolchain_dir = self._read_toolchain_dir()
            if toolchain_dir is None:
                raise common.toolchain_not_found_error(
                    "docker run", exit_code.toolchain_not_found, f"Build of {self.variant.name} did not report a toolchain dir."
                )
        common.log_success("Toolchain build, test, and compression completed")
        return build_result(self.variant, self.archive_path, toolchain_dir, not self.dry_run)

    def verify(self) -> None:
        """验证输出的压缩包

        Raises:
            common.package_error: 压缩包缺失或损坏
        """
        if self.dry_run:
            common.log_info(f"Skip verifying {self.archive_path} in dry run.")
            return
        if not package.check_package(self.archive_path):
            raise common.package_error(f"Package verification failed: {self.archive_path}")

    def build(self) -> build_result:
        """依次完成准备工作目录、构建镜像、复制配置、构建工具链和验证，无论成功与否都会清理工作目录

        Returns:
            build_result: 构建结果
        """
        start_time = time.monotonic()
        common.log_info(f"Starting {self.variant.description} build...")
        common.log_info(f"Operating System: {self.platform.os}")
        common.log_info(f"Host Architecture: {self.platform.machine}")
        common.log_info(f"Target: {self.variant.install_dir}")
        common.log_info(f"Build Jobs: {self.jobs}")

        self.check_config()
        with self.workspace.acquire():
            self.docker.build_image()
            self.stage_config()
            result = self.run_toolchain_build()
            self.verify()

        common.log_success(f"{self.variant.name} toolchain build completed in {common.format_elapsed(time.monotonic() - start_time)}!")
        common.log_info(f"Ready-to-deploy toolchain archive: {self.variant.archive_name}")
        return result


def _terminate(signum: int, _frame) -> None:
    raise SystemExit(128 + signum)


def install_signal_handler() -> None:
    """将SIGTERM转为SystemExit，以便退出前清理工作目录"""
    signal.signal(signal.SIGTERM, _terminate)


def main(build: Callable[[], object]) -> None:
    """单个方案构建脚本的入口，失败时以非零值退出

    Args:
        build (Callable[[], object]): 构建函数
    """
    install_signal_handler()
    try:
        build()
    except common.toolchain_error as e:
        common.log_error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        common.log_error("Build interrupted.")
        sys.exit(130)


assert __name__ != "__main__", "Import this file instead of running it directly."
