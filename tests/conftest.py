"""测试共用的fixture"""

from __future__ import annotations

import os
import subprocess
import tarfile
from pathlib import Path

import pytest

import common
import ctng_environment as ctng
from host_platform import host_platform, os_kind
from variant import toolchain_variant


class command_recorder:
    """替换common.run_command，记录所有命令，可按前缀模拟失败"""

    def __init__(self) -> None:
        self.command_list: list[str] = []
        self.fail_list: dict[str, int] = {}

    def fail(self, prefix: str, returncode: int = 1) -> None:
        self.fail_list[prefix] = returncode

    def __call__(
        self,
        command: str,
        ignore_error: bool = False,
        capture: bool = False,
        echo: bool = True,
        dry_run: bool = False,
    ) -> subprocess.CompletedProcess[str] | None:
        self.command_list.append(command)
        for prefix, returncode in self.fail_list.items():
            if command.startswith(prefix):
                if ignore_error:
                    return None
                raise common.command_error(command, returncode)
        return subprocess.CompletedProcess(command, 0, "", "")

    def matching(self, prefix: str) -> list[str]:
        return [command for command in self.command_list if command.startswith(prefix)]


class stub_docker:
    """替换容器环境，在临时目录中生成一个最小的工具链并打包"""

    def __init__(
        self,
        variant: toolchain_variant,
        scratch_dir: Path,
        returncode: int = 0,
        write_archive: bool = True,
        corrupt_archive: bool = False,
        fail_build: bool = False,
    ) -> None:
        self.variant = variant
        self.scratch_dir = scratch_dir
        self.returncode = returncode
        self.write_archive = write_archive
        self.corrupt_archive = corrupt_archive
        self.fail_build = fail_build
        self.build_count = 0
        self.run_count = 0
        self.staged_config: str | None = None
        self.script: str | None = None

    def build_image(self) -> None:
        self.build_count += 1
        if self.fail_build:
            raise common.command_error("docker build", 1)

    def run(self, mount_list: list[tuple[str, str]], script: str) -> None:
        self.run_count += 1
        self.script = script
        mounts = {dst: src for src, dst in mount_list}
        work_dir = mounts[ctng.work_mount]
        output_dir = mounts[ctng.output_mount]
        config_path = os.path.join(work_dir, ctng.staged_config_name)
        if os.path.isfile(config_path):
            self.staged_config = Path(config_path).read_text()
        if self.returncode:
            raise common.command_error("docker run", self.returncode)

        install_dir = self.scratch_dir / os.path.basename(self.variant.install_dir)
        (install_dir / "bin").mkdir(parents=True, exist_ok=True)
        (install_dir / "bin" / self.variant.gcc_name).write_text("#!/bin/sh\n")
        (install_dir / "bin" / self.variant.gxx_name).write_text("#!/bin/sh\n")
        (install_dir / self.variant.target / "sysroot").mkdir(parents=True, exist_ok=True)
        Path(work_dir, ctng.toolchain_dir_marker).write_text(f"{self.variant.install_dir}\n")

        archive_path = Path(output_dir, self.variant.archive_name)
        if self.corrupt_archive:
            archive_path.write_bytes(b"\x1f\x8b\x08\x00 definitely not a tarball")
        elif self.write_archive:
            with tarfile.open(archive_path, "w:gz") as archive:
                archive.add(install_dir, arcname=install_dir.name)


@pytest.fixture
def commands(monkeypatch: pytest.MonkeyPatch) -> command_recorder:
    recorder = command_recorder()
    monkeypatch.setattr(common, "run_command", recorder)
    return recorder


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    slept: list[float] = []
    monkeypatch.setattr("workspace.time.sleep", slept.append)
    return slept


@pytest.fixture
def linux_platform() -> host_platform:
    return host_platform(os=os_kind.linux, jobs=2, machine="x86_64", volumes_dir=None)


@pytest.fixture
def macos_platform(tmp_path: Path) -> host_platform:
    volumes_dir = tmp_path / "Volumes"
    volumes_dir.mkdir()
    return host_platform(os=os_kind.macos, jobs=8, machine="arm64", volumes_dir=str(volumes_dir))


@pytest.fixture
def repo_root(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    (root / "aarch64.config").write_text('CT_TARGET_VENDOR="nextui"\n')
    (root / "x86_64-aarch64.config").write_text('CT_PREFIX_DIR="/opt/x86_64-${CT_TARGET}"\n')
    (root / "Dockerfile.ct-ng").write_text("FROM ubuntu:22.04\n")
    return root


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    path = tmp_path / "output"
    path.mkdir()
    return path
