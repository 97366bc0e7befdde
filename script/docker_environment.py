import os
import shlex

import common
from host_platform import host_platform
from variant import toolchain_variant

dockerfile_name = "Dockerfile.ct-ng"  # 两种方案共用的镜像定义文件


class docker_environment:
    """负责构建镜像并在容器中运行命令"""

    variant: toolchain_variant  # 构建方案
    platform: host_platform  # 宿主平台
    root_dir: str  # 仓库根目录，同时也是镜像的构建上下文
    dockerfile_path: str  # 镜像定义文件路径
    dry_run: bool  # 是否只回显命令而不执行

    def __init__(self, variant: toolchain_variant, platform: host_platform, root_dir: str, dry_run: bool = False) -> None:
        self.variant = variant
        self.platform = platform
        self.root_dir = root_dir
        self.dockerfile_path = os.path.join(root_dir, dockerfile_name)
        self.dry_run = dry_run

    @property
    def emulated(self) -> bool:
        """宿主架构与容器所需架构不一致时需要模拟运行"""
        return self.platform.machine not in self.variant.native_machines

    @property
    def platform_option(self) -> str:
        """传递给docker build和docker run的--platform选项，无需指定时为空串"""
        if self.emulated or self.variant.pin_platform:
            return f"--platform {self.variant.docker_platform}"
        return ""

    def warn_emulation(self) -> None:
        """需要模拟运行时提示构建会变慢"""
        if self.emulated:
            common.log_warning(
                f"Detected {self.platform.machine} host. Building {self.variant.name} toolchain using Docker platform emulation "
                f"({self.variant.docker_platform}), the build will be slower."
            )
            common.log_warning(f"For better performance, consider using a native {self.variant.docker_platform} host or runner.")

    def check_buildx(self) -> None:
        """检查docker buildx是否可用

        Raises:
            common.precondition_error: buildx不可用
        """
        if self.dry_run:
            return
        if common.run_command("docker buildx version", ignore_error=True, capture=True, echo=False) is None:
            raise common.precondition_error(
                "Docker buildx is required for multi-platform builds. Please enable Docker BuildKit or use Docker Desktop."
            )

    def build_command(self) -> str:
        """生成构建镜像的命令"""
        dockerfile = shlex.quote(self.dockerfile_path)
        tag = shlex.quote(self.variant.image_tag)
        context = shlex.quote(self.root_dir)
        if self.variant.use_buildx:
            return f"docker buildx build --platform {self.variant.docker_platform} --load -f {dockerfile} -t {tag} {context}"
        option = f" {self.platform_option}" if self.platform_option else ""
        return f"docker build -f {dockerfile} -t {tag}{option} {context}"

    def build_image(self) -> None:
        """构建镜像，失败时不重试

        Raises:
            common.precondition_error: 镜像定义文件缺失或buildx不可用
            common.command_error: 镜像构建失败
        """
        common.log_info(f"Building Docker image {self.variant.image_tag}...")
        self.warn_emulation()
        if not os.path.isfile(self.dockerfile_path):
            raise common.precondition_error(f"Docker image definition not found: {self.dockerfile_path}")
        if self.variant.use_buildx:
            self.check_buildx()
        try:
            common.run_command(self.build_command(), dry_run=self.dry_run)
        except common.command_error:
            common.log_error("Failed to build Docker image")
            raise
        common.log_success("Docker image built successfully")

    def container_command(self, mount_list: list[tuple[str, str]], script: str) -> str:
        """生成在容器中运行bash脚本的命令

        Args:
            mount_list (list[tuple[str, str]]): 绑定挂载列表，list[(宿主路径, 容器路径)]
            script (str): 要运行的bash脚本
        """
        fields = ["docker run --rm"]
        if self.platform_option:
            fields.append(self.platform_option)
        fields += [f"-v {shlex.quote(f'{src}:{dst}')}" for src, dst in mount_list]
        fields += ['--entrypoint=""', shlex.quote(self.variant.image_tag), "bash -c", shlex.quote(script)]
        return " ".join(fields)

    def run(self, mount_list: list[tuple[str, str]], script: str) -> None:
        """启动一个容器运行bash脚本，容器退出后自动删除

        Args:
            mount_list (list[tuple[str, str]]): 绑定挂载列表，list[(宿主路径, 容器路径)]
            script (str): 要运行的bash脚本

        Raises:
            common.command_error: 脚本返回非零值
        """
        if self.emulated:
            common.log_warning(f"Running {self.variant.docker_platform} container on {self.platform.machine} host using emulation.")
        common.run_command(self.container_command(mount_list, script), dry_run=self.dry_run)


assert __name__ != "__main__", "Import this file instead of running it directly."
