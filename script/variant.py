from dataclasses import dataclass


@dataclass(frozen=True)
class toolchain_variant:
    """一种工具链构建方案，即(宿主架构, 目标平台)的组合"""

    name: str  # 命令行中使用的名称
    description: str  # 便于阅读的描述
    target: str  # 目标平台，也是编译器的前缀
    install_dir: str  # 容器内工具链的安装目录
    config_name: str  # crosstool-NG配置文件名，相对于仓库根目录
    image_tag: str  # docker镜像名
    archive_name: str  # 输出压缩包名
    workspace_name: str  # Linux下工作目录名，相对于仓库根目录
    volume_name: str  # macOS下区分大小写磁盘映像的卷名
    docker_platform: str  # 容器所需平台，如linux/arm64
    native_machines: tuple[str, ...]  # 无需模拟即可运行容器的宿主架构
    pin_platform: bool = False  # 是否总是显式指定--platform
    use_buildx: bool = False  # 是否使用docker buildx构建镜像
    chown_output: bool = False  # 是否需要在容器内修改/output的所有者

    @property
    def gcc_name(self) -> str:
        return f"{self.target}-gcc"

    @property
    def gxx_name(self) -> str:
        return f"{self.target}-g++"


# 方案列表，dict[名称, 方案]
variant_list: dict[str, toolchain_variant] = {}


def register(variant: toolchain_variant) -> toolchain_variant:
    """注册方案到列表

    Args:
        variant (toolchain_variant): 要注册的方案
    """
    assert variant.name not in variant_list, f'Variant "{variant.name}" has been registered.'
    variant_list[variant.name] = variant
    return variant


arm64 = register(
    toolchain_variant(
        name="arm64",
        description="arm64 host toolchain (aarch64-nextui-linux-gnu)",
        target="aarch64-nextui-linux-gnu",
        install_dir="/opt/aarch64-nextui-linux-gnu",
        config_name="aarch64.config",
        image_tag="crosstool-ng-builder",
        archive_name="aarch64-nextui-toolchain.tar.gz",
        workspace_name="toolchain_work",
        volume_name="docker-build-env",
        docker_platform="linux/arm64",
        native_machines=("aarch64", "arm64"),
    )
)

x86_64 = register(
    toolchain_variant(
        name="x86_64",
        description="x86_64 host toolchain (x86_64-aarch64-nextui-linux-gnu)",
        target="aarch64-nextui-linux-gnu",
        install_dir="/opt/x86_64-aarch64-nextui-linux-gnu",
        config_name="x86_64-aarch64.config",
        image_tag="crosstool-ng-builder-x86_64",
        archive_name="x86_64-aarch64-nextui-toolchain.tar.gz",
        workspace_name="toolchain_work_x86_64",
        volume_name="docker-build-env-x86_64",
        docker_platform="linux/amd64",
        native_machines=("x86_64", "amd64"),
        pin_platform=True,
        use_buildx=True,
        chown_output=True,
    )
)


assert __name__ != "__main__", "Import this file instead of running it directly."
