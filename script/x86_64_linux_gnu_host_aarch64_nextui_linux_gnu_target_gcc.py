#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import ctng_environment as ctng
import host_platform
import variant

env_variant = variant.x86_64


def build(platform: host_platform.host_platform | None = None, config: ctng.configure | None = None) -> ctng.build_result:
    """构建运行在x86_64宿主上、目标为aarch64-nextui-linux-gnu的交叉工具链

    生成的工具链是真正的x86_64程序，arm64宿主上需要模拟运行容器，速度较慢.
    """
    return ctng.environment(env_variant, platform, config).build()


if __name__ == "__main__":
    ctng.main(build)
