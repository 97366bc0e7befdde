#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import ctng_environment as ctng
import host_platform
import variant

env_variant = variant.arm64


def build(platform: host_platform.host_platform | None = None, config: ctng.configure | None = None) -> ctng.build_result:
    """在arm64宿主上构建aarch64-nextui-linux-gnu工具链，x86_64宿主上将通过模拟运行"""
    return ctng.environment(env_variant, platform, config).build()


if __name__ == "__main__":
    ctng.main(build)
