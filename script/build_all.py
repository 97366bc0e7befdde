#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import argparse
import importlib
import importlib.util
import sys
import time
from concurrent.futures import ThreadPoolExecutor

import common
import ctng_environment as ctng
import host_platform
import package
from variant import variant_list

# 各方案对应的构建脚本，dict[方案名, 脚本模块名]
script_list: dict[str, str] = {
    "arm64": "aarch64_nextui_linux_gnu_native_gcc",
    "x86_64": "x86_64_linux_gnu_host_aarch64_nextui_linux_gnu_target_gcc",
}

epilog = """\
examples:
    build_all.py                   # Build all toolchains sequentially
    build_all.py --arm64           # Build only arm64 toolchain
    build_all.py --x86_64          # Build only x86_64 toolchain
    build_all.py --all --parallel  # Build all toolchains in parallel

output:
    aarch64-nextui-toolchain.tar.gz           (arm64 host toolchain)
    x86_64-aarch64-nextui-toolchain.tar.gz    (x86_64 host toolchain)
"""


class _help_formatter(argparse.ArgumentDefaultsHelpFormatter, argparse.RawDescriptionHelpFormatter):
    pass


def check_scripts(name_list: list[str]) -> None:
    """检查所选方案的构建脚本是否存在

    Args:
        name_list (list[str]): 所选方案

    Raises:
        common.precondition_error: 构建脚本不存在
    """
    for name in name_list:
        script = script_list[name]
        if importlib.util.find_spec(script) is None:
            raise common.precondition_error(f"{name} build script not found: {script}.py")


def build_variant(name: str, platform: host_platform.host_platform, config: ctng.configure) -> bool:
    """构建单个方案，失败不会抛出异常

    Args:
        name (str): 方案名
        platform (host_platform.host_platform): 宿主平台
        config (ctng.configure): 用户配置

    Returns:
        bool: 是否构建成功
    """
    common.log_info(f"Building {variant_list[name].description}...")
    try:
        importlib.import_module(script_list[name]).build(platform, config)
    except (common.toolchain_error, OSError) as e:
        common.log_error(f"{name} toolchain build failed: {e}")
        return False
    common.log_success(f"{name} toolchain build completed")
    return True


def build_sequential(name_list: list[str], platform: host_platform.host_platform, config: ctng.configure) -> dict[str, bool]:
    """依次构建所选方案，前一个方案失败不影响后续方案

    Returns:
        dict[str, bool]: dict[方案名, 是否构建成功]
    """
    common.log_info("Starting sequential toolchain builds...")
    return {name: build_variant(name, platform, config) for name in name_list}


def build_parallel(name_list: list[str], platform: host_platform.host_platform, config: ctng.configure) -> dict[str, bool]:
    """同时构建所选方案，每个方案占用一个线程，分别等待并记录各自的结果

    Returns:
        dict[str, bool]: dict[方案名, 是否构建成功]
    """
    common.log_info("Starting parallel toolchain builds...")
    status_list: dict[str, bool] = {}
    with ThreadPoolExecutor(max_workers=len(name_list), thread_name_prefix="toolchain") as executor:
        future_list = {name: executor.submit(build_variant, name, platform, config) for name in name_list}
        for name, future in future_list.items():
            common.log_info(f"Waiting for {name} build...")
            status_list[name] = future.result()

    for name, status in status_list.items():
        if status:
            common.log_success(f"{name} toolchain build completed successfully")
        else:
            common.log_error(f"{name} toolchain build failed")
    return status_list


def verify_outputs(name_list: list[str], platform: host_platform.host_platform, config: ctng.configure) -> dict[str, bool]:
    """检查所选方案的压缩包是否存在

    Returns:
        dict[str, bool]: dict[方案名, 压缩包是否存在]
    """
    common.log_info("Verifying build outputs...")
    found_list: dict[str, bool] = {}
    for name in name_list:
        archive_path = ctng.environment(variant_list[name], platform, config).archive_path
        size = package.package_summary(archive_path)
        if size is not None:
            common.log_success(f"{name} toolchain package found ({size})")
        else:
            common.log_error(f"{name} toolchain package not found: {archive_path}")
        found_list[name] = size is not None

    if all(found_list.values()):
        common.log_success("All requested toolchain packages created successfully")
    else:
        common.log_error("Some toolchain packages are missing")
    return found_list


def select_variants(args: argparse.Namespace) -> list[str]:
    """根据命令行选项确定要构建的方案，未指定时构建全部方案"""
    if args.all or not (args.arm64 or args.x86_64):
        return list(script_list)
    return [name for name in script_list if getattr(args, name)]


def build_all(
    name_list: list[str], parallel: bool, platform: host_platform.host_platform, config: ctng.configure
) -> bool:
    """构建并检查所选方案，打印汇总信息

    Args:
        name_list (list[str]): 所选方案
        parallel (bool): 是否并行构建
        platform (host_platform.host_platform): 宿主平台
        config (ctng.configure): 用户配置

    Returns:
        bool: 所有方案均构建成功且压缩包均存在时为True
    """
    start_time = time.monotonic()
    common.log_info("Starting ARM64 toolchain builds...")
    for name in script_list:
        common.log_info(f"Build {name}: {name in name_list}")
    common.log_info(f"Build in parallel: {parallel}")

    check_scripts(name_list)
    if parallel and len(name_list) > 1:
        common.log_warning("Parallel builds are experimental and may consume significant resources")
        build_status = build_parallel(name_list, platform, config)
    else:
        build_status = build_sequential(name_list, platform, config)

    if config.dry_run:
        common.log_info("Skip verifying build outputs in dry run.")
        found_list = {name: True for name in name_list}
    else:
        found_list = verify_outputs(name_list, platform, config)

    elapsed = common.format_elapsed(time.monotonic() - start_time)
    success = all(build_status.values()) and all(found_list.values())
    if success:
        common.log_success(f"All toolchain builds completed successfully in {elapsed}!")
    else:
        common.log_error(f"Some builds failed after {elapsed}. Check logs above for details.")

    print()
    common.log_info("=== Build Summary ===")
    for name in name_list:
        mark = "✓" if build_status[name] and found_list[name] else "✗"
        print(f"  {mark} {name} toolchain: {variant_list[name].archive_name}")
    print()
    if success:
        common.log_info("Ready for deployment!")
    return success


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Build ARM64 cross-compilation toolchains.", epilog=epilog, formatter_class=_help_formatter
    )
    parser.add_argument("-n", "--arm64", action="store_true", help=f"Build {variant_list['arm64'].description}.")
    parser.add_argument("-x", "--x86_64", action="store_true", help=f"Build {variant_list['x86_64'].description}.")
    parser.add_argument("-a", "--all", action="store_true", help="Build all toolchains (default).")
    parser.add_argument("-p", "--parallel", action="store_true", help="Build toolchains in parallel (experimental).")
    ctng.configure.add_argument(parser)
    args = parser.parse_args(argv)

    ctng.install_signal_handler()
    try:
        current_config = ctng.configure.parse_args(args)
        current_config.load_config(args)
        current_config.check()
        platform = host_platform.detect()
        success = build_all(select_variants(args), args.parallel, platform, current_config)
        current_config.save_config(args)
    except common.toolchain_error as e:
        common.log_error(str(e))
        return 1
    except KeyboardInterrupt:
        common.log_error("Build interrupted.")
        return 130
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
