import shlex
from pathlib import Path

import pytest

import common
import variant
from docker_environment import docker_environment
from host_platform import host_platform, os_kind


def _platform(machine: str) -> host_platform:
    return host_platform(os=os_kind.linux, jobs=4, machine=machine, volumes_dir=None)


@pytest.mark.parametrize(
    ("machine", "emulated", "platform_option"),
    [("aarch64", False, ""), ("arm64", False, ""), ("x86_64", True, "--platform linux/arm64")],
)
def test_arm64_platform_option(machine: str, emulated: bool, platform_option: str, repo_root: Path) -> None:
    docker = docker_environment(variant.arm64, _platform(machine), str(repo_root))

    assert docker.emulated == emulated
    assert docker.platform_option == platform_option


@pytest.mark.parametrize(("machine", "emulated"), [("x86_64", False), ("amd64", False), ("arm64", True)])
def test_x86_64_always_pins_platform(machine: str, emulated: bool, repo_root: Path) -> None:
    docker = docker_environment(variant.x86_64, _platform(machine), str(repo_root))

    assert docker.emulated == emulated
    assert docker.platform_option == "--platform linux/amd64"


def test_native_arm64_build_uses_plain_docker_build(repo_root: Path, commands) -> None:
    docker = docker_environment(variant.arm64, _platform("arm64"), str(repo_root))

    docker.build_image()

    assert commands.command_list == [
        f"docker build -f {repo_root / 'Dockerfile.ct-ng'} -t crosstool-ng-builder {repo_root}"
    ]


def test_emulated_arm64_build_passes_platform(repo_root: Path, commands, capsys: pytest.CaptureFixture[str]) -> None:
    docker = docker_environment(variant.arm64, _platform("x86_64"), str(repo_root))

    docker.build_image()

    assert commands.command_list[0].endswith(f"-t crosstool-ng-builder --platform linux/arm64 {repo_root}")
    assert "emulation" in capsys.readouterr().err


def test_x86_64_build_requires_buildx(repo_root: Path, commands) -> None:
    docker = docker_environment(variant.x86_64, _platform("x86_64"), str(repo_root))

    docker.build_image()

    assert commands.command_list[0] == "docker buildx version"
    assert commands.command_list[1] == (
        f"docker buildx build --platform linux/amd64 --load -f {repo_root / 'Dockerfile.ct-ng'} "
        f"-t crosstool-ng-builder-x86_64 {repo_root}"
    )


def test_missing_buildx_is_a_precondition_failure(repo_root: Path, commands) -> None:
    docker = docker_environment(variant.x86_64, _platform("x86_64"), str(repo_root))
    commands.fail("docker buildx version")

    with pytest.raises(common.precondition_error) as excinfo:
        docker.build_image()

    assert "buildx" in str(excinfo.value)
    assert commands.matching("docker buildx build") == []


def test_image_build_failure_is_not_retried(repo_root: Path, commands, capsys: pytest.CaptureFixture[str]) -> None:
    docker = docker_environment(variant.arm64, _platform("arm64"), str(repo_root))
    commands.fail("docker build", 1)

    with pytest.raises(common.command_error):
        docker.build_image()

    assert len(commands.matching("docker build")) == 1
    assert "Failed to build Docker image" in capsys.readouterr().err


def test_missing_dockerfile_is_a_precondition_failure(repo_root: Path, commands) -> None:
    (repo_root / "Dockerfile.ct-ng").unlink()
    docker = docker_environment(variant.arm64, _platform("arm64"), str(repo_root))

    with pytest.raises(common.precondition_error):
        docker.build_image()

    assert commands.command_list == []


def test_container_command_mounts_and_runs_script(repo_root: Path) -> None:
    docker = docker_environment(variant.x86_64, _platform("x86_64"), str(repo_root))
    script = "set -eo pipefail\nct-ng build.4"

    command = docker.container_command([("/tmp/work dir", "/home/builder/work"), ("/tmp/out", "/output")], script)
    fields = shlex.split(command)

    assert fields[:5] == ["docker", "run", "--rm", "--platform", "linux/amd64"]
    assert fields[5:9] == ["-v", "/tmp/work dir:/home/builder/work", "-v", "/tmp/out:/output"]
    assert fields[9:] == ["--entrypoint=", "crosstool-ng-builder-x86_64", "bash", "-c", script]


def test_native_container_command_has_no_platform(repo_root: Path) -> None:
    docker = docker_environment(variant.arm64, _platform("aarch64"), str(repo_root))

    command = docker.container_command([("/w", "/home/builder/work")], "true")

    assert "--platform" not in command


def test_run_propagates_script_status(repo_root: Path, commands) -> None:
    docker = docker_environment(variant.arm64, _platform("arm64"), str(repo_root))
    commands.fail("docker run", 11)

    with pytest.raises(common.command_error) as excinfo:
        docker.run([("/w", "/home/builder/work")], "exit 11")

    assert excinfo.value.returncode == 11


def test_dry_run_skips_buildx_check(repo_root: Path, commands) -> None:
    docker = docker_environment(variant.x86_64, _platform("x86_64"), str(repo_root), dry_run=True)

    docker.check_buildx()

    assert commands.command_list == []
