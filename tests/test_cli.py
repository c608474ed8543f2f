"""Tests for the command-line interface."""

import pytest
from click.testing import CliRunner

from imagediff import __version__
from imagediff.cli import cli, normalize_bool_flags
from tests.helpers import make_docker_archive, make_layer


@pytest.fixture
def runner(tmp_path):
    return CliRunner(env={"IMAGEDIFF_ROOT": str(tmp_path / "root")})


@pytest.fixture
def archives(tmp_path):
    layer = make_layer([{"name": "etc/os-release", "data": b"ID=test\n"}])
    changed = make_layer([{"name": "etc/os-release", "data": b"ID=tset\n"}])
    resized = make_layer([{"name": "etc/os-release", "data": b"ID=changed\n"}])
    return (
        f"docker-archive:{make_docker_archive(tmp_path / 'a.tar', [layer], repo_tags=['app:1'])}",
        f"docker-archive:{make_docker_archive(tmp_path / 'b.tar', [layer], repo_tags=['app:2'])}",
        f"docker-archive:{make_docker_archive(tmp_path / 'c.tar', [changed], repo_tags=['app:1'])}",
        f"docker-archive:{make_docker_archive(tmp_path / 'd.tar', [resized], repo_tags=['app:1'])}",
    )


def invoke(runner, *args):
    return runner.invoke(cli, ["diff", "--platform", "linux/amd64", *args])


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_lists_flags_and_examples(runner):
    result = runner.invoke(cli, ["diff", "--help"])
    assert result.exit_code == 0
    for flag in ("--semantic", "--ignore-timestamps", "--pull", "--max-scale", "--report-dir"):
        assert flag in result.output
    assert "docker-archive:foo.tar" in result.output


def test_identical_images_exit_zero(runner, archives):
    result = invoke(runner, archives[0], archives[0])
    assert result.exit_code == 0


def test_image_name_difference(runner, archives):
    assert invoke(runner, archives[0], archives[1]).exit_code == 1
    assert invoke(runner, "--semantic", archives[0], archives[1]).exit_code == 0


def test_content_difference_exit_one(runner, archives):
    result = invoke(runner, "--semantic", archives[0], archives[2])
    assert result.exit_code == 1


def test_extra_ignore_file_content(runner, archives):
    result = invoke(
        runner, "--semantic", "--extra-ignore-file-content", archives[0], archives[2]
    )
    assert result.exit_code == 0


def test_extra_ignore_file_content_still_compares_size(runner, archives):
    result = invoke(
        runner, "--semantic", "--extra-ignore-file-content", archives[0], archives[3]
    )
    assert result.exit_code == 1


@pytest.mark.parametrize(
    "args,expected",
    [
        (["--semantic=true"], 0),
        (["--semantic=false"], 1),
        (["--semantic", "--semantic=false"], 1),
        (["--ignore-image-name=TRUE"], 0),
        (["--ignore-image-name=1", "--ignore-image-name=0"], 1),
    ],
)
def test_bool_flags_accept_explicit_values(runner, archives, args, expected):
    result = invoke(runner, *args, archives[0], archives[1])
    assert result.exit_code == expected


def test_bool_flag_rejects_bad_value(runner, archives):
    result = invoke(runner, "--semantic=maybe", archives[0], archives[1])
    assert result.exit_code == 2
    assert "--semantic" in result.output


def test_ignore_files_comma_separated(runner, archives):
    result = invoke(
        runner,
        "--semantic",
        "--extra-ignore-files=/etc/os-release,/etc/hostname",
        archives[0],
        archives[2],
    )
    assert result.exit_code == 0


def test_report_file(runner, archives, tmp_path):
    report = tmp_path / "report.json"
    result = invoke(runner, "--semantic", f"--report-file={report}", archives[0], archives[2])
    assert result.exit_code == 1
    assert report.is_file()


@pytest.mark.parametrize("args", [[], ["only-one"], ["a", "b", "c"]])
def test_wrong_argument_count_is_usage_error(runner, args):
    result = runner.invoke(cli, ["diff", *args])
    assert result.exit_code == 2


def test_invalid_pull_mode_exit_two(runner, archives):
    result = invoke(runner, "--pull=sometimes", archives[0], archives[0])
    assert result.exit_code == 2


def test_missing_archive_exit_two(runner, tmp_path):
    missing = f"docker-archive:{tmp_path / 'missing.tar'}"
    result = invoke(runner, missing, missing)
    assert result.exit_code == 2


def test_invalid_timeout_env_exit_two(tmp_path, archives):
    runner = CliRunner(env={"IMAGEDIFF_ROOT": str(tmp_path), "IMAGEDIFF_TIMEOUT": "soon"})
    result = invoke(runner, archives[0], archives[0])
    assert result.exit_code == 2


def test_invalid_max_scale_is_usage_error(runner, archives):
    result = invoke(runner, "--max-scale=big", archives[0], archives[0])
    assert result.exit_code == 2


def test_normalize_bool_flags():
    args = ["--semantic=yes", "--pull=never", "--verbose", "--verbose=off", "img", "--", "--semantic=0"]
    assert normalize_bool_flags(args) == ["--pull=never", "--semantic", "img", "--", "--semantic=0"]
