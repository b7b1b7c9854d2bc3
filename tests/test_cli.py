import pytest

from cloud_price_compare.cli import (
    ArgumentParser,
    check_cli_args_valid,
    compile_match_requests_from_args,
    normalize_os_input,
    parse_clouds,
    str_to_bool,
)
from cloud_price_compare.constants import (
    CATEGORY_COMPUTE,
    CATEGORY_MEMORY,
    CLOUD_AWS,
    CLOUD_AZURE,
    CLOUD_GCP,
    OS_LINUX,
    OS_WINDOWS,
)


def parse(cli_args: list[str]) -> ArgumentParser:
    return ArgumentParser(underscores_to_dashes=True).parse_args(cli_args)


def test_str_to_bool():
    assert str_to_bool("True")
    assert str_to_bool("true")
    assert str_to_bool("on")
    assert str_to_bool("yes")

    assert not str_to_bool("False")
    assert not str_to_bool("")
    assert not str_to_bool("no")


def test_parse_clouds():
    assert parse_clouds("aws, GCP") == [CLOUD_AWS, CLOUD_GCP]
    assert parse_clouds("aws,aws,,azure") == [CLOUD_AWS, CLOUD_AZURE]
    assert parse_clouds("") == []


def test_normalize_os_input():
    assert normalize_os_input("windows") == OS_WINDOWS
    assert normalize_os_input("Linux") == OS_LINUX


def test_compile_match_requests_from_args():
    args = parse(
        [
            "--vcpu",
            "4",
            "--ram",
            "16",
            "--os-type",
            "windows",
            "--family",
            "Memory",
            "--family-gcp",
            "compute",
            "--clouds",
            "aws,gcp",
        ]
    )
    reqs = compile_match_requests_from_args(args)
    assert list(reqs.keys()) == [CLOUD_AWS, CLOUD_GCP]
    assert reqs[CLOUD_AWS].vcpu == 4
    assert reqs[CLOUD_AWS].ram == 16
    assert reqs[CLOUD_AWS].os == OS_WINDOWS
    assert reqs[CLOUD_AWS].family == CATEGORY_MEMORY
    assert reqs[CLOUD_GCP].family == CATEGORY_COMPUTE


def test_compile_match_requests_no_family():
    args = parse(["--vcpu", "2", "--clouds", "azure"])
    reqs = compile_match_requests_from_args(args)
    assert reqs[CLOUD_AZURE].family is None
    assert reqs[CLOUD_AZURE].ram == 0


def test_check_cli_args_valid():
    check_cli_args_valid(parse(["--vcpu", "2", "--compare"]))

    for bad in [
        ["--clouds", "aws,oci"],
        ["--family", "gpu"],
        ["--os-type", "macos"],
        ["--storage-type", "tape"],
        ["--vcpu", "-1"],
        ["--vcpu", "nan", "--compare"],
        ["--ram", "inf"],
        ["--compare"],
    ]:
        with pytest.raises(SystemExit):
            check_cli_args_valid(parse(bad))
