"""Tests for image reference parsing."""

import os

import pytest

from imagediff.exceptions import AcquisitionError
from imagediff.reference import parse_reference

DIGEST = "sha256:" + "a" * 64


def test_short_name():
    ref = parse_reference("alpine")
    assert ref.domain == "docker.io"
    assert ref.repository == "library/alpine"
    assert ref.tag == "latest"
    assert ref.api_host == "registry-1.docker.io"
    assert ref.name == "docker.io/library/alpine:latest"


def test_registry_with_port_and_tag():
    ref = parse_reference("localhost:5000/team/app:1.2")
    assert ref.domain == "localhost:5000"
    assert ref.repository == "team/app"
    assert ref.tag == "1.2"
    assert ref.reference == "1.2"


def test_digest_reference():
    ref = parse_reference(f"ghcr.io/org/app@{DIGEST}")
    assert ref.domain == "ghcr.io"
    assert ref.tag is None
    assert ref.reference == DIGEST


def test_archive_reference(tmp_path):
    ref = parse_reference(f"docker-archive:{tmp_path}/a.tar")
    assert ref.is_archive
    assert ref.path == os.path.join(str(tmp_path), "a.tar")


@pytest.mark.parametrize(
    "ref", ["", "docker-archive:", "alpine@sha256:xyz", "Alpine/Foo:1", "alpine:"]
)
def test_invalid_references(ref):
    with pytest.raises(AcquisitionError):
        parse_reference(ref)
