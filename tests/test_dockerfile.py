"""Tests for the Dockerfile scanner."""

from fix_dockerfile.dockerfile import detect_distro, parse_dockerfile
from fix_dockerfile.schema import Distro, Range

MULTILINE = (
    "FROM python:3.11-slim AS build\n"
    "RUN apt-get update \\\n"
    "    && apt-get install -y curl\n"
    'CMD ["python", "app.py"]\n'
)


class TestParseDockerfile:
    """Test instruction splitting and argument ranges."""

    def test_instructions_and_keywords(self):
        """Test that continuations fold into one instruction."""
        dockerfile = parse_dockerfile(MULTILINE)

        assert [i.keyword for i in dockerfile.instructions] == ["FROM", "RUN", "CMD"]
        run = dockerfile.instructions[1]
        assert run.range == Range.from_coords(1, 0, 2, 30)
        assert run.values() == ["apt-get", "update", "&&", "apt-get", "install", "-y", "curl"]
        assert dockerfile.instructions[2].range.start.line == 3

    def test_argument_ranges(self):
        """Test that argument ranges point at their text."""
        dockerfile = parse_dockerfile(MULTILINE)
        run = dockerfile.instructions[1]

        for argument in run.arguments:
            assert dockerfile.document.get_text(argument.range) == argument.value
        assert run.arguments[3].range == Range.from_coords(2, 7, 2, 14)

    def test_from_accessors(self):
        """Test image, tag and stage accessors."""
        from_ = parse_dockerfile(MULTILINE).froms[0]

        assert from_.image == "python"
        assert from_.image_name == "python"
        assert from_.image_tag == "3.11-slim"
        assert from_.stage_name == "build"

    def test_registry_port_is_not_a_tag(self):
        """Test that a registry port is not mistaken for a tag."""
        from_ = parse_dockerfile("FROM registry.example.com:5000/team/node@sha256:abc\n").froms[0]

        assert from_.image == "registry.example.com:5000/team/node"
        assert from_.image_name == "node"
        assert from_.image_tag is None

    def test_json_form(self):
        """Test exec-form detection and conversion to shell text."""
        dockerfile = parse_dockerfile(MULTILINE)
        cmd = dockerfile.instructions[2]

        assert cmd.is_json_form
        assert cmd.json_arguments() == ["python", "app.py"]
        assert cmd.command_text() == "python app.py"
        assert not dockerfile.instructions[1].is_json_form

    def test_comments_and_blank_lines(self):
        """Test that comments are skipped, even inside a continuation."""
        text = (
            "# syntax=docker/dockerfile:1\n"
            "\n"
            "RUN apt-get update && \\\n"
            "# install an editor\n"
            "    apt-get install -y vim\n"
            "CMD x\n"
        )
        dockerfile = parse_dockerfile(text)

        assert [i.keyword for i in dockerfile.instructions] == ["RUN", "CMD"]
        assert dockerfile.instructions[0].values()[-1] == "vim"
        assert dockerfile.instructions[1].range.start.line == 5

    def test_lowercase_keyword(self):
        """Test that keywords are matched case-insensitively."""
        instruction = parse_dockerfile("from node\n").instructions[0]

        assert instruction.keyword == "FROM"
        assert instruction.raw_keyword == "from"

    def test_quoted_arguments(self):
        """Test that quoted strings stay one argument."""
        run = parse_dockerfile('RUN echo "hello world"\n').instructions[0]

        assert run.values() == ["echo", '"hello world"']
        assert run.arguments[1].unquoted == "hello world"

    def test_crlf_document(self):
        """Test that CRLF files parse like LF files."""
        dockerfile = parse_dockerfile("FROM node:18\r\nEXPOSE 3000\r\n")

        assert dockerfile.document.newline == "\r\n"
        assert dockerfile.exposes[0].values() == ["3000"]
        assert dockerfile.exposes[0].range == Range.from_coords(1, 0, 1, 11)

    def test_lookup_helpers(self):
        """Test keyword and line lookups."""
        dockerfile = parse_dockerfile(MULTILINE)

        assert dockerfile.run_instructions_with_arg("apt-get") == [dockerfile.instructions[1]]
        assert dockerfile.run_instructions_with_arg("apk") == []
        assert dockerfile.last_instruction.keyword == "CMD"

    def test_empty_document(self):
        """Test that an empty file has no instructions."""
        dockerfile = parse_dockerfile("")

        assert dockerfile.instructions == []
        assert dockerfile.last_instruction is None


class TestDetectDistro:
    """Test OS family detection."""

    def test_alpine_image(self):
        """Test alpine image names and tags."""
        assert detect_distro(parse_dockerfile("FROM alpine:3.19\n")) is Distro.ALPINE
        assert detect_distro(parse_dockerfile("FROM node:18-alpine\n")) is Distro.ALPINE

    def test_apk_usage(self):
        """Test that an apk call implies Alpine."""
        text = "FROM custom/base\nRUN apk add curl\n"
        assert detect_distro(parse_dockerfile(text)) is Distro.ALPINE

    def test_debian_default(self):
        """Test the Debian fallback."""
        assert detect_distro(parse_dockerfile("FROM debian:12\n")) is Distro.DEBIAN
        assert detect_distro(parse_dockerfile("CMD x\n")) is Distro.DEBIAN
        assert Distro.DEBIAN.package_manager == "apt-get"
        assert Distro.ALPINE.install_keyword == "add"
