"""Tests for the alternative Dockerfile synthesizer."""

from fix_dockerfile.dockerfile import parse_dockerfile
from fix_dockerfile.features.languages import generic_profile, node_profile, python_profile
from fix_dockerfile.schema import Distro, FeatureSet
from fix_dockerfile.synthesizer import SynthesizedDockerfile, synthesize

from tests.conftest import PYTHON_DOCKERFILE

DEBIAN_VIM = 'FROM debian:12\nRUN apt-get update && apt-get install -y vim\nCMD ["./app"]\n'


class TestSynthesize:
    """Test how observed features merge into the declared file."""

    def test_python_application(self):
        """Test language steps after COPY and EXPOSE before the final instruction."""
        alternative = synthesize(
            parse_dockerfile(PYTHON_DOCKERFILE),
            FeatureSet(ports=[5000], packages=[]),
            python_profile(),
        )

        assert alternative.text == (
            "FROM python:3.11-slim\n"
            "WORKDIR /app\n"
            "COPY . .\n"
            "RUN pip3 install --upgrade pip\n"
            "RUN pip install -r ./requirements.txt --target local-site-packages\n"
            "ENV PYTHONPATH=./local-site-packages\n"
            "EXPOSE 5000\n"
            'CMD ["python", "app.py"]\n'
        )
        assert alternative.ports == [5000]
        assert alternative.language == "python"
        assert [e.values() for e in alternative.dockerfile.exposes] == [["5000"]]

    def test_packages_replace_declared_runs(self):
        """Test that observed packages replace the declared package RUNs."""
        alternative = synthesize(
            parse_dockerfile(DEBIAN_VIM),
            FeatureSet(packages=["curl"]),
            generic_profile(),
        )

        assert alternative.text == (
            "FROM debian:12\n"
            "RUN apt-get update && apt-get install -y --no-install-recommends curl \\\n"
            "\t&& rm -rf /var/lib/apt/lists/*\n"
            'CMD ["./app"]\n'
        )

    def test_unknown_packages_keep_declared_runs(self):
        """Test that a degraded package query changes nothing."""
        alternative = synthesize(
            parse_dockerfile(DEBIAN_VIM), FeatureSet(packages=None), generic_profile()
        )

        assert alternative.text == DEBIAN_VIM
        assert alternative.packages is None

    def test_profile_packages_are_included(self):
        """Test that the profile's OS packages come first."""
        profile = python_profile()
        profile.add_os_packages(["build-essential"])
        alternative = synthesize(
            parse_dockerfile(PYTHON_DOCKERFILE),
            FeatureSet(packages=["libpq5", "build-essential"]),
            profile,
        )

        assert alternative.packages == ["build-essential", "libpq5"]
        assert "--no-install-recommends build-essential libpq5" in alternative.text

    def test_alpine_without_copy(self):
        """Test apk installs and language steps placed before the final instruction."""
        original = parse_dockerfile(
            'FROM node:18-alpine\nRUN apk add curl\nCMD ["node", "server.js"]\n'
        )
        alternative = synthesize(
            original, FeatureSet(packages=["git"], distro=Distro.ALPINE), node_profile()
        )

        assert alternative.text == (
            "FROM node:18-alpine\n"
            "RUN apk add --no-cache git\n"
            "RUN npm install --omit=dev\n"
            "ENV NODE_ENV=production\n"
            'CMD ["node", "server.js"]\n'
        )

    def test_alpine_native_build_packages(self):
        """Test that the native toolchain uses apk package names on alpine."""
        original = parse_dockerfile(
            "FROM python:3.11-alpine\n"
            "COPY . .\n"
            "RUN pip install -r requirements.txt\n"
            'CMD ["python", "app.py"]\n'
        )
        profile = python_profile()
        profile.native_build = True

        alternative = synthesize(original, FeatureSet(packages=[], distro=Distro.ALPINE), profile)

        assert "RUN apk add --no-cache python3-dev build-base pkgconf cmake\n" in alternative.text
        assert "build-essential" not in alternative.text

    def test_declared_installer_is_respected(self):
        """Test that no language steps are added when the installer already runs."""
        original = parse_dockerfile(
            "FROM python:3.11-slim\nCOPY . .\nRUN pip install -r requirements.txt\n"
            'CMD ["python", "app.py"]\n'
        )
        alternative = synthesize(original, FeatureSet(packages=[]), python_profile())

        assert alternative.text == original.text

    def test_exposes_follow_observed_ports(self):
        """Test that declared EXPOSEs are replaced only when ports were observed."""
        original = parse_dockerfile('FROM node:18\nEXPOSE 8080\nCMD ["node", "a.js"]\n')

        observed = synthesize(original, FeatureSet(ports=[3000]), generic_profile())
        silent = synthesize(original, FeatureSet(ports=[]), generic_profile())

        assert observed.text == 'FROM node:18\nEXPOSE 3000\nCMD ["node", "a.js"]\n'
        assert silent.text == original.text

    def test_newline_style_is_kept(self):
        """Test that CRLF input gives CRLF output."""
        original = parse_dockerfile('FROM node:18\r\nCMD ["node", "a.js"]\r\n')
        alternative = synthesize(original, FeatureSet(ports=[80]), generic_profile())

        assert alternative.text == 'FROM node:18\r\nEXPOSE 80\r\nCMD ["node", "a.js"]\r\n'

    def test_from_text(self):
        """Test building an alternative from raw text."""
        alternative = SynthesizedDockerfile.from_text("FROM node:18\nEXPOSE 3000\n")
        assert alternative.dockerfile.exposes[0].values() == ["3000"]
