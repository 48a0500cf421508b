"""Tests for repair synthesis."""

from typing import Optional

import pytest

from fix_dockerfile.dockerfile import parse_dockerfile
from fix_dockerfile.document import TextDocument
from fix_dockerfile.features.languages import python_profile
from fix_dockerfile.reconcile import reconcile
from fix_dockerfile.repairs import REPAIRS, TITLES, RepairSynthesizer, detect_runtime_kind, register
from fix_dockerfile.rules import check_repairable_problems
from fix_dockerfile.schema import (
    DiagnosticSource,
    FeatureSet,
    Range,
    RepairCode,
    RepairDiagnostic,
    RuntimeKind,
)
from fix_dockerfile.synthesizer import SynthesizedDockerfile, synthesize

from tests.conftest import PYTHON_DOCKERFILE


def _diagnostic(text: str, code: RepairCode, alternative=None) -> RepairDiagnostic:
    dockerfile = parse_dockerfile(text)
    diagnostics = check_repairable_problems(dockerfile)
    if alternative is not None:
        diagnostics = reconcile(dockerfile, alternative) + diagnostics
    return next(d for d in diagnostics if d.code == code)


def _repair(
    text: str,
    code: RepairCode,
    alternative: Optional[SynthesizedDockerfile] = None,
    runtime_kind: Optional[RuntimeKind] = None,
) -> str:
    diagnostic = _diagnostic(text, code, alternative)
    edit = RepairSynthesizer(alternative).synthesize(diagnostic, text, runtime_kind)
    assert edit is not None
    assert edit.code == code
    return TextDocument(text).apply(edit)


class TestRegistry:
    """Test the code to generator registry."""

    def test_every_code_has_a_repair(self):
        """Test that the registry covers all codes."""
        assert set(REPAIRS) == set(RepairCode)
        assert all(TITLES[code] for code in RepairCode)

    def test_duplicate_registration(self):
        """Test that a code cannot be registered twice."""
        with pytest.raises(ValueError):
            register(RepairCode.NOADD, "Use COPY")(lambda ctx: None)

    def test_runtime_kind(self):
        """Test runtime detection from the first FROM."""
        assert detect_runtime_kind(parse_dockerfile("FROM python:3.11\n")) is RuntimeKind.PYTHON
        assert detect_runtime_kind(parse_dockerfile("FROM node:18\n")) is RuntimeKind.NODE
        assert detect_runtime_kind(parse_dockerfile("FROM debian:12\n")) is RuntimeKind.NODE


class TestSynthesizerGuards:
    """Test when no edit is produced."""

    def test_unknown_code(self):
        """Test that an unknown code has no repair."""
        diagnostic = RepairDiagnostic(
            range=Range.from_coords(0, 0, 0, 3),
            message="?",
            code="R:UNKNOWN",
            source=DiagnosticSource.STATIC_RULE,
        )
        assert RepairSynthesizer().synthesize(diagnostic, "FROM node\n") is None

    def test_trace_code_without_alternative(self):
        """Test that trace repairs need a trace result."""
        alternative = SynthesizedDockerfile.from_text("FROM node:18\nEXPOSE 3000\nCMD x\n")
        diagnostic = _diagnostic("FROM node:18\nCMD x\n", RepairCode.HERMITPORTS, alternative)

        assert RepairSynthesizer().synthesize(diagnostic, "FROM node:18\nCMD x\n") is None

    def test_stale_diagnostic(self):
        """Test that a diagnostic no longer reported for the text is refused."""
        diagnostic = _diagnostic("FROM node:18\nADD . /app\n", RepairCode.NOADD)

        edit = RepairSynthesizer().synthesize(diagnostic, "FROM node:18\nCOPY . /app\n")

        assert edit is None

    def test_unpinnable_image(self):
        """Test that only known runtimes get a pinned image."""
        diagnostic = _diagnostic("FROM ubuntu\nCMD x\n", RepairCode.NOIMAGEPIN)
        assert RepairSynthesizer().synthesize(diagnostic, "FROM ubuntu\nCMD x\n") is None


class TestStaticRepairs:
    """Test the single-span rewrites."""

    @pytest.mark.parametrize(
        "code,before,after",
        [
            (
                RepairCode.NOINSTALLRECOMMENDS,
                "RUN apt-get update && apt-get install -y curl",
                "RUN apt-get update && apt-get install --no-install-recommends -y curl",
            ),
            (
                RepairCode.CONFIRMINSTALL,
                "RUN apt-get update && apt-get install curl",
                "RUN apt-get update && apt-get install -y curl",
            ),
            (
                RepairCode.UPDATEBEFOREINSTALL,
                "RUN apt-get install -y curl",
                "RUN apt-get update && apt-get install -y curl",
            ),
            (RepairCode.NOCACHE, "RUN apk add curl", "RUN apk add --no-cache curl"),
            (
                RepairCode.FCURL,
                "RUN curl https://example.com/x.sh",
                "RUN curl -f https://example.com/x.sh",
            ),
            (
                RepairCode.NOHTTPURL,
                "RUN curl -f http://example.com/x.sh -o x.sh",
                "RUN curl -f https://example.com/x.sh -o x.sh",
            ),
            (RepairCode.NOADD, "ADD . /app", "COPY . /app"),
            (RepairCode.NOCD, "RUN cd /app", "WORKDIR /app"),
        ],
    )
    def test_line_rewrite(self, code, before, after):
        """Test that the rewritten line no longer triggers the rule."""
        text = f"FROM node:18\n{before}\nCMD x\n"

        repaired = _repair(text, code)

        assert repaired == f"FROM node:18\n{after}\nCMD x\n"
        assert code not in [d.code for d in check_repairable_problems(parse_dockerfile(repaired))]

    def test_apt_lists(self):
        """Test that the lists removal is chained onto the RUN."""
        text = "FROM node:18\nRUN apt-get update && apt-get install -y --no-install-recommends curl\n"

        assert _repair(text, RepairCode.APTLIST) == (
            "FROM node:18\n"
            "RUN apt-get update && apt-get install -y --no-install-recommends curl \\\n"
            "\t&& rm -rf /var/lib/apt/lists/*\n"
        )

    def test_remove_maintainer(self):
        """Test that the whole MAINTAINER line goes away."""
        assert _repair("FROM node:18\nMAINTAINER me\nCMD x\n", RepairCode.NOMAINTAINER) == (
            "FROM node:18\nCMD x\n"
        )

    def test_merge_runs(self):
        """Test that two RUNs become one continued RUN."""
        assert _repair("FROM node:18\nRUN npm ci\nRUN npm test\n", RepairCode.CONSECUTIVERUN) == (
            "FROM node:18\nRUN npm ci \\\n\t&& npm test\n"
        )

    def test_merge_exec_form(self):
        """Test that exec-form RUNs are merged as shell text."""
        text = 'FROM node:18\nRUN ["npm", "ci"]\nRUN npm test\n'
        assert _repair(text, RepairCode.CONSECUTIVERUN) == (
            "FROM node:18\nRUN npm ci \\\n\t&& npm test\n"
        )

    def test_add_workdir(self):
        """Test that WORKDIR is inserted after FROM."""
        assert _repair("FROM node:18\nCOPY . .\nCMD x\n", RepairCode.NOROOTDIR) == (
            "FROM node:18\nWORKDIR /app\nCOPY . .\nCMD x\n"
        )

    def test_crlf_is_kept(self):
        """Test that inserted lines use the document's newline."""
        text = "FROM node:18\r\nCOPY . .\r\nCMD x\r\n"
        assert _repair(text, RepairCode.NOROOTDIR) == (
            "FROM node:18\r\nWORKDIR /app\r\nCOPY . .\r\nCMD x\r\n"
        )

    @pytest.mark.parametrize(
        "before,after",
        [
            ("FROM node", "FROM node:18-slim"),
            ("FROM python AS build", "FROM python:3.11-slim AS build"),
            ("FROM --platform=linux/amd64 node", "FROM --platform=linux/amd64 node:18-slim"),
        ],
    )
    def test_pin_image(self, before, after):
        """Test that known runtimes are pinned to a slim tag."""
        assert _repair(f"{before}\nCMD x\n", RepairCode.NOIMAGEPIN) == f"{after}\nCMD x\n"


class TestLayoutRepairs:
    """Test the non-root user and split COPY repairs."""

    def test_node_user_owns_the_sources(self):
        """Test USER before the final instruction and --chown on the last COPY."""
        text = (
            "FROM node:18\n"
            "WORKDIR /app\n"
            "COPY package*.json ./\n"
            "RUN npm ci\n"
            "COPY . .\n"
            'CMD ["node", "server.js"]\n'
        )

        assert _repair(text, RepairCode.NOROOTUSER) == (
            "FROM node:18\n"
            "WORKDIR /app\n"
            "COPY package*.json ./\n"
            "RUN npm ci\n"
            "COPY --chown=node:node . .\n"
            "USER node\n"
            'CMD ["node", "server.js"]\n'
        )

    def test_python_user_is_created(self):
        """Test that python images create the account first."""
        repaired = _repair(PYTHON_DOCKERFILE, RepairCode.NOROOTUSER)

        assert repaired == (
            "FROM python:3.11-slim\n"
            "WORKDIR /app\n"
            "COPY . .\n"
            "RUN useradd python\n"
            "USER python\n"
            'CMD ["python", "app.py"]\n'
        )

    def test_python_user_exists_before_chown(self):
        """Test that the account is created before the COPY that hands it the files."""
        text = (
            "FROM python:3.11\n"
            "COPY requirements.txt .\n"
            "RUN pip install -r requirements.txt\n"
            "COPY . .\n"
            'CMD ["python", "app.py"]\n'
        )

        repaired = _repair(text, RepairCode.NOROOTUSER)

        assert repaired == (
            "FROM python:3.11\n"
            "COPY requirements.txt .\n"
            "RUN pip install -r requirements.txt\n"
            "RUN useradd python\n"
            "COPY --chown=python:python . .\n"
            "USER python\n"
            'CMD ["python", "app.py"]\n'
        )
        lines = repaired.splitlines()
        assert lines.index("RUN useradd python") < lines.index("COPY --chown=python:python . .")

    def test_python_user_with_final_copy(self):
        """Test the account and USER placed together when the last COPY ends the file."""
        text = "FROM python:3.11\nCOPY requirements.txt .\nCOPY . .\n"

        repaired = _repair(text, RepairCode.NOROOTUSER)

        assert repaired == (
            "FROM python:3.11\n"
            "COPY requirements.txt .\n"
            "RUN useradd python\n"
            "USER python\n"
            "COPY --chown=python:python . .\n"
        )

    def test_explicit_runtime_kind(self):
        """Test that the caller's runtime overrides detection."""
        repaired = _repair("FROM debian:12\nCOPY . .\nCMD x\n", RepairCode.NOROOTUSER, runtime_kind=RuntimeKind.PYTHON)
        assert "USER python\nCMD x\n" in repaired

    def test_split_copy(self):
        """Test that the manifest is copied first and the tree before the final instruction."""
        text = (
            "FROM node:18\n"
            "WORKDIR /app\n"
            "COPY . .\n"
            "RUN npm ci\n"
            'CMD ["node", "server.js"]\n'
        )

        repaired = _repair(text, RepairCode.SINGLECOPY)

        assert repaired == (
            "FROM node:18\n"
            "WORKDIR /app\n"
            "COPY package*.json ./\n"
            "RUN npm ci\n"
            "COPY . .\n"
            'CMD ["node", "server.js"]\n'
        )
        assert not [
            d
            for d in check_repairable_problems(parse_dockerfile(repaired))
            if d.code == RepairCode.SINGLECOPY
        ]

    def test_split_copy_python(self):
        """Test the python manifest."""
        repaired = _repair(PYTHON_DOCKERFILE, RepairCode.SINGLECOPY)
        assert "COPY requirements.txt ./\n" in repaired


class TestTraceRepairs:
    """Test repairs copied out of the synthesized alternative."""

    def test_missing_ports(self):
        """Test that EXPOSE is inserted and the diagnostic goes away."""
        original = 'FROM python\nCOPY . .\nCMD ["python", "app.py"]\n'
        alternative = SynthesizedDockerfile.from_text(
            'FROM python\nCOPY . .\nEXPOSE 5000\nCMD ["python", "app.py"]\n'
        )

        repaired = _repair(original, RepairCode.HERMITPORTS, alternative)

        assert repaired == 'FROM python\nCOPY . .\nEXPOSE 5000\nCMD ["python", "app.py"]\n'
        assert reconcile(parse_dockerfile(repaired), alternative) == []

    def test_mismatched_ports(self):
        """Test that the first EXPOSE takes the ports and the others are removed."""
        original = 'FROM node:18\nEXPOSE 8080\nEXPOSE 9090\nCMD ["node", "a.js"]\n'
        alternative = SynthesizedDockerfile.from_text(
            'FROM node:18\nEXPOSE 3000\nCMD ["node", "a.js"]\n'
        )

        repaired = _repair(original, RepairCode.HERMITPORTS, alternative)

        assert repaired == 'FROM node:18\nEXPOSE 3000\nCMD ["node", "a.js"]\n'

    def test_missing_dependencies(self):
        """Test that the alternative's package RUN is inserted after FROM."""
        original = 'FROM debian:12\nCOPY . .\nCMD ["./app"]\n'
        alternative = synthesize(
            parse_dockerfile(original), FeatureSet(packages=["curl"]), python_profile()
        )

        repaired = _repair(original, RepairCode.HERMITDEPS, alternative)

        assert repaired.startswith(
            "FROM debian:12\n"
            "RUN apt-get update && apt-get install -y --no-install-recommends curl \\\n"
            "\t&& rm -rf /var/lib/apt/lists/*\n"
            "COPY . .\n"
        )
        assert RepairCode.HERMITDEPS not in [
            d.code for d in reconcile(parse_dockerfile(repaired), alternative)
        ]

    def test_mismatched_dependencies(self):
        """Test that only the install call is rewritten."""
        original = 'FROM debian:12\nRUN apt-get update && apt-get install -y vim\nCMD ["./app"]\n'
        alternative = synthesize(
            parse_dockerfile(original), FeatureSet(packages=["curl"]), python_profile()
        )

        repaired = _repair(original, RepairCode.HERMITDEPS, alternative)

        assert repaired == (
            "FROM debian:12\n"
            "RUN apt-get update && apt-get install -y --no-install-recommends curl\n"
            'CMD ["./app"]\n'
        )
        assert reconcile(parse_dockerfile(repaired), alternative) == []

    def test_unnecessary_dependencies(self):
        """Test that package calls are dropped and other commands kept."""
        original = (
            "FROM debian:12\n"
            "RUN apt-get update && apt-get install -y vim\n"
            "RUN apt-get install -y git && make build\n"
            'CMD ["./app"]\n'
        )
        alternative = SynthesizedDockerfile.from_text('FROM debian:12\nCMD ["./app"]\n')

        repaired = _repair(original, RepairCode.HERMITDEPS, alternative)

        assert repaired == 'FROM debian:12\nRUN make build\nCMD ["./app"]\n'

    def test_language_dependencies(self):
        """Test that missing installer RUNs and ENVs are inserted after COPY."""
        original = parse_dockerfile(PYTHON_DOCKERFILE)
        alternative = synthesize(original, FeatureSet(ports=[], packages=[]), python_profile())

        repaired = _repair(PYTHON_DOCKERFILE, RepairCode.HERMITLANGDEPS, alternative)

        assert repaired == (
            "FROM python:3.11-slim\n"
            "WORKDIR /app\n"
            "COPY . .\n"
            "RUN pip3 install --upgrade pip\n"
            "RUN pip install -r ./requirements.txt --target local-site-packages\n"
            "ENV PYTHONPATH=./local-site-packages\n"
            'CMD ["python", "app.py"]\n'
        )
        assert reconcile(parse_dockerfile(repaired), alternative) == []
