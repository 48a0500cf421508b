"""
Repair synthesis: turn one diagnostic into one text edit.

Each code has exactly one generator (see ``registry``). A repair is computed
against the document text passed in, never against earlier edits, and is
refused when the diagnostic no longer holds for that text.
"""

from typing import Optional

from fix_dockerfile.dockerfile import Dockerfile, parse_dockerfile
from fix_dockerfile.reconcile import reconcile
from fix_dockerfile.repairs import layout, static, trace  # noqa: F401  (registration)
from fix_dockerfile.repairs.registry import REPAIRS, TITLES, RepairContext, register, verify_registry
from fix_dockerfile.rules import check_repairable_problems
from fix_dockerfile.schema import (
    RepairCode,
    RepairDiagnostic,
    RepairEdit,
    RuntimeKind,
)
from fix_dockerfile.synthesizer import SynthesizedDockerfile
from fix_dockerfile.utils import ui

verify_registry()

TRACE_CODES = frozenset(
    {RepairCode.HERMITDEPS, RepairCode.HERMITPORTS, RepairCode.HERMITLANGDEPS}
)


def detect_runtime_kind(dockerfile: Dockerfile) -> RuntimeKind:
    """Python when the first FROM names a python image, node otherwise."""
    froms = dockerfile.froms
    if froms and "python" in (froms[0].image_name or ""):
        return RuntimeKind.PYTHON
    return RuntimeKind.NODE


class RepairSynthesizer:
    """Computes repair edits, optionally against a synthesized alternative."""

    def __init__(self, alternative: Optional[SynthesizedDockerfile] = None):
        self.alternative = alternative

    def _still_reported(self, diagnostic: RepairDiagnostic, dockerfile: Dockerfile) -> bool:
        if diagnostic.code in TRACE_CODES:
            current = reconcile(dockerfile, self.alternative)
        else:
            current = check_repairable_problems(dockerfile)
        return any(
            d.code == diagnostic.code and d.range == diagnostic.range for d in current
        )

    def synthesize(
        self,
        diagnostic: RepairDiagnostic,
        document_text: str,
        runtime_kind: Optional[RuntimeKind] = None,
    ) -> Optional[RepairEdit]:
        """
        Edit repairing ``diagnostic`` in ``document_text``.

        Returns:
            The edit, or None when the code is unknown, the alternative needed
            by a trace repair is missing, or the anchor went stale.
        """
        try:
            code = RepairCode(diagnostic.code)
        except ValueError:
            ui.debug(f"No repair for unknown code {diagnostic.code}")
            return None

        if code in TRACE_CODES and self.alternative is None:
            ui.debug(f"No trace result to repair {code} against")
            return None

        dockerfile = parse_dockerfile(document_text)
        if not self._still_reported(diagnostic, dockerfile):
            ui.debug(f"Diagnostic {code} at line {diagnostic.range.start.line + 1} is stale")
            return None

        context = RepairContext(
            diagnostic=diagnostic,
            document=dockerfile.document,
            dockerfile=dockerfile,
            runtime_kind=runtime_kind or detect_runtime_kind(dockerfile),
            alternative=self.alternative,
        )
        return REPAIRS[code](context)


__all__ = [
    "REPAIRS",
    "TITLES",
    "TRACE_CODES",
    "RepairContext",
    "RepairSynthesizer",
    "detect_runtime_kind",
    "register",
]
