"""
Repairs for trace-reconciliation diagnostics.

They copy instructions out of the synthesized alternative, so every one of
them needs the alternative snapshot the diagnostic was computed against.
"""

from typing import Optional

from fix_dockerfile.dockerfile import Instruction, detect_distro
from fix_dockerfile.reconcile import (
    LANGUAGE_INSTALLERS,
    SHELL_AND,
    anchor_package_instruction,
    exposed_ports,
    restrict_range,
)
from fix_dockerfile.repairs.registry import RepairContext, register
from fix_dockerfile.schema import Range, RepairCode, RepairEdit


def _commands(instruction: Instruction) -> list[list]:
    """Arguments of a RUN grouped by ``&&``."""
    groups: list[list] = [[]]
    for arg in instruction.arguments:
        if arg.value == SHELL_AND:
            groups.append([])
        else:
            groups[-1].append(arg)
    return [group for group in groups if group]


def _strip_package_manager(ctx: RepairContext, instruction: Instruction, package_manager: str) -> tuple[Range, str]:
    """Edit that drops the package manager calls of a RUN, or the whole RUN."""
    kept = [
        group for group in _commands(instruction) if package_manager not in [a.value for a in group]
    ]
    if not kept:
        return ctx.line_removal(instruction), ""
    texts = [
        ctx.document.get_text(Range(start=group[0].range.start, end=group[-1].range.end))
        for group in kept
    ]
    return instruction.range, f"{instruction.raw_keyword} " + f" {SHELL_AND} ".join(texts)


@register(RepairCode.HERMITDEPS, "Install the detected dependencies")
def reconcile_dependencies(ctx: RepairContext) -> Optional[RepairEdit]:
    alternative = ctx.alternative.dockerfile
    package_manager = detect_distro(ctx.dockerfile).package_manager
    original_runs = ctx.dockerfile.run_instructions_with_arg(package_manager)
    synthesized_runs = alternative.run_instructions_with_arg(package_manager)

    if not original_runs:
        if not synthesized_runs:
            return None
        range_, text = ctx.insertion(ctx.range.start.line, [run.text for run in synthesized_runs])
        return ctx.replace(text, range_)

    if not synthesized_runs:
        return ctx.combine(
            [_strip_package_manager(ctx, run, package_manager) for run in original_runs]
        )

    anchor = anchor_package_instruction(original_runs, package_manager)
    others = [
        _strip_package_manager(ctx, run, package_manager) for run in original_runs if run is not anchor
    ]
    segment = restrict_range(
        anchor_package_instruction(synthesized_runs, package_manager), package_manager
    )
    if segment is not None and ctx.range == restrict_range(anchor, package_manager):
        return ctx.combine([(ctx.range, alternative.document.get_text(segment)), *others])

    replacement = ctx.newline.join(run.text for run in synthesized_runs)
    return ctx.combine([(anchor.range, replacement), *others])


@register(RepairCode.HERMITPORTS, "Expose the detected ports")
def reconcile_ports(ctx: RepairContext) -> Optional[RepairEdit]:
    ports = exposed_ports(ctx.alternative.dockerfile.exposes)
    if not ports:
        return None
    lines = [f"EXPOSE {port}" for port in ports]

    exposes = ctx.dockerfile.exposes
    if not exposes:
        range_, text = ctx.insertion(ctx.dockerfile.last_instruction.range.start.line, lines)
        return ctx.replace(text, range_)

    # the first EXPOSE takes the observed ports, the others go away
    parts = [(exposes[0].range, ctx.newline.join(lines))]
    parts += [(ctx.line_removal(expose), "") for expose in exposes[1:]]
    return ctx.combine(parts)


@register(RepairCode.HERMITLANGDEPS, "Install the language dependencies")
def reconcile_language_dependencies(ctx: RepairContext) -> Optional[RepairEdit]:
    installers = {keyword for keywords in LANGUAGE_INSTALLERS.values() for keyword in keywords}
    declared = {instruction.text for instruction in ctx.dockerfile.instructions}

    lines = []
    for instruction in ctx.alternative.dockerfile.instructions:
        if instruction.text in declared:
            continue
        if instruction.keyword == "ENV" or (
            instruction.keyword == "RUN" and installers & set(instruction.values())
        ):
            lines.append(instruction.text)
    if not lines:
        return None

    range_, text = ctx.insertion(ctx.range.start.line, lines)
    return ctx.replace(text, range_)
