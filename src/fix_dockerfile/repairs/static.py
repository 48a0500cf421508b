"""Repairs for the static rules that rewrite a single span."""

from typing import Optional

from fix_dockerfile.dockerfile import Instruction
from fix_dockerfile.features.languages import node_profile, python_profile
from fix_dockerfile.repairs.registry import RepairContext, register
from fix_dockerfile.rules import APT_LISTS_REMOVAL
from fix_dockerfile.schema import RepairCode, RepairEdit

DEFAULT_WORKDIR = "/app"

PINNED_IMAGES = {
    "node": node_profile,
    "python": python_profile,
}


@register(RepairCode.NOINSTALLRECOMMENDS, "Add --no-install-recommends")
def add_no_install_recommends(ctx: RepairContext) -> RepairEdit:
    return ctx.replace(f"{ctx.text} --no-install-recommends")


@register(RepairCode.CONFIRMINSTALL, "Add -y")
def add_confirm_flag(ctx: RepairContext) -> RepairEdit:
    return ctx.replace(f"{ctx.text} -y")


def _runs_apt_update(instruction: Optional[Instruction]) -> bool:
    if instruction is None or instruction.keyword != "RUN":
        return False
    values = instruction.values()
    return any(a == "apt-get" and b == "update" for a, b in zip(values, values[1:]))


@register(RepairCode.UPDATEBEFOREINSTALL, "Run apt-get update first")
def add_update(ctx: RepairContext) -> Optional[RepairEdit]:
    """
    Prepend ``apt-get update`` to the install.

    A RUN right after one that already updates is left for the RUN merge.
    """
    line = ctx.range.start.line
    previous = None
    for instruction in ctx.dockerfile.instructions:
        if instruction.range.start.line <= line <= instruction.range.end.line:
            break
        previous = instruction
    if _runs_apt_update(previous):
        return None
    return ctx.replace(f"apt-get update && {ctx.text}")


@register(RepairCode.NOCACHE, "Add --no-cache")
def add_no_cache(ctx: RepairContext) -> RepairEdit:
    return ctx.replace(f"{ctx.text} --no-cache")


@register(RepairCode.FCURL, "Add -f to curl")
def add_fail_flag(ctx: RepairContext) -> RepairEdit:
    return ctx.replace(f"{ctx.text} -f")


@register(RepairCode.NOADD, "Use COPY")
def replace_add(ctx: RepairContext) -> RepairEdit:
    return ctx.replace("COPY")


@register(RepairCode.NOCD, "Use WORKDIR")
def replace_cd(ctx: RepairContext) -> RepairEdit:
    return ctx.replace("WORKDIR")


@register(RepairCode.NOHTTPURL, "Use HTTPS")
def use_https(ctx: RepairContext) -> RepairEdit:
    return ctx.replace(ctx.text.replace("http://", "https://", 1))


@register(RepairCode.NOMAINTAINER, "Remove MAINTAINER")
def remove_maintainer(ctx: RepairContext) -> Optional[RepairEdit]:
    instruction = ctx.instruction_at(ctx.range.start)
    if instruction is None:
        return None
    return ctx.replace("", ctx.line_removal(instruction))


@register(RepairCode.APTLIST, "Remove the apt lists")
def remove_apt_lists(ctx: RepairContext) -> RepairEdit:
    return ctx.replace(f"{ctx.text} \\{ctx.newline}\t&& {APT_LISTS_REMOVAL}")


@register(RepairCode.CONSECUTIVERUN, "Merge RUN instructions")
def merge_runs(ctx: RepairContext) -> Optional[RepairEdit]:
    first = ctx.instruction_at(ctx.range.start)
    second = next(
        (i for i in ctx.dockerfile.instructions if i.range.end == ctx.range.end), None
    )
    if first is None or second is None:
        return None
    head = first.text.rstrip() if not first.is_json_form else f"{first.raw_keyword} {first.command_text()}"
    return ctx.replace(f"{head} \\{ctx.newline}\t&& {second.command_text()}")


@register(RepairCode.NOROOTDIR, "Add WORKDIR")
def add_workdir(ctx: RepairContext) -> RepairEdit:
    range_, text = ctx.insertion(ctx.range.start.line, [f"WORKDIR {DEFAULT_WORKDIR}"])
    return ctx.replace(text, range_)


@register(RepairCode.NOIMAGEPIN, "Pin the base image")
def pin_image(ctx: RepairContext) -> Optional[RepairEdit]:
    instruction = ctx.instruction_at(ctx.range.start)
    if instruction is None or instruction.image_name not in PINNED_IMAGES:
        return None
    pinned = PINNED_IMAGES[instruction.image_name]().image
    parts = [instruction.raw_keyword, *instruction.flags, pinned]
    if instruction.stage_name:
        parts += ["AS", instruction.stage_name]
    return ctx.replace(" ".join(parts))
