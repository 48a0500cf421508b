"""Repairs that touch several instructions: non-root user and split COPY."""

from typing import Optional

from fix_dockerfile.dockerfile import Instruction
from fix_dockerfile.repairs.registry import RepairContext, register
from fix_dockerfile.schema import Range, RepairCode, RepairEdit, RuntimeKind

# python images ship no service account, node images ship "node"
SERVICE_USERS = {
    RuntimeKind.NODE: "node",
    RuntimeKind.PYTHON: "python",
}
DEPENDENCY_MANIFESTS = {
    RuntimeKind.NODE: "package*.json",
    RuntimeKind.PYTHON: "requirements.txt",
}

CHOWN_FLAG = "--chown"


def _has_chown(instruction: Instruction) -> bool:
    return any(flag.startswith(CHOWN_FLAG) for flag in instruction.flags)


def _chown_edit(instruction: Instruction, user: str) -> tuple[Range, str]:
    """Add ``--chown`` right after the COPY keyword."""
    return Range.empty_at(instruction.keyword_range.end), f" {CHOWN_FLAG}={user}:{user}"


def _before_last_instruction(ctx: RepairContext) -> int:
    return ctx.dockerfile.last_instruction.range.start.line


@register(RepairCode.NOROOTUSER, "Run as a non-root user")
def add_user(ctx: RepairContext) -> Optional[RepairEdit]:
    """
    Insert ``USER`` before the final instruction and give the user the files
    of the last COPY. Python images also need the account created, before
    the last COPY when that COPY names it.
    """
    user = SERVICE_USERS[ctx.runtime_kind]
    user_line = _before_last_instruction(ctx)
    lines = [f"USER {user}"]
    parts = []
    copies = ctx.dockerfile.copies
    chown = len(copies) > 1

    if ctx.runtime_kind is RuntimeKind.PYTHON:
        account = f"RUN useradd {user}"
        account_line = copies[-1].range.start.line if chown else user_line
        if account_line < user_line:
            parts.append(ctx.insertion(account_line, [account]))
        else:
            lines.insert(0, account)

    parts.append(ctx.insertion(user_line, lines))
    if chown and not _has_chown(copies[-1]):
        parts.append(_chown_edit(copies[-1], user))
    return ctx.combine(parts)


def _destination(copy: Instruction) -> Optional[str]:
    json_args = copy.json_arguments()
    if json_args is not None:
        return json_args[-1] if len(json_args) >= 2 else None
    paths = [arg.unquoted for arg in copy.arguments if not arg.value.startswith("--")]
    return paths[-1] if len(paths) >= 2 else None


@register(RepairCode.SINGLECOPY, "Copy the dependency manifest first")
def split_copy(ctx: RepairContext) -> Optional[RepairEdit]:
    """
    Turn the only COPY into a copy of the dependency manifest and copy the
    whole tree again, as written, right before the final instruction.
    """
    copy = ctx.instruction_at(ctx.range.start)
    if copy is None:
        return None
    destination = _destination(copy)
    if destination is None:
        return None
    if not destination.endswith("/"):
        destination += "/"

    manifest = DEPENDENCY_MANIFESTS[ctx.runtime_kind]
    first = " ".join([copy.raw_keyword, *copy.flags, manifest, destination])
    parts = [
        (copy.range, first),
        ctx.insertion(_before_last_instruction(ctx), [copy.text]),
    ]
    return ctx.combine(parts)
