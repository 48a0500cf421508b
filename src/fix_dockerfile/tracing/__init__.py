"""Syscall tracing of the containerised application."""

from fix_dockerfile.tracing.driver import TraceDriver, TraceSession
from fix_dockerfile.tracing.syscalls import parse_syscall_line, parse_syscall_log, read_syscall_log

__all__ = [
    "TraceDriver",
    "TraceSession",
    "parse_syscall_line",
    "parse_syscall_log",
    "read_syscall_log",
]
