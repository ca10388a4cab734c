# -*- coding: utf-8 -*-
"""
Minimal timestamped logger used by the ladder and the CLI.

``set_quiet(True)`` silences ``info``; warnings and errors always go to stderr.
"""
import sys, time

_QUIET = False

def set_quiet(flag: bool) -> None:
    global _QUIET
    _QUIET = bool(flag)

def _stamp() -> str:
    return time.strftime('%H:%M:%S')

def info(msg: str):
    if not _QUIET:
        print(f"[{_stamp()}] {msg}", file=sys.stdout)
def warn(msg: str):  print(f"[{_stamp()}] WARNING: {msg}", file=sys.stderr)
def error(msg: str): print(f"[{_stamp()}] ERROR: {msg}", file=sys.stderr)
