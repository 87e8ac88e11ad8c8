"""Shared test doubles and helpers."""
import asyncio
import sys
import textwrap

from services.decode_supervisor import DecodeSupervisor


class ScriptedSupervisor(DecodeSupervisor):
    """
    Runs each clip file as a Python script instead of feeding it to ffmpeg,
    so tests control exactly what the "decoder" writes and how it exits.
    Also records which earlier decoders were still alive at every spawn.
    """

    def __init__(self, terminate_timeout: float = 2.0):
        super().__init__(ffmpeg_path=sys.executable, terminate_timeout=terminate_timeout)
        self.handles = []
        self.alive_at_spawn = []

    def build_command(self, path):
        return [sys.executable, str(path)]

    async def start(self, path):
        self.alive_at_spawn.append([h for h in self.handles if h.process.returncode is None])
        handle = await super().start(path)
        self.handles.append(handle)
        return handle

    def alive(self):
        return [h for h in self.handles if h.process.returncode is None]


def pcm_script(num_bytes: int, exit_code: int = 0) -> str:
    """Decoder script that writes num_bytes of silence and exits"""
    return textwrap.dedent(f"""
        import sys
        sys.stdout.buffer.write(b'\\x00' * {num_bytes})
        sys.stdout.flush()
        if {exit_code}:
            sys.stderr.write('decode error')
        sys.exit({exit_code})
    """)


def closing_script(num_bytes: int, linger: float, exit_code: int = 0) -> str:
    """
    Decoder script that writes num_bytes, closes its stdout pipe, then keeps
    running for linger seconds before exiting, so the output ends before the
    exit code is known.
    """
    return textwrap.dedent(f"""
        import os, sys, time
        sys.stdout.buffer.write(b'\\x00' * {num_bytes})
        sys.stdout.flush()
        os.dup2(os.open(os.devnull, os.O_WRONLY), 1)
        time.sleep({linger})
        sys.exit({exit_code})
    """)


SLEEP_SCRIPT = "import time\ntime.sleep(60)\n"


async def wait_until(predicate, timeout: float = 5.0):
    """Poll predicate on the running loop until it is true"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)
