import asyncio
import pytest
from constants import AudioFormat
from exceptions import DecodeSpawnError, FileMissingError
from helpers import SLEEP_SCRIPT, ScriptedSupervisor, pcm_script, wait_until
from services.decode_supervisor import DecodeOutcome, DecodeSupervisor, OutcomeKind
from utils.ffmpeg_helper import build_pcm_decode_command


def test_decode_command_requests_48k_stereo_s16le():
    cmd = build_pcm_decode_command("/usr/bin/ffmpeg", "/sounds/a.mp3")

    assert cmd[0] == "/usr/bin/ffmpeg"
    assert cmd[cmd.index("-i") + 1] == "/sounds/a.mp3"
    assert cmd[cmd.index("-f") + 1] == "s16le"
    assert cmd[cmd.index("-ar") + 1] == "48000"
    assert cmd[cmd.index("-ac") + 1] == "2"
    assert cmd[-1] == "pipe:1"


def test_frame_size_is_20ms_of_stereo_s16():
    assert AudioFormat.frame_size_bytes() == 3840


def test_start_missing_file_fails_without_spawning(tmp_path):
    supervisor = ScriptedSupervisor()

    with pytest.raises(FileMissingError):
        asyncio.run(supervisor.start(tmp_path / "gone.mp3"))
    assert supervisor.handles == []


def test_spawn_failure_raises_decode_spawn_error(tmp_path):
    clip = tmp_path / "a.mp3"
    clip.write_bytes(b"data")
    supervisor = DecodeSupervisor(ffmpeg_path=str(tmp_path / "no-such-ffmpeg"))

    with pytest.raises(DecodeSpawnError) as exc_info:
        asyncio.run(supervisor.start(clip))
    assert exc_info.value.kind == "DecodeSpawnFailure"


def test_clean_exit_reports_exited_zero(tmp_path):
    clip = tmp_path / "clip.py"
    clip.write_text(pcm_script(10_000))

    async def scenario():
        handle = await ScriptedSupervisor().start(clip)
        data = await handle.stdout.read()
        return len(data), await handle.wait()

    size, outcome = asyncio.run(scenario())
    assert size == 10_000
    assert outcome == DecodeOutcome.exited(0)
    assert outcome.succeeded


def test_zero_bytes_then_clean_exit_is_normal_completion(tmp_path):
    clip = tmp_path / "empty.py"
    clip.write_text(pcm_script(0))

    async def scenario():
        handle = await ScriptedSupervisor().start(clip)
        data = await handle.stdout.read()
        return data, await handle.wait()

    data, outcome = asyncio.run(scenario())
    assert data == b""
    assert outcome.succeeded


def test_nonzero_exit_keeps_code_and_stderr(tmp_path):
    clip = tmp_path / "bad.py"
    clip.write_text(pcm_script(0, exit_code=3))

    async def scenario():
        handle = await ScriptedSupervisor().start(clip)
        await handle.stdout.read()
        return await handle.wait()

    outcome = asyncio.run(scenario())
    assert outcome.kind == OutcomeKind.EXITED
    assert outcome.code == 3
    assert not outcome.succeeded
    assert "decode error" in outcome.stderr


def test_stop_terminates_and_reports_killed_once(tmp_path):
    clip = tmp_path / "sleep.py"
    clip.write_text(SLEEP_SCRIPT)

    async def scenario():
        supervisor = ScriptedSupervisor()
        handle = await supervisor.start(clip)
        outcomes = []
        handle.add_done_callback(lambda h, outcome: outcomes.append(outcome))

        await supervisor.stop(handle)
        returncode = handle.process.returncode
        await supervisor.stop(handle)
        await handle._watcher
        return returncode, outcomes, handle.outcome

    returncode, outcomes, final = asyncio.run(scenario())
    assert returncode is not None
    assert outcomes == [DecodeOutcome.killed()]
    assert final.kind == OutcomeKind.KILLED


def test_stop_after_exit_is_noop(tmp_path):
    clip = tmp_path / "clip.py"
    clip.write_text(pcm_script(100))

    async def scenario():
        supervisor = ScriptedSupervisor()
        handle = await supervisor.start(clip)
        await handle.stdout.read()
        await handle.wait()
        await supervisor.stop(handle)
        return handle.outcome

    assert asyncio.run(scenario()) == DecodeOutcome.exited(0)


def test_stop_drains_unread_output(tmp_path):
    # Decoder blocked on a full pipe must still be reaped
    clip = tmp_path / "big.py"
    clip.write_text(pcm_script(5_000_000))

    async def scenario():
        supervisor = ScriptedSupervisor()
        handle = await supervisor.start(clip)
        await asyncio.sleep(0.2)
        await asyncio.wait_for(supervisor.stop(handle), timeout=10)
        return handle.process.returncode, handle.outcome.kind

    returncode, kind = asyncio.run(scenario())
    assert returncode is not None
    assert kind == OutcomeKind.KILLED


def test_stop_after_exit_drains_unread_output(tmp_path):
    clip = tmp_path / "short.py"
    clip.write_text(pcm_script(350_000))

    async def scenario():
        supervisor = ScriptedSupervisor()
        handle = await supervisor.start(clip)
        await handle.stdout.readexactly(250_000)
        await wait_until(lambda: handle.process.returncode is not None)

        await supervisor.stop(handle)
        return handle.stdout.at_eof(), await handle.wait()

    at_eof, outcome = asyncio.run(scenario())
    assert at_eof
    assert outcome == DecodeOutcome.exited(0)
