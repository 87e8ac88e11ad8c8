import logging
import pytest
from fastapi.testclient import TestClient
from config.app_config import AppConfig, load_config
from constants import SinkBackend, UploadConfig
from exceptions import ConfigurationError
from helpers import SLEEP_SCRIPT, ScriptedSupervisor, pcm_script
from main import create_app
from services.audio_sinks import NullSink


class DisconnectedSink(NullSink):
    @property
    def is_connected(self) -> bool:
        return False


@pytest.fixture
def app_config(tmp_path):
    return AppConfig(
        sound_dir=tmp_path / "sounds",
        db_path=tmp_path / "soundboard.db",
        public_dir=tmp_path / "no-frontend",
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def client(app_config):
    app = create_app(app_config, sink=NullSink(), supervisor=ScriptedSupervisor())
    with TestClient(app) as test_client:
        yield test_client


def upload(client, name, script, emoji="", filename="clip.py"):
    return client.post(
        "/upload",
        files={"sound": (filename, script.encode(), "application/octet-stream")},
        data={"name": name, "emoji": emoji},
        follow_redirects=False,
    )


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_upload_redirects_and_registers(client, app_config):
    response = upload(client, "siren", pcm_script(100), emoji="🚨")

    assert response.status_code == 303
    assert response.headers["location"] == "/"

    mappings = client.get("/mappings").json()
    assert list(mappings) == ["siren"]
    assert mappings["siren"]["emoji"] == "🚨"
    assert (app_config.sound_dir / mappings["siren"]["filename"]).is_file()


def test_upload_without_name_is_rejected(client):
    response = client.post(
        "/upload",
        files={"sound": ("clip.mp3", b"data", "audio/mpeg")},
        follow_redirects=False,
    )
    assert response.status_code == 400
    assert client.get("/mappings").json() == {}


def test_upload_without_file_is_rejected(client):
    response = client.post("/upload", data={"name": "siren"}, follow_redirects=False)
    assert response.status_code == 400


def test_play_unknown_sound_returns_404(client):
    response = client.post("/play", json={"sound": "nope"})

    assert response.status_code == 404
    assert response.json()["detail"]["kind"] == "ClipNotFound"


def test_play_missing_file_returns_404(client, app_config):
    upload(client, "gone", SLEEP_SCRIPT)
    filename = client.get("/mappings").json()["gone"]["filename"]
    (app_config.sound_dir / filename).unlink()

    response = client.post("/play", json={"sound": "gone"})
    assert response.status_code == 404
    assert response.json()["detail"]["kind"] == "FileMissing"


def test_play_then_stop(client):
    upload(client, "long", SLEEP_SCRIPT)

    response = client.post("/play", json={"sound": "long", "playPressedAt": 1700000000000})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "Playing"
    assert body["sound"] == "long"

    status = client.get("/api/playback/status").json()
    assert status["state"] == "PLAYING"
    assert status["session"]["handle_id"] == body["handle_id"]

    response = client.post("/stop")
    assert response.status_code == 200
    assert response.json() == {"status": "Stopped"}

    status = client.get("/api/playback/status").json()
    assert status["state"] == "IDLE"
    assert status["last_session"]["state"] == "STOPPED"


def test_stop_when_idle_succeeds(client):
    assert client.post("/stop").status_code == 200


def test_play_without_sink_returns_503(app_config):
    app = create_app(app_config, sink=DisconnectedSink(), supervisor=ScriptedSupervisor())
    with TestClient(app) as test_client:
        upload(test_client, "siren", SLEEP_SCRIPT)
        response = test_client.post("/play", json={"sound": "siren"})

    assert response.status_code == 503
    assert response.json()["detail"]["kind"] == "SinkUnavailable"


def test_registry_survives_restart(app_config):
    app = create_app(app_config, sink=NullSink(), supervisor=ScriptedSupervisor())
    with TestClient(app) as test_client:
        upload(test_client, "a", pcm_script(10))
        upload(test_client, "b", pcm_script(10), emoji="🅱️")

    app = create_app(app_config, sink=NullSink(), supervisor=ScriptedSupervisor())
    with TestClient(app) as test_client:
        mappings = test_client.get("/mappings").json()

    assert list(mappings) == ["a", "b"]
    assert mappings["b"]["emoji"] == "🅱️"


def test_websocket_receives_snapshot_on_connect_and_after_upload(client):
    upload(client, "first", pcm_script(10))

    with client.websocket_connect("/ws") as websocket:
        initial = websocket.receive_json()
        assert initial["type"] == "sounds"
        assert list(initial["sounds"]) == ["first"]

        upload(client, "second", pcm_script(10), emoji="✌️")
        update = websocket.receive_json()

    assert update["type"] == "sounds"
    assert list(update["sounds"]) == ["first", "second"]
    assert update["sounds"]["second"]["emoji"] == "✌️"


def test_websocket_ping_pong(client):
    with client.websocket_connect("/ws") as websocket:
        websocket.receive_json()
        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}


def test_load_config_reads_environment(tmp_path):
    config = load_config({
        "SOUNDBOARD_SOUND_DIR": str(tmp_path / "clips"),
        "SOUNDBOARD_SINK": "NULL",
        "SOUNDBOARD_PORT": "8080",
    })

    assert config.sound_dir == (tmp_path / "clips").resolve()
    assert config.db_path == (tmp_path / "clips" / "soundboard.db").resolve()
    assert config.sink_backend == SinkBackend.NULL
    assert config.port == 8080


def test_load_config_rejects_unknown_sink():
    with pytest.raises(ConfigurationError):
        load_config({"SOUNDBOARD_SINK": "jack"})


def test_upload_over_size_limit_is_rejected(client, app_config):
    too_big = b"\x00" * (UploadConfig.MAX_FILE_SIZE_BYTES + 1)
    response = client.post(
        "/upload",
        files={"sound": ("huge.mp3", too_big, "audio/mpeg")},
        data={"name": "huge"},
        follow_redirects=False,
    )

    assert response.status_code == 413
    assert client.get("/mappings").json() == {}
    assert [p for p in app_config.sound_dir.iterdir() if p.suffix == ".mp3"] == []


def test_startup_writes_rotating_log_file(app_config):
    for _ in range(2):
        app = create_app(app_config, sink=NullSink(), supervisor=ScriptedSupervisor())
        with TestClient(app) as test_client:
            test_client.get("/api/health")

    log_file = app_config.log_dir / "soundboard.log"
    assert "Application startup complete" in log_file.read_text(encoding="utf-8")
    handlers = [h for h in logging.getLogger().handlers if getattr(h, "soundboard_handler", False)]
    assert len(handlers) == 2
