from unittest.mock import patch

from ecotrack import start_backend


def test_main_runs_uvicorn_with_app_path():
    with patch.object(start_backend.uvicorn, "run") as run:
        assert start_backend.main(["--port", "9001"]) == 0

    args, kwargs = run.call_args
    assert args == ("ecotrack.main:app",)
    assert kwargs["port"] == 9001
    assert kwargs["reload"] is False
