# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for ossclient/cli.py: multi-command CLI."""

import logging
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from ossclient.cli import (
    EXIT_FAILURE,
    EXIT_USAGE,
    cli,
    cmd_init,
    cmd_upload,
)
from ossclient.client import UploadErrorKind, UploadResult
from ossclient.config import STUB_CONFIG


_URL = "https://mybucket.oss-cn-hangzhou.aliyuncs.com/photo.jpg"


@pytest.fixture(autouse=True)
def _restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "ossclient.yaml"
    path.write_text(
        "access_id: AKID\naccess_secret: SECRET\nbucket: mybucket\n"
    )
    return path


@pytest.fixture
def image_file(tmp_path: Path) -> Path:
    path = tmp_path / "photo.png"
    Image.new("RGB", (4, 4), (1, 2, 3)).save(path)
    return path


def _mock_client(result: UploadResult) -> MagicMock:
    client = MagicMock()
    client.__enter__ = MagicMock(return_value=client)
    client.__exit__ = MagicMock(return_value=False)
    client.upload_image.return_value = result
    return client


# ── init ────────────────────────────────────────────────────────────


class TestCmdInit:
    def test_creates_config(self, tmp_path: Path) -> None:
        path = tmp_path / "sub" / "ossclient.yaml"
        assert cmd_init(["--config", str(path)]) == 0
        assert path.read_text() == STUB_CONFIG

    def test_keeps_existing(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        path = tmp_path / "ossclient.yaml"
        path.write_text("custom\n")
        assert cmd_init(["--config", str(path)]) == 0
        assert path.read_text() == "custom\n"
        assert "already exists" in capsys.readouterr().out

    def test_force_overwrites(self, tmp_path: Path) -> None:
        path = tmp_path / "ossclient.yaml"
        path.write_text("custom\n")
        assert cmd_init(["--config", str(path), "--force"]) == 0
        assert path.read_text() == STUB_CONFIG

    def test_default_path(self, tmp_path: Path) -> None:
        path = tmp_path / "xdg" / "ossclient.yaml"
        with patch("ossclient.cli.get_config_path", return_value=path):
            assert cmd_init([]) == 0
        assert path.exists()


# ── upload ──────────────────────────────────────────────────────────


class TestCmdUpload:
    def test_success(
        self,
        config_file: Path,
        image_file: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        client = _mock_client(UploadResult.success(_URL))
        with patch(
            "ossclient.cli.OSSClient.from_config", return_value=client
        ) as from_config:
            code = cmd_upload([str(image_file), "--config", str(config_file)])

        assert code == 0
        assert capsys.readouterr().out.strip() == _URL
        config = from_config.call_args[0][0]
        assert config.access_id == "AKID"
        image, name, bucket = client.upload_image.call_args[0]
        assert image.size == (4, 4)
        assert name == "photo"
        assert bucket == "mybucket"

    def test_name_and_bucket_flags(
        self, config_file: Path, image_file: Path
    ) -> None:
        client = _mock_client(UploadResult.success(_URL))
        with patch("ossclient.cli.OSSClient.from_config", return_value=client):
            cmd_upload(
                [
                    str(image_file),
                    "--config",
                    str(config_file),
                    "--name",
                    "custom",
                    "--bucket",
                    "other",
                ]
            )
        _, name, bucket = client.upload_image.call_args[0]
        assert (name, bucket) == ("custom", "other")

    def test_upload_failure(
        self,
        config_file: Path,
        image_file: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        result = UploadResult.failure(
            UploadErrorKind.UPLOAD_FAILURE, status_code=403, detail="denied"
        )
        with patch(
            "ossclient.cli.OSSClient.from_config",
            return_value=_mock_client(result),
        ):
            code = cmd_upload([str(image_file), "--config", str(config_file)])
        assert code == EXIT_FAILURE
        assert "upload-failure (HTTP 403): denied" in capsys.readouterr().err

    def test_signing_failure(
        self, config_file: Path, image_file: Path
    ) -> None:
        result = UploadResult.failure(UploadErrorKind.SIGNING_FAILURE)
        with patch(
            "ossclient.cli.OSSClient.from_config",
            return_value=_mock_client(result),
        ):
            code = cmd_upload([str(image_file), "--config", str(config_file)])
        assert code == EXIT_FAILURE

    def test_invalid_input_result(
        self, config_file: Path, image_file: Path
    ) -> None:
        result = UploadResult.failure(UploadErrorKind.INVALID_INPUT)
        with patch(
            "ossclient.cli.OSSClient.from_config",
            return_value=_mock_client(result),
        ):
            code = cmd_upload([str(image_file), "--config", str(config_file)])
        assert code == EXIT_USAGE

    def test_missing_config(
        self,
        tmp_path: Path,
        image_file: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = cmd_upload(
            [str(image_file), "--config", str(tmp_path / "missing.yaml")]
        )
        assert code == EXIT_USAGE
        assert "config error" in capsys.readouterr().err

    def test_no_bucket(
        self,
        tmp_path: Path,
        image_file: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        path = tmp_path / "nobucket.yaml"
        path.write_text("access_id: AKID\naccess_secret: SECRET\n")
        code = cmd_upload([str(image_file), "--config", str(path)])
        assert code == EXIT_USAGE
        assert "no bucket" in capsys.readouterr().err

    def test_unreadable_image(
        self,
        tmp_path: Path,
        config_file: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        bad = tmp_path / "bad.png"
        bad.write_text("not an image")
        with patch("ossclient.cli.OSSClient.from_config") as from_config:
            code = cmd_upload([str(bad), "--config", str(config_file)])
        assert code == EXIT_USAGE
        from_config.assert_not_called()
        assert "Cannot read image" in capsys.readouterr().err


# ── dispatch ────────────────────────────────────────────────────────


class TestCli:
    def test_no_args_prints_usage(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch("sys.argv", ["ossclient"]), pytest.raises(SystemExit) as e:
            cli()
        assert e.value.code == 0
        assert "usage: ossclient" in capsys.readouterr().out

    def test_unknown_command(self, capsys: pytest.CaptureFixture[str]) -> None:
        with (
            patch("sys.argv", ["ossclient", "frobnicate"]),
            pytest.raises(SystemExit) as e,
        ):
            cli()
        assert e.value.code == EXIT_USAGE
        assert "unknown command 'frobnicate'" in capsys.readouterr().err

    def test_dispatches_to_handler(self) -> None:
        with (
            patch("sys.argv", ["ossclient", "upload", "a.png"]),
            patch("ossclient.cli.cmd_upload", return_value=0) as handler,
            pytest.raises(SystemExit) as e,
        ):
            cli()
        handler.assert_called_once_with(["a.png"])
        assert e.value.code == 0
