"""Unit tests for the operator CLI (src.cli.commands)."""

from __future__ import annotations

import json
from argparse import Namespace
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.cli.commands import _run, build_parser, main, run_cleanup, run_list, run_ocr, run_stats
from src.models.file import FileStats, FileStatus, StoredFile
from src.services.ocr_service import OCRService
from src.utils.errors import StorageError
from tests.conftest import FIXED_NOW, FakeOCRProvider, make_image_bytes


def _components(**overrides) -> dict:
    storage = MagicMock()
    storage.get_file_stats = AsyncMock(
        return_value=FileStats(
            total_files=3,
            total_size=3 * 1024 * 1024,
            files_by_type={"image/png": 2, "text/plain": 1},
            recent_uploads=1,
        )
    )
    storage.query_files = AsyncMock(
        return_value=[
            StoredFile(
                id="65f0c0ffee0000000000abcd",
                filename="1_a.png",
                original_name="scan.png",
                mimetype="image/png",
                size=2048,
                uploaded_at=FIXED_NOW,
                status=FileStatus.COMPLETED,
                gridfs_id="blob-1",
            )
        ]
    )
    storage.cleanup_expired_uploads = AsyncMock(return_value=2)
    components = {
        "storage": storage,
        "ocr_service": OCRService([FakeOCRProvider(text="hello world")], default_language="eng"),
        "mongo": MagicMock(),
        "cleanup_hours": 24,
    }
    components.update(overrides)
    return components


# ======================================================================
# Parser
# ======================================================================


class TestParser:
    def test_subcommands(self) -> None:
        parser = build_parser()
        args = parser.parse_args(["list", "--mimetype", "image", "--limit", "5", "--json"])
        assert (args.command, args.mimetype, args.limit, args.json_output) == ("list", "image", 5, True)

        args = parser.parse_args(["-q", "ocr", "scan.png", "-l", "eng"])
        assert args.quiet is True
        assert (args.image, args.language, args.json_output) == ("scan.png", "eng", False)

        assert parser.parse_args(["cleanup"]).hours is None
        assert parser.parse_args(["cleanup", "--hours", "1.5"]).hours == 1.5

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


# ======================================================================
# Handlers
# ======================================================================


class TestHandlers:
    @pytest.mark.asyncio
    async def test_stats_text(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert await run_stats(_components(), json_output=False) == 0
        out = capsys.readouterr().out
        assert "Files:           3" in out
        assert "3 MB" in out
        assert out.index("image/png") < out.index("text/plain")

    @pytest.mark.asyncio
    async def test_stats_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        await run_stats(_components(), json_output=True)
        payload = json.loads(capsys.readouterr().out)
        assert payload["total_files"] == 3
        assert payload["files_by_type"]["text/plain"] == 1

    @pytest.mark.asyncio
    async def test_list_text(self, capsys: pytest.CaptureFixture[str]) -> None:
        components = _components()
        await run_list(components, "image", 10, json_output=False)

        query = components["storage"].query_files.call_args.args[0]
        assert (query.mimetype, query.limit) == ("image", 10)
        out = capsys.readouterr().out
        assert "scan.png" in out
        assert "gridfs" in out
        assert "2 KB" in out

    @pytest.mark.asyncio
    async def test_list_empty(self, capsys: pytest.CaptureFixture[str]) -> None:
        components = _components()
        components["storage"].query_files.return_value = []
        await run_list(components, None, 50, json_output=False)
        assert capsys.readouterr().out.strip() == "No files found."

    @pytest.mark.asyncio
    async def test_list_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        await run_list(_components(), None, 50, json_output=True)
        payload = json.loads(capsys.readouterr().out)
        assert payload[0]["original_name"] == "scan.png"
        assert payload[0]["status"] == "completed"

    @pytest.mark.asyncio
    async def test_cleanup(self, capsys: pytest.CaptureFixture[str]) -> None:
        components = _components()
        await run_cleanup(components, 12)
        components["storage"].cleanup_expired_uploads.assert_awaited_once_with(hours_old=12)
        assert "Cleaned 2 expired upload(s) older than 12 hours." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_cleanup_default_hours_from_components(self) -> None:
        components = _components(cleanup_hours=48)
        await _run(Namespace(command="cleanup", hours=None), components)
        components["storage"].cleanup_expired_uploads.assert_awaited_once_with(hours_old=48)

    @pytest.mark.asyncio
    async def test_ocr_json(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        image = tmp_path / "scan.png"
        image.write_bytes(make_image_bytes())

        assert await run_ocr(_components(), image, None, json_output=True) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["text"] == "hello world"
        assert payload["language"] == "eng"
        assert payload["engine"] == "fake"
        assert payload["imageWidth"] == 200

    @pytest.mark.asyncio
    async def test_ocr_text_output(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        image = tmp_path / "scan.png"
        image.write_bytes(make_image_bytes())

        await run_ocr(_components(), image, "chi_sim", json_output=False)
        captured = capsys.readouterr()
        assert captured.out.strip() == "hello world"
        assert "scan.png" in captured.err

    @pytest.mark.asyncio
    async def test_ocr_missing_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert await run_ocr(_components(), tmp_path / "nope.png", None, json_output=False) == 1
        assert "File not found" in capsys.readouterr().err


# ======================================================================
# main()
# ======================================================================


class TestMain:
    def test_main_runs_command_and_closes_client(self, capsys: pytest.CaptureFixture[str]) -> None:
        components = _components()
        with (
            patch("src.main.build_components", return_value=components),
            patch("src.cli.commands.configure_logging") as mock_logging,
            pytest.raises(SystemExit) as exc_info,
        ):
            main(["-q", "stats"])

        assert exc_info.value.code == 0
        assert mock_logging.call_args.kwargs["log_level"] == "WARNING"
        components["mongo"].close.assert_called_once()
        assert "Files:" in capsys.readouterr().out

    def test_main_reports_domain_errors(self, capsys: pytest.CaptureFixture[str]) -> None:
        components = _components()
        components["storage"].get_file_stats.side_effect = StorageError(
            "server selection timeout", provider_name="mongodb"
        )
        with (
            patch("src.main.build_components", return_value=components),
            patch("src.cli.commands.configure_logging"),
            pytest.raises(SystemExit) as exc_info,
        ):
            main(["-q", "stats"])

        assert exc_info.value.code == 1
        assert "Error: [mongodb] server selection timeout" in capsys.readouterr().err
        components["mongo"].close.assert_called_once()
