"""
Tests for the CLI module (cli.py).
Covers argument parsing, settings overrides and command output.
"""

import sys
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import make_settings
from torrent_queue.cli import build_parser, format_size, load_settings, main, run_add, run_list
from torrent_queue.client import TransmissionClient
from torrent_queue.exceptions import ClientUnavailableError
from torrent_queue.models import DownloadClientItem, DownloadItemStatus


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.close = AsyncMock()
    client.verify_client_version = AsyncMock(return_value="4.0.5 (a0d9a1e)")
    client.get_items = AsyncMock(return_value=[])
    client.download = AsyncMock(return_value="CBC2F069FE8BB2F544EAE707D75BCD3DE9DCF951")
    return client


# =============================================================================
# Main Entry Point Tests
# =============================================================================

class TestMainEntryPoint:
    """Test the main() entry point and argument parsing."""

    def test_no_command_shows_help(self):
        """Test that no command shows help and exits."""
        with pytest.raises(SystemExit) as excinfo:
            main([])
        assert excinfo.value.code == 1

    def test_help_flag(self, capsys):
        """Test that --help shows help and exits with 0."""
        with pytest.raises(SystemExit) as excinfo:
            main(["--help"])
        assert excinfo.value.code == 0
        assert "torrent-queue" in capsys.readouterr().out

    def test_command_dispatch(self):
        """Test that a command runs with loaded settings."""
        with patch("torrent_queue.cli.setup_logging"):
            with patch("torrent_queue.cli.run_list", new_callable=AsyncMock) as mock_run:
                main(["list", "--host", "seedbox"])

        mock_run.assert_awaited_once()
        settings = mock_run.call_args.args[1]
        assert settings.host == "seedbox"

    def test_error_exits_nonzero(self, capsys):
        """Test that engine errors are printed and exit 1."""
        with patch("torrent_queue.cli.setup_logging"):
            with patch(
                "torrent_queue.cli.run_status",
                new_callable=AsyncMock,
                side_effect=ClientUnavailableError("Unable to connect to Transmission"),
            ):
                with pytest.raises(SystemExit) as excinfo:
                    main(["status"])

        assert excinfo.value.code == 1
        assert "Error: Unable to connect to Transmission" in capsys.readouterr().out

    @pytest.mark.parametrize("command", [["list"], ["status"], ["add", "--magnet", "magnet:?xt=urn:btih:abc"]])
    def test_unsupported_version_stops_before_queue(self, mock_proxy, capsys, command):
        """Test that an old daemon is rejected before the queue is touched."""
        mock_proxy.get_client_version.return_value = "2.30"
        client = TransmissionClient(mock_proxy, make_settings())

        with patch("torrent_queue.cli.setup_logging"):
            with patch("torrent_queue.cli.create_client", return_value=client):
                with pytest.raises(SystemExit) as excinfo:
                    main(command)

        assert excinfo.value.code == 1
        assert "not supported" in capsys.readouterr().out
        mock_proxy.get_torrents.assert_not_awaited()
        mock_proxy.add_torrent_from_url.assert_not_awaited()
        mock_proxy.get_default_download_directory.assert_not_awaited()
        mock_proxy.close.assert_awaited_once()


class TestArguments:
    """Test argument parsing and settings overrides."""

    def test_add_requires_source(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["add"])

    def test_add_sources_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["add", "--magnet", "magnet:?", "--file", "a.torrent"])

    def test_watch_interval(self):
        args = build_parser().parse_args(["watch", "-i", "30"])
        assert args.interval == 30.0

    def test_overrides(self):
        args = build_parser().parse_args([
            "list", "-H", "seedbox", "-p", "9092", "--category", "radarr",
            "--ratio-limit", "1.5", "--idle-limit", "30", "--ssl",
        ])

        settings = load_settings(args)

        assert settings.host == "seedbox"
        assert settings.port == 9092
        assert settings.use_ssl is True
        assert settings.movie_category == "radarr"
        assert settings.seed_ratio_limit == 1.5
        assert settings.seed_idle_limit == 30

    def test_unset_flags_keep_environment(self, monkeypatch):
        monkeypatch.setenv("TRANSMISSION_HOST", "from-env")
        args = build_parser().parse_args(["list"])

        assert load_settings(args).host == "from-env"


class TestCommands:
    """Test command output."""

    def test_format_size(self):
        assert format_size(1_500_000) == "1.5MB"
        assert format_size(2_500_000_000) == "2.50GB"

    @pytest.mark.asyncio
    async def test_list_empty(self, mock_client, capsys):
        with patch("torrent_queue.cli.create_client", return_value=mock_client):
            await run_list(MagicMock(), MagicMock())

        assert "No downloads found." in capsys.readouterr().out
        mock_client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_list_items(self, mock_client, capsys):
        mock_client.get_items.return_value = [
            DownloadClientItem(
                download_id="HASH",
                title="Droned.1998",
                status=DownloadItemStatus.COMPLETED,
                output_path="/downloads/Droned.1998",
                total_size=1_500_000,
                remaining_time=timedelta(minutes=5),
                seed_ratio=1.25,
                can_be_removed=True,
                can_move_files=True,
            )
        ]

        with patch("torrent_queue.cli.create_client", return_value=mock_client):
            await run_list(MagicMock(), MagicMock())

        output = capsys.readouterr().out
        assert "Droned.1998" in output
        assert "completed" in output
        assert "1.25" in output
        assert "0:05:00" in output

    @pytest.mark.asyncio
    async def test_add_magnet(self, mock_client, capsys):
        args = build_parser().parse_args(["add", "--magnet", "magnet:?xt=urn:btih:abc"])

        with patch("torrent_queue.cli.create_client", return_value=mock_client):
            await run_add(args, MagicMock())

        mock_client.download.assert_awaited_once_with(url="magnet:?xt=urn:btih:abc")
        assert "CBC2F069FE8BB2F544EAE707D75BCD3DE9DCF951" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_add_file(self, mock_client, tmp_path):
        torrent_file = tmp_path / "movie.torrent"
        torrent_file.write_bytes(b"d8:announce0:e")
        args = build_parser().parse_args(["add", "--file", str(torrent_file)])

        with patch("torrent_queue.cli.create_client", return_value=mock_client):
            await run_add(args, MagicMock())

        mock_client.download.assert_awaited_once_with(data=b"d8:announce0:e")
        mock_client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_client_closed_on_error(self, mock_client):
        mock_client.get_items.side_effect = ClientUnavailableError("down")

        with patch("torrent_queue.cli.create_client", return_value=mock_client):
            with pytest.raises(ClientUnavailableError):
                await run_list(MagicMock(), MagicMock())

        mock_client.close.assert_awaited_once()
