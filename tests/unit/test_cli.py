"""Test CLI commands."""

import json
from unittest.mock import patch

from click.testing import CliRunner

from creative_ai_system.cli import cli


class TestCLICommands:
    """Test CLI commands"""

    def test_version_command(self):
        with patch("creative_ai_system.cli.get_version", return_value="1.0.0"):
            result = CliRunner().invoke(cli, ["version"])

            assert result.exit_code == 0
            assert "v1.0.0" in result.output

    def test_version_json_format(self):
        with patch("creative_ai_system.cli.get_version", return_value="1.0.0"):
            result = CliRunner().invoke(cli, ["version", "--format", "json"])

            assert result.exit_code == 0
            assert json.loads(result.output) == {"version": "1.0.0"}

    def test_help_command(self):
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "Usage:" in result.output

    def test_serve_command(self):
        with patch("creative_ai_system.cli.run_server") as mock_run:
            result = CliRunner().invoke(cli, ["serve", "--port", "3000", "--reload"])

            assert result.exit_code == 0
            mock_run.assert_called_once_with(None, 3000, True)

    def test_price_video(self):
        result = CliRunner().invoke(cli, ["price", "sora-2", "--video-seconds", "12"])

        assert result.exit_code == 0
        assert "sora-2: 120.00 cents" in result.output

    def test_price_image_tier(self):
        result = CliRunner().invoke(
            cli, ["price", "gemini-3-pro-image-preview", "--images", "1", "--image-size", "4K"]
        )

        assert result.exit_code == 0
        assert "24.00 cents" in result.output

    def test_price_unknown_model(self):
        result = CliRunner().invoke(cli, ["price", "dall-e-3"])

        assert result.exit_code != 0
        assert "Unknown model: dall-e-3" in result.output

    def test_models_json(self):
        result = CliRunner().invoke(cli, ["models", "--format", "json"])

        assert result.exit_code == 0
        rows = {row["model"]: row for row in json.loads(result.output)}
        assert rows["veo-3.1"]["secondary"] == "veo-fast"
        assert rows["sora-2"]["primary"] is None
        assert rows["gemini-3-pro-preview"]["modality"] == "text"
