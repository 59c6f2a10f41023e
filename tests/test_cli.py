"""CLI 测试"""

import json

import pytest
from click.testing import CliRunner

from genai_tools import cli as cli_module
from genai_tools.cli import cli, describe_optimization
from genai_tools.library import JsonMediaLibrary
from genai_tools.models import OptimizationOutcome, OptimizerTool


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.setattr(cli_module, "_setup_logging", lambda log_dir: None)
    path = tmp_path / "config.yaml"
    path.write_text(
        "providers:\n"
        "  gemini:\n"
        "    api_key: gm-test-key-123456\n"
        "optimization:\n"
        "  tool: none\n"
        "security:\n"
        "  secret: cli-secret\n"
        "library:\n"
        f"  path: {tmp_path / 'library.json'}\n"
        f"  uploads_dir: {tmp_path / 'uploads'}\n"
        "output:\n"
        f"  log_dir: {tmp_path / 'logs'}\n",
        encoding="utf-8",
    )
    return path


class TestDescribeOptimization:
    def test_not_attempted(self):
        outcome = OptimizationOutcome(tool=OptimizerTool.NONE, attempted=False, succeeded=True)
        assert describe_optimization(outcome) == ""
        assert describe_optimization(None) == ""

    def test_reduced(self):
        outcome = OptimizationOutcome(
            tool=OptimizerTool.PNGQUANT, attempted=True, succeeded=True, initial_size=204800, final_size=102400
        )
        assert describe_optimization(outcome) == "Optimized: 200.0 KB → 100.0 KB (50% reduction)"

    def test_no_reduction(self):
        outcome = OptimizationOutcome(
            tool=OptimizerTool.PILLOW, attempted=True, succeeded=True, initial_size=1000, final_size=1000
        )
        assert describe_optimization(outcome) == "Optimization ran, but did not reduce file size."

    def test_failed(self):
        outcome = OptimizationOutcome(
            tool=OptimizerTool.PNGQUANT, attempted=True, succeeded=False, message="pngquant execution failed."
        )
        assert describe_optimization(outcome) == "Optimization skipped: pngquant execution failed."


class TestCommands:
    def test_add_article(self, config_file, tmp_path):
        runner = CliRunner()
        result = runner.invoke(cli, [
            "add-article", "--title", "Ocean Sunset", "--content", "<p>Waves</p>",
            "--tag", "ocean", "--tag", "sunset", "--config", str(config_file),
        ])

        assert result.exit_code == 0, result.output
        articles = JsonMediaLibrary(tmp_path / "library.json", tmp_path / "uploads").list_articles()
        assert len(articles) == 1
        assert articles[0].tags == ("ocean", "sunset")

    def test_generate_invalid_provider(self, config_file, tmp_path):
        library = JsonMediaLibrary(tmp_path / "library.json", tmp_path / "uploads")
        article = library.add_article("Ocean Sunset", "", author_id="admin")

        runner = CliRunner()
        result = runner.invoke(cli, [
            "generate", "--article-id", str(article.id), "--provider", "midjourney",
            "--json", "--config", str(config_file),
        ])

        assert result.exit_code == 1
        assert json.loads(result.stdout) == {"success": False, "data": {"message": "Invalid provider selected."}}

    def test_missing_config(self, tmp_path):
        result = CliRunner().invoke(cli, ["status", "--config", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1

    @pytest.mark.parametrize("content", ["- just\n- a list\n", "providers: [unclosed\n"])
    def test_malformed_config(self, tmp_path, content):
        path = tmp_path / "config.yaml"
        path.write_text(content, encoding="utf-8")

        result = CliRunner().invoke(cli, ["status", "--config", str(path)])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "配置加载失败" in result.output

    def test_status(self, config_file):
        result = CliRunner().invoke(cli, ["status", "--config", str(config_file)])
        assert result.exit_code == 0, result.output
        assert "gm-t" in result.output
