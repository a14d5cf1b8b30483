from click.testing import CliRunner

from storeparser.collector import cli
from storeparser.collector.pipeline import PipelineReport
from storeparser.collector.stats import RunStats

SETTINGS = """
html.url: https://shop.test/c/men
html.output.filename: html_products
api.url: https://api.shop.test/products
api.output.filename: api_products
"""


def test_config_error_exits_with_status_2(tmp_path):
    result = CliRunner().invoke(cli.main, ["--config", str(tmp_path / "absent.yaml")])

    assert result.exit_code == 2
    assert "Configuration error" in result.output


def test_runs_both_pipelines_and_reports(tmp_path, monkeypatch):
    config = tmp_path / "app.yaml"
    config.write_text(SETTINGS, encoding="utf-8")
    proxies = tmp_path / "proxies.txt"
    proxies.write_text("10.0.0.1:8080\n", encoding="utf-8")
    calls = []

    def fake_run_all(settings, proxy_pool, output_dir):
        calls.append((settings.html.url, len(proxy_pool), output_dir))
        return [
            PipelineReport(stats=RunStats(name="html", requests=4, processed=2), output_path=output_dir / "html_products.json"),
            PipelineReport(stats=RunStats(name="api", requests=1, processed=1), output_path=output_dir / "api_products.json"),
        ]

    monkeypatch.setattr(cli, "run_all", fake_run_all)
    result = CliRunner().invoke(
        cli.main,
        ["--config", str(config), "--proxies", str(proxies), "--output-dir", str(tmp_path)],
    )

    assert result.exit_code == 0, result.output
    assert calls == [("https://shop.test/c/men", 1, tmp_path)]
    assert "html: 2 product(s), 4 request(s), 0 skipped" in result.output


def test_aborted_pipeline_sets_exit_status(tmp_path, monkeypatch):
    config = tmp_path / "app.yaml"
    config.write_text(SETTINGS, encoding="utf-8")

    def fake_run_all(settings, proxy_pool, output_dir):
        return [
            PipelineReport(stats=RunStats(name="html"), error="HTTP 503 for https://shop.test/c/men"),
            PipelineReport(stats=RunStats(name="api", requests=1, processed=1)),
        ]

    monkeypatch.setattr(cli, "run_all", fake_run_all)
    result = CliRunner().invoke(
        cli.main,
        ["--config", str(config), "--proxies", str(tmp_path / "none.txt")],
    )

    assert result.exit_code == 1
    assert "aborted (HTTP 503" in result.output
