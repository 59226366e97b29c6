import json
import logging
from pathlib import Path

import pytest

import run_report
from models import CandidateSource, Outline


class EmptySearch:
    def search(self, query):
        return []

    def fetch_text(self, url):
        return ""


class EduSearch(EmptySearch):
    def search(self, query):
        slug = "-".join(query.lower().split())
        return [CandidateSource(url=f"https://lab{n}.edu/{slug}", title=query) for n in range(3)]


class StubOutline:
    def generate(self, prompt, research_context):
        return Outline(title="Ants", slides=[{"title": "Castes", "body": "Workers: 80%, soldiers: 15%, queens: 5%."}])


@pytest.fixture
def cli(monkeypatch, tmp_path):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(run_report, "load_dotenv", lambda: None)
    monkeypatch.setattr(
        run_report,
        "setup_run_logging",
        lambda package_dir, prompt: (logging.getLogger("deck_run_test"), str(Path(package_dir) / "run.log")),
    )
    monkeypatch.setattr(run_report, "LLMOutlineGenerator", lambda api_key: StubOutline())

    def _run(searcher, *extra):
        monkeypatch.setattr(run_report, "SearchClient", lambda **kwargs: searcher)
        run_report.main(["ant life cycle report", "--output-dir", str(tmp_path), *extra])

    return _run


def _only_package_dir(tmp_path):
    dirs = [path for path in tmp_path.iterdir() if path.is_dir()]
    assert len(dirs) == 1
    return dirs[0]


def test_insufficient_sources_exit_code(cli, tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli(EmptySearch())
    assert excinfo.value.code == run_report.EXIT_INSUFFICIENT_SOURCES
    out = capsys.readouterr().out
    assert "found 3, need 10" in out
    assert "R4_synonyms" in out
    error = json.loads((_only_package_dir(tmp_path) / "error.json").read_text(encoding="utf-8"))
    assert error["error_type"] == "InsufficientSourcesError"
    assert error["details"]["achieved"] == 3
    assert error["context"] == {"prompt": "ant life cycle report"}


def test_min_sources_flag_lowers_floor(cli, tmp_path):
    cli(EmptySearch(), "--min-sources", "3", "--renderers", "json")
    package_dir = _only_package_dir(tmp_path)
    assert (package_dir / "package.json").exists()
    assert not (package_dir / "deck.md").exists()


def test_successful_run_writes_package(cli, tmp_path, capsys):
    cli(EduSearch())
    package_dir = _only_package_dir(tmp_path)
    for name in ("deck.md", "package.json", "harvest_stats.json", "metadata.json"):
        assert (package_dir / name).exists()
    assert "Package ready" in capsys.readouterr().out


def test_missing_api_key(monkeypatch, tmp_path):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr(run_report, "load_dotenv", lambda: None)
    with pytest.raises(SystemExit) as excinfo:
        run_report.main(["ant report", "--output-dir", str(tmp_path)])
    assert excinfo.value.code == 1
    assert list(tmp_path.iterdir()) == []
