import json
import logging

import pytest

from conftest import API, FakeResponse, FakeSession, content_response, tree_response

from github_scanner.config import ScannerConfig, load_config
from github_scanner.errors import ConfigError
from github_scanner.inspector import RepositoryInspector
from github_scanner.pipeline import SyncPipeline
from github_scanner.search import GitHubSearch
from github_scanner.storage import OutputStorage

from test_synchronizer import RecordingIngest, RecordingSheets


class InputSheets(RecordingSheets):
    def __init__(self, columns):
        super().__init__()
        self.columns = columns

    def read_columns(self, sheet_name, a1_range):
        return self.columns


def repo_routes(owner, repo, files, sha="0123abc"):
    base = f"{API}/repos/{owner}/{repo}"
    routes = {
        base: FakeResponse({"default_branch": "main"}),
        f"{base}/commits/main": FakeResponse({
            "sha": sha,
            "commit": {"author": {"date": "2025-05-01T10:00:00Z", "email": "dev@acme.io", "name": "Dev"}},
        }),
        f"{base}/git/trees/HEAD": tree_response(list(files)),
    }
    for path, text in files.items():
        routes[f"{base}/contents/{path}"] = content_response(path, text)
    return routes


def make_pipeline(routes, rate_limiter, columns=None, ingest=None, **config_overrides):
    settings = dict(
        github_token="t",
        spreadsheet_id="sheet-id",
        read_sheet_name="Intake",
        write_sheet_name="Results",
        read_range="A1:E",
        update_data_column="D",
        user_column="A",
    )
    settings.update(config_overrides)
    config = ScannerConfig(**settings)
    session = FakeSession(routes)
    sheets = InputSheets(columns or {})
    ingest = ingest if ingest is not None else RecordingIngest()
    pipeline = SyncPipeline(
        config,
        sheets=sheets,
        ingest=ingest,
        inspector=RepositoryInspector(rate_limiter=rate_limiter, session=session),
        search=GitHubSearch(rate_limiter=rate_limiter, session=session),
    )
    return pipeline, sheets, ingest


def test_end_to_end_single_repository(rate_limiter):
    routes = repo_routes("acme", "widgets", {
        "src/a.rs": "delegate_account(a); delegate_account(b);",
        "README.md": "delegate_account",
    })
    columns = {"GitHub link": ["https://github.com/acme/widgets"], "Country": ["Singapore"]}
    pipeline, sheets, ingest = make_pipeline(routes, rate_limiter, columns)

    records = pipeline.run_sheet()

    assert len(records) == 1
    record = records[0]
    assert {k: v.to_dict() for k, v in record.keyword_counts.items()} == {
        "delegate_account": {"count": 2, "files": ["https://github.com/acme/widgets/blob/HEAD/src/a.rs"]},
    }
    assert record.files_processed == "1"
    assert record.keyword_matches == "1"
    assert record.origin == "Intake"
    assert record.location == "Singapore"
    assert len(ingest.ingested) == 1
    assert sheets.writes[0][:4] == ("row", "Results", "D", 2)
    assert json.loads(sheets.writes[0][4][0])["commit_sha"] == "0123abc"


def test_invalid_and_failed_inputs_consume_rows_in_order(rate_limiter):
    routes = repo_routes("acme", "widgets", {"lib.rs": "#[delegate]"})
    columns = {"Repo": [
        "https://github.com/acme/widgets/tree/main/extra",
        "https://github.com/acme/broken",
        "https://github.com/acme/widgets",
    ]}
    pipeline, sheets, ingest = make_pipeline(routes, rate_limiter, columns)

    pipeline.run_sheet()

    assert [(write[0], write[3]) for write in sheets.writes] == [("cell", 2), ("cell", 3), ("row", 4)]
    assert sheets.writes[0][4] == "Error: Invalid GitHub URL"
    assert sheets.writes[1][4] == "Error: Failed to process repo data"
    assert pipeline.summary.rows == 3
    assert pipeline.summary.failed == 2
    assert len(ingest.ingested) == 1


def test_missing_provenance_falls_back_and_skips_ingest(rate_limiter):
    routes = repo_routes("acme", "widgets", {"lib.rs": "#[commit]"})
    del routes[f"{API}/repos/acme/widgets"]
    pipeline, sheets, ingest = make_pipeline(routes, rate_limiter, {"Repo": ["https://github.com/acme/widgets"]})

    records = pipeline.run_sheet()

    assert records[0].commit_sha == ""
    assert records[0].email == ""
    assert records[0].commit_date
    assert ingest.lookups == []
    assert sheets.writes[0][0] == "row"


def test_user_url_expands_to_one_row_per_repository(rate_limiter):
    routes = {}
    routes.update(repo_routes("acme", "one", {"a.rs": "commit_accounts"}, sha="111"))
    routes.update(repo_routes("acme", "two", {"b.rs": "nothing"}, sha="222"))

    def user_repos(params):
        if params["page"] == 1:
            return FakeResponse([
                {"name": "one", "html_url": "https://github.com/acme/one"},
                {"name": "two", "html_url": "https://github.com/acme/two"},
            ])
        return FakeResponse([])

    routes[f"{API}/users/acme/repos"] = user_repos
    columns = {"Repo": ["https://github.com/acme"], "Track": ["Gaming"]}
    pipeline, sheets, ingest = make_pipeline(routes, rate_limiter, columns)

    records = pipeline.run_sheet()

    assert [r.repo_name for r in records] == ["one", "two"]
    assert all(r.tracks == "Gaming" for r in records)
    user_rows = [write for write in sheets.writes if write[2] == "A"]
    assert [(w[3], w[4]) for w in user_rows] == [(2, ["acme", "Intake"]), (3, ["acme", "Intake"])]
    assert len(ingest.ingested) == 2


def test_skip_unmatched_drops_expanded_repositories_without_matches(rate_limiter):
    routes = {}
    routes.update(repo_routes("acme", "one", {"a.rs": "commit_accounts"}, sha="111"))
    routes.update(repo_routes("acme", "two", {"b.rs": "nothing"}, sha="222"))
    routes[f"{API}/users/acme/repos"] = lambda params: FakeResponse(
        [{"name": "one", "html_url": "https://github.com/acme/one"},
         {"name": "two", "html_url": "https://github.com/acme/two"}] if params["page"] == 1 else []
    )
    pipeline, sheets, _ = make_pipeline(
        routes, rate_limiter, {"Repo": ["https://github.com/acme"]}, skip_unmatched=True
    )

    records = pipeline.run_sheet()

    assert [r.repo_name for r in records] == ["one"]
    assert pipeline.summary.skipped == 1
    assert {write[3] for write in sheets.writes} == {2}


def test_user_without_repositories_writes_error_row(rate_limiter):
    routes = {f"{API}/users/ghost/repos": FakeResponse([])}
    pipeline, sheets, _ = make_pipeline(routes, rate_limiter, {"Repo": ["https://github.com/ghost"]})

    pipeline.run_sheet()

    assert sheets.writes == [("cell", "Results", "D", 2, "Error: No repositories found for ghost")]


def test_run_search_processes_found_repositories(rate_limiter):
    routes = repo_routes("alice", "game", {"Cargo.toml": "ephemeral-rollups-sdk"})
    routes[f"{API}/search/code"] = FakeResponse({"items": [
        {
            "html_url": "https://github.com/alice/game/blob/0123abc/Cargo.toml",
            "path": "Cargo.toml",
            "repository": {"full_name": "alice/game"},
        },
        {
            "html_url": "https://github.com/magicblock-labs/sdk/blob/0123abc/Cargo.toml",
            "path": "Cargo.toml",
            "repository": {"full_name": "magicblock-labs/sdk"},
        },
    ]})
    pipeline, _, ingest = make_pipeline(routes, rate_limiter)

    records = pipeline.run_search(queries=["ephemeral-rollups-sdk filename:Cargo.toml"])

    assert [(r.owner, r.repo_name, r.origin) for r in records] == [("alice", "game", "code-search")]
    assert len(ingest.ingested) == 1


def test_run_sheet_requires_spreadsheet_settings(rate_limiter):
    pipeline, _, _ = make_pipeline({}, rate_limiter, read_range="")
    with pytest.raises(ConfigError):
        pipeline.run_sheet()


def test_results_are_saved_as_json_array(rate_limiter, tmp_path):
    routes = repo_routes("acme", "widgets", {"lib.rs": "#[delegate]"})
    pipeline, _, _ = make_pipeline(routes, rate_limiter, {"Repo": ["https://github.com/acme/widgets", "bad"]})
    storage = OutputStorage(str(tmp_path / "out" / "results.json"))

    written = storage.save_results(pipeline.run_sheet())

    assert written == 1
    data = json.loads((tmp_path / "out" / "results.json").read_text())
    assert [item["repo_name"] for item in data] == ["widgets"]
    assert storage.load_results() == pipeline.records


def test_fallback_and_scan_failure_log_the_error_kind(rate_limiter, caplog):
    routes = repo_routes("acme", "widgets", {"lib.rs": "#[commit]"})
    del routes[f"{API}/repos/acme/widgets"]
    del routes[f"{API}/repos/acme/widgets/git/trees/HEAD"]
    pipeline, _, _ = make_pipeline(routes, rate_limiter, {"Repo": ["https://github.com/acme/widgets"]})

    with caplog.at_level(logging.WARNING, logger="github_scanner.pipeline"):
        pipeline.run_sheet()

    messages = [r.getMessage() for r in caplog.records if r.name == "github_scanner.pipeline"]
    assert any("using fallback (transport error)" in m for m in messages)
    assert any("Error processing acme/widgets (transport error)" in m for m in messages)


def test_failed_existence_check_counts_as_failure(rate_limiter):
    routes = repo_routes("acme", "widgets", {"lib.rs": "#[delegate]"})
    pipeline, sheets, ingest = make_pipeline(
        routes, rate_limiter, {"Repo": ["https://github.com/acme/widgets"]},
        ingest=RecordingIngest(fail_lookup=True),
    )

    pipeline.run_sheet()

    assert ingest.ingested == []
    assert pipeline.summary.failed == 1
    assert sheets.writes[0][0] == "row"


def test_ingest_endpoint_requires_elasticsearch_url():
    config = load_config(environ={
        "PRIVATE_GITHUB_TOKEN": "t",
        "INGEST_ENDPOINT": "https://logs.example.org/logstash/",
    })

    with pytest.raises(ConfigError) as excinfo:
        SyncPipeline.from_config(config)
    assert "elasticsearch_url" in str(excinfo.value)


def test_from_config_passes_index_credentials():
    config = load_config(environ={
        "PRIVATE_GITHUB_TOKEN": "t",
        "INGEST_ENDPOINT": "https://logs.example.org/logstash/",
        "ELASTICSEARCH_URL": "https://es.internal:9200/",
        "ELASTICSEARCH_USERNAME": "scanner",
        "ELASTICSEARCH_PASSWORD": "s3cret",
    })

    ingest = SyncPipeline.from_config(config).synchronizer.ingest

    assert ingest.elasticsearch_url == "https://es.internal:9200"
    assert ingest.auth == ("scanner", "s3cret")
