import json
import os
from unittest.mock import MagicMock, patch

ENV = {
    "WAKATIME_USERNAME": "test",
    "WAKATIME_ACCESS_TOKEN": "test",
    "GITHUB_USERNAME": "test",
    "GITHUB_ACCESS_TOKEN": "test",
}


@patch.dict(os.environ, ENV)
@patch("personal_stats.main.load_dotenv")
@patch("personal_stats.sync.SyncContext.from_config")
def test_main_runs_named_job(mock_from_config, mock_dotenv, capsys):
    job = MagicMock(return_value=[{"name": "last_7_days", "value": None}])

    from personal_stats import main as cli

    with patch.dict(cli.JOBS, {"sync-all-stats": job}):
        exit_code = cli.main(["sync-all-stats"])

    assert exit_code == 0
    job.assert_called_once_with(mock_from_config.return_value)
    assert json.loads(capsys.readouterr().out) == [{"name": "last_7_days", "value": None}]


@patch.dict(os.environ, {}, clear=True)
@patch("personal_stats.main.load_dotenv")
def test_main_missing_config(mock_dotenv):
    from personal_stats.main import main

    assert main(["sync-all-stats"]) == 1


@patch("personal_stats.main.load_dotenv")
def test_main_unknown_job(mock_dotenv):
    from personal_stats.main import main

    assert main(["does-not-exist"]) == 2
    assert main([]) == 2


@patch.dict(os.environ, ENV)
@patch("personal_stats.main.load_dotenv")
@patch("personal_stats.sync.SyncContext.from_config")
def test_main_job_failure(mock_from_config, mock_dotenv):
    from personal_stats import main as cli
    from personal_stats.errors import TransportFailure

    job = MagicMock(side_effect=TransportFailure("HTTP Error: 500"))
    with patch.dict(cli.JOBS, {"sync-yesterdays-code-summary": job}):
        assert cli.main(["sync-yesterdays-code-summary"]) == 1


def test_every_scheduled_job_has_a_cli_name():
    from personal_stats import sync
    from personal_stats.main import JOBS

    assert JOBS["sync-discogs-data"] is sync.sync_discogs_data
    assert JOBS["sync-flickr-data"] is sync.sync_flickr_data
