"""Tests for the typer CLI with config and provider patched out."""

import json
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from latex_tailor.billing.account_store import SQLiteAccountStore
from latex_tailor.cli import app
from latex_tailor.config import AppConfig, BillingConfig
from latex_tailor.models.evaluation import Evaluation
from latex_tailor.models.round import Round
from latex_tailor.pipeline.ledger import IterationLedger

runner = CliRunner()


@pytest.fixture
def config(tmp_path) -> AppConfig:
    return AppConfig(billing=BillingConfig(db_path=str(tmp_path / "accounts.db")))


@pytest.fixture
def cli_store(config) -> SQLiteAccountStore:
    return SQLiteAccountStore(config.billing.resolved_db_path)


@pytest.fixture(autouse=True)
def patched_config(config):
    with patch("latex_tailor.cli.load_config", return_value=config):
        yield


class TestAccountCommands:
    def test_topup_then_balance(self, cli_store):
        result = runner.invoke(app, ["topup", "acct-1", "--credits", "5"])
        assert result.exit_code == 0
        assert "balance is now 5" in result.output

        result = runner.invoke(app, ["balance", "acct-1"])
        assert result.exit_code == 0
        assert "5" in result.output
        assert cli_store.get_balance("acct-1") == 5

    def test_balance_unknown_account(self):
        result = runner.invoke(app, ["balance", "ghost"])
        assert result.exit_code == 1

    def test_topup_rejects_zero(self):
        result = runner.invoke(app, ["topup", "acct-1", "--credits", "0"])
        assert result.exit_code != 0

    def test_set_base(self, tmp_path, cli_store, sample_base_latex):
        tex = tmp_path / "base.tex"
        tex.write_text(sample_base_latex, encoding="utf-8")

        result = runner.invoke(app, ["set-base", "acct-1", str(tex)])

        assert result.exit_code == 0
        assert cli_store.get_base_document("acct-1") == sample_base_latex


class TestTailorCommand:
    @pytest.fixture
    def files(self, tmp_path, sample_jd_text, sample_base_latex):
        jd = tmp_path / "jd.txt"
        jd.write_text(sample_jd_text, encoding="utf-8")
        base = tmp_path / "base.tex"
        base.write_text(sample_base_latex, encoding="utf-8")
        return jd, base

    def test_requires_api_key(self, files, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        jd, _ = files
        result = runner.invoke(app, ["tailor", "acct-1", "--jd", str(jd)])
        assert result.exit_code == 1
        assert "ANTHROPIC_API_KEY" in result.output

    def test_auto_session_saves_current_round(
        self, files, tmp_path, cli_store, mock_gateway, make_dispatch, make_latex, monkeypatch
    ):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        cli_store.credit("acct-1", 1)
        mock_gateway.invoke.side_effect = make_dispatch(
            [
                {"score": 70, "overallAssessment": "ok"},
                {"score": 86, "overallAssessment": "better"},
            ]
        )
        jd, base = files
        output = tmp_path / "out" / "resume.tex"

        with patch("latex_tailor.cli.ProviderGateway", MagicMock(return_value=mock_gateway)):
            result = runner.invoke(
                app,
                ["tailor", "acct-1", "--jd", str(jd), "--base", str(base),
                 "--output", str(output), "--auto", "1"],
            )

        assert result.exit_code == 0, result.output
        assert output.read_text(encoding="utf-8") == make_latex("version 2")
        history = json.loads(output.with_suffix(".rounds.json").read_text(encoding="utf-8"))
        assert [r["round_number"] for r in history["rounds"]] == [1, 2]
        assert cli_store.get_balance("acct-1") == 0

    def test_denied_session_lists_plans(self, files, cli_store, mock_gateway, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        jd, base = files

        with patch("latex_tailor.cli.ProviderGateway", MagicMock(return_value=mock_gateway)):
            result = runner.invoke(
                app, ["tailor", "acct-1", "--jd", str(jd), "--base", str(base), "--auto", "0"]
            )

        assert result.exit_code == 1
        assert "Starter 5" in result.output
        mock_gateway.invoke.assert_not_called()


class TestHistoryCommand:
    @pytest.fixture
    def rounds_file(self, tmp_path, make_latex):
        ledger = IterationLedger()
        for n, score in enumerate([64, 88, 79], start=1):
            ledger.append(
                Round(
                    round_number=n,
                    document=make_latex(f"version {n}"),
                    evaluation=Evaluation(score=score, overall_assessment=f"round {n}"),
                    step="tailor" if n == 1 else "optimize",
                )
            )
        path = tmp_path / "resume.rounds.json"
        path.write_text(ledger.to_json(), encoding="utf-8")
        return path

    def test_lists_rounds_and_best(self, rounds_file):
        result = runner.invoke(app, ["history", str(rounds_file)])
        assert result.exit_code == 0, result.output
        assert "best is round 2" in result.output

    def test_extracts_best_round_by_default(self, rounds_file, tmp_path, make_latex):
        target = tmp_path / "best.tex"
        result = runner.invoke(app, ["history", str(rounds_file), "--extract", str(target)])
        assert result.exit_code == 0, result.output
        assert target.read_text(encoding="utf-8") == make_latex("version 2")

    def test_extracts_requested_round(self, rounds_file, tmp_path, make_latex):
        target = tmp_path / "r3.tex"
        result = runner.invoke(
            app, ["history", str(rounds_file), "--round", "3", "--extract", str(target)]
        )
        assert result.exit_code == 0, result.output
        assert target.read_text(encoding="utf-8") == make_latex("version 3")

    def test_unknown_round_shows_typed_error(self, rounds_file, tmp_path):
        target = tmp_path / "r9.tex"
        result = runner.invoke(
            app, ["history", str(rounds_file), "--round", "9", "--extract", str(target)]
        )
        assert result.exit_code == 1
        assert "round_not_found" in result.output
        assert not target.exists()

    def test_rejects_file_with_gaps(self, rounds_file):
        data = json.loads(rounds_file.read_text(encoding="utf-8"))
        del data["rounds"][0]
        rounds_file.write_text(json.dumps(data), encoding="utf-8")

        result = runner.invoke(app, ["history", str(rounds_file)])

        assert result.exit_code == 1
        assert "Not a valid rounds file" in result.output
