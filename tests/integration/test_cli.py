import json
import pytest
from rich.console import Console
from typer.testing import CliRunner

from orcamais import cli


@pytest.fixture
def runner(tmp_path, monkeypatch):
    """CLI runner over a fresh local database"""
    monkeypatch.setenv("ORCAMAIS_BACKEND", "sqlite")
    monkeypatch.setenv("ORCAMAIS_DB_PATH", str(tmp_path / "cli.db"))
    monkeypatch.delenv("ORCAMAIS_EMAIL", raising=False)
    monkeypatch.delenv("ORCAMAIS_PASSWORD", raising=False)
    monkeypatch.setattr(cli, "console", Console(width=200))
    monkeypatch.setattr(cli.state, "app", None)
    monkeypatch.setattr(cli.state, "verbose", False)

    yield CliRunner()

    if cli.state.app is not None:
        cli.state.app.close()


@pytest.fixture
def signed_in(runner):
    result = runner.invoke(
        cli.app, ["register", "--name", "Ana", "--email", "ana@example.com", "--password", "secret1"]
    )
    assert result.exit_code == 0, result.output
    return runner


@pytest.mark.integration
class TestAccountCommands:

    def test_register_and_whoami(self, signed_in):
        # Act
        result = signed_in.invoke(cli.app, ["whoami"])

        # Assert
        assert result.exit_code == 0
        assert "Ana" in result.output
        assert "ana@example.com" in result.output

    def test_commands_require_login(self, runner):
        # Act
        result = runner.invoke(cli.app, ["add", "Mercado", "10"])

        # Assert
        assert result.exit_code == 1
        assert "Faça login primeiro" in result.output

    def test_wrong_password(self, signed_in):
        # Arrange
        signed_in.invoke(cli.app, ["logout"])

        # Act
        result = signed_in.invoke(cli.app, ["login", "--email", "ana@example.com", "--password", "nope123"])

        # Assert
        assert result.exit_code == 1
        assert "Usuário ou senha inválidos." in result.output


@pytest.mark.integration
class TestTransactionCommands:

    def test_add_and_report(self, signed_in):
        # Act
        added = signed_in.invoke(
            cli.app, ["add", "Mercado", "150", "--date", "2025-03-10", "--category", "Alimentação"]
        )
        report = signed_in.invoke(cli.app, ["report", "--period", "2025-03"])

        # Assert
        assert added.exit_code == 0, added.output
        assert report.exit_code == 0, report.output
        assert "Mercado" in report.output
        assert "R$ 150,00" in report.output

    def test_add_suggests_category(self, signed_in):
        # Act
        result = signed_in.invoke(cli.app, ["add", "Uber para o aeroporto", "32.50", "--date", "2025-03-11"])

        # Assert
        assert result.exit_code == 0, result.output
        assert "Transporte" in result.output

    def test_add_rejects_invalid_amount(self, signed_in):
        # Act
        result = signed_in.invoke(cli.app, ["add", "Mercado", "0"])

        # Assert
        assert result.exit_code == 1
        assert "amount" in result.output

    def test_income(self, signed_in):
        # Act
        signed_in.invoke(cli.app, ["income", "3000", "--period", "2025-03"])
        result = signed_in.invoke(cli.app, ["income", "--period", "2025-03"])

        # Assert
        assert "R$ 3.000,00" in result.output

    def test_invalid_period(self, signed_in):
        # Act
        result = signed_in.invoke(cli.app, ["report", "--period", "03/2025"])

        # Assert
        assert result.exit_code != 0

    def test_export_all_to_file(self, signed_in, tmp_path):
        # Arrange
        signed_in.invoke(cli.app, ["add", "Mercado", "150", "--date", "2025-03-10"])
        output = tmp_path / "export.json"

        # Act
        result = signed_in.invoke(cli.app, ["export", "--scope", "all", "--output", str(output)])

        # Assert
        assert result.exit_code == 0, result.output
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["type"] == "all"
        assert [t["description"] for t in data["transactions"]] == ["Mercado"]


@pytest.mark.integration
class TestBudgetAndDreamCommands:

    def test_budget_set_and_list(self, signed_in):
        # Act
        signed_in.invoke(cli.app, ["budget", "set", "Lazer", "200"])
        result = signed_in.invoke(cli.app, ["budget", "list"])

        # Assert
        assert result.exit_code == 0
        assert "Lazer" in result.output
        assert "R$ 200,00" in result.output

    def test_dream_add_and_list(self, signed_in):
        # Act
        added = signed_in.invoke(cli.app, ["dream", "add", "Viagem", "1200", "--monthly", "100"])
        listed = signed_in.invoke(cli.app, ["dream", "list"])

        # Assert
        assert added.exit_code == 0, added.output
        assert "1 ano" in added.output
        assert "Viagem" in listed.output

    def test_invalid_theme(self, signed_in):
        # Act
        result = signed_in.invoke(cli.app, ["theme", "blue"])

        # Assert
        assert result.exit_code == 1
        assert "Tema inválido" in result.output

    def test_suggest(self, runner):
        # Act
        result = runner.invoke(cli.app, ["suggest", "Netflix"])

        # Assert
        assert result.exit_code == 0
        assert "Lazer" in result.output


@pytest.mark.integration
class TestAlertCommands:

    @pytest.fixture
    def overspent(self, signed_in):
        signed_in.invoke(cli.app, ["income", "1000", "--period", "2025-03"])
        signed_in.invoke(cli.app, ["add", "Mercado", "950", "--date", "2025-03-10", "--category", "Alimentação"])
        return signed_in

    def test_report_shows_alert_id(self, overspent):
        # Act
        result = overspent.invoke(cli.app, ["report", "--period", "2025-03"])

        # Assert
        assert result.exit_code == 0, result.output
        assert "spending:2025-03" in result.output

    def test_dismiss_hides_alert(self, overspent):
        # Act
        dismissed = overspent.invoke(cli.app, ["dismiss", "spending:2025-03"])
        report = overspent.invoke(cli.app, ["report", "--period", "2025-03"])

        # Assert
        assert dismissed.exit_code == 0, dismissed.output
        assert "Alerta dispensado" in dismissed.output
        assert "spending:2025-03" not in report.output

    def test_dismiss_unknown_alert(self, overspent):
        # Act
        result = overspent.invoke(cli.app, ["dismiss", "budget:Lazer:2025-03"])

        # Assert
        assert result.exit_code == 1
        assert "Alerta não encontrado" in result.output
