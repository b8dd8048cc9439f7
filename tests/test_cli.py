"""
Tests for the CLI interface.
"""
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from tenant_sizing.cli.main import EXIT_CODE_FAIL, EXIT_CODE_PASS, app
from tenant_sizing.core.forecast import SizingResult
from tenant_sizing.core.growth import GrowthMethod
from tenant_sizing.core.licensing import LocalPackSolver
from tenant_sizing.core.projection import TenantForecast

runner = CliRunner()


def output_text(result) -> str:
    """Console output with rich line wrapping undone."""
    return " ".join(result.output.split())


MAIL_REPORT = (
    "User Principal Name,Is Deleted,Item Count,Storage Used (Byte),Recipient Type,Has Archive\n"
    "alice@contoso.com,False,100,1073741824,User,False\n"
    "bob@contoso.com,False,50,2147483648,User,False\n"
    "info@contoso.com,False,10,1073741824,Shared,False\n"
    "old@contoso.com,True,10,1073741824,User,False\n"
)

MAIL_HISTORY = (
    "Report Date,Report Period,Storage Used (Byte)\n"
    "2024-01-01,180,1000\n"
    "2024-06-28,180,1100\n"
)

SITES_REPORT = (
    "Site URL,Is Deleted,File Count,Storage Used (Byte)\n"
    "https://contoso.sharepoint.com/sites/hr,False,10,1073741824\n"
)


@pytest.fixture
def reports(tmp_path):
    """Write sample reports and return their paths."""
    paths = {}
    for name, content in (("mail.csv", MAIL_REPORT), ("mail_history.csv", MAIL_HISTORY),
                          ("sites.csv", SITES_REPORT)):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        paths[name] = str(path)
    return paths


@pytest.fixture
def mock_run_forecast():
    """Mock the run_forecast function."""
    with patch('tenant_sizing.cli.main.run_forecast') as mock:
        mock.return_value = SizingResult(
            workloads={},
            tenant=TenantForecast(0, 0, 0, 0.0, 0.0, 0.0, []),
            license_plan=None,
            archive=None,
            warnings=[]
        )
        yield mock


class TestCLI:
    """Test CLI commands."""

    def test_no_command_shows_hint(self):
        """Test the bare command prints usage guidance."""
        result = runner.invoke(app, [])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Use --help" in output_text(result)

    def test_forecast_mail(self, reports):
        """Test a mail forecast reports totals and licensed users."""
        result = runner.invoke(app, [
            "forecast",
            "--mail", reports["mail.csv"],
            "--mail-history", reports["mail_history.csv"]
        ])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Storage Forecast" in output_text(result)
        assert "Tenant total: 4.00 GB across 160 items" in output_text(result)
        assert "Users requiring a license: 3" in output_text(result)
        assert "License Recommendation" in output_text(result)
        assert "Users covered: 10" in output_text(result)

    def test_forecast_without_history_warns(self, reports):
        """Test a missing history falls back to 0% growth with a warning."""
        result = runner.invoke(app, ["forecast", "--sites", reports["sites.csv"]])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Warnings" in output_text(result)
        assert "assuming 0% growth" in output_text(result)
        assert "license recommendation skipped" in output_text(result)

    def test_forecast_requires_usage_report(self):
        """Test at least one usage report is required."""
        result = runner.invoke(app, ["forecast"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "at least one of --mail" in output_text(result)

    def test_forecast_missing_report(self, tmp_path):
        """Test a missing report file fails cleanly."""
        result = runner.invoke(app, ["forecast", "--mail", str(tmp_path / "missing.csv")])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Report file not found" in output_text(result)

    def test_forecast_malformed_report(self, tmp_path):
        """Test a malformed row aborts with exit code 1."""
        path = tmp_path / "mail.csv"
        path.write_text(MAIL_REPORT.replace("1073741824,User", "lots,User", 1), encoding="utf-8")

        result = runner.invoke(app, ["forecast", "--mail", str(path)])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "is not an integer" in output_text(result)

    def test_forecast_invalid_period(self, reports):
        """Test an unsupported report period is rejected."""
        result = runner.invoke(app, ["forecast", "--mail", reports["mail.csv"], "--period", "60"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "report_period_days must be one of" in output_text(result)

    def test_forecast_overrides_settings(self, reports, mock_run_forecast):
        """Test command-line options override configured settings."""
        runner.invoke(app, [
            "forecast",
            "--mail", reports["mail.csv"],
            "--period", "90",
            "--custom-growth", "50",
            "--method", "stepwise"
        ])

        mock_run_forecast.assert_called_once()
        args, kwargs = mock_run_forecast.call_args
        settings = kwargs["settings"]
        assert settings.report_period_days == 90
        assert settings.custom_growth_percent == 50
        assert settings.growth_method == GrowthMethod.STEPWISE
        assert isinstance(kwargs["solver"], LocalPackSolver)
        assert [i.workload.value for i in args[0]] == ["mail"]

    def test_forecast_uses_remote_solver_from_config(self, reports, tmp_path, mock_run_forecast):
        """Test a configured solver URL selects the HTTP client."""
        config_path = tmp_path / "sizing.yaml"
        config_path.write_text(
            "licensing:\n  solver_url: https://solver.example.com/solve\n  solver_timeout: 5\n",
            encoding="utf-8"
        )

        runner.invoke(app, ["forecast", "--mail", reports["mail.csv"], "--config", str(config_path)])

        solver = mock_run_forecast.call_args[1]["solver"]
        assert solver.url == "https://solver.example.com/solve"
        assert solver.timeout == 5.0

    def test_forecast_invalid_config(self, reports, tmp_path):
        """Test an invalid config file fails cleanly."""
        config_path = tmp_path / "sizing.yaml"
        config_path.write_text("forecast:\n  growth_metod: stepwise\n", encoding="utf-8")

        result = runner.invoke(app, ["forecast", "--mail", reports["mail.csv"], "-c", str(config_path)])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Unknown keys in forecast" in output_text(result)

    def test_status_defaults(self):
        """Test status shows the default configuration."""
        result = runner.invoke(app, ["status"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Report period: 180 days" in output_text(result)
        assert "Growth method: endpoints" in output_text(result)
        assert "License solver: local" in output_text(result)

    def test_status_missing_config(self, tmp_path):
        """Test status with a missing config file."""
        result = runner.invoke(app, ["status", "--config", str(tmp_path / "missing.yaml")])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Error loading configuration" in output_text(result)
