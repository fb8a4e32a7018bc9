from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from catalog_import.app import CatalogImportService
from catalog_import.config import PipelineConfig
from catalog_import.domain.model import ElementType
from catalog_import.ui import cli

if TYPE_CHECKING:
    from pathlib import Path

    from catalog_import.adapters.memory import InMemoryBatchStore, InMemoryCatalog
    from tests.helpers.catalog import TickingClock


@pytest.fixture
def service(
    monkeypatch: pytest.MonkeyPatch,
    catalog: InMemoryCatalog,
    batch_store: InMemoryBatchStore,
    clock: TickingClock,
) -> CatalogImportService:
    service = CatalogImportService(
        backend=catalog,
        store=batch_store,
        config=PipelineConfig(lookup_workers=1),
        clock=clock,
        sleep=lambda _: None,
    )
    monkeypatch.setattr(cli, "build_import_service", lambda **_: service)
    return service


@pytest.fixture
def apps_csv(tmp_path: Path) -> Path:
    path = tmp_path / "apps.csv"
    path.write_text("Name,Owner,Criticality\nBilling,Kim,high\nPayroll,Lee,urgent\n")
    return path


def test_parse_prints_preview(apps_csv: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["parse", str(apps_csv)])

    out = capsys.readouterr().out
    assert "Delimiter: ','" in out
    assert "Rows: 2" in out
    assert "Billing | Kim | high" in out


def test_parse_failure_exits_with_error(tmp_path: Path) -> None:
    empty = tmp_path / "empty.csv"
    empty.write_text("\n\n")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["parse", str(empty)])

    assert excinfo.value.code == 1


def test_mappings_lists_suggestions_and_overrides(
    apps_csv: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cli.main(["mappings", str(apps_csv), "--map", "Owner="])

    out = capsys.readouterr().out
    assert "Name -> name *" in out
    assert "Owner -> (ignored)" in out
    assert "Criticality -> businessCriticality" in out
    assert "Missing required fields" not in out


def test_run_imports_and_writes_error_csv(
    service: CatalogImportService,
    catalog: InMemoryCatalog,
    apps_csv: Path,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    errors_csv = tmp_path / "errors.csv"

    cli.main(["run", str(apps_csv), "--user", "user-1", "--errors-csv", str(errors_csv)])

    out = capsys.readouterr().out
    assert "Validated 2 rows: 1 valid, 1 invalid" in out
    assert "row 2 businessCriticality" in out
    assert "COMPLETED" in out
    assert catalog.find_by_key(ElementType.APPLICATION, "name", "Billing") is not None
    assert errors_csv.read_text(encoding="utf-8").startswith("Row,Field,Value,Error")
    assert len(service.history.get_all_batches()) == 1


def test_run_with_duplicate_strategy(
    service: CatalogImportService,
    catalog: InMemoryCatalog,
    apps_csv: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    catalog.seed(ElementType.APPLICATION, {"name": "Billing"})

    cli.main(["run", str(apps_csv), "--user", "u", "--strategy", "1=skip"])

    out = capsys.readouterr().out
    assert "row 1 matches 'Billing' by name -> SKIP" in out
    assert "skipped=1" in out
    assert catalog.writes == []
    assert service.history.get_all_batches()[0].skipped_count == 1


def test_invalid_strategy_exits_with_usage_error(
    service: CatalogImportService, apps_csv: Path
) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["run", str(apps_csv), "--user", "u", "--strategy", "one=SKIP"])

    assert excinfo.value.code == 2
    assert service.history.get_all_batches() == []


@pytest.mark.parametrize("command", ["mappings", "run"])
def test_malformed_map_exits_with_usage_error(
    command: str, service: CatalogImportService, apps_csv: Path
) -> None:
    extra = ["--user", "u"] if command == "run" else []

    with pytest.raises(SystemExit) as excinfo:
        cli.main([command, str(apps_csv), *extra, "--map", "no-separator"])

    assert excinfo.value.code == 2
    assert service.history.get_all_batches() == []


def test_history_and_batch_commands(
    service: CatalogImportService, apps_csv: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cli.main(["run", str(apps_csv), "--user", "u"])
    batch = service.history.get_all_batches()[0]
    capsys.readouterr()

    cli.main(["history", "--page-size", "5"])
    assert "Page 1 of 1 (1 batches)" in capsys.readouterr().out

    cli.main(["batch", batch.id])
    assert batch.id in capsys.readouterr().out


def test_unknown_batch_exits_with_error(service: CatalogImportService) -> None:
    _ = service

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["batch", "missing"])

    assert excinfo.value.code == 1
