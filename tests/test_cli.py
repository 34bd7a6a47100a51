import yaml
from click.testing import CliRunner

from chat_ledger.bot import LedgerBot
from chat_ledger.cli import main
from chat_ledger.config import load_config
from chat_ledger.core.models import TransactionDraft


def write_config(tmp_path):
    cfg = {
        'store': 'sqlite',
        'db_path': str(tmp_path / 'data' / 'ledger.db'),
        'allowed_users': [{'name': 'Rani', 'chat_id': '1001'}],
        'locale': 'id',
    }
    path = tmp_path / 'config.yaml'
    with open(path, 'w') as f:
        yaml.safe_dump(cfg, f)
    return path


def test_cli_report_days(tmp_path):
    cfg_path = write_config(tmp_path)
    bot = LedgerBot.from_config(load_config(cfg_path))
    bot.service.add(TransactionDraft('Kopi Susu', 25000))

    runner = CliRunner()
    res = runner.invoke(main, ['--config', str(cfg_path), 'report', '--days', '7'])
    assert res.exit_code == 0, res.output
    assert 'Kopi Susu' in res.output
    assert 'Rp25.000' in res.output


def test_cli_report_empty(tmp_path):
    cfg_path = write_config(tmp_path)
    runner = CliRunner()
    res = runner.invoke(main, ['--config', str(cfg_path), 'report', '--days', '1'])
    assert res.exit_code == 0, res.output
    assert 'Belum ada transaksi hari ini.' in res.output


def test_cli_report_needs_window(tmp_path):
    cfg_path = write_config(tmp_path)
    runner = CliRunner()
    res = runner.invoke(main, ['--config', str(cfg_path), 'report', '--start', '2025-01-01'])
    assert res.exit_code != 0
    assert '--days' in res.output


def test_cli_report_bad_range(tmp_path):
    cfg_path = write_config(tmp_path)
    runner = CliRunner()
    res = runner.invoke(
        main, ['--config', str(cfg_path), 'report', '--start', '2025-01-10', '--end', '2025-01-01']
    )
    assert res.exit_code == 1
    assert 'start date' in res.output


def test_cli_chat(tmp_path, monkeypatch):
    monkeypatch.delenv('CHATLEDGER_ALLOWED_USERS', raising=False)
    cfg_path = write_config(tmp_path)
    runner = CliRunner()
    res = runner.invoke(main, ['--config', str(cfg_path), 'chat'], input='/ping\n')
    assert res.exit_code == 0, res.output
    assert 'Pong!' in res.output


def test_cli_serve_requires_token(tmp_path, monkeypatch):
    monkeypatch.delenv('TELEGRAM_BOT_TOKEN', raising=False)
    cfg_path = write_config(tmp_path)
    runner = CliRunner()
    res = runner.invoke(main, ['--config', str(cfg_path), 'serve'])
    assert res.exit_code == 1
    assert 'TELEGRAM_BOT_TOKEN' in res.output


def test_cli_report_window_too_large(tmp_path):
    cfg_path = write_config(tmp_path)
    runner = CliRunner()
    res = runner.invoke(main, ['--config', str(cfg_path), 'report', '--days', '1000000'])
    assert res.exit_code == 1
    assert 'Cannot report' in res.output


def test_cli_mappings_list_and_delete(tmp_path):
    cfg_path = write_config(tmp_path)
    runner = CliRunner()
    res = runner.invoke(main, ['--config', str(cfg_path), 'mappings', 'list'])
    assert res.exit_code == 0, res.output
    assert 'No default categories saved.' in res.output

    bot = LedgerBot.from_config(load_config(cfg_path))
    bot.resolver.save_mapping('Kopi', 'Food and Drink', 'Snack')

    res = runner.invoke(main, ['--config', str(cfg_path), 'mappings', 'list'])
    assert res.exit_code == 0, res.output
    assert 'Kopi -> Food and Drink [Snack]' in res.output

    res = runner.invoke(main, ['--config', str(cfg_path), 'mappings', 'delete', 'Kopi'])
    assert res.exit_code == 0, res.output
    assert bot.resolver.list_mappings() == []

    res = runner.invoke(main, ['--config', str(cfg_path), 'mappings', 'delete', 'Kopi'])
    assert res.exit_code == 1
    assert "No default category saved for 'Kopi'" in res.output
