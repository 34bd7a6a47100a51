# chat_ledger/cli.py
import logging
import os
from datetime import date

import click
from dotenv import load_dotenv

from chat_ledger import reports
from chat_ledger.bot import LedgerBot
from chat_ledger.config import load_config
from chat_ledger.core.errors import LedgerError

LOCAL_CHAT_ID = "local"


def _setup(config_path, env_file):
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()
    logging.basicConfig(
        level=os.environ.get("CHATLEDGER_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    return load_config(config_path)


@click.group()
@click.option(
    '--config', 'config_path',
    default='config.yaml',
    type=click.Path(dir_okay=False),
    help='Path to config.yaml (defaults are used when it does not exist)'
)
@click.option(
    '--env-file', 'env_file',
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help='Optional .env file containing the bot token and LLM credentials'
)
@click.pass_context
def main(ctx, config_path, env_file):
    """Chat-driven personal finance ledger."""
    ctx.obj = _setup(config_path, env_file)


@main.command()
@click.option('--host', default=None, help='Host to bind (default from config)')
@click.option('--port', default=None, type=int, help='Port to bind (default from config)')
@click.pass_obj
def serve(cfg, host, port):
    """Run the Telegram webhook receiver."""
    from chat_ledger.web import TelegramClient, build_server

    token = os.environ.get("TELEGRAM_BOT_TOKEN")
    if not token:
        raise click.ClickException("TELEGRAM_BOT_TOKEN not set")
    tg = cfg.get('telegram', {})
    host = host or tg.get('host', '0.0.0.0')
    port = port or int(tg.get('port', 8080))

    bot = LedgerBot.from_config(cfg)
    server = build_server(bot, TelegramClient(token), host, port, secret=tg.get('webhook_secret', ''))
    click.echo(f"chatledger webhook listening on http://{host}:{port}/webhook (store: {cfg['store']})")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        click.echo("Shutting down")
    finally:
        server.server_close()


@main.command()
@click.option('--as', 'actor_id', default=None, help='Chat id to act as (default: first allowed user)')
@click.pass_obj
def chat(cfg, actor_id):
    """Talk to the bot from the terminal. Ctrl-D to quit."""
    bot = LedgerBot.from_config(cfg)
    if actor_id is None:
        allowed = list(bot.access.users)
        actor_id = allowed[0] if allowed else LOCAL_CHAT_ID
    while True:
        try:
            text = click.prompt('you', prompt_suffix='> ')
        except (EOFError, click.Abort):
            click.echo()
            break
        reply = bot.handle_text(actor_id, actor_id, text)
        for part in reply.all():
            click.echo(part.text)
            if part.keyboard:
                click.echo(" | ".join(b for row in part.keyboard for b in row))


@main.command()
@click.option('--days', default=None, type=int, help='Report the last N days, today included')
@click.option('--start', default=None, help='Start date YYYY-MM-DD')
@click.option('--end', default=None, help='End date YYYY-MM-DD')
@click.option('--income', is_flag=True, default=False, help='Report income instead of spending')
@click.pass_obj
def report(cfg, days, start, end, income):
    """Print a spending (or income) table for a date window."""
    from chat_ledger.core.models import Kind

    bot = LedgerBot.from_config(cfg)
    kind = Kind.INCOME if income else Kind.SPENDING
    try:
        if days is not None:
            result = bot.service.query_last_days(days, kind)
        elif start and end:
            result = bot.service.query_range(date.fromisoformat(start), date.fromisoformat(end), kind)
        else:
            raise click.UsageError("Pass --days N or both --start and --end")
    except (LedgerError, ValueError) as exc:
        raise click.ClickException(str(exc))

    if result.empty:
        click.echo(reports.empty_report_message(
            result.start, result.end, today=bot.clock.today(), locale=cfg.get('locale', 'id')
        ))
        return
    click.echo(reports.render_table(result.transactions))


@main.group()
def mappings():
    """Inspect and prune saved default categories."""


@mappings.command("list")
@click.pass_obj
def list_mappings(cfg):
    """Print every description -> category mapping."""
    bot = LedgerBot.from_config(cfg)
    rows = bot.resolver.list_mappings()
    if not rows:
        click.echo("No default categories saved.")
        return
    for m in rows:
        tag = f" [{m.tag}]" if m.tag else ""
        click.echo(f"{m.description} -> {m.category}{tag}  ({m.date_added})")


@mappings.command("delete")
@click.argument("description")
@click.pass_obj
def delete_mapping(cfg, description):
    """Remove the mapping saved for DESCRIPTION."""
    bot = LedgerBot.from_config(cfg)
    if not bot.resolver.delete_mapping(description):
        raise click.ClickException(f"No default category saved for '{description}'")
    click.echo(f"Deleted default category for '{description}'")


if __name__ == '__main__':
    main()
