import logging
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from wealth_tracker.categorization import (
    AICategorizer,
    BankCategoryMapper,
    CategorizationPipeline,
    RuleCache,
    TransferDetector,
    detect_recurring,
)
from wealth_tracker.categorization.categories import category_name, is_valid_category
from wealth_tracker.categorization.recurring_detector import LOOKBACK_MONTHS, months_before
from wealth_tracker.clients.prices import CoinGeckoPriceService
from wealth_tracker.clients.text_generation import AnthropicTextClient
from wealth_tracker.config.settings import Settings
from wealth_tracker.database.connection import DatabaseConfig, DatabaseManager
from wealth_tracker.domain.enums import (
    AccountType,
    InvestmentParserKey,
    InvestmentSourceType,
    MatchType,
    ParserKey,
)
from wealth_tracker.domain.investment import InvestmentSource
from wealth_tracker.domain.models import Account, CategoryRule, DataSource
from wealth_tracker.parsers.factory import InvestmentParserFactory, ParserFactory
from wealth_tracker.repositories.sqlite_account_repository import SQLiteAccountRepository
from wealth_tracker.repositories.sqlite_category_rule_repository import SQLiteCategoryRuleRepository
from wealth_tracker.repositories.sqlite_data_source_repository import SQLiteDataSourceRepository
from wealth_tracker.repositories.sqlite_investment_repository import SQLiteInvestmentRepository
from wealth_tracker.repositories.sqlite_transaction_repository import SQLiteTransactionRepository
from wealth_tracker.services.cost_basis import CostBasisCalculator
from wealth_tracker.services.import_investments import ImportInvestmentsService
from wealth_tracker.services.import_transactions import ImportTransactionsService

app = typer.Typer(
    name="wealth-tracker",
    help="Import bank and investment exports, categorize spending, track positions",
    add_completion=False,
)
account_app = typer.Typer(help="Manage accounts")
source_app = typer.Typer(help="Manage bank data sources")
investment_source_app = typer.Typer(help="Manage investment sources")
rule_app = typer.Typer(help="Manage categorization rules")

app.add_typer(account_app, name="account")
app.add_typer(source_app, name="source")
app.add_typer(investment_source_app, name="investment-source")
app.add_typer(rule_app, name="rule")

console = Console()


class Services:
    """Repositories and services wired from the settings"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.db = DatabaseManager(DatabaseConfig.from_settings(settings))
        self.db.initialize_schema()

        self.accounts = SQLiteAccountRepository(self.db)
        self.data_sources = SQLiteDataSourceRepository(self.db)
        self.transactions = SQLiteTransactionRepository(self.db)
        self.rules = SQLiteCategoryRuleRepository(self.db)
        self.investments = SQLiteInvestmentRepository(self.db)

        self.rule_cache = RuleCache(self.rules, ttl_seconds=settings.rule_cache_ttl_seconds)
        self.pipeline = CategorizationPipeline(
            transaction_repository=self.transactions,
            rule_cache=self.rule_cache,
            bank_mapper=BankCategoryMapper(),
            ai_categorizer=self._build_ai_categorizer(settings),
            transfer_detector=TransferDetector(
                self.transactions, self.accounts, window_days=settings.transfer_window_days
            ),
        )

        self.import_transactions = ImportTransactionsService(
            self.data_sources, self.transactions, pipeline=self.pipeline
        )
        price_service = CoinGeckoPriceService(
            base_url=settings.prices.base_url,
            timeout=settings.prices.timeout_seconds,
        )
        self.import_investments = ImportInvestmentsService(
            self.investments, CostBasisCalculator(price_service, settings.currency)
        )

    @staticmethod
    def _build_ai_categorizer(settings: Settings) -> AICategorizer:
        ai = settings.ai
        client = None
        if ai.enabled:
            client = AnthropicTextClient(
                api_key=ai.api_key,
                model=ai.model,
                api_url=ai.api_url,
                timeout=ai.timeout_seconds,
                max_tokens=ai.max_tokens,
            )
        return AICategorizer(
            client,
            batch_size=ai.batch_size,
            max_retries=ai.max_retries,
            max_confidence=ai.max_confidence,
        )


class State:
    verbose: bool = False
    db_path: Optional[Path] = None
    services: Optional[Services] = None


state = State()


def get_services() -> Services:
    if state.services is None:
        settings = Settings.load()
        if state.db_path is not None:
            settings = replace(settings, database_path=str(state.db_path))
        state.services = Services(settings)
    return state.services


def fail(e: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {e}")
    if state.verbose:
        console.print_exception()
    raise typer.Exit(code=1)


def print_errors(errors) -> None:
    for error in errors:
        style = "yellow" if error.startswith("Warning:") else "red"
        console.print(f"  [{style}]•[/{style}] {error}")


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable verbose output",
    ),
    db: Optional[Path] = typer.Option(
        None,
        "--db",
        help="SQLite database file (overrides settings and WEALTH_TRACKER_DB)",
    ),
):
    """
    Wealth Tracker - Import, categorize, and follow your accounts and investments.
    """
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose, show_path=False)],
    )

    ParserFactory.register_defaults()
    InvestmentParserFactory.register_defaults()

    state.verbose = verbose
    state.db_path = db


@app.command(name="init")
def init():
    """Create the database schema."""
    try:
        services = get_services()
        console.print(
            f"[bold green]✓ Database ready[/bold green] at {services.db.config.connection_string}"
        )
    except Exception as e:
        fail(e)


@account_app.command(name="add")
def add_account(
    name: str = typer.Argument(..., help="Account name"),
    account_type: AccountType = typer.Option(
        AccountType.CHECKING,
        "--type", "-t",
        help="Account type",
    ),
    currency: str = typer.Option("EUR", "--currency", help="Account currency"),
):
    """
    Add an account.

    Examples:
        wealth-tracker account add "Compte courant"
        wealth-tracker account add "Livret A" --type SAVINGS
    """
    try:
        account = get_services().accounts.save(Account(name=name, type=account_type, currency=currency))
        console.print(f"[green]✓[/green] Account [bold]{account.name}[/bold] created: {account.id}")
    except Exception as e:
        fail(e)


@account_app.command(name="list")
def list_accounts():
    """List accounts."""
    try:
        accounts = get_services().accounts.find_all()
        if not accounts:
            console.print("[yellow]No accounts yet[/yellow]")
            return

        table = Table(title="Accounts")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Type", style="magenta")
        table.add_column("Currency")

        for account in accounts:
            table.add_row(account.id, account.name, account.type.value, account.currency)

        console.print(table)
    except Exception as e:
        fail(e)


@source_app.command(name="add")
def add_source(
    name: str = typer.Argument(..., help="Data source name"),
    parser: ParserKey = typer.Option(..., "--parser", "-p", help="Export layout"),
    account_id: str = typer.Option(..., "--account", "-a", help="Account filled by this source"),
):
    """
    Add a bank data source linked to an account.

    Examples:
        wealth-tracker source add "CE perso" --parser caisse_epargne --account <ID>
    """
    try:
        services = get_services()
        if services.accounts.find_by_id(account_id) is None:
            raise ValueError(f"Account not found: {account_id}")

        source = services.data_sources.save(
            DataSource(name=name, parser_key=parser.value, linked_account_id=account_id)
        )
        console.print(f"[green]✓[/green] Data source [bold]{source.name}[/bold] created: {source.id}")
    except Exception as e:
        fail(e)


@investment_source_app.command(name="add")
def add_investment_source(
    name: str = typer.Argument(..., help="Investment source name"),
    parser: InvestmentParserKey = typer.Option(..., "--parser", "-p", help="Export layout"),
    source_type: InvestmentSourceType = typer.Option(..., "--type", "-t", help="Kind of source"),
):
    """
    Add an investment source.

    Examples:
        wealth-tracker investment-source add "PEA" --parser bourse_direct --type PEA
        wealth-tracker investment-source add "Binance" --parser binance --type CRYPTO
    """
    try:
        source = get_services().investments.save_source(
            InvestmentSource(name=name, parser_key=parser.value, type=source_type)
        )
        console.print(f"[green]✓[/green] Investment source [bold]{source.name}[/bold] created: {source.id}")
    except Exception as e:
        fail(e)


@rule_app.command(name="add")
def add_rule(
    pattern: str = typer.Argument(..., help="Text or regular expression to match"),
    category_id: str = typer.Argument(..., help="Category assigned on match, e.g. cat-groceries"),
    match_type: MatchType = typer.Option(MatchType.CONTAINS, "--match-type", "-m", help="Comparison"),
    priority: int = typer.Option(0, "--priority", help="Higher priorities are tried first"),
    source: Optional[str] = typer.Option(None, "--source", help="Only apply to this account ID"),
):
    """
    Add a categorization rule.

    Examples:
        wealth-tracker rule add "CARREFOUR" cat-groceries
        wealth-tracker rule add "^ECH PRET" cat-loan-payment --match-type REGEX --priority 10
    """
    try:
        if not is_valid_category(category_id):
            raise ValueError(f"Unknown category: {category_id}")

        services = get_services()
        rule = services.rules.save(CategoryRule.create(
            category_id=category_id,
            pattern=pattern,
            match_type=match_type,
            priority=priority,
            source=source,
        ))
        services.rule_cache.invalidate()
        console.print(
            f"[green]✓[/green] Rule '{rule.pattern}' ({rule.match_type.value}) "
            f"-> {category_name(rule.category_id)}"
        )
    except Exception as e:
        fail(e)


@app.command(name="import")
def import_transactions(
    source_id: str = typer.Argument(..., help="Data source ID"),
    filepath: Path = typer.Argument(
        ...,
        help="Path to the bank export",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    categorize: bool = typer.Option(
        False,
        "--categorize",
        help="Categorize the account once the import is done",
    ),
):
    """
    Import a bank statement export.

    Examples:
        wealth-tracker import <SOURCE_ID> export.csv
        wealth-tracker import <SOURCE_ID> export.csv --categorize
    """
    try:
        services = get_services()
        console.print(Panel.fit(
            f"[bold cyan]Import Configuration[/bold cyan]\n"
            f"File: {filepath}\n"
            f"Source: {source_id}\n"
            f"Categorize: {'YES' if categorize else 'NO'}",
            border_style="cyan",
        ))

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Importing transactions...", total=None)
            result = services.import_transactions.execute(
                source_id, filepath.read_bytes(), categorize=categorize
            )
            progress.update(task, completed=True)

        console.print("")
        console.print(str(result))
        print_errors(result.errors)

        if not result.success and result.blocking_errors and result.skipped == 0:
            raise typer.Exit(code=1)
    except typer.Exit:
        raise
    except Exception as e:
        fail(e)


@app.command(name="import-investments")
def import_investments(
    source_id: str = typer.Argument(..., help="Investment source ID"),
    filepath: Path = typer.Argument(
        ...,
        help="Path to the broker/exchange export",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
):
    """
    Import a broker or exchange export.

    Examples:
        wealth-tracker import-investments <SOURCE_ID> positions.xlsx
    """
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Importing investments...", total=None)
            result = get_services().import_investments.execute(source_id, filepath.read_bytes())
            progress.update(task, completed=True)

        console.print(str(result))
        print_errors(result.errors)
    except Exception as e:
        fail(e)


@app.command(name="categorize")
def categorize(
    account_id: Optional[str] = typer.Option(
        None,
        "--account", "-a",
        help="Only categorize this account",
    ),
):
    """
    Categorize every transaction without a category.

    Examples:
        wealth-tracker categorize
        wealth-tracker categorize --account <ID>
    """
    try:
        services = get_services()
        if not services.settings.ai.enabled:
            console.print("[dim]ANTHROPIC_API_KEY not set, AI stage disabled[/dim]")

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Categorizing...", total=None)
            stats = services.pipeline.run(account_id=account_id)
            progress.update(task, completed=True)

        table = Table(title="Categorization", show_header=False, box=None, padding=(0, 2))
        table.add_column("Stage", style="cyan")
        table.add_column("Count", justify="right")
        table.add_row("Transactions", str(stats.total))
        table.add_row("Rules", str(stats.rule_matches))
        table.add_row("Bank categories", str(stats.bank_matches))
        table.add_row("AI", str(stats.ai_matches))
        table.add_row("Transfers", str(stats.transfer_matches))
        table.add_row("Unmatched", f"[yellow]{stats.unmatched}[/yellow]")
        table.add_row("Applied", f"[green]{stats.applied}[/green]")
        console.print(table)

        if stats.estimated_cost:
            console.print(f"[dim]Estimated AI cost: ${stats.estimated_cost:.4f}[/dim]")
    except Exception as e:
        fail(e)


@app.command(name="positions")
def positions(
    source_id: str = typer.Argument(..., help="Investment source ID"),
):
    """Show the positions of an investment source."""
    try:
        services = get_services()
        source = services.investments.find_source_by_id(source_id)
        if source is None:
            raise ValueError(f"Investment source not found: {source_id}")

        items = services.investments.find_positions_by_source_id(source_id)
        if not items:
            console.print(Panel(
                "[yellow]No positions for this source[/yellow]",
                title=source.name,
                border_style="yellow",
            ))
            return

        table = Table(title=f"{source.name} ({source.type.value})")
        table.add_column("Symbol", style="cyan")
        table.add_column("Quantity", justify="right")
        table.add_column("PRU", justify="right")
        table.add_column("Price", justify="right")
        table.add_column("Value", justify="right")
        table.add_column("Gain/Loss", justify="right")

        total_value = 0
        total_gain = 0
        for position in items:
            color = "green" if position.gain_loss >= 0 else "red"
            table.add_row(
                position.symbol,
                f"{position.quantity.normalize():f}",
                f"{position.avg_buy_price:,.2f}",
                f"{position.current_price:,.2f}",
                f"{position.current_value:,.2f} {position.currency}",
                f"[{color}]{position.gain_loss:+,.2f} ({position.gain_loss_percent:+.2f}%)[/{color}]",
            )
            total_value += position.current_value
            total_gain += position.gain_loss

        console.print(table)
        console.print(f"\n[bold]Total:[/bold] {total_value:,.2f}  [dim](gain/loss {total_gain:+,.2f})[/dim]")
    except Exception as e:
        fail(e)


@app.command(name="sync-prices")
def sync_prices():
    """Recompute crypto positions from their ledger with current prices."""
    try:
        services = get_services()
        sources = services.investments.find_sources_by_type(InvestmentSourceType.CRYPTO)
        if not sources:
            console.print("[yellow]No crypto sources[/yellow]")
            return

        for source in sources:
            result = services.import_investments.recalculate(source)
            console.print(f"[bold]{source.name}[/bold]: {result.positions} positions")
            print_errors(result.errors)
    except Exception as e:
        fail(e)


@app.command(name="recurring")
def recurring():
    """List recurring payments found in the last months."""
    try:
        services = get_services()
        today = date.today()
        transactions = services.transactions.find_in_date_range(
            months_before(today, LOOKBACK_MONTHS), today
        )
        patterns = detect_recurring(transactions, reference_date=today)

        if not patterns:
            console.print("[yellow]No recurring patterns found[/yellow]")
            return

        table = Table(title="Recurring payments")
        table.add_column("Description", style="white", max_width=40)
        table.add_column("Frequency", style="magenta")
        table.add_column("Amount", justify="right")
        table.add_column("Seen", justify="right")
        table.add_column("Last", style="cyan")
        table.add_column("Category", style="dim")

        for pattern in patterns:
            table.add_row(
                pattern.description,
                pattern.frequency.value,
                f"{pattern.amount:,.2f}",
                str(pattern.occurrence_count),
                str(pattern.last_seen_at),
                category_name(pattern.category_id) if pattern.category_id else "Uncategorized",
            )

        console.print(table)
    except Exception as e:
        fail(e)


def cli_main():
    """Entry point for the CLI"""
    app()


if __name__ == "__main__":
    cli_main()
