import json
import logging
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from orcamais.config.settings import Settings
from orcamais.domain.enums import BudgetStatus
from orcamais.domain.errors import OrcaMaisError, ValidationError
from orcamais.domain.models import Transaction
from orcamais.domain.periods import current_period, format_period, parse_period, previous_period
from orcamais.services.dreams import remaining_time_label
from orcamais.services.factory import Application, build_application
from orcamais.services.investments import InvestmentService
from orcamais.services.models import OperationResult
from orcamais.utils.formatters import (
    format_currency,
    format_date,
    format_percentage,
)

app = typer.Typer(
    name="orcamais",
    help="OrçaMais - controle financeiro pessoal",
    add_completion=False,
)
budget_app = typer.Typer(help="Orçamentos por categoria")
dream_app = typer.Typer(help="Sonhos (metas de economia)")
invest_app = typer.Typer(help="Simulação de investimentos")
app.add_typer(budget_app, name="budget")
app.add_typer(dream_app, name="dream")
app.add_typer(invest_app, name="invest")

console = Console()


class State:
    verbose: bool = False
    app: Optional[Application] = None


state = State()


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _services() -> Application:
    if state.app is None:
        state.app = build_application()
    return state.app


def _require_login() -> None:
    if not _services().finance.is_logged_in():
        console.print("[yellow]Faça login primeiro: orcamais login[/yellow]")
        raise typer.Exit(code=1)


def _report(result: OperationResult, success: str) -> None:
    """Print an operation outcome, exiting with code 1 on failure"""
    if result.success:
        console.print(f"[bold green]✓[/bold green] {result.message or success}")
        return

    console.print(f"[bold red]✗ {result.message}[/bold red]")
    for field_name, message in result.errors.items():
        console.print(f"  [red]{field_name}:[/red] {message}")
    raise typer.Exit(code=1)


def _handle_error(e: Exception) -> None:
    console.print(f"[bold red]Erro:[/bold red] {e}")
    if state.verbose:
        console.print_exception()
    raise typer.Exit(code=1)


def _resolve_period(period: Optional[str]) -> str:
    if period is None:
        return current_period()
    try:
        parse_period(period)
    except ValueError as e:
        raise typer.BadParameter(str(e))
    return period


def _amount_markup(transaction: Transaction) -> str:
    signed = transaction.signed_amount
    if signed < 0:
        return f"[red]-{format_currency(-signed)}[/red]"
    return f"[green]+{format_currency(signed)}[/green]"


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable verbose output",
    ),
    email: Optional[str] = typer.Option(
        None,
        "--email",
        envvar="ORCAMAIS_EMAIL",
        help="Sign in with this email before running the command",
    ),
    password: Optional[str] = typer.Option(
        None,
        "--password",
        envvar="ORCAMAIS_PASSWORD",
        help="Password used with --email",
    ),
):
    """
    OrçaMais - receitas, despesas, orçamentos, sonhos e investimentos.
    """
    settings = Settings.from_env()
    setup_logging("DEBUG" if verbose else settings.log_level)
    state.verbose = verbose

    if state.app is None:
        try:
            state.app = build_application(settings)
        except OrcaMaisError as e:
            _handle_error(e)

    # Remote backends keep no session between processes
    if email and password and not state.app.finance.is_logged_in():
        result = state.app.finance.login(email, password)
        if not result:
            _report(result, "")


# ══════════════════════════════════════════════════════════════════
# ACCOUNT
# ══════════════════════════════════════════════════════════════════

@app.command()
def register(
    name: str = typer.Option(..., "--name", "-n", prompt="Nome", help="Seu nome"),
    email: str = typer.Option(..., "--email", "-e", prompt="Email", help="Seu email"),
    password: str = typer.Option(
        ..., "--password", "-p", prompt="Senha", hide_input=True, confirmation_prompt=True
    ),
):
    """
    Create an account and sign in.

    Examples:
        orcamais register --name Ana --email ana@example.com
    """
    _report(_services().finance.register(name, email, password), f"Bem-vindo(a), {name}!")


@app.command()
def login(
    email: str = typer.Option(..., "--email", "-e", prompt="Email"),
    password: str = typer.Option(..., "--password", "-p", prompt="Senha", hide_input=True),
):
    """Sign in to an existing account."""
    result = _services().finance.login(email, password)
    profile = _services().finance.get_current_user()
    _report(result, f"Olá, {profile.name if profile else email}!")


@app.command()
def logout():
    """Sign out."""
    _report(_services().finance.logout(), "Sessão encerrada")


@app.command()
def whoami():
    """Show the signed-in user."""
    profile = _services().finance.get_current_user()
    if profile is None:
        console.print("[yellow]Nenhum usuário conectado[/yellow]")
        raise typer.Exit(code=1)

    console.print(Panel.fit(
        f"[bold]{profile.name}[/bold]\n{profile.email}\n"
        f"[dim]Tema: {_services().finance.get_theme().value}[/dim]",
        border_style="cyan",
    ))


@app.command(name="reset-password")
def reset_password(
    email: str = typer.Option(..., "--email", "-e", prompt="Email"),
):
    """Send a password reset link."""
    _report(_services().finance.request_password_reset(email), "Link enviado")


# ══════════════════════════════════════════════════════════════════
# TRANSACTIONS
# ══════════════════════════════════════════════════════════════════

@app.command()
def add(
    description: str = typer.Argument(..., help="Descrição"),
    amount: str = typer.Argument(..., help="Valor, ex.: 150.90"),
    income: bool = typer.Option(False, "--income", "-i", help="Registrar como receita"),
    category: Optional[str] = typer.Option(
        None, "--category", "-c", help="Categoria (sugerida pela descrição se omitida)"
    ),
    on: Optional[str] = typer.Option(None, "--date", "-d", help="Data AAAA-MM-DD (hoje se omitida)"),
    recurring: bool = typer.Option(False, "--recurring", "-r", help="Repetir todo mês"),
    day: Optional[int] = typer.Option(None, "--day", min=1, max=31, help="Dia do mês da recorrência"),
    installments: Optional[int] = typer.Option(
        None, "--installments", min=1, help="Número de parcelas (recorrência limitada)"
    ),
):
    """
    Add an income or expense.

    Examples:
        orcamais add "Mercado" 150.90
        orcamais add "Salário extra" 800 --income
        orcamais add "Netflix" 39.90 --recurring --day 5
        orcamais add "Notebook" 350 --recurring --installments 10
    """
    _require_login()
    finance = _services().finance

    data = {
        "description": description,
        "amount": amount,
        "type": "income" if income else "expense",
        "date": on or date.today().isoformat(),
        "category": category,
    }
    if recurring or installments:
        data.update({
            "isRecurring": True,
            "recurrenceDay": day,
            "recurrenceLimit": installments,
        })

    result = finance.add_transaction(data)
    if result:
        txn = result.value
        result.message = (
            f"{txn.description} {format_currency(txn.amount)} "
            f"em {txn.category} ({format_date(txn.date)})"
        )
    _report(result, "")


@app.command()
def remove(
    transaction_id: str = typer.Argument(..., help="Id da transação"),
):
    """Remove a transaction (generated occurrences of a template are kept)."""
    _require_login()
    _report(_services().finance.remove_transaction(transaction_id), "Transação removida")


@app.command()
def dismiss(
    alert_id: str = typer.Argument(..., help="Id do alerta, ex.: budget:Lazer:2025-03"),
):
    """Hide a budget or spending alert (ids are shown by report)."""
    _require_login()
    _report(_services().finance.dismiss_alert(alert_id), "Alerta dispensado")


@app.command(name="report")
def report(
    period: Optional[str] = typer.Option(
        None, "--period", "-p", help="Período AAAA-MM (mês atual se omitido)"
    ),
    limit: int = typer.Option(15, "--limit", help="Transações exibidas"),
):
    """
    Show the monthly report.

    Examples:
        orcamais report
        orcamais report --period 2025-03
    """
    _require_login()
    period = _resolve_period(period)
    finance = _services().finance

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Gerando relatório...", total=None)
            summary = finance.get_financial_summary(period)
            alerts = finance.get_active_alerts(period)
            progress.update(task, completed=True)
    except OrcaMaisError as e:
        _handle_error(e)

    console.print(f"\n[bold cyan]Relatório: {format_period(period)}[/bold cyan]")

    # ═══════════════════════════════════════════════════════════
    # SUMMARY PANEL
    # ═══════════════════════════════════════════════════════════

    balance_color = "green" if summary.balance >= 0 else "red"
    console.print(Panel(
        f"[bold]Transações:[/bold] {summary.transaction_count}\n\n"
        f"[cyan]🏦 Renda base:[/cyan] {format_currency(summary.monthly_income):>16}\n"
        f"[green]💰 Receitas:[/green]   {format_currency(summary.total_income):>16}\n"
        f"[red]💸 Despesas:[/red]   {format_currency(summary.total_expenses):>16}\n"
        f"{'─' * 32}\n"
        f"[bold {balance_color}]Saldo:[/bold {balance_color}]        "
        f"{format_currency(summary.balance):>16}",
        title=f"[bold]{format_period(period)}[/bold]",
        border_style="cyan",
        padding=(1, 2),
    ))

    if summary.expenses_by_category:
        console.print("\n[bold]Despesas por categoria[/bold]")
        category_table = Table(show_header=True, box=None, padding=(0, 2))
        category_table.add_column("Categoria", style="cyan", no_wrap=True)
        category_table.add_column("Valor", justify="right", style="red")
        category_table.add_column("% do total", justify="right", style="dim")

        for category, amount in summary.top_spending_categories:
            share = amount / summary.total_expenses * 100 if summary.total_expenses > 0 else 0
            category_table.add_row(category, format_currency(amount), f"{share:.1f}%")
        console.print(category_table)

    for alert in alerts:
        color = "red" if alert.severity == "danger" else "yellow"
        console.print(f"[{color}]⚠ {alert.message}[/{color}] [dim]({alert.id})[/dim]")

    if summary.transactions:
        console.print("\n[bold]Transações[/bold]")
        txn_table = Table(show_header=True, padding=(0, 1))
        txn_table.add_column("Data", style="cyan", width=12)
        txn_table.add_column("Descrição", style="white", max_width=40)
        txn_table.add_column("Categoria", style="dim", width=15)
        txn_table.add_column("Valor", justify="right", width=16)
        txn_table.add_column("Id", style="dim")

        for txn in summary.transactions[:limit]:
            desc = txn.description[:37] + "..." if len(txn.description) > 40 else txn.description
            if txn.installment_number:
                desc += f" ({txn.installment_number}/{txn.installment_total})"
            txn_table.add_row(
                format_date(txn.date),
                desc,
                txn.category,
                _amount_markup(txn),
                txn.id,
            )
        console.print(txn_table)

        if summary.transaction_count > limit:
            console.print(f"\n[dim]Exibindo {limit} de {summary.transaction_count} transações[/dim]")

    templates = finance.get_recurring_templates()
    if templates and state.verbose:
        console.print("\n[bold]Recorrências[/bold]")
        for template in templates:
            progress_label = (
                f"{template.recurrence_current}/{template.recurrence_limit}"
                if template.recurrence_limit else "assinatura"
            )
            console.print(
                f"  {template.description} {format_currency(template.amount)} "
                f"dia {template.recurrence_day} [dim]({progress_label}, {template.id})[/dim]"
            )


@app.command()
def compare(
    base: Optional[str] = typer.Option(None, "--from", help="Período base (mês anterior se omitido)"),
    other: Optional[str] = typer.Option(None, "--to", help="Período comparado (mês atual se omitido)"),
):
    """
    Compare two periods.

    Examples:
        orcamais compare
        orcamais compare --from 2025-01 --to 2025-02
    """
    _require_login()
    other = _resolve_period(other)
    base = _resolve_period(base) if base else previous_period(other)

    comparison = _services().finance.compare_periods(base, other)

    table = Table(title=f"{format_period(base)} → {format_period(other)}")
    table.add_column("", style="bold")
    table.add_column(format_period(base), justify="right")
    table.add_column(format_period(other), justify="right")
    table.add_column("Variação", justify="right")
    table.add_column("%", justify="right")

    rows = [
        ("Receitas", comparison.base.total_income, comparison.current.total_income,
         comparison.income_change, comparison.income_change_percent),
        ("Despesas", comparison.base.total_expenses, comparison.current.total_expenses,
         comparison.expense_change, comparison.expense_change_percent),
        ("Saldo", comparison.base.balance, comparison.current.balance,
         comparison.balance_change, comparison.balance_change_percent),
    ]
    for label, first, second, change, percent in rows:
        table.add_row(
            label,
            format_currency(first),
            format_currency(second),
            format_currency(change),
            format_percentage(percent),
        )
    console.print(table)


@app.command()
def trend(
    months: int = typer.Option(6, "--months", "-m", min=1, max=36, help="Número de meses"),
):
    """Income, expenses and balance of the last months."""
    _require_login()
    series = _services().finance.get_monthly_comparison(months)

    table = Table(title=f"Últimos {months} meses")
    table.add_column("Mês", style="cyan")
    table.add_column("Receitas", justify="right", style="green")
    table.add_column("Despesas", justify="right", style="red")
    table.add_column("Saldo", justify="right")

    for summary in series:
        color = "green" if summary.balance >= 0 else "red"
        table.add_row(
            format_period(summary.period),
            format_currency(summary.monthly_income + summary.total_income),
            format_currency(summary.total_expenses),
            f"[{color}]{format_currency(summary.balance)}[/{color}]",
        )
    console.print(table)


@app.command()
def income(
    amount: Optional[str] = typer.Argument(None, help="Renda base do mês (omita para consultar)"),
    period: Optional[str] = typer.Option(None, "--period", "-p", help="Período AAAA-MM"),
):
    """Set or show the base monthly income."""
    _require_login()
    period = _resolve_period(period)
    finance = _services().finance

    if amount is None:
        console.print(
            f"Renda de {format_period(period)}: "
            f"[bold]{format_currency(finance.get_monthly_income(period))}[/bold]"
        )
        return

    _report(
        finance.set_monthly_income(period, amount),
        f"Renda de {format_period(period)} definida",
    )


@app.command()
def suggest(description: str = typer.Argument(..., help="Descrição da transação")):
    """Suggest a category for a description."""
    console.print(_services().finance.suggest_category(description))


@app.command(name="export")
def export(
    scope: str = typer.Option("current", "--scope", "-s", help="current, all, budgets ou dreams"),
    period: Optional[str] = typer.Option(None, "--period", "-p", help="Período AAAA-MM"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Arquivo JSON de saída"),
):
    """Export data as JSON."""
    _require_login()
    try:
        data = _services().finance.get_export_data(scope, _resolve_period(period))
    except ValueError as e:
        _handle_error(e)

    payload = json.dumps(data, ensure_ascii=False, indent=2)
    if output is None:
        console.print_json(payload)
        return

    output.write_text(payload, encoding="utf-8")
    console.print(f"[bold green]✓[/bold green] Exportado para {output}")


@app.command()
def theme(value: str = typer.Argument(..., help="light ou dark")):
    """Change the interface theme."""
    _require_login()
    _report(_services().finance.set_theme(value), f"Tema alterado para {value}")


# ══════════════════════════════════════════════════════════════════
# BUDGETS
# ══════════════════════════════════════════════════════════════════

@budget_app.command("set")
def budget_set(
    category: str = typer.Argument(..., help="Categoria"),
    limit: str = typer.Argument(..., help="Limite mensal (0 remove)"),
):
    """Set a monthly limit for a category."""
    _require_login()
    _report(
        _services().finance.set_category_budget(category, limit),
        f"Orçamento de {category} definido",
    )


@budget_app.command("list")
def budget_list(
    period: Optional[str] = typer.Option(None, "--period", "-p", help="Período AAAA-MM"),
):
    """Show each budget against what was spent."""
    _require_login()
    statuses = _services().finance.get_category_budgets(_resolve_period(period))
    if not statuses:
        console.print("[yellow]Nenhum orçamento definido[/yellow]")
        return

    colors = {
        BudgetStatus.OK: "green",
        BudgetStatus.WARNING: "yellow",
        BudgetStatus.EXCEEDED: "red",
    }
    table = Table(title="Orçamentos")
    table.add_column("Categoria", style="cyan")
    table.add_column("Gasto", justify="right")
    table.add_column("Limite", justify="right")
    table.add_column("%", justify="right")

    for status in statuses:
        color = colors[status.status]
        table.add_row(
            status.category,
            format_currency(status.spent),
            format_currency(status.limit),
            f"[{color}]{status.percentage:.0f}%[/{color}]",
        )
    console.print(table)


# ══════════════════════════════════════════════════════════════════
# DREAMS
# ══════════════════════════════════════════════════════════════════

@dream_app.command("add")
def dream_add(
    name: str = typer.Argument(..., help="Nome do sonho"),
    total: str = typer.Argument(..., help="Valor total"),
    target_date: Optional[str] = typer.Option(None, "--by", help="Data alvo AAAA-MM-DD"),
    monthly: Optional[str] = typer.Option(None, "--monthly", help="Quanto guardar por mês"),
):
    """
    Plan a dream by target date or by monthly amount.

    Examples:
        orcamais dream add "Viagem" 6000 --by 2026-12-01
        orcamais dream add "Carro" 30000 --monthly 1000
    """
    _require_login()
    data = {
        "name": name,
        "totalValue": total,
        "calculationType": "monthly" if monthly else "date",
        "targetDate": target_date,
        "monthlyAmount": monthly,
    }
    _report(_services().finance.add_dream(data), f"Sonho {name} criado")


@dream_app.command("list")
def dream_list():
    """Show dreams and their progress."""
    _require_login()
    dreams = _services().finance.get_dreams()
    if not dreams:
        console.print("[yellow]Nenhum sonho cadastrado[/yellow]")
        return

    table = Table(title="Sonhos")
    table.add_column("Nome", style="cyan")
    table.add_column("Guardado", justify="right")
    table.add_column("Meta", justify="right")
    table.add_column("Progresso", justify="right")
    table.add_column("Por mês", justify="right")
    table.add_column("Tempo restante")
    table.add_column("Id", style="dim")

    for dream in dreams:
        progress_label = f"{dream.progress_percentage:.0f}%"
        if dream.is_exceeded:
            progress_label += " [green](superado)[/green]"
        table.add_row(
            dream.name,
            format_currency(dream.saved_amount),
            format_currency(dream.total_value),
            progress_label,
            format_currency(dream.monthly_amount) if dream.monthly_amount else "-",
            remaining_time_label(dream) or "-",
            dream.id,
        )
    console.print(table)


@dream_app.command("save")
def dream_save(
    dream_id: str = typer.Argument(..., help="Id do sonho"),
    amount: str = typer.Argument(..., help="Valor a guardar"),
    set_total: bool = typer.Option(
        False, "--set", help="Substituir o valor guardado em vez de somar"
    ),
):
    """Add savings to a dream."""
    _require_login()
    finance = _services().finance
    if set_total:
        result = finance.update_dream_savings(dream_id, amount)
    else:
        result = finance.contribute_to_dream(dream_id, amount)

    if result:
        dream = result.value
        result.message = (
            f"{dream.name}: {format_currency(dream.saved_amount)} de "
            f"{format_currency(dream.total_value)}"
        )
    _report(result, "")


@dream_app.command("remove")
def dream_remove(dream_id: str = typer.Argument(..., help="Id do sonho")):
    """Delete a dream."""
    _require_login()
    _report(_services().finance.remove_dream(dream_id), "Sonho removido")


# ══════════════════════════════════════════════════════════════════
# INVESTMENTS
# ══════════════════════════════════════════════════════════════════

@invest_app.command("quotes")
def invest_quotes(
    term: str = typer.Argument("", help="Código ou nome da ação"),
    limit: int = typer.Option(20, "--limit", help="Resultados exibidos"),
):
    """Search stock quotes."""
    try:
        quotes = _services().investments.search(term)
    except OrcaMaisError as e:
        _handle_error(e)

    table = Table(title=f"Cotações ({len(quotes)})")
    table.add_column("Código", style="cyan")
    table.add_column("Nome")
    table.add_column("Preço", justify="right")
    for quote in quotes[:limit]:
        table.add_row(quote.stock, quote.name, format_currency(quote.close))
    console.print(table)


@invest_app.command("buy")
def invest_buy(
    stock_code: str = typer.Argument(..., help="Código da ação, ex.: PETR4"),
    quantity: str = typer.Argument("1", help="Quantidade de ações"),
):
    """Simulate a purchase paid from the current balance."""
    _require_login()
    investments = _services().investments
    try:
        shares = InvestmentService.validate_quantity(quantity)
        quote = investments.market_data.get_quote(stock_code)
    except ValidationError as e:
        _report(OperationResult.fail(str(e), e.errors), "")
    except OrcaMaisError as e:
        _handle_error(e)

    if quote is None:
        console.print(f"[bold red]✗ Ação {stock_code.upper()} não encontrada[/bold red]")
        raise typer.Exit(code=1)

    _report(
        investments.simulate_purchase(quote, shares),
        f"Compra de {shares}x {quote.stock} por {format_currency(quote.close * shares)}",
    )


@invest_app.command("portfolio")
def invest_portfolio(
    rate: Optional[float] = typer.Option(
        None, "--rate", help="Projetar a carteira a esta taxa mensal (%)"
    ),
):
    """Show simulated purchases with their profit."""
    _require_login()
    investments = _services().investments
    positions = investments.portfolio()
    if not positions:
        console.print("[yellow]Nenhuma compra simulada[/yellow]")
        return

    table = Table(title="Carteira simulada")
    table.add_column("Data", style="cyan")
    table.add_column("Ação")
    table.add_column("Custo", justify="right")
    table.add_column("Valor atual", justify="right")
    table.add_column("Resultado", justify="right")
    table.add_column("Id", style="dim")

    for position in positions:
        color = "green" if position.profit >= 0 else "red"
        table.add_row(
            format_date(position.transaction.date),
            f"{position.investment.quantity}x {position.investment.stock_code}",
            format_currency(position.total_cost),
            format_currency(position.current_value),
            f"[{color}]{format_currency(position.profit)} "
            f"({format_percentage(position.profit_percent)})[/{color}]",
            position.transaction.id,
        )
    console.print(table)

    if rate is not None:
        total = sum((p.current_value for p in positions), Decimal("0"))
        projection = investments.project(total, Decimal(str(rate)))
        for point in projection:
            console.print(f"  Mês {point.month}: {format_currency(point.value)}")


@invest_app.command("sell")
def invest_sell(transaction_id: str = typer.Argument(..., help="Id da compra")):
    """Sell a simulated purchase at the current price."""
    _require_login()
    result = _services().investments.sell(transaction_id)
    if result:
        profit = result.value
        label = "Lucro" if profit >= 0 else "Prejuízo"
        result.message = f"Venda registrada. {label}: {format_currency(abs(profit))}"
    _report(result, "")


def cli_main():
    """Entry point for the CLI"""
    app()


if __name__ == "__main__":
    cli_main()
