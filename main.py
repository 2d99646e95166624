"""
Chancellor Simulation
Command-line runner: plays a session month by month from a chosen budget and
fiscal framework, with a live dashboard of the headline numbers.
"""

import argparse
import json
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List

import numpy as np

from rich.console import Console
from rich.live import Live
from rich.table import Table
from rich.layout import Layout
from rich.panel import Panel

from config import DEPARTMENTS, DIFFICULTY_PRESETS, FISCAL_RULES, SimulationConfig
from fiscal import apply_budget
from logger import set_level
from manifesto import MANIFESTO_TEMPLATES
from parliament import stance_counts
from state import GameState
from turn import Simulation

logger = None
console = Console()


class NumpyEncoder(json.JSONEncoder):
    """Custom encoder for NumPy data types."""
    def default(self, obj):
        if isinstance(obj, (np.integer, np.floating, np.bool_)):
            return obj.item()
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, (set, frozenset)):
            return sorted(obj)
        elif isinstance(obj, Path):
            return str(obj)
        return super(NumpyEncoder, self).default(obj)


def parse_spending_change(value: str):
    """Parse DEPT=BN into (department, change in £bn)."""
    if "=" not in value:
        raise argparse.ArgumentTypeError(f"expected DEPT=BN, got '{value}'")
    department, amount = value.split("=", 1)
    if department not in DEPARTMENTS:
        raise argparse.ArgumentTypeError(f"unknown department '{department}', expected one of {DEPARTMENTS}")
    try:
        return department, float(amount)
    except ValueError:
        raise argparse.ArgumentTypeError(f"'{amount}' is not a number")


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments for simulation configuration."""
    parser = argparse.ArgumentParser(
        description="Monthly simulation of the UK economy, public finances and politics"
    )
    parser.add_argument(
        "--months", type=int, default=60,
        help="Number of months to simulate (default: 60)"
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Random seed for reproducibility"
    )
    parser.add_argument(
        "--difficulty", choices=sorted(DIFFICULTY_PRESETS), default="standard",
        help="Difficulty mode (default: standard)"
    )
    parser.add_argument(
        "--fiscal-rule", choices=sorted(FISCAL_RULES), default="starmer-reeves",
        help="Fiscal framework (default: starmer-reeves)"
    )
    parser.add_argument(
        "--adviser", action="append", default=[],
        help="Appoint an adviser (repeatable)"
    )
    parser.add_argument(
        "--manifesto", choices=sorted(MANIFESTO_TEMPLATES), default="cautious-centrist",
        help="Manifesto the government was elected on (default: cautious-centrist)"
    )
    parser.add_argument("--vat", type=float, default=None, help="VAT rate (%%)")
    parser.add_argument("--income-tax-basic", type=float, default=None, help="Basic rate of income tax (%%)")
    parser.add_argument("--corporation-tax", type=float, default=None, help="Main rate of corporation tax (%%)")
    parser.add_argument(
        "--spending-change", type=parse_spending_change, action="append", default=[],
        metavar="DEPT=BN", help="Change a department's current spending in £bn (repeatable)"
    )
    parser.add_argument(
        "--output-dir", type=str, default="output",
        help="Directory for output files (default: output)"
    )
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="INFO",
        help="Logging verbosity level (default: INFO)"
    )
    parser.add_argument(
        "--no-live", action="store_true",
        help="Skip the live dashboard and print a summary at the end"
    )
    return parser.parse_args()


def budget_from_args(args: argparse.Namespace) -> Dict[str, Dict[str, float]]:
    rates = {}
    if args.vat is not None:
        rates["vat"] = args.vat
    if args.income_tax_basic is not None:
        rates["income_basic"] = args.income_tax_basic
    if args.corporation_tax is not None:
        rates["corporation"] = args.corporation_tax
    current: Dict[str, float] = {}
    for department, amount in args.spending_change:
        current[department] = current.get(department, 0.0) + amount
    return {"rates": rates, "current": current}


def indicator_table(state: GameState) -> Table:
    economic, fiscal, markets, political = state.economic, state.fiscal, state.markets, state.political
    table = Table(title="Headline Indicators")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("GDP growth", f"{economic.gdp_growth_annual:.2f}%")
    table.add_row("CPI inflation", f"{economic.inflation_cpi:.2f}%")
    table.add_row("Unemployment", f"{economic.unemployment_rate:.2f}%")
    table.add_row("Bank Rate", f"{markets.bank_rate:.2f}%")
    table.add_row("10y gilt", f"{markets.gilt_10y:.2f}%")
    table.add_row("Deficit", f"£{fiscal.deficit_bn:.1f}bn ({fiscal.deficit_pct_gdp:.1f}% GDP)")
    table.add_row("Debt", f"{fiscal.debt_pct_gdp:.1f}% GDP")
    table.add_row("Fiscal rule", "met" if political.compliance.compliant
                  else f"breached ({political.compliance.consecutive_breaches}m)")
    table.add_row("Approval", f"{political.approval:.1f}%")
    table.add_row("Backbench", f"{political.backbench:.1f}")
    table.add_row("PM trust", f"{political.pm_trust:.1f}")
    table.add_row("Credit rating", f"{political.credit_rating} ({political.rating_outlook})")
    if state.mp_stances:
        counts = stance_counts(state.mp_stances)
        table.add_row("Commons", f"{counts['support']} for / {counts['oppose']} against")
    return table


def create_dashboard(state: GameState, total_months: int, events: List[str]) -> Layout:
    """Create a rich layout dashboard."""
    meta = state.metadata
    layout = Layout()
    layout.split_column(
        Layout(name="header", size=3),
        Layout(name="main", ratio=1),
        Layout(name="footer", size=3)
    )

    layout["header"].update(Panel(
        f"HM Treasury - {meta.year}-{meta.month:02d} (month {meta.turn}/{total_months})", style="bold blue"
    ))

    event_text = "\n".join([f"• {e}" for e in events[-8:]]) if events else "No events yet."
    layout["main"].split_row(
        Layout(Panel(indicator_table(state), title="Economy"), ratio=1),
        Layout(Panel(event_text, title="Recent Events", style="yellow"), ratio=2)
    )

    newspaper = state.events.newspaper
    footer = f"{newspaper.paper}: {newspaper.headline}" if newspaper else "Running simulation..."
    layout["footer"].update(Panel(footer, style="italic"))
    return layout


def new_headlines(state: GameState) -> List[str]:
    """Events, PM messages and the front page printed this month."""
    turn = state.metadata.turn
    lines = [f"{e.title}" for e in state.events.pending + state.events.log if e.turn == turn]
    lines += [f"PM: {m.subject}" for m in state.pm.messages if m.turn == turn]
    return lines


def main():
    """Main simulation loop with a live dashboard and a JSON history at the end."""
    global logger
    args = parse_args()

    logger = set_level(args.log_level)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(exist_ok=True)

    config = SimulationConfig(
        months=args.months,
        difficulty=args.difficulty,
        fiscal_rule=args.fiscal_rule,
        advisers=tuple(args.adviser),
        manifesto=args.manifesto,
        seed=args.seed,
        output_dir=output_dir,
    )

    console.print(f"[bold green]Starting a {args.months}-month chancellorship ({args.difficulty}, "
                  f"{args.fiscal_rule})...[/bold green]")
    sim = Simulation(config)

    budget = budget_from_args(args)
    if budget["rates"] or budget["current"]:
        sim.state = apply_budget(sim.state, rates=budget["rates"], current=budget["current"])
        logger.info(f"Scenario budget applied: rates {budget['rates']}, spending {budget['current']}")

    recent_events: List[str] = []

    if args.no_live:
        def record(state: GameState):
            recent_events.extend(new_headlines(state))
        sim.run(on_turn=record)
        console.print(indicator_table(sim.state))
    else:
        with Live(console=console, refresh_per_second=4) as live:
            def refresh(state: GameState):
                recent_events.extend(new_headlines(state))
                del recent_events[:-20]
                live.update(create_dashboard(state, args.months, recent_events))
            sim.run(on_turn=refresh)

    state = sim.state
    history_file = output_dir / "history.json"
    with open(history_file, 'w') as f:
        json.dump({
            "config": {"months": args.months, "difficulty": args.difficulty, "fiscal_rule": args.fiscal_rule,
                       "advisers": sorted(state.advisers), "manifesto": args.manifesto, "seed": args.seed},
            "game_over": state.metadata.game_over,
            "game_over_reason": state.metadata.game_over_reason,
            "history": [asdict(s) for s in state.history],
        }, f, indent=2, cls=NumpyEncoder)
    console.print(f"[bold green]Simulation history saved to {history_file}[/bold green]")

    if state.metadata.game_over:
        console.print(f"[bold red]Game over after {state.metadata.turn} months: "
                      f"{state.metadata.game_over_reason}[/bold red]")
    else:
        console.print("[bold blue]Simulation complete![/bold blue]")


if __name__ == "__main__":
    main()
