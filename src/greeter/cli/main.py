#!/usr/bin/env python3
"""
Greeter CLI - client-side helpers for the greeting program

Provides off-line tooling around the program's wire format:
- Derive a greeting record's address
- Encode and decode instructions and records
- Report record space and rent
- Simulate create/update against a local runtime
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, Optional, Tuple

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from greeter.core.accounts import parse_identity
from greeter.core.address_derivation import derive_greeting_address
from greeter.core.config import ProgramConfig
from greeter.core.instructions import CreateGreeting, SetGreeting, create_greeting, set_greeting
from greeter.core.keypair import Keypair
from greeter.core.logging_config import setup_logging_from_config
from greeter.core.program_exceptions import ErrorCode, ProgramError
from greeter.core.runtime import LocalRuntime, Rent, Transaction
from greeter.core.serialization import (
    decode_instruction,
    decode_record,
    encode_instruction,
)
from greeter.core.state import max_space

logger = logging.getLogger(__name__)
console = Console()


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _parse_hex_bytes(value: str) -> bytes:
    text = value.strip()
    if text.lower().startswith("0x"):
        text = text[2:]
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise click.BadParameter(f"not valid hex: {value}")


def _identity_option(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[bytes]:
    if value is None:
        return None
    try:
        return parse_identity(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def _emit(ctx: click.Context, payload: Dict[str, Any], title: str) -> None:
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(payload, indent=2))
        return
    table = Table(show_header=False, box=box.ROUNDED, title=title)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in payload.items():
        table.add_row(key, str(value))
    console.print(table)


def _instruction_payload(data: bytes) -> Dict[str, Any]:
    instruction = decode_instruction(data)
    if isinstance(instruction, CreateGreeting):
        return {"instruction": "CreateGreeting", "name": instruction.name, "message": instruction.message}
    return {"instruction": "SetGreeting", "message": instruction.message}


@click.group()
@click.option("--json-output", is_flag=True, help="Output raw JSON")
@click.pass_context
def cli(ctx: click.Context, json_output: bool):
    """Greeter CLI - tools for the greeting program."""
    ctx.ensure_object(dict)
    try:
        config = ProgramConfig.from_env()
    except ProgramError as exc:
        _cli_fail(exc)
    setup_logging_from_config(config)
    ctx.obj["config"] = config
    ctx.obj["json_output"] = json_output


@cli.command("derive-address")
@click.option("--payer", required=True, callback=_identity_option, help="Payer identity (hex)")
@click.option("--name", required=True, help="Greeting name")
@click.option("--program-id", callback=_identity_option, help="Program id (hex), defaults to GREETER_PROGRAM_ID")
@click.pass_context
def derive_address(ctx: click.Context, payer: bytes, name: str, program_id: Optional[bytes]):
    """
    Compute the address a CreateGreeting must target.

    Example:
        greeter derive-address --payer 3b6a27bc... --name hello
    """
    program_id = program_id or ctx.obj["config"].program_id
    try:
        address, bump = derive_greeting_address(program_id, payer, name)
    except ProgramError as exc:
        _cli_fail(exc)
    _emit(
        ctx,
        {"program_id": program_id.hex(), "address": address.hex(), "bump": bump},
        "Greeting Address",
    )


@cli.command("encode-create")
@click.option("--name", required=True, help="Greeting name")
@click.option("--message", required=True, help="Initial message")
def encode_create(name: str, message: str):
    """Print CreateGreeting instruction data as hex."""
    click.echo(encode_instruction(CreateGreeting(name=name, message=message)).hex())


@cli.command("encode-set")
@click.option("--message", required=True, help="New message")
def encode_set(message: str):
    """Print SetGreeting instruction data as hex."""
    click.echo(encode_instruction(SetGreeting(message=message)).hex())


@cli.command("decode-instruction")
@click.argument("data")
@click.pass_context
def decode_instruction_cmd(ctx: click.Context, data: str):
    """Decode hex instruction data."""
    try:
        payload = _instruction_payload(_parse_hex_bytes(data))
    except ProgramError as exc:
        _cli_fail(exc)
    _emit(ctx, payload, "Instruction")


@cli.command("decode-record")
@click.argument("data")
@click.pass_context
def decode_record_cmd(ctx: click.Context, data: str):
    """Decode hex account data holding a greeting record."""
    try:
        record = decode_record(_parse_hex_bytes(data))
    except ProgramError as exc:
        _cli_fail(exc)
    _emit(ctx, record.to_dict(), "Greeting Record")


@cli.command("space")
@click.pass_context
def space(ctx: click.Context):
    """Show record space and the rent-exempt balance it needs."""
    config: ProgramConfig = ctx.obj["config"]
    rent = Rent(config.lamports_per_byte_year, config.exemption_threshold_years)
    _emit(
        ctx,
        {"max_space": max_space(), "rent_exempt_minimum": rent.minimum_balance(max_space())},
        "Record Space",
    )


def _run(runtime: LocalRuntime, instruction, signer: Keypair) -> Tuple[bool, str]:
    result = runtime.process_transaction(Transaction.signed([instruction], [signer]))
    return result.success, ErrorCode(result.code).name


@cli.command("simulate")
@click.option("--name", required=True, help="Greeting name")
@click.option("--message", required=True, help="Initial message")
@click.option("--update", "updates", multiple=True, help="Follow-up message (repeatable)")
@click.option("--lamports", default=1_000_000_000, type=click.IntRange(min=0), help="Payer starting balance")
@click.pass_context
def simulate(ctx: click.Context, name: str, message: str, updates: Tuple[str, ...], lamports: int):
    """
    Create a greeting and apply updates on an in-memory ledger.

    Example:
        greeter simulate --name hello --message "hi" --update "hi again"
    """
    config: ProgramConfig = ctx.obj["config"]
    runtime = LocalRuntime(config)
    payer = Keypair.generate()
    runtime.airdrop(payer.pubkey, lamports)

    create_ix = create_greeting(config.program_id, payer.pubkey, name, message)
    address = create_ix.accounts[1].pubkey
    steps = [("CreateGreeting", *_run(runtime, create_ix, payer))]
    for new_message in updates:
        set_ix = set_greeting(config.program_id, payer.pubkey, address, new_message)
        steps.append(("SetGreeting", *_run(runtime, set_ix, payer)))

    record = runtime.get_greeting(address)
    if ctx.obj.get("json_output"):
        click.echo(
            json.dumps(
                {
                    "address": address.hex(),
                    "steps": [{"instruction": s[0], "success": s[1], "result": s[2]} for s in steps],
                    "record": record.to_dict() if record else None,
                },
                indent=2,
            )
        )
    else:
        table = Table(title="Simulation", box=box.SIMPLE)
        table.add_column("Instruction", style="cyan")
        table.add_column("Result")
        for instruction_name, ok, result in steps:
            style = "green" if ok else "red"
            table.add_row(instruction_name, f"[{style}]{result}[/]")
        console.print(table)
        if record:
            console.print(Panel.fit(json.dumps(record.to_dict(), indent=2), title=address.hex()))

    if not all(ok for _, ok, _ in steps):
        sys.exit(1)


def main():
    """Main CLI entry point"""
    return cli(obj={})


if __name__ == "__main__":
    sys.exit(main() or 0)
