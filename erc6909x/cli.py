"""
erc6909x - command-line helpers for ERC-6909X signed approvals.

Commands:
  typehash       Print the EIP-712 type string and type hash of the payload
  interface-id   Print the ERC-165 interface id and callback acknowledgment
  digest         Compute the EIP-712 digest of an approval payload
  sign           Sign an approval payload with a secp256k1 private key
  nonce          Draw a random 256-bit nonce
  config         Show the resolved engine configuration
  version        Show the package version and VCS describe string

Global options:
  --json         Output JSON instead of human-readable text

Examples:
  erc6909x typehash
  erc6909x nonce
  erc6909x sign --contract 0x... --spender 0x... --id 3 --amount 100 \\
      --nonce 42 --deadline 1900000000 --temporary --target 0x... \\
      --private-key 0x...
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import typer
from eth_account import Account
from eth_utils import to_checksum_address

from .config import get_config, summary
from .interfaces import ERC6909X_INTERFACE_ID, TEMPORARY_APPROVE_ACK
from .nonces import random_nonce
from .typed_data import (
    APPROVE_AND_CALL_TYPE,
    APPROVE_AND_CALL_TYPEHASH,
    ZERO_ADDRESS,
    ApproveAndCall,
    domain_separator,
)
from .version import __version__, git_describe

app = typer.Typer(
    name="erc6909x",
    help="ERC-6909X temporary & by-signature approval tooling",
    no_args_is_help=True,
    add_completion=False,
)


class GlobalContext:
    def __init__(self) -> None:
        self.json_output: bool = False


_ctx = GlobalContext()


@app.callback()
def main_callback(
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    _ctx.json_output = json_output
    logging.basicConfig(level=get_config().log_level, format="%(levelname)s %(name)s: %(message)s")


def _emit(data: Dict[str, Any]) -> None:
    if _ctx.json_output:
        typer.echo(json.dumps(data, sort_keys=True))
        return
    for k, v in data.items():
        typer.echo(f"{k}: {v}")


def _parse_bytes(value: str) -> bytes:
    s = value[2:] if value.startswith(("0x", "0X")) else value
    try:
        return bytes.fromhex(s)
    except ValueError as exc:
        raise typer.BadParameter(f"not hex: {value!r}") from exc


def _parse_int(value: str) -> int:
    try:
        return int(value, 0)
    except ValueError as exc:
        raise typer.BadParameter(f"not an integer: {value!r}") from exc


def _build(
    *,
    temporary: bool,
    owner: str,
    spender: str,
    operator: bool,
    id: str,
    amount: str,
    target: Optional[str],
    data: str,
    nonce: str,
    deadline: int,
) -> ApproveAndCall:
    try:
        return ApproveAndCall(
            temporary=temporary,
            owner=owner,
            spender=spender,
            operator=operator,
            id=_parse_int(id),
            amount=_parse_int(amount),
            target=target if (temporary and target) else ZERO_ADDRESS,
            data=_parse_bytes(data) if temporary else b"",
            nonce=_parse_int(nonce),
            deadline=deadline,
        )
    except (TypeError, ValueError) as exc:
        raise typer.BadParameter(str(exc)) from exc


def _domain(name: Optional[str], version: Optional[str], chain_id: Optional[int], contract: str) -> bytes:
    cfg = get_config().domain
    try:
        return domain_separator(
            cfg.name if name is None else name,
            cfg.version if version is None else version,
            cfg.chain_id if chain_id is None else chain_id,
            contract,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command()
def typehash() -> None:
    """Print the payload type string and its keccak256 hash."""
    _emit({"type": APPROVE_AND_CALL_TYPE, "typehash": "0x" + APPROVE_AND_CALL_TYPEHASH.hex()})


@app.command("interface-id")
def interface_id() -> None:
    """Print the ERC-6909X interface id and the callback acknowledgment."""
    _emit(
        {
            "interface_id": "0x" + ERC6909X_INTERFACE_ID.hex(),
            "callback_ack": "0x" + TEMPORARY_APPROVE_ACK.hex(),
        }
    )


@app.command()
def nonce() -> None:
    """Draw a random 256-bit nonce."""
    n = random_nonce()
    _emit({"nonce": str(n), "hex": hex(n)})


@app.command("config")
def show_config() -> None:
    """Show the resolved engine configuration."""
    if _ctx.json_output:
        typer.echo(json.dumps(get_config().to_dict(), sort_keys=True))
    else:
        typer.echo(summary())


@app.command("version")
def show_version() -> None:
    """Show the package version and build describe string."""
    _emit({"version": __version__, "describe": git_describe()})


@app.command()
def digest(
    contract: str = typer.Option(..., "--contract", help="Token address (verifyingContract)"),
    owner: str = typer.Option(..., "--owner"),
    spender: str = typer.Option(..., "--spender"),
    id: str = typer.Option("0", "--id"),
    amount: str = typer.Option("0", "--amount"),
    nonce_: str = typer.Option(..., "--nonce"),
    deadline: int = typer.Option(..., "--deadline", help="Epoch seconds (uint48)"),
    temporary: bool = typer.Option(False, "--temporary/--permanent"),
    operator: bool = typer.Option(False, "--operator/--no-operator"),
    target: Optional[str] = typer.Option(None, "--target"),
    data: str = typer.Option("0x", "--data", help="Callback data (hex)"),
    name: Optional[str] = typer.Option(None, "--name", envvar="ERC6909X_NAME"),
    version: Optional[str] = typer.Option(None, "--version", envvar="ERC6909X_VERSION"),
    chain_id: Optional[int] = typer.Option(None, "--chain-id", envvar="ERC6909X_CHAIN_ID"),
) -> None:
    """Compute the EIP-712 digest of an approval payload."""
    payload = _build(
        temporary=temporary,
        owner=owner,
        spender=spender,
        operator=operator,
        id=id,
        amount=amount,
        target=target,
        data=data,
        nonce=nonce_,
        deadline=deadline,
    )
    ds = _domain(name, version, chain_id, contract)
    _emit(
        {
            "domain_separator": "0x" + ds.hex(),
            "struct_hash": "0x" + payload.struct_hash().hex(),
            "digest": "0x" + payload.digest(ds).hex(),
        }
    )


@app.command()
def sign(
    contract: str = typer.Option(..., "--contract", help="Token address (verifyingContract)"),
    spender: str = typer.Option(..., "--spender"),
    private_key: str = typer.Option(
        ..., "--private-key", envvar="ERC6909X_PRIVATE_KEY", help="Hex secp256k1 key"
    ),
    id: str = typer.Option("0", "--id"),
    amount: str = typer.Option("0", "--amount"),
    nonce_: Optional[str] = typer.Option(None, "--nonce", help="Random when omitted"),
    deadline: int = typer.Option(..., "--deadline", help="Epoch seconds (uint48)"),
    temporary: bool = typer.Option(False, "--temporary/--permanent"),
    operator: bool = typer.Option(False, "--operator/--no-operator"),
    target: Optional[str] = typer.Option(None, "--target"),
    data: str = typer.Option("0x", "--data", help="Callback data (hex)"),
    name: Optional[str] = typer.Option(None, "--name", envvar="ERC6909X_NAME"),
    version: Optional[str] = typer.Option(None, "--version", envvar="ERC6909X_VERSION"),
    chain_id: Optional[int] = typer.Option(None, "--chain-id", envvar="ERC6909X_CHAIN_ID"),
) -> None:
    """Sign an approval payload; the owner is the key's address."""
    try:
        acct = Account.from_key(private_key)
    except (ValueError, TypeError) as exc:
        raise typer.BadParameter("invalid private key") from exc
    payload = _build(
        temporary=temporary,
        owner=acct.address,
        spender=spender,
        operator=operator,
        id=id,
        amount=amount,
        target=target,
        data=data,
        nonce=str(random_nonce()) if nonce_ is None else nonce_,
        deadline=deadline,
    )
    ds = _domain(name, version, chain_id, contract)
    signed = Account.sign_message(payload.signable(ds), private_key=acct.key)
    _emit(
        {
            "owner": to_checksum_address(payload.owner),
            "nonce": str(payload.nonce),
            "deadline": payload.deadline,
            "digest": "0x" + payload.digest(ds).hex(),
            "signature": "0x" + bytes(signed.signature).hex(),
        }
    )


def main() -> None:  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
