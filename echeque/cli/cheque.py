#!/usr/bin/env python3
"""
E-Cheque CLI

Off-ledger tooling for payers and payees: produces the redemption
authorizations and sign-over assertions the ledger consumes. Output is JSON.

Usage:
    echeque keygen [--mnemonic PHRASE]
    echeque cheque-id <text>
    echeque hash-cheque --cheque-id ID --payer ADDR --payee ADDR --amount N --ledger ADDR
    echeque sign-cheque --key KEY --cheque-id ID --payee ADDR --amount N --ledger ADDR
    echeque sign-over --key KEY --cheque-id ID --counter N --new-payee ADDR
    echeque recover <json_file>
"""

import json
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import click
from eth_account import Account
from eth_utils import to_wei

from ..cheques import (
    ChequeTerms,
    RedemptionAuthorization,
    SignOverAssertion,
    cheque_id_from_string,
    cheque_id_hex,
    normalize_cheque_id,
    redemption_hash,
    sign_cheque,
    sign_over,
    sign_over_hash,
)
from ..constants import LEDGER_VERSION
from ..crypto import PrivateKey, generate_keypair, recover_signer
from ..exceptions import EChequeError


def parse_cheque_id(value: str) -> bytes:
    """Accept a 0x-prefixed bytes32 or short text encoded like formatBytes32String."""
    if value.startswith("0x") and len(value) == 66:
        return normalize_cheque_id(value)
    return cheque_id_from_string(value)


def parse_amount(value: str, ether: bool) -> int:
    """Amount in wei, or in whole ether when *ether* is set."""
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise click.BadParameter(f"Not a number: {value}", param_hint="--amount")
    if ether:
        return int(to_wei(amount, "ether"))
    if amount != amount.to_integral_value():
        raise click.BadParameter("Wei amounts must be whole numbers", param_hint="--amount")
    return int(amount)


def load_key(key: str) -> PrivateKey:
    try:
        return PrivateKey.from_hex(key)
    except (EChequeError, ValueError) as e:
        raise click.ClickException(f"Invalid private key: {e}")


def echo_json(data: Dict[str, Any]) -> None:
    click.echo(json.dumps(data, indent=2))


@click.group()
@click.version_option(version=LEDGER_VERSION, prog_name="echeque")
def cli():
    """E-Cheque Command Line Interface

    Sign cheques and sign-overs off-ledger.
    """
    pass


@cli.command("keygen")
@click.option("--mnemonic", "-m", default=None, help="Derive the key from a BIP-39 mnemonic")
@click.option("--path", "account_path", default="m/44'/60'/0'/0/0", show_default=True, help="HD derivation path")
def keygen_cmd(mnemonic: Optional[str], account_path: str):
    """Generate a signing key.

    Examples:

        echeque keygen

        echeque keygen --mnemonic "word1 word2 ..."
    """
    if mnemonic:
        Account.enable_unaudited_hdwallet_features()
        try:
            account = Account.from_mnemonic(mnemonic, account_path=account_path)
        except Exception as e:
            raise click.ClickException(f"Failed to derive key: {e}")
        private_key = PrivateKey(bytes(account.key))
    else:
        private_key, _ = generate_keypair()

    echo_json({"address": private_key.address, "privateKey": private_key.to_hex()})


@cli.command("cheque-id")
@click.argument("text")
def cheque_id_cmd(text: str):
    """Encode short text (at most 31 bytes) as a bytes32 cheque id."""
    try:
        cheque_id = cheque_id_from_string(text)
    except EChequeError as e:
        raise click.ClickException(str(e))
    echo_json({"text": text, "chequeId": cheque_id_hex(cheque_id)})


@cli.command("hash-cheque")
@click.option("--cheque-id", "-c", required=True, help="bytes32 hex or short text")
@click.option("--payer", required=True, help="Payer address")
@click.option("--payee", required=True, help="Payee address")
@click.option("--amount", "-a", required=True, help="Amount in wei")
@click.option("--ether", is_flag=True, help="Read --amount in ether")
@click.option("--ledger", "-l", required=True, help="Ledger instance address")
@click.option("--valid-from", type=int, default=0, show_default=True)
@click.option("--valid-thru", type=int, default=0, show_default=True)
def hash_cheque_cmd(cheque_id, payer, payee, amount, ether, ledger, valid_from, valid_thru):
    """Print the redemption hash a payer signs."""
    try:
        terms = ChequeTerms(
            amount=parse_amount(amount, ether),
            cheque_id=parse_cheque_id(cheque_id),
            valid_from=valid_from,
            valid_thru=valid_thru,
            payee=payee,
            payer=payer,
            ledger=ledger,
        )
    except EChequeError as e:
        raise click.ClickException(str(e))

    echo_json({"cheque": terms.to_dict(), "hash": "0x" + redemption_hash(terms).hex()})


@cli.command("sign-cheque")
@click.option("--key", "-k", required=True, envvar="ECHEQUE_PRIVATE_KEY", help="Payer private key (hex)")
@click.option("--cheque-id", "-c", required=True, help="bytes32 hex or short text")
@click.option("--payee", required=True, help="Payee address")
@click.option("--amount", "-a", required=True, help="Amount in wei")
@click.option("--ether", is_flag=True, help="Read --amount in ether")
@click.option("--ledger", "-l", required=True, help="Ledger instance address")
@click.option("--valid-from", type=int, default=0, show_default=True)
@click.option("--valid-thru", type=int, default=0, show_default=True)
def sign_cheque_cmd(key, cheque_id, payee, amount, ether, ledger, valid_from, valid_thru):
    """Sign a redemption authorization as the payer.

    Examples:

        echeque sign-cheque -k 0x... -c invoice-42 --payee 0x... -a 1 --ether -l 0x...
    """
    private_key = load_key(key)
    try:
        authorization = sign_cheque(
            private_key,
            cheque_id=parse_cheque_id(cheque_id),
            payee=payee,
            amount=parse_amount(amount, ether),
            ledger=ledger,
            valid_from=valid_from,
            valid_thru=valid_thru,
        )
    except EChequeError as e:
        raise click.ClickException(str(e))

    echo_json(authorization.to_dict())


@cli.command("sign-over")
@click.option("--key", "-k", required=True, envvar="ECHEQUE_PRIVATE_KEY", help="Current holder private key (hex)")
@click.option("--cheque-id", "-c", required=True, help="bytes32 hex or short text")
@click.option("--counter", "-n", type=int, required=True, help="Position in the chain, starting at 1")
@click.option("--new-payee", required=True, help="Address receiving the cheque")
def sign_over_cmd(key, cheque_id, counter, new_payee):
    """Sign a cheque over to a new payee."""
    private_key = load_key(key)
    try:
        assertion = sign_over(
            private_key,
            cheque_id=parse_cheque_id(cheque_id),
            counter=counter,
            new_payee=new_payee,
        )
    except EChequeError as e:
        raise click.ClickException(str(e))

    echo_json(assertion.to_dict())


@cli.command("recover")
@click.argument("json_file", type=click.File("r"))
def recover_cmd(json_file):
    """Recover the signer of an authorization or sign-over JSON document.

    Pass "-" to read from stdin.
    """
    try:
        data = json.load(json_file)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON: {e}")

    try:
        if "cheque" in data:
            authorization = RedemptionAuthorization.from_dict(data)
            expected = authorization.terms.payer
            signer = recover_signer(redemption_hash(authorization.terms), authorization.signature)
            kind = "cheque"
        elif "signOver" in data:
            assertion = SignOverAssertion.from_dict(data)
            expected = assertion.terms.old_payee
            signer = recover_signer(sign_over_hash(assertion.terms), assertion.signature)
            kind = "signOver"
        else:
            raise click.ClickException("Document has neither a 'cheque' nor a 'signOver' entry")
    except (EChequeError, KeyError, ValueError) as e:
        raise click.ClickException(f"Malformed document: {e}")

    echo_json({"type": kind, "signer": signer, "expected": expected, "valid": signer == expected})


if __name__ == "__main__":
    cli()
