"""FlightSurety CLI — command-line interface for the ledger.

State lives in ``<data>/events.jsonl`` and is rebuilt by replay on every
invocation.

Usage:
    python -m flightsurety.cli deploy --owner airline_1
    python -m flightsurety.cli register-airline --candidate airline_2 --caller airline_1
    python -m flightsurety.cli fund --airline airline_5 --value 10
    python -m flightsurety.cli buy --flight XY1 --passenger alice --amount 1
    python -m flightsurety.cli credit-insurees --flight XY1
    python -m flightsurety.cli withdraw --insuree alice
    python -m flightsurety.cli status
    python -m flightsurety.cli check-params
"""

from __future__ import annotations

import argparse
import json
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

from flightsurety.params import LedgerParams
from flightsurety.persistence.event_log import EventLog
from flightsurety.service import FlightSuretyService, ServiceResult
from flightsurety.underwriting.settlement_rail import InMemorySettlementRail


DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config"
DEFAULT_DATA = Path(__file__).resolve().parents[2] / "data"
EVENTS_FILENAME = "events.jsonl"


def _open_log(data_dir: Path) -> EventLog:
    data_dir.mkdir(parents=True, exist_ok=True)
    return EventLog(storage_path=data_dir / EVENTS_FILENAME)


def _load_service(
    args: argparse.Namespace,
) -> tuple[Optional[FlightSuretyService], InMemorySettlementRail]:
    """Rebuild the service from the data directory, or None if not deployed."""
    rail = InMemorySettlementRail()
    log = _open_log(args.data)
    if log.count == 0:
        return None, rail
    service = FlightSuretyService.restore(log, rail=rail, gateway=args.gateway)
    return service, rail


def _parse_amount(raw: str) -> Decimal:
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"Not a decimal amount: {raw}")
    if not amount.is_finite():
        raise argparse.ArgumentTypeError(f"Not a finite amount: {raw}")
    return amount


def _report(result: ServiceResult, rail: InMemorySettlementRail) -> int:
    if result.success:
        data = dict(result.data)
        if rail.transfers:
            data["transfers"] = [
                {"recipient": t.recipient, "amount": t.amount, "memo": t.memo}
                for t in rail.transfers
            ]
        print(json.dumps(data, indent=2, default=str))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def _not_deployed() -> int:
    print("Failed: no ledger deployed, run 'deploy' first", file=sys.stderr)
    return 1


def cmd_deploy(args: argparse.Namespace) -> int:
    log = _open_log(args.data)
    if log.count > 0:
        print("Failed: ledger already deployed", file=sys.stderr)
        return 1
    try:
        params = LedgerParams.from_config_dir(args.config)
    except (OSError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    errors = params.validate()
    if errors:
        print(f"Failed: {'; '.join(errors)}", file=sys.stderr)
        return 1
    service = FlightSuretyService.deploy(args.owner, params=params, event_log=log)
    print(f"Deployed ledger owned by {service.ledger.owner}")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    service, _ = _load_service(args)
    if service is None:
        print(json.dumps({"deployed": False}, indent=2))
        return 0
    print(json.dumps(service.status(), indent=2, default=str))
    return 0


def cmd_register_airline(args: argparse.Namespace) -> int:
    service, rail = _load_service(args)
    if service is None:
        return _not_deployed()
    return _report(service.register_airline(args.candidate, args.caller), rail)


def cmd_fund(args: argparse.Namespace) -> int:
    service, rail = _load_service(args)
    if service is None:
        return _not_deployed()
    return _report(service.fund(args.airline, args.value), rail)


def cmd_buy(args: argparse.Namespace) -> int:
    service, rail = _load_service(args)
    if service is None:
        return _not_deployed()
    return _report(service.buy(args.flight, args.passenger, args.amount), rail)


def cmd_credit_insurees(args: argparse.Namespace) -> int:
    service, rail = _load_service(args)
    if service is None:
        return _not_deployed()
    return _report(service.credit_insurees(args.flight), rail)


def cmd_withdraw(args: argparse.Namespace) -> int:
    service, rail = _load_service(args)
    if service is None:
        return _not_deployed()
    return _report(service.withdraw(args.insuree), rail)


def cmd_set_operating_status(args: argparse.Namespace) -> int:
    service, rail = _load_service(args)
    if service is None:
        return _not_deployed()
    mode = args.mode == "on"
    return _report(service.set_operating_status(mode, args.caller), rail)


def cmd_authorize_caller(args: argparse.Namespace) -> int:
    service, rail = _load_service(args)
    if service is None:
        return _not_deployed()
    if args.revoke:
        result = service.deauthorize_caller(args.id, args.caller)
    else:
        result = service.authorize_caller(args.id, args.caller)
    return _report(result, rail)


def cmd_balance(args: argparse.Namespace) -> int:
    service, _ = _load_service(args)
    if service is None:
        return _not_deployed()
    balance = service.credit_balance(args.passenger)
    print(json.dumps({"passenger": args.passenger, "balance": str(balance)}, indent=2))
    return 0


def cmd_check_params(args: argparse.Namespace) -> int:
    """Validate the ledger parameter file."""
    try:
        params = LedgerParams.from_config_dir(args.config)
    except (OSError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    errors = params.validate()
    if errors:
        for error in errors:
            print(f"FAIL: {error}", file=sys.stderr)
        return 1
    print(json.dumps(params.to_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flightsurety",
        description="FlightSurety: flight-delay insurance ledger CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=DEFAULT_DATA,
        help="Path to data directory holding events.jsonl (default: data/)",
    )
    parser.add_argument(
        "--gateway",
        help="Gateway identity to check against the authorized-caller list",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show ledger status")

    p_deploy = sub.add_parser("deploy", help="Deploy a new ledger")
    p_deploy.add_argument("--owner", required=True, help="Owner / first airline")

    p_reg = sub.add_parser("register-airline", help="Register an airline")
    p_reg.add_argument("--candidate", required=True, help="Airline to admit")
    p_reg.add_argument("--caller", required=True, help="Sponsoring airline")

    p_fund = sub.add_parser("fund", help="Provide an airline's funding")
    p_fund.add_argument("--airline", required=True, help="Funding airline")
    p_fund.add_argument("--value", required=True, type=_parse_amount, help="Payment (Decimal)")

    p_buy = sub.add_parser("buy", help="Buy flight-delay insurance")
    p_buy.add_argument("--flight", required=True, help="Flight identifier")
    p_buy.add_argument("--passenger", required=True, help="Insured passenger")
    p_buy.add_argument("--amount", required=True, type=_parse_amount, help="Premium (Decimal)")

    p_credit = sub.add_parser("credit-insurees", help="Credit insurees of a delayed flight")
    p_credit.add_argument("--flight", required=True, help="Flight identifier")

    p_wd = sub.add_parser("withdraw", help="Withdraw a passenger's credit")
    p_wd.add_argument("--insuree", required=True, help="Passenger")

    p_op = sub.add_parser("set-operating-status", help="Toggle the operational gate")
    p_op.add_argument("--mode", required=True, choices=["on", "off"])
    p_op.add_argument("--caller", required=True, help="Owner identity")

    p_auth = sub.add_parser("authorize-caller", help="Grant or revoke gateway access")
    p_auth.add_argument("--id", required=True, help="Gateway identity")
    p_auth.add_argument("--caller", required=True, help="Owner identity")
    p_auth.add_argument("--revoke", action="store_true", help="Revoke instead of grant")

    p_bal = sub.add_parser("balance", help="Show a passenger's credit balance")
    p_bal.add_argument("--passenger", required=True, help="Passenger")

    sub.add_parser("check-params", help="Validate ledger parameters")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "deploy": cmd_deploy,
        "register-airline": cmd_register_airline,
        "fund": cmd_fund,
        "buy": cmd_buy,
        "credit-insurees": cmd_credit_insurees,
        "withdraw": cmd_withdraw,
        "set-operating-status": cmd_set_operating_status,
        "authorize-caller": cmd_authorize_caller,
        "balance": cmd_balance,
        "check-params": cmd_check_params,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
