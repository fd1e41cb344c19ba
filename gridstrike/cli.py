"""
GridStrike CLI - Command-line interface for the engine.

Usage:
    gridstrike serve [--host HOST] [--port PORT]   Run the HTTP API
    gridstrike resolve <state.json> <actions.json> Resolve one turn offline
    gridstrike demo                                Play a scripted opening

The actions file holds one action per side:
    {"host": {"pieceId": "host_0", "kind": "move", "destination": {"col": 0, "row": 5}},
     "guest": {"pieceId": "guest_0", "kind": "attack", "destination": {"col": 0, "row": 5}}}
"""

import argparse
import json
import logging
import sys


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="GridStrike - Simultaneous-turn tactical card game engine",
        prog="gridstrike",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    # Resolve command
    resolve_parser = subparsers.add_parser("resolve", help="Resolve one turn from files")
    resolve_parser.add_argument("state_file", help="Persisted board document (JSON)")
    resolve_parser.add_argument("actions_file", help="Actions keyed by side (JSON)")
    resolve_parser.add_argument("--viewer", choices=["host", "guest"],
                                help="Also print the board filtered for this side")

    # Demo command
    subparsers.add_parser("demo", help="Play a scripted opening on a fresh board")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "resolve":
        cmd_resolve(args)
    elif args.command == "demo":
        cmd_demo(args)
    else:
        parser.print_help()
        sys.exit(1)


def _load_json(path):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        print(f"Error: File not found: {path}")
        sys.exit(1)
    except json.JSONDecodeError as e:
        print(f"Error: {path} is not valid JSON: {e}")
        sys.exit(1)


def cmd_serve(args):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run("gridstrike.api.app:app", host=args.host, port=args.port)


def cmd_resolve(args):
    """Resolve one turn from a stored board and an action pair."""
    from .engine_core import Action, Side, decode_board, encode_board, filter_board, resolve_turn
    from .errors import GridStrikeError

    document = _load_json(args.state_file)
    actions = _load_json(args.actions_file)

    try:
        board = decode_board(document)
        result = resolve_turn(
            board,
            Action.from_dict(actions.get(Side.ATTACKER.value)),
            Action.from_dict(actions.get(Side.DEFENDER.value)),
        )
    except GridStrikeError as e:
        print(f"Error: {e}")
        sys.exit(1)

    output = result.to_dict()
    output["state"] = encode_board(result.final_board)
    if args.viewer:
        output["view"] = filter_board(result.final_board, Side(args.viewer)).to_dict()
    print(json.dumps(output, indent=2))


# (host action, guest action) per turn
DEMO_TURNS = [
    ({"pieceId": "host_0", "kind": "move", "destination": {"col": 0, "row": 5}},
     {"pieceId": "guest_0", "kind": "move", "destination": {"col": 0, "row": 1}}),
    ({"pieceId": "host_1", "kind": "placeTrap", "destination": {"col": 1, "row": 4}},
     {"pieceId": "guest_1", "kind": "move", "destination": {"col": 1, "row": 1}}),
    ({"pieceId": "host_0", "kind": "move", "destination": {"col": 0, "row": 4}},
     {"pieceId": "guest_1", "kind": "move", "destination": {"col": 1, "row": 2}}),
    ({"pieceId": "host_0", "kind": "move", "destination": {"col": 0, "row": 3}},
     {"pieceId": "guest_1", "kind": "move", "destination": {"col": 1, "row": 3}}),
    ({"pieceId": "host_0", "kind": "attack", "destination": {"col": 1, "row": 3}},
     {"pieceId": "guest_1", "kind": "move", "destination": {"col": 1, "row": 4}}),
]


def cmd_demo(args):
    """Play a scripted opening through a real match."""
    from .engine_core import Action
    from .session import MatchManager

    manager = MatchManager()
    match = manager.create_match("demo_host", "demo_guest")
    print(f"Match created: {match.match_id}")

    for host_payload, guest_payload in DEMO_TURNS:
        match.submit_action("demo_host", Action.from_dict(host_payload))
        result = match.submit_action("demo_guest", Action.from_dict(guest_payload))

        print(f"\nTurn {result.turn} (order: {', '.join(result.resolution.order)})")
        for command in result.resolution.animation_commands:
            print(f"  {json.dumps(command.to_dict())}")
        for piece_id, snap in result.resolution.snapshot().items():
            print(f"  {piece_id}: ({snap['col']},{snap['row']}) hp={snap['hp']} stealth={snap['stealth']}")

        if result.game_over:
            winner = result.winner.value if result.winner else "draw"
            print(f"\nGame over: {winner}")
            break

        match.notify_animation_complete("demo_host")
        match.notify_animation_complete("demo_guest")


if __name__ == "__main__":
    main()
