"""
Interactive CLI for the bookstore RBAC layer.
Log in with a staff API key, then read and change data within your role's grants.

Commands:
    read <resource> [col,col,...] [where col=val ...]
    update <resource> col=val ... where col=val ...
    insert <resource> col=val ...
    schema
    quit
"""

import shlex
from typing import Dict, List, NamedTuple, Optional

from bookstore_rbac.config import MAX_PREVIEW_ROWS, RBAC_POLICY_PATH
from bookstore_rbac.database import init_engine, create_schema
from bookstore_rbac.errors import AccessDenied, ReferentialViolation
from bookstore_rbac.gateway import read, apply_update, insert_row
from bookstore_rbac.policy import describe_grants, load_policy_matrix
from bookstore_rbac.rbac import load_access_context


class Command(NamedTuple):
    verb: str
    resource: Optional[str]
    columns: List[str]
    values: Dict[str, str]
    predicate: Dict[str, str]


def _pairs(tokens: List[str]) -> Dict[str, str]:
    out = {}
    for tok in tokens:
        if "=" not in tok:
            raise ValueError(f"Expected col=value, got '{tok}'.")
        key, val = tok.split("=", 1)
        if not key:
            raise ValueError(f"Expected col=value, got '{tok}'.")
        out[key.strip()] = val
    return out


def parse_command(line: str) -> Command:
    """Parse one REPL line into a Command; raises ValueError on bad syntax."""
    tokens = shlex.split(line)
    if not tokens:
        raise ValueError("Empty command.")
    verb = tokens[0].lower()
    if verb in {"schema", "quit", "exit", "help"}:
        return Command(verb, None, [], {}, {})
    if verb not in {"read", "update", "insert"}:
        raise ValueError(f"Unknown command '{tokens[0]}'.")
    if len(tokens) < 2:
        raise ValueError(f"Usage: {verb} <resource> ...")

    resource = tokens[1].lower()
    rest = tokens[2:]
    lowered = [t.lower() for t in rest]
    if "where" in lowered:
        idx = lowered.index("where")
        head, where = rest[:idx], rest[idx + 1:]
    else:
        head, where = rest, []
    predicate = _pairs(where)

    if verb == "read":
        columns = [c.strip() for tok in head for c in tok.split(",") if c.strip()]
        return Command(verb, resource, columns, {}, predicate)

    if verb == "insert" and where:
        raise ValueError("insert does not take a where clause.")
    values = _pairs(head)
    if not values:
        raise ValueError(f"{verb} needs at least one col=value pair.")
    return Command(verb, resource, [], values, predicate)


def run_command(engine, matrix, ctx, cmd: Command) -> str:
    """Execute an authorized Command and return the text to print."""
    if cmd.verb == "schema":
        return describe_grants(matrix, ctx.role)
    if cmd.verb == "help":
        return __doc__.strip()

    if cmd.verb == "read":
        df = read(engine, matrix, ctx.role, cmd.resource, cmd.columns, cmd.predicate)
        if df.empty:
            return "(no rows returned)"
        shown = df.head(MAX_PREVIEW_ROWS).to_string(index=False)
        if len(df) > MAX_PREVIEW_ROWS:
            shown += f"\n... ({len(df)} rows, showing {MAX_PREVIEW_ROWS})"
        return shown

    if cmd.verb == "update":
        n = apply_update(engine, matrix, ctx.role, cmd.resource, cmd.values, cmd.predicate)
        return f"{n} row(s) updated."

    new_id = insert_row(engine, matrix, ctx.role, cmd.resource, cmd.values)
    return f"Inserted {cmd.resource} id={new_id}."


def main():
    print("=== Bookstore RBAC: staff console ===\n")

    engine = init_engine()
    create_schema(engine)
    matrix = load_policy_matrix(RBAC_POLICY_PATH)

    # ── Login ────────────────────────────────────────────────────────
    try:
        api_key = input("Enter access key (or 'quit'): ").strip()
    except (EOFError, KeyboardInterrupt):
        print("\nExiting.")
        return

    if not api_key or api_key.lower() in {"quit", "exit"}:
        print("Goodbye.")
        return

    try:
        ctx = load_access_context(engine, api_key)
    except ValueError as e:
        print("\n[ERROR] Login failed.")
        print("Details:", e)
        return

    print(f"\n[auth] Logged in as: {ctx.display_name} (role={ctx.role.value})")
    print("[auth] Grants:")
    print(describe_grants(matrix, ctx.role))

    # ── REPL ─────────────────────────────────────────────────────────
    while True:
        try:
            line = input("\nCommand (or 'help'): ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            break

        if not line:
            continue

        try:
            cmd = parse_command(line)
        except ValueError as e:
            print("[ERROR]", e)
            continue

        if cmd.verb in {"quit", "exit"}:
            print("Goodbye.")
            break

        try:
            print(run_command(engine, matrix, ctx, cmd))
        except AccessDenied as e:
            print("\n[DENIED]", e)
        except ReferentialViolation as e:
            print("\n[DB ERROR]", e)
        except ValueError as e:
            print("\n[ERROR]", e)
        except Exception as e:
            print("\n[DB ERROR] Database error while running the command.")
            print("Details:", e)


if __name__ == "__main__":
    main()
