"""Handlers for 'campdex card' commands."""

from campdex.cli._common import error, find_project, id_or_die, load_index_or_die, make_engine, output_json, output_result
from campdex.models import parse_date


def _parse_fields(pairs: list[str], json_mode: bool) -> dict[str, str]:
    fields = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            error(f"Expected key=value, got '{pair}'", json_mode)
        fields[key.strip()] = value
    return fields


def card_patch(args) -> int:
    """Merge fields into an indexed card."""
    local = load_index_or_die(args.repo, args.json)
    project = find_project(local, args.project, args.json)
    card_id = id_or_die(args.card, "card id", args.json)
    fields = _parse_fields(args.field or [], args.json)
    if not fields:
        error("Nothing to patch (use --field key=value)", args.json)

    if not local.patch_card(project.id, card_id, **fields):
        error(f"Card {card_id} is not in the index for {project.name}", args.json)

    card = local.get_card(project.id, card_id)
    output_result(card.to_dict(), f"Patched {card.key}: {', '.join(sorted(fields))}", args.json)
    return 0


def card_add(args) -> int:
    """Create a card in a project and column found by name."""
    engine, _ = make_engine(args)
    due_on = None
    if args.due:
        try:
            due_on = parse_date(args.due)
        except ValueError:
            error(f"Invalid due date '{args.due}'", args.json)
    card = engine.quick_add(args.project, args.column, args.title, args.content, due_on=due_on)
    output_result(
        card.to_dict(),
        f"Created card {card.id} in {card.project_name} / {card.column_title}\n{card.url}",
        args.json,
    )
    return 0


def card_move(args) -> int:
    """Move one or more cards to a column."""
    engine, local = make_engine(args)
    project = find_project(local, args.project, args.json)
    column_id = id_or_die(args.column, "column id", args.json)
    card_ids = [id_or_die(c, "card id", args.json) for c in args.cards]
    outcomes = engine.batch_move(project.id, card_ids, column_id)

    if args.json:
        output_json([o.to_dict() for o in outcomes])
    else:
        for o in outcomes:
            mark = "ok" if o.success else "FAILED"
            print(f"{mark:<6} {o.card_id}  {o.card_title}  {o.detail}")
    return 0 if all(o.success for o in outcomes) else 1
