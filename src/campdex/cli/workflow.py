"""Handlers for 'campdex workflow' commands."""

from campdex.automation import WorkflowKind, WorkflowResult
from campdex.cli._common import error, find_project, format_counts, make_engine, output_json, output_result


def _print_result(result: WorkflowResult) -> None:
    print(f"{result.kind.value}: {result.message}")
    for o in result.outcomes:
        mark = "ok" if o.success else "FAILED"
        print(f"  {mark:<6} {o.action:<10} {o.card_id}  {o.card_title}  {o.detail}".rstrip())


def _rules(pairs: list[str] | None, json_mode: bool) -> dict[str, str] | None:
    if not pairs:
        return None
    rules = {}
    for pair in pairs:
        keyword, sep, role = pair.partition("=")
        if not sep or not keyword.strip() or not role.strip():
            error(f"Expected keyword=role, got '{pair}'", json_mode)
        rules[keyword.strip()] = role.strip()
    return rules


def workflow_run(args) -> int:
    """Run one named workflow on a project."""
    kind = WorkflowKind.parse(args.name)
    engine, local = make_engine(args)
    project = find_project(local, args.project, args.json)

    options: dict = {}
    if kind is WorkflowKind.AUTO_ASSIGN:
        options["rules"] = _rules(args.rule, args.json)
    elif kind is WorkflowKind.ESCALATE_OVERDUE:
        options["threshold_days"] = args.threshold
        if args.escalate_to is not None:
            options["escalate_to"] = args.escalate_to
    elif kind is WorkflowKind.BALANCE_WORKLOAD:
        options["max_cards"] = args.max_cards

    result = engine.run_workflow(kind, project.id, options)
    if args.json:
        output_json(result.to_dict())
    else:
        _print_result(result)
    return 0 if not result.failed else 1


def workflow_suite(args) -> int:
    """Run the standard set of workflows on a project."""
    engine, local = make_engine(args)
    project = find_project(local, args.project, args.json)
    results = engine.run_suite(
        project.id,
        auto_assign=not args.no_assign,
        move_completed=not args.no_move,
        escalate_overdue=not args.no_escalate,
        balance_workload=args.balance,
    )

    if args.json:
        output_json({kind.value: r.to_dict() for kind, r in results.items()})
    else:
        print(f"{project.name} ({project.id})")
        for result in results.values():
            _print_result(result)
    return 0 if not any(r.failed for r in results.values()) else 1


def workflow_analyze(args) -> int:
    """Report a project's health."""
    engine, local = make_engine(args)
    project = find_project(local, args.project, args.json)
    report = engine.analyze_project(project.id)

    if args.json:
        output_json(report.to_dict())
        return 0

    print(f"{project.name} ({project.id})")
    print(f"  Health score:    {report.health_score}/100")
    print(f"  Cards:           {report.total_cards} ({report.active} active, {report.completed} completed)")
    print(f"  Completion rate: {report.completion_rate}%")
    print(f"  Overdue:         {len(report.overdue)}")
    print(f"  Due within week: {len(report.due_soon)}")
    print(f"  Unassigned:      {len(report.unassigned)}")
    for card in report.overdue:
        print(f"    ! {card.id}  {card.title}  (due {card.due_on})")
    return 0


def workflow_recurring(args) -> int:
    """Create the next occurrence of a repeating task."""
    engine, local = make_engine(args)
    project = find_project(local, args.project, args.json)
    outcome = engine.create_recurring_task(
        project.id,
        args.title,
        schedule=args.schedule,
        column=args.column,
        content=args.content,
        assignee_role=args.assign_role,
    )
    if outcome.success:
        text = f"Created card {outcome.card_id}: {outcome.card_title}  {outcome.detail}"
    else:
        text = f"FAILED {outcome.card_title}: {outcome.detail}"
    output_result(outcome.to_dict(), text, args.json)
    return 0 if outcome.success else 1


def workflow_archive(args) -> int:
    """Archive projects whose cards are at least --threshold percent done."""
    engine, _ = make_engine(args)
    outcomes = engine.archive_completed_projects(args.threshold, dry_run=args.dry_run)
    failed = [o for o in outcomes if not o.archived and not args.dry_run]

    if args.json:
        output_json([o.to_dict() for o in outcomes])
        return 0 if not failed else 1

    if not outcomes:
        print(f"No active project is {args.threshold:g}% complete")
        return 0
    for o in outcomes:
        if args.dry_run:
            mark = "would"
        else:
            mark = "ok" if o.archived else "FAILED"
        print(f"  {mark:<6} {o.project_id}  {o.project_name}  {o.completion_rate}% of {o.total_cards}  {o.detail}")
    return 0 if not failed else 1


def workflow_portfolio(args) -> int:
    """Health report across several projects."""
    engine, local = make_engine(args)
    project_ids = [find_project(local, q, args.json).id for q in args.projects] if args.projects else None
    portfolio = engine.analyze_portfolio(project_ids)

    if args.json:
        output_json(portfolio.to_dict())
        return 0

    if not portfolio.projects:
        print("No projects to analyze")
        return 0
    print(f"Projects: {portfolio.total_projects}")
    print(f"Cards:    {portfolio.total_cards}")
    print(f"Overdue:  {portfolio.total_overdue}")
    print(f"Average health: {portfolio.average_health}/100")
    for report in sorted(portfolio.projects, key=lambda r: r.health_score):
        print(f"  {report.health_score:>3}  {report.project.name}  ({report.completion_rate}% done)")
    if portfolio.by_assignee:
        print("Open cards by assignee:")
        for line in format_counts(portfolio.by_assignee):
            print(line)
    if portfolio.skipped:
        print(f"Skipped: {', '.join(str(p) for p in portfolio.skipped)}")
    return 0
