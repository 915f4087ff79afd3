import argparse
import logging
import sys
import time
from pathlib import Path

from . import config
from .core import TidyDeskApp
from .exceptions import PartialFailureError, TidyDeskError
from .formatting import format_size
from .models import Condition, MergeOptions, MergeStrategy, OrganizeOptions, RenameStep, Rule


def setup_logging(data_dir: Path, verbose: bool):
    """Sets up logging to both console and a file in the data directory."""
    log_level = logging.DEBUG if verbose else logging.INFO

    data_dir.mkdir(parents=True, exist_ok=True)
    log_file = data_dir / config.LOG_FILENAME

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Silence chatty libraries
    logging.getLogger("watchdog").setLevel(logging.WARNING)


def parse_condition(text: str) -> Condition:
    """`field:operator:value`, e.g. `extension:equals:.pdf`."""
    parts = text.split(":", 2)
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(f"Expected field:operator:value, got {text!r}")
    return Condition(field=parts[0], operator=parts[1], value=parts[2])


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="tidydesk", description="TidyDesk: classify, deduplicate and organize folders")
    p.add_argument("--data-dir", type=Path, default=config.DATA_DIR, help="Directory for the database and log")
    p.add_argument("--db", type=Path, default=None, help="Custom path for SQLite DB (default: data-dir/tidydesk.db)")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("scan", help="List a folder")
    s.add_argument("root", type=Path)
    s.add_argument("-r", "--recursive", action="store_true")
    s.add_argument("--hidden", action="store_true", help="Include hidden entries")

    s = sub.add_parser("stats", help="Folder statistics")
    s.add_argument("root", type=Path)

    s = sub.add_parser("duplicates", help="Find duplicate files")
    s.add_argument("root", type=Path)

    s = sub.add_parser("empty", help="Find empty folders")
    s.add_argument("root", type=Path)

    s = sub.add_parser("large", help="Find large files")
    s.add_argument("root", type=Path)
    s.add_argument("--threshold-mb", type=int, default=100)

    s = sub.add_parser("tree", help="Folder size tree")
    s.add_argument("root", type=Path)
    s.add_argument("--depth", type=int, default=2)

    s = sub.add_parser("compare", help="Compare two folders")
    s.add_argument("source", type=Path)
    s.add_argument("target", type=Path)

    s = sub.add_parser("merge", help="Merge source folder into target")
    s.add_argument("source", type=Path)
    s.add_argument("target", type=Path)
    s.add_argument("--strategy", choices=[m.value for m in MergeStrategy], default=MergeStrategy.SKIP_EXISTING.value)
    s.add_argument("--include-different", action="store_true")
    s.add_argument("--delete-source", action="store_true")

    s = sub.add_parser("organize", help="Organize a folder with rules")
    s.add_argument("root", type=Path)
    s.add_argument("--run", action="store_true", help="Execute instead of previewing")
    s.add_argument("--by-category", action="store_true", help="Plain category sort without rules")
    s.add_argument("--exclude", action="append", default=[], help="Destination folder to leave alone")
    s.add_argument("--on-conflict", choices=["rename", "overwrite", "skip"], default="rename")
    s.add_argument("--date-subfolders", action="store_true")
    s.add_argument("--date-format", default=None)

    s = sub.add_parser("rules", help="Manage custom rules")
    rsub = s.add_subparsers(dest="rules_command", required=True)
    rsub.add_parser("list")
    r = rsub.add_parser("add")
    r.add_argument("name")
    r.add_argument("--if", dest="conditions", action="append", type=parse_condition, required=True,
                   help="field:operator:value (repeatable)")
    r.add_argument("--any", action="store_true", help="Match if any condition holds (default: all)")
    r.add_argument("--action", choices=["move", "copy", "rename", "delete"], default="move")
    r.add_argument("--dest", default=None)
    r.add_argument("--pattern", default=None, help="Rename pattern with {name} {ext} {date} {category}")
    r.add_argument("--date-subfolder", action="store_true")
    r.add_argument("--priority", type=int, default=0)
    r = rsub.add_parser("delete")
    r.add_argument("rule_id", type=int)
    for name in ("enable", "disable"):
        r = rsub.add_parser(name)
        r.add_argument("rule_id", type=int)
    r = rsub.add_parser("preview")
    r.add_argument("root", type=Path)
    r = rsub.add_parser("run")
    r.add_argument("root", type=Path)

    s = sub.add_parser("history", help="Show or undo past operations")
    hsub = s.add_subparsers(dest="history_command", required=True)
    h = hsub.add_parser("list")
    h.add_argument("--limit", type=int, default=20)
    h.add_argument("--offset", type=int, default=0)
    h = hsub.add_parser("undo")
    h.add_argument("history_id", type=int)
    hsub.add_parser("clear")

    for name in ("mv", "cp"):
        s = sub.add_parser(name, help=f"{'Move' if name == 'mv' else 'Copy'} a file")
        s.add_argument("source", type=Path)
        s.add_argument("dest", type=Path)
        s.add_argument("--on-conflict", choices=["rename", "overwrite", "skip"], default="rename")

    s = sub.add_parser("rename", help="Rename a file, or batch-rename with steps")
    s.add_argument("paths", type=Path, nargs="+")
    s.add_argument("--to", dest="new_name", default=None, help="New name for a single file")
    s.add_argument("--prefix", default=None)
    s.add_argument("--suffix", default=None)
    s.add_argument("--replace", nargs=2, metavar=("FIND", "REPLACE"), default=None)
    s.add_argument("--sequence", type=int, default=None, metavar="START")
    s.add_argument("--digits", type=int, default=3)
    s.add_argument("--case", choices=["upper", "lower", "title"], default=None)
    s.add_argument("--dry-run", action="store_true")

    s = sub.add_parser("rm", help="Delete a file (to trash by default)")
    s.add_argument("path", type=Path)
    s.add_argument("--permanent", action="store_true")

    s = sub.add_parser("mkdir", help="Create a folder")
    s.add_argument("path", type=Path)

    s = sub.add_parser("backup", help="Snapshot a folder")
    s.add_argument("source", type=Path)
    s.add_argument("--backup-root", type=Path, default=None)

    s = sub.add_parser("backups", help="List snapshots")
    s.add_argument("--backup-root", type=Path, default=None)
    s.add_argument("--delete", type=Path, default=None, help="Delete this snapshot")

    s = sub.add_parser("restore", help="Restore a snapshot")
    s.add_argument("backup_path", type=Path)
    s.add_argument("--to", dest="destination", type=Path, default=None)

    s = sub.add_parser("settings", help="Show or change settings")
    s.add_argument("--set", nargs=2, action="append", metavar=("KEY", "VALUE"), default=[])

    s = sub.add_parser("watch", help="Print file changes in a folder until interrupted")
    s.add_argument("path", type=Path)

    return p


def print_errors(errors):
    for err in errors:
        print(f"  ! {err}")


def rename_steps(args) -> list:
    steps = []
    if args.replace:
        steps.append(RenameStep("findReplace", find_text=args.replace[0], replace_text=args.replace[1]))
    if args.prefix:
        steps.append(RenameStep("prefix", prefix=args.prefix))
    if args.suffix:
        steps.append(RenameStep("suffix", suffix=args.suffix))
    if args.case:
        steps.append(RenameStep("case", case_type=args.case))
    if args.sequence is not None:
        steps.append(RenameStep("sequence", start_number=args.sequence, digit_count=args.digits))
    return steps


def run(app: TidyDeskApp, args) -> int:
    cmd = args.command

    if cmd == "scan":
        for rec in app.list_files(args.root, recursive=args.recursive, include_hidden=args.hidden):
            kind = "<DIR>" if rec.is_directory else rec.size_formatted
            print(f"{rec.modified_at}  {kind:>10}  {rec.category.value:<10}  {rec.name}")

    elif cmd == "stats":
        stats = app.analyze_folder(args.root)
        print(f"{stats.path}: {stats.file_count} files, {stats.folder_count} folders, {format_size(stats.total_size)}")
        if stats.largest_file:
            print(f"Largest: {stats.largest_file.path} ({stats.largest_file.size_formatted})")
        for category, cat in sorted(stats.category_breakdown.items(), key=lambda kv: -kv[1].total_size):
            print(f"  {category:<12} {cat.count:>6}  {format_size(cat.total_size)}")

    elif cmd == "duplicates":
        groups = app.find_duplicates(args.root)
        for g in groups:
            print(f"[{g.fingerprint}] {len(g.files)} x {g.size_formatted} (wasted {format_size(g.wasted_space)})")
            for rec in g.files:
                print(f"    {rec.path}")
        print(f"{len(groups)} duplicate groups")

    elif cmd == "empty":
        for folder in app.find_empty_folders(args.root):
            print(folder)

    elif cmd == "large":
        for rec in app.find_large_files(args.root, args.threshold_mb):
            print(f"{rec.size_formatted:>10}  {rec.path}")

    elif cmd == "tree":
        def show(node, indent=0):
            print(f"{'  ' * indent}{node.name or node.path}  {node.size_formatted}  ({node.file_count} files)")
            for child in node.children:
                show(child, indent + 1)
        show(app.get_folder_tree(args.root, args.depth))

    elif cmd == "compare":
        summary = app.compare_folders(args.source, args.target)
        for entry in summary.results:
            print(f"{entry.status.value:<15} {entry.size_diff:>+12}  {entry.relative_path}")
        print(f"identical={summary.identical} different={summary.different} "
              f"only_in_source={summary.only_in_source} only_in_target={summary.only_in_target}")

    elif cmd == "merge":
        options = MergeOptions(
            strategy=MergeStrategy(args.strategy),
            delete_source_after=args.delete_source,
            include_different=args.include_different,
        )
        result = app.merge_folders(args.source, args.target, options)
        print(f"copied={result.files_copied} overwritten={result.files_overwritten} "
              f"skipped={result.files_skipped} bytes={format_size(result.bytes_transferred)}")
        print_errors(result.errors)
        return 0 if result.success else 1

    elif cmd == "organize":
        return run_organize(app, args)

    elif cmd == "rules":
        return run_rules(app, args)

    elif cmd == "history":
        if args.history_command == "list":
            for entry in app.get_history(args.limit, args.offset):
                flag = "undone" if entry.is_undone else ""
                print(f"#{entry.id:<5} {entry.created_at}  {entry.operation_type:<8} {entry.description}  {flag}")
        elif args.history_command == "undo":
            result = app.undo(args.history_id)
            print(f"Restored {result.restored_count} item(s)")
            print_errors(result.errors)
            return 0 if result.success else 1
        else:
            print(f"Cleared {app.clear_history()} entries")

    elif cmd in ("mv", "cp"):
        op = app.move if cmd == "mv" else app.copy
        print(op(args.source, args.dest, args.on_conflict))

    elif cmd == "rename":
        if args.new_name:
            if len(args.paths) != 1:
                raise TidyDeskError("--to renames exactly one file", operation="rename")
            print(app.rename(args.paths[0], args.new_name))
            return 0
        steps = rename_steps(args)
        if args.dry_run:
            for p in app.preview_rename(args.paths, steps):
                mark = f"  ({p.conflict_message})" if p.has_conflict else ""
                print(f"{p.original_name} -> {p.new_name}{mark}")
            return 0
        result = app.execute_rename(args.paths, steps)
        print(f"Renamed {result.renamed_count}, failed {result.failed_count}")
        print_errors(result.errors)
        return 0 if result.success else 1

    elif cmd == "rm":
        app.delete(args.path, to_trash=not args.permanent)

    elif cmd == "mkdir":
        print(app.create_folder(args.path))

    elif cmd == "backup":
        result = app.backup_directory(args.source, args.backup_root)
        print(f"{result.backup_path}: {result.files_count} files, {format_size(result.total_size)}")

    elif cmd == "backups":
        if args.delete:
            app.delete_backup(args.delete, args.backup_root)
            return 0
        for info in app.list_backups(args.backup_root):
            print(f"{info.created_at}  {format_size(info.size):>10}  {info.file_count:>6} files  {info.path}")

    elif cmd == "restore":
        print(f"Restored {app.restore_backup(args.backup_path, args.destination)} files")

    elif cmd == "settings":
        if args.set:
            app.update_settings(dict(args.set))
        for key, value in vars(app.settings()).items():
            print(f"{key} = {value}")

    elif cmd == "watch":
        app.start_watching(args.path, lambda ev: print(f"{ev.event_type:<7} {' -> '.join(ev.paths)}"))
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            pass
        finally:
            app.stop_watching()

    return 0


def run_organize(app: TidyDeskApp, args) -> int:
    if args.by_category:
        if not args.run:
            for p in app.preview_organization(args.root):
                print(f"{p.category_label} ({p.category.value}) -> {p.destination_folder}: {p.file_count} files")
                for rec in p.files:
                    print(f"    {rec.name}")
            return 0
        options = OrganizeOptions(
            create_date_subfolders=args.date_subfolders,
            date_format=args.date_format or app.settings().default_date_format,
            handle_duplicates=args.on_conflict,
        )
        result = app.execute_organization(args.root, options)
    else:
        exclusions = args.exclude + [e.pattern for e in app.list_exclusions() if e.pattern_type == "folder"]
        if not args.run:
            for entry in app.preview_unified(args.root, exclusions):
                source = entry.rule.name if entry.rule else entry.default_rule.category.value
                print(f"[{entry.match_type}:{source}] {entry.action_type} {entry.file.name} -> {entry.destination or ''}")
            return 0
        result = app.execute_unified(args.root, exclusions, args.on_conflict)

    print(f"moved={result.files_moved} skipped={result.files_skipped} history=#{result.history_id}")
    print_errors(result.errors)
    return 0 if result.success else 1


def run_rules(app: TidyDeskApp, args) -> int:
    sub = args.rules_command
    if sub == "list":
        for rule in app.list_rules():
            state = "on " if rule.enabled else "off"
            conds = f" {rule.condition_logic} ".join(f"{c.field} {c.operator} {c.value!r}" for c in rule.conditions)
            print(f"#{rule.id:<4} [{state}] p={rule.priority:<3} {rule.name}: if {conds} then {rule.action_type} "
                  f"{rule.action_destination or rule.action_rename_pattern or ''}")
    elif sub == "add":
        rule = app.save_rule(Rule(
            name=args.name,
            conditions=args.conditions,
            condition_logic="OR" if args.any else "AND",
            action_type=args.action,
            action_destination=args.dest,
            action_rename_pattern=args.pattern,
            create_date_subfolder=args.date_subfolder,
            priority=args.priority,
        ))
        print(f"Saved rule #{rule.id}")
    elif sub == "delete":
        app.delete_rule(args.rule_id)
    elif sub in ("enable", "disable"):
        app.set_rule_enabled(args.rule_id, sub == "enable")
    elif sub == "preview":
        for m in app.preview_rules(args.root):
            print(f"[{m.rule.name}] {m.action_preview}")
    elif sub == "run":
        result = app.execute_rules(args.root)
        print(f"executed={result.executed_count} skipped={result.skipped_count}")
        print_errors(result.errors)
        return 0 if result.success else 1
    return 0


def main(argv=None):
    args = build_parser().parse_args(argv)

    data_dir = args.data_dir.expanduser().resolve()
    setup_logging(data_dir, args.verbose)
    db_path = args.db if args.db else data_dir / config.DB_FILENAME

    app = TidyDeskApp(db_path)
    try:
        code = run(app, args)
    except PartialFailureError as e:
        logging.error(str(e))
        print_errors(e.errors)
        code = 1
    except TidyDeskError as e:
        logging.error(str(e))
        code = 1
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
