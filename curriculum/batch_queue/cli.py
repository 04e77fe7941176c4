#!/usr/bin/env python3
"""
CLI for the curriculum queue.

Usage:
    python -m curriculum.batch_queue.cli add "Thermodynamics" "Entropy"
    python -m curriculum.batch_queue.cli list
    python -m curriculum.batch_queue.cli status
    python -m curriculum.batch_queue.cli approve 3f2a [--structure-file outline.md]
    python -m curriculum.batch_queue.cli reject 3f2a
    python -m curriculum.batch_queue.cli retry 3f2a
    python -m curriculum.batch_queue.cli reorder 3f2a 9c1d
    python -m curriculum.batch_queue.cli clear
    python -m curriculum.batch_queue.cli run [--auto-approve] [--per-item]

Ids may be given as any unique prefix (the list shows the first 8 chars).
list, status and show only read the snapshot; the editing commands refuse
to run while another process is running the queue.
"""

import argparse
import asyncio
import json
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from curriculum.config import QueueSettings, configure_logging

from .errors import QueueBusyError, QueueError
from .paths import snapshot_file
from .persistence import SnapshotStore
from .queue_service import QueueService
from .schemas import (
    GeneratedNote,
    ItemStatus,
    PhaseConfig,
    QueueItem,
    RunConfig,
    SchedulingMode,
)

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "anthropic"
DEFAULT_STRUCTURE_MODEL = "claude-haiku-4-5-20251001"
DEFAULT_CONTENT_MODEL = "claude-sonnet-4-5-20250929"


def _store(settings: QueueSettings) -> SnapshotStore:
    return SnapshotStore(snapshot_file(settings))


@contextmanager
def _editing(settings: QueueSettings) -> Iterator[tuple[QueueService, SnapshotStore]]:
    """Service seeded from the snapshot that saves every edit back to it.

    Holds the run lock so edits never race an active `run` in another
    process; exits with status 1 if one is active.
    """
    store = _store(settings)
    try:
        with store.run_lock():
            service = QueueService(persist=store.save, settings=settings)
            service.set_queue(store.load())
            yield service, store
    except QueueBusyError as e:
        print(f"Cannot edit the queue: {e}")
        sys.exit(1)


def _resolve_id(items: list[QueueItem], prefix: str) -> str:
    matches = [item["id"] for item in items if item["id"].startswith(prefix)]
    if not matches:
        print(f"No item matches id {prefix!r}")
        sys.exit(1)
    if len(matches) > 1:
        print(f"Id prefix {prefix!r} is ambiguous ({len(matches)} matches)")
        sys.exit(1)
    return matches[0]


def _status_of(item: QueueItem) -> str:
    return item.get("status") or ItemStatus.PENDING.value


def _format_item(index: int, item: QueueItem) -> str:
    line = f"{index:3d}. [{item['id'][:8]}] {_status_of(item):<18} {item['topic'][:60]}"
    if item.get("retry_count"):
        line += f"  (retries: {item['retry_count']})"
    if item.get("error_msg"):
        line += f"\n       ! {item['error_msg']}"
    return line


def cmd_add(args, settings: QueueSettings) -> None:
    """Append topics to the queue."""
    topics = [t.strip() for t in args.topics if t.strip()]
    if args.file:
        topics.extend(
            line.strip() for line in Path(args.file).read_text().splitlines() if line.strip()
        )
    if not topics:
        print("No topics given")
        sys.exit(1)

    with _editing(settings) as (service, _):
        service.set_queue([*service.snapshot(), *topics])
        print(f"Added {len(topics)} topics ({len(service.snapshot())} in queue)")


def cmd_list(args, settings: QueueSettings) -> None:
    """List queue items in pick order, exactly as saved."""
    items = _store(settings).load()
    if args.status:
        items = [i for i in items if _status_of(i) == args.status]

    if args.json:
        print(json.dumps(items, indent=2))
        return

    if not items:
        print("Queue is empty")
        return
    for index, item in enumerate(items, 1):
        print(_format_item(index, item))


def cmd_status(args, settings: QueueSettings) -> None:
    """Print counts by status."""
    items = _store(settings).load()
    counts: dict[str, int] = {}
    for item in items:
        counts[_status_of(item)] = counts.get(_status_of(item), 0) + 1

    print("=== QUEUE ===")
    print(f"  total: {len(items)}")
    for status_name, count in sorted(counts.items()):
        print(f"  {status_name}: {count}")


def cmd_show(args, settings: QueueSettings) -> None:
    """Show one item including its outline."""
    items = _store(settings).load()
    item_id = _resolve_id(items, args.id)
    item = next(i for i in items if i["id"] == item_id)
    print(f"[{item['id']}] {item['topic']}")
    print(f"status: {_status_of(item)}  retries: {item.get('retry_count', 0)}")
    if item.get("error_msg"):
        print(f"error: {item['error_msg']}")
    if item.get("structure"):
        print("\n" + item["structure"])


def cmd_approve(args, settings: QueueSettings) -> None:
    """Approve (and optionally replace) a drafted outline."""
    with _editing(settings) as (service, _):
        item_id = _resolve_id(service.snapshot(), args.id)

        if args.structure_file:
            structure = Path(args.structure_file).read_text()
        else:
            structure = service.get_item(item_id)["structure"] or ""

        try:
            service.update_item_structure(item_id, structure)
        except (QueueError, ValueError) as e:
            print(f"Cannot approve: {e}")
            sys.exit(1)
        print(f"Approved {item_id[:8]}")


def cmd_reject(args, settings: QueueSettings) -> None:
    """Discard a drafted outline and redraft it on the next run."""
    with _editing(settings) as (service, _):
        item_id = _resolve_id(service.snapshot(), args.id)
        try:
            service.reject_structure(item_id)
        except QueueError as e:
            print(f"Cannot reject: {e}")
            sys.exit(1)
        print(f"Rejected {item_id[:8]}; it will be redrafted")


def cmd_retry(args, settings: QueueSettings) -> None:
    """Give a failed item a fresh set of attempts on the next run."""
    with _editing(settings) as (service, _):
        item_id = _resolve_id(service.snapshot(), args.id)
        try:
            service.retry_item(item_id)
        except QueueError as e:
            print(f"Cannot retry: {e}")
            sys.exit(1)
        phase = service.get_item(item_id)["failed_phase"]
        print(f"Item {item_id[:8]} will retry its {phase} phase on the next run")


def cmd_reorder(args, settings: QueueSettings) -> None:
    """Move the given items to the front, in the given order."""
    with _editing(settings) as (service, _):
        ids = [_resolve_id(service.snapshot(), prefix) for prefix in args.ids]
        service.reorder(ids)
        print(f"Reordered {len(ids)} items")


def cmd_clear(args, settings: QueueSettings) -> None:
    """Remove every item."""
    with _editing(settings) as (service, store):
        if not args.yes:
            confirm = input(f"Remove all {len(service.snapshot())} items? [y/N] ")
            if confirm.lower() != "y":
                print("Aborted")
                return
        service.clear()
        store.clear()
        print("Queue cleared")


def _read_prompt(path: Optional[str]) -> Optional[str]:
    return Path(path).read_text() if path else None


def _note_writer(output_dir: Path):
    async def write_note(note: GeneratedNote) -> None:
        output_dir.mkdir(parents=True, exist_ok=True)
        slug = note.topic[:50].replace(" ", "_").replace("/", "-").replace("\\", "-")
        path = output_dir / f"{slug}_{note.item_id[:8]}.md"
        await asyncio.to_thread(path.write_text, note.content, "utf-8")
        logger.info(f"Wrote note {path}")

    return write_note


def _progress_printer():
    last: dict[str, Optional[tuple]] = {"key": None}

    def on_update(items: list[QueueItem], is_processing: bool, circuit_status: Optional[str]) -> None:
        counts: dict[str, int] = {}
        for item in items:
            counts[item["status"]] = counts.get(item["status"], 0) + 1
        key = (tuple(sorted(counts.items())), is_processing, circuit_status)
        if key == last["key"]:
            return
        last["key"] = key
        summary = ", ".join(f"{k}={v}" for k, v in sorted(counts.items())) or "empty"
        state = "running" if is_processing else "idle"
        print(f"[{state}] {summary}")
        if circuit_status:
            print(f"  !! {circuit_status}")

    return on_update


async def _run(args, settings: QueueSettings) -> int:
    from langchain_anthropic import ChatAnthropic

    from .generators import ChatModelGenerators

    generators = ChatModelGenerators(
        lambda cfg: ChatAnthropic(
            model=cfg.model,
            max_tokens=args.max_tokens,
            **({"temperature": cfg.temperature} if cfg.temperature is not None else {}),
        )
    )
    run_config = RunConfig(
        structure=PhaseConfig(
            provider=DEFAULT_PROVIDER,
            model=args.structure_model,
            custom_prompt=_read_prompt(args.structure_prompt),
        ),
        content=PhaseConfig(
            provider=DEFAULT_PROVIDER,
            model=args.content_model,
            custom_prompt=_read_prompt(args.content_prompt),
        ),
        auto_approve=args.auto_approve,
        scheduling=SchedulingMode.PER_ITEM if args.per_item else SchedulingMode.PHASE_FIRST,
    )

    store = _store(settings)
    try:
        with store.run_lock():
            service = QueueService(
                generate_structure=generators.generate_structure,
                generate_content=generators.generate_content,
                persist=store.save,
                content_sink=_note_writer(
                    Path(args.output_dir) if args.output_dir else settings.state_dir / "notes"
                ),
                settings=settings,
            )
            # Holding the run lock means any in-flight item was interrupted
            service.set_queue(store.load())
            service.subscribe(_progress_printer())
            service.stopper.install_signal_handlers()
            try:
                await service.start_processing(run_config)
            finally:
                service.stopper.remove_signal_handlers()
    except QueueBusyError as e:
        print(f"Cannot start: {e}")
        return 1

    if service.circuit_state.tripped:
        print(f"Run halted: {service.circuit_status}")
        return 2
    return 0


def cmd_run(args, settings: QueueSettings) -> None:
    """Process the saved queue with Anthropic models."""
    configure_logging("cli-run")
    sys.exit(asyncio.run(_run(args, settings)))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Curriculum queue management",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    add_p = subparsers.add_parser("add", help="Add topics")
    add_p.add_argument("topics", nargs="*", help="Topic texts")
    add_p.add_argument("-f", "--file", help="File with one topic per line")
    add_p.set_defaults(func=cmd_add)

    list_p = subparsers.add_parser("list", help="List items")
    list_p.add_argument("--status", help="Only items with this status")
    list_p.add_argument("--json", action="store_true", help="Print raw JSON")
    list_p.set_defaults(func=cmd_list)

    status_p = subparsers.add_parser("status", help="Counts by status")
    status_p.set_defaults(func=cmd_status)

    show_p = subparsers.add_parser("show", help="Show one item")
    show_p.add_argument("id")
    show_p.set_defaults(func=cmd_show)

    approve_p = subparsers.add_parser("approve", help="Approve a drafted outline")
    approve_p.add_argument("id")
    approve_p.add_argument("--structure-file", help="Replace the outline with this file")
    approve_p.set_defaults(func=cmd_approve)

    reject_p = subparsers.add_parser("reject", help="Reject a drafted outline")
    reject_p.add_argument("id")
    reject_p.set_defaults(func=cmd_reject)

    retry_p = subparsers.add_parser("retry", help="Retry a failed item")
    retry_p.add_argument("id")
    retry_p.set_defaults(func=cmd_retry)

    reorder_p = subparsers.add_parser("reorder", help="Move items to the front")
    reorder_p.add_argument("ids", nargs="+")
    reorder_p.set_defaults(func=cmd_reorder)

    clear_p = subparsers.add_parser("clear", help="Remove all items")
    clear_p.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")
    clear_p.set_defaults(func=cmd_clear)

    run_p = subparsers.add_parser("run", help="Process the queue")
    run_p.add_argument("--auto-approve", action="store_true", help="Skip the review gate")
    run_p.add_argument("--per-item", action="store_true", help="Finish each item before the next")
    run_p.add_argument("--structure-model", default=DEFAULT_STRUCTURE_MODEL)
    run_p.add_argument("--content-model", default=DEFAULT_CONTENT_MODEL)
    run_p.add_argument("--structure-prompt", help="File with phase-1 instructions")
    run_p.add_argument("--content-prompt", help="File with phase-2 instructions")
    run_p.add_argument("--max-tokens", type=int, default=8192)
    run_p.add_argument("--output-dir", help="Where finished notes are written")
    run_p.set_defaults(func=cmd_run)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    args.func(args, QueueSettings())


if __name__ == "__main__":
    main()
