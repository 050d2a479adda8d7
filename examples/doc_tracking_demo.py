#!/usr/bin/env python3
"""
Demonstration script for the document change tracking engine.

This script wires a TrackingCoordinator to a simulated document provider and
a console notifier, then lets simulated editors modify the documents while
the poller and push events pick up the changes.

Usage:
    python examples/doc_tracking_demo.py [--duration SECONDS] [--interval SECONDS]
"""

import asyncio
import logging
import random
from datetime import UTC, datetime

import click
from doc_change_tracker.config import TrackerConfig
from doc_change_tracker.core.interfaces import IDocumentProvider, INotifier
from doc_change_tracker.models import DocType, DocumentMetadata, HealthSnapshot
from doc_change_tracker.monitoring import TrackingCoordinator
from doc_change_tracker.storage import InMemoryChangeEventStore
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Initialize rich console
console = Console()

SAMPLE_DOCUMENTS = {
    "doxcnDemoRoadmap01": "Product Roadmap",
    "doxcnDemoMeeting02": "Weekly Meeting Notes",
    "shtcnDemoBudget003": "Budget Sheet",
}
EDITORS = ["ou_alice", "ou_bob", "ou_carol"]


class SimulatedProvider(IDocumentProvider):
    """In-memory provider whose documents are edited by simulated users."""

    def __init__(self):
        now = datetime.now(UTC)
        self.documents = {
            token: DocumentMetadata(token=token, edited_at=now, editor_id=EDITORS[0], title=title, revision="1")
            for token, title in SAMPLE_DOCUMENTS.items()
        }
        self._next_subscription = 0

    def edit(self, token: str, editor_id: str) -> DocumentMetadata:
        """Apply a simulated edit and return the new metadata."""
        current = self.documents[token]
        updated = current.model_copy(
            update={
                "edited_at": datetime.now(UTC),
                "editor_id": editor_id,
                "revision": str(int(current.revision or "0") + 1),
            }
        )
        self.documents[token] = updated
        return updated

    async def fetch_metadata(self, token: str, doc_type: DocType) -> DocumentMetadata:
        await asyncio.sleep(0.05)
        return self.documents[token]

    async def subscribe(self, token: str, doc_type: DocType) -> str:
        self._next_subscription += 1
        return f"sub-{self._next_subscription}"

    async def unsubscribe(self, subscription_id: str, token: str, doc_type: DocType) -> None:
        return None


class ConsoleNotifier(INotifier):
    """Prints notifications instead of posting them to a chat."""

    async def notify(self, channel_id: str, message: str) -> bool:
        console.print(Panel(message, title=f"📨 {channel_id}", border_style="green"))
        return True


def create_health_table(snapshot: HealthSnapshot) -> Table:
    """Create a rich table for the health snapshot."""
    table = Table(title="📊 Tracking Health", show_header=True)
    table.add_column("Metric", style="cyan", width=28)
    table.add_column("Value", style="white", width=15)

    table.add_row("Status", snapshot.status.value)
    table.add_row("Tracked documents", str(snapshot.tracked_count))
    table.add_row("Documents in error", str(snapshot.error_count))
    table.add_row("Poll ticks", str(snapshot.ticks))
    table.add_row("Changes detected", str(snapshot.changes_detected))
    table.add_row("Notifications (window)", str(snapshot.notifications_sent_last_window))
    table.add_row("Debounced", str(snapshot.notifications_suppressed))
    table.add_row("Webhook events", str(snapshot.webhook_events_received))
    if snapshot.reasons:
        table.add_row("Reasons", "; ".join(snapshot.reasons))
    return table


async def demonstrate_tracking(duration: int, interval: float, debounce: float):
    """
    Run the tracking engine against simulated editors.

    Args:
        duration: How long to run the demo (in seconds)
        interval: Poll interval in seconds
        debounce: Debounce window in seconds
    """
    config = TrackerConfig(poll_interval_seconds=interval, debounce_window_seconds=debounce)
    provider = SimulatedProvider()
    history = InMemoryChangeEventStore()
    coordinator = TrackingCoordinator(config, provider, ConsoleNotifier(), change_store=history)

    for token in SAMPLE_DOCUMENTS:
        ack = await coordinator.watch(token, None, "oc_team_channel", requested_by="ou_alice")
        console.print(f"👀 {ack.message} [dim](push: {ack.push_enabled})[/dim]")
    await coordinator.watch("doxcnDemoRoadmap01", None, "oc_leads_channel", requested_by="ou_bob")

    await coordinator.start()
    console.print("✅ [bold green]Tracking started[/bold green]")

    try:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration
        while loop.time() < deadline:
            await asyncio.sleep(random.uniform(0.5, 2.0))
            token = random.choice(list(SAMPLE_DOCUMENTS))
            editor = random.choice(EDITORS)
            metadata = provider.edit(token, editor)
            console.print(f"✏️  [italic]{editor}[/italic] edited [cyan]{metadata.title}[/cyan]")

            # Every other edit also arrives as a push event
            if random.random() < 0.5:
                await coordinator.handle_webhook(
                    {
                        "schema": "2.0",
                        "header": {"event_id": f"evt-{random.getrandbits(32)}", "event_type": "drive.file.edit_v1"},
                        "event": {
                            "file_token": token,
                            "file_type": metadata.doc_type.value,
                            "operator_id": {"open_id": editor},
                            "timestamp": str(int(metadata.edited_at.timestamp() * 1000)),
                        },
                    }
                )
    finally:
        await coordinator.stop()

    console.print(create_health_table(coordinator.status()))

    summary = await coordinator.get_change_summary("doxcnDemoRoadmap01")
    console.print(f"\n📈 Roadmap history: {summary}")


@click.command()
@click.option('--duration', '-t', type=int, default=20, help='Duration to run the demo in seconds')
@click.option('--interval', '-i', type=float, default=3.0, help='Poll interval in seconds')
@click.option('--debounce', '-w', type=float, default=5.0, help='Debounce window in seconds')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
def main(duration: int, interval: float, debounce: float, verbose: bool):
    """
    Run the document change tracking demonstration.

    Example usage:

        # Run with default settings
        python examples/doc_tracking_demo.py

        # Longer run with a tight debounce window
        python examples/doc_tracking_demo.py -t 60 -w 1 -v
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    console.print(
        Panel.fit(
            "🎯 [bold blue]Document Change Tracking Demo[/bold blue]\n\n"
            "Simulated editors modify documents; the engine detects the\n"
            "changes by polling and push events and notifies the channels.",
            title="Welcome",
            border_style="blue",
        )
    )

    try:
        asyncio.run(demonstrate_tracking(duration, interval, debounce))
    except KeyboardInterrupt:
        console.print("\n⚡ [yellow]Demo interrupted by user[/yellow]")
    except Exception as e:
        console.print(f"❌ [red]Demo failed:[/red] {e}")
        logger.exception("Full error details:")
        return 1

    console.print("\n🎉 [bold green]Demo completed successfully![/bold green]")
    return 0


if __name__ == '__main__':
    main()
