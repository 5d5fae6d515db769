"""resmon - Live usage dashboard for the current process."""

from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.widgets import Footer, Static

from resmon.formatting import format_binary_bytes, format_percent
from resmon.models import UNSUPPORTED_CPU_USAGE, UNSUPPORTED_MEMORY_USAGE, CpuUsage, MemoryUsage
from resmon.monitor import BackgroundSystemMonitor, available_memory, available_processors

UsageUpdate = tuple[CpuUsage, MemoryUsage]


def usage_bar(pct: float, color: str, width: int = 20) -> str:
    """Render a percentage as a markup bar; unsupported values render empty."""
    bar_len = 0 if pct < 0 else min(int(pct / (100 / width)), width)
    return f"[{color}]█[/{color}]" * bar_len + "[dim]░[/dim]" * (width - bar_len)


class UsageStats(Static):
    """Header widget showing CPU and memory usage."""

    DEFAULT_CSS = """
    UsageStats {
        height: auto;
        min-height: 9;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize UsageStats."""
        super().__init__(*args, **kwargs)
        self._cpu: CpuUsage = UNSUPPORTED_CPU_USAGE
        self._memory: MemoryUsage = UNSUPPORTED_MEMORY_USAGE

    def compose(self) -> ComposeResult:
        """Compose the stats layout."""
        yield Horizontal(
            Static(self._get_cpu_info(), id="cpu-info"),
            Static(self._get_mem_info(), id="mem-info"),
        )

    def update_usage(self, cpu: CpuUsage, memory: MemoryUsage) -> None:
        """Update the statistics from a usage snapshot pair."""
        self._cpu = cpu
        self._memory = memory
        self._refresh_display()

    def _refresh_display(self) -> None:
        try:
            self.query_one("#cpu-info", Static).update(self._get_cpu_info())
            self.query_one("#mem-info", Static).update(self._get_mem_info())
        except Exception:
            pass  # Widget not mounted yet

    def _get_cpu_info(self) -> str:
        """Get CPU info display."""
        cpu = self._cpu
        if cpu is UNSUPPORTED_CPU_USAGE:
            return "Loading CPU info..."
        load_avg = "n/a" if cpu.system_load_average < 0 else f"{cpu.system_load_average:.2f}"
        return (
            f"Proc\\[{usage_bar(cpu.process_load, 'green')}] {format_percent(cpu.process_load)}\n"
            f"Sys \\[{usage_bar(cpu.system_load, 'green')}] {format_percent(cpu.system_load)}\n"
            f"Avg  proc {format_percent(cpu.average_process_load)}  sys {format_percent(cpu.average_system_load)}\n"
            f"Max  proc {format_percent(cpu.max_process_load)}  sys {format_percent(cpu.max_system_load)}\n"
            f"Load average: {load_avg}  ({available_processors()} CPUs)"
        )

    def _get_mem_info(self) -> str:
        """Get memory info display."""
        memory = self._memory
        if memory is UNSUPPORTED_MEMORY_USAGE:
            return "Loading memory info..."
        pct = memory.used * 100 / memory.total if memory.used >= 0 and memory.total > 0 else -1.0
        return (
            f"Mem\\[{usage_bar(pct, 'cyan')}] "
            f"{format_binary_bytes(memory.used)}/{format_binary_bytes(memory.total)}\n"
            f"Peak: {format_binary_bytes(memory.max_used)}\n"
            f"Physical: {format_binary_bytes(available_memory())}"
        )


class ResmonApp(App):
    """Main resmon application."""

    TITLE = "resmon"
    SUB_TITLE = "Process Resource Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    Horizontal {
        height: auto;
    }

    #cpu-info {
        width: 1fr;
        padding-right: 2;
    }

    #mem-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
    ]

    def __init__(self, refresh_interval: float | None = None) -> None:
        """Initialize the ResmonApp."""
        super().__init__()
        self._update_queue: Queue[UsageUpdate] = Queue()
        monitor = BackgroundSystemMonitor() if refresh_interval is None else BackgroundSystemMonitor(refresh_interval)
        self._monitor = monitor.register_update_listener(lambda cpu, memory: self._update_queue.put((cpu, memory)))

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield UsageStats(id="usage-stats")
        yield Footer()

    def on_mount(self) -> None:
        """Start the monitor when the app is mounted."""
        self._monitor.start()
        # Set up a timer to poll the queue for updates
        self.set_interval(0.5, self._check_for_updates)

    def on_unmount(self) -> None:
        """Stop the monitor when the app shuts down."""
        self._monitor.stop()

    def _check_for_updates(self) -> None:
        """Drain the queue and show the most recent usage."""
        update = None
        while True:
            try:
                update = self._update_queue.get_nowait()
            except Empty:
                break

        if update is not None:
            try:
                self.query_one("#usage-stats", UsageStats).update_usage(*update)
            except Exception:
                pass  # Screen is being torn down

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def main() -> None:
    """Entry point for resmon application."""
    app = ResmonApp()
    app.run()


if __name__ == "__main__":
    main()
