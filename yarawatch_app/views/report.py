from textual.widgets import Static
from rich.markup import escape
from rich.table import Table

MAX_ROWS = 100


def report_table(report) -> Table:
    table = Table(title="Threats", expand=True)
    table.add_column("Signature", no_wrap=True)
    table.add_column("Path")
    for entry in report.infected[:MAX_ROWS]:
        table.add_row(f"[red]{escape(entry.signature)}[/red]", escape(str(entry.path)))
    return table


def summary_line(report) -> str:
    return (
        f"[b]Examined:[/b] {report.examined}  [b]Clean:[/b] {report.clean}  "
        f"[b]Skipped:[/b] {report.skipped}  [b]Threats:[/b] {report.infected_count}  "
        f"[b]Errors:[/b] {report.error_count}  [b]Duration:[/b] {report.duration}"
    )


class ReportView(Static):
    def update_report(self, report):
        if report is None:
            self.update("No scan report yet.")
            return
        if not report.infected:
            self.update(summary_line(report) + "\n[bold green]No threats found.[/bold green]")
            return
        # Static renders a single renderable; the table carries the summary as caption
        table = report_table(report)
        table.caption = summary_line(report)
        self.update(table)
