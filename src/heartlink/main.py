import typer

from heartlink.cli.commands.monitor import monitor_command
from heartlink.cli.commands.scan import scan_command

app = typer.Typer(help="BLE heart rate monitor client.")

app.command(name="scan")(scan_command)
app.command(name="monitor")(monitor_command)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
