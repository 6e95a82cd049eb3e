"""Console log sink shared by scanners, adapters and the fixer"""

import click


class ConsoleLogger:
    """
    Styled console output that can be switched off

    Core components take a logger argument and fall back to a disabled
    instance, so library use and tests stay silent unless the CLI passes
    an enabled one.
    """

    def __init__(self, enabled: bool = True, verbose: bool = False):
        self.enabled = enabled
        self.verbose = verbose
        self.warnings = []  # Warning messages seen, kept even when disabled

    def info(self, message: str):
        if self.enabled:
            click.echo(click.style(message, fg='cyan'))

    def success(self, message: str):
        if self.enabled:
            click.echo(click.style(f"✓ {message}", fg='green'))

    def warning(self, message: str):
        self.warnings.append(message)
        if self.enabled:
            click.echo(click.style(f"⚠️  Warning: {message}", fg='yellow'), err=True)

    def error(self, message: str):
        if self.enabled:
            click.echo(click.style(f"✗ Error: {message}", fg='red', bold=True), err=True)

    def debug(self, message: str):
        if self.enabled and self.verbose:
            click.echo(click.style(f"  {message}", dim=True), err=True)
