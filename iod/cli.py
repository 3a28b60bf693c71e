"""IoD CLI — create, inspect and catalog signed package files."""

import json
import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from iod import __version__

console = Console()


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def main(verbose: bool):
    """IoD — signed package files for the install-on-demand server.

    Create package files from package data and an installer, check them,
    and list what a package directory would serve.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


# ── Create ───────────────────────────────────────────────────────────


@main.command()
@click.argument("package_data", type=click.Path(exists=True, dir_okay=False))
@click.argument("output", type=click.Path(dir_okay=False))
@click.option("--key", "-k", "key_path", required=True, type=click.Path(exists=True), help="Private key (PEM)")
@click.option("--public-key", "-p", default=None, type=click.Path(exists=True), help="Public key (PEM)")
@click.option("--passphrase", envvar="IOD_KEY_PASSPHRASE", default=None, help="Private key passphrase")
@click.option("--installer", "-i", default=None, type=click.Path(exists=True, dir_okay=False), help="Installer file")
def create(package_data: str, output: str, key_path: str, public_key: str | None,
           passphrase: str | None, installer: str | None):
    """Create a signed package file.

    PACKAGE_DATA is a JSON or YAML file holding the package metadata.
    """
    from iod.errors import PackageError
    from iod.package import SigningKey, read, write

    console.print(f"\n[bold blue]IoD[/] — Creating: {output}\n")

    try:
        key = SigningKey.from_files(key_path, public_key, passphrase)
        path = write(package_data, installer, key, output)
    except (PackageError, ValueError, OSError) as e:
        console.print(f"[red]Failed:[/] {escape(str(e))}")
        sys.exit(1)

    package_file = read(path)
    header = package_file.header
    console.print(f"  [green]v[/] {escape(str(package_file.name))} written to {escape(str(path))}")
    console.print(
        f"    package data {header.package_data_length} bytes, "
        f"signature {header.signature_length} bytes, "
        f"installer {header.installer_length} bytes"
    )


# ── Inspect ──────────────────────────────────────────────────────────


@main.command()
@click.argument("package_file", type=click.Path(exists=True, dir_okay=False))
def inspect(package_file: str):
    """Read a package file, verify it and show its contents."""
    from iod.errors import PackageError, VerificationError
    from iod.package import read
    from iod.package.signing import verify

    console.print(f"\n[bold blue]IoD[/] — Inspecting: {package_file}\n")

    try:
        info = read(package_file, verify=False)
    except (PackageError, OSError) as e:
        console.print(f"  [red]x[/] {escape(str(e))}")
        sys.exit(1)

    header = info.header
    table = Table(title="Header")
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("identity", header.identity.decode("ascii", "replace").rstrip("\0"))
    table.add_row("packageDataLength", str(header.package_data_length))
    table.add_row("signatureLength", str(header.signature_length))
    table.add_row("installerLength", str(header.installer_length))
    table.add_row("installerOffset", str(header.installer_offset))
    console.print(table)

    package_data = {k: v for k, v in info.package_data.items() if k != "publicKey"}
    console.print(Panel(escape(json.dumps(package_data, indent=2)), title="Package data"))

    try:
        verify(info)
    except VerificationError as e:
        console.print(f"  [red]x[/] {escape(e.message)}")
        sys.exit(1)
    console.print("  [green]v[/] Signature verified")


# ── Extract ──────────────────────────────────────────────────────────


@main.command()
@click.argument("package_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("output", type=click.Path(dir_okay=False))
def extract(package_file: str, output: str):
    """Write the installer payload of a package file to OUTPUT."""
    from iod.errors import PackageError
    from iod.package import read

    try:
        info = read(package_file, keep_open=True)
    except (PackageError, OSError) as e:
        console.print(f"[red]Failed:[/] {escape(str(e))}")
        sys.exit(1)

    try:
        if not info.has_installer:
            console.print("[yellow]This package has no installer.[/]")
            sys.exit(1)
        remaining = info.header.installer_length
        with open(output, "wb") as out:
            while remaining:
                chunk = info.handle.read(min(remaining, 64 * 1024))
                if not chunk:
                    break
                out.write(chunk)
                remaining -= len(chunk)
    finally:
        info.close()

    console.print(f"[green]Installer written to:[/] {output}")


# ── Keygen ───────────────────────────────────────────────────────────


@main.command()
@click.argument("private_key", type=click.Path(dir_okay=False))
@click.argument("public_key", type=click.Path(dir_okay=False))
@click.option("--bits", default=4096, show_default=True, help="RSA key size")
@click.option("--passphrase", envvar="IOD_KEY_PASSPHRASE", default=None, help="Encrypt the private key")
def keygen(private_key: str, public_key: str, bits: int, passphrase: str | None):
    """Generate an RSA key pair for signing packages."""
    import os

    from iod.package.signing import generate_key

    key = generate_key(bits=bits, passphrase=passphrase)
    fd = os.open(private_key, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(key.private_key)
    with open(public_key, "w") as f:
        f.write(key.public_key)

    console.print(f"[green]Key pair written to:[/] {private_key}, {public_key}")


# ── Catalog ──────────────────────────────────────────────────────────


@main.group()
def catalog():
    """Inspect a package directory."""


@catalog.command(name="list")
@click.argument("package_dir", envvar="IOD_PACKAGE_DIR", type=click.Path())
def list_packages(package_dir: str):
    """Load a package directory and list the packages it serves."""
    from iod.catalog.store import PackageCatalog
    from iod.errors import PackageIOError

    cat = PackageCatalog(package_dir)
    try:
        result = cat.load()
    except PackageIOError as e:
        console.print(f"[red]{escape(e.message)}[/]")
        sys.exit(1)

    if not len(cat):
        console.print("[yellow]No packages found.[/]")
    else:
        table = Table(title=f"Packages ({len(cat)} loaded)")
        table.add_column("Name", style="cyan")
        table.add_column("Version")
        table.add_column("Installer", justify="right")
        table.add_column("File")

        for name in cat.names():
            info = cat.get(name)
            installer = str(info.header.installer_length) if info.has_installer else "-"
            table.add_row(escape(name), escape(str(info.package_data.get("version", ""))), installer, escape(str(info.path)))

        console.print(table)

    if result.errors:
        console.print(f"\n[red]{len(result.errors)} file(s) failed to load:[/]")
        for error in result.errors:
            console.print(f"  [red]x[/] {escape(error.path)}: ({error.kind}) {escape(error.message)}")


if __name__ == "__main__":
    main()
