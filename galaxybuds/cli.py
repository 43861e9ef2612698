"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
import queue
import time
from collections.abc import Iterator

import typer

from galaxybuds.core.controller import WorkerController
from galaxybuds.core.errors import GalaxyBudsError
from galaxybuds.core.model import (
    Connect,
    Connected,
    DataReceived,
    DeviceDescriptor,
    Disconnected,
    Error,
    Find,
    NoiseControlsUpdate,
    SendCommand,
    SetNoiseControls,
    WorkerOutput,
)
from galaxybuds.core.protocol import NoiseControlMode
from galaxybuds.core.service import BudsService
from galaxybuds.core.status import BudsStatus

CONNECT_TIMEOUT_S = 30.0
NOISE_MODES = {
    "off": NoiseControlMode.OFF,
    "noise-reduction": NoiseControlMode.NOISE_REDUCTION,
    "ambient": NoiseControlMode.AMBIENT_SOUND,
}

app = typer.Typer(help="Galaxy Buds control over Bluetooth SPP")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_service() -> BudsService:
    service = BudsService()
    for warning in getattr(service, "runtime_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _events(controller: WorkerController, seconds: float) -> Iterator[WorkerOutput]:
    deadline = time.monotonic() + seconds
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return
        try:
            yield controller.recv(timeout=remaining)
        except queue.Empty:
            return


def _wait_connected(controller: WorkerController) -> DeviceDescriptor | None:
    controller.send(Connect())
    for event in _events(controller, CONNECT_TIMEOUT_S):
        if isinstance(event, Connected):
            return event.device
        if isinstance(event, Error):
            typer.echo(f"Error: {event.message}", err=True)
            if event.message.startswith("Connection failed"):
                raise typer.Exit(code=1)
        if isinstance(event, Disconnected):
            break
    typer.echo("Error: could not connect to Galaxy Buds", err=True)
    raise typer.Exit(code=1)


def _describe(device: DeviceDescriptor | None) -> str:
    if device is None:
        return "Galaxy Buds"
    return f"{device.name} ({device.address})"


def _print_status(status: BudsStatus) -> None:
    typer.echo(
        f"Battery: {status.battery_text} | Case: {status.case_battery_text} | "
        f"Noise control: {status.noise_control_mode_text}"
    )


@app.command("devices")
def list_devices() -> None:
    """List paired Galaxy Buds."""
    try:
        service = _build_service()
        devices = service.list_devices()
        if not devices:
            typer.echo("No Galaxy Buds found")
            return

        remembered = (service.remembered_address or "").upper()
        for device in devices:
            marker = "*" if device.address.upper() == remembered else " "
            typer.echo(f"{marker} {device.address} {device.name}")
    except GalaxyBudsError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("status")
def show_status(
    device: str | None = typer.Option(None, "--device", help="MAC or partial name"),
    seconds: float = typer.Option(5.0, "--seconds", help="How long to listen for updates"),
) -> None:
    """Connect and print battery and noise-control status as it arrives."""
    try:
        service = _build_service()
        with service.start_worker(device_hint=device) as controller:
            target = _wait_connected(controller)
            typer.echo(f"Connected to {_describe(target)}")
            status = BudsStatus()
            for event in _events(controller, seconds):
                if isinstance(event, DataReceived) and status.update(event.message):
                    _print_status(status)
                elif isinstance(event, Error):
                    typer.echo(f"Error: {event.message}", err=True)
                elif isinstance(event, Disconnected):
                    typer.echo("Disconnected")
                    break
    except GalaxyBudsError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("find")
def find_buds(
    device: str | None = typer.Option(None, "--device", help="MAC or partial name"),
    seconds: float = typer.Option(10.0, "--seconds", help="How long the buds should ring"),
) -> None:
    """Make the buds ring. Do not wear them while they do."""
    try:
        service = _build_service()
        with service.start_worker(device_hint=device) as controller:
            target = _wait_connected(controller)
            controller.send(SendCommand(Find(active=True)))
            typer.echo(f"Ringing {_describe(target)} for {seconds:g}s")
            for event in _events(controller, seconds):
                if isinstance(event, Error):
                    typer.echo(f"Error: {event.message}", err=True)
                elif isinstance(event, Disconnected):
                    typer.echo("Disconnected")
                    raise typer.Exit(code=1)
            controller.send(SendCommand(Find(active=False)))
            typer.echo("Stopped")
    except GalaxyBudsError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("noise")
def set_noise(
    mode: str = typer.Argument(..., help="off, noise-reduction or ambient"),
    device: str | None = typer.Option(None, "--device", help="MAC or partial name"),
) -> None:
    """Set the noise control mode."""
    target_mode = NOISE_MODES.get(mode.lower())
    if target_mode is None:
        typer.echo(f"Error: unknown mode '{mode}'. Allowed: {', '.join(NOISE_MODES)}", err=True)
        raise typer.Exit(code=1)

    try:
        service = _build_service()
        with service.start_worker(device_hint=device) as controller:
            _wait_connected(controller)
            controller.send(SendCommand(SetNoiseControls(target_mode)))
            for event in _events(controller, 2.0):
                if isinstance(event, DataReceived) and isinstance(event.message, NoiseControlsUpdate):
                    if event.message.noise_control_mode is target_mode:
                        break
                elif isinstance(event, Error):
                    typer.echo(f"Error: {event.message}", err=True)
                    raise typer.Exit(code=1)
            typer.echo(f"Noise control set to {target_mode.label}")
    except GalaxyBudsError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
