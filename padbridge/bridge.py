"""Pad controller → OBS bridge.

Reads raw MIDI from the controller, routes decoded events through the
binding table and hands the resulting commands to OBS over obs-websocket.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import os
import sys
from typing import AsyncIterator, List, Optional

from padbridge.bindings import BindingTable
from padbridge.config import DEFAULT_CONFIG_PATH, load_binding_table
from padbridge.dispatcher import Dispatcher, WarningHandler
from padbridge.errors import (
    AuthenticationFailed,
    ConfigError,
    DeviceNotFound,
    DispatchError,
    TransportDisconnected,
)
from padbridge.intents import CommandIntent
from padbridge.logging_setup import configure_logging
from padbridge.lpd8 import LPD8, DeviceProfile, FrameDecoder
from padbridge.midi_in import MidoInput
from padbridge.obs_client import ObsClient, RecordingClient
from padbridge.router import Router


logger = logging.getLogger(__name__)


class Bridge:
    """One pipeline instance: decoder → router → dispatcher.

    The transport and the remote client are passed in, so a synthetic byte
    source and a recording client can stand in for the hardware and OBS.
    """

    def __init__(
        self,
        table: BindingTable,
        client,
        profile: DeviceProfile = LPD8,
        max_pending: int = 64,
        on_warning: Optional[WarningHandler] = None,
    ):
        self.decoder = FrameDecoder(profile)
        self.router = Router(table)
        self.dispatcher = Dispatcher(client, max_pending=max_pending, on_warning=on_warning)
        self.events = 0

    def handle_chunk(self, chunk: bytes) -> List[CommandIntent]:
        """Decode, route and queue one chunk; never waits on dispatch."""
        queued: List[CommandIntent] = []
        for event in self.decoder.feed(chunk):
            self.events += 1
            batch = self.router.route(event)
            if batch:
                self.dispatcher.submit(batch)
                queued.extend(batch)
        return queued

    async def run(self, chunks: AsyncIterator[bytes], drain: bool = False) -> None:
        """Process chunks until the source ends, then raise TransportDisconnected.

        With ``drain`` the queued commands are sent before stopping when the
        source ends on its own; otherwise they are abandoned.
        """
        self.decoder.reset()
        self.dispatcher.start()
        try:
            try:
                async for chunk in chunks:
                    self.handle_chunk(chunk)
            except OSError as exc:
                raise TransportDisconnected(f"MIDI transport failed: {exc}") from exc
            if drain:
                await self.dispatcher.join()
        finally:
            self.dispatcher.stop()
            d = self.dispatcher
            logger.info("pipeline stopped: events=%d sent=%d failed=%d dropped=%d",
                        self.events, d.sent, d.failed, d.dropped)
        raise TransportDisconnected("MIDI byte source ended")


async def run_bridge(
    table: BindingTable,
    client,
    midi: MidoInput,
    profile: DeviceProfile = LPD8,
    max_pending: int = 64,
    reconnect: bool = False,
    retry_delay: float = 2.0,
) -> None:
    """Run pipelines against ``midi`` until it disconnects (or forever with ``reconnect``)."""
    while True:
        try:
            midi.open()
        except DeviceNotFound as exc:
            if not reconnect:
                raise
            logger.warning("[midi-in] %s; retrying in %.1fs", exc, retry_delay)
            await asyncio.sleep(retry_delay)
            continue

        bridge = Bridge(table, client, profile=profile, max_pending=max_pending)
        logger.info("Bridge is up and running, press Ctrl-C to quit.")
        try:
            await bridge.run(midi.chunks())
        except TransportDisconnected as exc:
            logger.warning("[midi-in] %s", exc)
            if not reconnect:
                return
        finally:
            midi.close()
        await asyncio.sleep(retry_delay)


async def _amain(args: argparse.Namespace, table: BindingTable) -> int:
    profile = LPD8
    if args.channel is not None:
        profile = dataclasses.replace(LPD8, channel=args.channel - 1)

    if args.dry_run:
        client = RecordingClient()
    else:
        client = ObsClient(args.host, args.port, args.password, default_volume_input=args.volume_input)
        try:
            await client.connect()
        except (DispatchError, AuthenticationFailed) as exc:
            if not args.reconnect:
                logger.error("[obs] %s", exc)
                return 1
            logger.warning("[obs] %s; will retry on the next command", exc)

    midi = MidoInput(args.midi_port)
    try:
        await run_bridge(table, client, midi, profile=profile, max_pending=args.max_pending,
                         reconnect=args.reconnect)
    except DeviceNotFound as exc:
        logger.error("[midi-in] %s", exc)
        return 1
    finally:
        await client.close()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Control OBS from an AKAI LPD8 pad controller")
    ap.add_argument("-c", "--config", default=DEFAULT_CONFIG_PATH, help="Mappings file (.toml or .json)")
    ap.add_argument("-H", "--host", default="localhost", help="obs-websocket host")
    ap.add_argument("-p", "--port", type=int, default=4455, help="obs-websocket port")
    ap.add_argument("-P", "--password", default=os.environ.get("OBS_PASSWORD"),
                    help="obs-websocket password (default: $OBS_PASSWORD)")
    ap.add_argument("--midi-port", default=LPD8.port_match, help="Substring to match the MIDI input port")
    ap.add_argument("--channel", type=int, choices=range(1, 17), metavar="1-16",
                    help="Only accept messages on this MIDI channel")
    ap.add_argument("--volume-input", help="OBS input for SetVolume bindings without a name")
    ap.add_argument("--max-pending", type=int, default=64, help="Commands queued before the oldest is dropped")
    ap.add_argument("--reconnect", action="store_true", help="Wait for the controller/OBS instead of exiting")
    ap.add_argument("--dry-run", action="store_true", help="Log commands instead of sending them to OBS")
    args = ap.parse_args(argv)

    configure_logging()

    try:
        table = load_binding_table(args.config)
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except ConfigError as exc:
        print(f"Error: invalid mappings in {args.config}:", file=sys.stderr)
        for err in exc.errors:
            print(f"  {err}", file=sys.stderr)
        return 2
    unnamed = table.unnamed_volume_controls()
    if unnamed and not args.volume_input and not args.dry_run:
        print(f"Error: invalid mappings in {args.config}:", file=sys.stderr)
        for control in unnamed:
            print(f"  {control.value}: SetVolume has no name and --volume-input is not set", file=sys.stderr)
        return 2
    logger.info("loaded %d bindings from %s", len(table), args.config)

    try:
        return asyncio.run(_amain(args, table))
    except KeyboardInterrupt:
        logger.info("Bye bye")
        return 0


if __name__ == "__main__":
    sys.exit(main())
