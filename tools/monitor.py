from __future__ import annotations

import argparse
import asyncio

from padbridge.config import load_binding_table
from padbridge.errors import TransportDisconnected
from padbridge.lpd8 import LPD8, FrameDecoder
from padbridge.midi_in import MidoInput, list_input_names
from padbridge.router import Router


async def run(port_filter: str, config_path: str | None):
    router = Router(load_binding_table(config_path)) if config_path else None
    decoder = FrameDecoder(LPD8)
    midi = MidoInput(port_filter)
    print(f"[monitor] {midi.open()}")
    try:
        async for chunk in midi.chunks():
            for event in decoder.feed(chunk):
                print(f"{chunk.hex(' ')} -> {event}")
                if router is not None:
                    for intent in router.route(event):
                        print(f"    {intent}")
    except TransportDisconnected as exc:
        print(f"[monitor] {exc}")
    finally:
        midi.close()


def main():
    ap = argparse.ArgumentParser(description="Print decoded pad/fader events (and the commands they would trigger)")
    ap.add_argument("--port", default=LPD8.port_match, help="Substring to match MIDI input port (e.g., 'LPD8')")
    ap.add_argument("--config", help="Mappings file; when given, show the commands each event triggers")
    ap.add_argument("--list", action="store_true", help="List MIDI input ports and exit")
    args = ap.parse_args()
    if args.list:
        for name in list_input_names():
            print(name)
        return
    try:
        asyncio.run(run(args.port, args.config))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
