import asyncio
import os
import tempfile
import unittest
from unittest import mock

from padbridge import bridge as bridge_mod
from padbridge import intents
from padbridge.bindings import build_binding_table
from padbridge.bridge import Bridge
from padbridge.errors import RequestFailed, TransportDisconnected
from padbridge.obs_client import RecordingClient


MAPPINGS = {
    "program_changes": {
        "pad1": {"action": "SetScene", "name": "Start"},
        "pad2": {"action": "SetScene", "name": "In Game"},
    },
    "control_changes": [
        {"pad5": {"action": "EnableSceneItem", "name": "Cam"}},
        {"pad5": {"action": "DisableSceneItem", "name": "Cam", "on": 0}},
        {"knob1": {"action": "SetVolume", "name": "Mic/Aux", "value": "pass"}},
    ],
}


async def chunks_of(*chunks, delay=0.0):
    for chunk in chunks:
        if delay:
            await asyncio.sleep(delay)
        yield bytes(chunk)


class SlowClient(RecordingClient):
    async def send(self, intent):
        await asyncio.sleep(0.05)
        await super().send(intent)


class TestBridge(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.table = build_binding_table(MAPPINGS)

    async def test_end_to_end_order(self):
        client = RecordingClient()
        bridge = Bridge(self.table, client)
        source = chunks_of(
            [0xC0, 0x01],            # pad2 PC
            [0xB0, 16],              # pad5 CC, split frame
            [0],                     # value 0
            [0xB0, 70, 64, 0xC0],    # fader1 at 64, then half a PC
            [0x00],                  # pad1 PC
            [0xB0, 16, 64],          # pad5 CC 64
            [0xC0, 0x07],            # pad8 unbound
        )
        with self.assertRaises(TransportDisconnected):
            await bridge.run(source, drain=True)
        self.assertEqual(
            client.intents,
            [
                intents.set_scene("In Game"),
                intents.enable_item("Cam"),
                intents.disable_item("Cam"),
                intents.set_volume(50, "Mic/Aux"),
                intents.set_scene("Start"),
                intents.enable_item("Cam"),
            ],
        )
        self.assertEqual(bridge.events, 6)
        self.assertFalse(bridge.dispatcher.running)

    async def test_decoding_never_waits_for_dispatch(self):
        client = SlowClient()
        bridge = Bridge(self.table, client)
        bridge.dispatcher.start()
        try:
            queued = []
            for _ in range(5):
                queued.extend(bridge.handle_chunk(bytes([0xC0, 0x00])))
            # All five routed synchronously while the first send is still sleeping
            self.assertEqual(len(queued), 5)
            self.assertEqual(client.intents, [])
            await asyncio.wait_for(bridge.dispatcher.join(), timeout=2.0)
            self.assertEqual(len(client.intents), 5)
        finally:
            bridge.dispatcher.stop()

    async def test_disconnect_abandons_in_flight(self):
        client = SlowClient()
        bridge = Bridge(self.table, client)
        with self.assertRaises(TransportDisconnected):
            await bridge.run(chunks_of([0xC0, 0x00], [0xC0, 0x01]))
        await asyncio.sleep(0.1)
        self.assertEqual(client.intents, [])

    async def test_transport_error_is_a_disconnect(self):
        async def broken():
            yield bytes([0xC0, 0x00])
            raise OSError("device unplugged")

        bridge = Bridge(self.table, RecordingClient())
        with self.assertRaises(TransportDisconnected):
            await bridge.run(broken())

    async def test_source_disconnect_propagates(self):
        async def vanishing():
            yield bytes([0xC0, 0x00])
            raise TransportDisconnected("MIDI port 'LPD8' disappeared")

        bridge = Bridge(self.table, RecordingClient())
        with self.assertRaises(TransportDisconnected) as ctx:
            await bridge.run(vanishing())
        self.assertIn("disappeared", str(ctx.exception))

    async def test_queue_overflow_keeps_newest(self):
        client = SlowClient()
        warnings = []
        bridge = Bridge(self.table, client, max_pending=2, on_warning=lambda i, e: warnings.append(i))
        bridge.dispatcher.start()
        try:
            bridge.handle_chunk(bytes([0xB0, 70, 10]))
            await asyncio.sleep(0)
            for v in (20, 30, 40):
                bridge.handle_chunk(bytes([0xB0, 70, v]))
            await asyncio.wait_for(bridge.dispatcher.join(), timeout=2.0)
        finally:
            bridge.dispatcher.stop()
        # first send was already in flight when the queue filled
        self.assertEqual([i.percent for i in client.intents], [8, 24, 31])
        self.assertEqual([i.percent for i in warnings], [16])


class SceneQueryFails:
    def __init__(self, *args, **kwargs):
        self.closed = False

    async def connect(self):
        raise RequestFailed("GetCurrentProgramScene", 500, "not ready")

    async def close(self):
        self.closed = True


class TestMain(unittest.TestCase):
    def test_failed_startup_request_exits_1(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "m.toml")
            with open(path, "w", encoding="utf-8") as f:
                f.write('[program_changes]\npad1 = { action = "SetScene", name = "Start" }\n')
            with mock.patch.object(bridge_mod, "ObsClient", SceneQueryFails):
                self.assertEqual(bridge_mod.main(["--config", path]), 1)
