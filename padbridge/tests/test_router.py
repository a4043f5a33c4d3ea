import unittest

from padbridge import intents
from padbridge.actions import PASS
from padbridge.bindings import build_binding_table
from padbridge.lpd8 import ControlChange, InputId, ProgramChange
from padbridge.router import Router, pass_to_percent, resolve_volume


def make_router(doc):
    return Router(build_binding_table(doc))


class TestVolumeResolution(unittest.TestCase):
    def test_pass_endpoints_and_midpoint(self):
        self.assertEqual(pass_to_percent(0), 0)
        self.assertEqual(pass_to_percent(64), 50)
        self.assertEqual(pass_to_percent(127), 100)

    def test_pass_range(self):
        for v in range(128):
            pct = pass_to_percent(v)
            self.assertTrue(0 <= pct <= 100)
            self.assertEqual(pct, round(v / 127 * 100))

    def test_pass_is_monotonic(self):
        values = [pass_to_percent(v) for v in range(128)]
        self.assertEqual(values, sorted(values))

    def test_fixed_ignores_raw_value(self):
        self.assertEqual(resolve_volume(10, 127), 10)
        self.assertEqual(resolve_volume(PASS, 127), 100)


class TestProgramChangePath(unittest.TestCase):
    def test_bound_pad_emits_one_intent(self):
        router = make_router({"program_changes": {"pad2": {"action": "SetScene", "name": "In Game"}}})
        self.assertEqual(router.route(ProgramChange(InputId.PAD2)), [intents.set_scene("In Game")])

    def test_unbound_pad_emits_nothing(self):
        router = make_router({"program_changes": {"pad2": {"action": "SetScene", "name": "In Game"}}})
        self.assertEqual(router.route(ProgramChange(InputId.PAD1)), [])

    def test_pass_volume_resolves_to_zero(self):
        router = make_router({
            "program_changes": {"pad1": {"action": "SetVolume", "name": "Mic", "value": "pass"}},
            "control_changes": [{"pad1": {"action": "SetVolume", "name": "Mic", "value": "pass"}}],
        })
        # Prior CC state must not leak into the PC path
        self.assertEqual(router.route(ControlChange(InputId.PAD1, 127)), [intents.set_volume(100, "Mic")])
        self.assertEqual(router.route(ProgramChange(InputId.PAD1)), [intents.set_volume(0, "Mic")])

    def test_cc_bindings_do_not_fire_on_program_change(self):
        router = make_router({"control_changes": [{"pad1": {"action": "SetScene", "name": "A"}}]})
        self.assertEqual(router.route(ProgramChange(InputId.PAD1)), [])


class TestControlChangePath(unittest.TestCase):
    def setUp(self):
        self.router = make_router({
            "control_changes": [
                {"pad1": {"action": "EnableSceneItem", "name": "Cam"}},
                {"pad1": {"action": "DisableSceneItem", "name": "Cam", "on": 0}},
            ]
        })

    def test_any_value_binding_only(self):
        self.assertEqual(self.router.route(ControlChange(InputId.PAD1, 64)), [intents.enable_item("Cam")])

    def test_all_matches_fire_in_declaration_order(self):
        self.assertEqual(
            self.router.route(ControlChange(InputId.PAD1, 0)),
            [intents.enable_item("Cam"), intents.disable_item("Cam")],
        )

    def test_unbound_input_emits_nothing(self):
        self.assertEqual(self.router.route(ControlChange(InputId.FADER3, 10)), [])

    def test_fixed_volume_on_fader(self):
        router = make_router({"control_changes": [{"fader1": {"action": "SetVolume", "value": 10}}]})
        for v in (0, 1, 64, 127):
            self.assertEqual(router.route(ControlChange(InputId.FADER1, v)), [intents.set_volume(10)])

    def test_pass_volume_on_fader(self):
        router = make_router({"control_changes": [{"knob1": {"action": "SetVolume", "name": "Desktop", "value": "pass"}}]})
        self.assertEqual(router.route(ControlChange(InputId.FADER1, 64)), [intents.set_volume(50, "Desktop")])

    def test_exactly_matching_subset_in_order(self):
        router = make_router({
            "control_changes": [
                {"pad3": {"action": "SetScene", "name": "A", "on": 127}},
                {"pad3": {"action": "SetScene", "name": "B"}},
                {"pad3": {"action": "SetScene", "name": "C", "on": 0}},
                {"pad3": {"action": "ToggleInput", "name": "Mic", "on": 127}},
                {"pad3": {"action": "ToggleSceneItem", "name": "Logo"}},
            ]
        })
        self.assertEqual(
            router.route(ControlChange(InputId.PAD3, 127)),
            [intents.set_scene("A"), intents.set_scene("B"), intents.toggle_mute("Mic"), intents.toggle_item("Logo")],
        )
        self.assertEqual(
            router.route(ControlChange(InputId.PAD3, 0)),
            [intents.set_scene("B"), intents.set_scene("C"), intents.toggle_item("Logo")],
        )
        self.assertEqual(
            router.route(ControlChange(InputId.PAD3, 5)),
            [intents.set_scene("B"), intents.toggle_item("Logo")],
        )

    def test_no_match_is_not_an_error(self):
        router = make_router({"control_changes": [{"pad4": {"action": "SetScene", "name": "A", "on": 127}}]})
        self.assertEqual(router.route(ControlChange(InputId.PAD4, 0)), [])


class TestCommandIntent(unittest.TestCase):
    def test_rejects_unresolved_fields(self):
        with self.assertRaises(ValueError):
            intents.CommandIntent(intents.SET_VOLUME, name="Mic")
        with self.assertRaises(ValueError):
            intents.set_volume(101)
        with self.assertRaises(ValueError):
            intents.CommandIntent(intents.SET_SCENE)
        with self.assertRaises(ValueError):
            intents.CommandIntent("reboot", name="x")

    def test_str(self):
        self.assertEqual(str(intents.set_volume(42)), "set_volume(<default>, 42%)")
        self.assertEqual(str(intents.set_scene("Start")), "set_scene(Start)")
