"""OBS Studio client built on simpleobsws.

simpleobsws owns the obs-websocket v5 session (Hello/Identify, password
challenge, request correlation). This module turns command intents into
requests, follows the current program scene and caches scene item ids.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import simpleobsws
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from padbridge import intents
from padbridge.errors import AuthenticationFailed, DispatchError, ObsUnreachable, RequestFailed
from padbridge.intents import CommandIntent


logger = logging.getLogger(__name__)

# EventSubscription bit flags
SUB_SCENES = 1 << 2
SUB_SCENE_ITEMS = 1 << 7


class ObsClient:
    def __init__(
        self,
        host: str = "localhost",
        port: int = 4455,
        password: Optional[str] = None,
        default_volume_input: Optional[str] = None,
        request_timeout: float = 5.0,
        reconnect_interval: float = 5.0,
        identify_timeout: float = 5.0,
    ):
        self.host = host
        self.port = int(port)
        self.password = password
        self.default_volume_input = default_volume_input
        self.request_timeout = float(request_timeout)
        self.reconnect_interval = float(reconnect_interval)
        self.identify_timeout = float(identify_timeout)
        self.current_scene: Optional[str] = None
        self._obs: Optional[simpleobsws.WebSocketClient] = None
        self._item_ids: Dict[Tuple[str, str], int] = {}
        self._last_attempt = 0.0

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"

    @property
    def connected(self) -> bool:
        obs = self._obs
        if obs is None or not obs.identified:
            return False
        return bool(getattr(obs.ws, "open", False))

    # -- connection ----------------------------------------------------------

    async def connect(self) -> None:
        """Open the session and wait until obs-websocket has identified us."""
        self._last_attempt = time.monotonic()
        await self._drop()
        obs = simpleobsws.WebSocketClient(
            url=self.url,
            password=self.password or "",
            identification_parameters=simpleobsws.IdentificationParameters(
                eventSubscriptions=SUB_SCENES | SUB_SCENE_ITEMS,
            ),
        )
        try:
            await obs.connect()
        except (OSError, asyncio.TimeoutError, InvalidHandshake) as exc:
            raise ObsUnreachable(f"cannot connect to {self.url}: {exc}") from exc

        if not await obs.wait_until_identified(timeout=self.identify_timeout):
            await obs.disconnect()
            # obs-websocket closes the socket on a missing or wrong password
            raise AuthenticationFailed(f"{self.url} did not accept identification (check --password / OBS_PASSWORD)")

        obs.register_event_callback(self._on_scene_changed, "CurrentProgramSceneChanged")
        obs.register_event_callback(self._on_items_changed, "SceneItemCreated")
        obs.register_event_callback(self._on_items_changed, "SceneItemRemoved")
        self._obs = obs
        self._item_ids.clear()
        logger.info("[obs] connected to %s", self.url)

        resp = await self.request("GetCurrentProgramScene")
        self.current_scene = resp.get("currentProgramSceneName") or resp.get("sceneName")
        logger.info("[obs] current scene: %s", self.current_scene)

    async def close(self) -> None:
        await self._drop()

    async def _drop(self) -> None:
        obs, self._obs = self._obs, None
        if obs is not None:
            await obs.disconnect()

    async def _ensure_connected(self) -> None:
        if self.connected:
            return
        if self._obs is not None:
            logger.warning("[obs] disconnected from %s", self.url)
            await self._drop()
        if time.monotonic() - self._last_attempt < self.reconnect_interval:
            raise ObsUnreachable(f"not connected to {self.url}")
        logger.info("[obs] reconnecting to %s", self.url)
        try:
            await self.connect()
        except AuthenticationFailed as exc:
            raise ObsUnreachable(str(exc)) from exc

    async def _on_scene_changed(self, data: Dict[str, Any]) -> None:
        self.current_scene = data.get("sceneName")
        logger.info("[obs] scene changed: %s", self.current_scene)

    async def _on_items_changed(self, data: Dict[str, Any]) -> None:
        scene = data.get("sceneName")
        for key in [k for k in self._item_ids if k[0] == scene]:
            del self._item_ids[key]

    # -- requests ------------------------------------------------------------

    async def request(self, request_type: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send one request and return its ``responseData``."""
        await self._ensure_connected()
        try:
            resp = await self._obs.call(simpleobsws.Request(request_type, data), timeout=self.request_timeout)
        except ConnectionClosed as exc:
            raise ObsUnreachable(f"{request_type}: connection closed") from exc
        except simpleobsws.NotIdentifiedError as exc:
            raise ObsUnreachable(f"{request_type}: not identified") from exc
        except simpleobsws.MessageTimeout as exc:
            raise ObsUnreachable(f"{request_type}: no reply within {self.request_timeout}s") from exc

        if not resp.ok():
            status = resp.requestStatus
            raise RequestFailed(request_type, status.code, status.comment)
        return resp.responseData or {}

    async def send(self, intent: CommandIntent) -> None:
        """Carry out one resolved intent."""
        kind = intent.kind
        if kind == intents.SET_SCENE:
            await self.request("SetCurrentProgramScene", {"sceneName": intent.name})
            self.current_scene = intent.name
        elif kind == intents.SET_VOLUME:
            name = intent.name or self.default_volume_input
            if not name:
                raise DispatchError("volume command has no input name and no default volume input is set")
            await self.request("SetInputVolume", {"inputName": name, "inputVolumeMul": intent.percent / 100.0})
        elif kind == intents.TOGGLE_MUTE:
            await self.request("ToggleInputMute", {"inputName": intent.name})
        elif kind in (intents.ENABLE_ITEM, intents.DISABLE_ITEM):
            await self._set_item_enabled(intent.name, kind == intents.ENABLE_ITEM)
        elif kind == intents.TOGGLE_ITEM:
            scene, item_id = await self._locate_item(intent.name)
            resp = await self.request("GetSceneItemEnabled", {"sceneName": scene, "sceneItemId": item_id})
            await self._set_item_enabled(intent.name, not bool(resp.get("sceneItemEnabled")))
        else:
            raise DispatchError(f"unsupported command {kind}")

    async def _current_scene(self) -> str:
        if self.current_scene is None:
            resp = await self.request("GetCurrentProgramScene")
            self.current_scene = resp.get("currentProgramSceneName") or resp.get("sceneName")
        if not self.current_scene:
            raise DispatchError("current program scene unknown")
        return self.current_scene

    async def _locate_item(self, source: str) -> Tuple[str, int]:
        scene = await self._current_scene()
        key = (scene, source)
        if key not in self._item_ids:
            resp = await self.request("GetSceneItemId", {"sceneName": scene, "sourceName": source})
            self._item_ids[key] = int(resp["sceneItemId"])
        return scene, self._item_ids[key]

    async def _set_item_enabled(self, source: str, enabled: bool) -> None:
        scene, item_id = await self._locate_item(source)
        try:
            await self.request(
                "SetSceneItemEnabled",
                {"sceneName": scene, "sceneItemId": item_id, "sceneItemEnabled": enabled},
            )
        except RequestFailed:
            self._item_ids.pop((scene, source), None)
            raise


class RecordingClient:
    """A stand-in for ObsClient that records intents instead of sending them.

    Used by ``--dry-run`` and by tests.
    """

    def __init__(self) -> None:
        self.intents: List[CommandIntent] = []

    async def send(self, intent: CommandIntent) -> None:
        self.intents.append(intent)
        logger.info("[dry-run] %s", intent)

    async def close(self) -> None:
        pass
