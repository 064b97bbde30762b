"""The console orchestrator.

:class:`App` is the only consumer of its inbox and the only mutator of UI
state. Each inbound message is applied by :meth:`App.handle_message`, which
returns effects: coroutine factories run as background tasks whose resulting
message, if any, is posted back to the inbox.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Coroutine, Iterable
from typing import Any

from shellydeck.config import Settings
from shellydeck.core import (
    DeviceCache,
    EventLog,
    SubscriptionManager,
    Transport,
    TransportError,
    WaveLoader,
)
from shellydeck.models import Device

from .commands import CommandError, parse_command
from .components import (
    DeviceList,
    EnergyHistory,
    InputOutcome,
    JsonDocument,
    PendingConfirm,
    ScrollView,
    TextInput,
    Toast,
    controllable_component,
    detail_lines,
)
from .focus import FocusState, Mode, OverlayId, Panel, Tab
from .keys import Action, ContextMap, base_context, key_context
from .messages import (
    ActionFinished,
    AllDevicesLoaded,
    ConfigLoaded,
    DevicesRefreshed,
    DeviceUpdated,
    Effect,
    FocusSettled,
    KeyPressed,
    Message,
    QuitRequested,
    TaskFailed,
    Tick,
    WaveLoaded,
)

logger = logging.getLogger(__name__)

TOAST_SECONDS = 4.0

CONTROL_ACTIONS = {
    Action.TOGGLE: "toggle",
    Action.TURN_ON: "on",
    Action.TURN_OFF: "off",
}

CURSOR_STEPS = {Action.CURSOR_UP: -1, Action.CURSOR_DOWN: 1}
SCROLL_STEPS = {Action.SCROLL_UP: -1, Action.SCROLL_DOWN: 1}
PAGE_STEPS = {Action.PAGE_UP: -1, Action.PAGE_DOWN: 1}

Renderer = Callable[["App"], None]


class App:
    def __init__(
        self,
        devices: Iterable[Device],
        transport: Transport,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
        renderer: Renderer | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.transport = transport
        self.clock = clock
        self.renderer = renderer

        self.cache = DeviceCache(devices, transport, self.settings, clock=clock)
        self.event_log = EventLog(self.settings.events.max_items)
        self.subscriptions = SubscriptionManager(
            self.cache, transport, self.event_log, on_change=self._on_push_change
        )
        self.loader = WaveLoader(
            self.cache,
            self.settings.loading,
            on_wave=self._on_wave,
            on_complete=self._on_loaded,
        )
        self.focus = FocusState()
        self.keymap = ContextMap()
        self.inbox: asyncio.Queue[Message] = asyncio.Queue()

        self.device_list = DeviceList()
        self.events_view = ScrollView()
        self.detail_view = ScrollView()
        self.help_view = ScrollView()
        self.search = TextInput("/")
        self.command_line = TextInput(":")
        self.pending_confirm: PendingConfirm | None = None
        self.document: JsonDocument | None = None
        self.detail_device: str | None = None
        self.toast: Toast | None = None
        self.energy_history = EnergyHistory(
            self.settings.tui.history_points, self.settings.tui.history_interval
        )

        self.running = False
        self.loaded_waves = 0
        self.subscriptions_started = False

        self._tasks: set[asyncio.Task[Any]] = set()
        self._ui_revision = 0
        self._rendered: tuple[int, int] | None = None
        self._focus_sequence = 0
        self._filter_before_search = ""
        self._last_resubscribe = 0.0
        self._closed = False

    # Inbox

    def post(self, message: Message) -> None:
        self.inbox.put_nowait(message)

    def _on_push_change(self, name: str) -> None:
        self.post(DeviceUpdated(name))

    def _on_wave(self, index: int) -> None:
        self.post(WaveLoaded(index=index + 1, total=len(self.loader.waves)))

    def _on_loaded(self) -> None:
        self.post(AllDevicesLoaded())

    # Queries

    def visible_devices(self) -> list[str]:
        return self.device_list.visible(self.cache.devices())

    def selected_device(self) -> str | None:
        return self.device_list.selected(self.cache.devices())

    def _target_device(self) -> str | None:
        if self.focus.top_overlay is OverlayId.DEVICE_DETAIL and self.detail_device:
            return self.detail_device
        return self.selected_device()

    # Message handling

    def handle_message(self, message: Message) -> list[Effect]:
        if isinstance(message, KeyPressed):
            return self.handle_key(message.key)
        if isinstance(message, Tick):
            return self._on_tick(message.now)
        if isinstance(message, DeviceUpdated):
            self._collect_history()
            return []
        if isinstance(message, DevicesRefreshed):
            self._collect_history()
            self._show_toast(f"Refreshed {message.count} devices")
            return []
        if isinstance(message, WaveLoaded):
            self.loaded_waves = message.index
            self._collect_history()
            self._touch()
            return []
        if isinstance(message, AllDevicesLoaded):
            self._collect_history()
            self._start_subscriptions()
            return []
        if isinstance(message, FocusSettled):
            if message.sequence == self._focus_sequence and self.cache.focused == message.name:
                return [self._fetch_effect(message.name)]
            return []
        if isinstance(message, ActionFinished):
            return self._on_action_finished(message)
        if isinstance(message, ConfigLoaded):
            self._on_config_loaded(message)
            return []
        if isinstance(message, TaskFailed):
            self._show_toast(f"{message.description} failed: {message.error}", "error")
            return []
        if isinstance(message, QuitRequested):
            self.running = False
            return []
        logger.warning("Unhandled message %r", message)
        return []

    def handle_key(self, key: str) -> list[Effect]:
        self._touch()
        context = key_context(self.focus)
        action = self.keymap.match(context, key)
        if action is not None:
            return self.dispatch(action)
        if context.mode is Mode.INPUT:
            return self._handle_input_key(context.overlay, key)
        return []

    def _handle_input_key(self, overlay: OverlayId | None, key: str) -> list[Effect]:
        if overlay is OverlayId.SEARCH:
            outcome = self.search.handle_key(key)
            if outcome is InputOutcome.CHANGED:
                self.device_list.set_filter(self.search.value)
                return self._focus_selected()
            if outcome is InputOutcome.SUBMIT:
                self.focus.close_overlay(OverlayId.SEARCH)
                return self._focus_selected()
            if outcome is InputOutcome.CANCEL:
                self.focus.close_overlay(OverlayId.SEARCH)
                self.device_list.set_filter(self._filter_before_search)
                return self._focus_selected()
            return []

        if overlay is OverlayId.COMMAND:
            outcome = self.command_line.handle_key(key)
            if outcome is InputOutcome.SUBMIT:
                self.focus.close_overlay(OverlayId.COMMAND)
                return self.execute_command(self.command_line.value)
            if outcome is InputOutcome.CANCEL:
                self.focus.close_overlay(OverlayId.COMMAND)
            return []

        return []

    def dispatch(self, action: Action) -> list[Effect]:
        self._touch()

        if action is Action.QUIT:
            self.running = False
            return []
        if action is Action.FORCE_QUIT:
            for overlay in reversed(self.focus.overlays()):
                self._forget_overlay(overlay)
            self.focus.clear_overlays()
            self.running = False
            return []
        if action is Action.HELP:
            self.help_view.reset()
            self.focus.push_overlay(OverlayId.HELP)
            return []
        if action is Action.CLOSE_OVERLAY:
            overlay = self.focus.pop_overlay()
            if overlay is not None:
                self._forget_overlay(overlay)
            return []
        if action is Action.CONFIRM:
            return self._confirm()
        if action is Action.CANCEL:
            if self.focus.close_overlay(OverlayId.CONFIRM):
                self.pending_confirm = None
            return []

        if action is Action.NEXT_PANEL:
            self.focus.next_panel()
            return []
        if action is Action.PREV_PANEL:
            self.focus.prev_panel()
            return []
        if action is Action.TAB_DASHBOARD:
            self._switch_tab(Tab.DASHBOARD)
            return []
        if action is Action.TAB_MONITOR:
            self._switch_tab(Tab.MONITOR)
            return []

        if action in CURSOR_STEPS or action in (Action.CURSOR_TOP, Action.CURSOR_BOTTOM):
            return self._move_cursor(action)
        if action in SCROLL_STEPS:
            self._scroll(SCROLL_STEPS[action], page=False)
            return []
        if action in PAGE_STEPS:
            self._scroll(PAGE_STEPS[action], page=True)
            return []

        if action in CONTROL_ACTIONS:
            return self._control(self.selected_device(), CONTROL_ACTIONS[action])
        if action is Action.REBOOT:
            self._ask_reboot(self.selected_device())
            return []
        if action is Action.REFRESH:
            name = self._target_device()
            return [self._fetch_effect(name)] if name else []
        if action is Action.REFRESH_ALL:
            return [self._refresh_all_effect()]
        if action is Action.DETAIL:
            return self._open_detail()
        if action is Action.VIEW_CONFIG:
            return self._config_effects(self._target_device())

        if action is Action.SEARCH:
            self._filter_before_search = self.device_list.filter
            self.search.reset(self.device_list.filter)
            self.focus.push_overlay(OverlayId.SEARCH)
            return []
        if action is Action.COMMAND:
            self.command_line.reset()
            self.focus.push_overlay(OverlayId.COMMAND)
            return []
        if action is Action.CLEAR_FILTER:
            self.device_list.set_filter("")
            return self._focus_selected()
        if action is Action.PAUSE_EVENTS:
            paused = self.event_log.toggle_pause()
            self._show_toast("Event log paused" if paused else "Event log resumed")
            return []
        if action is Action.CLEAR_EVENTS:
            self.event_log.clear()
            self.events_view.reset()
            return []

        logger.debug("No handler for action %s", action.value)
        return []

    def execute_command(self, line: str) -> list[Effect]:
        try:
            command = parse_command(line)
        except CommandError as exc:
            self._show_toast(str(exc), "error")
            return []

        if command.name == "quit":
            self.running = False
            return []
        if command.name == "filter":
            self.device_list.set_filter(command.argument or "")
            return self._focus_selected()
        if command.name == "tab":
            self._switch_tab(Tab(command.argument))
            return []

        if command.argument is not None and self.cache.get(command.argument) is None:
            self._show_toast(f"Unknown device: {command.argument}", "error")
            return []

        if command.name == "refresh":
            if command.argument is None:
                return [self._refresh_all_effect()]
            return [self._fetch_effect(command.argument)]

        target = command.argument or self.selected_device()
        if command.name == "reboot":
            self._ask_reboot(target)
            return []
        return self._control(target, command.name)

    # Focus helpers

    def _touch(self) -> None:
        self._ui_revision += 1

    def _collect_history(self) -> None:
        now = self.clock()
        if not self.energy_history.due(now):
            return
        if self.energy_history.collect(self.cache.snapshot().values(), now):
            self._touch()

    def _show_toast(self, message: str, level: str = "info") -> None:
        self.toast = Toast(message, level, self.clock() + TOAST_SECONDS)
        self._touch()

    def _forget_overlay(self, overlay: OverlayId) -> None:
        if overlay is OverlayId.CONFIRM:
            self.pending_confirm = None
        elif overlay is OverlayId.JSON_VIEWER:
            self.document = None
        elif overlay is OverlayId.DEVICE_DETAIL:
            self.detail_device = None

    def _switch_tab(self, tab: Tab) -> None:
        for overlay in self.focus.set_active_tab(tab):
            self._forget_overlay(overlay)

    def _move_cursor(self, action: Action) -> list[Effect]:
        count = len(self.visible_devices())
        if action is Action.CURSOR_TOP:
            self.device_list.top()
        elif action is Action.CURSOR_BOTTOM:
            self.device_list.bottom(count)
        else:
            self.device_list.move(CURSOR_STEPS[action], count)
        return self._focus_selected()

    def _focus_selected(self) -> list[Effect]:
        name = self.selected_device()
        if not self.cache.set_focused(name) or name is None:
            return []
        self._focus_sequence += 1
        return [self._settle_effect(name, self._focus_sequence)]

    def _scroll(self, direction: int, page: bool) -> None:
        view, total = self._scroll_target()
        if view is None:
            return
        if page:
            view.page(direction, total)
        else:
            view.scroll(direction, total)

    def _scroll_target(self) -> tuple[ScrollView | None, int]:
        overlay = self.focus.top_overlay
        if overlay is OverlayId.HELP:
            return self.help_view, len(self.keymap.bindings(base_context(self.focus)))
        if overlay is OverlayId.JSON_VIEWER and self.document is not None:
            return self.document.scroll, len(self.document.lines())
        if overlay is OverlayId.DEVICE_DETAIL and self.detail_device:
            state = self.cache.get(self.detail_device)
            return self.detail_view, len(detail_lines(state)) if state else 0
        if overlay is None and self.focus.active_panel is Panel.EVENTS:
            return self.events_view, len(self.event_log)
        return None, 0

    def _open_detail(self) -> list[Effect]:
        name = self.selected_device()
        if name is None:
            return []
        self.detail_device = name
        self.detail_view.reset()
        self.focus.push_overlay(OverlayId.DEVICE_DETAIL)
        return []

    # Device actions

    def _control(self, name: str | None, command: str) -> list[Effect]:
        if name is None:
            self._show_toast("No device selected", "warning")
            return []
        state = self.cache.get(name)
        if state is None:
            return []
        target = controllable_component(state)
        if target is None:
            self._show_toast(f"{name} has no switch or light", "warning")
            return []
        component, component_id = target
        return [
            self._call_effect(
                name, state.device.address, state.generation, command, component, component_id
            )
        ]

    def _ask_reboot(self, name: str | None) -> None:
        if name is None:
            self._show_toast("No device selected", "warning")
            return
        if self.focus.has_overlay(OverlayId.CONFIRM):
            return
        self.pending_confirm = PendingConfirm(name, "reboot", f"Reboot {name}?")
        self.focus.push_overlay(OverlayId.CONFIRM)

    def _confirm(self) -> list[Effect]:
        pending = self.pending_confirm
        if not self.focus.close_overlay(OverlayId.CONFIRM):
            return []
        self.pending_confirm = None
        if pending is None:
            return []
        state = self.cache.get(pending.device)
        if state is None:
            return []
        return [
            self._call_effect(
                pending.device, state.device.address, state.generation, pending.command, "", 0
            )
        ]

    def _on_action_finished(self, message: ActionFinished) -> list[Effect]:
        if message.error:
            self._show_toast(
                f"{message.command} {message.device} failed: {message.error}", "error"
            )
            self.event_log.log(message.device, "error", f"{message.command} failed: {message.error}")
            return []
        self._show_toast(f"{message.command} sent to {message.device}")
        self.event_log.log(message.device, "info", f"{message.command} sent")
        if message.command == "reboot":
            return []
        return [self._fetch_effect(message.device)]

    def _on_config_loaded(self, message: ConfigLoaded) -> None:
        if message.error is not None or message.payload is None:
            self._show_toast(f"Config of {message.device} failed: {message.error}", "error")
            return
        self.document = JsonDocument(f"{message.device} configuration", message.payload)
        if not self.focus.has_overlay(OverlayId.JSON_VIEWER):
            self.focus.push_overlay(OverlayId.JSON_VIEWER)
        self._touch()

    # Ticks and subscriptions

    def _on_tick(self, now: float) -> list[Effect]:
        effects = [self._fetch_effect(name) for name in self.cache.due_for_refresh(now)]

        interval = self.settings.tui.resubscribe_interval
        if self.subscriptions_started and now - self._last_resubscribe >= interval:
            self._last_resubscribe = now
            self._resubscribe()

        if self.toast is not None and now >= self.toast.expires_at:
            self.toast = None
            self._touch()
        return effects

    def _start_subscriptions(self) -> None:
        if self.subscriptions_started:
            return
        self.subscriptions_started = True
        self._last_resubscribe = self.clock()
        count = 0
        for name in self.cache.names():
            if self.subscriptions.subscribe(name) is not None:
                count += 1
        logger.info("All devices loaded; started %d push subscriptions", count)
        self._touch()

    def _resubscribe(self) -> None:
        for device in self.cache.devices():
            if device.supports_push and not self.subscriptions.is_active(device.name):
                logger.debug("Resubscribing to %s", device.name)
                self.subscriptions.subscribe(device.name)

    # Effects

    def _fetch_effect(self, name: str) -> Effect:
        async def fetch() -> Message | None:
            try:
                state = await self.cache.fetch_one(name)
            except KeyError:
                return None
            return DeviceUpdated(state.name)

        return fetch

    def _refresh_all_effect(self) -> Effect:
        async def refresh_all() -> Message | None:
            count = 0
            async for _ in self.cache.fetch_all():
                count += 1
            return DevicesRefreshed(count)

        return refresh_all

    def _settle_effect(self, name: str, sequence: int) -> Effect:
        async def settle() -> Message | None:
            await asyncio.sleep(self.settings.tui.focus_debounce)
            return FocusSettled(name, sequence)

        return settle

    def _call_effect(
        self,
        name: str,
        address: str,
        generation: int,
        command: str,
        component: str,
        component_id: int,
    ) -> Effect:
        async def call() -> Message | None:
            try:
                await self.transport.call(address, generation, command, component, component_id)
            except TransportError as exc:
                return ActionFinished(name, command, str(exc))
            return ActionFinished(name, command)

        return call

    def _config_effects(self, name: str | None) -> list[Effect]:
        if name is None:
            return []
        state = self.cache.get(name)
        if state is None:
            return []
        address, generation = state.device.address, state.generation

        async def load_config() -> Message | None:
            try:
                payload = await self.transport.fetch_config(address, generation)
            except TransportError as exc:
                return ConfigLoaded(name, error=str(exc))
            return ConfigLoaded(name, payload=payload)

        return [load_config]

    # Running

    def render_if_needed(self) -> bool:
        key = (self.cache.version(), self._ui_revision)
        if self.renderer is None or key == self._rendered:
            return False
        self._rendered = key
        self.renderer(self)
        return True

    def spawn(self, effect: Effect) -> asyncio.Task[Any]:
        async def runner() -> None:
            try:
                result = await effect()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("Background task %s failed", effect.__name__)
                self.post(TaskFailed(effect.__name__, str(exc)))
                return
            if result is not None:
                self.post(result)

        return self._start_task(runner(), getattr(effect, "__name__", None))

    def _start_task(self, coro: Coroutine[Any, Any, None], name: str | None) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def process(self, message: Message) -> None:
        for effect in self.handle_message(message):
            self.spawn(effect)

    async def _load(self) -> Message | None:
        await self.loader.run()
        return None

    async def _clock_loop(self) -> None:
        interval = self.settings.tui.tick_interval
        while True:
            await asyncio.sleep(interval)
            self.post(Tick(self.clock()))

    async def run(self) -> None:
        """Run until quit; always shuts down cleanly."""
        self.running = True
        self._start_task(self._clock_loop(), "clock")
        self.spawn(self._load)
        try:
            self.render_if_needed()
            while self.running:
                message = await self.inbox.get()
                self.process(message)
                self.render_if_needed()
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.running = False
        await self.subscriptions.stop_all()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.transport.close()
        logger.debug("Console shut down")
