import asyncio
from typing import Awaitable, Callable, Optional

from playwright.async_api import Frame, Page

from shared.logging.logger import get_logger

log = get_logger("browser.toggle_surface")

BINDING_NAME = "ad2dcToggleBridge"
ELEMENT_ID = "ad2dc-bridge-toggle"

# Idempotent: creates the widget once per document, then only updates it
_ENSURE_SCRIPT = r"""
    ([bindingName, elementId, enabled]) => {
        let root = document.getElementById(elementId);
        if (!root) {
            root = document.createElement('div');
            root.id = elementId;
            root.style.cssText = 'position:fixed;top:10px;right:10px;z-index:99999;' +
                'background:#1f2937;color:#fff;padding:8px 10px;border-radius:6px;' +
                'font:12px monospace;display:flex;align-items:center;gap:8px';

            const label = document.createElement('span');
            label.textContent = 'Bridge';

            const btn = document.createElement('button');
            btn.type = 'button';
            btn.setAttribute('aria-label', 'Toggle bridge');
            btn.style.cssText = 'cursor:pointer;padding:6px 10px;border-radius:4px;' +
                'color:#fff;font:12px monospace';
            btn.addEventListener('click', () => {
                if (globalThis[bindingName]) globalThis[bindingName]();
            });

            root.appendChild(label);
            root.appendChild(btn);
            document.documentElement.appendChild(root);
        }

        const btn = root.querySelector('button');
        btn.textContent = enabled ? 'ON' : 'OFF';
        btn.style.background = enabled ? '#059669' : '#6b7280';
        btn.style.border = enabled ? '1px solid #047857' : '1px solid #4b5563';
        return 'RENDERED';
    }
"""


class PageToggleSurface:
    """
    Floating ON/OFF toggle injected into the DartCounter page.

    Clicks are routed to Python through a Playwright binding. The widget is
    re-rendered after every main-frame navigation, including client-side
    route changes, from the last known state.
    """

    def __init__(self, page: Page):
        self.page = page
        self._enabled = False
        self._installed = False
        self._on_toggle: Optional[Callable[[], Awaitable[object]]] = None
        self._pending: set = set()

    async def install(self, on_toggle: Callable[[], Awaitable[object]]) -> None:
        if self._installed:
            return

        self._on_toggle = on_toggle

        try:
            await self.page.expose_binding(BINDING_NAME, self._handle_click)
        except Exception as e:
            log.error(f"Failed to expose toggle binding: {e}")
            return

        self.page.on("framenavigated", self._on_navigated)
        self._installed = True
        await self.render(self._enabled)
        log.info("Bridge toggle installed")

    async def render(self, enabled: bool) -> None:
        self._enabled = bool(enabled)
        if not self._installed:
            return
        try:
            await self.page.evaluate(_ENSURE_SCRIPT, [BINDING_NAME, ELEMENT_ID, self._enabled])
        except Exception as e:
            log.debug(f"Toggle render skipped: {e}")

    # ------------------------------------------------------------

    def _handle_click(self, source, *args) -> None:
        if self._on_toggle is None:
            return
        self._spawn(self._on_toggle())

    def _on_navigated(self, frame: Frame) -> None:
        if frame != self.page.main_frame:
            return
        self._spawn(self.render(self._enabled))

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Future) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error(f"Toggle action failed: {exc}")
