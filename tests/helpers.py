"""Test doubles shared by the unit tests: scripted runner, fake Playwright page and engine."""

from contextlib import contextmanager
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Sequence
from unittest.mock import MagicMock

from gcseval.types import CommandResult, CompletedCommand


def completed(
    command: str = "gcloud storage ls gs://bucket",
    exit_code: int = 0,
    stdout: str = "",
    stderr: str = "",
    duration_ms: int = 5,
) -> CompletedCommand:
    return CompletedCommand(
        command=command,
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        duration_ms=duration_ms,
    )


class ScriptedRunner:
    """ProcessRunner stand-in that replays results and records commands."""

    def __init__(self, results: Sequence[CommandResult] = ()) -> None:
        self.results: List[CommandResult] = list(results)
        self.commands: List[str] = []

    def execute(self, command: str, timeout: Optional[float] = None) -> CommandResult:
        self.commands.append(command)
        if not self.results:
            return completed(command)
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, BaseException):
            raise result
        return result


class FakePage:
    """Minimal Playwright Page double driving the validator's event handlers."""

    def __init__(
        self,
        status: Optional[int] = 200,
        return_response: bool = True,
        emit_response: bool = True,
        response_url: Optional[str] = None,
        goto_error: Optional[BaseException] = None,
        fire_download: bool = False,
        delayed_status: Optional[int] = None,
        title: str = "",
        body_text: str = "",
        html: str = "<html><body></body></html>",
        visible: Sequence[str] = (),
        meta_refresh: Optional[str] = None,
        inspect_error: Optional[BaseException] = None,
    ) -> None:
        self.status = status
        self.return_response = return_response
        self.emit_response = emit_response
        self.response_url = response_url
        self.goto_error = goto_error
        self.fire_download = fire_download
        self.delayed_status = delayed_status
        self._title = title
        self.body_text = body_text
        self.html = html
        self.visible = set(visible)
        self.meta_refresh = meta_refresh
        self.inspect_error = inspect_error

        self.handlers: Dict[str, List[Any]] = {}
        self.goto_calls: List[Dict[str, Any]] = []
        self.visibility_checks: List[str] = []
        self.screenshots: List[str] = []
        self.waited_ms = 0
        self.closed = False

    def on(self, event: str, handler: Any) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def emit(self, event: str, payload: Any) -> None:
        for handler in self.handlers.get(event, []):
            handler(payload)

    def goto(self, url: str, **kwargs: Any) -> Any:
        self.goto_calls.append({"url": url, **kwargs})
        if self.fire_download:
            self.emit("download", SimpleNamespace(url=url))
        if self.emit_response and self.status is not None:
            self.emit("response", SimpleNamespace(url=self.response_url or url, status=self.status))
        if self.goto_error is not None:
            raise self.goto_error
        if self.return_response and self.status is not None:
            return SimpleNamespace(status=self.status)
        return None

    def wait_for_timeout(self, timeout: float) -> None:
        self.waited_ms += timeout
        if self.delayed_status is not None and self.goto_calls:
            url = self.goto_calls[-1]["url"]
            self.emit("response", SimpleNamespace(url=url, status=self.delayed_status))
            self.delayed_status = None

    def title(self) -> str:
        if self.inspect_error is not None:
            raise self.inspect_error
        return self._title

    def inner_text(self, selector: str, timeout: Optional[float] = None) -> str:
        return self.body_text

    def is_visible(self, selector: str) -> bool:
        self.visibility_checks.append(selector)
        return selector in self.visible

    def query_selector(self, selector: str) -> Any:
        if self.meta_refresh is None:
            return None
        element = MagicMock()
        element.get_attribute.return_value = self.meta_refresh
        return element

    def content(self) -> str:
        return self.html

    def screenshot(self, path: str, full_page: bool = False) -> bytes:
        Path(path).write_bytes(b"\x89PNG")
        self.screenshots.append(path)
        return b"\x89PNG"

    def close(self) -> None:
        self.closed = True


class FakeEngine:
    """BrowserEngine double handing out one FakePage per context."""

    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.contexts_opened = 0
        self.contexts_closed = 0

    @contextmanager
    def context(self):
        self.contexts_opened += 1
        context = MagicMock()
        context.new_page.return_value = self.page
        try:
            yield context
        finally:
            self.contexts_closed += 1

