"""
Client-side state for the task tracker UI.

TaskClient holds everything the page renders (task list, filter, loading flag,
form mode and working copy, two transient message slots) and talks to the API
with httpx. Every mutation is followed by a list refresh.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import httpx

API_BASE = "http://localhost:3000"
MESSAGE_TTL = 3.0
STATUSES = ("pending", "in-progress", "completed")

logger = logging.getLogger(__name__)


class RequestFailed(Exception):
    pass


@dataclass
class Message:
    """A transient message that reads as empty once `ttl` seconds have passed."""
    clock: Callable[[], float] = time.monotonic
    ttl: float = MESSAGE_TTL
    _text: str = ""
    _kind: str = ""
    _shown_at: float = 0.0

    def show(self, text: str, kind: str = "error"):
        self._text = text
        self._kind = kind
        self._shown_at = self.clock()

    def clear(self):
        self._text = ""
        self._kind = ""

    def _expired(self) -> bool:
        return self.clock() - self._shown_at >= self.ttl

    @property
    def text(self) -> str:
        if self._text and self._expired():
            self.clear()
        return self._text

    @property
    def kind(self) -> str:
        return self._kind if self.text else ""


@dataclass
class TaskForm:
    title: str = ""
    description: str = ""
    status: str = "pending"


@dataclass
class TaskClient:
    http: httpx.AsyncClient
    confirm: Callable[[str], bool] = lambda prompt: False
    clock: Callable[[], float] = time.monotonic

    tasks: list = field(default_factory=list)
    filter_status: str = "all"
    loading: bool = False
    editing_id: Optional[int] = None
    form: TaskForm = field(default_factory=TaskForm)
    form_message: Optional[Message] = None
    list_message: Optional[Message] = None
    _fetch_seq: int = 0

    def __post_init__(self):
        if self.form_message is None:
            self.form_message = Message(clock=self.clock)
        if self.list_message is None:
            self.list_message = Message(clock=self.clock)

    @classmethod
    def connect(cls, base_url: str = API_BASE, **kwargs) -> "TaskClient":
        return cls(http=httpx.AsyncClient(base_url=base_url, timeout=10.0), **kwargs)

    async def close(self):
        await self.http.aclose()

    @property
    def editing(self) -> bool:
        return self.editing_id is not None

    async def _request(self, method: str, path: str, fallback: str, **kwargs):
        try:
            response = await self.http.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise RequestFailed(fallback)
        if response.is_error:
            try:
                error = response.json().get("error")
            except (ValueError, AttributeError):
                error = None
            logger.warning("%s %s -> %s %s", method, path, response.status_code, error)
            raise RequestFailed(error or fallback)
        try:
            return response.json()
        except ValueError:
            logger.warning("%s %s -> %s with a non-JSON body", method, path, response.status_code)
            raise RequestFailed(fallback)

    def reset_form(self):
        self.form = TaskForm()
        self.editing_id = None

    async def fetch_tasks(self):
        self._fetch_seq += 1
        seq = self._fetch_seq
        params = {} if self.filter_status == "all" else {"status": self.filter_status}
        self.loading = True
        try:
            tasks = await self._request("GET", "/api/tasks", "Failed to fetch tasks", params=params)
        except RequestFailed as e:
            if seq == self._fetch_seq:
                self.list_message.show(str(e))
        else:
            # Dropped if a newer refresh was issued while this one was in flight.
            if seq == self._fetch_seq:
                self.tasks = tasks
        finally:
            if seq == self._fetch_seq:
                self.loading = False

    async def set_filter(self, value: str):
        if value != "all" and value not in STATUSES:
            raise ValueError(f"unknown filter {value!r}")
        self.filter_status = value
        await self.fetch_tasks()

    async def submit(self):
        title = self.form.title.strip()
        if not title:
            self.form_message.show("Title is required")
            return
        payload = {
            "title": title,
            "description": self.form.description.strip(),
            "status": self.form.status,
        }
        if self.editing:
            await self._update(self.editing_id, payload)
        else:
            await self._create(payload)

    async def _create(self, payload: dict):
        try:
            await self._request("POST", "/api/tasks", "Failed to create task", json=payload)
        except RequestFailed as e:
            self.form_message.show(str(e))
            return
        await self.fetch_tasks()
        self.reset_form()
        self.form_message.show("Task created", "success")

    async def _update(self, task_id: int, payload: dict):
        try:
            await self._request("PUT", f"/api/tasks/{task_id}", "Failed to update task", json=payload)
        except RequestFailed as e:
            self.form_message.show(str(e))
            return
        await self.fetch_tasks()
        self.reset_form()
        self.form_message.show("Task updated", "success")

    async def start_edit(self, task_id: int):
        try:
            task = await self._request("GET", f"/api/tasks/{task_id}", "Failed to load task")
        except RequestFailed as e:
            self.form_message.show(str(e))
            return
        self.editing_id = task["id"]
        self.form = TaskForm(
            title=task.get("title") or "",
            description=task.get("description") or "",
            status=task.get("status") or "pending",
        )

    def cancel_edit(self):
        self.reset_form()

    async def change_status(self, task_id: int, status: str):
        """Silent update: leaves the form and its message slot alone."""
        try:
            await self._request(
                "PUT", f"/api/tasks/{task_id}", "Failed to update status", json={"status": status}
            )
        except RequestFailed as e:
            self.list_message.show(str(e))
            return
        await self.fetch_tasks()

    async def delete_task(self, task_id: int) -> bool:
        if not self.confirm("Delete this task?"):
            return False
        try:
            await self._request("DELETE", f"/api/tasks/{task_id}", "Failed to delete task")
        except RequestFailed as e:
            self.list_message.show(str(e))
            return False
        await self.fetch_tasks()
        self.list_message.show("Task deleted", "success")
        return True
