"""Shared fixtures: an in-memory assistants API served to the openai SDK through httpx.MockTransport."""

import itertools
import json
import re
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest
import pytest_asyncio

from openai.types.beta.threads import Message, Text, TextContentBlock

from supportbot.gateway import OpenAIClient

BASE_URL = "https://api.test/v1"

Step = Union[str, Dict[str, Any]]

TERMINAL = ("completed", "failed", "cancelled", "expired", "incomplete")


class FakeAssistantsAPI:
    """
    Minimal stand-in for the assistants endpoints.

    Each run walks through a list of scripted steps, one per status poll.
    A step is a status string or a dict with ``tool_calls`` for a
    requires_action step; the run stays in requires_action until every
    listed call has an output. When the steps run out the run completes
    and an assistant reply is appended to the thread.

    Like the real service, a thread with a non-terminal run rejects new
    messages and new runs with a 400 until that run ends or is cancelled.
    """

    def __init__(self):
        self.assistants: Dict[str, Dict[str, Any]] = {}
        self.threads: Dict[str, List[Dict[str, Any]]] = {}
        self.runs: Dict[str, Dict[str, Any]] = {}
        self.requests: List[httpx.Request] = []
        self.tool_outputs: List[Dict[str, str]] = []
        self.replies: Dict[str, Union[str, Callable[[Dict[str, Any]], str]]] = {}
        self.chat_choices: List[Dict[str, Any]] = []
        self.fail_next: Optional[int] = None
        self.start_runs_without_id = False
        self._scripts: Dict[str, List[List[Step]]] = {}
        self._ids = itertools.count(1)
        self._clock = itertools.count(1_700_000_000)

    # ------------------------------------------------------------------
    # Test helpers

    def add_assistant(self, assistant_id: str, name: str = "Fake", reply: Optional[str] = None):
        self.assistants[assistant_id] = {
            "id": assistant_id,
            "object": "assistant",
            "name": name,
            "instructions": "",
            "model": "gpt-test",
            "tools": [],
        }
        if reply is not None:
            self.replies[assistant_id] = reply

    def script_next_run(self, assistant_id: str, steps: List[Step]):
        self._scripts.setdefault(assistant_id, []).append(list(steps))

    def add_message(self, thread_id: str, role: str, text: str, run_id: Optional[str] = None) -> Dict[str, Any]:
        message = {
            "id": self._new_id("msg"),
            "object": "thread.message",
            "thread_id": thread_id,
            "role": role,
            "created_at": next(self._clock),
            "run_id": run_id,
            "content": [{"type": "text", "text": {"value": text, "annotations": []}}],
        }
        self.threads.setdefault(thread_id, []).append(message)
        return message

    def count(self, method: str, pattern: str) -> int:
        """Number of recorded requests whose path fully matches ``pattern``."""
        return sum(
            1 for r in self.requests
            if r.method == method and re.fullmatch(pattern, self._path(r))
        )

    # ------------------------------------------------------------------
    # Transport

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_next is not None:
            status, self.fail_next = self.fail_next, None
            return httpx.Response(status, json={"error": {"message": "injected failure"}})

        path = self._path(request)
        body = json.loads(request.content) if request.content else {}

        for method, pattern, route in self._routes():
            if request.method != method:
                continue
            match = re.fullmatch(pattern, path)
            if match:
                return route(request, body, *match.groups())

        return httpx.Response(404, json={"error": {"message": f"No route {request.method} {path}"}})

    def _routes(self):
        return [
            ("POST", r"/assistants", self._create_assistant),
            ("GET", r"/assistants/([^/]+)", self._get_assistant),
            ("POST", r"/threads/runs", self._create_thread_and_run),
            ("POST", r"/threads/([^/]+)/messages", self._create_message),
            ("GET", r"/threads/([^/]+)/messages", self._list_messages),
            ("POST", r"/threads/([^/]+)/runs", self._create_run),
            ("GET", r"/threads/([^/]+)/runs/([^/]+)", self._get_run),
            ("POST", r"/threads/([^/]+)/runs/([^/]+)/submit_tool_outputs", self._submit_tool_outputs),
            ("POST", r"/threads/([^/]+)/runs/([^/]+)/cancel", self._cancel_run),
            ("POST", r"/chat/completions", self._chat_completion),
        ]

    @staticmethod
    def _path(request: httpx.Request) -> str:
        return request.url.path[len("/v1"):]

    def _new_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    # ------------------------------------------------------------------
    # Routes

    def _create_assistant(self, request, body):
        assistant_id = self._new_id("asst")
        self.assistants[assistant_id] = {"id": assistant_id, "object": "assistant", **body}
        return httpx.Response(200, json=self.assistants[assistant_id])

    def _get_assistant(self, request, body, assistant_id):
        if assistant_id not in self.assistants:
            return httpx.Response(404, json={"error": {"message": "No assistant found"}})
        return httpx.Response(200, json=self.assistants[assistant_id])

    def _create_thread_and_run(self, request, body):
        thread_id = self._new_id("thread")
        self.threads[thread_id] = []
        for m in body.get("thread", {}).get("messages", []):
            self.add_message(thread_id, m["role"], m["content"])
        return httpx.Response(200, json=self._start_run(thread_id, body["assistant_id"]))

    def _create_message(self, request, body, thread_id):
        if thread_id not in self.threads:
            return httpx.Response(404, json={"error": {"message": "No thread found"}})
        if self._active_run(thread_id):
            return _active_run_rejection(thread_id)
        return httpx.Response(200, json=self.add_message(thread_id, body["role"], body["content"]))

    def _list_messages(self, request, body, thread_id):
        params = request.url.params
        messages = list(self.threads.get(thread_id, []))
        if params.get("order", "desc") == "desc":
            messages.reverse()
        after = params.get("after")
        if after:
            ids = [m["id"] for m in messages]
            messages = messages[ids.index(after) + 1:]
        limit = int(params.get("limit", 20))
        page = messages[:limit]
        return httpx.Response(200, json={
            "object": "list",
            "data": page,
            "first_id": page[0]["id"] if page else None,
            "last_id": page[-1]["id"] if page else None,
            "has_more": len(messages) > limit,
        })

    def _create_run(self, request, body, thread_id):
        if self._active_run(thread_id):
            return _active_run_rejection(thread_id)
        return httpx.Response(200, json=self._start_run(thread_id, body["assistant_id"]))

    def _get_run(self, request, body, thread_id, run_id):
        run = self.runs[run_id]
        if run["status"] in TERMINAL:
            return httpx.Response(200, json=self._run_json(run))
        if run["pending"]:
            return httpx.Response(200, json=self._run_json(run))

        step = run["steps"].pop(0) if run["steps"] else "completed"
        if isinstance(step, dict):
            run["status"] = "requires_action"
            run["pending"] = {c["id"]: c for c in step["tool_calls"]}
        else:
            run["status"] = step
            if step == "completed":
                self.add_message(thread_id, "assistant", self._reply(run), run_id=run_id)
            elif step == "failed":
                run["last_error"] = {"code": "server_error", "message": "scripted failure"}
        return httpx.Response(200, json=self._run_json(run))

    def _submit_tool_outputs(self, request, body, thread_id, run_id):
        run = self.runs[run_id]
        for output in body["tool_outputs"]:
            self.tool_outputs.append(output)
            run["outputs"].append(output["output"])
            run["pending"].pop(output["tool_call_id"], None)
        if not run["pending"]:
            run["status"] = "in_progress"
        return httpx.Response(200, json=self._run_json(run))

    def _cancel_run(self, request, body, thread_id, run_id):
        run = self.runs[run_id]
        if run["status"] in TERMINAL:
            return httpx.Response(400, json={"error": {"message": f"Cannot cancel run with status '{run['status']}'."}})
        run["status"] = "cancelled"
        run["pending"] = {}
        return httpx.Response(200, json=self._run_json(run))

    def _chat_completion(self, request, body):
        choice = self.chat_choices.pop(0) if self.chat_choices else {
            "index": 0,
            "message": {"role": "assistant", "content": "ok"},
            "finish_reason": "stop",
        }
        return httpx.Response(200, json={"object": "chat.completion", "choices": [choice]})

    # ------------------------------------------------------------------

    def _start_run(self, thread_id: str, assistant_id: str) -> Dict[str, Any]:
        scripts = self._scripts.get(assistant_id) or []
        steps = scripts.pop(0) if scripts else ["in_progress"]
        run = {
            "id": self._new_id("run"),
            "thread_id": thread_id,
            "assistant_id": assistant_id,
            "status": "queued",
            "steps": steps,
            "pending": {},
            "outputs": [],
            "last_error": None,
        }
        self.runs[run["id"]] = run
        data = self._run_json(run)
        if self.start_runs_without_id:
            del data["id"]
        return data

    def _active_run(self, thread_id: str) -> Optional[Dict[str, Any]]:
        for run in self.runs.values():
            if run["thread_id"] == thread_id and run["status"] not in TERMINAL:
                return run
        return None

    def _reply(self, run: Dict[str, Any]) -> str:
        reply = self.replies.get(run["assistant_id"])
        if callable(reply):
            return reply(run)
        if reply is not None:
            return reply
        if run["outputs"]:
            return f"Relayed: {run['outputs'][-1]}"
        user_messages = [m for m in self.threads[run["thread_id"]] if m["role"] == "user"]
        return f"Echo: {user_messages[-1]['content'][0]['text']['value']}"

    @staticmethod
    def _run_json(run: Dict[str, Any]) -> Dict[str, Any]:
        data = {
            "id": run["id"],
            "object": "thread.run",
            "thread_id": run["thread_id"],
            "assistant_id": run["assistant_id"],
            "status": run["status"],
            "required_action": None,
            "last_error": run["last_error"],
        }
        if run["status"] == "requires_action":
            data["required_action"] = {
                "type": "submit_tool_outputs",
                "submit_tool_outputs": {
                    "tool_calls": [
                        {
                            "id": c["id"],
                            "type": "function",
                            "function": {"name": c["name"], "arguments": c["arguments"]},
                        }
                        for c in run["pending"].values()
                    ]
                },
            }
        return data


def _active_run_rejection(thread_id: str) -> httpx.Response:
    return httpx.Response(400, json={"error": {
        "message": f"Thread {thread_id} already has an active run.",
        "type": "invalid_request_error",
    }})


def tool_step(call_id: str, name: str, arguments: str) -> Dict[str, Any]:
    return {"tool_calls": [{"id": call_id, "name": name, "arguments": arguments}]}


def make_message(role: str, *texts: str, message_id: str = "msg", created_at: int = 0) -> Message:
    """Thread message with one text part per entry in ``texts``."""
    return Message.model_construct(
        id=message_id,
        object="thread.message",
        thread_id="thread_test",
        role=role,
        status="completed",
        created_at=created_at,
        content=[TextContentBlock(type="text", text=Text(value=t, annotations=[])) for t in texts],
    )


@pytest.fixture
def fake_api() -> FakeAssistantsAPI:
    api = FakeAssistantsAPI()
    api.add_assistant("asst_main", name="SupportBot")
    api.add_assistant("asst_onboarding", name="Onboarding")
    return api


@pytest_asyncio.fixture
async def openai_client(fake_api):
    client = OpenAIClient("sk-test", base_url=BASE_URL, max_retries=0, transport=fake_api.transport)
    yield client
    await client.close()
